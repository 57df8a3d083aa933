import pytest

from echoverse.errors import NotFoundError
from echoverse.sharing import SharingResolver


def test_mint_token_only_when_public(store):
    resolver = SharingResolver(store, token_factory=lambda: "fixed")
    assert resolver.mint_token(False) is None
    assert resolver.mint_token(True) == "fixed"


@pytest.mark.parametrize("base, expected", [
    ("http://localhost/", "http://localhost/share/tok"),
    ("https://echo.example", "https://echo.example/share/tok"),
])
def test_share_url(base, expected):
    assert SharingResolver.share_url(base, "tok") == expected
    assert SharingResolver.share_url(base, None) is None


def test_resolve_counts_views(store):
    store.insert_tree(tree_id="t1", user_session="s", tree_data={"k": "v"}, share_token="tok")
    resolver = SharingResolver(store)

    assert resolver.resolve("tok")["view_count"] == 1
    assert resolver.resolve("tok")["view_count"] == 2
    with pytest.raises(NotFoundError):
        resolver.resolve("missing")


def test_anonymous_views_do_not_inflate_owner_stats(client):
    token = client.post(
        "/api/trees", json={"treeData": {}, "userSession": "owner", "makePublic": True}
    ).get_json()["shareToken"]
    for _ in range(5):
        assert client.get(f"/api/trees/share/{token}").status_code == 200

    stats = client.get("/api/stats/owner").get_json()
    assert stats["totalInteractions"] == 1   # save_tree only
    assert stats["diversityScore"] == 0
