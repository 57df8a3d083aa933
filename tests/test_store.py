import json
import sqlite3

import pytest

from echoverse.db import MEMORY, Store
from echoverse.errors import PersistenceError


def _reality(store, rid, session="s1", event="if I ran"):
    return store.insert_reality(
        reality_id=rid,
        user_session=session,
        title=event,
        description="d",
        original_event=event,
        outcomes=[{"id": f"{rid}-o", "title": "Path 1"}],
        probability_score=0.5,
        impact_score=5,
    )


def test_bootstrap_is_idempotent(store):
    store.bootstrap_schema()
    store.bootstrap_schema()
    con = sqlite3.connect(store.db_path)
    names = {r[0] for r in con.execute("SELECT name FROM sqlite_master WHERE type='table'")}
    con.close()
    assert {"realities", "reality_trees", "analytics"} <= names


def test_realities_listed_newest_first_with_paging(store):
    for i in range(5):
        _reality(store, f"r{i}")
    _reality(store, "other", session="s2")

    rows = store.list_realities("s1", limit=20, offset=0)
    assert [r["id"] for r in rows] == ["r4", "r3", "r2", "r1", "r0"]
    assert json.loads(rows[0]["outcomes"]) == [{"id": "r4-o", "title": "Path 1"}]
    assert rows[0]["created_at"] == rows[0]["updated_at"]

    page = store.list_realities("s1", limit=2, offset=1)
    assert [r["id"] for r in page] == ["r3", "r2"]


def test_private_tree_is_never_viewable(store):
    store.insert_tree(tree_id="t1", user_session="s1", tree_data={"a": 1}, share_token=None)
    assert store.view_public_tree("t1") is None
    assert store.view_public_tree("nope") is None


def test_public_tree_view_count_increments(store):
    store.insert_tree(tree_id="t1", user_session="s1", tree_data={"a": 1}, share_token="tok")

    first = store.view_public_tree("tok")
    second = store.view_public_tree("tok")

    assert first["view_count"] == 1
    assert second["view_count"] == 2
    assert second["is_public"] == 1
    assert json.loads(second["tree_data"]) == {"a": 1}


def test_share_tokens_are_unique(store):
    store.insert_tree(tree_id="t1", user_session="s1", tree_data=[], share_token="tok")
    with pytest.raises(PersistenceError):
        store.insert_tree(tree_id="t2", user_session="s1", tree_data=[], share_token="tok")


def test_duplicate_reality_id_is_a_persistence_error(store):
    _reality(store, "r1")
    with pytest.raises(PersistenceError):
        _reality(store, "r1")


def test_counts_per_session(store):
    _reality(store, "r1")
    _reality(store, "r2")
    store.insert_tree(tree_id="t1", user_session="s1", tree_data={}, share_token=None)
    store.insert_event("s1", "create_reality", {"x": 1})
    store.insert_event("s2", "create_reality", {})

    assert store.count_for_session("s1") == {"realities": 2, "trees": 1, "interactions": 1}
    assert store.count_for_session("ghost") == {"realities": 0, "trees": 0, "interactions": 0}


def test_in_memory_store_keeps_data_between_calls():
    s = Store(MEMORY)
    s.bootstrap_schema()
    _reality(s, "r1")
    assert [r["id"] for r in s.list_realities("s1")] == ["r1"]
    s.close()


def test_missing_database_directory_raises_persistence_error(tmp_path):
    s = Store(str(tmp_path / "missing" / "dir" / "x.db"))
    with pytest.raises(PersistenceError):
        s.bootstrap_schema()
