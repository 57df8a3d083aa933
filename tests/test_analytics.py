import json
import logging
import sqlite3

from echoverse.analytics import AnalyticsSink
from echoverse.errors import PersistenceError


def _events(store):
    con = sqlite3.connect(store.db_path)
    rows = con.execute("SELECT user_session, event_type, event_data FROM analytics ORDER BY id").fetchall()
    con.close()
    return rows


def test_record_appends_event(store):
    sink = AnalyticsSink(store)
    assert sink.record("s1", "create_reality", {"realityId": "r1"}) is True
    assert sink.record("s1", "explore_node") is True

    rows = _events(store)
    assert rows[0][:2] == ("s1", "create_reality")
    assert json.loads(rows[0][2]) == {"realityId": "r1"}
    assert json.loads(rows[1][2]) == {}


def test_store_failure_is_logged_not_raised(store, monkeypatch, caplog):
    def fail(*a):
        raise PersistenceError("insert analytics event failed")

    monkeypatch.setattr(store, "insert_event", fail)
    with caplog.at_level(logging.WARNING, logger="echoverse.analytics"):
        assert AnalyticsSink(store).record("s1", "save_tree", {"treeId": "t"}) is False
    assert "analytics logging failed" in caplog.text


def test_unserializable_payload_is_dropped(store):
    assert AnalyticsSink(store).record("s1", "weird", {"obj": object()}) is False
    assert _events(store) == []


def test_analytics_outage_does_not_fail_requests(client, ctx, monkeypatch):
    def fail(*a):
        raise PersistenceError("insert analytics event failed")

    monkeypatch.setattr(ctx.store, "insert_event", fail)
    r = client.post("/api/realities", json={"event": "if I left", "userSession": "a"})
    assert r.status_code == 200
    assert client.get("/api/realities/a").get_json()["count"] == 1
