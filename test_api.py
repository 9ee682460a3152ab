"""
Tests for the HTTP / websocket command and event surfaces.
"""

import pytest
from fastapi.testclient import TestClient

from conftest import FakePage, wait_for
from heb_shopper.agents.backends import PersistentBrowserBackend
from heb_shopper.agents.controller import RunController
from heb_shopper.api.server import create_app


@pytest.fixture
def make_client(grocery_catalog):
    clients = []

    def factory(config):
        page = FakePage(grocery_catalog)
        ctrl = RunController(PersistentBrowserBackend(lambda: page, config), config=config)
        client = TestClient(create_app(controller=ctrl))
        client.__enter__()
        clients.append(client)
        return client, ctrl

    yield factory
    for client in clients:
        client.__exit__(None, None, None)


def test_health(make_client, fast_config):
    client, _ = make_client(fast_config)

    r = client.get("/api/health")

    assert r.status_code == 200
    body = r.json()
    assert body["status"] == "ok"
    assert body["run_status"] == "idle"
    assert body["checkpoint_store"] is None


def test_start_run_and_read_snapshot(make_client, fast_config):
    client, ctrl = make_client(fast_config)

    r = client.post("/api/run", json={"shopping_list": "[Dairy]\n1 cup Milk"})
    assert r.status_code == 202
    run_id = r.json()["run_id"]
    ctrl.wait(timeout=10)

    snapshot = client.get("/api/run").json()
    assert snapshot["run_id"] == run_id
    assert snapshot["status"] == "completed"
    assert snapshot["items"][0]["item"]["name"] == "Milk"
    assert snapshot["items"][0]["phase"] == "completed"
    assert snapshot["logs"][-1]["message"] == "Shopping run completed."


@pytest.mark.parametrize("body", [
    {"shopping_list": "   \n  "},
    {"clean_with_ai": True},
])
def test_invalid_start_is_400(make_client, fast_config, body):
    client, ctrl = make_client(fast_config)

    r = client.post("/api/run", json=body)

    assert r.status_code == 400
    assert r.json()["error_code"] == "INVALID_REQUEST"
    assert ctrl.snapshot().status == "idle"


def test_conflict_then_cancel(make_client, slow_settle_config):
    client, ctrl = make_client(slow_settle_config)
    run_id = client.post("/api/run", json={"shopping_list": "Milk\nFrozen Peas"}).json()["run_id"]
    assert wait_for(lambda: ctrl.snapshot().items[0].phase == "adding-to-cart")

    r = client.post("/api/run", json={"shopping_list": "Eggs"})
    assert r.status_code == 409
    assert r.json()["error_code"] == "RUN_IN_PROGRESS"
    assert r.json()["run_id"] == run_id

    r = client.post(f"/api/run/{run_id}/cancel")
    assert r.status_code == 202
    assert r.json()["cancel_requested"] is True
    ctrl.wait(timeout=10)

    snapshot = client.get("/api/run").json()
    assert snapshot["status"] == "error"
    assert snapshot["message"] == "Shopping run was cancelled."


def test_cancel_unknown_run_is_accepted(make_client, fast_config):
    client, _ = make_client(fast_config)

    r = client.post("/api/run/not-a-run/cancel")

    assert r.status_code == 202
    assert r.json()["cancel_requested"] is False


def test_websocket_for_finished_run_sends_snapshot(make_client, fast_config):
    client, ctrl = make_client(fast_config)
    run_id = client.post("/api/run", json={"shopping_list": "Milk"}).json()["run_id"]
    ctrl.wait(timeout=10)

    with client.websocket_connect(f"/ws/runs/{run_id}") as ws:
        message = ws.receive_json()

    assert message["type"] == "snapshot"
    assert message["state"]["status"] == "completed"


def test_websocket_streams_until_terminal_status(make_client, slow_settle_config):
    client, ctrl = make_client(slow_settle_config)
    run_id = client.post("/api/run", json={"shopping_list": "Milk\nFrozen Peas"}).json()["run_id"]
    assert wait_for(lambda: ctrl.snapshot().items[0].phase == "adding-to-cart")

    events = []
    with client.websocket_connect(f"/ws/runs/{run_id}") as ws:
        snapshot = ws.receive_json()
        client.post(f"/api/run/{run_id}/cancel")
        while True:
            event = ws.receive_json()
            events.append(event)
            if event["type"] == "run-status":
                break

    assert snapshot["state"]["status"] == "in-progress"
    assert events[-1]["status"] == "error"
    assert all(e["run_id"] == run_id for e in events)
    seqs = [e["seq"] for e in events]
    assert seqs == sorted(seqs)
    assert {"type": "item-error", "error": "Cancelled"}.items() <= next(
        e for e in events if e["type"] == "item-error"
    ).items()
