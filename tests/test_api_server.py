"""
Pytest tests for the FastAPI server. The simulation API client and the execution
log are replaced through dependency overrides.
"""

from __future__ import annotations

import httpx
import pytest

ADDR_A = "0x" + "a" * 40
ADDR_B = "0x" + "b" * 40


@pytest.fixture
def api(settings):
    """TestClient plus a setter for the upstream handler used by the simulation client."""
    from fastapi.testclient import TestClient

    from backend_simlens.api_server import server
    from backend_simlens.history.execution_log import ExecutionLog
    from backend_simlens.simulation.client import SimulationApiClient

    state = {"handler": lambda request: httpx.Response(200, json={"simulations": []})}
    log = ExecutionLog(limit=50)

    def client_override():
        transport = httpx.MockTransport(lambda request: state["handler"](request))
        return SimulationApiClient(settings, client=httpx.AsyncClient(transport=transport))

    server.app.dependency_overrides[server.get_api_client] = client_override
    server.app.dependency_overrides[server.get_execution_log] = lambda: log

    def set_handler(handler):
        state["handler"] = handler

    yield TestClient(server.app), set_handler
    server.app.dependency_overrides.clear()
    server.reset_execution_log_for_test()


def test_health(api):
    """GET /health reports ok and whether credentials are configured."""
    client, _ = api
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok", "has_credentials": False}


def test_analyze_payload(api, rich_payload):
    """POST /analyze returns the combined analysis for a raw payload."""
    client, _ = api
    resp = client.post("/analyze", json={"payload": rich_payload, "actor": ADDR_A})
    assert resp.status_code == 200
    data = resp.json()
    assert data["simulation_id"] == "sim-123"
    assert data["status"] == "revert"
    assert data["call_count"] == 2
    assert data["gas"]["total_gas"] == 120
    assert data["flows"]["received_usd"] == 40
    assert data["flows"]["sent_usd"] == 100
    assert data["total_known_usd"] == 145.5

    tree = data["call_tree"]
    assert tree["node_count"] == 2
    assert tree["highlighted"] == ["[]"]
    (root,) = tree["roots"]
    assert (root["from"], root["to"]) == (ADDR_A, ADDR_B)
    assert (root["inclusive_gas"], root["exclusive_gas"]) == (100, 70)
    assert not root["is_error_origin"] and root["subtree_has_error"]
    (child,) = root["children"]
    assert child["method_label"] == "transfer"
    assert child["is_error_origin"]
    assert child["error"] == "execution reverted: X"

    assert [p["gas"] for p in data["gas"]["series"]] == [70, 30]
    assert data["gas"]["access_list"]["total_keys"] == 2
    assert data["gas"]["access_list"]["address_count"] == 2

    assert data["flows"]["series"] == [-100.0, -60.0]
    assert [(r["address"], r["net_usd"]) for r in data["flows"]["net_flow"]] == [(ADDR_B, 60.0), (ADDR_A, -60.0)]


def test_analyze_flow_window(api):
    """The window field picks how much of the flow series is returned."""
    client, _ = api
    changes = [
        {"from": ADDR_A, "to": ADDR_B, "dollar_value": "1"} for _ in range(40)
    ]
    payload = {"asset_changes": changes}
    recent = client.post("/analyze", json={"payload": payload}).json()
    assert len(recent["flows"]["series"]) == 30
    everything = client.post("/analyze", json={"payload": payload, "window": "all"}).json()
    assert len(everything["flows"]["series"]) == 40
    assert client.post("/analyze", json={"payload": payload, "window": "7"}).status_code == 422


def test_analyze_rejects_non_object(api):
    """Scenario D over HTTP: a scalar payload is an unexpected response (422)."""
    client, _ = api
    resp = client.post("/analyze", json={"payload": "not an object"})
    assert resp.status_code == 422


def test_simulate_upstream_error_maps_to_502(api):
    """Upstream failures surface their message with a 502."""
    client, set_handler = api
    set_handler(lambda request: httpx.Response(400, json={"error": {"message": "bad input"}}))
    body = {
        "request": {"save": True, "network_id": "8453", "from": ADDR_A, "to": ADDR_B, "input": "0x"},
    }
    resp = client.post("/simulate", json=body)
    assert resp.status_code == 502
    assert resp.json()["detail"] == {"message": "bad input", "upstream_status": 400}


def test_simulate_success(api, scenario_a_payload):
    """POST /simulate runs the simulation and analyzes the normalized result."""
    client, set_handler = api
    set_handler(lambda request: httpx.Response(200, json=scenario_a_payload))
    body = {"request": {"save": True, "network_id": "8453", "from": ADDR_A, "to": ADDR_B}}
    resp = client.post("/simulate", json=body)
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "success"
    assert data["gas"]["execution_gas"] == 100


def test_get_simulation_unexpected_payload(api):
    """A saved simulation whose body is not an object is a 422."""
    client, set_handler = api
    set_handler(lambda request: httpx.Response(200, json=[1, 2]))
    assert client.get("/simulations/sim-1").status_code == 422


def test_history_merges_executions_and_simulations(api):
    """Executions recorded over HTTP are merged with listed simulations, newest first."""
    client, set_handler = api
    set_handler(lambda request: httpx.Response(200, json={"data": [
        {"id": "sim-1", "to": ADDR_B, "timestamp": 1_700_000_000},
        {"id": "sim-2", "timestamp": 1_700_000_001},
    ]}))

    resp = client.post("/executions", json={
        "from": ADDR_A,
        "to": ADDR_B,
        "calldata": "0x",
        "value": "0.1",
        "gasLimit": "21000",
        "chainId": 8453,
        "hash": "0xabc",
        "timestamp": 1_800_000_000_000,
    })
    assert resp.status_code == 201
    assert resp.json()["method"] == "Transfer"

    items = client.get("/history").json()["items"]
    assert [i["type"] for i in items] == ["execution", "simulation"]
    assert items[0]["hash"] == "0xabc"
    assert items[1]["simulationId"] == "sim-1"

    assert client.delete("/executions").json() == {"cleared": 1}
    assert [i["type"] for i in client.get("/history").json()["items"]] == ["simulation"]


def test_history_keeps_local_items_when_listing_fails(api):
    """An upstream listing error is reported but does not drop local executions."""
    client, set_handler = api
    set_handler(lambda request: httpx.Response(401, json={"message": "unauthorized"}))
    client.post("/executions", json={
        "to": ADDR_B, "chainId": 1, "hash": "0x1", "timestamp": 5,
    })
    data = client.get("/history").json()
    assert data["remote_error"] == "unauthorized"
    assert len(data["items"]) == 1


def test_history_keeps_local_items_when_upstream_unreachable(api):
    """A connection failure while listing still returns the local feed."""
    client, set_handler = api

    def unreachable(request):
        raise httpx.ConnectError("connection refused", request=request)

    set_handler(unreachable)
    client.post("/executions", json={
        "to": ADDR_B, "chainId": 1, "hash": "0x1", "timestamp": 5,
    })
    resp = client.get("/history")
    assert resp.status_code == 200
    data = resp.json()
    assert data["remote_error"] == "connection refused"
    assert [i["hash"] for i in data["items"]] == ["0x1"]


def test_simulate_unreachable_maps_to_502(api):
    """Transport failures on /simulate are a 502 without an upstream status."""
    client, set_handler = api

    def timeout(request):
        raise httpx.ReadTimeout("timed out", request=request)

    set_handler(timeout)
    body = {"request": {"save": True, "network_id": "8453", "from": ADDR_A, "to": ADDR_B}}
    resp = client.post("/simulate", json=body)
    assert resp.status_code == 502
    assert resp.json()["detail"] == {"message": "timed out", "upstream_status": None}
