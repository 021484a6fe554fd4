"""
Tests for the workflow API endpoints.

The client is entered as a context manager so the application
lifespan creates the schema and starts the run queue worker.
"""

import pytest
from fastapi.testclient import TestClient

from sigflow.main import app

BASE = "/api/v1"


def _pipeline_payload(name: str = "BTC momentum") -> dict:
    nodes = [
        ("start", "START", 0),
        ("feed", "BINANCE_EXTRACTOR", 200),
        ("ai", "AI_EVALUATOR", 400),
        ("exec", "BINANCE_TRADE_EXECUTOR", 600),
        ("collect", "BINANCE_RESULT_COLLECTOR", 800),
        ("end", "END", 1000),
    ]
    ids = [node_id for node_id, _, _ in nodes]
    return {
        "name": name,
        "description": "Listen, evaluate, trade",
        "nodes": [
            {"id": node_id, "type": node_type, "position": {"x": x, "y": 0}}
            for node_id, node_type, x in nodes
        ],
        "connections": [
            {"id": f"{s}-{t}", "source": s, "target": t} for s, t in zip(ids, ids[1:])
        ],
    }


@pytest.fixture(scope="module")
def client():
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def workflow_id(client) -> str:
    response = client.post(f"{BASE}/workflows", json=_pipeline_payload())
    assert response.status_code == 201
    return response.json()["id"]


def _run_to_completion(client, workflow_id: str, params: dict | None = None) -> dict:
    response = client.post(
        f"{BASE}/workflows/{workflow_id}/runs", json={"params": params or {}}
    )
    assert response.status_code == 202
    client.portal.call(app.state.run_queue.join)
    return response.json()


class TestComponentEndpoints:
    """Tests for GET /components and POST /components/can-connect."""

    def test_palette(self, client) -> None:
        response = client.get(f"{BASE}/components")
        assert response.status_code == 200
        categories = response.json()["categories"]
        assert [c["id"] for c in categories] == [
            "FLOW_CONTROL", "DATA_SOURCES", "AI_ANALYSIS", "CEX_TRADING", "DEX_TRADING",
        ]
        evaluator = categories[2]["components"][0]
        assert evaluator["type"] == "AI_EVALUATOR"
        assert evaluator["input_mode"] == "MULTI"

    def test_can_connect(self, client) -> None:
        allowed = client.post(
            f"{BASE}/components/can-connect",
            json={"source_type": "AI_EVALUATOR", "target_type": "OKX_TRADE_EXECUTOR"},
        )
        denied = client.post(
            f"{BASE}/components/can-connect",
            json={"source_type": "START", "target_type": "END"},
        )
        assert allowed.json()["allowed"] is True
        assert denied.json()["allowed"] is False

    def test_can_connect_unknown_type(self, client) -> None:
        response = client.post(
            f"{BASE}/components/can-connect",
            json={"source_type": "START", "target_type": "MYSTERY"},
        )
        assert response.status_code == 422
        assert response.json() == {"error": "Unknown component type", "detail": "MYSTERY"}

    def test_can_connect_rejects_malformed_type(self, client) -> None:
        response = client.post(
            f"{BASE}/components/can-connect",
            json={"source_type": "start", "target_type": "END"},
        )
        assert response.status_code == 422


class TestWorkflowEndpoints:
    """CRUD endpoints."""

    def test_create_and_get(self, client, workflow_id) -> None:
        response = client.get(f"{BASE}/workflows/{workflow_id}")
        assert response.status_code == 200
        body = response.json()
        assert body["name"] == "BTC momentum"
        assert body["status"] == "draft"
        assert len(body["nodes"]) == 6
        assert len(body["connections"]) == 5
        executor = next(n for n in body["nodes"] if n["id"] == "exec")
        assert executor["name"] == "Binance Trade Executor"
        assert executor["config"]["tradingPairs"] == []

    def test_list_contains_workflow(self, client, workflow_id) -> None:
        response = client.get(f"{BASE}/workflows")
        assert workflow_id in [w["id"] for w in response.json()["workflows"]]

    def test_update(self, client, workflow_id) -> None:
        payload = _pipeline_payload(name="Renamed")
        payload["nodes"][3]["config"] = {"maxAmount": 75}
        response = client.put(f"{BASE}/workflows/{workflow_id}", json=payload)
        assert response.status_code == 200
        body = response.json()
        assert body["name"] == "Renamed"
        executor = next(n for n in body["nodes"] if n["id"] == "exec")
        assert executor["config"]["maxAmount"] == 75

    def test_update_missing_is_404(self, client) -> None:
        response = client.put(f"{BASE}/workflows/missing", json=_pipeline_payload())
        assert response.status_code == 404
        assert response.json()["error"] == "Workflow not found"

    def test_delete(self, client, workflow_id) -> None:
        assert client.delete(f"{BASE}/workflows/{workflow_id}").status_code == 204
        assert client.get(f"{BASE}/workflows/{workflow_id}").status_code == 404
        assert client.delete(f"{BASE}/workflows/{workflow_id}").status_code == 404

    def test_unknown_node_type_rejected(self, client) -> None:
        payload = _pipeline_payload()
        payload["nodes"][1]["type"] = "MYSTERY_FEED"
        response = client.post(f"{BASE}/workflows", json=payload)
        assert response.status_code == 422
        assert response.json()["error"] == "Unknown component type"

    def test_invalid_config_rejected(self, client) -> None:
        payload = _pipeline_payload()
        payload["nodes"][3]["config"] = {"minAmount": 100, "maxAmount": 10}
        response = client.post(f"{BASE}/workflows", json=payload)
        assert response.status_code == 422
        assert response.json()["error"] == "Invalid node configuration"

    def test_self_connection_rejected(self, client) -> None:
        payload = _pipeline_payload()
        payload["connections"].append({"source": "ai", "target": "ai"})
        response = client.post(f"{BASE}/workflows", json=payload)
        assert response.status_code == 422
        assert response.json()["error"] == "Invalid connection"

    def test_missing_name_rejected(self, client) -> None:
        payload = _pipeline_payload()
        del payload["name"]
        assert client.post(f"{BASE}/workflows", json=payload).status_code == 422


class TestRunEndpoints:
    """Run submission and inspection."""

    def test_run_is_queued_then_completes(self, client, workflow_id) -> None:
        queued = _run_to_completion(client, workflow_id, {"capital": 500})
        assert queued["state"] == "queued"
        assert queued["workflow_id"] == workflow_id

        run = client.get(f"{BASE}/runs/{queued['id']}").json()

        assert run["state"] == "success"
        assert run["end_time"] is not None
        assert set(run["node_states"]) == {"start", "feed", "ai", "exec", "collect", "end"}
        assert all(s["status"] == "success" for s in run["node_states"].values())

    def test_runs_listed_for_workflow(self, client, workflow_id) -> None:
        first = _run_to_completion(client, workflow_id)
        second = _run_to_completion(client, workflow_id)
        response = client.get(f"{BASE}/workflows/{workflow_id}/runs")
        assert response.status_code == 200
        assert {first["id"], second["id"]} <= {r["id"] for r in response.json()["runs"]}

    def test_node_logs(self, client, workflow_id) -> None:
        run = _run_to_completion(client, workflow_id)
        response = client.get(f"{BASE}/runs/{run['id']}/nodes/feed/logs")
        body = response.json()
        assert body["status"] == "success"
        assert body["logs"][0] == "Executing feed node..."
        assert body["logs"][-1] == "feed completed successfully"

    def test_node_logs_for_unknown_node(self, client, workflow_id) -> None:
        run = _run_to_completion(client, workflow_id)
        body = client.get(f"{BASE}/runs/{run['id']}/nodes/ghost/logs").json()
        assert body["status"] is None
        assert body["logs"] == ["No logs available"]

    def test_replay(self, client, workflow_id) -> None:
        run = _run_to_completion(client, workflow_id)
        response = client.get(f"{BASE}/runs/{run['id']}/replay")
        assert response.status_code == 200
        body = response.json()
        assert body["run"]["id"] == run["id"]
        assert all(n["readonly"] for n in body["workflow"]["nodes"])
        assert all(n["run_status"] == "success" for n in body["workflow"]["nodes"])
        assert body["focus_node_id"] == "start"

    def test_run_of_missing_workflow_is_404(self, client) -> None:
        response = client.post(f"{BASE}/workflows/missing/runs", json={})
        assert response.status_code == 404

    def test_missing_run_is_404(self, client) -> None:
        response = client.get(f"{BASE}/runs/missing")
        assert response.status_code == 404
        assert response.json()["error"] == "Workflow run not found"

    def test_invalid_run_type_rejected(self, client, workflow_id) -> None:
        response = client.post(
            f"{BASE}/workflows/{workflow_id}/runs", json={"run_type": "nightly"}
        )
        assert response.status_code == 422


class TestExecuteEndpoint:
    """Tests for POST /workflows/{id}/execute."""

    def test_pipeline_executes_immediately(self, client) -> None:
        payload = _pipeline_payload()
        response = client.post(
            f"{BASE}/workflows/wf-direct/execute",
            json={
                "nodes": payload["nodes"],
                "connections": payload["connections"],
                "params": {"capital": 500},
            },
        )
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "completed"
        assert body["workflow_id"] == "wf-direct"
        assert [r["node_id"] for r in body["results"]] == [
            "start", "feed", "ai", "exec", "collect", "end",
        ]
        assert all(r["status"] == "success" for r in body["results"])
        assert body["results"][1]["type"] == "BINANCE_EXTRACTOR"
        assert body["results"][1]["data"]["source"] == "Binance Extractor"

    def test_nothing_is_stored(self, client) -> None:
        payload = _pipeline_payload()
        response = client.post(
            f"{BASE}/workflows/wf-unsaved/execute",
            json={"nodes": payload["nodes"], "connections": payload["connections"]},
        )
        assert response.status_code == 200
        assert client.get(f"{BASE}/workflows/wf-unsaved").status_code == 404
        execution_id = response.json()["execution_id"]
        assert client.get(f"{BASE}/runs/{execution_id}").status_code == 404

    def test_failing_node_stops_execution(self, client) -> None:
        """An evaluator without upstream data fails; later nodes are skipped."""
        response = client.post(
            f"{BASE}/workflows/wf-broken/execute",
            json={
                "nodes": [
                    {"id": "start", "type": "START"},
                    {"id": "ai", "type": "AI_EVALUATOR"},
                    {"id": "end", "type": "END"},
                ],
                "connections": [{"source": "ai", "target": "end"}],
            },
        )
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "failed"
        statuses = {r["node_id"]: r["status"] for r in body["results"]}
        assert statuses == {"start": "success", "ai": "failed", "end": "skipped"}
        failed = next(r for r in body["results"] if r["node_id"] == "ai")
        assert failed["error"] == "No input data to evaluate"

    def test_empty_graph_rejected(self, client) -> None:
        response = client.post(
            f"{BASE}/workflows/wf-empty/execute", json={"nodes": [], "connections": []}
        )
        assert response.status_code == 400
        assert response.json()["error"] == "Invalid workflow: no nodes provided"

    def test_dangling_connection_rejected(self, client) -> None:
        response = client.post(
            f"{BASE}/workflows/wf-dangling/execute",
            json={
                "nodes": [{"id": "start", "type": "START"}],
                "connections": [{"source": "start", "target": "ghost"}],
            },
        )
        assert response.status_code == 422
