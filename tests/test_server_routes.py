import time

import pytest
from fastapi.testclient import TestClient

from conftest import ALICE, BOB
from pallet_interactor import server
from pallet_interactor.rate_limiter import PerKeyRateLimiter
from pallet_interactor.server import app


@pytest.fixture
def client(monkeypatch, gateway):
    monkeypatch.setattr(server, "rate_limiter", PerKeyRateLimiter(rate_per_sec=1000))
    return TestClient(app)


def _open_session(client, category="EXTRINSIC"):
    resp = client.post("/sessions", json={"category": category})
    assert resp.status_code == 201
    return resp.json()


def test_health_route(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json().get("status") == "ok"
    assert "X-Request-ID" in resp.headers


def test_metadata_browsing(client):
    resp = client.get("/metadata/query/namespaces")
    assert resp.json()["namespaces"] == ["balances", "staking", "system"]

    resp = client.get("/metadata/EXTRINSIC/balances/callables")
    assert resp.json()["callables"] == ["setBalance", "transfer"]

    resp = client.get("/metadata/EXTRINSIC/balances/transfer/parameters")
    assert resp.status_code == 200
    assert resp.json()["parameters"] == [
        {"name": "dest", "type": "AccountId", "optional": False},
        {"name": "value", "type": "Option<Balance>", "optional": True},
    ]


def test_metadata_browsing_errors(client):
    assert client.get("/metadata/storage/namespaces").status_code == 400
    assert client.get("/metadata/storage/balances/transfer/parameters").status_code == 400
    assert client.get("/metadata/EXTRINSIC/balances/missing/parameters").status_code == 404


def test_metadata_refresh_rebinds_sessions(client, gateway):
    session = _open_session(client)
    assert gateway.metadata_calls == 1
    resp = client.post("/metadata/refresh")
    assert resp.json() == {"available": True}
    assert gateway.metadata_calls == 2
    assert client.get("/metrics").json()["metadata_refreshes"] == 1
    assert client.get(f"/sessions/{session['sessionId']}").status_code == 200


def test_session_lifecycle(client, gateway):
    session = _open_session(client)
    session_id = session["sessionId"]
    assert session["phase"] == "CATEGORY_SELECTED"
    assert session["namespaces"] == ["balances", "system", "timestamp"]

    resp = client.post(f"/sessions/{session_id}/namespace", json={"namespace": "balances"})
    assert resp.json()["callables"] == ["setBalance", "transfer"]

    resp = client.post(f"/sessions/{session_id}/callable", json={"callable": "transfer"})
    body = resp.json()
    assert body["form"]["inputParams"] == [
        {"type": "AccountId", "value": ""},
        {"type": "Option<Balance>", "value": ""},
    ]
    assert body["missingRequired"] == ["dest"]

    resp = client.put(f"/sessions/{session_id}/params/0", json={"value": BOB})
    assert resp.json()["phase"] == "PARAMETERS_BOUND"
    client.put(f"/sessions/{session_id}/params/1", json={"value": "100"})

    resp = client.post(f"/sessions/{session_id}/submit", json={"signer": ALICE})
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "InBlock"
    assert body["state"] == "succeeded"
    assert body["call"]["args"] == [BOB, "100"]
    descriptor, mode, signer = gateway.submissions[0]
    assert (descriptor.namespace, descriptor.callable) == ("balances", "transfer")
    assert mode == "SIGNED-TX"
    assert signer == ALICE

    assert client.get(f"/sessions/{session_id}").json()["status"]["status"] == "InBlock"
    metrics = client.get("/metrics").json()
    assert metrics["submit_success"] == {"EXTRINSIC": 1}
    assert metrics["sessions_created"] == 1
    assert metrics["transitions"]["select_callable"] == 1

    assert client.delete(f"/sessions/{session_id}").status_code == 204
    assert client.get(f"/sessions/{session_id}").status_code == 404


def test_session_defaults_to_configured_category(client):
    resp = client.post("/sessions")
    assert resp.status_code == 201
    assert resp.json()["form"]["category"] == server.default_config.default_category.upper()


def test_category_switch_clears_selection(client):
    session_id = _open_session(client)["sessionId"]
    client.post(f"/sessions/{session_id}/namespace", json={"namespace": "balances"})
    client.post(f"/sessions/{session_id}/callable", json={"callable": "transfer"})
    resp = client.post(f"/sessions/{session_id}/category", json={"category": "RPC"})
    body = resp.json()
    assert body["form"] == {"category": "RPC", "namespace": "", "callable": "", "inputParams": []}
    assert body["namespaces"] == ["author", "chain", "system"]


def test_invalid_param_index_leaves_session_untouched(client):
    session_id = _open_session(client)["sessionId"]
    client.post(f"/sessions/{session_id}/namespace", json={"namespace": "balances"})
    client.post(f"/sessions/{session_id}/callable", json={"callable": "transfer"})
    resp = client.put(f"/sessions/{session_id}/params/5", json={"value": "100"})
    assert resp.status_code == 422
    assert resp.json()["code"] == "INVALID_PARAM_INDEX"
    form = client.get(f"/sessions/{session_id}").json()["form"]
    assert [param["value"] for param in form["inputParams"]] == ["", ""]


def test_out_of_order_selection_conflicts(client):
    session_id = _open_session(client)["sessionId"]
    resp = client.post(f"/sessions/{session_id}/callable", json={"callable": "transfer"})
    assert resp.status_code == 409
    assert resp.json()["code"] == "NO_NAMESPACE"


def test_submit_requires_callable(client):
    session_id = _open_session(client)["sessionId"]
    resp = client.post(f"/sessions/{session_id}/submit", json={})
    assert resp.status_code == 409


def test_submit_rejects_mode_for_category(client):
    session_id = _open_session(client, "QUERY")["sessionId"]
    client.post(f"/sessions/{session_id}/namespace", json={"namespace": "balances"})
    client.post(f"/sessions/{session_id}/callable", json={"callable": "totalIssuance"})
    resp = client.post(f"/sessions/{session_id}/submit", json={"mode": "SIGNED-TX"})
    assert resp.status_code == 400
    resp = client.post(f"/sessions/{session_id}/submit", json={"mode": "QUERY"})
    assert resp.status_code == 200


def test_submit_failure_is_reported_as_status(client, gateway):
    gateway.error = RuntimeError("1010: Invalid Transaction")
    session_id = _open_session(client)["sessionId"]
    client.post(f"/sessions/{session_id}/namespace", json={"namespace": "system"})
    client.post(f"/sessions/{session_id}/callable", json={"callable": "remark"})
    resp = client.post(f"/sessions/{session_id}/submit", json={"mode": "UNSIGNED-TX"})
    assert resp.status_code == 200
    assert resp.json()["status"] == "Submission failed: 1010: Invalid Transaction"
    assert resp.json()["state"] == "failed"
    assert client.get("/metrics").json()["submit_error"] == {"EXTRINSIC": 1}


def test_unknown_session_routes(client):
    assert client.get("/sessions/nope").status_code == 404
    resp = client.post("/sessions/nope/namespace", json={"namespace": "balances"})
    assert resp.status_code == 404
    assert resp.json()["code"] == "UNKNOWN_SESSION"


def test_accounts_and_transfer_form(client):
    resp = client.get("/accounts")
    assert [item["address"] for item in resp.json()["accounts"]] == [ALICE, BOB]

    resp = client.get("/transfer")
    body = resp.json()
    assert body["choices"][0] == {"key": "alice", "text": "alice", "value": ALICE}
    assert body["hints"][0].startswith("1 Unit = ")


def test_transfer_submits_signed_call(client, gateway):
    resp = client.post("/transfer", json={"to": BOB, "amount": "1000", "signer": ALICE})
    assert resp.status_code == 200
    body = resp.json()
    assert body["call"] == {
        "category": "EXTRINSIC",
        "namespace": "balances",
        "callable": "transfer",
        "args": [BOB, "1000"],
    }
    assert body["status"] == "InBlock"
    assert gateway.submissions[0][1:] == ("SIGNED-TX", ALICE)


def test_transfer_validation(client, gateway):
    resp = client.post("/transfer", json={"to": "not-an-address", "amount": "1", "signer": ALICE})
    assert resp.status_code == 400
    resp = client.post("/transfer", json={"to": BOB, "amount": "1.5", "signer": ALICE})
    assert resp.status_code == 400
    assert gateway.submissions == []


def test_rate_limit_response(monkeypatch, client):
    class DenyLimiter:
        async def allow(self, _key):
            return False

    monkeypatch.setattr(server, "rate_limiter", DenyLimiter())
    resp = client.post("/sessions", json={"category": "QUERY"})
    assert resp.status_code == 429
    assert resp.json()["error"] == "Rate limit exceeded"
    assert client.get("/metrics").json()["rate_limited"] == 1


def test_list_sessions(client):
    first = _open_session(client)["sessionId"]
    second = _open_session(client, "RPC")["sessionId"]
    assert client.get("/sessions").json() == {"sessions": [first, second]}
    client.delete(f"/sessions/{first}")
    assert client.get("/sessions").json() == {"sessions": [second]}


def test_signed_submit_requires_signer(client, gateway):
    session_id = _open_session(client)["sessionId"]
    client.post(f"/sessions/{session_id}/namespace", json={"namespace": "system"})
    client.post(f"/sessions/{session_id}/callable", json={"callable": "remark"})
    resp = client.post(f"/sessions/{session_id}/submit", json={})
    assert resp.status_code == 400
    assert resp.json()["error"] == "SIGNED-TX requires a signer."
    assert gateway.submissions == []


def test_background_submit_reports_pending_then_outcome(monkeypatch, gateway):
    monkeypatch.setattr(server, "rate_limiter", PerKeyRateLimiter(rate_per_sec=1000))
    with TestClient(app) as client:
        session_id = _open_session(client, "QUERY")["sessionId"]
        client.post(f"/sessions/{session_id}/namespace", json={"namespace": "balances"})
        client.post(f"/sessions/{session_id}/callable", json={"callable": "totalIssuance"})

        resp = client.post(f"/sessions/{session_id}/submit", json={"wait": False})
        assert resp.status_code == 202
        body = resp.json()
        assert body["state"] == "pending"
        assert body["call"]["callable"] == "totalIssuance"

        status = body
        for _ in range(200):
            status = client.get(f"/sessions/{session_id}").json()["status"]
            if status["state"] != "pending":
                break
            time.sleep(0.01)
        assert status == {"status": "InBlock", "state": "succeeded"}
    assert gateway.submissions[0][1] == "QUERY"
