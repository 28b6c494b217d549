import base64

import numpy as np
import pytest
from fastapi.testclient import TestClient

from secure_fedavg.aggregation import SmpcClientSession, deliver
from secure_fedavg.config import CoordinatorConfig
from secure_fedavg.coordinator import Coordinator
from secure_fedavg.crypto import HkdfKeyDeriver, seal_model_update
from secure_fedavg.service import PRINCIPAL_HEADER, create_app

SEED_HEX = b"model_update_encryption".hex()


def _client(**config) -> TestClient:
    coordinator = Coordinator(HkdfKeyDeriver(b"k" * 32), config=CoordinatorConfig.from_dict(config))
    return TestClient(create_app(coordinator))


def _as(principal: str) -> dict:
    return {PRINCIPAL_HEADER: principal}


@pytest.fixture
def client() -> TestClient:
    return _client()


def test_health(client):
    assert client.get("/health").json() == {"status": "healthy"}


def test_missing_principal_is_401(client):
    response = client.post("/register")
    assert response.status_code == 401
    assert response.json()["kind"] == "unauthenticated"
    assert response.json()["retryable"] is False


def test_register_is_idempotent(client):
    assert client.post("/register", headers=_as("a")).json() == {"client_id": 0}
    assert client.post("/register", headers=_as("b")).json() == {"client_id": 1}
    assert client.post("/register", headers=_as("a")).json() == {"client_id": 0}


def test_error_kinds_map_to_status_codes(client):
    response = client.get("/cycles/current")
    assert response.status_code == 404
    assert response.json()["kind"] == "not_found"

    client.post("/register", headers=_as("a"))
    response = client.post("/updates/plain", json={"ciphertext": "AAAA"}, headers=_as("a"))
    assert response.status_code == 409
    assert response.json()["kind"] == "invalid_state"

    client.post("/cycles", headers=_as("a"))
    response = client.post("/aggregations/plain", headers=_as("a"))
    assert response.status_code == 409
    assert response.json() == {
        "kind": "incomplete_cycle",
        "detail": "No model updates submitted for cycle 0",
        "retryable": True,
    }

    response = client.post("/updates/plain", json={"ciphertext": "AAAA"}, headers=_as("stranger"))
    assert response.status_code == 401


def test_plain_round_over_http(client):
    for principal in ("a", "b"):
        client.post("/register", headers=_as(principal))
    assert client.post("/cycles", headers=_as("a")).json() == {"cycle": 0}

    for principal, weights in (("a", [1.0, 2.0]), ("b", [3.0, 6.0])):
        key_hex = client.post("/keys", json={"derivation_path": SEED_HEX}, headers=_as(principal)).json()["key"]
        blob = seal_model_update(bytes.fromhex(key_hex), weights)
        response = client.post(
            "/updates/plain",
            json={"ciphertext": base64.b64encode(blob).decode()},
            headers=_as(principal),
        )
        assert response.status_code == 202

    result = client.post("/aggregations/plain", headers=_as("a")).json()
    assert result["version"] == 1
    assert result["included"] == [0, 1]

    model = client.get("/global_model").json()
    assert model["version"] == 1
    np.testing.assert_allclose(model["weights"], [2.0, 4.0])
    assert [v["version"] for v in client.get("/global_model/history").json()] == [0, 1]
    assert client.get("/cycles/0").json()["state"] == "closed"


def test_smpc_round_over_http():
    client = _client(aggregation_mode="smpc")
    ids = [client.post("/register", headers=_as(p)).json()["client_id"] for p in ("a", "b", "c")]
    client.post("/cycles", headers=_as("a"))
    participants = client.get("/cycles/0/participants").json()["participants"]
    assert participants == ids

    gradients = {0: [1.0, 2.0], 1: [3.0, 4.0], 2: [5.0, 6.0]}
    sessions = {cid: SmpcClientSession(client_id=cid, participants=participants, gradient=gradients[cid]) for cid in ids}
    for session in sessions.values():
        session.sample_masks()
    deliver(sessions)
    for principal, cid in zip(("a", "b", "c"), ids):
        assert client.post("/updates/smpc/s", json={"vector": sessions[cid].masked_share()}, headers=_as(principal)).status_code == 202
        assert client.post("/updates/smpc/t", json={"vector": sessions[cid].mask_sum()}, headers=_as(principal)).status_code == 202

    response = client.post("/updates/smpc/s", json={"vector": [1]}, headers=_as("a"))
    assert response.status_code == 422
    assert response.json()["kind"] == "length_mismatch"

    result = client.post("/aggregations/smpc", headers=_as("a")).json()
    assert result["mode"] == "smpc"
    np.testing.assert_allclose(client.get("/global_model").json()["weights"], [3.0, 4.0])


def test_mode_endpoints_and_admin_gate():
    client = _client(admin_principals=["root"])
    assert client.get("/aggregation_mode").json() == {"mode": "plain"}
    for response in (
        client.put("/aggregation_mode", json={"mode": "SMPC"}, headers=_as("user")),
        client.post("/cycles", headers=_as("user")),
        client.post("/aggregations/plain", headers=_as("user")),
    ):
        assert response.status_code == 403
        assert response.json()["kind"] == "unauthenticated"
    assert client.post("/cycles").status_code == 401
    assert client.put("/aggregation_mode", json={"mode": "SMPC"}, headers=_as("root")).json() == {"mode": "smpc"}
    assert client.put("/aggregation_mode", json={"mode": "fhe"}, headers=_as("root")).status_code == 422


def test_key_request_validates_hex(client):
    assert client.post("/keys", json={"derivation_path": "zz"}, headers=_as("a")).status_code == 422
