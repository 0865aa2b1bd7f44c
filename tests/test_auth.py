import jwt
import pytest

from bloomtrack.auth import create_token, decode_token, hash_password, verify_password

from .conftest import OWNER_ID, TEST_SECRET


def test_password_hashing():
    h = hash_password("rose-petal")
    assert h != "rose-petal"
    assert verify_password(h, "rose-petal")
    assert not verify_password(h, "marigold")
    assert not verify_password(None, "rose-petal")


def test_token_carries_user_id():
    token = create_token(OWNER_ID, TEST_SECRET)
    payload = decode_token(token, TEST_SECRET)
    assert payload["sub"] == OWNER_ID
    assert "exp" in payload


def test_expired_token_is_rejected():
    token = create_token(OWNER_ID, TEST_SECRET, days=-1)
    with pytest.raises(jwt.ExpiredSignatureError):
        decode_token(token, TEST_SECRET)


def test_missing_bearer_header(client):
    resp = client.get("/api/sellers")
    assert resp.status_code == 401
    assert resp.get_json()["error"] == "Access token required"


def test_non_bearer_scheme(client, token):
    resp = client.get("/api/profiles", headers={"Authorization": f"Token {token}"})
    assert resp.status_code == 401


def test_garbage_token(client):
    resp = client.get("/api/sellers", headers={"Authorization": "Bearer not.a.jwt"})
    assert resp.status_code == 401
    assert resp.get_json()["error"] == "Invalid token"


def test_token_signed_with_other_secret(client):
    token = create_token(OWNER_ID, "someone-else")
    resp = client.get("/api/auth/user", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 401
    assert resp.get_json()["error"] == "Invalid token"


def test_expired_token_on_route(client):
    token = create_token(OWNER_ID, TEST_SECRET, days=-1)
    resp = client.get("/api/reports/eod", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 401
    assert resp.get_json()["error"] == "Token expired"


@pytest.mark.parametrize("method, path", [
    ("put", "/api/sellers/transactions/5c4b3a29-1807-4f6e-8d5c-4b3a29180716/salesman"),
    ("get", "/api/admin/ping"),
    ("get", "/api/admin/db-inspect"),
    ("post", "/api/admin/migrate-owner-serial"),
    ("get", "/api/sellers/0b7a6c4e-2f1d-4e8b-a3c5-9d8e7f6a5b4c/reconciliation"),
    ("post", "/api/sellers/0b7a6c4e-2f1d-4e8b-a3c5-9d8e7f6a5b4c/payments/clear"),
])
def test_guarded_routes_need_a_token(client, method, path):
    resp = getattr(client, method)(path, json={})
    assert resp.status_code == 401


def test_signout_needs_no_token(client):
    resp = client.post("/api/auth/signout")
    assert resp.status_code == 200
    assert "message" in resp.get_json()
