from datetime import datetime, timedelta

from conftest import STRONG_PASSWORD, auth_headers
from models.refresh_token import RefreshToken
from models.user import User, UserRole


def register(client, **overrides):
    payload = {
        "email": "courier@example.com",
        "name": "Jean Courier",
        "password": STRONG_PASSWORD,
    }
    payload.update(overrides)
    return client.post("/auth/register", json=payload)


def test_register_returns_user_and_token_pair(client, db):
    response = register(client)

    assert response.status_code == 201
    data = response.json()
    assert data["user"]["email"] == "courier@example.com"
    assert data["user"]["role"] == "delivery_person"
    assert data["token_type"] == "bearer"
    assert data["access_token"] and data["refresh_token"]
    assert "access_token" in response.cookies
    assert db.query(RefreshToken).count() == 1


def test_register_with_merchant_role(client):
    response = register(client, role="merchant")
    assert response.status_code == 201
    assert response.json()["user"]["role"] == "merchant"


def test_password_is_stored_hashed(client, db):
    register(client)
    user = db.query(User).filter(User.email == "courier@example.com").first()
    assert user.password_hash != STRONG_PASSWORD


def test_duplicate_email_conflicts(client):
    register(client)
    response = register(client, email="COURIER@example.com")
    assert response.status_code == 409


def test_weak_password_is_rejected(client):
    response = register(client, password="weakpassword")
    assert response.status_code == 422
    assert response.json()["error_code"] == "VALIDATION_ERROR"


def test_unknown_role_is_rejected(client):
    response = register(client, role="superuser")
    assert response.status_code == 422


def test_admin_cannot_self_register(client):
    response = register(client, role="admin")
    assert response.status_code == 403


def test_login_with_valid_credentials(client, merchant):
    response = client.post("/auth/login", json={"email": merchant.email, "password": STRONG_PASSWORD})

    assert response.status_code == 200
    assert response.json()["user"]["id"] == merchant.id
    assert response.json()["message"] == "Login successful"


def test_login_with_wrong_password(client, merchant):
    response = client.post("/auth/login", json={"email": merchant.email, "password": "Wr0ng!Password"})
    assert response.status_code == 401
    assert response.json()["message"] == "Invalid credentials"


def test_login_with_unknown_email(client):
    response = client.post("/auth/login", json={"email": "ghost@example.com", "password": STRONG_PASSWORD})
    assert response.status_code == 401


def test_refresh_rotates_the_token(client):
    tokens = register(client).json()

    response = client.post("/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert response.status_code == 200
    rotated = response.json()
    assert rotated["refresh_token"] != tokens["refresh_token"]

    # The consumed token cannot be used again
    replay = client.post("/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert replay.status_code == 401


def test_refresh_reads_cookie_when_body_is_empty(client):
    register(client)
    response = client.post("/auth/refresh")
    assert response.status_code == 200


def test_expired_refresh_token_is_deleted(client, db, courier):
    db.add(RefreshToken(token="expired-token", user_id=courier.id, expires_at=datetime.utcnow() - timedelta(minutes=1)))
    db.commit()

    response = client.post("/auth/refresh", json={"refresh_token": "expired-token"})

    assert response.status_code == 401
    assert db.query(RefreshToken).filter(RefreshToken.token == "expired-token").first() is None


def test_unknown_refresh_token(client):
    response = client.post("/auth/refresh", json={"refresh_token": "not-a-token"})
    assert response.status_code == 401


def test_logout_removes_refresh_token(client, db):
    tokens = register(client).json()

    response = client.post("/auth/logout", json={"refresh_token": tokens["refresh_token"]})

    assert response.status_code == 200
    assert db.query(RefreshToken).count() == 0


def test_profile_with_bearer_token(client, merchant):
    response = client.get("/auth/profile", headers=auth_headers(merchant))

    assert response.status_code == 200
    assert response.json()["email"] == merchant.email
    assert response.json()["role"] == UserRole.MERCHANT.value


def test_profile_requires_authentication(client):
    client.cookies.clear()
    response = client.get("/auth/profile")
    assert response.status_code == 401


def test_refresh_token_is_not_accepted_as_access_token(client):
    tokens = register(client).json()
    client.cookies.clear()

    response = client.get("/auth/profile", headers={"Authorization": f"Bearer {tokens['refresh_token']}"})
    assert response.status_code == 401


def test_tampered_token_is_rejected(client, merchant):
    headers = auth_headers(merchant)
    headers["Authorization"] += "x"
    client.cookies.clear()
    assert client.get("/auth/profile", headers=headers).status_code == 401
