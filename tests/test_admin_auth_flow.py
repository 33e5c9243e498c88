from datetime import datetime, timezone

from bson import ObjectId

from webnest.utils.security_utils import hash_password

OWNER_EMAIL = "owner@webnest.io"
OWNER_PASSWORD = "correct-horse-battery"


def _seed_admin(db, email=OWNER_EMAIL, role="owner", is_verified=False, permissions=None):
    doc = {
        "_id": ObjectId(),
        "name": "Owner",
        "email": email,
        "password": hash_password(OWNER_PASSWORD),
        "role": role,
        "permissions": permissions or [],
        "is_active": True,
        "is_verified": is_verified,
        "otp_attempts": 0,
        "login_history": [],
        "created_at": datetime.now(timezone.utc),
    }
    db.get_collection("admins").docs.append(doc)
    return doc


def _login(api_client, email=OWNER_EMAIL, password=OWNER_PASSWORD):
    return api_client.post("/api/admin/auth/login", json={"email": email, "password": password})


def _verified_token(api_client, fake_db, **seed):
    admin = _seed_admin(fake_db, is_verified=True, **seed)
    response = _login(api_client, email=admin["email"])
    return response.json()["data"]["accessToken"]


# ============================================================================
# OTP-gated login
# ============================================================================


def test_first_login_requires_otp_then_password_login_issues_tokens(api_client, fake_db, email_service):
    _seed_admin(fake_db)

    first = _login(api_client)
    assert first.status_code == 200
    assert first.json()["requireOTP"] is True
    assert "accessToken" not in first.json()["data"]
    email_service.send_verification_code.assert_awaited_once()

    code = fake_db.get_collection("admins").docs[0]["otp"]
    verified = api_client.post("/api/admin/auth/verify-otp", json={"email": OWNER_EMAIL, "otp": code})
    assert verified.status_code == 200
    assert "data" not in verified.json()

    second = _login(api_client)
    assert second.status_code == 200
    assert "requireOTP" not in second.json()
    data = second.json()["data"]
    assert data["role"] == "owner"
    assert data["accessToken"] and data["refreshToken"]

    stored = fake_db.get_collection("admins").docs[0]
    assert stored["is_verified"] is True
    assert len(stored["login_history"]) == 1
    assert "otp" not in stored


def test_wrong_otp_is_rejected(api_client, fake_db):
    _seed_admin(fake_db)
    _login(api_client)
    code = fake_db.get_collection("admins").docs[0]["otp"]
    wrong = "100000" if code != "100000" else "100001"

    response = api_client.post("/api/admin/auth/verify-otp", json={"email": OWNER_EMAIL, "otp": wrong})

    assert response.status_code == 400
    assert response.json() == {"success": False, "message": "Invalid verification code"}
    assert fake_db.get_collection("admins").docs[0]["otp_attempts"] == 1


def test_resend_does_not_grant_extra_guesses(api_client, fake_db):
    _seed_admin(fake_db)
    _login(api_client)

    for _ in range(3):
        assert api_client.post("/api/admin/auth/resend-otp", json={"email": OWNER_EMAIL}).status_code == 200
        code = fake_db.get_collection("admins").docs[0]["otp"]
        wrong = "100000" if code != "100000" else "100001"
        for _ in range(2):
            api_client.post("/api/admin/auth/verify-otp", json={"email": OWNER_EMAIL, "otp": wrong})

    stored = fake_db.get_collection("admins").docs[0]
    assert stored["otp_attempts"] == 5

    resend = api_client.post("/api/admin/auth/resend-otp", json={"email": OWNER_EMAIL})
    assert resend.status_code == 403
    assert stored["is_active"] is False
    assert _login(api_client).status_code == 403


def test_wrong_password_is_unauthorized(api_client, fake_db):
    _seed_admin(fake_db, is_verified=True)

    response = _login(api_client, password="not-the-password")

    assert response.status_code == 401
    assert response.json() == {"success": False, "message": "Invalid credentials"}


def test_profile_never_exposes_secrets(api_client, fake_db):
    token = _verified_token(api_client, fake_db)

    response = api_client.get("/api/admin/auth/me", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 200
    profile = response.json()["data"]
    assert profile["email"] == OWNER_EMAIL
    assert "password" not in profile
    assert "otp" not in profile


# ============================================================================
# Owner and permission gates
# ============================================================================


def test_owner_creates_unverified_admin(api_client, fake_db):
    token = _verified_token(api_client, fake_db)

    response = api_client.post(
        "/api/admin/auth/create-admin",
        json={
            "name": "Support",
            "email": "support@webnest.io",
            "password": "support-pass-123",
            "permissions": [{"module": "users", "actions": ["read"]}],
        },
        headers={"Authorization": f"Bearer {token}"},
    )

    assert response.status_code == 201
    assert response.json()["data"]["is_verified"] is False
    duplicate = api_client.post(
        "/api/admin/auth/create-admin",
        json={"name": "Support", "email": "SUPPORT@webnest.io", "password": "support-pass-123"},
        headers={"Authorization": f"Bearer {token}"},
    )
    assert duplicate.status_code == 400
    assert duplicate.json()["message"] == "Admin already exists"


def test_plain_admin_cannot_create_admins(api_client, fake_db):
    token = _verified_token(api_client, fake_db, email="staff@webnest.io", role="admin")

    response = api_client.post(
        "/api/admin/auth/create-admin",
        json={"name": "X", "email": "x@webnest.io", "password": "whatever-123"},
        headers={"Authorization": f"Bearer {token}"},
    )

    assert response.status_code == 403
    assert response.json()["success"] is False


def test_module_permissions_gate_admin_routes(api_client, fake_db):
    token = _verified_token(
        api_client,
        fake_db,
        email="reader@webnest.io",
        role="admin",
        permissions=[{"module": "users", "actions": ["read"]}],
    )
    headers = {"Authorization": f"Bearer {token}"}
    user = {"_id": ObjectId(), "name": "Client", "email": "client@webnest.io", "created_at": datetime.now(timezone.utc)}
    fake_db.get_collection("users").docs.append(user)

    listed = api_client.get("/api/admin/users", headers=headers)
    deleted = api_client.delete(f"/api/admin/users/{user['_id']}", headers=headers)
    analytics = api_client.get("/api/admin/analytics/dashboard", headers=headers)

    assert listed.status_code == 200
    assert listed.json()["pagination"] == {"page": 1, "pages": 1, "total": 1}
    assert deleted.status_code == 403
    assert analytics.status_code == 403
    assert fake_db.get_collection("users").docs == [user]


def test_owner_sees_dashboard(api_client, fake_db):
    token = _verified_token(api_client, fake_db)

    response = api_client.get(
        "/api/admin/analytics/dashboard", params={"timeframe": "7d"}, headers={"Authorization": f"Bearer {token}"}
    )

    assert response.status_code == 200
    assert response.json()["data"]["timeframe"] == "7d"


def test_unknown_analytics_windows_fall_back_to_defaults(api_client, fake_db):
    token = _verified_token(api_client, fake_db)
    headers = {"Authorization": f"Bearer {token}"}

    dashboard = api_client.get("/api/admin/analytics/dashboard", params={"timeframe": "2w"}, headers=headers)
    revenue = api_client.get("/api/admin/analytics/revenue", params={"period": "weekly"}, headers=headers)

    assert dashboard.status_code == 200
    assert dashboard.json()["data"]["timeframe"] == "30d"
    assert revenue.status_code == 200
    assert revenue.json()["data"] == []


def test_admin_user_views_hide_reset_tokens(api_client, fake_db):
    token = _verified_token(api_client, fake_db)
    headers = {"Authorization": f"Bearer {token}"}
    user = {
        "_id": ObjectId(),
        "name": "Client",
        "email": "client@webnest.io",
        "password": "hash",
        "reset_password_token": "a" * 64,
        "reset_password_expires": datetime.now(timezone.utc),
        "created_at": datetime.now(timezone.utc),
    }
    fake_db.get_collection("users").docs.append(user)

    listed = api_client.get("/api/admin/users", headers=headers).json()["data"][0]
    detail = api_client.get(f"/api/admin/users/{user['_id']}", headers=headers).json()["data"]["user"]

    for view in (listed, detail):
        assert view["email"] == "client@webnest.io"
        assert "reset_password_token" not in view
        assert "reset_password_expires" not in view
        assert "password" not in view
