def register_user(client, email="user@example.com", password="password123", **extra):
    return client.post("/api/register", json={"email": email, "password": password, **extra})


def login_user(client, email="user@example.com", password="password123"):
    # FastAPI's OAuth2PasswordRequestForm expects form fields
    resp = client.post(
        "/api/login",
        data={"username": email, "password": password},
        headers={"Content-Type": "application/x-www-form-urlencoded"},
    )
    return resp


def test_register_then_login_and_me(client):
    # Register
    r = register_user(client, first_name="Ada", last_name="Lovelace")
    assert r.status_code == 201, r.text
    user = r.json()
    assert user["email"] == "user@example.com"
    assert user["role"] == "JobSeeker"
    assert user["full_name"] == "Ada Lovelace"

    # Duplicate register should 409
    r2 = register_user(client)
    assert r2.status_code == 409

    # Login
    r3 = login_user(client)
    assert r3.status_code == 200, r3.text
    token = r3.json()["access_token"]
    assert token

    # Access /me
    r4 = client.get("/api/me", headers={"Authorization": f"Bearer {token}"})
    assert r4.status_code == 200, r4.text
    me = r4.json()
    assert me["email"] == "user@example.com"
    assert me["last_login_at"] is not None


def test_recruiters_can_register_but_admins_cannot(client):
    r = register_user(client, email="rec@example.com", role="Recruiter")
    assert r.status_code == 201
    assert r.json()["role"] == "Recruiter"

    r = register_user(client, email="boss@example.com", role="Admin")
    assert r.status_code == 403
    assert r.json()["error"] == "Forbidden"


def test_wrong_password_and_missing_token_are_rejected(client):
    register_user(client)
    assert login_user(client, password="nope-nope").status_code == 401
    assert client.get("/api/me").status_code == 401
    assert client.get("/api/me", headers={"Authorization": "Bearer garbage"}).status_code == 401


def test_query_param_token_is_accepted(client, seeker):
    from jobtracker.token import create_access_token

    r = client.get("/api/me", params={"token": create_access_token(seeker.email)})
    assert r.status_code == 200
    assert r.json()["id"] == seeker.id


def test_deactivated_user_cannot_log_in(client, admin, auth_headers):
    user_id = register_user(client).json()["id"]
    token = login_user(client).json()["access_token"]

    r = client.patch(f"/api/users/{user_id}/active", json={"is_active": False}, headers=auth_headers(admin))
    assert r.status_code == 200
    assert r.json()["is_active"] is False

    assert login_user(client).status_code == 401
    assert client.get("/api/me", headers={"Authorization": f"Bearer {token}"}).status_code == 401


def test_admin_can_change_roles(client, seeker, recruiter, admin, auth_headers):
    r = client.patch(f"/api/users/{seeker.id}/role", json={"role": "Recruiter"}, headers=auth_headers(recruiter))
    assert r.status_code == 403

    r = client.patch(f"/api/users/{seeker.id}/role", json={"role": "Recruiter"}, headers=auth_headers(admin))
    assert r.status_code == 200
    assert r.json()["role"] == "Recruiter"

    r = client.patch("/api/users/9999/role", json={"role": "Recruiter"}, headers=auth_headers(admin))
    assert r.status_code == 404
