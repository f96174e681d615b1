import inspect
from contextlib import contextmanager

import pytest
from fastapi.routing import APIRoute
from fastapi.testclient import TestClient

from authflow.core.app_factory import create_application
from authflow.core.config import Settings

from conftest import EMAIL, JWT_SECRET, PASSWORD


@pytest.fixture
def configure_env(monkeypatch, tmp_path):
    def _configure(**overrides) -> Settings:
        env = {
            "APP_ENV": "test",
            "JWT_SECRET": JWT_SECRET,
            "DATABASE_PATH": str(tmp_path / "api.db"),
            "BCRYPT_ROUNDS": "4",
            "THROTTLE_ENABLED": "false",
        }
        env.update(overrides)
        for key, value in env.items():
            monkeypatch.setenv(key, value)
        return Settings()

    return _configure


@pytest.fixture
def open_client(configure_env, mailer, clock):
    @contextmanager
    def _open(**overrides):
        app = create_application(configure_env(**overrides), clock=clock, mailer=mailer)
        with TestClient(app) as client:
            yield client

    return _open


@pytest.fixture
def client(open_client):
    with open_client() as test_client:
        yield test_client


def _signup_and_verify(client, mailer) -> None:
    assert client.post("/api/auth/signup", json={"email": EMAIL, "password": PASSWORD, "name": "Alice"}).status_code == 201
    response = client.post(
        "/api/auth/verify-email",
        json={"email": EMAIL, "code": mailer.last_verification_code()},
    )
    assert response.status_code == 200


def _signin(client) -> dict:
    response = client.post("/api/auth/signin", json={"email": EMAIL, "password": PASSWORD})
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


def test_health_reports_environment(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"ok": True, "environment": "test", "mailer_enabled": True}


def test_signup_verify_signin_and_profile(client, mailer):
    signup = client.post("/api/auth/signup", json={"email": "Alice@Example.com", "password": PASSWORD})
    assert signup.status_code == 201
    body = signup.json()
    assert body["email"] == EMAIL
    assert body["dev_verification_code"] is None

    unverified = client.post("/api/auth/signin", json={"email": EMAIL, "password": PASSWORD})
    assert unverified.status_code == 403
    assert unverified.json()["error"]["code"] == "FORBIDDEN"

    client.post("/api/auth/verify-email", json={"email": EMAIL, "code": mailer.last_verification_code()})
    signin = client.post("/api/auth/signin", json={"email": EMAIL, "password": PASSWORD})
    assert signin.status_code == 200
    payload = signin.json()
    assert payload["token_type"] == "bearer"
    assert payload["account"]["email_verified"] is True
    assert "password_hash" not in payload["account"]
    assert "failed_login_count" not in payload["account"]

    me = client.get("/api/me", headers={"Authorization": f"Bearer {payload['access_token']}"})
    assert me.status_code == 200
    assert me.json()["account"]["email"] == EMAIL


def test_duplicate_signup_returns_conflict(client):
    client.post("/api/auth/signup", json={"email": EMAIL, "password": PASSWORD})

    response = client.post("/api/auth/signup", json={"email": EMAIL.upper(), "password": PASSWORD})

    assert response.status_code == 409
    assert response.json() == {
        "success": False,
        "error": {"code": "CONFLICT", "message": "An account with this email already exists"},
    }


def test_weak_password_is_validation_error(client):
    response = client.post("/api/auth/signup", json={"email": EMAIL, "password": "weakpass"})

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"


def test_malformed_body_is_validation_error_with_details(client):
    response = client.post("/api/auth/signup", json={"email": "not-an-email"})

    assert response.status_code == 400
    error = response.json()["error"]
    assert error["message"] == "Invalid input format"
    assert error["details"]


def test_wrong_verification_code_is_bad_request(client, mailer):
    client.post("/api/auth/signup", json={"email": EMAIL, "password": PASSWORD})
    code = mailer.last_verification_code()
    wrong = "000000" if code != "000000" else "111111"

    response = client.post("/api/auth/verify-email", json={"email": EMAIL, "code": wrong})

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "AUTHENTICATION_ERROR"


def test_resend_unknown_and_verified_are_indistinguishable(client, mailer):
    _signup_and_verify(client, mailer)

    unknown = client.post("/api/auth/resend-verification", json={"email": "nobody@example.com"})
    verified = client.post("/api/auth/resend-verification", json={"email": EMAIL})

    assert unknown.status_code == verified.status_code == 400
    assert unknown.json() == verified.json()


def test_forgot_password_is_byte_identical(client, mailer):
    _signup_and_verify(client, mailer)

    known = client.post("/api/auth/forgot-password", json={"email": EMAIL})
    unknown = client.post("/api/auth/forgot-password", json={"email": "nobody@example.com"})

    assert known.status_code == unknown.status_code == 200
    assert known.content == unknown.content


def test_reset_password_over_http(client, mailer):
    _signup_and_verify(client, mailer)
    client.post("/api/auth/forgot-password", json={"email": EMAIL})
    code = mailer.last_reset_code()

    reset = client.post(
        "/api/auth/reset-password",
        json={"email": EMAIL, "code": code, "new_password": "Changed#456"},
    )
    replay = client.post(
        "/api/auth/reset-password",
        json={"email": EMAIL, "code": code, "new_password": "Another#789"},
    )

    assert reset.status_code == 200
    assert replay.status_code == 400
    assert client.post("/api/auth/signin", json={"email": EMAIL, "password": "Changed#456"}).status_code == 200


def test_lockout_over_http(client, mailer):
    _signup_and_verify(client, mailer)

    for _ in range(5):
        response = client.post("/api/auth/signin", json={"email": EMAIL, "password": "Wrong#1234"})
        assert response.status_code == 401

    locked = client.post("/api/auth/signin", json={"email": EMAIL, "password": PASSWORD})
    assert locked.status_code == 403


def test_protected_routes_require_valid_token(client):
    assert client.get("/api/me").status_code == 401
    response = client.get("/api/me", headers={"Authorization": "Bearer garbage"})
    assert response.status_code == 401
    assert response.json()["error"]["code"] == "AUTHENTICATION_ERROR"


def test_update_profile_and_stats(client, mailer):
    _signup_and_verify(client, mailer)
    headers = _signin(client)

    updated = client.put(
        "/api/me",
        json={"name": "Alice A.", "profile": {"first_name": "Alice", "last_name": "Smith"}},
        headers=headers,
    )
    assert updated.status_code == 200
    account = updated.json()["account"]
    assert account["display_name"] == "Alice A."
    assert account["full_name"] == "Alice Smith"

    unchanged = client.put("/api/me", json={}, headers=headers)
    assert unchanged.json()["account"]["display_name"] == "Alice A."

    stats = client.get("/api/account/stats", headers=headers)
    assert stats.status_code == 200
    assert stats.json()["stats"]["profile_completeness"] == 100


def test_deactivate_revokes_access(client, mailer):
    _signup_and_verify(client, mailer)
    headers = _signin(client)

    assert client.delete("/api/me", headers=headers).status_code == 200

    assert client.get("/api/me", headers=headers).status_code == 403
    assert client.post("/api/auth/signin", json={"email": EMAIL, "password": PASSWORD}).status_code == 401


def test_logout(client):
    response = client.post("/api/auth/logout")

    assert response.status_code == 200
    assert response.json() == {"message": "Logged out successfully"}


def test_delivery_failure_exposes_code_outside_production(client, mailer):
    mailer.fail = True

    response = client.post("/api/auth/signup", json={"email": EMAIL, "password": PASSWORD})

    assert response.status_code == 201
    code = response.json()["dev_verification_code"]
    assert code
    assert client.post("/api/auth/verify-email", json={"email": EMAIL, "code": code}).status_code == 200


def test_development_helpers(client):
    client.post("/api/auth/signup", json={"email": EMAIL, "password": PASSWORD})

    assert client.post("/api/auth/dev/verify-email", json={"email": EMAIL}).status_code == 200
    assert client.post("/api/auth/signin", json={"email": EMAIL, "password": PASSWORD}).status_code == 200


def test_production_hides_codes_and_dev_routes(open_client, mailer):
    mailer.fail = True
    with open_client(APP_ENV="production") as client:
        signup = client.post("/api/auth/signup", json={"email": EMAIL, "password": PASSWORD})
        assert signup.status_code == 500
        assert signup.json()["error"]["message"] == (
            "Account created but failed to send verification email. Please contact support."
        )
        assert client.post("/api/auth/dev/verify-email", json={"email": EMAIL}).status_code == 404

        invalid = client.post("/api/auth/signup", json={"email": "bad"})
        assert "details" not in invalid.json()["error"]


def test_throttle_returns_429_with_retry_after(open_client):
    with open_client(THROTTLE_ENABLED="true") as client:
        statuses = [
            client.post("/api/auth/forgot-password", json={"email": EMAIL}).status_code
            for _ in range(6)
        ]
        assert statuses[:5] == [200] * 5
        assert statuses[5] == 429

        limited = client.post("/api/auth/forgot-password", json={"email": EMAIL})
        assert limited.json()["error"]["code"] == "RATE_LIMITED"
        assert int(limited.headers["Retry-After"]) > 0


def test_detailed_health_requires_authentication(client, mailer):
    assert client.get("/api/health/detailed").status_code == 401

    _signup_and_verify(client, mailer)
    response = client.get("/api/health/detailed", headers=_signin(client))

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["account"]["email"] == EMAIL
    assert body["services"]["database"]["status"] == "healthy"
    assert body["services"]["email"] == {"enabled": True}
    assert body["environment"] == "test"
    assert body["uptime_seconds"] >= 0


def test_api_handlers_run_in_threadpool(client):
    endpoints = [
        route.endpoint
        for route in client.app.routes
        if isinstance(route, APIRoute) and route.path.startswith("/api/")
    ]

    assert endpoints
    assert not any(inspect.iscoroutinefunction(endpoint) for endpoint in endpoints)
