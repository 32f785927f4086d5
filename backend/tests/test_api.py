"""
HTTP Tests for the Contact Manager API

Runs the full application (lifespan included) against in-memory SQLite:
- /api/auth register, login, me
- /api/contacts CRUD, listing, trash and restore
- error shapes for 400, 401, 404, 409, 503 and 500

Run with: pytest tests/test_api.py -v
"""

from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from unittest.mock import AsyncMock

from config import Settings
from routers.contacts import get_contact_service
from server import create_app
from services.errors import ConfigurationError, TransientStorageError

PASSWORD = "S3cure!pass"


def make_settings(**overrides) -> Settings:
    values = {
        "ENVIRONMENT": "testing",
        "DATABASE_URL": "sqlite+aiosqlite://",
        "JWT_SECRET_KEY": "api-test-secret-key-with-at-least-32-chars",
        "LOG_LEVEL": "WARNING",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def app():
    return create_app(make_settings())


@pytest.fixture
def client(app):
    with TestClient(app) as client:
        yield client


def register(client, email="jane@example.com", first_name="Jane", last_name="Doe"):
    response = client.post("/api/auth/register", json={
        "email": email,
        "password": PASSWORD,
        "firstName": first_name,
        "lastName": last_name,
    })
    assert response.status_code == 200, response.text
    return response.json()


def auth_headers(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def jane(client):
    return auth_headers(register(client)["token"])


@pytest.fixture
def bob(client):
    return auth_headers(register(client, "bob@example.com", "Bob", "Smith")["token"])


def create_contact(client, headers, **fields):
    body = {"firstName": "John", "lastName": "Doe", "email": "john@example.com"}
    body.update(fields)
    return client.post("/api/contacts", json=body, headers=headers)


class TestAuthEndpoints:

    def test_register_returns_camel_case_token_response(self, client):
        data = register(client)
        assert data["succeeded"] is True
        assert data["token"]
        assert data["expiresAt"]
        assert data["userId"]
        assert data["email"] == "jane@example.com"
        assert "errors" not in data

    def test_duplicate_registration_is_400(self, client):
        register(client)
        response = client.post("/api/auth/register", json={
            "email": "JANE@example.com",
            "password": PASSWORD,
            "firstName": "Jane",
            "lastName": "Again",
        })

        assert response.status_code == 400
        assert response.json()["succeeded"] is False
        assert response.json()["errors"]

    def test_weak_password_is_validation_error(self, client):
        response = client.post("/api/auth/register", json={
            "email": "weak@example.com",
            "password": "password",
            "firstName": "Weak",
            "lastName": "Password",
        })

        assert response.status_code == 400
        body = response.json()
        assert body["succeeded"] is False
        assert body["message"] == "Validation failed"
        assert any("Password must contain" in error for error in body["errors"])

    def test_login_and_me(self, client):
        registered = register(client)

        response = client.post("/api/auth/login", json={"email": "Jane@Example.com", "password": PASSWORD})
        assert response.status_code == 200
        token = response.json()["token"]

        me = client.get("/api/auth/me", headers=auth_headers(token))
        assert me.status_code == 200
        assert me.json() == {"userId": registered["userId"], "email": "jane@example.com"}

    def test_bad_login_is_401_with_generic_message(self, client):
        register(client)

        unknown = client.post("/api/auth/login", json={"email": "nobody@example.com", "password": PASSWORD})
        wrong = client.post("/api/auth/login", json={"email": "jane@example.com", "password": "Wrong!pass1"})

        assert unknown.status_code == wrong.status_code == 401
        assert unknown.json() == wrong.json()
        assert unknown.json()["errors"] == ["Invalid email or password"]


class TestAuthenticationRequired:

    def test_missing_token_is_401(self, client):
        response = client.get("/api/contacts")
        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Bearer"

    def test_garbage_token_is_401(self, client):
        response = client.get("/api/contacts", headers=auth_headers("not.a.token"))
        assert response.status_code == 401


class TestContactEndpoints:

    def test_create_returns_201_with_location_and_no_owner(self, client, jane):
        response = create_contact(client, jane, phoneNumber="555-0100", birthDate="1990-05-01")

        assert response.status_code == 201
        body = response.json()
        assert body["firstName"] == "John"
        assert body["birthDate"] == "1990-05-01"
        assert "ownerId" not in body
        assert "isDeleted" not in body
        assert response.headers["Location"].endswith(f"/api/contacts/{body['id']}")

        fetched = client.get(f"/api/contacts/{body['id']}", headers=jane)
        assert fetched.status_code == 200
        assert fetched.json()["email"] == "john@example.com"

    def test_future_birth_date_rejected_and_nothing_stored(self, client, jane):
        tomorrow = (datetime.now(timezone.utc).date() + timedelta(days=1)).isoformat()

        response = create_contact(client, jane, birthDate=tomorrow)

        assert response.status_code == 400
        assert any("Birth date cannot be in the future" in e for e in response.json()["errors"])
        assert client.get("/api/contacts", headers=jane).json()["totalCount"] == 0

    def test_invalid_phone_rejected(self, client, jane):
        response = create_contact(client, jane, phoneNumber="call me maybe")
        assert response.status_code == 400

    def test_validation_failure_body_uses_error_response_shape(self, client, jane):
        response = create_contact(client, jane, email="not-an-email")

        assert response.status_code == 400
        body = response.json()
        assert set(body) == {"succeeded", "message", "errors"}
        assert body["succeeded"] is False
        assert body["message"] == "Validation failed"
        assert body["errors"]

    def test_duplicate_email_is_409(self, client, jane):
        assert create_contact(client, jane).status_code == 201
        response = create_contact(client, jane, firstName="Other", email="JOHN@example.com")
        assert response.status_code == 409

    def test_cross_tenant_access_is_404(self, client, jane, bob):
        contact_id = create_contact(client, jane).json()["id"]

        get = client.get(f"/api/contacts/{contact_id}", headers=bob)
        put = client.put(
            f"/api/contacts/{contact_id}",
            json={"firstName": "Hacked", "lastName": "Doe", "email": "h@example.com"},
            headers=bob,
        )
        delete = client.delete(f"/api/contacts/{contact_id}", headers=bob)

        for response in (get, put, delete):
            assert response.status_code == 404
            assert response.json() == {"detail": "Contact not found"}

        assert client.get(f"/api/contacts/{contact_id}", headers=jane).json()["firstName"] == "John"
        assert client.get("/api/contacts", headers=bob).json()["totalCount"] == 0

    def test_update(self, client, jane):
        contact_id = create_contact(client, jane).json()["id"]

        response = client.put(
            f"/api/contacts/{contact_id}",
            json={"firstName": "Johnny", "lastName": "Doe", "email": "johnny@example.com", "notes": "met at conf"},
            headers=jane,
        )

        assert response.status_code == 200
        assert response.json()["firstName"] == "Johnny"
        assert response.json()["notes"] == "met at conf"
        assert response.json()["updatedAt"] is not None

    def test_listing_paginates_sorts_and_searches(self, client, jane):
        for first_name, last_name in [("John", "Wilson"), ("Johnny", "Adams"), ("Mary", "Brown")]:
            create_contact(client, jane, firstName=first_name, lastName=last_name,
                           email=f"{first_name}.{last_name}@example.com".lower())

        sorted_page = client.get("/api/contacts", params={"sortBy": "name", "pageSize": 2}, headers=jane).json()
        assert [c["lastName"] for c in sorted_page["items"]] == ["Adams", "Brown"]
        assert sorted_page["totalCount"] == 3
        assert sorted_page["totalPages"] == 2
        assert sorted_page["hasNextPage"] is True
        assert sorted_page["hasPreviousPage"] is False

        descending = client.get("/api/contacts", params={"sortDescending": "true"}, headers=jane).json()
        assert [c["lastName"] for c in descending["items"]] == ["Wilson", "Brown", "Adams"]

        search = client.get("/api/contacts", params={"search": "john"}, headers=jane).json()
        assert sorted(c["firstName"] for c in search["items"]) == ["John", "Johnny"]

    def test_out_of_range_paging_is_clamped(self, client, jane):
        create_contact(client, jane)

        page = client.get("/api/contacts", params={"page": 0, "pageSize": 500}, headers=jane).json()

        assert page["page"] == 1
        assert page["pageSize"] == 100

    def test_delete_trash_and_restore(self, client, jane):
        contact_id = create_contact(client, jane).json()["id"]

        assert client.delete(f"/api/contacts/{contact_id}", headers=jane).status_code == 204
        assert client.get(f"/api/contacts/{contact_id}", headers=jane).status_code == 404
        assert client.delete(f"/api/contacts/{contact_id}", headers=jane).status_code == 404

        trash = client.get("/api/contacts/deleted", headers=jane).json()
        assert trash["totalCount"] == 1
        assert trash["items"][0]["isDeleted"] is True
        assert trash["items"][0]["deletedAt"] is not None

        restored = client.post(f"/api/contacts/{contact_id}/restore", headers=jane)
        assert restored.status_code == 200
        assert restored.json()["isDeleted"] is False
        assert client.get(f"/api/contacts/{contact_id}", headers=jane).status_code == 200

    def test_restore_blocked_by_duplicate_is_409(self, client, jane):
        contact_id = create_contact(client, jane).json()["id"]
        client.delete(f"/api/contacts/{contact_id}", headers=jane)
        assert create_contact(client, jane, firstName="Replacement").status_code == 201

        response = client.post(f"/api/contacts/{contact_id}/restore", headers=jane)

        assert response.status_code == 409


class TestErrorResponses:

    def test_transient_storage_error_is_503_with_correlation_id(self, app, client, jane):
        stub = AsyncMock()
        stub.list_contacts = AsyncMock(side_effect=TransientStorageError("contacts.list", "timed out"))
        app.dependency_overrides[get_contact_service] = lambda: stub

        response = client.get("/api/contacts", headers={**jane, "X-Request-ID": "req-123"})

        assert response.status_code == 503
        assert response.headers["Retry-After"]
        assert response.json()["correlationId"] == "req-123"
        assert response.headers["X-Request-ID"] == "req-123"

    def test_unexpected_error_is_500_without_internals(self, app, jane):
        stub = AsyncMock()
        stub.list_contacts = AsyncMock(side_effect=RuntimeError("connection string with password"))
        app.dependency_overrides[get_contact_service] = lambda: stub

        with TestClient(app, raise_server_exceptions=False) as client:
            response = client.get("/api/contacts", headers={**jane, "X-Request-ID": "req-500"})

        assert response.status_code == 500
        assert response.json() == {"detail": "Internal server error", "correlationId": "req-500"}
        assert "password" not in response.text

    def test_request_id_generated_when_absent(self, client):
        response = client.get("/api/health/live")
        assert response.status_code == 200
        assert response.headers["X-Request-ID"]
        assert "X-Process-Time" in response.headers


class TestHealth:

    def test_health_and_readiness(self, client):
        health = client.get("/api/health")
        assert health.status_code == 200
        assert health.json()["checks"]["database"]["status"] == "connected"

        assert client.get("/api/health/ready").json()["status"] == "ready"


class TestStartup:

    @pytest.mark.asyncio
    async def test_missing_jwt_secret_aborts_startup(self):
        app = create_app(make_settings(JWT_SECRET_KEY=""))

        with pytest.raises(ConfigurationError):
            async with app.router.lifespan_context(app):
                pass
