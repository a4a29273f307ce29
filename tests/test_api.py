"""
Tests for API Module.
=====================

Tests for the FastAPI routes with mocked services:
- /api/auth/register, /api/auth/login, /api/auth/me and /api/auth/change-password
- /api/chat
- Knowledge base maintenance routes
"""

from unittest.mock import Mock

import pytest
from fastapi.testclient import TestClient


@pytest.fixture
def auth_service(temp_dir):
    from dorsu_connect.auth.service import AuthService

    auth = AuthService(users_file=temp_dir / "users.json", secret="test-secret")
    auth.register("student@dorsu.edu.ph", "student1", "correct-horse")
    return auth


@pytest.fixture
def services(auth_service):
    from dorsu_connect.rag.analytics import QueryAnalytics
    from dorsu_connect.rag.cache import ResponseCache

    return {
        "auth": auth_service,
        "chat": Mock(),
        "refresh": Mock(),
        "cache": ResponseCache(ttl_seconds=60, max_entries=10, enabled=True),
        "analytics": QueryAnalytics(),
        "store": Mock(),
    }


@pytest.fixture
def client(services):
    from dorsu_connect.api.app import ServiceContainer, create_app

    return TestClient(create_app(ServiceContainer(**services)))


def test_health(client):
    """Test the liveness route."""
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"


# ─────────────────────────────────────────────────────────────────────────────
# Auth Route Tests
# ─────────────────────────────────────────────────────────────────────────────


class TestLoginRoute:
    """Tests for POST /api/auth/login."""

    def test_login(self, client):
        """Test a successful login."""
        response = client.post(
            "/api/auth/login",
            json={"email": "student@dorsu.edu.ph", "password": "correct-horse"},
        )
        body = response.json()

        assert response.status_code == 200
        assert body["success"] is True
        assert body["token"]
        assert body["user"]["email"] == "student@dorsu.edu.ph"
        assert "passwordHash" not in body["user"]
        assert "createdAt" in body["user"]

    def test_wrong_password(self, client):
        """Test invalid credentials."""
        response = client.post(
            "/api/auth/login",
            json={"email": "student@dorsu.edu.ph", "password": "nope"},
        )

        assert response.status_code == 401
        assert response.json() == {"error": "Invalid email or password"}

    def test_unknown_email(self, client):
        """Test that unknown emails look like wrong passwords."""
        response = client.post(
            "/api/auth/login",
            json={"email": "nobody@dorsu.edu.ph", "password": "correct-horse"},
        )

        assert response.status_code == 401
        assert response.json() == {"error": "Invalid email or password"}

    @pytest.mark.parametrize(
        "body",
        [{}, {"email": "student@dorsu.edu.ph"}, {"password": "correct-horse"}, {"email": "", "password": ""}],
    )
    def test_missing_fields(self, client, body):
        """Test that email and password are both required."""
        response = client.post("/api/auth/login", json=body)

        assert response.status_code == 400
        assert response.json() == {"error": "Email and password are required"}

    def test_missing_secret(self, temp_dir, auth_service, services):
        """Test that a missing JWT secret is reported as unavailable."""
        from dorsu_connect.api.app import ServiceContainer, create_app
        from dorsu_connect.auth.service import AuthService

        services["auth"] = AuthService(users_file=auth_service.users_file, secret="")
        client = TestClient(create_app(ServiceContainer(**services)))

        response = client.post(
            "/api/auth/login",
            json={"email": "student@dorsu.edu.ph", "password": "correct-horse"},
        )

        assert response.status_code == 503
        assert "JWT secret" in response.json()["error"]


class TestMeRoute:
    """Tests for GET /api/auth/me."""

    def test_me(self, client):
        """Test resolving the current user from a token."""
        token = client.post(
            "/api/auth/login",
            json={"email": "student@dorsu.edu.ph", "password": "correct-horse"},
        ).json()["token"]

        response = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 200
        assert response.json()["user"]["username"] == "student1"

    def test_no_header(self, client):
        """Test that the route requires a token."""
        response = client.get("/api/auth/me")

        assert response.status_code == 401
        assert response.json() == {"error": "No authorization header"}

    def test_bad_token(self, client):
        """Test that garbage tokens are rejected."""
        response = client.get("/api/auth/me", headers={"Authorization": "Bearer garbage"})

        assert response.status_code == 401
        assert response.json() == {"error": "Invalid token"}


def _login(client, password="correct-horse"):
    return client.post(
        "/api/auth/login",
        json={"email": "student@dorsu.edu.ph", "password": password},
    )


class TestRegisterRoute:
    """Tests for POST /api/auth/register."""

    def test_register(self, client):
        """Test that a new account gets the login response shape."""
        response = client.post(
            "/api/auth/register",
            json={"email": "Faculty@DOrSU.edu.ph", "username": "faculty1", "password": "pass-phrase"},
        )
        body = response.json()

        assert response.status_code == 200
        assert body["success"] is True
        assert body["token"]
        assert body["user"]["email"] == "faculty@dorsu.edu.ph"
        assert "passwordHash" not in body["user"]

    def test_duplicate_email(self, client):
        """Test that an existing email is a bad request."""
        response = client.post(
            "/api/auth/register",
            json={"email": "student@dorsu.edu.ph", "username": "again", "password": "pass-phrase"},
        )

        assert response.status_code == 400
        assert response.json() == {"error": "User with this email already exists"}

    def test_missing_fields(self, client):
        """Test that all fields are required."""
        response = client.post("/api/auth/register", json={"email": "new@dorsu.edu.ph"})

        assert response.status_code == 400
        assert response.json() == {"error": "Email, username and password are required"}


class TestChangePasswordRoute:
    """Tests for POST /api/auth/change-password."""

    def test_change_password(self, client):
        """Test changing the password of the logged in user."""
        token = _login(client).json()["token"]

        response = client.post(
            "/api/auth/change-password",
            json={"currentPassword": "correct-horse", "newPassword": "battery-staple"},
            headers={"Authorization": f"Bearer {token}"},
        )

        assert response.status_code == 200
        assert response.json()["success"] is True
        assert _login(client, "battery-staple").status_code == 200
        assert _login(client).status_code == 401

    def test_wrong_current_password(self, client):
        """Test that a wrong current password is unauthorized."""
        token = _login(client).json()["token"]

        response = client.post(
            "/api/auth/change-password",
            json={"currentPassword": "nope", "newPassword": "battery-staple"},
            headers={"Authorization": f"Bearer {token}"},
        )

        assert response.status_code == 401
        assert response.json() == {"error": "Current password is incorrect"}

    def test_empty_new_password(self, client):
        """Test that a missing new password is a bad request."""
        token = _login(client).json()["token"]

        response = client.post(
            "/api/auth/change-password",
            json={"currentPassword": "correct-horse"},
            headers={"Authorization": f"Bearer {token}"},
        )

        assert response.status_code == 400
        assert response.json() == {"error": "New password is required"}

    def test_requires_token(self, client):
        """Test that the route needs a bearer token."""
        response = client.post(
            "/api/auth/change-password",
            json={"currentPassword": "correct-horse", "newPassword": "battery-staple"},
        )

        assert response.status_code == 401


# ─────────────────────────────────────────────────────────────────────────────
# Chat Route Tests
# ─────────────────────────────────────────────────────────────────────────────


class TestChatRoute:
    """Tests for POST /api/chat."""

    def test_chat(self, client, services):
        """Test a chat round trip."""
        from dorsu_connect.shared.schemas import ChatResponse

        services["chat"].chat.return_value = ChatResponse(
            reply="Dr. Roy G. Ponce is the University President.",
            source="rag",
            query_type="leadership",
            sections=["leadership"],
        )

        response = client.post(
            "/api/chat",
            json={"prompt": "Who is the president?", "userType": "student", "conversationId": "c1"},
        )
        body = response.json()

        assert response.status_code == 200
        assert body["reply"] == "Dr. Roy G. Ponce is the University President."
        assert body["queryType"] == "leadership"
        request = services["chat"].chat.call_args.args[0]
        assert request.user_type == "student"
        assert request.conversation_id == "c1"

    def test_message_alias(self, client, services):
        """Test that ``message`` is accepted in place of ``prompt``."""
        from dorsu_connect.shared.schemas import ChatResponse

        services["chat"].chat.return_value = ChatResponse(reply="ok")

        response = client.post("/api/chat", json={"message": "Hello"})

        assert response.status_code == 200
        assert services["chat"].chat.call_args.args[0].text == "Hello"

    def test_empty_prompt(self, client, services):
        """Test that a prompt is required."""
        response = client.post("/api/chat", json={"prompt": "   "})

        assert response.status_code == 400
        assert response.json() == {"error": "prompt required"}
        services["chat"].chat.assert_not_called()

    def test_store_unavailable(self, client, services):
        """Test the response when the knowledge store is down."""
        from dorsu_connect.shared.errors import StoreError

        services["chat"].chat.side_effect = StoreError("connection refused")

        response = client.post("/api/chat", json={"prompt": "Who is the president?"})

        assert response.status_code == 503
        assert response.json() == {"error": "Knowledge base not available"}


# ─────────────────────────────────────────────────────────────────────────────
# Knowledge Route Tests
# ─────────────────────────────────────────────────────────────────────────────


class TestKnowledgeRoutes:
    """Tests for the maintenance routes."""

    def test_refresh(self, client, services):
        """Test a successful manual refresh."""
        from dorsu_connect.shared.schemas import RefreshResult

        services["refresh"].refresh_from_data_file.return_value = RefreshResult(
            success=True,
            message="Knowledge base refreshed successfully",
            new_chunks_added=8,
            total_chunks_generated=8,
            total_chunks=8,
        )

        response = client.post("/api/refresh-knowledge")
        body = response.json()

        assert response.status_code == 200
        assert body["message"] == "Knowledge base refreshed and cache cleared successfully"
        assert body["data"]["totalChunksGenerated"] == 8

    def test_refresh_failure(self, client, services):
        """Test the failure response."""
        from dorsu_connect.shared.schemas import RefreshResult

        services["refresh"].refresh_from_data_file.return_value = RefreshResult(
            success=False, message="Refresh already in progress"
        )

        response = client.post("/api/refresh-knowledge")

        assert response.status_code == 500
        assert response.json() == {"success": False, "error": "Refresh already in progress"}

    def test_clear_cache(self, client, services):
        """Test clearing cached answers."""
        services["cache"].set("question", "answer")

        response = client.post("/api/clear-cache")

        assert response.status_code == 200
        assert response.json()["cleared"] == 1
        assert len(services["cache"]) == 0

    def test_refresh_status(self, client, services):
        """Test the status route."""
        from dorsu_connect.shared.schemas import RefreshStatus

        services["refresh"].get_status.return_value = RefreshStatus(auto_refresh=True)

        response = client.get("/api/refresh-status")

        assert response.status_code == 200
        assert response.json()["status"]["autoRefresh"] is True

    def test_stats(self, client, services):
        """Test the stats route."""
        services["store"].get_stats.return_value = {"total_chunks": 8}
        services["analytics"].log_query("who is the president?", "leadership")

        body = client.get("/api/knowledge/stats").json()

        assert body["store"] == {"total_chunks": 8}
        assert body["cache"]["entries"] == 0
        assert body["queries"]["total_queries"] == 1

    def test_stats_store_down(self, client, services):
        """Test the stats route when the store fails."""
        from dorsu_connect.shared.errors import StoreError

        services["store"].get_stats.side_effect = StoreError("down")

        response = client.get("/api/knowledge/stats")

        assert response.status_code == 503

    def test_top_queries(self, client, services):
        """Test the top queries route."""
        for _ in range(2):
            services["analytics"].log_query("When is enrollment?", "schedule")
        services["analytics"].log_query("who is the president?", "leadership")

        body = client.get("/api/top-queries", params={"limit": 1}).json()

        assert body["queries"] == [{"query": "when is enrollment?", "count": 2}]

    def test_top_queries_limit_validated(self, client):
        """Test the limit bounds."""
        assert client.get("/api/top-queries", params={"limit": 0}).status_code == 422
