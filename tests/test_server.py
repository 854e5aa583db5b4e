"""Tests for the Starlette HTTP surface."""

from unittest.mock import AsyncMock, Mock

import pytest
from starlette.testclient import TestClient

from registry_admission.auth.service import AuthService
from registry_admission.config import GitHubOAuthConfig
from registry_admission.errors import ProviderUnavailable
from registry_admission.registry.publisher import PublishController
from registry_admission.registry.store import InMemoryRegistryStore
from registry_admission.server import admission_error_handler, create_app


class TestServer:
    """Test the publish, update and device-flow endpoints."""

    def setup_method(self) -> None:
        self.github_auth = Mock()
        self.github_auth.validate_token = AsyncMock(return_value=True)
        self.github_auth.start_flow = AsyncMock(
            return_value=(
                {
                    "verification_uri": "https://github.com/login/device",
                    "user_code": "WDJB-MJHT",
                    "expires_in": "900",
                    "interval": "5",
                },
                "handle-1",
            )
        )
        self.github_auth.check_status = AsyncMock(return_value="pending")
        self.github_auth.access_token = Mock(return_value="gho_token")

        self.store = InMemoryRegistryStore()
        auth_service = AuthService(
            GitHubOAuthConfig(client_id="client-123"), github_auth=self.github_auth
        )
        self.client = TestClient(
            create_app(auth_service, PublishController(self.store))
        )

    def test_health(self) -> None:
        response = self.client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert response.json()["uptime_seconds"] >= 0

    def test_publish_open_namespace(self) -> None:
        response = self.client.post(
            "/v0/publish",
            json={
                "name": "com.example/tool",
                "version": "1.0.0",
                "description": "Example server",
                "repository_url": "https://example.com/tool",
            },
        )

        assert response.status_code == 201
        body = response.json()
        assert body["id"]
        assert body["name"] == "com.example/tool"
        assert body["status"] == "active"
        assert self.store.size() == 1

    def test_publish_open_namespace_with_token(self) -> None:
        response = self.client.post(
            "/v0/publish",
            json={"name": "com.example/tool", "version": "1.0.0"},
            headers={"Authorization": "Bearer abc123"},
        )

        assert response.status_code == 400
        assert response.json()["error"] == "invalid_credential_use"

    def test_publish_github_namespace_without_token(self) -> None:
        response = self.client.post(
            "/v0/publish", json={"name": "io.github.acme/tool", "version": "1.0.0"}
        )

        assert response.status_code == 401
        assert response.json()["error"] == "authentication_required"
        self.github_auth.validate_token.assert_not_called()

    def test_publish_github_namespace_invalid_token(self) -> None:
        self.github_auth.validate_token = AsyncMock(return_value=False)

        response = self.client.post(
            "/v0/publish",
            json={"name": "io.github.acme/tool", "version": "1.0.0"},
            headers={"Authorization": "Bearer gho_token"},
        )

        assert response.status_code == 401
        assert response.json()["error"] == "invalid_credentials"
        assert self.store.size() == 0

    def test_publish_github_namespace_valid_token(self) -> None:
        response = self.client.post(
            "/v0/publish",
            json={"name": "io.github.acme/tool", "version": "1.0.0"},
            headers={"Authorization": "Bearer gho_token"},
        )

        assert response.status_code == 201
        self.github_auth.validate_token.assert_awaited_once_with(
            "gho_token", "io.github.acme/tool"
        )

    def test_publish_provider_unavailable(self) -> None:
        self.github_auth.validate_token = AsyncMock(
            side_effect=ProviderUnavailable("GitHub API request failed")
        )

        response = self.client.post(
            "/v0/publish",
            json={"name": "io.github.acme/tool", "version": "1.0.0"},
            headers={"Authorization": "gho_token"},
        )

        assert response.status_code == 502
        assert response.json()["error"] == "provider_unavailable"

    def test_publish_missing_fields(self) -> None:
        response = self.client.post("/v0/publish", json={"name": "com.example/tool"})

        assert response.status_code == 400
        assert response.json() == {
            "error": "invalid_input",
            "detail": "Version is required",
        }

    def test_publish_invalid_json(self) -> None:
        response = self.client.post(
            "/v0/publish",
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert response.json()["error"] == "invalid_input"

    def test_publish_non_string_field(self) -> None:
        response = self.client.post(
            "/v0/publish", json={"name": "com.example/tool", "version": 1}
        )

        assert response.status_code == 400

    def test_publish_duplicate_and_regression(self) -> None:
        payload = {"name": "com.example/tool", "version": "1.0.0"}
        assert self.client.post("/v0/publish", json=payload).status_code == 201

        duplicate = self.client.post("/v0/publish", json=payload)
        assert duplicate.status_code == 409
        assert duplicate.json()["error"] == "duplicate_version"

        regression = self.client.post(
            "/v0/publish", json={"name": "com.example/tool", "version": "0.9.0"}
        )
        assert regression.status_code == 400
        assert regression.json()["error"] == "version_regression"

    def test_update(self) -> None:
        created = self.client.post(
            "/v0/publish", json={"name": "com.example/tool", "version": "1.0.0"}
        ).json()

        response = self.client.put(
            f"/v0/servers/{created['id']}",
            json={"name": "com.example/tool", "version": "1.0.0", "description": "new"},
        )

        assert response.status_code == 200
        assert response.json()["id"] == created["id"]
        assert response.json()["description"] == "new"

    def test_update_missing_server(self) -> None:
        response = self.client.put(
            "/v0/servers/00000000-0000-4000-8000-000000000000",
            json={"name": "com.example/tool", "version": "1.0.0"},
        )

        assert response.status_code == 404
        assert response.json()["error"] == "not_found"

    def test_update_invalid_server_id(self) -> None:
        response = self.client.put(
            "/v0/servers/does-not-exist",
            json={"name": "io.github.acme/tool", "version": "1.0.0"},
        )

        assert response.status_code == 400
        assert response.json() == {
            "error": "invalid_input",
            "detail": "Invalid server ID format",
        }
        self.github_auth.validate_token.assert_not_awaited()

    def test_get_server(self) -> None:
        created = self.client.post(
            "/v0/publish", json={"name": "com.example/tool", "version": "1.0.0"}
        ).json()

        response = self.client.get(f"/v0/servers/{created['id']}")

        assert response.status_code == 200
        assert response.json() == created

    def test_get_missing_server(self) -> None:
        response = self.client.get("/v0/servers/00000000-0000-4000-8000-000000000000")

        assert response.status_code == 404
        assert response.json()["error"] == "not_found"

    def test_get_server_invalid_id(self) -> None:
        response = self.client.get("/v0/servers/not-a-uuid")

        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid server ID format"

    def test_start_device_auth(self) -> None:
        response = self.client.post("/v0/auth/device", json={"scope": "read:user"})

        assert response.status_code == 200
        body = response.json()
        assert body["handle"] == "handle-1"
        assert body["instructions"]["user_code"] == "WDJB-MJHT"
        self.github_auth.start_flow.assert_awaited_once_with("read:user")

    def test_start_device_auth_without_body(self) -> None:
        response = self.client.post("/v0/auth/device")

        assert response.status_code == 200
        self.github_auth.start_flow.assert_awaited_once_with(None)

    def test_start_device_auth_unsupported_method(self) -> None:
        response = self.client.post("/v0/auth/device", json={"method": "none"})

        assert response.status_code == 400
        assert response.json()["error"] == "unsupported_method"

    def test_start_device_auth_unknown_method(self) -> None:
        response = self.client.post("/v0/auth/device", json={"method": "saml"})

        assert response.status_code == 400
        assert response.json()["error"] == "invalid_input"

    def test_check_device_auth_pending(self) -> None:
        response = self.client.get("/v0/auth/device/handle-1")

        assert response.status_code == 200
        assert response.json() == {"status": "pending"}

    def test_check_device_auth_authorized(self) -> None:
        self.github_auth.check_status = AsyncMock(return_value="authorized")

        response = self.client.get("/v0/auth/device/handle-1")

        assert response.json() == {"status": "authorized", "access_token": "gho_token"}


@pytest.mark.asyncio
async def test_error_handler_reraises_unrelated_exceptions() -> None:
    with pytest.raises(RuntimeError):
        await admission_error_handler(Mock(), RuntimeError("boom"))
