"""
Integration tests for /api/admin/* endpoints.
"""

import uuid
from datetime import timedelta

import pytest
from httpx import AsyncClient

from codecollab.core.config import settings
from codecollab.models.base import utcnow
from codecollab.models.user import User, UserRole
from tests.helpers import TEST_PASSWORD, login


async def auth_headers(client: AsyncClient, user: User) -> dict[str, str]:
    body = await login(client, user.email)
    client.cookies.clear()
    return {"Authorization": f"Bearer {body['tokens']['access_token']}"}


@pytest.mark.integration
class TestAdminGate:

    @pytest.mark.asyncio
    async def test_regular_user_denied(self, client: AsyncClient, regular_user: User, security_events):
        headers = await auth_headers(client, regular_user)

        response = await client.get("/api/admin/users", headers=headers)

        assert response.status_code == 403
        assert response.json()["detail"] == {
            "message": "Insufficient role",
            "required": ["admin"],
            "current": "user",
        }
        assert security_events.count("RBAC_ROLE_DENIED") == 1

    @pytest.mark.asyncio
    async def test_moderator_denied(self, client: AsyncClient, moderator_user: User):
        headers = await auth_headers(client, moderator_user)

        response = await client.get("/api/admin/users", headers=headers)

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_anonymous_is_401(self, client: AsyncClient):
        response = await client.get("/api/admin/users")

        assert response.status_code == 401


@pytest.mark.integration
class TestUserManagement:

    @pytest.mark.asyncio
    async def test_list_users(self, client: AsyncClient, admin_user: User, regular_user: User, moderator_user: User):
        headers = await auth_headers(client, admin_user)

        response = await client.get("/api/admin/users", headers=headers)

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 3
        assert {u["email"] for u in data["users"]} == {
            admin_user.email, regular_user.email, moderator_user.email,
        }

        response = await client.get("/api/admin/users", params={"role": "moderator"}, headers=headers)
        assert [u["id"] for u in response.json()["users"]] == [str(moderator_user.id)]

    @pytest.mark.asyncio
    async def test_invalid_status_filter(self, client: AsyncClient, admin_user: User):
        headers = await auth_headers(client, admin_user)

        response = await client.get("/api/admin/users", params={"status": "banned"}, headers=headers)

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_get_user(self, client: AsyncClient, admin_user: User, regular_user: User):
        headers = await auth_headers(client, admin_user)

        response = await client.get(f"/api/admin/users/{regular_user.id}", headers=headers)
        assert response.status_code == 200
        assert response.json()["username"] == regular_user.username

        response = await client.get(f"/api/admin/users/{uuid.uuid4()}", headers=headers)
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_promote_to_moderator(self, client: AsyncClient, admin_user: User, regular_user: User, security_events):
        headers = await auth_headers(client, admin_user)

        response = await client.put(
            f"/api/admin/users/{regular_user.id}/role",
            json={"role": "moderator"},
            headers=headers,
        )

        assert response.status_code == 200
        data = response.json()
        assert data["role"] == "moderator"
        assert "comments.moderate" in data["permissions"]
        assert security_events.count("USER_ROLE_CHANGED") == 1

    @pytest.mark.asyncio
    async def test_unknown_permission_rejected(self, client: AsyncClient, admin_user: User, regular_user: User):
        headers = await auth_headers(client, admin_user)

        response = await client.put(
            f"/api/admin/users/{regular_user.id}/role",
            json={"role": "user", "permissions": ["projects.read", "bogus.code"]},
            headers=headers,
        )

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_admin_cannot_demote_self(self, client: AsyncClient, admin_user: User):
        headers = await auth_headers(client, admin_user)

        response = await client.put(
            f"/api/admin/users/{admin_user.id}/role",
            json={"role": "user"},
            headers=headers,
        )

        assert response.status_code == 400
        assert admin_user.role == UserRole.ADMIN

    @pytest.mark.asyncio
    async def test_suspension_takes_effect_immediately(self, client: AsyncClient, admin_user: User, regular_user: User):
        target_headers = await auth_headers(client, regular_user)
        headers = await auth_headers(client, admin_user)

        response = await client.put(
            f"/api/admin/users/{regular_user.id}/suspension",
            json={"suspend": True, "reason": "spam", "duration_hours": 48},
            headers=headers,
        )

        assert response.status_code == 200
        assert response.json()["is_suspended"] is True
        assert (await client.get("/api/auth/me", headers=target_headers)).status_code == 401

        response = await client.post(
            "/api/auth/login",
            json={"email": regular_user.email, "password": TEST_PASSWORD},
        )
        assert response.status_code == 403
        assert response.json()["detail"]["message"] == "Account suspended"
        assert response.json()["detail"]["reason"] == "spam"

    @pytest.mark.asyncio
    async def test_lift_suspension(self, client: AsyncClient, admin_user: User, make_user):
        target = await make_user(is_suspended=True, suspension_reason="spam")
        headers = await auth_headers(client, admin_user)

        response = await client.put(
            f"/api/admin/users/{target.id}/suspension",
            json={"suspend": False},
            headers=headers,
        )

        assert response.status_code == 200
        await login(client, target.email)

    @pytest.mark.asyncio
    async def test_deactivate(self, client: AsyncClient, admin_user: User, regular_user: User):
        headers = await auth_headers(client, admin_user)

        response = await client.put(
            f"/api/admin/users/{regular_user.id}/status",
            json={"is_active": False},
            headers=headers,
        )

        assert response.status_code == 200
        assert response.json()["is_active"] is False

        response = await client.post(
            "/api/auth/login",
            json={"email": regular_user.email, "password": TEST_PASSWORD},
        )
        assert response.status_code == 403
        assert response.json()["detail"] == {"message": "Account deactivated"}

    @pytest.mark.asyncio
    async def test_suspension_duration_is_bounded(self, client: AsyncClient, admin_user: User, regular_user: User):
        headers = await auth_headers(client, admin_user)

        response = await client.put(
            f"/api/admin/users/{regular_user.id}/suspension",
            json={"suspend": True, "reason": "spam", "duration_hours": 10**9},
            headers=headers,
        )

        assert response.status_code == 422
        assert regular_user.is_suspended is False

    @pytest.mark.asyncio
    async def test_delete_deactivates_by_default(self, client: AsyncClient, admin_user: User, regular_user: User):
        target_headers = await auth_headers(client, regular_user)
        headers = await auth_headers(client, admin_user)

        response = await client.delete(f"/api/admin/users/{regular_user.id}", headers=headers)

        assert response.status_code == 200
        assert response.json() == {"detail": "User deactivated"}
        assert (await client.get("/api/auth/me", headers=target_headers)).status_code == 401
        response = await client.get(f"/api/admin/users/{regular_user.id}", headers=headers)
        assert response.json()["is_active"] is False

    @pytest.mark.asyncio
    async def test_permanent_delete(self, client: AsyncClient, admin_user: User, regular_user: User, security_events):
        target_headers = await auth_headers(client, regular_user)
        headers = await auth_headers(client, admin_user)

        response = await client.delete(
            f"/api/admin/users/{regular_user.id}",
            params={"permanent": "true"},
            headers=headers,
        )

        assert response.status_code == 200
        assert response.json() == {"detail": "User deleted"}
        assert (await client.get(f"/api/admin/users/{regular_user.id}", headers=headers)).status_code == 404
        assert (await client.get("/api/auth/me", headers=target_headers)).status_code == 401
        assert security_events.count("USER_DELETED") == 1

    @pytest.mark.asyncio
    async def test_admin_cannot_delete_self(self, client: AsyncClient, admin_user: User):
        headers = await auth_headers(client, admin_user)

        response = await client.delete(f"/api/admin/users/{admin_user.id}", headers=headers)

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_delete_needs_users_delete_permission(self, client: AsyncClient, make_user, regular_user: User):
        limited_admin = await make_user(UserRole.ADMIN, permissions=["users.read"])
        headers = await auth_headers(client, limited_admin)

        response = await client.delete(f"/api/admin/users/{regular_user.id}", headers=headers)

        assert response.status_code == 403


@pytest.mark.integration
class TestSessionAdministration:

    @pytest.mark.asyncio
    async def test_revoke_any_session(self, client: AsyncClient, admin_user: User, regular_user: User):
        target = await login(client, regular_user.email)
        client.cookies.clear()
        headers = await auth_headers(client, admin_user)

        response = await client.delete(
            f"/api/admin/sessions/{target['tokens']['session_id']}",
            headers=headers,
        )
        assert response.status_code == 200

        response = await client.get(
            "/api/auth/me",
            headers={"Authorization": f"Bearer {target['tokens']['access_token']}"},
        )
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_revoke_unknown_session(self, client: AsyncClient, admin_user: User):
        headers = await auth_headers(client, admin_user)

        response = await client.delete(f"/api/admin/sessions/{uuid.uuid4()}", headers=headers)

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_cleanup(self, client: AsyncClient, admin_user: User, regular_user: User, make_session):
        await make_session(regular_user, expires_at=utcnow() - timedelta(days=1))
        headers = await auth_headers(client, admin_user)

        response = await client.post("/api/admin/sessions/cleanup", headers=headers)

        assert response.status_code == 200
        assert response.json()["deleted"] == 1

    @pytest.mark.asyncio
    async def test_cleanup_needs_system_permission(self, client: AsyncClient, make_user, security_events):
        limited_admin = await make_user(UserRole.ADMIN, permissions=["users.read"])
        headers = await auth_headers(client, limited_admin)

        response = await client.post("/api/admin/sessions/cleanup", headers=headers)

        assert response.status_code == 403
        assert security_events.count("RBAC_PERMISSION_DENIED") == 1


@pytest.mark.integration
class TestDebugHeaders:

    @pytest.mark.asyncio
    async def test_headers_in_debug_mode(self, client: AsyncClient, admin_user: User, monkeypatch):
        headers = await auth_headers(client, admin_user)
        monkeypatch.setattr(settings, "DEBUG", True)

        response = await client.get("/api/admin/users", headers=headers)

        assert response.headers["X-User-Role"] == "admin"
        assert response.headers["X-User-ID"] == str(admin_user.id)
        assert "admin.system" in response.headers["X-User-Permissions"].split(",")

    @pytest.mark.asyncio
    async def test_no_headers_by_default(self, client: AsyncClient, admin_user: User):
        headers = await auth_headers(client, admin_user)

        response = await client.get("/api/admin/users", headers=headers)

        assert "X-User-Role" not in response.headers
