"""Shared test helpers (plain functions, not fixtures)."""

from httpx import AsyncClient
from starlette.requests import Request

TEST_PASSWORD = "Password123!"


def make_request(
    path: str = "/api/test",
    method: str = "GET",
    path_params: dict | None = None,
    user_agent: str = "pytest-agent",
) -> Request:
    """A bare Starlette request for exercising guards without routing."""
    scope = {
        "type": "http",
        "method": method,
        "scheme": "http",
        "server": ("test", 80),
        "root_path": "",
        "path": path,
        "query_string": b"",
        "headers": [(b"user-agent", user_agent.encode())],
        "client": ("127.0.0.1", 50000),
        "path_params": path_params or {},
    }
    return Request(scope)


async def login(client: AsyncClient, email: str, password: str = TEST_PASSWORD) -> dict:
    response = await client.post("/api/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    return response.json()
