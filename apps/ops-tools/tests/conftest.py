from __future__ import annotations

import json
from fnmatch import fnmatchcase
from typing import Any
from uuid import uuid4

import httpx
import pytest

_ADMIN_USERS_PATH = "/auth/v1/admin/users"
_REST_PREFIX = "/rest/v1/"

OPS_KEYS = (
    "NEXT_PUBLIC_SUPABASE_URL",
    "SUPABASE_SERVICE_ROLE_KEY",
    "ADMIN_EMAIL",
    "ADMIN_PASSWORD",
    "ADMIN_USER_ID",
    "OPS_HTTP_TIMEOUT_SECONDS",
    "OPS_USERS_TABLE",
    "OPS_LOG_LEVEL",
)


def _matches(row: dict[str, Any], params: httpx.QueryParams) -> bool:
    for column, expression in params.multi_items():
        if column == "select":
            continue
        operator, _, operand = expression.partition(".")
        value = row.get(column)
        if operator == "eq":
            rendered = str(value).lower() if isinstance(value, bool) else str(value)
            if rendered != operand:
                return False
        elif operator == "like":
            if not fnmatchcase(str(value), operand):
                return False
    return True


class FakeBackend:
    """In-memory stand-in for the hosted auth admin API and table REST interface."""

    def __init__(self) -> None:
        self.users: list[dict[str, Any]] = []
        self.tables: dict[str, list[dict[str, Any]]] = {}
        self.requests: list[tuple[str, str]] = []
        self.failures: dict[tuple[str, str], int] = {}

    def add_user(self, *, email: str, user_id: str | None = None, password: str = "old-password") -> dict[str, Any]:
        user = {
            "id": user_id or str(uuid4()),
            "email": email,
            "password": password,
            "email_confirmed_at": "2026-01-01T00:00:00Z",
            "user_metadata": {},
        }
        self.users.append(user)
        return user

    def fail(self, method: str, path_prefix: str, status_code: int = 500) -> None:
        self.failures[(method, path_prefix)] = status_code

    def calls(self, method: str, path_prefix: str) -> int:
        return sum(1 for m, p in self.requests if m == method and p.startswith(path_prefix))

    def client_factory(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler), timeout=5.0)

    def handler(self, request: httpx.Request) -> httpx.Response:
        method = request.method
        path = request.url.path
        self.requests.append((method, path))
        for (fail_method, prefix), status_code in self.failures.items():
            if fail_method == method and path.startswith(prefix):
                return httpx.Response(status_code=status_code, json={"message": "simulated failure"})

        body = json.loads(request.content) if request.content else None
        if path.startswith(_ADMIN_USERS_PATH):
            return self._auth(method, path, body)
        if path.startswith(_REST_PREFIX):
            return self._rest(method, path[len(_REST_PREFIX) :], request.url.params, body)
        return httpx.Response(status_code=404, json={"message": "not found"})

    def _public(self, user: dict[str, Any]) -> dict[str, Any]:
        return {key: value for key, value in user.items() if key != "password"}

    def _auth(self, method: str, path: str, body: Any) -> httpx.Response:
        if method == "GET" and path == _ADMIN_USERS_PATH:
            return httpx.Response(200, json={"users": [self._public(u) for u in self.users], "aud": "authenticated"})
        if method == "POST" and path == _ADMIN_USERS_PATH:
            user = {
                "id": str(uuid4()),
                "email": body["email"],
                "password": body["password"],
                "email_confirmed_at": "2026-01-01T00:00:00Z" if body.get("email_confirm") else None,
                "user_metadata": body.get("user_metadata", {}),
            }
            self.users.append(user)
            return httpx.Response(200, json=self._public(user))
        if method == "PUT":
            user_id = path.rsplit("/", 1)[-1]
            for user in self.users:
                if user["id"] == user_id:
                    user.update(body or {})
                    return httpx.Response(200, json=self._public(user))
            return httpx.Response(404, json={"msg": "User not found"})
        return httpx.Response(405, json={"msg": "method not allowed"})

    def _rest(self, method: str, table: str, params: httpx.QueryParams, body: Any) -> httpx.Response:
        rows = self.tables.setdefault(table, [])
        if method == "GET":
            columns = params.get("select", "*")
            matched = [row for row in rows if _matches(row, params)]
            if columns != "*":
                keys = [column.strip() for column in columns.split(",")]
                matched = [{key: row.get(key) for key in keys} for row in matched]
            return httpx.Response(200, json=matched)
        if method == "POST":
            rows.append(dict(body))
            return httpx.Response(201)
        if method == "PATCH":
            for row in rows:
                if _matches(row, params):
                    row.update(body)
            return httpx.Response(204)
        return httpx.Response(405, json={"message": "method not allowed"})


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def clean_env(monkeypatch) -> None:
    for key in OPS_KEYS:
        monkeypatch.delenv(key, raising=False)
