from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import httpx

from ops_tools.errors import RemoteCallError


@dataclass(frozen=True)
class AuthAccount:
    id: str
    email: str | None
    email_confirmed: bool
    user_metadata: dict[str, Any] = field(default_factory=dict)


def _parse_account(operation: str, payload: Any) -> AuthAccount:
    if not isinstance(payload, dict):
        raise RemoteCallError(operation, "account payload is not an object")
    account_id = str(payload.get("id", "")).strip()
    if not account_id:
        raise RemoteCallError(operation, "account payload missing field 'id'")
    email = payload.get("email")
    metadata = payload.get("user_metadata")
    return AuthAccount(
        id=account_id,
        email=str(email) if email is not None else None,
        email_confirmed=bool(payload.get("email_confirmed_at") or payload.get("confirmed_at")),
        user_metadata=metadata if isinstance(metadata, dict) else {},
    )


class AuthAdminClient:
    """Privileged client for the hosted auth service's admin user endpoints."""

    def __init__(
        self,
        base_url: str,
        service_key: str,
        timeout_seconds: float = 10.0,
        client_factory: Callable[[], httpx.AsyncClient] | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._service_key = service_key
        self._timeout_seconds = timeout_seconds
        self._client_factory = client_factory

    @property
    def _users_url(self) -> str:
        return f"{self._base_url}/auth/v1/admin/users"

    def _headers(self) -> dict[str, str]:
        return {
            "apikey": self._service_key,
            "Authorization": f"Bearer {self._service_key}",
        }

    async def list_users(self) -> list[AuthAccount]:
        # Single unpaginated call; the admin account set is expected to be small.
        payload = await self._request_json("list_users", method="GET", url=self._users_url)
        if not isinstance(payload, dict):
            raise RemoteCallError("list_users", "response payload is not an object")
        users = payload.get("users")
        if not isinstance(users, list):
            raise RemoteCallError("list_users", "response payload missing list field 'users'")
        return [_parse_account("list_users", item) for item in users]

    async def update_user_by_id(self, user_id: str, *, password: str) -> AuthAccount:
        payload = await self._request_json(
            "update_user_by_id",
            method="PUT",
            url=f"{self._users_url}/{user_id}",
            json={"password": password},
        )
        return _parse_account("update_user_by_id", payload)

    async def create_user(
        self,
        *,
        email: str,
        password: str,
        email_confirm: bool = False,
        user_metadata: dict[str, Any] | None = None,
    ) -> AuthAccount:
        payload = await self._request_json(
            "create_user",
            method="POST",
            url=self._users_url,
            json={
                "email": email,
                "password": password,
                "email_confirm": email_confirm,
                "user_metadata": user_metadata or {},
            },
        )
        return _parse_account("create_user", payload)

    async def _request_json(
        self,
        operation: str,
        *,
        method: str,
        url: str,
        json: dict[str, Any] | None = None,
    ) -> Any:
        try:
            factory = self._client_factory or (lambda: httpx.AsyncClient(timeout=self._timeout_seconds))
            async with factory() as client:
                response = await client.request(method=method, url=url, headers=self._headers(), json=json)
                response.raise_for_status()
        except httpx.TimeoutException as exc:
            raise RemoteCallError(operation, "auth service timeout") from exc
        except httpx.HTTPStatusError as exc:
            raise RemoteCallError(
                operation,
                _error_message(exc.response),
                exc.response.status_code,
            ) from exc
        except httpx.HTTPError as exc:
            raise RemoteCallError(operation, f"auth service request error: {exc}") from exc

        try:
            return response.json()
        except ValueError as exc:
            raise RemoteCallError(operation, "response body is not json", response.status_code) from exc


def _error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text.strip() or "auth service returned error"
    if isinstance(payload, dict):
        for key in ("msg", "message", "error_description", "error"):
            value = payload.get(key)
            if value:
                return str(value)
    return "auth service returned error"
