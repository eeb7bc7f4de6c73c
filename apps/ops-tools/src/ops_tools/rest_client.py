from __future__ import annotations

from collections.abc import Callable
from typing import Any

import httpx

from ops_tools.errors import LocalStoreError


class RestTableClient:
    """Client for the application's table REST interface.

    Filters use the interface's operator syntax, e.g. ``{"id": "eq.42"}`` or
    ``{"code": "like.RM-MEAT-*"}``. Updates that match zero rows still answer
    2xx and are reported as success.
    """

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

    def _table_url(self, table: str) -> str:
        return f"{self._base_url}/rest/v1/{table}"

    def _headers(self, *, prefer: str | None = None) -> dict[str, str]:
        headers = {
            "apikey": self._service_key,
            "Authorization": f"Bearer {self._service_key}",
        }
        if prefer:
            headers["Prefer"] = prefer
        return headers

    async def select(
        self,
        table: str,
        *,
        columns: str = "*",
        filters: dict[str, str] | None = None,
    ) -> list[dict[str, Any]]:
        params = {"select": columns, **(filters or {})}
        response = await self._send(table, method="GET", params=params, headers=self._headers())
        try:
            payload = response.json()
        except ValueError as exc:
            raise LocalStoreError(table, "response body is not json", response.status_code) from exc
        if not isinstance(payload, list):
            raise LocalStoreError(table, "response payload is not a list", response.status_code)
        return [row for row in payload if isinstance(row, dict)]

    async def insert(self, table: str, row: dict[str, Any]) -> None:
        await self._send(
            table,
            method="POST",
            json=row,
            headers=self._headers(prefer="return=minimal"),
        )

    async def update(self, table: str, values: dict[str, Any], *, filters: dict[str, str]) -> None:
        if not filters:
            raise ValueError("update requires at least one filter")
        await self._send(
            table,
            method="PATCH",
            params=filters,
            json=values,
            headers=self._headers(prefer="return=minimal"),
        )

    async def _send(
        self,
        table: str,
        *,
        method: str,
        headers: dict[str, str],
        params: dict[str, str] | None = None,
        json: dict[str, Any] | None = None,
    ) -> httpx.Response:
        try:
            factory = self._client_factory or (lambda: httpx.AsyncClient(timeout=self._timeout_seconds))
            async with factory() as client:
                response = await client.request(
                    method=method,
                    url=self._table_url(table),
                    params=params,
                    headers=headers,
                    json=json,
                )
                response.raise_for_status()
        except httpx.TimeoutException as exc:
            raise LocalStoreError(table, "store timeout") from exc
        except httpx.HTTPStatusError as exc:
            raise LocalStoreError(table, _error_message(exc.response), exc.response.status_code) from exc
        except httpx.HTTPError as exc:
            raise LocalStoreError(table, f"store request error: {exc}") from exc
        return response


def _error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text.strip() or "store returned error"
    if isinstance(payload, dict) and payload.get("message"):
        return str(payload["message"])
    return "store returned error"
