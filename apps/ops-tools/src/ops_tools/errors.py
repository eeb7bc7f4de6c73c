from __future__ import annotations


class OpsToolError(Exception):
    """Base operator tooling exception."""


class ConfigurationError(OpsToolError):
    """Raised when required settings resolve to empty in both the file and the environment."""

    def __init__(self, message: str, missing_keys: list[str]) -> None:
        super().__init__(f"{message}: {', '.join(missing_keys)}")
        self.missing_keys = missing_keys


class RemoteCallError(OpsToolError):
    """Raised when the auth service is unreachable or rejects an admin call."""

    def __init__(self, operation: str, message: str, status_code: int | None = None) -> None:
        detail = f"{operation} failed: {message}"
        if status_code is not None:
            detail = f"{detail} (status={status_code})"
        super().__init__(detail)
        self.operation = operation
        self.status_code = status_code


class LocalStoreError(OpsToolError):
    """Raised when a request against an application table fails."""

    def __init__(self, table: str, message: str, status_code: int | None = None) -> None:
        detail = f"{table}: {message}"
        if status_code is not None:
            detail = f"{detail} (status={status_code})"
        super().__init__(detail)
        self.table = table
        self.status_code = status_code
