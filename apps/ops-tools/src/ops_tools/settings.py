from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from devkit.config import ServiceSettings, load_settings

from ops_tools.errors import ConfigurationError

SERVICE_NAME = "ops-tools"

_SERVICE_KEYS = ("NEXT_PUBLIC_SUPABASE_URL", "SUPABASE_SERVICE_ROLE_KEY")
_ADMIN_KEYS = ("ADMIN_EMAIL", "ADMIN_PASSWORD", "ADMIN_USER_ID")


class OpsSettings(ServiceSettings):
    NEXT_PUBLIC_SUPABASE_URL: str | None = None
    SUPABASE_SERVICE_ROLE_KEY: str | None = None
    ADMIN_EMAIL: str | None = None
    ADMIN_PASSWORD: str | None = None
    ADMIN_USER_ID: str | None = None
    OPS_HTTP_TIMEOUT_SECONDS: float = 10.0
    OPS_USERS_TABLE: str = "users"


@dataclass(frozen=True)
class ServiceConfig:
    base_url: str
    service_key: str
    timeout_seconds: float
    users_table: str


@dataclass(frozen=True)
class AdminCredentials:
    email: str
    password: str
    expected_user_id: str


def load_ops_settings(env_file: str | Path | None = ".env") -> OpsSettings:
    return load_settings(SERVICE_NAME, OpsSettings, env_file=env_file)


def _missing(settings: OpsSettings, keys: tuple[str, ...]) -> list[str]:
    return [key for key in keys if not (getattr(settings, key) or "").strip()]


def resolve_service_config(settings: OpsSettings) -> ServiceConfig:
    missing = _missing(settings, _SERVICE_KEYS)
    if missing:
        raise ConfigurationError("missing auth service credentials", missing)
    if settings.OPS_HTTP_TIMEOUT_SECONDS <= 0:
        raise ConfigurationError("OPS_HTTP_TIMEOUT_SECONDS must be > 0", ["OPS_HTTP_TIMEOUT_SECONDS"])
    return ServiceConfig(
        base_url=str(settings.NEXT_PUBLIC_SUPABASE_URL).strip(),
        service_key=str(settings.SUPABASE_SERVICE_ROLE_KEY).strip(),
        timeout_seconds=settings.OPS_HTTP_TIMEOUT_SECONDS,
        users_table=settings.OPS_USERS_TABLE,
    )


def resolve_admin_credentials(settings: OpsSettings) -> AdminCredentials:
    missing = _missing(settings, _ADMIN_KEYS)
    if missing:
        raise ConfigurationError("missing admin credentials", missing)
    return AdminCredentials(
        email=str(settings.ADMIN_EMAIL),
        password=str(settings.ADMIN_PASSWORD),
        expected_user_id=str(settings.ADMIN_USER_ID),
    )
