from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import TypeVar

from dotenv import dotenv_values
from pydantic_settings import (
    BaseSettings,
    DotEnvSettingsSource,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)


class LiteralDotEnvSettingsSource(DotEnvSettingsSource):
    """Dotenv source that never expands ``${VAR}`` references inside values.

    Keys without a value or with an empty value are dropped so the environment
    source can supply them.
    """

    def _read_env_file(self, file_path: Path) -> Mapping[str, str | None]:
        file_vars = dotenv_values(file_path, encoding=self.env_file_encoding or "utf8", interpolate=False)
        values: dict[str, str | None] = {}
        for key, value in file_vars.items():
            if value is None or (self.env_ignore_empty and value == ""):
                continue
            values[key if self.case_sensitive else key.lower()] = value
        return values


class ServiceSettings(BaseSettings):
    """Settings resolved from a local dotenv file first, then the process environment.

    Each key is looked up in the file and falls back to the environment variable of
    the same name when the file is absent or does not define it. Empty values count
    as absent in both sources.
    """

    model_config = SettingsConfigDict(
        extra="ignore",
        frozen=True,
        case_sensitive=True,
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
    )

    SERVICE_NAME: str = "service"
    OPS_LOG_LEVEL: str = "INFO"

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        literal_dotenv = LiteralDotEnvSettingsSource(
            settings_cls,
            env_file=getattr(dotenv_settings, "env_file", None),
            env_file_encoding=getattr(dotenv_settings, "env_file_encoding", None),
        )
        return (init_settings, literal_dotenv, env_settings)


SettingsT = TypeVar("SettingsT", bound=ServiceSettings)


def load_settings(
    service_name: str,
    settings_cls: type[SettingsT] = ServiceSettings,  # type: ignore[assignment]
    env_file: str | Path | None = ".env",
) -> SettingsT:
    return settings_cls(SERVICE_NAME=service_name, _env_file=env_file)
