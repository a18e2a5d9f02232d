"""Configuration loading helpers."""

from __future__ import annotations

import json
from pathlib import Path

import tomllib

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import ConfigError
from .models import ConnectionProfile
from .retry import set_max_tries

CONFIG_FILE = Path.home() / ".config" / "rowscan" / "config.toml"


class ProfileConfig(BaseModel):
    """One named profile as stored in a config file.

    Accepts both the snake_case names and the camelCase keys of the older JSON
    format (``pass``, ``maxIdle``, ``maxOpen``, ``readTimeout``).
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = Field(default=None, alias="pass")
    charset: str | None = None
    database: str | None = None
    max_idle: int = Field(default=0, ge=0, alias="maxIdle")
    max_open: int = Field(default=0, ge=0, alias="maxOpen")
    timeout: int = Field(default=0, ge=0)
    read_timeout: int = Field(default=0, ge=0, alias="readTimeout")

    def to_profile(self, name: str) -> ConnectionProfile:
        return ConnectionProfile(
            name=name,
            host=self.host,
            port=self.port,
            user=self.user,
            password=self.password,
            charset=self.charset,
            database=self.database,
            max_idle=self.max_idle,
            max_open=self.max_open,
            timeout=self.timeout,
            read_timeout=self.read_timeout,
        )


class EngineConfig(BaseModel):
    """Shape of the configuration file."""

    max_tries: int = Field(default=1, ge=0)
    profiles: dict[str, ProfileConfig] = Field(default_factory=dict)


def load_config(path: Path | str | None = None, *, missing_ok: bool = False) -> EngineConfig:
    """Load configuration from a TOML or JSON file.

    A ``.json`` file may hold either the full config or, as older deployments
    do, a bare ``{alias: profile}`` object.
    """

    config_path = Path(path) if path is not None else CONFIG_FILE
    try:
        data = _read_config_file(config_path)
    except FileNotFoundError:
        if missing_ok:
            return EngineConfig()
        raise ConfigError(f"Config file '{config_path}' does not exist") from None
    except (tomllib.TOMLDecodeError, json.JSONDecodeError, OSError) as exc:
        raise ConfigError(f"Failed to read config file '{config_path}': {exc}") from exc
    try:
        return EngineConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid config file '{config_path}': {exc}") from exc


def apply_config(config: EngineConfig) -> None:
    """Push process-wide settings from ``config`` into the engine."""

    set_max_tries(config.max_tries)


def _read_config_file(path: Path) -> dict[str, object]:
    if path.suffix.lower() == ".json":
        raw = json.loads(path.read_text(encoding="utf-8"))
        if not isinstance(raw, dict):
            raise ConfigError(f"Config file '{path}' must contain a JSON object")
        if "profiles" not in raw and "max_tries" not in raw:
            return {"profiles": raw}
        return raw
    with path.open("rb") as handle:
        return tomllib.load(handle)


__all__ = [
    "CONFIG_FILE",
    "EngineConfig",
    "ProfileConfig",
    "apply_config",
    "load_config",
]
