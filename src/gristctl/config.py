"""Connection settings using pydantic-settings.

Settings are read once per invocation, before any network call, and injected
into :class:`gristctl.adapters.grist_api.GristClient`.

Environment variables (take precedence over the dotfile):
    GRIST_URL: Base URL of the Grist instance, e.g. https://grist.example.com
    GRIST_TOKEN: API key sent as a bearer token
    GRIST_TIMEOUT: Per-request timeout in seconds (default: 30)
    GRIST_MAX_WORKERS: Cap on concurrent fetches (default: one per item)

The dotfile defaults to ``~/.gristctl`` and holds ``KEY="value"`` lines; set
``GRISTCTL_CONFIG`` to use another path.
"""

from __future__ import annotations

import os
import re
from pathlib import Path

from pydantic import Field, SecretStr, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from gristctl.contracts.common import ConfigError
from gristctl.io.fileops import atomic_write, locked

URL_PATTERN = re.compile(r"^https?://.*[^/]$")


class Settings(BaseSettings):
    """Grist connection parameters."""

    model_config = SettingsConfigDict(
        env_prefix="GRIST_",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    url: str = Field(default="", description="Base URL of the Grist instance")
    token: SecretStr = Field(default=SecretStr(""), description="API key")
    timeout: float = Field(default=30.0, gt=0, description="Per-request timeout in seconds")
    max_workers: int | None = Field(
        default=None,
        ge=1,
        le=256,
        description="Cap on concurrent fetches",
    )

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        v = v.strip()
        if v and not URL_PATTERN.match(v):
            raise ValueError(
                f"URL must start with http:// or https:// and must not end with '/': {v}"
            )
        return v

    @property
    def configured(self) -> bool:
        return bool(self.url) and bool(self.token.get_secret_value())

    @property
    def masked_token(self) -> str:
        return "•" * len(self.token.get_secret_value())

    def require(self) -> "Settings":
        """Raise ConfigError unless both URL and token are set."""
        missing = [name for name, value in (
            ("GRIST_URL", self.url),
            ("GRIST_TOKEN", self.token.get_secret_value()),
        ) if not value]
        if missing:
            raise ConfigError(
                f"Missing configuration: {', '.join(missing)}. "
                "Run `gristctl config set` or export the variables."
            )
        return self


def config_path() -> Path:
    """Path of the dotfile holding GRIST_URL / GRIST_TOKEN."""
    override = os.environ.get("GRISTCTL_CONFIG")
    if override:
        return Path(override).expanduser()
    return Path.home() / ".gristctl"


def load_settings(path: str | Path | None = None) -> Settings:
    """Build the settings from the environment, then the dotfile."""
    p = Path(path) if path is not None else config_path()
    env_file = p if p.is_file() else None
    try:
        return Settings(_env_file=env_file)
    except ValidationError as e:
        errors = "; ".join(
            f"{'.'.join(str(loc) for loc in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise ConfigError(f"Invalid configuration in {p}: {errors}") from e


def _quote(value: str) -> str:
    return '"' + value.replace("\\", "\\\\").replace('"', '\\"') + '"'


def save_settings(url: str, token: str, path: str | Path | None = None) -> Path:
    """Validate and write a new dotfile. Returns its path."""
    p = Path(path) if path is not None else config_path()
    url = url.strip()
    if not URL_PATTERN.match(url):
        raise ConfigError(
            f"URL must start with http:// or https:// and must not end with '/': {url}"
        )
    if not token.strip():
        raise ConfigError("Token must not be empty")

    content = f"GRIST_URL={_quote(url)}\nGRIST_TOKEN={_quote(token.strip())}\n"
    p.parent.mkdir(parents=True, exist_ok=True)
    with locked(p):
        atomic_write(p, content.encode("utf-8"), mode=0o600)
    return p
