"""Runtime configuration for the REST request pipeline."""
from __future__ import annotations

from functools import lru_cache

import os

from dotenv import load_dotenv
from pydantic import AnyUrl, BaseModel, Field

from . import __version__

DEFAULT_USER_AGENT = f"DiscordBot (restlane, {__version__})"


class RuntimeSettings(BaseModel):
    token: str | None = Field(default=None, alias="RESTLANE_TOKEN")
    api_base: AnyUrl = Field(default="https://discord.com/api/", alias="RESTLANE_API_BASE")
    api_version: int = Field(default=10, ge=1, alias="RESTLANE_API_VERSION")
    user_agent: str = Field(default=DEFAULT_USER_AGENT, alias="USER_AGENT")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    request_max_retries: int = Field(default=0, ge=0, alias="RESTLANE_REQUEST_MAX_RETRIES")
    request_error_delay: float = Field(default=30.0, ge=0, alias="RESTLANE_REQUEST_ERROR_DELAY")
    request_timeout: float = Field(default=30.0, gt=0, alias="RESTLANE_REQUEST_TIMEOUT")
    strict_json: bool = Field(default=True, alias="RESTLANE_STRICT_JSON")

    model_config = {
        "populate_by_name": True,
        "extra": "ignore",
    }


def _load_environment() -> RuntimeSettings:
    load_dotenv(override=False)
    data = {key: value for key, value in os.environ.items() if key.startswith("RESTLANE_")}
    data["USER_AGENT"] = os.getenv("USER_AGENT", DEFAULT_USER_AGENT)
    data["LOG_LEVEL"] = os.getenv("LOG_LEVEL", "INFO")
    return RuntimeSettings(**data)


@lru_cache(maxsize=1)
def get_settings() -> RuntimeSettings:
    """Return cached runtime settings."""

    return _load_environment()


def api_url(settings: RuntimeSettings) -> str:
    """Return the versioned API root every route is appended to."""

    base = str(settings.api_base)
    if not base.endswith("/"):
        base += "/"
    return f"{base}v{settings.api_version}/"
