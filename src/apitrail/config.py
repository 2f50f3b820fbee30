"""
Configuration management.

Uses Pydantic Settings for environment variable handling and validation,
with an optional config.yaml providing defaults.
"""

import json
import os
import yaml
from functools import lru_cache
from typing import Annotated, Any, Dict, List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

DEFAULT_MASKED_FIELDS = [
    "password",
    "pwd",
    "secret",
    "password_confirmation",
    "cc",
    "card_number",
    "ccv",
    "ssn",
    "credit_score",
    "api_key",
]

DEFAULT_ENDPOINT_URL = "https://rocknrolla.treblle.com"


def load_config_file(config_path: Optional[str] = None) -> Dict[str, Any]:
    """Load configuration from YAML file."""
    if config_path is None:
        # Look for config.yaml in common locations
        possible_paths = [
            "config.yaml",
            "../../config.yaml",
        ]

        for path in possible_paths:
            if os.path.exists(path):
                config_path = path
                break
        else:
            return {}

    if os.path.exists(config_path):
        with open(config_path, 'r') as f:
            config_data = yaml.safe_load(f) or {}
            return config_data
    return {}


class APITrailSettings(BaseSettings):
    """Collector credentials and reporting behaviour."""

    api_key: str = Field(default="", description="Collector API key, sent as x-api-key")
    project_id: str = Field(default="", description="Monitored project identifier")
    ignored_environments: str = Field(
        default="",
        description="Comma-separated environment names that never report"
    )
    masked_fields: Annotated[List[str], NoDecode] = Field(
        default_factory=lambda: list(DEFAULT_MASKED_FIELDS),
        description="Field-name patterns masked in headers and bodies"
    )
    endpoint_url: str = Field(default=DEFAULT_ENDPOINT_URL, description="Collector URL")
    timeout_seconds: float = Field(default=2.0, description="Collector request timeout")
    worker_marker: str = Field(
        default="APITRAIL_WORKER_MODE",
        description="Environment variable whose presence marks a long-lived worker"
    )
    expose_errors: str = Field(default="Off", description="Raw expose_errors flag")
    display_errors: str = Field(default="", description="Raw display_errors flag")

    @field_validator("masked_fields", mode="before")
    def parse_masked_fields(cls, v: Any) -> List[str]:
        """Accept a JSON list or a comma-separated string."""
        if v is None:
            return list(DEFAULT_MASKED_FIELDS)
        if isinstance(v, str):
            try:
                parsed = json.loads(v)
            except json.JSONDecodeError:
                return [field.strip() for field in v.split(",") if field.strip()]
            if isinstance(parsed, list):
                return [str(field) for field in parsed]
            return [str(parsed)]
        return v

    @field_validator("timeout_seconds")
    def validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("timeout_seconds must be positive")
        return v

    model_config = SettingsConfigDict(env_prefix="APITRAIL_")


class AppSettings(BaseSettings):
    """Host application metadata."""

    env: str = Field(default="production", description="Current environment name")
    timezone: str = Field(default="UTC", description="Timezone label reported for the server")
    debug: bool = Field(default=False, description="Debug mode")

    model_config = SettingsConfigDict(env_prefix="APP_")


class Settings(BaseSettings):
    """Main settings."""

    log_level: str = Field(default="INFO", description="Log level")

    apitrail: APITrailSettings = Field(default_factory=APITrailSettings)
    app: AppSettings = Field(default_factory=AppSettings)

    model_config = SettingsConfigDict(env_prefix="APITRAIL_", case_sensitive=False)


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance with config file and env support."""
    config_data = load_config_file()

    # Config file provides defaults, env vars override
    if config_data:
        _set_env_from_config(config_data)

    return Settings()


def _set_env_from_config(config_data: Dict[str, Any]) -> None:
    """Set environment variables from config file if not already set."""
    mappings = {
        ("apitrail", "log_level"): "APITRAIL_LOG_LEVEL",
        ("apitrail", "api_key"): "APITRAIL_API_KEY",
        ("apitrail", "project_id"): "APITRAIL_PROJECT_ID",
        ("apitrail", "ignored_environments"): "APITRAIL_IGNORED_ENVIRONMENTS",
        ("apitrail", "endpoint_url"): "APITRAIL_ENDPOINT_URL",
        ("apitrail", "timeout_seconds"): "APITRAIL_TIMEOUT_SECONDS",
        ("apitrail", "worker_marker"): "APITRAIL_WORKER_MARKER",
        ("apitrail", "expose_errors"): "APITRAIL_EXPOSE_ERRORS",
        ("apitrail", "display_errors"): "APITRAIL_DISPLAY_ERRORS",
        ("app", "env"): "APP_ENV",
        ("app", "timezone"): "APP_TIMEZONE",
        ("app", "debug"): "APP_DEBUG",
    }

    for (section, key), env_var in mappings.items():
        if env_var not in os.environ:
            value = (config_data.get(section) or {}).get(key)
            if value is not None:
                os.environ[env_var] = str(value)

    # Lists go through as JSON so an explicit empty list survives
    if "APITRAIL_MASKED_FIELDS" not in os.environ:
        masked_fields = (config_data.get("apitrail") or {}).get("masked_fields")
        if masked_fields is not None:
            os.environ["APITRAIL_MASKED_FIELDS"] = json.dumps(masked_fields)


def reload_settings() -> Settings:
    """Reload settings (clears cache)."""
    get_settings.cache_clear()
    return get_settings()
