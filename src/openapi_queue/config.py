"""
Configuration for the Open API request queue.

Settings are read from a YAML file (root key ``openapi_queue``) and can be
overridden through environment variables. Missing file -> defaults.
"""
import os
from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Optional

import yaml

DEFAULT_CONFIG_FILE = "openapi_queue.yml"
ROOT_KEY = "openapi_queue"


class ConfigError(ValueError):
    """Raised when the queue configuration is invalid."""


@dataclass
class CredentialConfig:
    app_key: str
    app_secret: str
    name: str = ""


@dataclass
class QueueSettings:
    tick_seconds: float = 1.0
    request_count_per_second: int = 20
    default_retries: int = 5
    default_priority: int = 2
    retry_priority: int = 1
    base_url: str = "https://openapi.koreainvestment.com:9443"
    request_timeout_s: float = 10.0
    token_refresh_margin_s: float = 600.0
    credentials: List[CredentialConfig] = field(default_factory=list)
    log_level: str = "INFO"

    def validate(self) -> "QueueSettings":
        for name, kinds in _NUMERIC_FIELDS.items():
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, kinds):
                raise ConfigError(f"{name} must be a number, got {value!r}")
        if self.tick_seconds <= 0:
            raise ConfigError(f"tick_seconds must be positive, got {self.tick_seconds}")
        if self.request_count_per_second < 1:
            raise ConfigError(
                f"request_count_per_second must be at least 1, got {self.request_count_per_second}"
            )
        if self.default_retries < 0:
            raise ConfigError(f"default_retries must not be negative, got {self.default_retries}")
        # 0 is falsy and would be replaced by the default priority on enqueue
        for name in ("default_priority", "retry_priority"):
            if getattr(self, name) < 1:
                raise ConfigError(f"{name} must be at least 1, got {getattr(self, name)}")
        if self.request_timeout_s <= 0:
            raise ConfigError(f"request_timeout_s must be positive, got {self.request_timeout_s}")
        for cred in self.credentials:
            if not cred.app_key or not cred.app_secret:
                raise ConfigError(f"Credential '{cred.name}' needs both app_key and app_secret")
        return self


_NUMERIC_FIELDS = {
    "tick_seconds": (int, float),
    "request_count_per_second": int,
    "default_retries": int,
    "default_priority": int,
    "retry_priority": int,
    "request_timeout_s": (int, float),
    "token_refresh_margin_s": (int, float),
}

# env var -> (field, converter)
_ENV_OVERRIDES = {
    "OPENAPI_TICK_SECONDS": ("tick_seconds", float),
    "OPENAPI_REQUEST_COUNT_PER_SECOND": ("request_count_per_second", int),
    "OPENAPI_DEFAULT_RETRIES": ("default_retries", int),
    "OPENAPI_BASE_URL": ("base_url", str),
    "OPENAPI_REQUEST_TIMEOUT_S": ("request_timeout_s", float),
    "OPENAPI_LOG_LEVEL": ("log_level", str),
}


def _load_yaml(path: str) -> Dict[str, Any]:
    if os.path.exists(path):
        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ConfigError(f"{path}: expected a mapping at the top level, got {type(data).__name__}")
        section = data.get(ROOT_KEY) or {}
        if not isinstance(section, dict):
            raise ConfigError(f"{path}: '{ROOT_KEY}' must be a mapping, got {type(section).__name__}")
        return section
    return {}


def _parse_credentials(raw: Optional[List[Dict[str, Any]]]) -> List[CredentialConfig]:
    creds = []
    for idx, entry in enumerate(raw or []):
        if not isinstance(entry, dict):
            raise ConfigError(f"Credential #{idx} must be a mapping, got {type(entry).__name__}")
        creds.append(
            CredentialConfig(
                app_key=str(entry.get("app_key") or ""),
                app_secret=str(entry.get("app_secret") or ""),
                name=str(entry.get("name") or f"slot-{idx}"),
            )
        )
    return creds


def settings_from_dict(data: Dict[str, Any]) -> QueueSettings:
    """Build settings from a plain mapping, ignoring unknown keys."""
    known = {f.name for f in fields(QueueSettings)} - {"credentials"}
    kwargs = {k: v for k, v in data.items() if k in known}
    try:
        settings = QueueSettings(**kwargs, credentials=_parse_credentials(data.get("credentials")))
    except TypeError as e:
        raise ConfigError(str(e)) from e
    return settings


def _apply_env(settings: QueueSettings) -> None:
    for env_name, (attr, convert) in _ENV_OVERRIDES.items():
        raw = os.getenv(env_name)
        if raw is None or raw == "":
            continue
        try:
            setattr(settings, attr, convert(raw))
        except ValueError as e:
            raise ConfigError(f"Invalid value for {env_name}: {raw!r}") from e

    app_key = os.getenv("OPENAPI_APP_KEY")
    app_secret = os.getenv("OPENAPI_APP_SECRET")
    if app_key and app_secret:
        settings.credentials.append(
            CredentialConfig(app_key=app_key, app_secret=app_secret, name="env")
        )


def load_settings(path: Optional[str] = None) -> QueueSettings:
    """
    Load queue settings.

    :param path: YAML file to read. Falls back to $OPENAPI_QUEUE_CONFIG, then
        ``openapi_queue.yml`` in the working directory.
    :return: Validated settings.
    """
    path = path or os.getenv("OPENAPI_QUEUE_CONFIG") or DEFAULT_CONFIG_FILE
    settings = settings_from_dict(_load_yaml(path))
    _apply_env(settings)
    return settings.validate()
