"""Application settings loaded from environment variables and config files.

Configuration is loaded from (highest priority first):
1. Environment variables (prefix: ``CHARGE_``, nested via ``__``)
2. YAML config file (``CHARGE_CONFIG_PATH`` env var)
3. Defaults defined here
"""

from __future__ import annotations

import enum
from pathlib import Path
from typing import Any, Self

import yaml
from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# ---------------------------------------------------------------------------
# Enums for validated choices
# ---------------------------------------------------------------------------


class DatabaseEngine(enum.StrEnum):
    """Supported database engines."""

    SQLITE = "sqlite"
    POSTGRESQL = "postgresql"


# ---------------------------------------------------------------------------
# Sub-config models
# ---------------------------------------------------------------------------


class DatabaseConfig(BaseSettings):
    """Database settings."""

    model_config = SettingsConfigDict(
        env_prefix="CHARGE_DB__",
        case_sensitive=False,
    )

    engine: DatabaseEngine = Field(
        default=DatabaseEngine.SQLITE,
        description="Database backend: sqlite or postgresql",
    )
    dsn: str = Field(
        default="sqlite+aiosqlite:///./charge.db",
        description="Async database connection string",
    )
    max_idle_connections: int = 5
    max_open_connections: int = 10
    debug_sql: bool = False


class NodeConfig(BaseSettings):
    """Core Lightning REST connection settings."""

    model_config = SettingsConfigDict(
        env_prefix="CHARGE_NODE__",
        case_sensitive=False,
    )

    url: str = "https://localhost:3010"
    rune: str = ""
    timeout: float = 30.0
    wait_any_timeout: int = 60
    verify_tls: bool = True


class InvoiceConfig(BaseSettings):
    """Defaults applied when creating invoices and offers."""

    model_config = SettingsConfigDict(
        env_prefix="CHARGE_INVOICE__",
        case_sensitive=False,
    )

    default_description: str = "Lightning Charge Invoice"
    default_offer_description: str = "Lightning Charge Offer"


class WaitConfig(BaseSettings):
    """Long-poll wait bounds (seconds)."""

    model_config = SettingsConfigDict(
        env_prefix="CHARGE_WAIT__",
        case_sensitive=False,
    )

    max_wait: int = 600
    default_timeout: int = 300
    resolved_ttl: int = 3600


class WebhookConfig(BaseSettings):
    """Outbound webhook delivery settings."""

    model_config = SettingsConfigDict(
        env_prefix="CHARGE_WEBHOOK__",
        case_sensitive=False,
    )

    timeout: float = 10.0
    drain_timeout: float = 5.0


class ReconcilerConfig(BaseSettings):
    """Expired invoice cleanup settings."""

    model_config = SettingsConfigDict(
        env_prefix="CHARGE_RECONCILER__",
        case_sensitive=False,
    )

    enabled: bool = True
    ttl: int = 86400
    period: float = 3600


class ListenerConfig(BaseSettings):
    """Node payment stream consumer settings."""

    model_config = SettingsConfigDict(
        env_prefix="CHARGE_LISTENER__",
        case_sensitive=False,
    )

    enabled: bool = True
    retry_delay: float = 5.0


class MetricsConfig(BaseSettings):
    """Prometheus metrics settings."""

    model_config = SettingsConfigDict(
        env_prefix="CHARGE_METRICS__",
        case_sensitive=False,
    )

    enabled: bool = True
    port: int = 9090


class TaskConfig(BaseSettings):
    """Background cron job settings."""

    model_config = SettingsConfigDict(
        env_prefix="CHARGE_TASK__",
        case_sensitive=False,
    )

    enabled: bool = True


# ---------------------------------------------------------------------------
# Top-level config
# ---------------------------------------------------------------------------


def _load_yaml(path: str | Path) -> dict[str, Any]:
    """Load a YAML configuration file and return its contents as a dict.

    Returns an empty dict if the file doesn't exist or is empty.
    """
    p = Path(path)
    if not p.exists():
        return {}
    text = p.read_text(encoding="utf-8")
    data = yaml.safe_load(text)
    return data if isinstance(data, dict) else {}


class AppConfig(BaseSettings):
    """Top-level application configuration.

    Loads settings from environment variables (``CHARGE_`` prefix),
    an optional YAML file, and built-in defaults.
    """

    model_config = SettingsConfigDict(
        env_prefix="CHARGE_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    debug: bool = False
    config_path: str = ""

    db: DatabaseConfig = Field(default_factory=DatabaseConfig)
    node: NodeConfig = Field(default_factory=NodeConfig)
    invoice: InvoiceConfig = Field(default_factory=InvoiceConfig)
    wait: WaitConfig = Field(default_factory=WaitConfig)
    webhook: WebhookConfig = Field(default_factory=WebhookConfig)
    reconciler: ReconcilerConfig = Field(default_factory=ReconcilerConfig)
    listener: ListenerConfig = Field(default_factory=ListenerConfig)
    metrics: MetricsConfig = Field(default_factory=MetricsConfig)
    task: TaskConfig = Field(default_factory=TaskConfig)

    @model_validator(mode="before")
    @classmethod
    def _merge_yaml(cls, values: dict[str, Any]) -> dict[str, Any]:
        """Merge YAML config file contents under the env var overrides."""
        config_path = values.get("config_path", "")
        if not config_path:
            return values
        yaml_data = _load_yaml(config_path)
        # YAML values serve as defaults; env vars (already in *values*) win.
        for key, val in yaml_data.items():
            if key not in values or values[key] is None:
                values[key] = val
            elif isinstance(val, dict) and isinstance(values.get(key), dict):
                values[key] = {**val, **values[key]}
        return values

    @classmethod
    def from_yaml(cls, path: str | Path) -> Self:
        """Construct ``AppConfig`` loading defaults from a YAML file.

        Environment variables still override YAML values.
        """
        return cls(config_path=str(path))
