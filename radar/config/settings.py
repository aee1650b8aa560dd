"""Application settings and configuration management."""

from pathlib import Path
from typing import Literal

import structlog
import yaml
from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings

from ..core.types import AlertThresholds, DedupCapacities

logger = structlog.get_logger(__name__)


class AppSettings(BaseSettings):
    """Application settings with environment variable support."""

    # Environment
    env: Literal["dev", "prod"] = Field(description="Environment: dev, prod")
    log_level: str = Field(default="info", description="Minimum log level")

    # Helius
    helius_api_key: str | None = Field(default=None, description="Helius API key")
    helius_api_base: str = Field(
        default="https://api.helius.xyz/v0", description="Helius REST API base URL"
    )
    helius_rpc_url: str = Field(
        default="https://mainnet.helius-rpc.com", description="Helius RPC URL"
    )
    webhook_secret: str | None = Field(
        default=None, description="Shared secret expected on inbound webhooks"
    )

    # Alert thresholds
    alert_score_threshold: int = Field(
        default=70, description="Score at which an unflagged token is alerted"
    )
    alert_score_threshold_with_flags: int = Field(
        default=80, description="Score at which a token is alerted despite hard flags"
    )
    score_change_alert_threshold: int = Field(
        default=10, description="Score movement that triggers an alert update"
    )

    # Enrichment worker
    enrich_batch_size: int = Field(default=10, description="Tokens per enrich batch")
    enrich_interval_seconds: float = Field(
        default=15.0, description="Sleep between enrich batches"
    )
    enrich_stale_seconds: int = Field(
        default=30, description="Re-enrich tokens older than this"
    )
    enrich_concurrency: int = Field(
        default=5, description="Parallel token enrichments per batch"
    )
    fetch_max_retries: int = Field(
        default=3, description="Attempts per external fetch"
    )
    fetch_retry_base_seconds: float = Field(
        default=1.0, description="Base delay for exponential fetch backoff"
    )

    # Scoring worker
    score_batch_size: int = Field(default=20, description="Tokens per score batch")
    score_interval_seconds: float = Field(
        default=10.0, description="Sleep between score batches"
    )

    # Retention
    retention_days: int = Field(
        default=7, ge=1, description="Days of raw events and snapshots to keep"
    )
    cleanup_interval_seconds: float = Field(
        default=3600.0, description="Sleep between retention passes"
    )

    # Ingestion
    dedup_signature_capacity: int = Field(
        default=50000, description="Signatures kept in the dedup cache"
    )
    dedup_mint_capacity: int = Field(
        default=10000, description="Mints kept in the dedup cache"
    )
    dedup_event_capacity: int = Field(
        default=20000, description="Event ids kept in the dedup cache"
    )
    ingest_queue_size: int = Field(
        default=1000, description="Pending webhook payloads before rejecting"
    )
    ingest_workers: int = Field(
        default=2, description="Concurrent payload processing tasks"
    )
    http_host: str = Field(default="0.0.0.0", description="Webhook listener host")
    http_port: int = Field(default=3000, description="Webhook listener port")

    # Notifications
    telegram_bot_token: str | None = Field(
        default=None, description="Telegram bot token"
    )
    telegram_chat_id: str | None = Field(
        default=None, description="Chat receiving token alerts"
    )
    telegram_admin_ids: list[int] = Field(
        default_factory=list, description="Telegram users allowed to run commands"
    )
    enable_telegram_alerts: bool = Field(
        default=True, description="Send token alerts to Telegram"
    )

    # Data storage
    database_path: str = Field(
        default="./radar.sqlite", description="SQLite database file"
    )

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore",
        "frozen": True,
    }

    def alert_thresholds(self) -> AlertThresholds:
        """Thresholds consumed by the alert state machine."""
        return AlertThresholds(
            score_threshold=self.alert_score_threshold,
            score_threshold_with_flags=self.alert_score_threshold_with_flags,
            score_change_threshold=self.score_change_alert_threshold,
        )

    def dedup_capacities(self) -> DedupCapacities:
        """Capacities for the three dedup key spaces."""
        return DedupCapacities(
            signatures=self.dedup_signature_capacity,
            mints=self.dedup_mint_capacity,
            events=self.dedup_event_capacity,
        )


def load_settings(profile: str, yaml_path: str) -> AppSettings:
    """Load settings from YAML file and environment variables.

    Args:
        profile: Configuration profile name (dev, prod)
        yaml_path: Path to YAML configuration file

    Returns:
        AppSettings instance with loaded configuration

    Raises:
        FileNotFoundError: If YAML file doesn't exist
        ValidationError: If configuration is invalid
        ValueError: If profile is invalid
    """
    if profile not in ["dev", "prod"]:
        raise ValueError(f"Invalid profile: {profile}. Must be one of: dev, prod")

    yaml_file = Path(yaml_path)
    if not yaml_file.exists():
        raise FileNotFoundError(f"Configuration file not found: {yaml_path}")

    try:
        with open(yaml_file, encoding="utf-8") as f:
            yaml_config = yaml.safe_load(f) or {}

        yaml_config["env"] = profile

        logger.info("Loading configuration", profile=profile, yaml_path=yaml_path)

        settings = AppSettings(**yaml_config)

        logger.info(
            "Configuration loaded successfully",
            profile=profile,
            alert_score_threshold=settings.alert_score_threshold,
            database_path=settings.database_path,
            telegram_configured=settings.telegram_bot_token is not None,
        )

        return settings

    except yaml.YAMLError as e:
        logger.error("Failed to parse YAML configuration", error=str(e))
        raise ValueError(f"Invalid YAML configuration: {e}") from e
    except ValidationError as e:
        logger.error("Configuration validation failed", error=str(e))
        raise
