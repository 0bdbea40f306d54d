"""Settings — environment-driven configuration, validated once at startup."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from datetime import timedelta
from typing import TYPE_CHECKING, Any, Literal

from dotenv import load_dotenv
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from .exceptions import ConfigurationError

if TYPE_CHECKING:
    from collections.abc import Mapping

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Profile:
    """Per-environment defaults for logging and Kafka client tuning."""

    name: str
    log_level: str
    json_logs: bool
    kafka_request_timeout_ms: int
    kafka_session_timeout_ms: int
    kafka_retry_backoff_ms: int
    http_keepalive_seconds: int


PROFILES: dict[str, Profile] = {
    "development": Profile(
        name="development",
        log_level="DEBUG",
        json_logs=False,
        kafka_request_timeout_ms=30_000,
        kafka_session_timeout_ms=30_000,
        kafka_retry_backoff_ms=300,
        http_keepalive_seconds=65,
    ),
    "production": Profile(
        name="production",
        log_level="INFO",
        json_logs=True,
        kafka_request_timeout_ms=60_000,
        kafka_session_timeout_ms=60_000,
        kafka_retry_backoff_ms=100,
        http_keepalive_seconds=120,
    ),
}

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class Settings(BaseModel):
    """Immutable service configuration.

    Built once by :meth:`from_env` and passed explicitly to the bootstrap;
    field ``foo_bar`` is read from the ``FOO_BAR`` environment variable.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    # HTTP / process
    app_port: int = Field(default=3000, gt=0, lt=65536)
    app_env: Literal["development", "production"] = "development"
    log_level: str | None = None
    log_json: bool | None = None

    # Kafka
    kafka_brokers: tuple[str, ...] = Field(..., min_length=1)
    kafka_client_id: str = Field(..., min_length=1)
    kafka_group_id: str = Field(..., min_length=1)
    kafka_topic_order_created: str = Field(..., min_length=1)

    # Pipeline
    max_retries: int = Field(default=5, ge=1)
    backoff_base_seconds: float = Field(default=1.0, ge=0)
    backoff_max_seconds: float = Field(default=300.0, ge=0)
    backoff_jitter: float = Field(default=0.2, ge=0, lt=1)
    dispatch_timeout_seconds: float = Field(default=10.0, gt=0)
    dedup_ttl_seconds: int = Field(default=604_800, gt=0)
    ledger_retention_seconds: int = Field(default=86_400, gt=0)
    shutdown_grace_seconds: float = Field(default=15.0, ge=0)
    max_queued_per_partition: int = Field(default=500, ge=1)

    # Stores and sinks
    redis_url: str | None = None
    dead_letter_sink: Literal["topic", "file"] = "topic"
    dead_letter_topic: str | None = None
    dead_letter_path: str = "dead-letters.jsonl"

    # Notification channel
    notification_channel: Literal["console", "email", "push", "sms"] = "console"
    recipient_template: str = "{user_id}"
    smtp_host: str | None = None
    smtp_port: int = Field(default=587, gt=0, lt=65536)
    smtp_username: str | None = None
    smtp_password: str | None = None
    smtp_use_tls: bool = True
    smtp_from: str | None = None
    push_gateway_url: str | None = None
    push_api_token: str | None = None
    push_signing_secret: str | None = None
    twilio_account_sid: str | None = None
    twilio_auth_token: str | None = None
    twilio_from_number: str | None = None

    @field_validator("kafka_brokers", mode="before")
    @classmethod
    def _split_brokers(cls, value: Any) -> Any:
        if isinstance(value, str):
            return tuple(part.strip() for part in value.split(",") if part.strip())
        return value

    @field_validator("log_level")
    @classmethod
    def _check_log_level(cls, value: str | None) -> str | None:
        if value is None:
            return None
        upper = value.upper()
        if upper not in _LOG_LEVELS:
            raise ValueError(f"must be one of {', '.join(_LOG_LEVELS)}")
        return upper

    @field_validator("recipient_template")
    @classmethod
    def _check_recipient_template(cls, value: str) -> str:
        try:
            rendered = value.format(user_id="u", order_id="o", event_id="e")
        except (KeyError, IndexError, ValueError, AttributeError) as e:
            raise ValueError(
                "must be a format string over {user_id}, {order_id}, {event_id}"
            ) from e
        if not rendered.strip():
            raise ValueError("must not render to an empty recipient")
        return value

    @model_validator(mode="after")
    def _check_consistency(self) -> Settings:
        if self.backoff_base_seconds > self.backoff_max_seconds:
            raise ValueError("BACKOFF_BASE_SECONDS must be <= BACKOFF_MAX_SECONDS")
        required: dict[str, tuple[str, ...]] = {
            "email": ("smtp_host", "smtp_from"),
            "push": ("push_gateway_url",),
            "sms": ("twilio_account_sid", "twilio_auth_token", "twilio_from_number"),
        }
        missing = [
            name.upper()
            for name in required.get(self.notification_channel, ())
            if not getattr(self, name)
        ]
        if missing:
            raise ValueError(
                f"NOTIFICATION_CHANNEL={self.notification_channel} requires "
                f"{', '.join(missing)}"
            )
        return self

    # ── derived values ──────────────────────────────────────────────

    @property
    def profile(self) -> Profile:
        return PROFILES[self.app_env]

    @property
    def effective_log_level(self) -> str:
        return self.log_level or self.profile.log_level

    @property
    def json_logs(self) -> bool:
        return self.profile.json_logs if self.log_json is None else self.log_json

    @property
    def dead_letter_topic_name(self) -> str:
        return self.dead_letter_topic or f"{self.kafka_topic_order_created}.dlq"

    @property
    def dedup_ttl(self) -> timedelta:
        return timedelta(seconds=self.dedup_ttl_seconds)

    @property
    def ledger_retention(self) -> timedelta:
        return timedelta(seconds=self.ledger_retention_seconds)

    # ── loading ─────────────────────────────────────────────────────

    @classmethod
    def from_env(
        cls,
        env: Mapping[str, str] | None = None,
        *,
        dotenv_path: str | None = None,
    ) -> Settings:
        """Build settings from ``env`` (default: ``os.environ`` after ``.env``).

        Empty values count as unset. Raises ConfigurationError listing every
        invalid or missing variable.
        """
        if env is None:
            load_dotenv(dotenv_path, override=False)
            env = os.environ

        raw: dict[str, Any] = {}
        for name in cls.model_fields:
            value = env.get(name.upper())
            if value is not None and value.strip() != "":
                raw[name] = value.strip()

        try:
            settings = cls.model_validate(raw)
        except ValidationError as e:
            raise ConfigurationError(_errors_by_variable(e)) from e
        logger.debug(f"Loaded settings for the {settings.app_env} profile")
        return settings


def _errors_by_variable(error: ValidationError) -> dict[str, list[str]]:
    errors: dict[str, list[str]] = {}
    for item in error.errors():
        loc = item.get("loc") or ()
        key = str(loc[0]).upper() if loc else "__root__"
        message = item.get("msg", "invalid value")
        if item.get("type") == "missing":
            message = "is required"
        errors.setdefault(key, []).append(message)
    return errors
