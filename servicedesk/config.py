"""
Centralized configuration with environment variable overrides.

Business contact details, AI settings, detection thresholds and ticket
timing are all configurable here. Nothing is hardcoded in detector,
agent or ticket logic.
"""

import logging
import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

from servicedesk.logging_context import session_handler

load_dotenv()

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(name)s] [%(session_id)s] %(levelname)s: %(message)s"

DEFAULT_SERVICE_AREAS = (
    "thiruvalla,pathanamthitta,kerala,kottayam,alappuzha,"
    "kollam,ernakulam,thrissur,palakkad,malappuram"
)


def _safe_int(env_var: str, default: str) -> int:
    """Parse an integer from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return int(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid integer for {env_var}: {raw!r}"
        ) from None


def _safe_float(env_var: str, default: str) -> float:
    """Parse a float from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return float(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid float for {env_var}: {raw!r}"
        ) from None


def _csv_tuple(env_var: str, default: str) -> tuple[str, ...]:
    raw = os.getenv(env_var, default)
    return tuple(item.strip().lower() for item in raw.split(",") if item.strip())


@dataclass(frozen=True)
class BusinessConfig:
    """Business contact details used in replies and notification links."""

    name: str = os.getenv("BUSINESS_NAME", "Cool Wind Services")
    support_phone: str = os.getenv("SUPPORT_PHONE", "+91 85472 29991")
    whatsapp_number: str = os.getenv("WHATSAPP_NUMBER", "918547229991")
    service_areas: tuple[str, ...] = _csv_tuple("SERVICE_AREAS", DEFAULT_SERVICE_AREAS)


@dataclass(frozen=True)
class AIConfig:
    """AI text-generation service settings."""

    api_key: str = os.getenv("OPENAI_API_KEY", "")
    model: str = os.getenv("AI_MODEL", "gpt-4o-mini")
    temperature: float = _safe_float("AI_TEMPERATURE", "0.1")
    max_output_tokens: int = _safe_int("AI_MAX_OUTPUT_TOKENS", "500")
    timeout_seconds: float = _safe_float("AI_TIMEOUT_SECONDS", "8.0")


@dataclass(frozen=True)
class DetectionConfig:
    """Thresholds for field adoption and reply selection."""

    field_confidence_threshold: float = _safe_float("FIELD_CONFIDENCE_THRESHOLD", "0.6")
    history_turns: int = _safe_int("PROMPT_HISTORY_TURNS", "3")
    message_window: int = _safe_int("CONTEXT_MESSAGE_WINDOW", "10")
    failed_call_reply_threshold: int = _safe_int("FAILED_CALL_REPLY_THRESHOLD", "60")
    task_confidence_threshold: int = _safe_int("TASK_CONFIDENCE_THRESHOLD", "50")


@dataclass(frozen=True)
class TicketConfig:
    """Ticket numbering, list caps and side-effect timing."""

    number_prefix: str = os.getenv("TICKET_NUMBER_PREFIX", "CWS")
    list_limit: int = _safe_int("TICKET_LIST_LIMIT", "5")
    auto_assign_delay_sec: float = _safe_float("AUTO_ASSIGN_DELAY_SEC", "2")
    notification_delay_sec: float = _safe_float("NOTIFICATION_DELAY_SEC", "1")
    follow_up_critical_min: int = _safe_int("FOLLOW_UP_CRITICAL_MIN", "30")
    follow_up_high_min: int = _safe_int("FOLLOW_UP_HIGH_MIN", "120")
    follow_up_medium_min: int = _safe_int("FOLLOW_UP_MEDIUM_MIN", "1440")
    follow_up_low_min: int = _safe_int("FOLLOW_UP_LOW_MIN", "2880")
    max_job_attempts: int = _safe_int("MAX_JOB_ATTEMPTS", "3")
    job_retry_backoff_sec: float = _safe_float("JOB_RETRY_BACKOFF_SEC", "60")
    max_update_retries: int = _safe_int("MAX_UPDATE_RETRIES", "3")
    job_queue_path: str = os.getenv("JOB_QUEUE_PATH", "data/scheduled-jobs.json")

    def follow_up_minutes(self, priority: str) -> int:
        """Return the follow-up delay for a ticket priority."""
        return {
            "critical": self.follow_up_critical_min,
            "high": self.follow_up_high_min,
            "medium": self.follow_up_medium_min,
            "low": self.follow_up_low_min,
        }.get(priority, self.follow_up_medium_min)


@dataclass(frozen=True)
class AppConfig:
    """Root configuration aggregating all sub-configs."""

    business: BusinessConfig = field(default_factory=BusinessConfig)
    ai: AIConfig = field(default_factory=AIConfig)
    detection: DetectionConfig = field(default_factory=DetectionConfig)
    tickets: TicketConfig = field(default_factory=TicketConfig)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    agent_name: str = os.getenv("AGENT_NAME", "service-desk")


def _validate_config(config: AppConfig) -> None:
    """Validate configuration values are within acceptable ranges."""
    if not 0.0 <= config.ai.temperature <= 2.0:
        raise ValueError(
            f"AI_TEMPERATURE must be between 0.0 and 2.0, got {config.ai.temperature}"
        )
    if config.ai.timeout_seconds <= 0:
        raise ValueError(
            f"AI_TIMEOUT_SECONDS must be > 0, got {config.ai.timeout_seconds}"
        )
    if config.ai.max_output_tokens < 1:
        raise ValueError(
            f"AI_MAX_OUTPUT_TOKENS must be >= 1, got {config.ai.max_output_tokens}"
        )
    if not 0.0 <= config.detection.field_confidence_threshold <= 1.0:
        raise ValueError(
            "FIELD_CONFIDENCE_THRESHOLD must be between 0.0 and 1.0, "
            f"got {config.detection.field_confidence_threshold}"
        )
    if config.detection.history_turns < 0:
        raise ValueError(
            f"PROMPT_HISTORY_TURNS must be >= 0, got {config.detection.history_turns}"
        )
    if config.detection.message_window < 1:
        raise ValueError(
            f"CONTEXT_MESSAGE_WINDOW must be >= 1, got {config.detection.message_window}"
        )

    for name, value in [
        ("FAILED_CALL_REPLY_THRESHOLD", config.detection.failed_call_reply_threshold),
        ("TASK_CONFIDENCE_THRESHOLD", config.detection.task_confidence_threshold),
    ]:
        if not 0 <= value <= 100:
            raise ValueError(f"{name} must be between 0 and 100, got {value}")

    if config.tickets.list_limit < 1:
        raise ValueError(
            f"TICKET_LIST_LIMIT must be >= 1, got {config.tickets.list_limit}"
        )
    for name, value in [
        ("FOLLOW_UP_CRITICAL_MIN", config.tickets.follow_up_critical_min),
        ("FOLLOW_UP_HIGH_MIN", config.tickets.follow_up_high_min),
        ("FOLLOW_UP_MEDIUM_MIN", config.tickets.follow_up_medium_min),
        ("FOLLOW_UP_LOW_MIN", config.tickets.follow_up_low_min),
        ("MAX_JOB_ATTEMPTS", config.tickets.max_job_attempts),
        ("MAX_UPDATE_RETRIES", config.tickets.max_update_retries),
    ]:
        if value < 1:
            raise ValueError(f"{name} must be >= 1, got {value}")
    if config.tickets.auto_assign_delay_sec < 0 or config.tickets.notification_delay_sec < 0:
        raise ValueError("Side-effect delays must be >= 0")
    if not config.business.service_areas:
        raise ValueError("SERVICE_AREAS must name at least one area")


def load_config() -> AppConfig:
    """Load and validate application configuration."""
    config = AppConfig()
    _validate_config(config)
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format=LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[session_handler()],
    )
    logger.info("Configuration loaded for '%s'", config.business.name)
    return config


# Singleton instance
settings = load_config()
