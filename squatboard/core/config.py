import logging

from pydantic_settings import BaseSettings
from pydantic import ConfigDict
from typing import Optional

from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


class Settings(BaseSettings):
    # Environment
    ENV: str = "development"
    CONFIG_STRICT: bool = False
    LOG_LEVEL: str = "INFO"

    # Ledger store
    LEDGER_BACKEND: str = "memory"  # memory | redis
    REDIS_URL: Optional[str] = None

    # Calendar policy: every "today" is evaluated in this zone
    REFERENCE_TIMEZONE: str = "UTC"
    FUTURE_SKEW_DAYS: int = 1

    # Board
    VIEW_WINDOW_DAYS: int = 10
    MAX_WINDOW_DAYS: int = 90

    # Inactivity sweep
    INACTIVE_AFTER_DAYS: int = 30

    # CORS
    CORS_ALLOW_ORIGINS: str = "http://localhost:3000"  # comma-separated

    # WebSocket limits
    WS_MAX_CONNECTIONS: int = 0  # 0 = unlimited
    WS_MAX_MESSAGE_BYTES: int = 4096

    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


settings = Settings()


def cors_origins(settings_obj: Optional[Settings] = None) -> list[str]:
    cfg = settings_obj or settings
    return [o.strip() for o in cfg.CORS_ALLOW_ORIGINS.split(",") if o.strip()]


def validate_config(strict: Optional[bool] = None, settings_obj: Optional[Settings] = None, logger: Optional[logging.Logger] = None) -> bool:
    """Validate configuration consistency.

    In strict mode raise RuntimeError; otherwise emit warnings only.
    """
    cfg = settings_obj or settings
    log = logger or logging.getLogger("squatboard")
    strict_mode = strict if strict is not None else getattr(cfg, "CONFIG_STRICT", False)

    problems = []
    backend = (cfg.LEDGER_BACKEND or "").lower()
    if backend not in ("memory", "redis"):
        problems.append(f"LEDGER_BACKEND must be 'memory' or 'redis', got {cfg.LEDGER_BACKEND!r}")
    if backend == "redis" and not cfg.REDIS_URL:
        problems.append("REDIS_URL is required when LEDGER_BACKEND=redis")

    try:
        ZoneInfo(cfg.REFERENCE_TIMEZONE)
    except (ZoneInfoNotFoundError, ValueError):
        problems.append(f"Unknown REFERENCE_TIMEZONE: {cfg.REFERENCE_TIMEZONE}")

    if cfg.VIEW_WINDOW_DAYS < 1 or cfg.VIEW_WINDOW_DAYS > cfg.MAX_WINDOW_DAYS:
        problems.append(
            f"VIEW_WINDOW_DAYS must be between 1 and MAX_WINDOW_DAYS ({cfg.MAX_WINDOW_DAYS})"
        )
    if cfg.FUTURE_SKEW_DAYS < 0:
        problems.append("FUTURE_SKEW_DAYS must be >= 0")
    if cfg.INACTIVE_AFTER_DAYS < 1:
        problems.append("INACTIVE_AFTER_DAYS must be >= 1")
    level = str(getattr(cfg, "LOG_LEVEL", "INFO")).upper()
    if not isinstance(logging.getLevelName(level), int):
        problems.append(f"Unknown LOG_LEVEL: {level}")

    if problems:
        message = "Invalid configuration: " + "; ".join(problems)
        if strict_mode:
            raise RuntimeError(message)
        log.warning(message)
        return False

    return True
