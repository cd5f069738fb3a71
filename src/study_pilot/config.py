"""Runtime settings read from the environment (and a local .env file)."""
import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

from study_pilot.db import DEFAULT_DB_PATH

DEFAULT_MODEL = "gemini-2.5-flash"
MAX_SESSIONS_PER_DAY = 6
RESCHEDULE_HORIZON_DAYS = 3650


@dataclass
class Settings:
    db_path: str = DEFAULT_DB_PATH
    gemini_api_key: str | None = None
    model: str = DEFAULT_MODEL
    oracle_timeout: float = 60.0
    max_sessions_per_day: int = MAX_SESSIONS_PER_DAY
    reschedule_horizon_days: int = RESCHEDULE_HORIZON_DAYS
    log_level: str = "INFO"
    cors_origins: list[str] = field(default_factory=lambda: ["*"])
    local_user: str = "local"
    host: str = "127.0.0.1"
    port: int = 5000


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return int(raw)


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return float(raw)


def load_settings() -> Settings:
    """Build settings from STUDYPILOT_* variables, loading .env first."""
    load_dotenv()
    origins = os.getenv("STUDYPILOT_CORS_ORIGINS", "*")
    return Settings(
        db_path=os.getenv("STUDYPILOT_DB_PATH", DEFAULT_DB_PATH),
        gemini_api_key=os.getenv("GEMINI_API_KEY") or os.getenv("GOOGLE_API_KEY"),
        model=os.getenv("STUDYPILOT_MODEL", DEFAULT_MODEL),
        oracle_timeout=_float_env("STUDYPILOT_ORACLE_TIMEOUT", 60.0),
        max_sessions_per_day=_int_env("STUDYPILOT_MAX_SESSIONS_PER_DAY", MAX_SESSIONS_PER_DAY),
        reschedule_horizon_days=_int_env("STUDYPILOT_RESCHEDULE_HORIZON_DAYS", RESCHEDULE_HORIZON_DAYS),
        log_level=os.getenv("STUDYPILOT_LOG_LEVEL", "INFO").upper(),
        cors_origins=[o.strip() for o in origins.split(",") if o.strip()],
        local_user=os.getenv("STUDYPILOT_USER", "local"),
        host=os.getenv("STUDYPILOT_HOST", "127.0.0.1"),
        port=_int_env("STUDYPILOT_PORT", 5000),
    )
