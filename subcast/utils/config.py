import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel

from subcast.models.profile import ProcessingMode

from .exceptions import ConfigurationError


class Config(BaseModel):
    # API Configuration
    gemini_api_key: str = ""
    target_language: str = "English"

    # Storage Paths
    output_path: Path = Path("./data/subtitles")

    # Processing Configuration
    processing_mode: str = "titan"  # titan, silentwave or globallink
    chunk_duration_seconds: float = 600.0
    target_sample_rate: int = 16000

    # Rate limit and recovery policy (seconds)
    request_gap_seconds: float = 12.0  # Pause between chunks, keeps us under 5 RPM
    retry_delay_seconds: float = 5.0
    quota_cooldown_seconds: float = 60.0  # One full requests-per-minute window
    max_retries_per_rung: int = 1
    resume_from_last_rung: bool = False
    check_connectivity: bool = True

    # Analytics
    incident_log_limit: int = 50

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self._validate_policy()
        self._ensure_directories()

    def _validate_policy(self):
        if self.processing_mode not in {mode.value for mode in ProcessingMode}:
            raise ConfigurationError(f"Unknown processing mode: {self.processing_mode}")
        if self.chunk_duration_seconds <= 0:
            raise ConfigurationError("CHUNK_DURATION_SECONDS must be greater than 0")
        if self.target_sample_rate <= 0:
            raise ConfigurationError("TARGET_SAMPLE_RATE must be greater than 0")
        if self.max_retries_per_rung < 0:
            raise ConfigurationError("MAX_RETRIES_PER_RUNG cannot be negative")
        if self.incident_log_limit <= 0:
            raise ConfigurationError("INCIDENT_LOG_LIMIT must be greater than 0")
        for name in ("request_gap_seconds", "retry_delay_seconds", "quota_cooldown_seconds"):
            if getattr(self, name) < 0:
                raise ConfigurationError(f"{name} cannot be negative")

    def _ensure_directories(self):
        """Create the subtitle output directory if it doesn't exist"""
        self.output_path.mkdir(parents=True, exist_ok=True)


def _env_float(name: str, default: str) -> float:
    raw = os.getenv(name, default)
    try:
        return float(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from e


def _env_int(name: str, default: str) -> int:
    raw = os.getenv(name, default)
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from e


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


def load_config(env_file: Optional[str] = None) -> Config:
    """Load configuration from environment variables and .env file"""
    if env_file:
        load_dotenv(env_file)
    else:
        load_dotenv()

    config_data = {
        # API_KEY is accepted for compatibility with the browser build
        "gemini_api_key": os.getenv("GEMINI_API_KEY") or os.getenv("API_KEY", ""),
        "target_language": os.getenv("TARGET_LANGUAGE", "English"),
        "output_path": Path(os.getenv("OUTPUT_PATH", "./data/subtitles")),
        "processing_mode": os.getenv("PROCESSING_MODE", "titan").lower(),
        "chunk_duration_seconds": _env_float("CHUNK_DURATION_SECONDS", "600"),
        "target_sample_rate": _env_int("TARGET_SAMPLE_RATE", "16000"),
        "request_gap_seconds": _env_float("REQUEST_GAP_SECONDS", "12"),
        "retry_delay_seconds": _env_float("RETRY_DELAY_SECONDS", "5"),
        "quota_cooldown_seconds": _env_float("QUOTA_COOLDOWN_SECONDS", "60"),
        "max_retries_per_rung": _env_int("MAX_RETRIES_PER_RUNG", "1"),
        "resume_from_last_rung": _env_bool("RESUME_FROM_LAST_RUNG", "false"),
        "check_connectivity": _env_bool("CHECK_CONNECTIVITY", "true"),
        "incident_log_limit": _env_int("INCIDENT_LOG_LIMIT", "50"),
    }

    return Config(**config_data)

