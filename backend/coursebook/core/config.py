# backend/coursebook/core/config.py
import logging
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def is_running_tests() -> bool:
    """
    Detect if code is running under pytest.

    PYTEST_CURRENT_TEST is set automatically by pytest during test runs, and is
    not expected to be present in production environments.
    """
    return os.getenv("PYTEST_CURRENT_TEST") is not None


logger = logging.getLogger(__name__)

# Load .env file only if not in CI
if not os.getenv("CI"):
    env_path = Path(__file__).parent.parent.parent / ".env"  # Goes up to backend/.env
    logger.debug(f"[CONFIG] Looking for .env at: {env_path}")
    load_dotenv(env_path)


_DEV_SECRET_KEY = "coursebook-dev-secret-key-not-for-production"

PRODUCTION_ENVIRONMENTS = {"prod", "production"}


class Settings(BaseSettings):
    environment: str = Field(default="development", description="Deployment environment name")
    is_testing: bool = False  # Set to True when running tests

    # Auth (token issuing lives outside this service; we only verify)
    secret_key: SecretStr = Field(
        default=SecretStr(_DEV_SECRET_KEY),
        description="Secret key used to verify HS256 bearer tokens",
    )
    algorithm: str = "HS256"

    # Database
    database_url: str = Field(
        default="sqlite:///./coursebook.db",
        description="SQLAlchemy database URL",
    )
    sql_echo: bool = False
    db_pool_size: int = 5
    db_max_overflow: int = 10
    sqlite_busy_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="How long a SQLite writer waits for the database lock before failing",
    )

    # Allocation rules
    conflict_window_minutes: int = Field(
        default=60,
        ge=0,
        description="Half-width of the per-party conflict window around a class start time",
    )
    default_class_duration_minutes: int = Field(default=60, gt=0)
    allocation_max_attempts: int = Field(
        default=2,
        ge=1,
        description="Attempts for an allocation that hits a deadlock or serialization failure",
    )
    enforce_conflicts_on_bulk: bool = Field(
        default=True,
        description="Run the slot conflict check for every bulk allocation row",
    )
    enforce_conflicts_on_reschedule: bool = Field(
        default=True,
        description="Re-run the slot conflict check when a schedule's date or time changes",
    )
    enrollment_expiry_days: int = 30

    # Google Calendar / Meet provisioning
    google_client_email: Optional[str] = None
    google_private_key: Optional[SecretStr] = None
    google_token_uri: str = "https://oauth2.googleapis.com/token"
    google_shared_email: str = "lms@techfreak.info"
    google_calendar_base_url: str = "https://www.googleapis.com/calendar/v3"
    meeting_timezone: str = "Asia/Kolkata"
    meeting_duration_minutes: int = Field(default=60, gt=0)
    meeting_timeout_seconds: float = 10.0

    log_level: str = "INFO"

    # Use ConfigDict instead of Config class (Pydantic V2 style)
    model_config = SettingsConfigDict(
        env_file=".env" if not os.getenv("CI") else None,
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("google_private_key", mode="before")
    @classmethod
    def _unescape_private_key(cls, value: object) -> object:
        # Keys stored in env files carry literal "\n" sequences
        if isinstance(value, str):
            return value.replace("\\n", "\n")
        return value

    @model_validator(mode="after")
    def _refuse_dev_secret_in_production(self) -> "Settings":
        if (
            self.environment.strip().lower() in PRODUCTION_ENVIRONMENTS
            and self.secret_key.get_secret_value() == _DEV_SECRET_KEY
        ):
            raise ValueError("Refusing to start: SECRET_KEY must be set in production")
        return self

    @property
    def meeting_provisioning_configured(self) -> bool:
        """Whether Google service account credentials are present."""
        return bool(self.google_client_email and self.google_private_key)

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")


settings = Settings()
if is_running_tests():
    settings.is_testing = True
