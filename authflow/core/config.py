import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

DEFAULT_JWT_SECRET = "change-me"
_DEVELOPMENT_ENVIRONMENTS = {"development", "dev", "local", "test"}


class Settings:
    """Centralised application configuration sourced from environment variables."""

    def __init__(self) -> None:
        load_dotenv()
        self.environment = os.getenv("APP_ENV", "production").strip().lower()
        self.database_path = Path(os.getenv("DATABASE_PATH", "data/authflow.db")).resolve()
        self.jwt_secret = os.getenv("JWT_SECRET", DEFAULT_JWT_SECRET)
        self.jwt_algorithm = os.getenv("JWT_ALGORITHM", "HS256")
        self.jwt_expires_days = self._get_int("JWT_EXPIRES_DAYS", default=7)
        self.code_length = self._get_int("CODE_LENGTH", default=6)
        self.code_expires_minutes = self._get_int("CODE_EXPIRES_MIN", default=15)
        self.bcrypt_rounds = self._get_int("BCRYPT_ROUNDS", default=12)
        self.login_max_attempts = self._get_int("LOGIN_MAX_ATTEMPTS", default=5)
        self.lock_minutes = self._get_int("LOCK_MINUTES", default=30)
        self.code_purge_interval_seconds = self._get_int("CODE_PURGE_INTERVAL_SECONDS", default=300)
        self.throttle_enabled = self._get_bool("THROTTLE_ENABLED", default=True)
        self.smtp_host = os.getenv("SMTP_HOST", "")
        self.smtp_port = self._get_int("SMTP_PORT", default=587)
        self.smtp_username = os.getenv("SMTP_USERNAME", "")
        self.smtp_password = os.getenv("SMTP_PASSWORD", "")
        self.smtp_from_email = os.getenv("SMTP_FROM_EMAIL", "")
        self.smtp_from_name = os.getenv("SMTP_FROM_NAME", "Authflow")
        origins = os.getenv("CORS_ALLOW_ORIGINS")
        if origins:
            self.cors_allow_origins = [item.strip() for item in origins.split(",") if item.strip()]
        else:
            self.cors_allow_origins = ["*"]

        if self.is_production and self.jwt_secret == DEFAULT_JWT_SECRET:
            raise RuntimeError("JWT_SECRET must be configured in production.")

    @property
    def is_production(self) -> bool:
        return self.environment not in _DEVELOPMENT_ENVIRONMENTS

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    @staticmethod
    def _get_int(key: str, default: Optional[int] = None) -> int:
        value = os.getenv(key)
        if value is None:
            if default is None:
                raise RuntimeError(f"Missing required environment variable: {key}")
            return default
        try:
            return int(value)
        except ValueError as exc:
            raise RuntimeError(f"Environment variable {key} must be an integer") from exc

    @staticmethod
    def _get_bool(key: str, default: bool) -> bool:
        value = os.getenv(key)
        if value is None:
            return default
        normalized = value.strip().lower()
        if normalized in {"1", "true", "yes", "on"}:
            return True
        if normalized in {"0", "false", "no", "off"}:
            return False
        raise RuntimeError(f"Environment variable {key} must be a boolean")
