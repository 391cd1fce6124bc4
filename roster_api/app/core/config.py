"""
Configuration for the Volunteer Roster API.

All values are read from environment variables when this module is
imported.  The ``Settings`` dataclass keeps the configuration in one
place so that services, the notifier and the database layer share a
single view of it.  Environment variables must therefore be set
before the first import of ``roster_api.app.core.config``.
"""

import os
from dataclasses import dataclass


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in {"1", "true", "yes"}


@dataclass
class Settings:
    """Application settings loaded from environment variables."""

    project_name: str = os.getenv("PROJECT_NAME", "Volunteer Roster API")
    api_version: str = os.getenv("API_VERSION", "1.0.0")
    debug: bool = _env_bool("DEBUG", "false")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    # Optional path of a log file; console logging is always enabled.
    log_file: str = os.getenv("LOG_FILE", "")

    secret_key: str = os.getenv("SECRET_KEY", "change_me")
    access_token_expire_minutes: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", str(60 * 24)))

    # Path of the SQLite database file.  Relative paths are resolved
    # against the package root by ``core.db``.
    database_url: str = os.getenv("DATABASE_URL", "roster.db")

    # Outbound e-mail (SMTP).  When ``smtp_host`` is empty e-mail
    # delivery is reported as failed and logged, never raised.
    smtp_host: str = os.getenv("SMTP_HOST", "")
    smtp_port: int = int(os.getenv("SMTP_PORT", "587"))
    smtp_user: str = os.getenv("SMTP_USER", "")
    smtp_password: str = os.getenv("SMTP_PASSWORD", "")
    smtp_use_tls: bool = _env_bool("SMTP_USE_TLS", "true")
    email_from: str = os.getenv("EMAIL_FROM", "roster@localhost")

    # Outbound SMS through a Twilio-compatible REST API.
    sms_account_sid: str = os.getenv("SMS_ACCOUNT_SID", "")
    sms_auth_token: str = os.getenv("SMS_AUTH_TOKEN", "")
    sms_from_number: str = os.getenv("SMS_FROM_NUMBER", "")
    sms_api_base: str = os.getenv("SMS_API_BASE", "https://api.twilio.com/2010-04-01")
    sms_timeout_seconds: float = float(os.getenv("SMS_TIMEOUT_SECONDS", "10"))

    # Switch off e-mail/SMS entirely (internal notification records are
    # still written).
    notifications_enabled: bool = _env_bool("NOTIFICATIONS_ENABLED", "true")
    notification_history_limit: int = int(os.getenv("NOTIFICATION_HISTORY_LIMIT", "50"))


# Instantiate settings once so other modules can import it without
# repeatedly reading environment variables.
settings = Settings()
