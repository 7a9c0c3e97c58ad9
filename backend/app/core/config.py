"""
Configuration management.
Loads from config_local.py (gitignored) for secrets, with defaults.
Every key falls back to its default on its own, so a local config only
needs to set what it changes.
"""
from typing import Any, Optional

# Try to import local config (gitignored)
try:
    from app import config_local as _local_config
except ImportError:
    _local_config = None


def _setting(name: str, default: Any) -> Any:
    return getattr(_local_config, name, default)


DATABASE_DSN: str = _setting("DATABASE_DSN", "sqlite:///./report_scheduler.db")
SESSION_COOKIE_NAME: str = _setting("SESSION_COOKIE_NAME", "reportscheduler_session")
SESSION_SECRET: Optional[str] = _setting("SESSION_SECRET", None)
ADMIN_EMAIL: Optional[str] = _setting("ADMIN_EMAIL", None)
ADMIN_PASSWORD_HASH: Optional[str] = _setting("ADMIN_PASSWORD_HASH", None)  # bcrypt hash

# SMTP refuses to send until SMTP_HOST is configured
SMTP_HOST: Optional[str] = _setting("SMTP_HOST", None)
SMTP_PORT: int = _setting("SMTP_PORT", 465)
SMTP_USE_TLS: bool = _setting("SMTP_USE_TLS", False)
SMTP_USE_SSL: bool = _setting("SMTP_USE_SSL", True)
SMTP_USERNAME: Optional[str] = _setting("SMTP_USERNAME", None)
SMTP_PASSWORD: Optional[str] = _setting("SMTP_PASSWORD", None)
SMTP_FROM_EMAIL: Optional[str] = _setting("SMTP_FROM_EMAIL", None)
SMTP_FROM_NAME: str = _setting("SMTP_FROM_NAME", "Scheduled Reports")

# Reports
EXPORT_DIR: str = _setting("EXPORT_DIR", "data/exports")  # system temp dir is the fallback
ADVANCE_WATERMARK_ON_FAILURE: bool = _setting("ADVANCE_WATERMARK_ON_FAILURE", True)
ENABLE_SCHEDULER: bool = _setting("ENABLE_SCHEDULER", True)
RUN_LEASE_TIMEOUT_SECONDS: int = _setting("RUN_LEASE_TIMEOUT_SECONDS", 1800)  # stale leases are taken over
RECONCILE_INTERVAL_SECONDS: int = _setting("RECONCILE_INTERVAL_SECONDS", 60)


def get_settings():
    """Return settings object (for FastAPI dependency injection if needed)."""
    return type("Settings", (), {
        "database_dsn": DATABASE_DSN,
        "session_cookie_name": SESSION_COOKIE_NAME,
        "session_secret": SESSION_SECRET,
        "admin_email": ADMIN_EMAIL,
        "admin_password_hash": ADMIN_PASSWORD_HASH,
        "smtp_host": SMTP_HOST,
        "smtp_port": SMTP_PORT,
        "smtp_use_tls": SMTP_USE_TLS,
        "smtp_use_ssl": SMTP_USE_SSL,
        "smtp_username": SMTP_USERNAME,
        "smtp_password": SMTP_PASSWORD,
        "smtp_from_email": SMTP_FROM_EMAIL,
        "smtp_from_name": SMTP_FROM_NAME,
        "export_dir": EXPORT_DIR,
        "advance_watermark_on_failure": ADVANCE_WATERMARK_ON_FAILURE,
        "enable_scheduler": ENABLE_SCHEDULER,
        "run_lease_timeout_seconds": RUN_LEASE_TIMEOUT_SECONDS,
        "reconcile_interval_seconds": RECONCILE_INTERVAL_SECONDS,
    })()
