"""
=============================================================================
APPLICATION CONFIGURATION
=============================================================================

All settings in one dataclass, read from the environment at startup and
validated before anything is built:

    config = AppConfig.from_env()
    config.validate()
    app = create_app(config)

=============================================================================
ENVIRONMENT VARIABLES
=============================================================================

    APP_NAME              Application name             (pressframe)
    APP_ENV               production | development | local | testing
    APP_DEBUG             Show tracebacks on 500       (false)
    APP_TIMEZONE          Display timezone             (UTC)
    APP_HOST / APP_PORT   Dev server bind address      (127.0.0.1:8000)
    APP_MIDDLEWARE        Extra global middleware, space separated ("csrf throttle:100,60")

    DB_URL                SQLAlchemy database URL      (sqlite:///pressframe.db)
    DB_POOL_SIZE          Connection pool size         (5)
    DB_ECHO               Echo SQL through logging     (false)

    LOG_LEVEL             DEBUG | INFO | WARNING | ERROR | CRITICAL
    LOG_FORMAT            Access log format: text | json
    LOG_FILE              Error log file               (storage/logs/app.log)

    ADMIN_SLUG            Secret admin path segment    (/admin/<slug>/...)
    ADMIN_USERNAME        Admin login name
    ADMIN_PASSWORD        Admin password

    SESSION_COOKIE        Session cookie name          (pressframe_session)
    SESSION_LIFETIME      Idle lifetime in seconds     (7200)

    UPLOAD_DIR            Media upload directory       (storage/uploads)
    UPLOAD_MAX_BYTES      Largest accepted upload      (10485760)

=============================================================================
"""

from dataclasses import dataclass, field
from typing import List, Optional
import os


LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
LOG_FORMATS = ("text", "json")


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_words(name: str) -> List[str]:
    value = os.getenv(name, "")
    return value.split()


@dataclass
class AppConfig:
    # ─────────────────────────────────────────────────────────────────────
    # APPLICATION
    # ─────────────────────────────────────────────────────────────────────

    name: str = "pressframe"

    env: str = "production"
    """
    Deployment environment. "development" and "local" relax the
    Content-Security-Policy for the Vite dev server.
    """

    debug: bool = False
    """Render exception details in 500 responses. Never in production."""

    timezone: str = "UTC"

    host: str = "127.0.0.1"
    port: int = 8000

    # ─────────────────────────────────────────────────────────────────────
    # DATABASE
    # ─────────────────────────────────────────────────────────────────────

    database_url: str = "sqlite:///pressframe.db"
    database_pool_size: int = 5
    database_echo: bool = False

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"
    log_format: str = "text"

    log_file: Optional[str] = "storage/logs/app.log"
    """Append-only error log. None keeps errors on the console only."""

    # ─────────────────────────────────────────────────────────────────────
    # ADMIN / SESSION
    # ─────────────────────────────────────────────────────────────────────

    admin_slug: str = "admin"
    admin_username: str = ""
    admin_password: str = ""

    session_cookie: str = "pressframe_session"
    session_lifetime: int = 7200

    # ─────────────────────────────────────────────────────────────────────
    # MEDIA
    # ─────────────────────────────────────────────────────────────────────

    upload_dir: str = "storage/uploads"
    """Root of the media library; images/ and documents/ live under it."""

    upload_max_bytes: int = 10 * 1024 * 1024

    middleware: List[str] = field(default_factory=list)
    """Global middleware aliases added after the built-in ones."""

    @property
    def is_development(self) -> bool:
        return self.env in ("development", "local")

    @classmethod
    def from_env(cls) -> "AppConfig":
        return cls(
            name=os.getenv("APP_NAME", "pressframe"),
            env=os.getenv("APP_ENV", "production"),
            debug=_env_bool("APP_DEBUG", False),
            timezone=os.getenv("APP_TIMEZONE", "UTC"),
            host=os.getenv("APP_HOST", "127.0.0.1"),
            port=int(os.getenv("APP_PORT", "8000")),
            database_url=os.getenv("DB_URL", "sqlite:///pressframe.db"),
            database_pool_size=int(os.getenv("DB_POOL_SIZE", "5")),
            database_echo=_env_bool("DB_ECHO", False),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            log_format=os.getenv("LOG_FORMAT", "text"),
            log_file=os.getenv("LOG_FILE", "storage/logs/app.log") or None,
            admin_slug=os.getenv("ADMIN_SLUG", "admin"),
            admin_username=os.getenv("ADMIN_USERNAME", ""),
            admin_password=os.getenv("ADMIN_PASSWORD", ""),
            session_cookie=os.getenv("SESSION_COOKIE", "pressframe_session"),
            session_lifetime=int(os.getenv("SESSION_LIFETIME", "7200")),
            upload_dir=os.getenv("UPLOAD_DIR", "storage/uploads"),
            upload_max_bytes=int(os.getenv("UPLOAD_MAX_BYTES", str(10 * 1024 * 1024))),
            middleware=_env_words("APP_MIDDLEWARE"),
        )

    def validate(self) -> None:
        """Fail fast on settings that would only break at first use."""
        if not 0 < self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 1-65535.")
        if self.log_level.upper() not in LOG_LEVELS:
            raise ValueError(f"Invalid log level: {self.log_level}")
        if self.log_format not in LOG_FORMATS:
            raise ValueError(f"Invalid log format: {self.log_format}. Must be text or json.")
        if not self.database_url:
            raise ValueError("database_url must not be empty")
        if self.database_pool_size < 1:
            raise ValueError("database_pool_size must be >= 1")
        if self.session_lifetime <= 0:
            raise ValueError("session_lifetime must be > 0")
        if not self.admin_slug or "/" in self.admin_slug:
            raise ValueError(f"Invalid admin slug: {self.admin_slug!r}")
        if not self.upload_dir:
            raise ValueError("upload_dir must not be empty")
        if self.upload_max_bytes < 1:
            raise ValueError("upload_max_bytes must be >= 1")
