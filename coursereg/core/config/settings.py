# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Application configuration settings using Pydantic Settings.

Settings are loaded from environment variables (and an optional .env file)
with defaults suitable for local development. The Settings class aggregates
one subsettings class per concern, each with its own environment prefix.

Example:
    >>> from coursereg.core.config.settings import get_settings
    >>> settings = get_settings()
    >>> settings.registration.min_reason_length
    10
"""

from functools import lru_cache
from typing import Literal, Self

from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_DB_PASSWORD = "coursereg_password"


class DatabaseSettings(BaseSettings):
    """Enrollment store configuration.

    Attributes:
        user: PostgreSQL username.
        password: PostgreSQL password.
        host: Database host address.
        port: Database port number.
        database: Database name.
        url_override: Full async connection URL. When set it replaces the
            URL built from components (used for SQLite deployments).
        pool_size: Connection pool size.
        max_overflow: Maximum overflow connections.
        echo: Echo SQL statements to the log.
        busy_timeout: Seconds a SQLite writer waits for the database lock.
    """

    model_config = SettingsConfigDict(
        env_prefix="DB_",
        extra="ignore",
        populate_by_name=True,
    )

    user: str = "coursereg"
    password: SecretStr = SecretStr(DEFAULT_DB_PASSWORD)
    host: str = "localhost"
    port: int = 5432
    database: str = "coursereg"
    url_override: str | None = Field(default=None, validation_alias="DATABASE_URL")
    pool_size: int = 10
    max_overflow: int = 20
    echo: bool = False
    busy_timeout: float = 30.0

    @property
    def url(self) -> str:
        """Build the async database URL from components."""
        if self.url_override:
            return self.url_override
        pwd = self.password.get_secret_value()
        return f"postgresql+asyncpg://{self.user}:{pwd}@{self.host}:{self.port}/{self.database}"

    @property
    def sync_url(self) -> str:
        """Build the sync database URL for migrations."""
        if self.url_override:
            return self.url_override.replace("+asyncpg", "").replace("+aiosqlite", "")
        pwd = self.password.get_secret_value()
        return f"postgresql://{self.user}:{pwd}@{self.host}:{self.port}/{self.database}"

    @property
    def is_sqlite(self) -> bool:
        """Check if the configured store is SQLite."""
        return self.url.startswith("sqlite")


class RegistrationSettings(BaseSettings):
    """Registration workflow rules.

    Attributes:
        min_reason_length: Minimum characters in a manual-join or drop reason.
        max_reason_length: Maximum characters in a manual-join or drop reason.
    """

    model_config = SettingsConfigDict(
        env_prefix="REGISTRATION_",
        extra="ignore",
    )

    min_reason_length: int = Field(default=10, ge=1)
    max_reason_length: int = Field(default=500, ge=1)

    @model_validator(mode="after")
    def validate_reason_bounds(self) -> Self:
        """Reject a maximum below the minimum."""
        if self.max_reason_length < self.min_reason_length:
            raise ValueError("max_reason_length must be >= min_reason_length")
        return self


class SMTPSettings(BaseSettings):
    """SMTP configuration for student notifications.

    Attributes:
        host: SMTP server host. Empty disables email delivery.
        port: SMTP server port.
        username: SMTP login.
        password: SMTP password.
        use_tls: Use implicit TLS.
        start_tls: Upgrade the connection with STARTTLS.
        from_email: Sender address.
        from_name: Sender display name.
        timeout: Connection timeout in seconds.
    """

    model_config = SettingsConfigDict(
        env_prefix="SMTP_",
        extra="ignore",
    )

    host: str = ""
    port: int = 587
    username: str = ""
    password: SecretStr = SecretStr("")
    use_tls: bool = False
    start_tls: bool = True
    from_email: str = "registrar@example.edu"
    from_name: str = "Course Registration"
    timeout: float = 30.0

    @property
    def is_configured(self) -> bool:
        """Check whether enough is set to attempt delivery."""
        return bool(self.host and self.from_email)


class APISettings(BaseSettings):
    """API server configuration.

    Attributes:
        host: Host to bind to.
        port: Port to listen on.
    """

    model_config = SettingsConfigDict(
        env_prefix="API_",
        extra="ignore",
    )

    host: str = "0.0.0.0"
    port: int = 8000


class Settings(BaseSettings):
    """Main application settings aggregating all subsettings.

    Use get_settings() to obtain a cached singleton instance.

    Attributes:
        environment: Current environment (development, staging, production).
        debug: Enable debug mode.
        log_level: Logging level.
        database: Enrollment store settings.
        registration: Registration workflow rules.
        smtp: Notification email settings.
        api: API server settings.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    environment: Literal["development", "staging", "production"] = "development"
    debug: bool = True
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "DEBUG"

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    registration: RegistrationSettings = Field(default_factory=RegistrationSettings)
    smtp: SMTPSettings = Field(default_factory=SMTPSettings)
    api: APISettings = Field(default_factory=APISettings)

    @model_validator(mode="after")
    def validate_production_settings(self) -> Self:
        """Validate that production settings are properly configured.

        Raises:
            ValueError: If running in production with insecure defaults.
        """
        if self.environment == "production" and not self.database.url_override:
            if self.database.password.get_secret_value() == DEFAULT_DB_PASSWORD:
                raise ValueError(
                    "Database password must be changed from default in production. "
                    "Set DB_PASSWORD environment variable."
                )
        return self

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance.

    Call clear_settings_cache() if you need to reload settings.

    Returns:
        Cached Settings instance.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache so the next get_settings() re-reads the env."""
    get_settings.cache_clear()
