# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Application configuration settings using Pydantic Settings.

Settings are loaded from environment variables with sensible defaults.
The Settings class aggregates all subsettings and a cached instance is
provided via get_settings() for dependency injection.

Example:
    >>> from src.core.config.settings import get_settings
    >>> settings = get_settings()
    >>> settings.notifications.channel_timeout_seconds
    20.0
"""

from functools import lru_cache
from typing import Literal, Self

from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """Application database configuration.

    Attributes:
        user: PostgreSQL username.
        password: PostgreSQL password.
        host: Database host address.
        port: Database port number.
        database: Database name.
        pool_size: Connection pool size.
        max_overflow: Maximum overflow connections.
        echo: Log every SQL statement.
        dsn: Full SQLAlchemy URL. Overrides the components when set,
            e.g. sqlite+aiosqlite:///./vac.db for local development.
    """

    model_config = SettingsConfigDict(
        env_prefix="DB_",
        extra="ignore",
    )

    user: str = "vac"
    password: SecretStr = SecretStr("vac_password")
    host: str = "localhost"
    port: int = 5432
    database: str = "vac_school"
    pool_size: int = 10
    max_overflow: int = 20
    echo: bool = False
    dsn: str | None = None

    @property
    def url(self) -> str:
        """Async database URL, from DB_DSN or the components."""
        if self.dsn:
            return self.dsn
        pwd = self.password.get_secret_value()
        return f"postgresql+asyncpg://{self.user}:{pwd}@{self.host}:{self.port}/{self.database}"


class JWTSettings(BaseSettings):
    """JWT verification configuration.

    Tokens are issued by the authentication service; this application
    only verifies them.

    Attributes:
        secret_key: Secret key used to verify token signatures.
        algorithm: JWT signing algorithm.
    """

    model_config = SettingsConfigDict(
        env_prefix="JWT_",
        extra="ignore",
    )

    secret_key: SecretStr = SecretStr("change-this-in-production")
    algorithm: str = "HS256"


class SMTPSettings(BaseSettings):
    """SMTP configuration for the email channel.

    Attributes:
        host: SMTP server hostname.
        port: SMTP server port.
        username: SMTP authentication username.
        password: SMTP authentication password.
        use_tls: Use STARTTLS.
        from_email: Sender email address.
        from_name: Sender display name.
    """

    model_config = SettingsConfigDict(
        env_prefix="SMTP_",
        extra="ignore",
    )

    host: str | None = None
    port: int = 587
    username: str | None = None
    password: SecretStr | None = None
    use_tls: bool = True
    from_email: str | None = None
    from_name: str = "Escuela de Música VAC"

    @property
    def is_configured(self) -> bool:
        """Check that every value needed to send mail is present."""
        return all([self.host, self.username, self.password, self.from_email])


class WhatsAppSettings(BaseSettings):
    """WhatsApp transport configuration.

    Two transports are tried in order: the WhatsApp Web session gateway
    (a sidecar that keeps an authenticated WhatsApp Web session open) and
    the WhatsApp Business Cloud API.

    Attributes:
        web_gateway_url: Base URL of the WhatsApp Web session gateway.
        web_gateway_token: Bearer token for the gateway.
        cloud_api_url: Base URL of the Graph API.
        cloud_phone_number_id: Business phone number ID.
        cloud_access_token: Graph API access token.
    """

    model_config = SettingsConfigDict(
        env_prefix="WHATSAPP_",
        extra="ignore",
    )

    web_gateway_url: str | None = "http://localhost:3001"
    web_gateway_token: SecretStr | None = None
    cloud_api_url: str = "https://graph.facebook.com/v18.0"
    cloud_phone_number_id: str | None = None
    cloud_access_token: SecretStr | None = None

    @property
    def cloud_configured(self) -> bool:
        """Check if the Cloud API fallback has credentials."""
        return bool(self.cloud_phone_number_id and self.cloud_access_token)


class NotificationSettings(BaseSettings):
    """Notification fan-out configuration.

    Attributes:
        channel_timeout_seconds: Deadline applied to every outbound
            channel call (SMTP send, each WhatsApp transport attempt).
        school_name: Name used in email and WhatsApp envelopes.
        recipient_fallback_name: Substituted for {{nombre}} when the
            recipient has no display name.
        default_country_code: Prefix for phone numbers without one.
    """

    model_config = SettingsConfigDict(
        env_prefix="NOTIFY_",
        extra="ignore",
    )

    channel_timeout_seconds: float = Field(default=20.0, gt=0, le=120)
    school_name: str = "Escuela de Música VAC"
    recipient_fallback_name: str = "Estudiante"
    default_country_code: str = "+34"


class CORSSettings(BaseSettings):
    """CORS configuration for the API.

    Attributes:
        origins: Comma-separated list of allowed origins.
        allow_credentials: Whether to allow credentials.
        allow_methods: Allowed HTTP methods.
        allow_headers: Allowed HTTP headers.
    """

    model_config = SettingsConfigDict(
        env_prefix="CORS_",
        extra="ignore",
    )

    origins: str = "http://localhost:3000,http://localhost:5173"
    allow_credentials: bool = True
    allow_methods: list[str] = ["*"]
    allow_headers: list[str] = ["*"]

    @property
    def origins_list(self) -> list[str]:
        """Parse origins string into a list."""
        return [origin.strip() for origin in self.origins.split(",") if origin.strip()]


class Settings(BaseSettings):
    """Main application settings aggregating all subsettings.

    Use get_settings() to obtain a cached singleton instance.

    Attributes:
        environment: Current environment (development, staging, production).
        debug: Enable debug mode.
        log_level: Logging level.
        database: Database settings.
        jwt: JWT verification settings.
        smtp: SMTP settings.
        whatsapp: WhatsApp transport settings.
        notifications: Notification fan-out settings.
        cors: CORS settings.
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
    jwt: JWTSettings = Field(default_factory=JWTSettings)
    smtp: SMTPSettings = Field(default_factory=SMTPSettings)
    whatsapp: WhatsAppSettings = Field(default_factory=WhatsAppSettings)
    notifications: NotificationSettings = Field(default_factory=NotificationSettings)
    cors: CORSSettings = Field(default_factory=CORSSettings)

    @model_validator(mode="after")
    def validate_production_settings(self) -> Self:
        """Validate that production settings are properly configured.

        Raises:
            ValueError: If running in production with insecure defaults.
        """
        if self.environment == "production":
            default_jwt_secret = "change-this-in-production"
            if self.jwt.secret_key.get_secret_value() == default_jwt_secret:
                raise ValueError(
                    "JWT secret key must be changed from default in production. "
                    "Set JWT_SECRET_KEY environment variable."
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
    """Clear the settings cache.

    Useful for testing or dynamic configuration updates.
    """
    get_settings.cache_clear()
