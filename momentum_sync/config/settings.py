"""
PURPOSE: Configuration settings for the momentum-sync webhook service.

This module uses Pydantic Settings to manage configuration from environment
variables and .env files. All settings are validated and typed.
"""

from pydantic_settings import BaseSettings

# Accepted values for SIGNAL_POLICY
SIGNAL_POLICIES = ("free_text", "enumerated")


class Settings(BaseSettings):
    """
    PURPOSE: Central configuration class for momentum-sync.

    Manages the local database connection, indicator validation policy,
    Google Sheets mirror settings, and inbound rate limiting. Settings are
    loaded from environment variables and .env file.
    """

    # Database Configuration
    DATABASE_URL: str = "sqlite+aiosqlite:////data/stockmomentum.db"
    AUTO_MIGRATE: bool = True
    ALEMBIC_INI: str = "alembic.ini"

    # Indicator Validation
    # PRIMARY_INDICATOR is the column whose changes stamp signal_changed_at.
    PRIMARY_INDICATOR: str = "signal"
    # free_text accepts any non-empty value; enumerated restricts to ALLOWED_SIGNALS
    SIGNAL_POLICY: str = "free_text"
    ALLOWED_SIGNALS: str = "buy,sell,hold"

    # Google Sheets Mirror
    # Leave SPREADSHEET_ID empty to run without the external mirror.
    SPREADSHEET_ID: str = ""
    SHEET_NAME: str = "Sheet2"
    GOOGLE_CREDS_BASE64: str = ""
    GOOGLE_CREDENTIALS_FILE: str = "credentials.json"
    SHEETS_TIMEOUT_SECONDS: float = 15.0

    # Inbound Webhook
    WEBHOOK_RATE_LIMIT: str = "120/minute"
    RATE_LIMIT_ENABLED: bool = True

    # System Settings
    APP_ENV: str = "development"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    PORT: int = 8090

    def is_production(self) -> bool:
        """
        PURPOSE: Determine whether the app is running in production mode.

        Returns:
            bool: True when APP_ENV indicates production.
        """
        return self.APP_ENV.strip().lower() in {"prod", "production"}

    def allowed_signals(self) -> frozenset[str]:
        """
        PURPOSE: Parse ALLOWED_SIGNALS into a case-folded set.

        Returns:
            frozenset[str]: Accepted signal values under the enumerated policy.
        """
        return frozenset(
            item.strip().casefold()
            for item in self.ALLOWED_SIGNALS.split(",")
            if item.strip()
        )

    def sheets_enabled(self) -> bool:
        """
        PURPOSE: Whether the Google Sheets mirror is configured.

        Returns:
            bool: True when a spreadsheet id has been provided.
        """
        return bool(self.SPREADSHEET_ID.strip())

    def validate_policy(self) -> None:
        """
        PURPOSE: Enforce that indicator validation settings name known values.

        CALLED BY: Application startup (create_app).

        Raises:
            ValueError: If PRIMARY_INDICATOR or SIGNAL_POLICY is not recognised.
        """
        from momentum_sync.models.indicators import Indicator

        if self.PRIMARY_INDICATOR not in Indicator.values():
            raise ValueError(
                f"PRIMARY_INDICATOR must be one of {', '.join(Indicator.values())}, "
                f"got '{self.PRIMARY_INDICATOR}'"
            )
        if self.SIGNAL_POLICY not in SIGNAL_POLICIES:
            raise ValueError(
                f"SIGNAL_POLICY must be one of {', '.join(SIGNAL_POLICIES)}, "
                f"got '{self.SIGNAL_POLICY}'"
            )
        if self.SIGNAL_POLICY == "enumerated" and not self.allowed_signals():
            raise ValueError("ALLOWED_SIGNALS must not be empty under the enumerated policy")

    class Config:
        """Pydantic model configuration."""

        env_file: str = ".env"
        env_file_encoding: str = "utf-8"
        case_sensitive: bool = True


settings: Settings = Settings()
