"""Configuration settings for the subscription mirror.

Wraps environment variables and provides defaults.
"""

from typing import Optional

from pydantic import Field, PostgresDsn, ValidationInfo, field_validator
from pydantic_settings import BaseSettings

from subscription_mirror.core.sync_config import ProrationMode, SyncConfig


class Settings(BaseSettings):
    """Pydantic settings class.

    Attributes:
    ----------
        PROJECT_NAME (str): The name of the project.
        LOCAL_DEVELOPMENT (bool): Whether the application is running locally.
        ENVIRONMENT (str): The deployment environment (local, dev, test, prod).
        DEBUG (bool): Whether debug mode is enabled.
        LOG_LEVEL (str): The logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        STRIPE_SECRET_KEY (Optional[str]): The Stripe secret API key.
        STRIPE_WEBHOOK_SECRET (Optional[str]): The Stripe webhook signing secret.
        POSTGRES_HOST (str): The PostgreSQL server hostname.
        POSTGRES_DB (str): The PostgreSQL database name.
        POSTGRES_USER (str): The PostgreSQL username.
        POSTGRES_PASSWORD (str): The PostgreSQL password.
        SQLALCHEMY_ASYNC_DATABASE_URI (Optional[str]): The SQLAlchemy async database URI.
        MIRROR_TABLE (str): Table holding the mirror records.
        MIRROR_IDENTITY_FIELD (str): Column holding the identity (email).
        MIRROR_STATUS_FIELD (str): Column holding the subscription status.
        MIRROR_PLAN_FIELD (str): Column holding the plan (price) identifier.
        MIRROR_TRIAL_FIELDS (bool): Whether trial flag/start/end are mirrored.
        MIRROR_PRESERVE_TRIAL_PERIODS (bool): Carry remaining trial days across plan changes.
        MIRROR_AUTO_CREATE (bool): Create a mirror record when an update misses.
        MIRROR_PRORATION_DEFAULT (Optional[ProrationMode]): Proration used when the caller
            gives none; direction-based when unset.
    """

    PROJECT_NAME: str = "Subscription Mirror"
    LOCAL_DEVELOPMENT: bool = False
    ENVIRONMENT: str = "local"

    # Debug configuration
    DEBUG: bool = False

    # Logging configuration
    LOG_LEVEL: str = "INFO"

    STRIPE_SECRET_KEY: Optional[str] = None
    STRIPE_WEBHOOK_SECRET: Optional[str] = None

    POSTGRES_HOST: str = "localhost"
    POSTGRES_DB: str = "subscription_mirror"
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = ""
    SQLALCHEMY_ASYNC_DATABASE_URI: Optional[str] = Field(default=None, validate_default=True)

    # Mirror table layout and sync policy
    MIRROR_TABLE: str = "users"
    MIRROR_IDENTITY_FIELD: str = "email"
    MIRROR_STATUS_FIELD: str = "subscription_status"
    MIRROR_PLAN_FIELD: str = "plan"
    MIRROR_TRIAL_FIELDS: bool = False
    MIRROR_PRESERVE_TRIAL_PERIODS: bool = False
    MIRROR_AUTO_CREATE: bool = False
    MIRROR_PRORATION_DEFAULT: Optional[ProrationMode] = None

    @field_validator("SQLALCHEMY_ASYNC_DATABASE_URI", mode="before")
    def assemble_db_connection(cls, v: Optional[str], info: ValidationInfo) -> str:
        """Build the SQLAlchemy database URI.

        Args:
        ----
            v (Optional[str]): The value of the SQLALCHEMY_ASYNC_DATABASE_URI setting.
            info (ValidationInfo): The validation context containing all field values.

        Returns:
        -------
            str: The assembled SQLAlchemy async database URI.

        """
        if isinstance(v, str):
            return v

        return str(
            PostgresDsn.build(
                scheme="postgresql+asyncpg",
                username=info.data.get("POSTGRES_USER"),
                password=info.data.get("POSTGRES_PASSWORD") or None,
                host=info.data.get("POSTGRES_HOST", "localhost"),
                path=f"{info.data.get('POSTGRES_DB') or ''}",
            )
        )

    def sync_config(self) -> SyncConfig:
        """Build the validated sync configuration from the mirror settings.

        Raises:
            ConfigInvalid: If the mirror settings do not form a valid configuration.
        """
        return SyncConfig.from_mapping(
            {
                "table": self.MIRROR_TABLE,
                "identityField": self.MIRROR_IDENTITY_FIELD,
                "statusField": self.MIRROR_STATUS_FIELD,
                "planField": self.MIRROR_PLAN_FIELD,
                "trialFieldsMirrored": self.MIRROR_TRIAL_FIELDS,
                "preserveTrialPeriods": self.MIRROR_PRESERVE_TRIAL_PERIODS,
                "autoCreateOnMiss": self.MIRROR_AUTO_CREATE,
                "prorationBehaviorDefault": self.MIRROR_PRORATION_DEFAULT,
                "debug": self.DEBUG,
            }
        )


settings = Settings()
