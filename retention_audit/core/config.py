"""Core configuration settings.

Centralized configuration using Pydantic Settings for environment
variable management with sensible defaults.
"""

import logging
import os
from functools import lru_cache
from typing import Annotated, Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

logger = logging.getLogger(__name__)

ENVIRONMENT_ALIASES = {
    "development": "dev",
    "develop": "dev",
    "stage": "staging",
    "production": "prod",
    "prd": "prod",
}


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # =========================================================================
    # Environment Detection
    # =========================================================================

    environment: Literal["dev", "staging", "prod"] = Field(
        default=None,
        validate_default=True,
        alias="ENVIRONMENT",
    )

    # Application
    app_name: str = "Diagnostic Retention Compliance Auditor"
    app_version: str = "0.1.0"
    debug: bool = False
    log_level: str = "INFO"

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    # =========================================================================
    # Policy & Reporting
    # =========================================================================

    policy_path: str = Field(default="config/retention-policy.json", alias="POLICY_PATH")
    report_output_dir: str = Field(default="reports", alias="REPORT_OUTPUT_DIR")
    report_review_interval_days: int = Field(default=90, ge=1, alias="REPORT_REVIEW_INTERVAL_DAYS")

    # Comma-separated list of resource kinds that must be present in the policy
    mandatory_resource_kinds: Annotated[list[str], NoDecode] = Field(
        default_factory=list, alias="MANDATORY_RESOURCE_KINDS"
    )

    # Snapshot collection
    snapshot_fetch_concurrency: int = Field(default=8, ge=1, alias="SNAPSHOT_FETCH_CONCURRENCY")
    snapshot_fetch_timeout_seconds: float = Field(
        default=30.0, gt=0, alias="SNAPSHOT_FETCH_TIMEOUT_SECONDS"
    )

    # =========================================================================
    # Azure
    # =========================================================================

    azure_tenant_id: str | None = None
    azure_client_id: str | None = None
    azure_client_secret: str | None = None
    azure_subscription_id: str | None = None

    # Remediation target
    diagnostic_setting_name: str = "retention-compliance"
    log_analytics_workspace_id: str | None = None

    # =========================================================================
    # Validators
    # =========================================================================

    @field_validator("environment", mode="before")
    @classmethod
    def detect_environment(cls, v: str | None) -> str:
        """Normalize environment names, falling back to common env variables."""
        if v:
            v = v.strip().lower()
            return ENVIRONMENT_ALIASES.get(v, v)

        if os.getenv("PRODUCTION") or os.getenv("PROD"):
            return "prod"
        if os.getenv("STAGING"):
            return "staging"

        return "dev"

    @field_validator("mandatory_resource_kinds", mode="before")
    @classmethod
    def parse_mandatory_kinds(cls, v: str | list[str] | None) -> list[str]:
        """Parse mandatory resource kinds from string or list."""
        if v is None:
            return []
        if isinstance(v, str):
            return [kind.strip() for kind in v.split(",") if kind.strip()]
        return v

    @model_validator(mode="after")
    def validate_debug_mode(self):
        """Prevent debug mode in production."""
        if self.environment == "prod" and self.debug:
            logger.error(
                "DEBUG mode cannot be enabled in prod. "
                "Set DEBUG=false or ENVIRONMENT=dev"
            )
            raise ValueError("DEBUG cannot be True in prod environment")
        return self

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def is_production(self) -> bool:
        """Check if running in the prod environment."""
        return self.environment == "prod"

    @property
    def has_service_principal(self) -> bool:
        """Check if explicit service principal credentials are present."""
        return all([
            self.azure_tenant_id,
            self.azure_client_id,
            self.azure_client_secret,
        ])


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
