"""Application settings loaded from environment variables."""
import os
from functools import lru_cache
from typing import List, Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(RuntimeError):
    """Raised when required configuration is missing at startup."""


class Settings(BaseSettings):
    """Settings for the NIV onboarding service."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # PointClickCare credentials and transport
    pcc_client_id: Optional[str] = Field(default=None, validation_alias="PCC_CLIENT_ID")
    pcc_client_secret: Optional[str] = Field(default=None, validation_alias="PCC_CLIENT_SECRET")
    pcc_cert_path: str = Field(
        default="~/dev/certs/pcc/fullchain.pem",
        validation_alias="PCC_CERT_PATH",
    )
    pcc_key_path: str = Field(
        default="~/dev/certs/pcc/privkey.pem",
        validation_alias="PCC_KEY_PATH",
    )
    pcc_base_url: str = Field(
        default="https://connect2.pointclickcare.com",
        validation_alias="PCC_BASE_URL",
    )
    pcc_api_prefix: str = Field(default="/api/public/preview1", validation_alias="PCC_API_PREFIX")
    pcc_org_uuid: Optional[str] = Field(default=None, validation_alias="PCC_ORG_UUID")
    pcc_timeout_ms: int = Field(default=30000, validation_alias="PCC_TIMEOUT")
    token_refresh_buffer_seconds: int = 300

    # Which EHR source backs the service
    ehr_mode: Literal["pcc", "mock"] = Field(default="pcc", validation_alias="EHR_MODE")

    # Persistence
    database_url: str = Field(
        default="sqlite+aiosqlite:///./niv_onboarding.db",
        validation_alias="DATABASE_URL",
    )
    persistence: Literal["sql", "memory"] = Field(default="sql", validation_alias="PERSISTENCE")

    # Eligibility rules
    rule_table_version: str = Field(default="clinical-v1", validation_alias="RULE_TABLE_VERSION")

    # Logging
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    json_logs: bool = Field(default=True, validation_alias="JSON_LOGS")

    # API
    cors_origins: List[str] = Field(
        default_factory=lambda: ["http://localhost:4200"],
        validation_alias="CORS_ORIGINS",
    )

    @field_validator("pcc_cert_path", "pcc_key_path")
    @classmethod
    def _expand_home(cls, value: str) -> str:
        return os.path.expanduser(value)

    @field_validator("pcc_base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @property
    def pcc_timeout_seconds(self) -> float:
        return self.pcc_timeout_ms / 1000.0

    def require_ehr_credentials(self) -> None:
        """
        Fail fast when the EHR identity is not configured.

        Only enforced in ``pcc`` mode; the mock source needs no credentials.

        Raises:
            ConfigurationError: If client id or secret is missing
        """
        if self.ehr_mode != "pcc":
            return
        missing = [
            name for name, value in (
                ("PCC_CLIENT_ID", self.pcc_client_id),
                ("PCC_CLIENT_SECRET", self.pcc_client_secret),
            )
            if not value
        ]
        if missing:
            raise ConfigurationError(
                f"{' and '.join(missing)} environment variable(s) required when EHR_MODE=pcc"
            )


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
