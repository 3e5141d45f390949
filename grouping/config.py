from enum import Enum
from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


MISSING_CREDENTIALS_MESSAGE = "Missing Airtable env vars"


class ConfigurationError(Exception):
    """Store credentials are not configured."""


class FailurePolicy(str, Enum):
    """What a grouping run does when persisting one group fails."""

    BEST_EFFORT = "best-effort"
    FAIL_FAST = "fail-fast"


class Settings(BaseSettings):
    """Settings loaded from environment variables (or `.env`)."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
        populate_by_name=True,
    )

    # Airtable
    airtable_api_key: Optional[str] = Field(default=None, alias="AIRTABLE_API_KEY")
    airtable_base_id: Optional[str] = Field(default=None, alias="AIRTABLE_BASE_ID")
    airtable_api_url: str = Field(default="https://api.airtable.com/v0", alias="AIRTABLE_API_URL")
    request_timeout: float = Field(default=10.0, alias="AIRTABLE_TIMEOUT")

    # Tables
    signups_table: str = Field(default="Signups", alias="AIRTABLE_TABLE_NAME")
    groups_table: str = Field(default="Groups", alias="AIRTABLE_GROUPS_TABLE")

    # Grouping
    group_size: int = Field(default=6, alias="GROUP_SIZE")
    failure_policy: FailurePolicy = Field(default=FailurePolicy.BEST_EFFORT, alias="GROUPING_FAILURE_POLICY")

    @field_validator("group_size")
    @classmethod
    def _positive_group_size(cls, value: int) -> int:
        if value < 1:
            raise ValueError("GROUP_SIZE must be a positive integer")
        return value

    @property
    def has_credentials(self) -> bool:
        return bool(self.airtable_api_key) and bool(self.airtable_base_id)

    def require_credentials(self) -> None:
        if not self.has_credentials:
            raise ConfigurationError(MISSING_CREDENTIALS_MESSAGE)


@lru_cache
def get_settings() -> Settings:
    return Settings()
