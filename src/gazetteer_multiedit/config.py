"""Application configuration using pydantic-settings."""

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from gazetteer_multiedit.exceptions import ConfigurationError
from gazetteer_multiedit.models import AuthorityVariant, LookupTables


class Settings(BaseSettings):
    """Settings loaded from environment variables (prefix ``GAZETTEER_``) and ``.env``."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="GAZETTEER_",
        extra="ignore",
    )

    # Gazetteer API
    api_base_url: str = Field(
        default="",
        description="Root URL of the gazetteer API (e.g. https://gazetteer.example.gov.uk)",
    )
    api_token: SecretStr = Field(
        default=SecretStr(""),
        description="Bearer token for the gazetteer API",
    )
    request_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        le=300,
        description="Timeout for each fetch or save request",
    )

    # Authority
    authority: AuthorityVariant = Field(
        default=AuthorityVariant.ENGLISH,
        description="Authority flavour: english, scottish or welsh",
    )
    lookups_path: str = Field(
        default="",
        description="JSON file with post town and sub-locality lookups (bilingual authorities)",
    )

    # Batch behaviour
    count_fetch_failures: bool = Field(
        default=True,
        description="Record properties that cannot be fetched as failures instead of skipping them",
    )

    # Logging
    json_logs: bool = Field(default=False, description="Emit JSON log lines")

    @property
    def is_scottish(self) -> bool:
        return self.authority is AuthorityVariant.SCOTTISH

    @property
    def is_welsh(self) -> bool:
        return self.authority is AuthorityVariant.WELSH

    def require_api_base_url(self) -> str:
        """Return the API base URL, failing loudly when it is not configured."""
        if not self.api_base_url.strip():
            raise ConfigurationError("GAZETTEER_API_BASE_URL must be set")
        return self.api_base_url.strip()

    def load_lookups(self) -> LookupTables:
        """Load lookup tables from ``lookups_path``, or empty tables when unset."""
        if not self.lookups_path:
            return LookupTables()
        return LookupTables.from_file(self.lookups_path)
