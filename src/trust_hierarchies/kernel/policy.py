"""
Federation Policy and runtime settings

FederationPolicy holds the knobs that change what the engine permits;
Settings holds the knobs that change where it runs (database, logging).
"""

from pathlib import Path

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from trust_hierarchies.kernel.logging import is_production


class FederationPolicy(BaseModel):
    """
    Delegation rules applied by the command handlers

    The defaults are the strict reading: a delegator can never hand out
    more than it holds.
    """

    enforce_delegation_scope: bool = Field(
        default=True,
        description="Reject accreditations that exceed the delegator's own grants",
    )

    root_authorities_bypass_scope: bool = Field(
        default=True,
        description="Active root authorities may grant any live federation property",
    )

    issue_attest_with_accredit: bool = Field(
        default=True,
        description="An accreditation to accredit also issues an ATTEST capability",
    )

    revocation_by_issuer_only: bool = Field(
        default=True,
        description="Only the issuer or an active root authority may revoke an accreditation",
    )

    model_config = {"frozen": True}


class Settings(BaseSettings):
    """
    Process-level configuration, read from HIERARCHIES_* environment variables

    HIERARCHIES_DB_PATH                               database path
    HIERARCHIES_LOG_LEVEL                             log level name
    HIERARCHIES_JSON_LOGS                             JSON log output
    HIERARCHIES_POLICY__ENFORCE_DELEGATION_SCOPE      any FederationPolicy field
    ENVIRONMENT=production                            JSON logs by default
    """

    model_config = SettingsConfigDict(
        env_prefix="HIERARCHIES_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    db_path: Path = Field(default=Path(".hierarchies.db"), description="SQLite database file")
    log_level: str = Field(default="INFO", pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$")
    json_logs: bool = Field(default_factory=is_production)
    policy: FederationPolicy = Field(default_factory=FederationPolicy)

    @field_validator("log_level", mode="before")
    @classmethod
    def _upper_log_level(cls, value: object) -> object:
        return value.upper() if isinstance(value, str) else value

    @classmethod
    def from_env(cls) -> "Settings":
        """Settings from the current environment only"""
        return cls()
