"""Pydantic configuration models for branchpilot.

The configuration hierarchy follows this structure:
- Config: Root configuration containing all sections
- SystemConfig: Logging and global deadlines
- GitHubConfig: Organization, credentials and HTTP client tuning
- CatalogConfig: Where the candidate repository list comes from
- BranchesConfig: Required checks, fan-out and PR text settings
- SearchConfig: Code search pagination and rate-limit retry
- WebhooksConfig: Deduplication window and request signing

Environment variables are substituted using the format ${VAR_NAME} with
optional defaults: ${VAR_NAME:default_value}
"""

import os
import re
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ..github.models import MergeMethod

_ENV_PATTERN = re.compile(r"\$\{([^}:]+)(?::([^}]*))?\}")


class LogLevel(str, Enum):
    """Supported logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class BaseConfigModel(BaseModel):
    """Base configuration model with environment variable substitution."""

    model_config = ConfigDict(validate_assignment=True, extra="forbid")

    @model_validator(mode="before")
    @classmethod
    def substitute_env_vars(cls, values: Any) -> Any:
        """Substitute environment variables in string values.

        Supports formats:
        - ${VAR_NAME} - Required environment variable
        - ${VAR_NAME:default} - Optional with default value

        Raises:
            ValueError: If required environment variable is missing
        """
        if not isinstance(values, dict):
            return values

        def replacer(match: re.Match[str]) -> str:
            var_name, default_value = match.group(1), match.group(2)
            env_value = os.getenv(var_name)
            if env_value is not None:
                return env_value
            if default_value is not None:
                return default_value
            raise ValueError(f"Required environment variable '{var_name}' not found")

        def substitute_value(value: Any) -> Any:
            if isinstance(value, str):
                return _ENV_PATTERN.sub(replacer, value)
            if isinstance(value, dict):
                return {k: substitute_value(v) for k, v in value.items()}
            if isinstance(value, list):
                return [substitute_value(item) for item in value]
            return value

        return {key: substitute_value(value) for key, value in values.items()}


class SystemConfig(BaseConfigModel):
    """Core system configuration settings."""

    log_level: LogLevel = Field(
        default=LogLevel.INFO, description="System-wide logging level"
    )

    environment: str = Field(
        default="development",
        description="Deployment environment (development, staging, production)",
    )

    operation_timeout: float | None = Field(
        default=120.0,
        gt=0,
        description="Deadline in seconds for one aggregation, None for no deadline",
    )


class GitHubConfig(BaseConfigModel):
    """GitHub organization, credentials and HTTP client settings."""

    base_url: str = Field(
        default="https://api.github.com", description="GitHub REST API root"
    )

    organization: str = Field(description="Organization owning the repositories")

    token: str | None = Field(default=None, description="Service access token")

    app_id: int | None = Field(default=None, description="GitHub App ID")

    private_key: str | None = Field(
        default=None, description="GitHub App private key (PEM)"
    )

    installation_id: int | None = Field(
        default=None, description="GitHub App installation ID"
    )

    user_tokens: dict[str, str] = Field(
        default_factory=dict,
        description="Per-user access tokens keyed by chat user name",
    )

    timeout: int = Field(default=30, ge=1, le=300, description="Request timeout")

    max_retries: int = Field(
        default=3, ge=0, le=10, description="Retries of transient request failures"
    )

    retry_backoff_factor: float = Field(
        default=2.0, ge=1.0, le=10.0, description="Exponential backoff base"
    )

    max_concurrent_requests: int = Field(
        default=10, ge=1, le=100, description="Concurrent requests per credential"
    )

    user_agent: str = Field(default="branchpilot/1.0", description="User-Agent header")

    @field_validator("organization")
    @classmethod
    def validate_organization(cls, v: str) -> str:
        """Validate organization name."""
        if not v or v.strip() == "":
            raise ValueError("Organization cannot be empty")
        return v.strip()

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        """Validate API root URL."""
        if not v.startswith(("https://", "http://")):
            raise ValueError("GitHub base_url must be an http(s) URL")
        return v.rstrip("/")

    @model_validator(mode="after")
    def validate_credentials(self) -> "GitHubConfig":
        """Require a token or a complete GitHub App configuration."""
        app_fields = (self.app_id, self.private_key, self.installation_id)
        if self.token:
            return self
        if all(field is not None for field in app_fields):
            return self
        raise ValueError(
            "Either github.token or app_id, private_key and installation_id "
            "must be configured"
        )


class CatalogConfig(BaseConfigModel):
    """Source of the repositories a branch may span."""

    repositories: list[str] = Field(
        default_factory=list, description="Static repository list"
    )

    manifest_url: str | None = Field(
        default=None,
        description="URL of a JSON object whose keys are repository names",
    )

    manifest_token: str | None = Field(
        default=None, description="Token sent when fetching the manifest"
    )

    refresh_interval: int = Field(
        default=300, ge=1, le=86400, description="Seconds a fetched manifest is reused"
    )

    @model_validator(mode="after")
    def validate_single_source(self) -> "CatalogConfig":
        """Exactly one of a static list or a manifest URL must be given."""
        if self.manifest_url and self.repositories:
            raise ValueError("Configure either catalog.repositories or manifest_url")
        if not self.manifest_url and not self.repositories:
            raise ValueError(
                "catalog.repositories or catalog.manifest_url must be configured"
            )
        return self


class BranchesConfig(BaseConfigModel):
    """Aggregation and pull request lifecycle settings."""

    required_checks: list[str] = Field(
        description="CI contexts that must succeed before merging"
    )

    max_concurrent_repositories: int = Field(
        default=10, ge=1, le=100, description="Repositories read at once"
    )

    default_base: str = Field(
        default="master",
        description="Target base resolved to each repository's default branch",
    )

    merge_method: MergeMethod = Field(
        default=MergeMethod.SQUASH, description="Merge strategy"
    )

    issue_separator: str = Field(
        default="__", min_length=1, description="Separator before issue references"
    )

    issue_url_template: str | None = Field(
        default=None,
        description="Issue URL with {repository} and {number} placeholders",
    )

    ci_badge_url_template: str | None = Field(
        default=None, description="CI badge image URL with {repository} and {number}"
    )

    ci_job_url_template: str | None = Field(
        default=None, description="CI job URL with {repository} and {number}"
    )

    @field_validator("required_checks")
    @classmethod
    def validate_required_checks(cls, v: list[str]) -> list[str]:
        """Ensure at least one required check is configured."""
        checks = [check.strip() for check in v if check and check.strip()]
        if not checks:
            raise ValueError("At least one required check must be configured")
        return list(dict.fromkeys(checks))


class SearchConfig(BaseConfigModel):
    """Organization-wide code search settings."""

    max_attempts: int = Field(
        default=5, ge=1, le=20, description="Attempts before giving up on rate limits"
    )

    backoff_seconds: float = Field(
        default=60.0, ge=0, le=3600, description="Wait between rate-limited attempts"
    )

    backoff_multiplier: float = Field(
        default=1.0, ge=1.0, le=10.0, description="Growth factor of the wait"
    )

    max_pages: int = Field(
        default=10, ge=1, le=10, description="Result pages fetched per search"
    )


class WebhooksConfig(BaseConfigModel):
    """Webhook handling settings."""

    dedup_ttl_seconds: int = Field(
        default=300, ge=1, le=86400, description="Duplicate suppression window"
    )

    create_pr_secret: str | None = Field(
        default=None, description="Shared secret signing create-PR requests"
    )


class Config(BaseConfigModel):
    """Root configuration containing all sections."""

    system: SystemConfig = Field(
        default_factory=SystemConfig, description="Core system configuration"
    )

    github: GitHubConfig = Field(description="GitHub configuration")

    catalog: CatalogConfig = Field(description="Repository catalog configuration")

    branches: BranchesConfig = Field(description="Branch operation configuration")

    search: SearchConfig = Field(
        default_factory=SearchConfig, description="Code search configuration"
    )

    webhooks: WebhooksConfig = Field(
        default_factory=WebhooksConfig, description="Webhook configuration"
    )

    @property
    def issue_url_template(self) -> str:
        """Issue URL template, defaulting to github.com issues of the organization."""
        if self.branches.issue_url_template:
            return self.branches.issue_url_template
        return (
            f"https://github.com/{self.github.organization}"
            "/{repository}/issues/{number}"
        )
