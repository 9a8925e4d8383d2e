"""
Redirect Sync Configuration System.

This module provides a type-safe configuration system using Pydantic.
Settings can be loaded from:
1. Environment variables (prefixed with REDIRECT_SYNC_)
2. Config file (TOML or JSON)
3. CLI arguments (highest priority)

Example usage:
    from redirect_sync.config import Settings

    # Load from environment
    settings = Settings()

    # Or with explicit values
    settings = Settings(
        account="storecompany",
        workspace="master",
        auth_token="your-token",
        api_url="https://rewriter.example.com/graphql",
    )
"""

from __future__ import annotations

import json
import tomllib
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Limits(BaseModel):
    """Batching and request limits for the rewriter service."""

    max_batch_size: int = Field(
        default=500,
        ge=1,
        le=5000,
        description="Maximum redirects submitted in a single request",
    )
    request_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Per-request timeout for the remote service",
    )


class RetryOptions(BaseModel):
    """Bounded retry for a whole run."""

    max_retries: int = Field(
        default=10,
        ge=0,
        description="Automatic retries per invocation after the first attempt",
    )
    retry_interval_seconds: float = Field(
        default=5.0,
        ge=0,
        description="Fixed delay before each retried attempt",
    )


class SyncOptions(BaseModel):
    """Options controlling sync behavior."""

    checkpoint_file: Path = Field(
        default=Path(".redirects_checkpoint.json"),
        description="Path to the checkpoint document used for resume",
    )
    csv_delimiter: str = Field(
        default=";",
        min_length=1,
        max_length=1,
        description="Field delimiter of input CSV files",
    )
    fingerprint_algorithm: str = Field(
        default="md5",
        pattern="^(md5|sha256)$",
        description="Hash algorithm for input fingerprints",
    )
    workdir: Path = Field(
        default=Path("."),
        description="Directory for transient files such as pending deletions",
    )


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Log level",
    )
    file: Path | None = Field(
        default=None,
        description="Log file path (None = console only)",
    )
    format: str = Field(
        default="rich",
        pattern="^(rich|json|simple)$",
        description="Log format: rich (colored), json, or simple",
    )
    max_file_size_mb: int = Field(
        default=10,
        ge=1,
        le=100,
        description="Max log file size before rotation",
    )
    backup_count: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Number of rotated log files to keep",
    )


class Settings(BaseSettings):
    """
    Main settings class for Redirect Sync.

    Settings are loaded in this priority (highest first):
    1. Explicit constructor arguments
    2. Environment variables (REDIRECT_SYNC_* prefix)
    3. Config file (if specified)
    4. Defaults

    Example:
        export REDIRECT_SYNC_AUTH_TOKEN="your-token"
        export REDIRECT_SYNC_ACCOUNT="storecompany"
        export REDIRECT_SYNC_LIMITS__MAX_BATCH_SIZE=200
        settings = Settings()
    """

    model_config = SettingsConfigDict(
        env_prefix="REDIRECT_SYNC_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Remote service
    auth_token: SecretStr = Field(
        default=SecretStr(""),
        description="Bearer token for the rewriter service",
    )
    api_url: str = Field(
        default="",
        description="GraphQL endpoint of the rewriter service",
    )

    # Execution context
    account: str = Field(
        default="",
        description="Account that owns the redirects",
    )
    workspace: str = Field(
        default="master",
        description="Workspace the redirects are applied to",
    )

    # Nested configs
    limits: Limits = Field(default_factory=Limits)
    retry: RetryOptions = Field(default_factory=RetryOptions)
    sync: SyncOptions = Field(default_factory=SyncOptions)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @field_validator("auth_token", mode="before")
    @classmethod
    def validate_token(cls, v: Any) -> SecretStr:
        """Handle token from various sources."""
        if isinstance(v, SecretStr):
            return v
        if isinstance(v, str):
            return SecretStr(v)
        return SecretStr("")

    @classmethod
    def from_file(cls, path: Path | str) -> "Settings":
        """Load settings from a TOML or JSON config file."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        content = path.read_text()

        if path.suffix in (".toml", ".tml"):
            data = tomllib.loads(content)
        elif path.suffix == ".json":
            data = json.loads(content)
        else:
            raise ValueError(f"Unsupported config format: {path.suffix}")

        return cls.model_validate(data)

    def to_file(self, path: Path | str) -> None:
        """Save current settings to a config file."""
        path = Path(path)
        data = self.model_dump(mode="json", exclude_none=True)

        # Never write the token to disk
        if "auth_token" in data:
            data["auth_token"] = "***REDACTED***"

        if path.suffix in (".toml", ".tml"):
            lines = []
            nested = []
            for key, value in data.items():
                if isinstance(value, dict):
                    nested.append((key, value))
                else:
                    lines.append(f"{key} = {json.dumps(value)}")
            for key, value in nested:
                lines.append(f"\n[{key}]")
                for k, v in value.items():
                    lines.append(f"{k} = {json.dumps(v)}")
            path.write_text("\n".join(lines) + "\n")
        else:
            path.write_text(json.dumps(data, indent=2))

    def validate_credentials(self) -> list[str]:
        """Validate that required connection values are present. Returns list of errors."""
        errors = []
        if not self.auth_token.get_secret_value():
            errors.append("auth_token is required")
        if not self.api_url:
            errors.append("api_url is required")
        if not self.account:
            errors.append("account is required")
        if not self.workspace:
            errors.append("workspace is required")
        return errors


def load_settings(
    config_file: Path | str | None = None,
    **overrides: Any,
) -> Settings:
    """
    Load settings with optional config file and overrides.

    Args:
        config_file: Optional path to config file
        **overrides: Settings to override (highest priority)

    Returns:
        Configured Settings instance
    """
    if config_file:
        settings = Settings.from_file(config_file)
        if overrides:
            data = settings.model_dump()
            data.update(overrides)
            return Settings.model_validate(data)
        return settings
    return Settings(**overrides)
