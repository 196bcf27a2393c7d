"""
Centralized configuration management using Pydantic Settings.

This module provides the validated configuration object a Repository is
built from: endpoint, credentials, database id, collection id, partition
key path and request timeout. Values load from ``COSMOS_*`` environment
variables and an optional .env file.
"""

import logging
import math
from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

# Fallback request timeout (milliseconds) used when COSMOS_TIMEOUT is unparsable
DEFAULT_TIMEOUT_MS = 3.0


class CosmosSettings(BaseSettings):
    """
    Cosmos DB connection settings loaded from environment variables.

    All settings can be overridden via environment variables prefixed with
    ``COSMOS_`` (e.g. ``COSMOS_ENDPOINT``). Instances are immutable.
    Secrets should never be committed to code - use .env file (gitignored).
    """

    endpoint: str = Field(
        ...,
        description="Cosmos DB account endpoint URI (https://<account>.documents.azure.com:443/)"
    )
    key: str = Field(
        ...,
        description="Cosmos DB account access key"
    )
    database_id: str = Field(
        ...,
        description="Database identifier, created on first use if missing"
    )
    collection_id: str = Field(
        ...,
        description="Default collection (container) identifier; repositories may override it"
    )
    partition_key: Optional[str] = Field(
        default=None,
        description="Partition key path for new collections (e.g. /category); None means /id"
    )
    timeout: str = Field(
        default="3",
        description="Request timeout in milliseconds (numeric string)"
    )
    offer_throughput: Optional[int] = Field(
        default=1000,
        ge=400,
        description="RU/s provisioned on newly created collections; None for serverless accounts"
    )

    # Pydantic Settings Configuration
    model_config = SettingsConfigDict(
        env_prefix="COSMOS_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Ignore unrelated environment variables
        frozen=True,
    )

    @field_validator("endpoint")
    @classmethod
    def validate_endpoint(cls, v: str) -> str:
        """
        Validate the account endpoint.

        Must be non-empty and use an http(s) scheme.
        """
        if not v or v.strip() == "":
            raise ValueError("COSMOS_ENDPOINT is required and cannot be empty")

        v = v.strip()
        if not (v.startswith("https://") or v.startswith("http://")):
            raise ValueError(
                f"COSMOS_ENDPOINT must start with http:// or https://. "
                f"Got: {v[:20]}..."
            )
        return v

    @field_validator("key")
    @classmethod
    def validate_key(cls, v: str) -> str:
        """
        Validate that the access key is configured.

        Rejects empty values and obvious placeholders.
        """
        if not v or v.strip() == "":
            raise ValueError(
                "COSMOS_KEY is required and cannot be empty. "
                "Copy it from the account's Keys blade"
            )

        placeholders = ["your-key-here", "your_key", "CHANGE_ME", "<key>"]
        if any(placeholder.lower() in v.lower() for placeholder in placeholders):
            raise ValueError("COSMOS_KEY contains placeholder value")

        return v

    @field_validator("database_id", "collection_id")
    @classmethod
    def validate_resource_id(cls, v: str, info) -> str:
        """
        Validate database and collection identifiers.

        Cosmos DB resource ids cannot be empty or contain '/', '\\', '?' or '#'.
        """
        field_name = info.field_name
        if not v or v.strip() == "":
            raise ValueError(f"COSMOS_{field_name.upper()} is required and cannot be empty")

        invalid = [char for char in "/\\?#" if char in v]
        if invalid:
            raise ValueError(
                f"COSMOS_{field_name.upper()} contains invalid characters: {''.join(invalid)}"
            )
        return v

    @field_validator("partition_key", mode="before")
    @classmethod
    def normalize_partition_key(cls, v: Optional[str]) -> Optional[str]:
        """
        Normalize the partition key path.

        Empty strings mean "no partition key"; a missing leading '/' is added.
        """
        return normalize_partition_key_path(v)

    @field_validator("timeout", mode="before")
    @classmethod
    def coerce_timeout(cls, v) -> str:
        """
        Accept numbers as well as strings for the timeout.

        Parsing is deferred to ``timeout_ms`` so a malformed value never
        prevents the settings (or a repository) from being constructed.
        """
        if v is None:
            return ""
        return str(v)

    @property
    def timeout_ms(self) -> float:
        """
        Request timeout in milliseconds.

        Falls back to DEFAULT_TIMEOUT_MS when ``timeout`` is not a positive number.
        """
        return parse_timeout_ms(self.timeout)

    @property
    def timeout_seconds(self) -> float:
        """Request timeout in seconds (what the SDK and asyncio expect)."""
        return self.timeout_ms / 1000.0


def normalize_partition_key_path(path: Optional[str]) -> Optional[str]:
    """
    Normalize a partition key path.

    Args:
        path: Path such as "/category", "category" or ""

    Returns:
        Path with a leading '/', or None when no partition key is given
    """
    if path is None:
        return None
    path = str(path).strip()
    if not path:
        return None
    return path if path.startswith("/") else f"/{path}"


def parse_timeout_ms(value: Optional[str]) -> float:
    """
    Parse a millisecond timeout string.

    Args:
        value: Numeric string such as "5000" or "2500.5"

    Returns:
        Parsed timeout, or DEFAULT_TIMEOUT_MS if the value is unparsable or not positive

    Example:
        >>> parse_timeout_ms("5000")
        5000.0
        >>> parse_timeout_ms("five seconds")
        3.0
    """
    try:
        timeout = float(value)
    except (TypeError, ValueError):
        logger.warning(
            f"Unparsable timeout {value!r}, falling back to {DEFAULT_TIMEOUT_MS:g} ms"
        )
        return DEFAULT_TIMEOUT_MS

    if not math.isfinite(timeout) or timeout <= 0:
        logger.warning(
            f"Invalid timeout {value!r}, falling back to {DEFAULT_TIMEOUT_MS:g} ms"
        )
        return DEFAULT_TIMEOUT_MS

    return timeout


@lru_cache
def get_settings() -> CosmosSettings:
    """
    Get the process-wide settings instance.

    Loaded lazily on first call so importing the package does not require
    the environment to be configured.
    """
    return CosmosSettings()
