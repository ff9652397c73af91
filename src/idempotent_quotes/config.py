"""Configuration module for the quotes service.

This module provides the QuotesConfig class for configuring the service,
including idempotency key limits, store timeouts, storage backend selection,
accepted API tokens and logging output.

Example:
    Basic usage with defaults:

        >>> config = QuotesConfig()
        >>> config.max_key_length
        100

    Custom configuration:

        >>> config = QuotesConfig(
        ...     storage_adapter="sql",
        ...     database_url="postgresql+psycopg://quotes@db/quotes",
        ...     store_timeout_seconds=2.5,
        ... )

    Loading from environment:

        >>> import os
        >>> os.environ['QUOTES_STORAGE_ADAPTER'] = 'sql'
        >>> os.environ['QUOTES_API_TOKENS'] = 'token-a,token-b'
        >>> config = QuotesConfig.from_env()
"""

import os
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class QuotesConfig(BaseModel):
    """Configuration for the quotes service.

    Attributes:
        max_key_length: Maximum accepted length of an Idempotency-Key header,
            after trimming. Must be between 1 and 255. Default is 100.
        store_timeout_seconds: Upper bound for every store call made while
            handling a request. A call that exceeds it fails as a store outage.
            Must be greater than 0 and at most 60. Default is 5 seconds.
        retry_after_seconds: Value of the Retry-After header sent with 503
            responses when the store is unavailable. Default is 5.
        storage_adapter: Storage backend, "memory" or "sql". Default is "memory".
        database_url: SQLAlchemy URL used when storage_adapter is "sql".
        api_tokens: Bearer tokens accepted by the default token verifier.
        log_level: Log level for structured logging. Default is "INFO".
        json_logs: Emit JSON logs when True, console output otherwise.

    Note:
        This class is immutable (frozen=True). Create a new instance if you
        need different settings.
    """

    max_key_length: int = Field(
        default=100,
        description="Maximum Idempotency-Key length in characters (1-255)",
    )
    store_timeout_seconds: float = Field(
        default=5.0,
        description="Timeout in seconds applied to each store call (0-60]",
    )
    retry_after_seconds: int = Field(
        default=5,
        description="Retry-After value for 503 responses",
    )
    storage_adapter: Literal["memory", "sql"] = Field(
        default="memory",
        description="Type of storage backend for quotes and idempotency records",
    )
    database_url: str = Field(
        default="sqlite:///./quotes.db",
        description="SQLAlchemy database URL for the sql storage adapter",
    )
    api_tokens: list[str] | str = Field(
        default=["dev-token"],
        description="Bearer tokens accepted by the static token verifier",
    )
    log_level: str = Field(
        default="INFO",
        description="Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    json_logs: bool = Field(
        default=True,
        description="Emit JSON logs instead of console output",
    )

    model_config = {"frozen": True}

    @field_validator("max_key_length")
    @classmethod
    def validate_max_key_length(cls, v: int) -> int:
        if not (1 <= v <= 255):
            raise ValueError(f"max_key_length must be between 1 and 255, got {v}")
        return v

    @field_validator("store_timeout_seconds")
    @classmethod
    def validate_store_timeout_seconds(cls, v: float) -> float:
        """Validate the store timeout is positive and bounded.

        Raises:
            ValueError: If timeout is not in (0, 60].
        """
        if not (0 < v <= 60):
            raise ValueError(f"store_timeout_seconds must be in (0, 60], got {v}")
        return v

    @field_validator("retry_after_seconds")
    @classmethod
    def validate_retry_after_seconds(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"retry_after_seconds must be >= 1, got {v}")
        return v

    @field_validator("api_tokens", mode="before")
    @classmethod
    def validate_api_tokens(cls, v: Any) -> list[str]:
        """Normalize API tokens into a list of non-empty strings.

        Args:
            v: List of tokens or comma-separated string.

        Returns:
            List of stripped, non-empty tokens.

        Example:
            >>> QuotesConfig(api_tokens="a, b").api_tokens
            ['a', 'b']
        """
        if isinstance(v, str):
            # Handle comma-separated string (from environment variables)
            v = v.split(",")

        if not isinstance(v, list):
            raise ValueError("api_tokens must be a list or comma-separated string")

        return [token.strip() for token in v if token.strip()]

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in VALID_LOG_LEVELS:
            raise ValueError(
                f"Invalid log level: {v}. "
                f"Valid levels are: {', '.join(sorted(VALID_LOG_LEVELS))}"
            )
        return level

    @classmethod
    def from_env(cls, prefix: str = "QUOTES_") -> "QuotesConfig":
        """Create configuration from environment variables.

        Variable names are the uppercase field names with the prefix, e.g.
        ``QUOTES_STORE_TIMEOUT_SECONDS``. Missing variables keep their defaults.

        Args:
            prefix: Prefix for environment variable names. Default is "QUOTES_".

        Returns:
            QuotesConfig instance populated from environment variables.
        """
        config_dict: dict[str, Any] = {}

        # Map of field names to their types for proper conversion
        field_types = {
            "max_key_length": int,
            "store_timeout_seconds": float,
            "retry_after_seconds": int,
            "storage_adapter": str,
            "database_url": str,
            "api_tokens": list,
            "log_level": str,
            "json_logs": bool,
        }

        for field_name, field_type in field_types.items():
            env_var = f"{prefix}{field_name.upper()}"
            env_value = os.environ.get(env_var)

            if env_value is None:
                continue
            if field_type is int:
                config_dict[field_name] = int(env_value)
            elif field_type is float:
                config_dict[field_name] = float(env_value)
            elif field_type is bool:
                config_dict[field_name] = env_value.strip().lower() in {"1", "true", "yes", "on"}
            else:
                # Lists stay comma-separated; the field validator splits them
                config_dict[field_name] = env_value

        return cls(**config_dict)

    @classmethod
    def from_dict(cls, config_dict: dict[str, Any]) -> "QuotesConfig":
        """Create configuration from a dictionary.

        Raises:
            ValidationError: If the dictionary contains invalid values.
        """
        return cls(**config_dict)
