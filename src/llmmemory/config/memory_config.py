# src/llmmemory/config/memory_config.py
"""
Memory store configuration models.

This module defines Pydantic models for the memory store configuration
sections. These models are used for:
1. Type-safe configuration loading
2. Validation with sensible defaults
3. Backend selection by :func:`llmmemory.storage.manager.create_memory_store`

The configuration hierarchy:
    MemoryConfig (root)
    ├── RedisConnectionConfig   - Redis connection and key layout settings
    ├── VolatileStoreConfig     - In-process store settings
    └── logging                 - Passed through to configure_logging()

Configuration is loaded and merged in order:
    1. Default values
    2. TOML config file (``[memory]`` table)
    3. Explicit dictionary
    4. Environment variables

Environment variables:
    LLMMEMORY_BACKEND=redis
    LLMMEMORY_REDIS_<FIELD>=value    (e.g. LLMMEMORY_REDIS_KEY_PREFIX=app:mem:)
    REDIS_URL, REDIS_HOST, REDIS_PORT, REDIS_PASSWORD, REDIS_DB

Usage:
    >>> from llmmemory.config.memory_config import load_memory_config
    >>> config = load_memory_config(config_dict={"backend": "redis"}, apply_env=False)
    >>> config.redis.port
    6379
"""

from __future__ import annotations

import copy
import logging
import os
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError, field_validator

from ..exceptions import ConfigError

logger = logging.getLogger(__name__)

SUPPORTED_BACKENDS = ("volatile", "redis")

ENV_PREFIX = "LLMMEMORY_"

# Fields kept as raw strings (never parsed as numbers or booleans).
_STRING_FIELDS = frozenset({"url", "host", "password", "key_prefix"})

# Unprefixed variables understood for compatibility with common deployments.
_REDIS_ENV_ALIASES = {
    "REDIS_URL": "url",
    "REDIS_HOST": "host",
    "REDIS_PORT": "port",
    "REDIS_PASSWORD": "password",
    "REDIS_DB": "db",
}


# =============================================================================
# BACKEND CONFIGURATION
# =============================================================================


class RedisConnectionConfig(BaseModel):
    """
    Configuration for the Redis-backed memory store.

    Examples:
        >>> config = RedisConnectionConfig()
        >>> config.key_prefix
        'sk:memory:'
        >>> config.use_transactions
        False
    """

    url: str | None = Field(
        default=None,
        description="Redis URL (redis://[:password@]host:port/db). Takes precedence over host/port.",
    )
    host: str = Field(default="localhost", description="Redis host")
    port: int = Field(default=6379, ge=1, le=65535, description="Redis port")
    password: str | None = Field(default=None, description="Redis password")
    db: int = Field(default=0, ge=0, description="Redis logical database index")
    socket_timeout: float | None = Field(
        default=None, gt=0, description="Socket timeout in seconds (None = client default)"
    )
    key_prefix: str = Field(
        default="sk:memory:",
        description="Namespace prepended to every key so several stores can share one server",
    )
    use_transactions: bool = Field(
        default=False,
        description="Wrap multi-step writes (hash + membership set) in MULTI/EXEC",
    )
    pipeline_reads: bool = Field(
        default=False,
        description="Fetch member hashes in one pipeline instead of one round trip each",
    )

    @field_validator("key_prefix")
    @classmethod
    def validate_key_prefix(cls, v: str) -> str:
        """The prefix must be non-empty so clear() can never match the whole keyspace."""
        if not v:
            raise ValueError("key_prefix cannot be empty")
        return v


class VolatileStoreConfig(BaseModel):
    """Configuration for the in-process memory store."""

    copy_on_read: bool = Field(
        default=True,
        description="Return deep copies of stored records so callers cannot mutate them",
    )


# =============================================================================
# ROOT CONFIGURATION
# =============================================================================


class MemoryConfig(BaseModel):
    """
    Root memory configuration.

    Examples:
        >>> MemoryConfig().backend
        'volatile'
        >>> MemoryConfig(backend="Redis").backend
        'redis'
    """

    backend: str = Field(default="volatile", description="Memory store backend: 'volatile' or 'redis'")
    redis: RedisConnectionConfig = Field(default_factory=RedisConnectionConfig)
    volatile: VolatileStoreConfig = Field(default_factory=VolatileStoreConfig)
    logging: dict[str, Any] = Field(
        default_factory=dict, description="Logging section; create_memory_store() applies it with configure_logging() when non-empty"
    )

    @field_validator("backend")
    @classmethod
    def validate_backend(cls, v: str) -> str:
        """Normalise and validate the backend name."""
        normalized = v.strip().lower()
        if normalized not in SUPPORTED_BACKENDS:
            raise ValueError(
                f"Unsupported memory backend '{v}'. Available backends: {list(SUPPORTED_BACKENDS)}"
            )
        return normalized


# =============================================================================
# LOADING
# =============================================================================


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """
    Deep merge two dictionaries.

    Args:
        base: Base dictionary
        override: Dictionary with override values

    Returns:
        Merged dictionary
    """
    result = copy.deepcopy(base)

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value

    return result


def _parse_env_value(value: str) -> Any:
    """
    Parse environment variable value to appropriate type.

    Only booleans and integers are converted; pydantic coerces the rest
    (floats, strings) against the field types.
    """
    if value.lower() in ("true", "yes", "on"):
        return True
    if value.lower() in ("false", "no", "off"):
        return False

    try:
        return int(value)
    except ValueError:
        return value


def _field_value(field_name: str, value: str) -> Any:
    return value if field_name in _STRING_FIELDS else _parse_env_value(value)


def _env_overrides(environ: dict[str, str] | None = None) -> dict[str, Any]:
    """
    Collect configuration overrides from environment variables.

    Prefixed variables (``LLMMEMORY_REDIS_HOST``) win over the unprefixed
    aliases (``REDIS_HOST``).
    """
    env = os.environ if environ is None else environ
    overrides: dict[str, Any] = {}
    redis_fields = set(RedisConnectionConfig.model_fields)
    volatile_fields = set(VolatileStoreConfig.model_fields)

    redis_section: dict[str, Any] = {}
    for env_var, field_name in _REDIS_ENV_ALIASES.items():
        if env.get(env_var):
            redis_section[field_name] = _field_value(field_name, env[env_var])

    for key, value in env.items():
        if not key.startswith(ENV_PREFIX):
            continue

        # LLMMEMORY_REDIS_KEY_PREFIX -> ("redis", "key_prefix")
        name = key[len(ENV_PREFIX):].lower()
        if name == "backend":
            overrides["backend"] = value
        elif name.startswith("redis_") and name[len("redis_"):] in redis_fields:
            field_name = name[len("redis_"):]
            redis_section[field_name] = _field_value(field_name, value)
        elif name.startswith("volatile_") and name[len("volatile_"):] in volatile_fields:
            overrides.setdefault("volatile", {})[name[len("volatile_"):]] = _parse_env_value(value)

    if redis_section:
        overrides["redis"] = redis_section

    return overrides


def load_toml_config(config_path: str | Path) -> dict[str, Any]:
    """
    Load the ``[memory]`` table from a TOML file.

    Args:
        config_path: Path to the TOML file. Tilde expansion is applied.

    Returns:
        The ``memory`` table, or the whole document if it has no such table.

    Raises:
        FileNotFoundError: If the file does not exist.
        ConfigError: If the file is not valid TOML.
    """
    import tomllib

    path = Path(config_path).expanduser()
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    try:
        with open(path, "rb") as f:
            raw = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Invalid TOML in {path}: {e}") from e

    logger.debug(f"Loaded memory config from {path}")
    return raw.get("memory", raw)


def load_memory_config(
    config_path: str | Path | None = None,
    config_dict: dict[str, Any] | None = None,
    apply_env: bool = True,
) -> MemoryConfig:
    """
    Load the memory configuration.

    Args:
        config_path: Optional path to a TOML file with a ``[memory]`` table.
        config_dict: Optional configuration dictionary. If it has a
            ``memory`` key, that section is used.
        apply_env: Apply environment variable overrides last.

    Returns:
        Validated MemoryConfig instance.

    Raises:
        FileNotFoundError: If *config_path* is given but does not exist.
        ConfigError: If the merged configuration is invalid.

    Examples:
        >>> config = load_memory_config(config_dict={
        ...     "memory": {"backend": "redis", "redis": {"port": 6380}}
        ... }, apply_env=False)
        >>> config.redis.port
        6380
    """
    data: dict[str, Any] = {}

    if config_path is not None:
        data = _deep_merge(data, load_toml_config(config_path))

    if config_dict is not None:
        section = config_dict.get("memory", config_dict)
        data = _deep_merge(data, section)

    if apply_env:
        env_data = _env_overrides()
        if env_data:
            logger.debug(f"Applying environment overrides: {sorted(env_data)}")
            data = _deep_merge(data, env_data)

    try:
        return MemoryConfig(**data)
    except ValidationError as e:
        raise ConfigError(f"Invalid memory configuration: {e}") from e
