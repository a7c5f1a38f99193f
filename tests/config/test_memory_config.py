# tests/config/test_memory_config.py
"""
Tests for the memory configuration module.

Tests cover:
1. Default configuration values
2. Validation constraints
3. TOML loading
4. Environment variable overrides
5. Precedence between sources
"""

from pathlib import Path

import pytest

from llmmemory.config.memory_config import (
    MemoryConfig,
    RedisConnectionConfig,
    VolatileStoreConfig,
    _deep_merge,
    _env_overrides,
    _parse_env_value,
    load_memory_config,
    load_toml_config,
)
from llmmemory.exceptions import ConfigError


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch):
    """Strip configuration variables inherited from the test runner."""
    import os

    for name in list(os.environ):
        if name.startswith("LLMMEMORY_") or name.startswith("REDIS_"):
            monkeypatch.delenv(name, raising=False)
    return monkeypatch


def _write_toml(tmp_path: Path, content: str) -> Path:
    path = tmp_path / "config.toml"
    path.write_text(content)
    return path


# =============================================================================
# TEST: Default Values
# =============================================================================


class TestMemoryConfigDefaults:
    """Test that default configuration values are sensible."""

    def test_root_defaults(self):
        config = MemoryConfig()
        assert config.backend == "volatile"
        assert config.logging == {}

    def test_redis_defaults(self):
        config = RedisConnectionConfig()
        assert config.url is None
        assert config.host == "localhost"
        assert config.port == 6379
        assert config.db == 0
        assert config.key_prefix == "sk:memory:"
        assert config.use_transactions is False
        assert config.pipeline_reads is False

    def test_volatile_defaults(self):
        assert VolatileStoreConfig().copy_on_read is True


# =============================================================================
# TEST: Validation
# =============================================================================


class TestMemoryConfigValidation:
    """Test validation constraints."""

    def test_backend_normalised(self):
        assert MemoryConfig(backend="  Redis ").backend == "redis"

    def test_unknown_backend_rejected(self):
        with pytest.raises(ValueError, match="Unsupported memory backend"):
            MemoryConfig(backend="sqlite")

    def test_empty_key_prefix_rejected(self):
        with pytest.raises(ValueError):
            RedisConnectionConfig(key_prefix="")

    @pytest.mark.parametrize("port", [0, 70000])
    def test_port_range(self, port):
        with pytest.raises(ValueError):
            RedisConnectionConfig(port=port)

    def test_negative_db_rejected(self):
        with pytest.raises(ValueError):
            RedisConnectionConfig(db=-1)

    def test_socket_timeout_must_be_positive(self):
        with pytest.raises(ValueError):
            RedisConnectionConfig(socket_timeout=0)


# =============================================================================
# TEST: Loading
# =============================================================================


class TestLoadMemoryConfig:
    """Test load_memory_config sources."""

    def test_load_with_no_sources(self):
        config = load_memory_config()
        assert config == MemoryConfig()

    def test_load_from_dict(self):
        config = load_memory_config(config_dict={"backend": "redis", "redis": {"port": 6380}})
        assert config.backend == "redis"
        assert config.redis.port == 6380
        assert config.redis.host == "localhost"

    def test_load_from_dict_memory_section(self):
        config = load_memory_config(config_dict={"memory": {"volatile": {"copy_on_read": False}}})
        assert config.volatile.copy_on_read is False

    def test_load_from_toml_file(self, tmp_path):
        path = _write_toml(tmp_path, """
[memory]
backend = "redis"

[memory.redis]
host = "redis.example"
key_prefix = "app:memory:"
use_transactions = true
""")
        config = load_memory_config(config_path=path)

        assert config.backend == "redis"
        assert config.redis.host == "redis.example"
        assert config.redis.key_prefix == "app:memory:"
        assert config.redis.use_transactions is True

    def test_toml_without_memory_table(self, tmp_path):
        path = _write_toml(tmp_path, 'backend = "redis"\n')
        assert load_toml_config(path) == {"backend": "redis"}

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_memory_config(config_path=tmp_path / "missing.toml")

    def test_invalid_toml_raises_config_error(self, tmp_path):
        path = _write_toml(tmp_path, "[memory\nbackend = ")
        with pytest.raises(ConfigError, match="Invalid TOML"):
            load_memory_config(config_path=path)

    def test_invalid_values_raise_config_error(self):
        with pytest.raises(ConfigError, match="Invalid memory configuration"):
            load_memory_config(config_dict={"redis": {"port": "not-a-port"}})

    def test_dict_overrides_toml(self, tmp_path):
        path = _write_toml(tmp_path, '[memory.redis]\nhost = "from-file"\nport = 6390\n')
        config = load_memory_config(config_path=path, config_dict={"redis": {"host": "from-dict"}})

        assert config.redis.host == "from-dict"
        assert config.redis.port == 6390


# =============================================================================
# TEST: Environment Overrides
# =============================================================================


class TestEnvironmentOverrides:
    """Test environment variable handling."""

    def test_parse_env_value(self):
        assert _parse_env_value("true") is True
        assert _parse_env_value("OFF") is False
        assert _parse_env_value("42") == 42
        assert _parse_env_value("2.5") == "2.5"
        assert _parse_env_value("text") == "text"

    def test_backend_from_env(self, isolated_env):
        isolated_env.setenv("LLMMEMORY_BACKEND", "redis")
        assert load_memory_config().backend == "redis"

    def test_prefixed_redis_fields(self, isolated_env):
        isolated_env.setenv("LLMMEMORY_REDIS_PORT", "6381")
        isolated_env.setenv("LLMMEMORY_REDIS_PIPELINE_READS", "yes")
        isolated_env.setenv("LLMMEMORY_REDIS_SOCKET_TIMEOUT", "2.5")

        config = load_memory_config()
        assert config.redis.port == 6381
        assert config.redis.pipeline_reads is True
        assert config.redis.socket_timeout == 2.5

    def test_string_fields_not_coerced(self, isolated_env):
        isolated_env.setenv("REDIS_PASSWORD", "12345")
        isolated_env.setenv("LLMMEMORY_REDIS_KEY_PREFIX", "true")

        config = load_memory_config()
        assert config.redis.password == "12345"
        assert config.redis.key_prefix == "true"

    def test_unprefixed_aliases(self, isolated_env):
        isolated_env.setenv("REDIS_URL", "redis://cache:6379/1")
        isolated_env.setenv("REDIS_DB", "3")

        config = load_memory_config()
        assert config.redis.url == "redis://cache:6379/1"
        assert config.redis.db == 3

    def test_prefixed_wins_over_alias(self, isolated_env):
        isolated_env.setenv("REDIS_HOST", "alias-host")
        isolated_env.setenv("LLMMEMORY_REDIS_HOST", "prefixed-host")
        assert load_memory_config().redis.host == "prefixed-host"

    def test_volatile_field(self, isolated_env):
        isolated_env.setenv("LLMMEMORY_VOLATILE_COPY_ON_READ", "false")
        assert load_memory_config().volatile.copy_on_read is False

    def test_unknown_variables_ignored(self):
        overrides = _env_overrides({"LLMMEMORY_REDIS_NOPE": "1", "LLMMEMORY_OTHER": "x", "PATH": "/bin"})
        assert overrides == {}

    def test_env_takes_precedence_over_dict(self, isolated_env):
        isolated_env.setenv("LLMMEMORY_REDIS_PORT", "7000")
        config = load_memory_config(config_dict={"redis": {"port": 6380, "host": "dict-host"}})

        assert config.redis.port == 7000
        assert config.redis.host == "dict-host"

    def test_apply_env_false(self, isolated_env):
        isolated_env.setenv("LLMMEMORY_BACKEND", "redis")
        assert load_memory_config(apply_env=False).backend == "volatile"

    def test_invalid_env_value_raises(self, isolated_env):
        isolated_env.setenv("LLMMEMORY_REDIS_PORT", "not-a-number")
        with pytest.raises(ConfigError):
            load_memory_config()


# =============================================================================
# TEST: Helpers
# =============================================================================


class TestDeepMerge:
    """Test _deep_merge."""

    def test_nested_merge(self):
        base = {"redis": {"host": "a", "port": 1}, "backend": "volatile"}
        merged = _deep_merge(base, {"redis": {"port": 2}})

        assert merged == {"redis": {"host": "a", "port": 2}, "backend": "volatile"}
        assert base["redis"]["port"] == 1

    def test_non_dict_replaces(self):
        assert _deep_merge({"a": {"b": 1}}, {"a": 5}) == {"a": 5}
