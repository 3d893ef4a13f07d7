"""Unit tests for Configuration Models - Infrastructure Components.

Tests cover ThreadConfig initialization, environment variable handling,
validation and default values.
"""

import os
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from infrastructure.config import ThreadConfig


class TestThreadConfig:
    """Test ThreadConfig initialization and configuration."""

    def test_thread_config_defaults(self):
        """Test ThreadConfig uses default values when no env vars set."""
        with patch.dict(os.environ, {}, clear=True):
            config = ThreadConfig()

            assert config.daemon_threads is True
            assert config.max_threads == 16
            assert config.thread_timeout == 30.0

    def test_thread_config_from_env_vars(self):
        """Test ThreadConfig reads from THREAD_ environment variables."""
        with patch.dict(
            os.environ,
            {
                "THREAD_DAEMON_THREADS": "false",
                "THREAD_MAX_THREADS": "4",
                "THREAD_THREAD_TIMEOUT": "2.5",
            },
        ):
            config = ThreadConfig()

            assert config.daemon_threads is False
            assert config.max_threads == 4
            assert config.thread_timeout == 2.5

    def test_thread_config_custom_values(self):
        """Test ThreadConfig accepts custom values."""
        config = ThreadConfig(daemon_threads=False, max_threads=3, thread_timeout=1)

        assert config.daemon_threads is False
        assert config.max_threads == 3
        assert config.thread_timeout == 1.0

    def test_thread_config_ignores_unrelated_env(self):
        """Test other prefixes do not leak into ThreadConfig."""
        with patch.dict(os.environ, {"MAX_THREADS": "99", "THREAD_UNKNOWN": "x"}, clear=True):
            config = ThreadConfig()

            assert config.max_threads == 16

    @pytest.mark.parametrize(
        "kwargs", [{"max_threads": 0}, {"thread_timeout": 0}, {"thread_timeout": -1}]
    )
    def test_thread_config_rejects_invalid_values(self, kwargs):
        """Test bounds on thread count and timeout."""
        with pytest.raises(ValidationError):
            ThreadConfig(**kwargs)
