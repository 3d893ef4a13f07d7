"""Configuration models for shared infrastructure components.

Provides Pydantic-based settings for the background thread manager used by
the API client to run rate-limit bookkeeping off the main flow.
"""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ThreadConfig(BaseSettings):
    """Thread manager configuration with environment variable support.

    Reads from THREAD_* environment variables automatically.

    Attributes:
        daemon_threads: Whether background threads are daemon threads. The
            CLI joins them explicitly before exit, so daemon threads only
            matter when a join times out.
        max_threads: Maximum number of concurrently running threads.
        thread_timeout: Join timeout per thread in seconds.
    """

    daemon_threads: bool = Field(default=True)
    max_threads: int = Field(default=16, ge=1)
    thread_timeout: float = Field(default=30.0, gt=0)

    model_config = SettingsConfigDict(
        env_prefix="THREAD_",
        env_file=None,
        extra="ignore",
    )
