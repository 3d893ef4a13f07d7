"""Configuration models for the ally_api system.

Endpoint roots, secret store naming and tunables for the API client, read
from ALLY_* environment variables.
"""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from infrastructure.config import ThreadConfig

DEFAULT_BASE_URL = "https://devapi.invest.ally.com/v1"
DEFAULT_STREAM_URL = "https://devapi-stream.invest.ally.com/v1"


class AllyConfig(BaseSettings):
    """Ally Invest API client configuration.

    Attributes:
        base_url: Versioned REST API root that relative endpoints resolve to.
        stream_url: Versioned root of the streaming host.
        keyring_service: Secret store service name holding the OAuth secrets.
        low_remaining_threshold: Remaining-call count below which a
            low-budget warning is logged.
        request_timeout: Optional requests timeout in seconds. None keeps
            streaming connections open indefinitely.
        stream_chunk_size: Bytes read per chunk when consuming a body.
        threads: Settings for the background rate-limit threads.
    """

    base_url: str = Field(default=DEFAULT_BASE_URL)
    stream_url: str = Field(default=DEFAULT_STREAM_URL)
    keyring_service: str = Field(default="TradeKing")
    low_remaining_threshold: int = Field(default=10)
    request_timeout: float | None = Field(default=None, gt=0)
    stream_chunk_size: int = Field(default=1024, ge=1)
    threads: ThreadConfig = Field(default_factory=ThreadConfig)

    model_config = SettingsConfigDict(
        env_prefix="ALLY_",
        env_file=None,
        extra="ignore",
    )


class EnvCredentialSettings(BaseSettings):
    """OAuth secrets supplied through the environment.

    Used where no OS secret store is available (containers, CI).

    Attributes:
        consumer_key: OAuth consumer key.
        consumer_secret: OAuth consumer secret.
        access_token: OAuth access token.
        access_secret: OAuth access token secret.
    """

    consumer_key: str = Field(default="")
    consumer_secret: str = Field(default="")
    access_token: str = Field(default="")
    access_secret: str = Field(default="")

    model_config = SettingsConfigDict(
        env_prefix="ALLY_",
        env_file=None,
        extra="ignore",
    )
