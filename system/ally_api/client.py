"""Ally Invest API client.

``AllyClient`` ties the pipeline together: it sends a signed request,
decodes and prints the body, then hands the rate-limit headers to a
background thread. One client is built per process and shared by the
market and account handlers.
"""

from __future__ import annotations

import sys
from typing import TextIO

import requests

from infrastructure.logging.logger import get_logger
from infrastructure.threads.thread_manager import ThreadManager
from system.ally_api.config import AllyConfig
from system.ally_api.credentials import CredentialProvider, Credentials, load_credentials
from system.ally_api.decoder import ResponseDecoder
from system.ally_api.errors import TransportError
from system.ally_api.models import APIResponse
from system.ally_api.rate_limit import RateLimitState, RateLimitTracker
from system.ally_api.transport import FormParams, SignedTransport


class AllyClient:
    """Signed, rate-limit-aware client for the Ally Invest API.

    Attributes:
        logger: Configured logger instance.
        config: Client configuration.
        transport: Signed HTTP transport.
        decoder: Response body decoder.
        rate_limit_tracker: Shared remaining-call state.
        thread_manager: Tracks background rate-limit threads.
    """

    def __init__(
        self,
        credentials: Credentials,
        config: AllyConfig | None = None,
        transport: SignedTransport | None = None,
        thread_manager: ThreadManager | None = None,
    ):
        self.logger = get_logger(self.__class__.__name__)
        self.config = config if config is not None else AllyConfig()
        self.transport = (
            transport
            if transport is not None
            else SignedTransport(
                credentials,
                base_url=self.config.base_url,
                timeout=self.config.request_timeout,
            )
        )
        self.decoder = ResponseDecoder()
        self.rate_limit_tracker = RateLimitTracker(self.config.low_remaining_threshold)
        self.thread_manager = (
            thread_manager
            if thread_manager is not None
            else ThreadManager(self.config.threads, name_prefix="ratelimit")
        )
        self.logger.debug("AllyClient initialized")

    @classmethod
    def from_provider(
        cls, provider: CredentialProvider, config: AllyConfig | None = None
    ) -> AllyClient:
        """Build a client from secrets held by ``provider``.

        Raises:
            CredentialError: If any secret cannot be resolved; no client is
                constructed.
        """
        config = config if config is not None else AllyConfig()
        credentials = load_credentials(provider, config.keyring_service)
        return cls(credentials, config=config)

    @property
    def calls_remaining(self) -> int:
        return self.rate_limit_tracker.calls_remaining

    @property
    def rate_limit(self) -> RateLimitState:
        return self.rate_limit_tracker.state

    def call(
        self,
        endpoint: str,
        method: str,
        form: FormParams | None = None,
        stream: bool = False,
        out: TextIO | None = None,
    ) -> list[APIResponse]:
        """Perform one API call and print its decoded body.

        Args:
            endpoint: Path relative to the REST root (leading ``/``) or an
                absolute URL.
            method: HTTP method.
            form: Optional string-list parameters.
            stream: Print each value as it arrives instead of after the
                whole body decoded.
            out: Destination for printed responses. Defaults to stdout.

        Returns:
            The decoded responses in arrival order.

        Raises:
            RequestBuildError: If the request cannot be built.
            TransportError: If sending or reading the body fails.
            DecodeError: If any value in the body fails to decode.
        """
        out = out if out is not None else sys.stdout
        response = self.transport.send(method, endpoint, form)
        try:
            chunks = response.iter_content(chunk_size=self.config.stream_chunk_size)
            decoded = self.decoder.decode(chunks, out, stream=stream)
        except requests.RequestException as e:
            raise TransportError(f"reading response body failed: {e}") from e
        finally:
            response.close()

        self._schedule_rate_limit_update(response.headers)
        return decoded

    def get(self, endpoint: str, **kwargs) -> list[APIResponse]:
        return self.call(endpoint, "GET", None, **kwargs)

    def post(self, endpoint: str, form: FormParams, **kwargs) -> list[APIResponse]:
        return self.call(endpoint, "POST", form, **kwargs)

    def _schedule_rate_limit_update(self, headers) -> None:
        headers = dict(headers)
        try:
            self.thread_manager.start_thread(self.rate_limit_tracker.record, args=(headers,))
        except RuntimeError as e:
            self.logger.warning(f"Updating rate limit inline: {e}")
            self.rate_limit_tracker.record(headers)

    def wait_for_background(self, timeout: float | None = None) -> bool:
        """Join every outstanding rate-limit thread.

        Returns:
            True if all threads finished within the timeout.
        """
        completed = self.thread_manager.wait_for_all_threads(timeout)
        summary = self.thread_manager.get_results_summary()
        self.logger.debug(f"Rate limit updates: {summary}")
        self.thread_manager.cleanup_dead_threads()
        return completed

    def close(self) -> None:
        """Wait for background work, then close the HTTP session."""
        self.wait_for_background()
        self.transport.close()

    def __enter__(self) -> AllyClient:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
