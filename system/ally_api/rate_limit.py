"""Rate-limit bookkeeping from Ally response headers.

Every API response reports the caller's budget:

- X-Ratelimit-Used: requests sent against the current limit
- X-Ratelimit-Expire: when the current limit expires (Unix seconds.nanoseconds)
- X-Ratelimit-Limit: total requests allowed in the window
- X-Ratelimit-Remaining: requests still allowed in the window

The tracker is shared by every call of a client and is updated from
background threads, so all state changes happen under its lock.
"""

from __future__ import annotations

import threading
from collections.abc import Mapping
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone

from requests.structures import CaseInsensitiveDict

from infrastructure.logging.logger import get_logger
from system.ally_api.errors import RateLimitParseError

USED_HEADER = "X-Ratelimit-Used"
EXPIRE_HEADER = "X-Ratelimit-Expire"
LIMIT_HEADER = "X-Ratelimit-Limit"
REMAINING_HEADER = "X-Ratelimit-Remaining"

DEFAULT_LOW_REMAINING_THRESHOLD = 10

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def parse_expire_timestamp(value: str) -> datetime:
    """Parse a ``seconds.nanoseconds`` Unix timestamp.

    The parts are split on ``.`` and each is read as an integer; an empty
    part counts as zero. Nanoseconds are truncated to microseconds.

    Args:
        value: Header value such as ``"1609459200.500000000"``.

    Returns:
        Timezone-aware UTC datetime.

    Raises:
        RateLimitParseError: If either part is not an integer or there are
            more than two parts.
    """
    parts = value.strip().split(".")
    if len(parts) > 2:
        raise RateLimitParseError(EXPIRE_HEADER, value)

    numbers = [0, 0]
    for i, part in enumerate(parts):
        if part:
            try:
                numbers[i] = int(part)
            except ValueError as e:
                raise RateLimitParseError(EXPIRE_HEADER, value) from e

    seconds, nanoseconds = numbers
    try:
        return _EPOCH + timedelta(seconds=seconds, microseconds=nanoseconds // 1000)
    except OverflowError as e:
        raise RateLimitParseError(EXPIRE_HEADER, value) from e


def _parse_int_header(headers: Mapping[str, str], name: str) -> int:
    value = headers.get(name)
    if value is None:
        raise RateLimitParseError(name, None)
    try:
        return int(value.strip())
    except ValueError as e:
        raise RateLimitParseError(name, value) from e


@dataclass(frozen=True)
class RateLimitState:
    """Snapshot of the API call budget.

    Attributes:
        calls_remaining: Requests still allowed in the current window.
        used: Requests already sent in the window, if reported.
        limit: Window size, if reported.
        expires_at: When the window resets, parsed only when the budget is low.
    """

    calls_remaining: int = 0
    used: int | None = None
    limit: int | None = None
    expires_at: datetime | None = None


class RateLimitTracker:
    """Lock-guarded rate-limit state shared by all calls of one client.

    Attributes:
        logger: Configured logger instance.
        threshold: Remaining-call count below which a warning is logged.
        lock: Lock serializing updates.
    """

    def __init__(self, threshold: int = DEFAULT_LOW_REMAINING_THRESHOLD):
        self.logger = get_logger(self.__class__.__name__)
        self.threshold = threshold
        self.lock = threading.Lock()
        self._state = RateLimitState()

    @property
    def state(self) -> RateLimitState:
        with self.lock:
            return self._state

    @property
    def calls_remaining(self) -> int:
        return self.state.calls_remaining

    def update(self, headers: Mapping[str, str]) -> RateLimitState:
        """Apply the rate-limit headers of one response.

        Args:
            headers: Response headers; names are matched case-insensitively.

        Returns:
            The new state.

        Raises:
            RateLimitParseError: If X-Ratelimit-Remaining is missing or not
                an integer. State is left unchanged.
        """
        headers = CaseInsensitiveDict(headers)
        with self.lock:
            remaining = _parse_int_header(headers, REMAINING_HEADER)
            state = RateLimitState(
                calls_remaining=remaining,
                used=self._optional_int(headers, USED_HEADER),
                limit=self._optional_int(headers, LIMIT_HEADER),
            )

            if remaining < self.threshold:
                self.logger.warning(f"Warning: only {remaining} API calls remaining")
                expire = headers.get(EXPIRE_HEADER)
                try:
                    if expire is None:
                        raise RateLimitParseError(EXPIRE_HEADER, None)
                    state = replace(state, expires_at=parse_expire_timestamp(expire))
                except RateLimitParseError as e:
                    self.logger.error(f"Unable to determine rate limit expiration: {e}")
                else:
                    self.logger.warning(
                        f"Current limit set to expire at {state.expires_at.isoformat()}"
                    )

            self._state = state
            return state

    def record(self, headers: Mapping[str, str]) -> RateLimitState | None:
        """Background entry point: update state, logging parse failures.

        Returns:
            The new state, or None if the headers could not be parsed.
        """
        try:
            return self.update(headers)
        except RateLimitParseError as e:
            self.logger.error(f"Unable to determine API calls remaining: {e}")
            return None

    def _optional_int(self, headers: Mapping[str, str], name: str) -> int | None:
        try:
            return _parse_int_header(headers, name)
        except RateLimitParseError:
            self.logger.debug(f"{name} header not usable; leaving it unset")
            return None
