"""Exception hierarchy for the Ally Invest API client."""

from __future__ import annotations


class AllyAPIError(Exception):
    """Base class for all client errors."""


class CredentialError(AllyAPIError):
    """Credentials could not be resolved; the client cannot be built."""


class CredentialNotFoundError(AllyAPIError):
    """A secret store lookup did not match exactly one secret."""

    def __init__(self, service: str, account: str, matches: int):
        self.service = service
        self.account = account
        self.matches = matches
        super().__init__(f"got {matches} results for {service}/{account}")


class RequestBuildError(AllyAPIError):
    """The request could not be constructed (bad method or URL)."""


class TransportError(AllyAPIError):
    """The HTTP exchange failed at the network or protocol level."""


class DecodeError(AllyAPIError):
    """A response body could not be decoded.

    Attributes:
        field: Dotted path of the offending field, when known.
    """

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        if field:
            message = f"{field}: {message}"
        super().__init__(message)


class RateLimitParseError(AllyAPIError):
    """A rate-limit response header was missing or malformed."""

    def __init__(self, header: str, value: str | None):
        self.header = header
        self.value = value
        if value is None:
            super().__init__(f"missing {header} header")
        else:
            super().__init__(f"unable to parse {header} header: {value!r}")
