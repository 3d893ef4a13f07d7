"""Shared fixtures for ally_api tests.

HTTP and the secret store are mocked here so individual tests only assert
behavior and contracts. Responses are MagicMocks shaped like
``requests.Response`` with a chunked body.
"""

from __future__ import annotations

import io
from unittest.mock import MagicMock

import pytest

from infrastructure.config import ThreadConfig
from system.ally_api.config import AllyConfig
from system.ally_api.credentials import CredentialProvider, Credentials


class StaticCredentialProvider(CredentialProvider):
    """Provider backed by a dict of (service, account) -> list of secrets."""

    def __init__(self, secrets: dict[tuple[str, str], list[str]]):
        self.secrets = secrets

    def find_secrets(self, service: str, account: str) -> list[str]:
        return list(self.secrets.get((service, account), []))


def make_response(
    body: str | bytes | list[bytes],
    headers: dict[str, str] | None = None,
    status_code: int = 200,
) -> MagicMock:
    """Build a mock requests.Response whose body is served in chunks."""
    if isinstance(body, str):
        body = body.encode("utf-8")
    chunks = body if isinstance(body, list) else [body[i : i + 7] for i in range(0, len(body), 7)]

    response = MagicMock()
    response.status_code = status_code
    response.ok = 200 <= status_code < 300
    response.headers = headers if headers is not None else {}
    response.iter_content.side_effect = lambda chunk_size=1: iter(chunks)
    return response


@pytest.fixture(autouse=True)
def clean_ally_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep developer ALLY_*/THREAD_* settings out of the tests."""
    for name in (
        "ALLY_BASE_URL",
        "ALLY_STREAM_URL",
        "ALLY_KEYRING_SERVICE",
        "ALLY_LOW_REMAINING_THRESHOLD",
        "ALLY_REQUEST_TIMEOUT",
        "ALLY_STREAM_CHUNK_SIZE",
        "ALLY_CONSUMER_KEY",
        "ALLY_CONSUMER_SECRET",
        "ALLY_ACCESS_TOKEN",
        "ALLY_ACCESS_SECRET",
        "THREAD_MAX_THREADS",
        "THREAD_THREAD_TIMEOUT",
        "THREAD_DAEMON_THREADS",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def credentials() -> Credentials:
    return Credentials(
        consumer_key="test-consumer-key",
        consumer_secret="test-consumer-secret",
        access_token="test-access-token",
        access_secret="test-access-secret",
    )


@pytest.fixture
def full_provider() -> StaticCredentialProvider:
    """Provider holding exactly one secret for each required account."""
    return StaticCredentialProvider(
        {
            ("TradeKing", "consumer_key"): ["ck"],
            ("TradeKing", "consumer_secret"): ["cs"],
            ("TradeKing", "access_token"): ["at"],
            ("TradeKing", "access_secret"): ["as"],
        }
    )


@pytest.fixture
def ally_config() -> AllyConfig:
    return AllyConfig(threads=ThreadConfig(max_threads=8, thread_timeout=5))


@pytest.fixture
def transport_mock() -> MagicMock:
    """Stand-in for SignedTransport; tests set ``send.return_value``."""
    return MagicMock()


@pytest.fixture
def ally_client(credentials, ally_config, transport_mock):
    """AllyClient wired to a mocked transport."""
    from system.ally_api.client import AllyClient

    client = AllyClient(credentials, config=ally_config, transport=transport_mock)
    yield client
    client.wait_for_background()


@pytest.fixture
def out() -> io.StringIO:
    return io.StringIO()


@pytest.fixture
def response_factory():
    """Factory for mock responses, see ``make_response``."""
    return make_response


@pytest.fixture
def provider_factory():
    """Factory for StaticCredentialProvider instances."""
    return StaticCredentialProvider
