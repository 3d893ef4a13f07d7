"""Ally market data API handler.

Provides batch REST quotes and streaming quotes for a list of symbols on top
of a shared AllyClient.
"""

from __future__ import annotations

from infrastructure.logging.logger import get_logger
from system.ally_api.client import AllyClient
from system.ally_api.models import APIResponse

QUOTES_ENDPOINT = "/market/ext/quotes.json"
STREAM_QUOTES_PATH = "/market/quotes.json"


def symbols_form(symbols: list[str]) -> dict[str, list[str]]:
    """Form parameters for a quote request; order and duplicates are kept."""
    return {"symbols": [",".join(symbols)]}


class MarketHandler:
    """Ally market data endpoints.

    Attributes:
        client: Shared API client.
        stream_endpoint: Absolute URL of the streaming quotes endpoint.
    """

    def __init__(self, client: AllyClient):
        self.client = client
        self.stream_endpoint = client.config.stream_url.rstrip("/") + STREAM_QUOTES_PATH
        self.logger = get_logger(self.__class__.__name__)

    def get_quotes(self, symbols: list[str]) -> list[APIResponse]:
        """Fetch quotes for ``symbols`` in one REST call.

        Args:
            symbols: Ticker symbols in the order they should be requested.

        Returns:
            Decoded responses; quotes are normalized to a list whether the
            API returned one quote or several.
        """
        self.logger.info(f"Getting quotes for {symbols}")
        return self.client.post(QUOTES_ENDPOINT, symbols_form(symbols))

    def stream_quotes(self, symbols: list[str]) -> list[APIResponse]:
        """Stream trade events for ``symbols`` until the server closes.

        Each event is printed as it arrives.
        """
        self.logger.info(f"Streaming quotes for {symbols}")
        return self.client.post(self.stream_endpoint, symbols_form(symbols), stream=True)
