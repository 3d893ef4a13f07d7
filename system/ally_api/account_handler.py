"""Ally account API handler."""

from __future__ import annotations

from infrastructure.logging.logger import get_logger
from system.ally_api.client import AllyClient
from system.ally_api.models import APIResponse

ACCOUNTS_ENDPOINT = "/accounts.json"


class AccountHandler:
    """Read-only account endpoints backed by a shared AllyClient."""

    def __init__(self, client: AllyClient):
        self.client = client
        self.logger = get_logger(self.__class__.__name__)

    def show_accounts(self) -> list[APIResponse]:
        """List the accounts the access token can see."""
        self.logger.info("Getting accounts")
        return self.client.get(ACCOUNTS_ENDPOINT)
