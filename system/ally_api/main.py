"""Command line entry point for the Ally Invest quote client.

Examples:
    allyapi --symbols=AAPL,MSFT
    allyapi --stream --symbols=AAPL
    allyapi --accounts
"""

from __future__ import annotations

import argparse
import sys
from importlib.metadata import PackageNotFoundError, version
from typing import ClassVar

import dotenv

from infrastructure.logging.logger import configure_logging, get_logger
from system.ally_api.account_handler import AccountHandler
from system.ally_api.client import AllyClient
from system.ally_api.config import AllyConfig
from system.ally_api.credentials import (
    CredentialProvider,
    EnvCredentialProvider,
    KeyringCredentialProvider,
)
from system.ally_api.errors import AllyAPIError, CredentialError
from system.ally_api.market_handler import MarketHandler

DISTRIBUTION_NAME = "ally-api"
ENV_FILE = "ally_api.env"


def get_version() -> str:
    try:
        return version(DISTRIBUTION_NAME)
    except PackageNotFoundError:
        return "undefined"


class AllyCLI:
    """Parses flags, builds the shared client and runs the requested call.

    Attributes:
        logger: Logger instance for this CLI.
    """

    CREDENTIAL_PROVIDERS: ClassVar[dict[str, type[CredentialProvider]]] = {
        "keyring": KeyringCredentialProvider,
        "env": EnvCredentialProvider,
    }

    def __init__(self) -> None:
        self.logger = get_logger(self.__class__.__name__)

    def build_parser(self) -> argparse.ArgumentParser:
        parser = argparse.ArgumentParser(
            prog="allyapi", description="Fetch quotes and account data from Ally Invest"
        )
        parser.add_argument("--version", action="store_true", help="Print version")
        parser.add_argument("--stream", action="store_true", help="Stream symbols")
        parser.add_argument(
            "--symbols",
            default="",
            help="Comma-separated list of symbols to search for quotes",
        )
        parser.add_argument("--accounts", action="store_true", help="List accounts")
        parser.add_argument(
            "--credentials",
            choices=sorted(self.CREDENTIAL_PROVIDERS),
            default="keyring",
            help="Where to read OAuth secrets from",
        )
        parser.add_argument("--log-level", default=None, help="Logging level (default: LOG_LEVEL)")
        return parser

    def run(self, argv: list[str] | None = None) -> int:
        """Execute the CLI workflow.

        Returns:
            Process exit status.
        """
        parser = self.build_parser()
        args = parser.parse_args(argv)
        configure_logging(args.log_level)

        if args.version:
            print(f"allyapi version: {get_version()}")
            return 0

        if not args.symbols and not args.accounts:
            parser.print_help()
            return 0

        dotenv.load_dotenv(dotenv.find_dotenv(ENV_FILE, usecwd=True))
        config = AllyConfig()
        provider = self.CREDENTIAL_PROVIDERS[args.credentials]()

        try:
            client = AllyClient.from_provider(provider, config)
        except CredentialError as e:
            self.logger.critical(str(e))
            return 1

        try:
            return self._execute(client, args)
        except KeyboardInterrupt:
            self.logger.info("Interrupted")
            return 130
        finally:
            client.close()

    def _execute(self, client: AllyClient, args: argparse.Namespace) -> int:
        if args.accounts:
            try:
                AccountHandler(client).show_accounts()
            except AllyAPIError as e:
                self.logger.error(f"error getting accounts: {e}")
                return 1

        if not args.symbols:
            return 0

        symbols = args.symbols.split(",")
        market = MarketHandler(client)
        try:
            if args.stream:
                market.stream_quotes(symbols)
            else:
                market.get_quotes(symbols)
        except AllyAPIError as e:
            action = "streaming" if args.stream else "getting"
            self.logger.error(f"error {action} quotes: {e}")
            return 1
        return 0


def main() -> None:
    sys.exit(AllyCLI().run())


if __name__ == "__main__":
    main()
