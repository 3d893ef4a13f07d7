"""OAuth1 credential resolution.

Secrets are looked up by service/account name through a CredentialProvider.
The default provider reads the operating system's secret store via
``keyring``; an environment-backed provider covers hosts without one.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

import keyring
from keyring.backend import KeyringBackend
from keyring.errors import KeyringError

from infrastructure.logging.logger import get_logger
from system.ally_api.config import EnvCredentialSettings
from system.ally_api.errors import CredentialError, CredentialNotFoundError

DEFAULT_SERVICE = "TradeKing"
CREDENTIAL_ACCOUNTS = ("consumer_key", "consumer_secret", "access_token", "access_secret")


@dataclass(frozen=True)
class Credentials:
    """The four OAuth1 secrets needed to sign requests."""

    consumer_key: str
    consumer_secret: str
    access_token: str
    access_secret: str

    def __repr__(self) -> str:
        return "Credentials(consumer_key=***, consumer_secret=***, access_token=***, access_secret=***)"


class CredentialProvider(ABC):
    """Looks up secrets by service and account name."""

    @abstractmethod
    def find_secrets(self, service: str, account: str) -> list[str]:
        """Return every secret stored under ``service``/``account``."""

    def lookup(self, service: str, account: str) -> str:
        """Return the single secret for ``service``/``account``.

        Raises:
            CredentialNotFoundError: If zero or several secrets match.
        """
        secrets = self.find_secrets(service, account)
        if len(secrets) != 1:
            raise CredentialNotFoundError(service, account, len(secrets))
        return secrets[0]


class KeyringCredentialProvider(CredentialProvider):
    """Secrets stored as generic passwords in the OS secret store."""

    def __init__(self, backend: KeyringBackend | None = None):
        self.backend = backend if backend is not None else keyring.get_keyring()
        self.logger = get_logger(self.__class__.__name__)

    def find_secrets(self, service: str, account: str) -> list[str]:
        self.logger.debug(f"Querying {type(self.backend).__name__} for {service}/{account}")
        try:
            password = self.backend.get_password(service, account)
        except KeyringError as e:
            raise CredentialError(f"secret store lookup for {service}/{account} failed: {e}") from e
        return [] if password is None else [password]


class EnvCredentialProvider(CredentialProvider):
    """Secrets read from ALLY_* environment variables.

    The service name is ignored; accounts map onto settings fields.
    """

    def __init__(self, settings: EnvCredentialSettings | None = None):
        self.settings = settings if settings is not None else EnvCredentialSettings()

    def find_secrets(self, service: str, account: str) -> list[str]:
        value = getattr(self.settings, account, "")
        return [value] if value else []


def load_credentials(provider: CredentialProvider, service: str = DEFAULT_SERVICE) -> Credentials:
    """Resolve all four OAuth secrets from ``provider``.

    Args:
        provider: Secret source.
        service: Service name the secrets are filed under.

    Returns:
        Credentials populated from the provider.

    Raises:
        CredentialError: If any secret is missing, ambiguous or unreadable.
    """
    values = {}
    for account in CREDENTIAL_ACCOUNTS:
        try:
            values[account] = provider.lookup(service, account)
        except CredentialNotFoundError as e:
            raise CredentialError(f"Error setting up {service} client: {e}") from e
    return Credentials(**values)
