"""OAuth1-signed HTTP transport for the Ally Invest API.

Requests are prepared through a ``requests_oauthlib.OAuth1Session`` so each
one is signed with the client's credentials before it is sent.
"""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from urllib.parse import urlencode, urlsplit

import requests
from requests_oauthlib import OAuth1Session

from infrastructure.logging.logger import get_logger
from system.ally_api.config import DEFAULT_BASE_URL
from system.ally_api.credentials import Credentials
from system.ally_api.errors import RequestBuildError, TransportError

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"

FormParams = Mapping[str, Sequence[str]]

# RFC 7230 token characters
_METHOD_TOKEN = re.compile(r"[!#$%&'*+\-.^_`|~0-9A-Za-z]+")


def encode_form(form: FormParams) -> str:
    """URL-encode string-list parameters, keys sorted, values in order."""
    return urlencode([(key, value) for key in sorted(form) for value in form[key]])


class SignedTransport:
    """Builds, signs and sends requests against the Ally API.

    Attributes:
        logger: Configured logger instance.
        base_url: Root that endpoints starting with ``/`` are resolved against.
        timeout: Optional requests timeout in seconds.
        session: OAuth1-configured requests session.
    """

    def __init__(
        self,
        credentials: Credentials,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float | None = None,
        session: requests.Session | None = None,
    ):
        self.logger = get_logger(self.__class__.__name__)
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        if session is None:
            session = OAuth1Session(
                client_key=credentials.consumer_key,
                client_secret=credentials.consumer_secret,
                resource_owner_key=credentials.access_token,
                resource_owner_secret=credentials.access_secret,
            )
        self.session = session

    def resolve(self, endpoint: str) -> str:
        """Return the absolute URL for ``endpoint``."""
        if endpoint.startswith("/"):
            return self.base_url + endpoint
        return endpoint

    def build_request(
        self, method: str, endpoint: str, form: FormParams | None = None
    ) -> requests.PreparedRequest:
        """Build and sign a request.

        POST sends ``form`` as a urlencoded body. Any other method carries no
        body; its parameters go in the query string.

        Raises:
            RequestBuildError: If the method is not a valid token or the URL
                cannot be used.
        """
        if not method or not _METHOD_TOKEN.fullmatch(method):
            raise RequestBuildError(f"invalid method {method!r}")
        method = method.upper()
        url = self.resolve(endpoint)
        if urlsplit(url).scheme.lower() not in ("http", "https"):
            raise RequestBuildError(f"unsupported URL {url!r}")

        headers = {"Accept": "application/json"}
        data = None
        params = None
        if form:
            encoded = encode_form(form)
            if method == "POST":
                data = encoded
            else:
                params = encoded
        if method == "POST":
            headers["Content-Type"] = FORM_CONTENT_TYPE

        request = requests.Request(method, url, headers=headers, data=data, params=params)
        try:
            return self.session.prepare_request(request)
        except (requests.RequestException, ValueError) as e:
            raise RequestBuildError(f"unable to build {method} {url}: {e}") from e

    def send(
        self, method: str, endpoint: str, form: FormParams | None = None
    ) -> requests.Response:
        """Send a signed request, leaving the body unread for streaming.

        Raises:
            RequestBuildError: If the request cannot be built.
            TransportError: If the exchange fails.
        """
        prepared = self.build_request(method, endpoint, form)
        self.logger.debug(f"Making {prepared.method} request to {prepared.url}")
        try:
            response = self.session.send(prepared, stream=True, timeout=self.timeout)
        except requests.RequestException as e:
            raise TransportError(f"{prepared.method} {prepared.url} failed: {e}") from e

        self.logger.debug(f"Response status code: {response.status_code}")
        if not response.ok:
            self.logger.warning(
                f"{prepared.method} {prepared.url} returned status {response.status_code}"
            )
        return response

    def close(self) -> None:
        self.session.close()
