"""
Authentication strategies for `hotpatch login`.

Two ways of obtaining a registry token feed the same config persistence:

- ApiKeyAuth exchanges a dashboard API key through POST /auth/token.
- BrowserCallbackAuth opens the dashboard login page in a browser and
  captures the token from a redirect to a one-shot loopback listener.
"""

import asyncio
import logging
import time
import webbrowser
from dataclasses import dataclass
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import Callable, Optional, Protocol
from urllib.parse import parse_qs, urlencode, urlparse

from hotpatch.api_client import RegistryClient
from hotpatch.config import HotPatchConfig
from hotpatch.errors import NotAuthenticatedError

logger = logging.getLogger(__name__)

CALLBACK_PATH = "/callback"
DEFAULT_CALLBACK_TIMEOUT = 300  # seconds


@dataclass
class AuthResult:
    """Token obtained by a strategy."""
    token: str
    expires_in: int = 0


class AuthStrategy(Protocol):
    """Obtains an access token for a registry endpoint."""

    async def obtain_token(self, endpoint: str) -> AuthResult:
        ...


# ============================================================================
# API Key Exchange
# ============================================================================


class ApiKeyAuth:
    """Exchange an API key for a token."""

    def __init__(self, api_key: str):
        if not api_key:
            raise NotAuthenticatedError("An API key is required")
        self._api_key = api_key

    async def obtain_token(self, endpoint: str) -> AuthResult:
        async with RegistryClient(endpoint) as client:
            response = await client.authenticate(self._api_key)
        return AuthResult(token=response.access_token, expires_in=response.expires_in)


# ============================================================================
# Browser Redirect Capture
# ============================================================================


class _CallbackHandler(BaseHTTPRequestHandler):
    """Captures ?token=... on the callback path."""

    def do_GET(self) -> None:  # noqa: N802
        parsed = urlparse(self.path)
        if parsed.path != CALLBACK_PATH:
            self.send_error(404)
            return

        token = parse_qs(parsed.query).get("token", [""])[0]
        self.server.captured_token = token or None  # type: ignore[attr-defined]

        body = (
            b"<html><body><h3>HotPatch CLI login complete.</h3>"
            b"<p>You can close this window.</p></body></html>"
            if token else
            b"<html><body><h3>Login failed: no token received.</h3></body></html>"
        )
        self.send_response(200 if token else 400)
        self.send_header("Content-Type", "text/html")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, format: str, *args) -> None:
        logger.debug("callback listener: " + format, *args)


class BrowserCallbackAuth:
    """
    Capture a token from the dashboard's post-login redirect.

    Attributes:
        login_url: Dashboard login page (defaults to <endpoint>/login)
        timeout: Seconds to wait for the redirect
    """

    def __init__(
        self,
        login_url: Optional[str] = None,
        timeout: int = DEFAULT_CALLBACK_TIMEOUT,
        open_browser: Callable[[str], bool] = webbrowser.open,
        host: str = "127.0.0.1",
        port: int = 0,
    ):
        self.login_url = login_url
        self.timeout = timeout
        self._open_browser = open_browser
        self._host = host
        self._port = port

    def _wait_for_token(self, endpoint: str) -> str:
        server = HTTPServer((self._host, self._port), _CallbackHandler)
        server.captured_token = None  # type: ignore[attr-defined]
        server.timeout = self.timeout
        try:
            port = server.server_address[1]
            callback = f"http://{self._host}:{port}{CALLBACK_PATH}"
            base = self.login_url or f"{endpoint.rstrip('/')}/login"
            url = f"{base}?{urlencode({'cli_callback': callback})}"
            logger.info("Opening browser for login: %s", url)
            if not self._open_browser(url):
                logger.warning("Could not open a browser. Visit this URL to log in: %s", url)

            # handle_request() returns after one request or the timeout;
            # stray requests (favicon etc.) leave captured_token unset
            deadline = time.monotonic() + self.timeout
            token = None
            while token is None and time.monotonic() < deadline:
                server.timeout = max(0.1, deadline - time.monotonic())
                server.handle_request()
                token = server.captured_token  # type: ignore[attr-defined]
        finally:
            server.server_close()

        if not token:
            raise NotAuthenticatedError(
                f"No login token received within {self.timeout}s"
            )
        return token

    async def obtain_token(self, endpoint: str) -> AuthResult:
        token = await asyncio.to_thread(self._wait_for_token, endpoint)
        return AuthResult(token=token)


# ============================================================================
# Login
# ============================================================================


async def login(config: HotPatchConfig, endpoint: str, strategy: AuthStrategy) -> AuthResult:
    """
    Obtain a token with a strategy and persist it with the endpoint.

    Raises:
        NotAuthenticatedError: If the strategy cannot obtain a token
        ConfigValidationError: If the endpoint URL is malformed
    """
    result = await strategy.obtain_token(endpoint)
    config.update_credentials(endpoint, result.token)
    logger.info("Logged in to %s", endpoint)
    return result
