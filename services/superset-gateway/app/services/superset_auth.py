"""
Superset session authentication

Logs in the way a browser does (login page, form post, CSRF endpoint) so the
resulting session cookie and CSRF token can drive SQL Lab and Explore API
calls. A bearer token is also requested but is optional.
"""

import logging
import re
from typing import Optional
import httpx

from ..config import Settings, get_settings
from ..exceptions import (
    AuthError,
    CsrfError,
    LoginError,
    LoginPageError,
    UpstreamTimeoutError,
)
from ..models import SessionTokens, SupersetCredentials
from .session_cache import get_session_cache
from .superset_http import USER_AGENT, parse_response_body, superset_client

logger = logging.getLogger(__name__)

LOGIN_PATH = "/login/"
CSRF_TOKEN_PATH = "/api/v1/security/csrf_token/"
TOKEN_LOGIN_PATH = "/api/v1/security/login"


class LoginPageParser:
    """Extracts the CSRF seed token from the HTML login form"""

    pattern = re.compile(r'name="csrf_token"[^>]*value="([^"]*)"')

    def extract_csrf_token(self, html: str) -> Optional[str]:
        match = self.pattern.search(html)
        return match.group(1) if match else None


class SupersetAuth:
    """Runs one login handshake against Superset"""

    def __init__(
        self,
        credentials: SupersetCredentials,
        client: httpx.AsyncClient,
        parser: Optional[LoginPageParser] = None
    ):
        """
        Initialize Superset authentication

        Args:
            credentials: Base URL, username and password
            client: HTTP client used for the four handshake calls
            parser: Login page parser, replaceable if the page markup changes
        """
        self.credentials = credentials
        self.client = client
        self.parser = parser or LoginPageParser()
        self.base_url = credentials.base_url

    async def authenticate(self) -> SessionTokens:
        """
        Log in and collect session tokens.

        Returns:
            Session tokens for subsequent API calls

        Raises:
            LoginPageError, LoginError, CsrfError: If a required step fails
            UpstreamTimeoutError: If a required step times out
            AuthError: On any other transport failure
        """
        logger.info(f"🔑 Authenticating with Superset at {self.base_url} as {self.credentials.username}")
        try:
            cookies, seed_token = await self._fetch_login_page()
            cookies = await self._submit_login_form(cookies, seed_token)
            csrf_token = await self._fetch_csrf_token(cookies)
        except httpx.TimeoutException as e:
            raise UpstreamTimeoutError(f"Superset authentication timed out: {e}") from e
        except httpx.HTTPError as e:
            raise AuthError(f"Authentication error: {e}") from e

        access_token = await self._fetch_access_token(cookies)

        logger.info("✅ Superset authentication succeeded")
        return SessionTokens(
            csrf_token=csrf_token,
            session_cookies=cookies or "",
            access_token=access_token,
        )

    def _headers(self, cookies: Optional[str], **extra: str) -> dict:
        headers = {"User-Agent": USER_AGENT, **extra}
        if cookies:
            headers["Cookie"] = cookies
        return headers

    async def _fetch_login_page(self):
        """Step 1: session cookie and CSRF seed token from the login page"""
        response = await self.client.get(
            f"{self.base_url}{LOGIN_PATH}",
            headers=self._headers(None),
        )
        if not response.is_success:
            raise LoginPageError(
                f"Failed to get login page: {response.status_code} {response.reason_phrase}"
            )

        cookies = response.headers.get("set-cookie")
        seed_token = self.parser.extract_csrf_token(response.text)
        if seed_token is None:
            raise LoginPageError("Failed to extract CSRF token from login page")

        return cookies, seed_token

    async def _submit_login_form(self, cookies: Optional[str], seed_token: str) -> Optional[str]:
        """Step 2: form login; a 302 to the welcome page means success"""
        response = await self.client.post(
            f"{self.base_url}{LOGIN_PATH}",
            data={
                "username": self.credentials.username,
                "password": self.credentials.password,
                "provider": "db",
                "csrf_token": seed_token,
            },
            headers=self._headers(
                cookies,
                Referer=f"{self.base_url}{LOGIN_PATH}",
                Origin=self.base_url,
            ),
            follow_redirects=False,
        )

        cookies = response.headers.get("set-cookie") or cookies

        if response.status_code not in (200, 302):
            raise LoginError(f"Login failed: {response.status_code} {response.reason_phrase}")

        return cookies

    async def _fetch_csrf_token(self, cookies: Optional[str]) -> str:
        """Step 3: authoritative CSRF token for API calls"""
        response = await self.client.get(
            f"{self.base_url}{CSRF_TOKEN_PATH}",
            headers=self._headers(cookies, Accept="application/json"),
        )
        if not response.is_success:
            raise CsrfError(f"Failed to get CSRF token: {response.status_code} {response.reason_phrase}")

        body, parsed = parse_response_body(response)
        token = body.get("result") if parsed else None
        if not token:
            raise CsrfError("CSRF token response did not contain a token")
        return str(token)

    async def _fetch_access_token(self, cookies: Optional[str]) -> Optional[str]:
        """Step 4: bearer token; failures are logged and ignored"""
        try:
            response = await self.client.post(
                f"{self.base_url}{TOKEN_LOGIN_PATH}",
                json={
                    "username": self.credentials.username,
                    "password": self.credentials.password,
                    "provider": "db",
                },
                headers=self._headers(cookies, Accept="application/json"),
            )
        except httpx.HTTPError as e:
            logger.warning(f"⚠️ Bearer token request failed, continuing with session auth: {e}")
            return None

        if not response.is_success:
            logger.warning(f"⚠️ Bearer token request returned {response.status_code}, continuing with session auth")
            return None

        body, _ = parse_response_body(response)
        return body.get("access_token")


async def authenticate_with_superset(
    settings: Optional[Settings] = None,
    client: Optional[httpx.AsyncClient] = None,
    force_refresh: bool = False
) -> SessionTokens:
    """
    Authenticate with the configured Superset server.

    Args:
        settings: Settings holding SUPERSET_* variables (global settings by default)
        client: Optional HTTP client to reuse
        force_refresh: Skip the session cache and run a fresh handshake

    Returns:
        Session tokens

    Raises:
        MissingCredentialsError: If any Superset variable is unset
        AuthError: If the handshake fails
    """
    settings = settings or get_settings()
    credentials = settings.superset_credentials()
    cache = get_session_cache(settings.SUPERSET_SESSION_TTL)

    if not force_refresh:
        cached = cache.get(credentials)
        if cached is not None:
            logger.info("Reusing cached Superset session")
            return cached

    async with superset_client(settings, client) as http:
        try:
            tokens = await SupersetAuth(credentials, http).authenticate()
        except (AuthError, UpstreamTimeoutError):
            cache.invalidate(credentials)
            raise

    cache.put(credentials, tokens)
    return tokens
