"""Shared httpx helpers for calls to Superset"""
import json
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional, Tuple
import httpx

from ..config import Settings
from ..models import SessionTokens

logger = logging.getLogger(__name__)

USER_AGENT = "Mozilla/5.0 (compatible; Superset-API-Client)"
MAX_BODY_CHARS = 500


@asynccontextmanager
async def superset_client(
    settings: Settings,
    client: Optional[httpx.AsyncClient] = None
) -> AsyncIterator[httpx.AsyncClient]:
    """
    Yield the caller's client, or a fresh one bounded by SUPERSET_TIMEOUT.

    A client passed in is left open for the caller to close.
    """
    if client is not None:
        yield client
        return

    async with httpx.AsyncClient(timeout=httpx.Timeout(settings.SUPERSET_TIMEOUT)) as owned:
        yield owned


def parse_response_body(response: httpx.Response) -> Tuple[Dict[str, Any], bool]:
    """
    Parse a JSON object body, degrading to a raw-text wrapper.

    Returns:
        Tuple of (body, parsed). An empty body parses to {}; anything that is
        not a JSON object comes back as {"raw": text} with parsed=False.
    """
    text = response.text
    if not text:
        return {}, True
    try:
        body = json.loads(text)
    except ValueError:
        return {"raw": text}, False
    if not isinstance(body, dict):
        return {"raw": text}, False
    return body, True


def format_body(body: Any) -> str:
    """Stringify a response body for error messages"""
    rendered = body if isinstance(body, str) else json.dumps(body, default=str)
    if len(rendered) > MAX_BODY_CHARS:
        return rendered[:MAX_BODY_CHARS] + "..."
    return rendered


def build_auth_headers(tokens: SessionTokens, base_url: str, referer_path: str) -> Dict[str, str]:
    """
    Headers for cookie + CSRF authenticated JSON API calls.

    Args:
        tokens: Session tokens from the login handshake
        base_url: Superset base URL
        referer_path: Path of the Superset page the call would come from
    """
    headers = {
        "Content-Type": "application/json",
        "Accept": "application/json",
        "User-Agent": USER_AGENT,
        "X-CSRFToken": tokens.csrf_token,
        "Referer": f"{base_url}{referer_path}",
        "Origin": base_url,
    }
    if tokens.session_cookies:
        headers["Cookie"] = tokens.session_cookies
    return headers
