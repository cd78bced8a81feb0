"""Exception hierarchy for Superset Gateway.

Every error carries a stable ``code`` and an HTTP ``status_code`` that the
FastAPI exception handler in ``main.py`` turns into a JSON error response.
"""
from typing import Any, Dict, List, Optional


class GatewayError(Exception):
    """Base exception for all gateway errors"""

    status_code: int = 500

    def __init__(self, message: str, code: str = "GATEWAY_ERROR", details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(GatewayError):
    """Malformed request or disallowed SQL. Never sent upstream."""

    status_code = 400

    def __init__(self, message: str, field: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "VALIDATION_ERROR", details)
        self.field = field


class MissingCredentialsError(GatewayError):
    """One or more Superset environment variables are unset"""

    def __init__(self, missing: List[str]):
        message = (
            f"Missing required Superset credentials: {', '.join(missing)}. "
            "Please check SUPERSET_BASE_URL, SUPERSET_USERNAME, and SUPERSET_PASSWORD environment variables."
        )
        super().__init__(message, "MISSING_CREDENTIALS", {"missing": missing})
        self.missing = missing


class AuthError(GatewayError):
    """The login handshake with Superset failed"""

    status_code = 502

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "AUTH_ERROR", details)


class LoginPageError(AuthError):
    """Login page could not be fetched or carried no CSRF seed token"""


class LoginError(AuthError):
    """Credential submission was rejected"""


class CsrfError(AuthError):
    """CSRF token endpoint failed"""


class UpstreamError(GatewayError):
    """Superset answered a protected call with a non-success status"""

    status_code = 502

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        body: Any = None,
        code: str = "UPSTREAM_ERROR",
    ):
        super().__init__(message, code, {"status": status} if status is not None else None)
        self.status = status
        self.body = body


class UpstreamTimeoutError(UpstreamError):
    """An upstream call did not complete within SUPERSET_TIMEOUT"""

    status_code = 504

    def __init__(self, message: str):
        super().__init__(message, code="UPSTREAM_TIMEOUT")


class ParseError(GatewayError):
    """Upstream body was not JSON where a field was mandatory"""

    status_code = 502

    def __init__(self, message: str, raw: str = ""):
        super().__init__(message, "PARSE_ERROR")
        self.raw = raw


class ChartError(GatewayError):
    """Chart creation aborted at ``stage``"""

    def __init__(self, message: str, stage: str, cause: Optional[GatewayError] = None):
        super().__init__(message, "CHART_ERROR", {"stage": stage})
        self.stage = stage
        self.cause = cause
        self.status_code = cause.status_code if cause is not None else 502
