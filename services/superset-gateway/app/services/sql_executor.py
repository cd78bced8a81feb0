"""SQL Lab execution through Superset with row-limit guarding"""
import logging
import math
from typing import Optional
import httpx

from ..config import Settings, get_settings
from ..exceptions import UpstreamError, UpstreamTimeoutError, ValidationError
from ..models import ExecuteSQLRequest, ExecutionResult
from ..utils.sql_guard import describe_statement, guard_sql, is_single_select
from .session_cache import get_session_cache
from .superset_auth import authenticate_with_superset
from .superset_http import build_auth_headers, format_body, parse_response_body, superset_client

logger = logging.getLogger(__name__)

EXECUTE_PATH = "/api/v1/sqllab/execute/"


def validate_execute_request(request: ExecuteSQLRequest) -> str:
    """
    Check the request before anything is sent upstream.

    Returns:
        Trimmed SQL

    Raises:
        ValidationError: If database_id or sql is missing, or the SQL is not
            a single SELECT statement
    """
    database_id = request.database_id
    if not database_id or not math.isfinite(database_id):
        raise ValidationError("database_id is required and must be a number", field="database_id")

    sql = (request.sql or "").strip()
    if not sql:
        raise ValidationError("sql is required", field="sql")

    if not is_single_select(sql):
        raise ValidationError(
            f"Only single-statement SELECT queries are allowed (got {describe_statement(sql)})",
            field="sql"
        )
    return sql


async def execute_sql(
    request: ExecuteSQLRequest,
    settings: Optional[Settings] = None,
    client: Optional[httpx.AsyncClient] = None
) -> ExecutionResult:
    """
    Execute SQL via SQL Lab.

    Args:
        request: Database id, SQL, and limit options
        settings: Settings holding SUPERSET_* variables (global settings by default)
        client: Optional HTTP client to reuse

    Returns:
        Upstream result with the applied limit metadata

    Raises:
        ValidationError: Bad input, detected before any network call
        MissingCredentialsError, AuthError: Login failed
        UpstreamError: SQL Lab answered with a non-success status
    """
    settings = settings or get_settings()
    sql = validate_execute_request(request)
    final_sql, meta = guard_sql(sql, request.full, request.limit)

    logger.info(
        f"Executing SQL on database {request.database_id} "
        f"(full={meta.full}, limit={meta.effectiveLimit}, clamped={meta.wasClamped})"
    )
    logger.debug(f"SQL to execute: {final_sql[:200]}...")

    async with superset_client(settings, client) as http:
        tokens = await authenticate_with_superset(settings, http)
        base_url = settings.superset_credentials().base_url

        try:
            response = await http.post(
                f"{base_url}{EXECUTE_PATH}",
                json={"database_id": request.database_id, "sql": final_sql},
                headers=build_auth_headers(tokens, base_url, "/sqllab/"),
            )
        except httpx.TimeoutException as e:
            raise UpstreamTimeoutError(f"Superset SQL execution timed out: {e}") from e
        except httpx.HTTPError as e:
            raise UpstreamError(f"Superset SQL execution failed: {e}") from e

    result, _ = parse_response_body(response)

    if not response.is_success:
        if response.status_code in (401, 403):
            get_session_cache(settings.SUPERSET_SESSION_TTL).invalidate(settings.superset_credentials())
        raise UpstreamError(
            f"Superset SQL execution failed ({response.status_code}): {format_body(result)}",
            status=response.status_code,
            body=result
        )

    logger.info(f"SQL execution succeeded (status={result.get('status', 'n/a')})")
    return ExecutionResult(meta=meta, result=result)
