"""
Chart creation on top of SQL Lab queries

Resolves a query datasource (existing query id or freshly executed SQL),
registers Explore form data with Superset, and asks for a permalink that can
be embedded in standalone mode.
"""

import json
import logging
from typing import Any, Callable, Dict, List, Optional, Tuple
import httpx

from ..config import Settings, get_settings
from ..exceptions import ChartError, GatewayError, ParseError, UpstreamError, UpstreamTimeoutError
from ..models import (
    ChartCreateRequest,
    ChartCreateResponse,
    ExecutionLimitMeta,
    QueryChartRequest,
    SessionTokens,
)
from .sql_executor import execute_sql
from .superset_auth import authenticate_with_superset
from .superset_http import build_auth_headers, parse_response_body, superset_client

logger = logging.getLogger(__name__)

FORM_DATA_PATH = "/api/v1/explore/form_data"
PERMALINK_PATH = "/api/v1/explore/permalink"
EMBED_PATH_TEMPLATE = "/superset/explore/p/{key}/?standalone=1"
DEFAULT_ROW_LIMIT = 1000


# Query id locations in a SQL Lab execute response. Checked in this order:
# the direct field first, then the nested query object, then the camelCase
# alias. The first numeric value wins.
QUERY_ID_STRATEGIES: List[Tuple[str, Callable[[Dict[str, Any]], Any]]] = [
    ("query_id", lambda result: result.get("query_id")),
    ("query.queryId", lambda result: (result.get("query") or {}).get("queryId")),
    ("queryId", lambda result: result.get("queryId")),
]

COLUMN_STRATEGIES: List[Callable[[Dict[str, Any]], Any]] = [
    lambda result: result.get("columns"),
    lambda result: ((result.get("query") or {}).get("extra") or {}).get("columns"),
]


def extract_query_id(result: Dict[str, Any]) -> int:
    """
    Find the upstream query id in an execute response.

    Raises:
        ChartError: If no strategy yields a numeric id
    """
    for name, strategy in QUERY_ID_STRATEGIES:
        value = strategy(result)
        if value is None or isinstance(value, bool):
            continue
        try:
            return int(value)
        except (TypeError, ValueError):
            logger.warning(f"Ignoring non-numeric query id at {name}: {value!r}")

    raise ChartError(
        "Superset execution result did not include a query id",
        stage="resolve_datasource"
    )


def extract_column_names(result: Dict[str, Any]) -> List[str]:
    """Column names from an execute response, or [] when none are present"""
    for strategy in COLUMN_STRATEGIES:
        columns = strategy(result)
        if not isinstance(columns, list):
            continue

        names = []
        for column in columns:
            if isinstance(column, str):
                name = column
            elif isinstance(column, dict):
                name = column.get("name") or column.get("column_name")
            else:
                name = None
            if name:
                names.append(str(name))
        return names
    return []


def build_form_data(
    datasource: str,
    viz_type: str,
    params: Optional[Dict[str, Any]] = None,
    all_columns: Optional[List[str]] = None,
    slice_name: Optional[str] = None
) -> Dict[str, Any]:
    """Default Explore form data; caller params win on key collisions"""
    form_data: Dict[str, Any] = {
        "time_range": "No filter",
        "row_limit": DEFAULT_ROW_LIMIT,
        "datasource": datasource,
        "viz_type": viz_type,
        "metrics": [],
        "groupby": [],
        "all_columns": all_columns or [],
    }
    if slice_name:
        form_data["slice_name"] = slice_name
    form_data.update(params or {})
    return form_data


def build_explore_url(base_url: str, form_data_key: str, query_id: Optional[int]) -> str:
    """Explore URL for a form data key; query id 0 is treated as absent"""
    url = f"{base_url}/explore/?form_data_key={form_data_key}"
    if query_id:
        url += f"&datasource_id={query_id}&datasource_type=query"
    return url


def build_embed_url(base_url: str, permalink: Dict[str, Any]) -> Optional[str]:
    """
    Standalone embed URL from a permalink response.

    A direct `url` gets standalone=1 added; a bare `key` is expanded with
    the permalink path template.
    """
    url = permalink.get("url")
    if url:
        url = str(url)
        if "standalone=" in url:
            return url
        separator = "&" if "?" in url else "?"
        return f"{url}{separator}standalone=1"

    key = permalink.get("key")
    if key:
        return f"{base_url}{EMBED_PATH_TEMPLATE.format(key=key)}"
    return None


async def _resolve_datasource(
    request: ChartCreateRequest,
    settings: Settings,
    client: httpx.AsyncClient
) -> Tuple[str, int, Optional[ExecutionLimitMeta], List[str]]:
    """Step 1: datasource, query id, limit metadata and columns"""
    if isinstance(request, QueryChartRequest):
        logger.info(f"Charting existing query {request.query_id}")
        return f"{request.query_id}__query", request.query_id, None, []

    try:
        execution = await execute_sql(request.to_execute_request(), settings, client)
    except GatewayError as e:
        raise ChartError(f"SQL execution failed: {e.message}", stage="execute", cause=e) from e

    query_id = extract_query_id(execution.result)
    columns = extract_column_names(execution.result)
    logger.info(f"Executed SQL as query {query_id} ({len(columns)} columns)")
    return f"{query_id}__query", query_id, execution.meta, columns


async def _register_form_data(
    client: httpx.AsyncClient,
    base_url: str,
    headers: Dict[str, str],
    query_id: Optional[int],
    form_data: Dict[str, Any]
) -> str:
    """Step 4: store form data upstream and return its key"""
    payload: Dict[str, Any] = {
        "datasource_type": "query",
        "form_data": json.dumps(form_data),
    }
    if query_id:
        payload["datasource_id"] = query_id

    try:
        response = await client.post(f"{base_url}{FORM_DATA_PATH}", json=payload, headers=headers)
    except httpx.TimeoutException as e:
        cause = UpstreamTimeoutError(f"Superset form_data request timed out: {e}")
        raise ChartError(f"Failed to create form_data: {cause.message}", stage="form_data", cause=cause) from e
    except httpx.HTTPError as e:
        cause = UpstreamError(f"Superset form_data request failed: {e}")
        raise ChartError(f"Failed to create form_data: {cause.message}", stage="form_data", cause=cause) from e

    body, parsed = parse_response_body(response)
    if not parsed:
        cause = ParseError("form_data response was not JSON", raw=body.get("raw", ""))
        raise ChartError(f"Failed to create form_data: {response.status_code}", stage="form_data", cause=cause)

    key = body.get("key")
    if not response.is_success or not key:
        cause = UpstreamError(
            f"form_data request returned {response.status_code}",
            status=response.status_code,
            body=body
        )
        raise ChartError(f"Failed to create form_data: {response.status_code}", stage="form_data", cause=cause)

    return str(key)


async def _create_permalink(
    client: httpx.AsyncClient,
    base_url: str,
    headers: Dict[str, str],
    form_data: Dict[str, Any]
) -> Optional[str]:
    """Step 6: best-effort permalink; None when Superset does not provide one"""
    try:
        response = await client.post(
            f"{base_url}{PERMALINK_PATH}",
            json={"formData": form_data, "urlParams": []},
            headers=headers,
        )
    except httpx.HTTPError as e:
        logger.warning(f"⚠️ Permalink request failed, returning chart without embed_url: {e}")
        return None

    if not response.is_success:
        logger.warning(f"⚠️ Permalink request returned {response.status_code}, returning chart without embed_url")
        return None

    body, _ = parse_response_body(response)
    return build_embed_url(base_url, body)


async def create_chart(
    request: ChartCreateRequest,
    settings: Optional[Settings] = None,
    client: Optional[httpx.AsyncClient] = None
) -> ChartCreateResponse:
    """
    Create an explorable chart.

    Args:
        request: Either an existing query id or database id + SQL
        settings: Settings holding SUPERSET_* variables (global settings by default)
        client: Optional HTTP client to reuse

    Returns:
        Explore URL, form data key, and embed URL when a permalink was made

    Raises:
        ChartError: If execution, authentication or form data registration fails
    """
    settings = settings or get_settings()

    async with superset_client(settings, client) as http:
        datasource, query_id, meta, columns = await _resolve_datasource(request, settings, http)

        try:
            tokens: SessionTokens = await authenticate_with_superset(settings, http)
        except GatewayError as e:
            raise ChartError(f"Authentication to Superset failed: {e.message}", stage="auth", cause=e) from e

        base_url = settings.superset_credentials().base_url
        headers = build_auth_headers(tokens, base_url, "/explore/")

        form_data = build_form_data(
            datasource,
            request.viz_type,
            request.params,
            columns,
            request.slice_name
        )

        form_data_key = await _register_form_data(http, base_url, headers, query_id, form_data)
        explore_url = build_explore_url(base_url, form_data_key, query_id)
        embed_url = await _create_permalink(http, base_url, headers, form_data)

    logger.info(f"Created chart for {datasource} (form_data_key={form_data_key}, embed={'yes' if embed_url else 'no'})")

    return ChartCreateResponse(
        datasource=datasource,
        viz_type=request.viz_type,
        explore_url=explore_url,
        form_data_key=form_data_key,
        embed_url=embed_url,
        meta=meta,
    )
