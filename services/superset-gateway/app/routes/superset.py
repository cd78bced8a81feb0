"""Superset routes - SQL execution and chart creation"""
import logging
from typing import Any, Dict
from fastapi import APIRouter, Body, Depends

from ..config import Settings, get_settings
from ..models import ExecuteSQLRequest, parse_chart_request
from ..services.chart_builder import create_chart
from ..services.sql_executor import execute_sql

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Superset"])


@router.post("/execute-sql")
async def execute_sql_endpoint(
    request: ExecuteSQLRequest,
    settings: Settings = Depends(get_settings)
) -> Dict[str, Any]:
    """
    Execute a single SELECT statement through SQL Lab.

    The SQL is capped at 1000 rows unless `full` is set, and never returns
    more than 10000 rows when a limit is requested.

    Returns:
        Upstream result fields plus `status` and `meta` describing the limit
    """
    result = await execute_sql(request, settings)
    return result.to_response()


@router.post("/charts/create")
async def create_chart_endpoint(
    payload: Dict[str, Any] = Body(...),
    settings: Settings = Depends(get_settings)
) -> Dict[str, Any]:
    """
    Create a chart from an existing query id or from raw SQL.

    Returns:
        Explore URL, form data key, and an embeddable URL when available
    """
    request = parse_chart_request(payload)
    logger.info(f"Chart requested: {type(request).__name__} viz_type={request.viz_type}")
    response = await create_chart(request, settings)
    return response.to_response()
