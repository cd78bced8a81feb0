"""Pydantic models for Superset Gateway"""
from typing import Any, Dict, Literal, Optional, Union
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from .exceptions import ValidationError


# ============================================================================
# Upstream Session Models
# ============================================================================

class SupersetCredentials(BaseModel):
    """Upstream login credentials"""
    model_config = ConfigDict(frozen=True)

    base_url: str
    username: str
    password: str = Field(..., repr=False)


class SessionTokens(BaseModel):
    """Tokens produced by one authentication handshake"""
    model_config = ConfigDict(frozen=True)

    csrf_token: str
    session_cookies: str = Field("", repr=False)
    access_token: Optional[str] = Field(None, repr=False)


# ============================================================================
# SQL Execution Models
# ============================================================================

class ExecuteSQLRequest(BaseModel):
    """Request to execute SQL through SQL Lab"""
    database_id: Optional[int] = Field(None, description="Superset database connection id")
    sql: Optional[str] = Field(None, description="Single SELECT statement")
    full: bool = Field(False, description="Disable the default row cap")
    limit: Optional[int] = Field(None, description="Requested row cap")


class ExecutionLimitMeta(BaseModel):
    """What row limit was applied to the submitted SQL"""
    model_config = ConfigDict(frozen=True)

    full: bool
    effectiveLimit: Optional[int] = None
    wasClamped: bool = False


class ExecutionResult(BaseModel):
    """Normalized SQL Lab execution result"""
    status: Literal["ok"] = "ok"
    meta: ExecutionLimitMeta
    result: Dict[str, Any] = Field(default_factory=dict)

    def to_response(self) -> Dict[str, Any]:
        """Flatten upstream fields to the top level; gateway keys win"""
        return {**self.result, "status": self.status, "meta": self.meta.model_dump()}


# ============================================================================
# Chart Creation Models
# ============================================================================

class QueryChartRequest(BaseModel):
    """Chart on top of an existing SQL Lab query"""
    query_id: int
    viz_type: str
    slice_name: Optional[str] = None
    params: Optional[Dict[str, Any]] = None


class SqlChartRequest(BaseModel):
    """Chart on top of freshly executed SQL"""
    database_id: int
    sql: str
    viz_type: str
    full: bool = False
    limit: Optional[int] = None
    slice_name: Optional[str] = None
    params: Optional[Dict[str, Any]] = None

    def to_execute_request(self) -> ExecuteSQLRequest:
        return ExecuteSQLRequest(
            database_id=self.database_id,
            sql=self.sql,
            full=self.full,
            limit=self.limit,
        )


ChartCreateRequest = Union[QueryChartRequest, SqlChartRequest]


def parse_chart_request(payload: Any) -> ChartCreateRequest:
    """
    Pick the chart request variant from the raw JSON body.

    A body carrying `query_id` charts an existing query; a body carrying
    both `database_id` and `sql` charts freshly executed SQL.

    Raises:
        ValidationError: If neither variant is present or fields are invalid
    """
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")

    if payload.get("query_id") is not None:
        model = QueryChartRequest
    elif payload.get("database_id") is not None and payload.get("sql"):
        model = SqlChartRequest
    else:
        raise ValidationError("Provide either query_id or database_id and sql")

    try:
        return model.model_validate(payload)
    except PydanticValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(part) for part in first.get("loc", ()))
        raise ValidationError(f"Invalid chart request: {field}: {first.get('msg')}", field=field)


class ChartCreateResponse(BaseModel):
    """Explorable (and optionally embeddable) chart"""
    status: Literal["ok"] = "ok"
    datasource: str
    viz_type: str
    explore_url: str
    form_data_key: str
    embed_url: Optional[str] = None
    meta: Optional[ExecutionLimitMeta] = None

    def to_response(self) -> Dict[str, Any]:
        """Drop absent embed_url/meta; nested meta keeps effectiveLimit even when null"""
        optional = {"embed_url", "meta"}
        return self.model_dump(exclude={key for key in optional if getattr(self, key) is None})


# ============================================================================
# Service Models
# ============================================================================

class HealthCheckResponse(BaseModel):
    """Health check response"""
    status: str
    service: str
    version: str
    timestamp: str
    dependencies: Dict[str, str] = Field(
        default_factory=dict,
        description="Status of dependencies (superset)"
    )


class RootResponse(BaseModel):
    """Root endpoint response"""
    message: str
    timestamp: str
    environment: str
    hasApiKey: bool
    supersetUrl: str
    status: str


class ErrorResponse(BaseModel):
    """Error response"""
    error: str
    message: str
    details: Optional[Dict[str, Any]] = None
