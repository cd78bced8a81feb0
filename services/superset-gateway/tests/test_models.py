"""
Unit tests for request parsing, response shaping and settings
"""

import pytest

from app.config import Settings
from app.exceptions import MissingCredentialsError, ValidationError
from app.models import (
    ChartCreateResponse,
    ExecutionLimitMeta,
    ExecutionResult,
    QueryChartRequest,
    SqlChartRequest,
    SupersetCredentials,
    parse_chart_request,
)


class TestParseChartRequest:
    """Test cases for chart request variant selection"""

    def test_query_variant(self):
        request = parse_chart_request({"query_id": 42, "viz_type": "table", "slice_name": "Rides"})

        assert isinstance(request, QueryChartRequest)
        assert request.query_id == 42
        assert request.slice_name == "Rides"

    def test_sql_variant(self):
        request = parse_chart_request(
            {"database_id": 1, "sql": "SELECT 1", "viz_type": "table", "full": True, "limit": 20}
        )

        assert isinstance(request, SqlChartRequest)
        assert request.to_execute_request().model_dump() == {
            "database_id": 1,
            "sql": "SELECT 1",
            "full": True,
            "limit": 20,
        }

    def test_query_id_takes_precedence(self):
        request = parse_chart_request(
            {"query_id": 3, "database_id": 1, "sql": "SELECT 1", "viz_type": "table"}
        )

        assert isinstance(request, QueryChartRequest)

    @pytest.mark.parametrize("payload", [
        {"viz_type": "table"},
        {"database_id": 1, "viz_type": "table"},
        {"sql": "SELECT 1", "viz_type": "table"},
        {"database_id": 1, "sql": "", "viz_type": "table"},
    ])
    def test_missing_datasource(self, payload):
        with pytest.raises(ValidationError, match="Provide either query_id or database_id and sql"):
            parse_chart_request(payload)

    def test_missing_viz_type(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_chart_request({"query_id": 42})

        assert exc_info.value.field == "viz_type"

    def test_non_object_body(self):
        with pytest.raises(ValidationError):
            parse_chart_request(["query_id", 42])


class TestExecutionResult:
    """Test cases for the execute-sql response shape"""

    def test_upstream_fields_spread_at_top_level(self):
        result = ExecutionResult(
            meta=ExecutionLimitMeta(full=False, effectiveLimit=1000),
            result={"data": [{"a": 1}], "columns": [{"name": "a"}], "status": "success"},
        )

        assert result.to_response() == {
            "status": "ok",
            "meta": {"full": False, "effectiveLimit": 1000, "wasClamped": False},
            "data": [{"a": 1}],
            "columns": [{"name": "a"}],
        }


class TestChartCreateResponse:
    """Test cases for the charts/create response shape"""

    def test_absent_optional_fields_are_dropped(self):
        response = ChartCreateResponse(
            datasource="42__query", viz_type="table", explore_url="https://s/explore/", form_data_key="abc"
        )

        data = response.to_response()
        assert "embed_url" not in data
        assert "meta" not in data
        assert data["status"] == "ok"

    def test_null_effective_limit_is_kept(self):
        response = ChartCreateResponse(
            datasource="42__query",
            viz_type="table",
            explore_url="https://s/explore/",
            form_data_key="abc",
            meta=ExecutionLimitMeta(full=True),
        )

        assert response.to_response()["meta"] == {"full": True, "effectiveLimit": None, "wasClamped": False}


class TestSettings:
    """Test cases for Superset credential settings"""

    def test_credentials(self):
        settings = Settings(
            SUPERSET_BASE_URL="https://superset.example.com/",
            SUPERSET_USERNAME="admin",
            SUPERSET_PASSWORD="pw",
        )

        credentials = settings.superset_credentials()
        assert credentials.base_url == "https://superset.example.com"
        assert credentials.username == "admin"

    def test_missing_credentials_names_variables(self):
        settings = Settings(SUPERSET_BASE_URL="", SUPERSET_USERNAME="admin", SUPERSET_PASSWORD=None)

        with pytest.raises(MissingCredentialsError) as exc_info:
            settings.superset_credentials()

        assert exc_info.value.missing == ["SUPERSET_BASE_URL", "SUPERSET_PASSWORD"]
        assert exc_info.value.message.startswith("Missing required Superset credentials")

    def test_password_hidden_from_repr(self):
        credentials = SupersetCredentials(base_url="https://s", username="admin", password="pw-value")

        assert "pw-value" not in repr(credentials)
