"""Unit tests for the REST import/export adapter."""

import json

import httpx
import pytest

from llmgrid.engine.api_adapter import (
    ApiSource,
    ApiTableClient,
    ApiTarget,
    cell_text,
    extract_records,
    records_to_table,
)
from llmgrid.engine.errors import ExternalApiError, ValidationError


def api_client(handler) -> ApiTableClient:
    return ApiTableClient(transport=httpx.MockTransport(handler))


class TestExtractRecords:
    """Walking the dotted data path."""

    def test_nested_path(self):
        payload = {"result": {"items": [{"a": 1}]}}

        assert extract_records(payload, "result.items") == [{"a": 1}]

    def test_numeric_segment_indexes_lists(self):
        payload = {"pages": [{"rows": [{"a": 1}]}]}

        assert extract_records(payload, "pages.0.rows") == [{"a": 1}]

    @pytest.mark.parametrize(
        "payload,path",
        [
            ({"data": []}, "missing"),
            ({"data": {"a": 1}}, "data"),
            ({"data": []}, "data"),
            ({"data": [1, 2]}, "data"),
        ],
    )
    def test_rejects(self, payload, path):
        with pytest.raises(ValidationError):
            extract_records(payload, path)


class TestRecordsToTable:
    """Objects become string rows."""

    def test_columns_follow_first_record(self):
        records = [{"name": "apple", "qty": 10}, {"qty": 3, "name": "banana", "extra": "x"}]

        headers, rows = records_to_table(records)

        assert headers == ["name", "qty"]
        assert rows == [["apple", "10"], ["banana", "3"]]

    def test_header_mapping(self):
        headers, _ = records_to_table([{"name": "apple", "qty": 1}], {"name": "商品"})

        assert headers == ["商品", "qty"]

    @pytest.mark.parametrize(
        "value,expected",
        [(None, ""), (True, "true"), (0, "0"), (2.0, "2"), (2.5, "2.5"), ({"k": "值"}, '{"k": "值"}')],
    )
    def test_cell_text(self, value, expected):
        assert cell_text(value) == expected


class TestFetch:
    """ApiTableClient.fetch against a mock transport."""

    @pytest.mark.asyncio
    async def test_get_with_headers(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["method"] = request.method
            seen["auth"] = request.headers.get("Authorization")
            seen["body"] = request.content
            return httpx.Response(200, json={"data": [{"name": "apple", "qty": 10}]})

        source = ApiSource(url="https://api.test/items", headers={"Authorization": "Bearer t"}, data_path="data")

        headers, rows = await api_client(handler).fetch(source)

        assert (headers, rows) == (["name", "qty"], [["apple", "10"]])
        assert seen == {"method": "GET", "auth": "Bearer t", "body": b""}

    @pytest.mark.asyncio
    async def test_post_sends_json_body(self):
        seen = {}

        def handler(request):
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=[{"a": "1"}])

        source = ApiSource(url="https://api.test/search", method="post", body={"q": "fruit"})

        await api_client(handler).fetch(source)

        assert source.method == "POST"
        assert seen["body"] == {"q": "fruit"}

    @pytest.mark.asyncio
    async def test_http_error(self):
        def handler(request):
            return httpx.Response(500, json={"error": "boom"})

        with pytest.raises(ExternalApiError) as exc_info:
            await api_client(handler).fetch(ApiSource(url="https://api.test/items"))

        assert "HTTP 500" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_network_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(ExternalApiError):
            await api_client(handler).fetch(ApiSource(url="https://api.test/items"))

    @pytest.mark.asyncio
    async def test_non_json_response(self):
        def handler(request):
            return httpx.Response(200, text="<html></html>")

        with pytest.raises(ExternalApiError):
            await api_client(handler).fetch(ApiSource(url="https://api.test/items"))

    def test_unknown_method_rejected(self):
        with pytest.raises(ValidationError):
            ApiSource(url="https://api.test/items", method="PATCH")


class TestPush:
    """ApiTableClient.push against a mock transport."""

    HEADERS = ["name", "qty"]
    ROWS = [["apple", "10"], ["banana", "3"]]

    @pytest.mark.asyncio
    async def test_json_objects(self):
        seen = {}

        def handler(request):
            seen["method"] = request.method
            seen["type"] = request.headers["Content-Type"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(201)

        status_code = await api_client(handler).push(
            ApiTarget(url="https://api.test/upload", method="PUT"), self.HEADERS, self.ROWS
        )

        assert status_code == 201
        assert seen["method"] == "PUT"
        assert seen["type"] == "application/json"
        assert seen["body"] == [{"name": "apple", "qty": "10"}, {"name": "banana", "qty": "3"}]

    @pytest.mark.asyncio
    async def test_wrapped_under_data_key(self):
        seen = {}

        def handler(request):
            seen["body"] = json.loads(request.content)
            return httpx.Response(200)

        await api_client(handler).push(
            ApiTarget(url="https://api.test/upload", data_key="records"), self.HEADERS, self.ROWS
        )

        assert list(seen["body"]) == ["records"]
        assert seen["body"]["records"][1] == {"name": "banana", "qty": "3"}

    @pytest.mark.asyncio
    async def test_csv(self):
        seen = {}

        def handler(request):
            seen["type"] = request.headers["Content-Type"]
            seen["body"] = request.content.decode("utf-8")
            return httpx.Response(200)

        await api_client(handler).push(
            ApiTarget(url="https://api.test/upload", format="csv"), self.HEADERS, self.ROWS
        )

        assert seen["type"] == "text/csv"
        assert seen["body"].splitlines() == ["name,qty", "apple,10", "banana,3"]

    @pytest.mark.asyncio
    async def test_custom_headers_override_content_type(self):
        seen = {}

        def handler(request):
            seen["type"] = request.headers["Content-Type"]
            return httpx.Response(200)

        target = ApiTarget(url="https://api.test/upload", headers={"Content-Type": "application/vnd.rows+json"})

        await api_client(handler).push(target, self.HEADERS, self.ROWS)

        assert seen["type"] == "application/vnd.rows+json"

    @pytest.mark.parametrize("kwargs", [{"method": "GET"}, {"format": "xml"}])
    def test_invalid_target(self, kwargs):
        with pytest.raises(ValidationError):
            ApiTarget(url="https://api.test/upload", **kwargs)
