"""Unit tests for the HTTP API."""

import json

import httpx
import pytest
from fastapi.testclient import TestClient

from llmgrid.api.routes.jobs import job_events
from llmgrid.engine.api_adapter import ApiTableClient
from llmgrid.engine.excel_exporter import TableExporter
from llmgrid.events import Event, EventType
from llmgrid.main import app


@pytest.fixture
def session(session_factory):
    return session_factory(
        headers=["name", "qty"],
        rows=[["apple", "10"], ["banana", "3"], ["apricot", "7"]],
    )


@pytest.fixture
def client(session):
    with TestClient(app) as test_client:
        app.state.session = session
        yield test_client


class TestSheetApi:
    """Sheet editing endpoints."""

    def test_get_sheet(self, client):
        response = client.get("/sheet")

        assert response.status_code == 200
        body = response.json()
        assert body["code"] == 0
        assert body["data"]["rows"][0] == ["apple", "10"]
        assert [c["name"] for c in body["data"]["columns"]] == ["name", "qty"]
        assert body["data"]["can_undo"] is False

    def test_update_cell_and_undo(self, client):
        client.put("/sheet/cells/0/1", json={"value": "12"})

        response = client.post("/sheet/undo")

        data = response.json()["data"]
        assert data["rows"][0] == ["apple", "10"]
        assert data["can_redo"] is True

    def test_out_of_range_returns_400(self, client):
        response = client.put("/sheet/cells/9/0", json={"value": "x"})

        assert response.status_code == 400
        assert response.json()["code"] == 400

    def test_update_column(self, client, session):
        response = client.patch("/sheet/columns/1", json={"name": "数量", "width": 120, "prompt": "翻译"})

        column = response.json()["data"]["columns"][1]
        assert (column["name"], column["width"], column["prompt"]) == ("数量", 120, "翻译")
        assert len(session.history) == 2

    def test_rows_and_columns(self, client):
        client.post("/sheet/rows")
        client.post("/sheet/columns")
        response = client.delete("/sheet/columns/0")

        data = response.json()["data"]
        assert len(data["rows"]) == 4
        assert [c["name"] for c in data["columns"]] == ["qty", "列 3"]

    def test_import_json(self, client):
        response = client.post("/sheet/import", json={"headers": ["a"], "rows": [["1"], ["2"]]})

        data = response.json()["data"]
        assert data["rows"] == [["1"], ["2"]]
        assert data["can_undo"] is False

    def test_import_file(self, client):
        content = TableExporter.to_csv_bytes(["x", "y"], [["1", "2"]])

        response = client.post("/sheet/import/file", files={"file": ("data.csv", content, "text/csv")})

        assert response.json()["data"]["rows"] == [["1", "2"]]

    def test_import_unsupported_file(self, client):
        response = client.post("/sheet/import/file", files={"file": ("data.txt", b"hello", "text/plain")})

        assert response.status_code == 400

    def test_export_csv(self, client):
        response = client.get("/sheet/export", params={"format": "csv"})

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert "apricot" in response.content.decode("utf-8-sig")


class TestRestApiImportExport:
    """Import from and export to an external REST endpoint."""

    def test_import_from_api(self, client, session):
        def handler(request):
            return httpx.Response(200, json={"result": {"items": [{"sku": "A1", "qty": 2}, {"sku": "B2", "qty": 5}]}})

        session.api_client = ApiTableClient(transport=httpx.MockTransport(handler))

        response = client.post(
            "/sheet/import/api",
            json={"url": "https://api.test/items", "data_path": "result.items", "header_mapping": {"sku": "编号"}},
        )

        data = response.json()["data"]
        assert [c["name"] for c in data["columns"]] == ["编号", "qty"]
        assert data["rows"] == [["A1", "2"], ["B2", "5"]]
        assert data["can_undo"] is False

    def test_import_bad_payload_returns_400(self, client, session):
        def handler(request):
            return httpx.Response(200, json={"items": "not a list"})

        session.api_client = ApiTableClient(transport=httpx.MockTransport(handler))

        response = client.post("/sheet/import/api", json={"url": "https://api.test/items", "data_path": "items"})

        assert response.status_code == 400

    def test_upstream_failure_returns_502(self, client, session):
        def handler(request):
            return httpx.Response(503)

        session.api_client = ApiTableClient(transport=httpx.MockTransport(handler))

        response = client.post("/sheet/import/api", json={"url": "https://api.test/items"})

        assert response.status_code == 502
        assert response.json()["code"] == 502

    def test_export_to_api(self, client, session):
        received = {}

        def handler(request):
            received["body"] = json.loads(request.content)
            return httpx.Response(201)

        session.api_client = ApiTableClient(transport=httpx.MockTransport(handler))

        response = client.post("/sheet/export/api", json={"url": "https://api.test/upload", "data_key": "rows"})

        assert response.json()["data"] == {"status_code": 201}
        assert received["body"]["rows"][0] == {"name": "apple", "qty": "10"}


class TestFilterApi:
    """Filter endpoints."""

    def test_add_filter_and_view(self, client):
        response = client.post(
            "/sheet/filters",
            json={"column": 1, "kind": "number", "operator": "greaterThan", "value": "5"},
        )
        assert response.json()["data"] == [
            {"column": 1, "kind": "number", "operator": "greaterThan", "value": "5"}
        ]

        view = client.get("/sheet/view").json()["data"]

        assert view["row_indices"] == [0, 2]
        assert view["column_kinds"] == ["text", "number"]

    def test_invalid_filter_returns_400(self, client):
        response = client.post(
            "/sheet/filters",
            json={"column": 0, "kind": "text", "operator": "between", "value": "a"},
        )

        assert response.status_code == 400

    def test_clear_filters(self, client):
        client.post("/sheet/filters", json={"column": 0, "kind": "text", "operator": "notEmpty"})

        client.delete("/sheet/filters")

        assert client.get("/sheet/filters").json()["data"] == []


class TestSettingsApi:
    """Settings endpoints."""

    def test_get_hides_keys(self, client):
        data = client.get("/settings").json()["data"]

        assert data["gemini_api_key"] is True
        assert data["ai_provider"] == "gemini"

    def test_patch(self, client, session):
        response = client.patch("/settings", json={"ai_provider": "chatgpt", "processing_delay_ms": 0})

        data = response.json()["data"]
        assert data["ai_provider"] == "chatgpt"
        assert data["model"] == "gpt-4o-mini"
        assert session.settings.processing_delay_ms == 0

    def test_patch_rejects_out_of_range(self, client):
        response = client.patch("/settings", json={"temperature": 5})

        assert response.status_code == 422


class TestJobsApi:
    """Job endpoints."""

    def test_status_idle(self, client, session):
        data = client.get("/jobs/columns/0").json()["data"]

        assert data["state"] == "idle"
        assert data["column_id"] == session.document.columns[0].id

    def test_cancel_idle_column(self, client):
        response = client.post("/jobs/columns/0/cancel")

        assert response.json()["data"]["state"] == "idle"

    def test_unknown_column_returns_400(self, client):
        response = client.get("/jobs/columns/7")

        assert response.status_code == 400


async def collect(response):
    return [json.loads(event.data) async for event in response.body_iterator]


class TestJobEvents:
    """Job progress stream."""

    @pytest.mark.asyncio
    async def test_finished_job_sends_status_and_closes(self, session):
        session.set_prompt(0, "p")
        await session.run_column(0)

        events = await collect(await job_events(0, session))

        assert len(events) == 1
        assert events[0]["type"] == "status"
        assert events[0]["data"]["state"] == "idle"
        assert events[0]["data"]["last_result"]["processed"] == 3
        assert not session.bus.has_handlers(EventType.JOB_END)

    @pytest.mark.asyncio
    async def test_running_job_streams_until_end(self, session):
        column_id = session.document.columns[0].id
        session.set_processing(0, True)

        response = await job_events(0, session)
        await session.bus.emit(Event.job_start(column_id, 3))
        await session.bus.emit(Event.job_start("other-column", 1))
        await session.bus.emit(Event.job_end(column_id, {"state": "completed"}))

        events = await collect(response)

        assert [e["type"] for e in events] == ["job.start", "job.end"]
        assert not session.bus.has_handlers(EventType.JOB_END)
