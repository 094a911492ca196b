"""
Tests for dbrefactor.executor.client module.
"""

import asyncio

import aiohttp
import pytest
from aioresponses import aioresponses

from dbrefactor.exceptions import (
    APITimeoutError,
    ExecutorAPIError,
    PlanValidationError,
    ValidationError,
)
from dbrefactor.executor.client import PlanExecutorClient
from dbrefactor.executor.models import CodefixFile
from dbrefactor.plan.operations import ColumnEdit, TableRename
from dbrefactor.plan.plan import Plan


EXECUTOR_URL = "http://executor.test"

CONNECTION_STRING = "Server=db;Database=Shop;User Id=sa;Password=secret"


@pytest.fixture
def rename_plan() -> Plan:
    return Plan((
        TableRename("Customer", "Client"),
        ColumnEdit("Customer", "Name", "FullName"),
    ))


def _sent_json(mocked: aioresponses) -> dict:
    calls = [call for calls in mocked.requests.values() for call in calls]
    assert len(calls) == 1
    return calls[0].kwargs["json"]


class TestClientSetup:
    """Test client construction."""

    def test_requires_endpoint(self):
        with pytest.raises(ValidationError):
            PlanExecutorClient("")

    def test_strips_trailing_slash(self):
        client = PlanExecutorClient("http://executor.test/")
        assert client.base_url == "http://executor.test"
        assert repr(client) == "PlanExecutorClient(base_url=http://executor.test)"

    def test_from_config(self, app_config):
        client = PlanExecutorClient.from_config(app_config)
        assert client.base_url == EXECUTOR_URL
        assert client.config.timeout == 5


class TestSessions:
    """Test session endpoints."""

    @pytest.mark.asyncio
    async def test_connect_session(self, executor_client):
        with aioresponses() as m:
            m.post(
                f"{EXECUTOR_URL}/session/connect",
                payload={"sessionId": "abc123", "expiresAtUtc": "2026-10-19T12:00:00Z"},
            )

            session = await executor_client.connect_session(CONNECTION_STRING, ttl_seconds=600)

            assert session.session_id == "abc123"
            assert session.expires_at.year == 2026
            assert _sent_json(m) == {"connectionString": CONNECTION_STRING, "ttlSeconds": 600}

    @pytest.mark.asyncio
    async def test_connect_uses_configured_ttl(self, executor_client):
        with aioresponses() as m:
            m.post(f"{EXECUTOR_URL}/session/connect", payload={"sessionId": "abc123"})

            session = await executor_client.connect_session(CONNECTION_STRING)

            assert session.expires_at is None
            assert _sent_json(m)["ttlSeconds"] == 1800

    @pytest.mark.asyncio
    async def test_connect_without_session_id(self, executor_client):
        with aioresponses() as m:
            m.post(f"{EXECUTOR_URL}/session/connect", payload={"ok": True})

            with pytest.raises(ExecutorAPIError, match="session id"):
                await executor_client.connect_session(CONNECTION_STRING)

    @pytest.mark.asyncio
    async def test_connect_requires_connection_string(self, executor_client):
        with pytest.raises(ValidationError, match="Connection string is required"):
            await executor_client.connect_session("  ")

    @pytest.mark.asyncio
    async def test_analyze_schema(self, executor_client, sample_schema_payload):
        with aioresponses() as m:
            m.post(f"{EXECUTOR_URL}/analyze/schema", payload=sample_schema_payload)

            schema = await executor_client.analyze_schema("abc123")

            assert schema.table_names == ["Customer", "Order"]
            assert _sent_json(m) == {"sessionId": "abc123"}

    @pytest.mark.asyncio
    async def test_disconnect(self, executor_client):
        with aioresponses() as m:
            m.post(f"{EXECUTOR_URL}/session/disconnect", payload={})

            await executor_client.disconnect_session("abc123")

            assert _sent_json(m) == {"sessionId": "abc123"}


class TestPlanCalls:
    """Test plan submission endpoints."""

    @pytest.mark.asyncio
    async def test_generate_plan(self, executor_client, rename_plan):
        with aioresponses() as m:
            m.post(
                f"{EXECUTOR_URL}/plan",
                payload={
                    "sql": {"renameSql": "EXEC sp_rename ...", "compatSql": "CREATE VIEW ..."},
                    "report": {"tablesChanged": 1, "columnsChanged": 1, "operations": 2},
                },
            )

            response = await executor_client.generate_plan(rename_plan)

            assert response.sql.rename_sql == "EXEC sp_rename ..."
            assert [label for label, _ in response.sql.items()] == ["rename", "compat"]
            assert response.report.operations == 2
            assert _sent_json(m) == {
                "renames": rename_plan.to_payload(),
                "useSynonyms": True,
                "useViews": True,
                "cqrs": True,
            }

    @pytest.mark.asyncio
    async def test_generate_plan_reads_bundle(self, executor_client, rename_plan):
        with aioresponses() as m:
            m.post(f"{EXECUTOR_URL}/plan", payload={"bundle": {"cleanupSql": "DROP VIEW ..."}})

            response = await executor_client.generate_plan(rename_plan)

            assert response.sql.cleanup_sql == "DROP VIEW ..."
            assert response.report is None

    @pytest.mark.asyncio
    async def test_empty_plan_is_rejected(self, executor_client, empty_plan):
        with pytest.raises(PlanValidationError, match="cannot be empty"):
            await executor_client.generate_plan(empty_plan)
        with pytest.raises(PlanValidationError):
            await executor_client.run_codefix(empty_plan)

    @pytest.mark.asyncio
    async def test_run_refactor(self, executor_client, rename_plan):
        with aioresponses() as m:
            m.post(
                f"{EXECUTOR_URL}/refactor/run",
                payload={
                    "ok": True,
                    "apply": True,
                    "sql": {"renameSql": "EXEC sp_rename ..."},
                    "dbLog": "2 statements executed",
                    "codefix": {
                        "ok": True,
                        "scanned": 10,
                        "changed": 1,
                        "files": [
                            {"path": "src/Customer.cs", "changed": True, "changes": 3},
                            {"path": "src/Order.cs", "changed": False},
                        ],
                    },
                },
            )

            response = await executor_client.run_refactor(
                CONNECTION_STRING, rename_plan, apply=True
            )

            assert not response.has_error
            assert response.db_log == "2 statements executed"
            assert [f.path for f in response.codefix.changed_files] == ["src/Customer.cs"]

            sent = _sent_json(m)
            assert sent["plan"] == {"renames": rename_plan.to_payload()}
            assert sent["apply"] is True
            assert sent["rootKey"] == "SOLUTION"
            assert sent["connectionString"] == CONNECTION_STRING

    @pytest.mark.asyncio
    async def test_run_refactor_reports_error_body(self, executor_client, rename_plan):
        with aioresponses() as m:
            m.post(
                f"{EXECUTOR_URL}/refactor/run",
                payload={"ok": False, "error": "Invalid object name", "stack": "at Rename()"},
            )

            response = await executor_client.run_refactor(CONNECTION_STRING, rename_plan)

            assert response.has_error
            assert response.error == "Invalid object name"

    @pytest.mark.asyncio
    async def test_run_cleanup(self, executor_client, rename_plan):
        with aioresponses() as m:
            m.post(f"{EXECUTOR_URL}/apply/cleanup", payload={"ok": True, "log": "dropped 2 views"})

            response = await executor_client.run_cleanup(CONNECTION_STRING, rename_plan)

            assert response.ok
            assert response.log == "dropped 2 views"
            sent = _sent_json(m)
            assert sent["renames"] == rename_plan.to_payload()
            assert "plan" not in sent

    @pytest.mark.asyncio
    async def test_run_codefix(self, executor_client, rename_plan):
        with aioresponses() as m:
            m.post(f"{EXECUTOR_URL}/codefix/run", payload={"ok": True, "scanned": 4, "changed": 0})

            result = await executor_client.run_codefix(
                rename_plan, root_key="REPO", include_globs=["**/*.cs"]
            )

            assert result.scanned == 4
            assert result.changed_files == []
            sent = _sent_json(m)
            assert sent["rootKey"] == "REPO"
            assert sent["apply"] is False
            assert sent["includeGlobs"] == ["**/*.cs"]
            assert "excludeGlobs" not in sent


class TestErrors:
    """Test failure mapping."""

    @pytest.mark.asyncio
    async def test_server_error_message(self, executor_client, rename_plan):
        with aioresponses() as m:
            m.post(
                f"{EXECUTOR_URL}/plan",
                status=500,
                payload={"error": "Rename failed", "stack": "at Planner.Build()"},
            )

            with pytest.raises(ExecutorAPIError) as exc_info:
                await executor_client.generate_plan(rename_plan)

            error = exc_info.value
            assert error.status_code == 500
            assert error.message == "Rename failed\n\nat Planner.Build()"
            assert error.endpoint == "/plan"

    @pytest.mark.asyncio
    async def test_problem_details_title(self, executor_client, rename_plan):
        with aioresponses() as m:
            m.post(f"{EXECUTOR_URL}/plan", status=400, payload={"title": "Bad plan"})

            with pytest.raises(ExecutorAPIError) as exc_info:
                await executor_client.generate_plan(rename_plan)

            assert exc_info.value.message == "Bad plan"

    @pytest.mark.asyncio
    async def test_empty_error_body(self, executor_client, rename_plan):
        with aioresponses() as m:
            m.post(f"{EXECUTOR_URL}/plan", status=502, body="")

            with pytest.raises(ExecutorAPIError, match="HTTP 502"):
                await executor_client.generate_plan(rename_plan)

    @pytest.mark.asyncio
    async def test_plain_text_error_body(self, executor_client, rename_plan):
        with aioresponses() as m:
            m.post(f"{EXECUTOR_URL}/plan", status=503, body="executor is restarting")

            with pytest.raises(ExecutorAPIError) as exc_info:
                await executor_client.generate_plan(rename_plan)

            assert exc_info.value.message.endswith("executor is restarting")
            assert exc_info.value.response_body == "executor is restarting"

    @pytest.mark.asyncio
    async def test_timeout(self, executor_client, rename_plan):
        with aioresponses() as m:
            m.post(f"{EXECUTOR_URL}/plan", exception=asyncio.TimeoutError())

            with pytest.raises(APITimeoutError) as exc_info:
                await executor_client.generate_plan(rename_plan)

            assert exc_info.value.timeout_duration == 5

    @pytest.mark.asyncio
    async def test_network_error(self, executor_client, rename_plan):
        with aioresponses() as m:
            m.post(f"{EXECUTOR_URL}/plan", exception=aiohttp.ClientConnectionError("refused"))

            with pytest.raises(ExecutorAPIError, match="Network error"):
                await executor_client.generate_plan(rename_plan)


class TestClientLifecycle:
    @pytest.mark.asyncio
    async def test_context_manager_closes_session(self, app_config):
        async with PlanExecutorClient.from_config(app_config) as client:
            session = await client._get_session()
            assert await client._get_session() is session

        assert session.closed


class TestCodefixFile:
    """Test diff rendering of rewritten files."""

    def test_unified_diff(self):
        f = CodefixFile.from_payload({
            "path": "src/Repo.cs",
            "changed": True,
            "originalContent": "a\nCustomer\nc",
            "modifiedContent": "a\nClient\nc",
        })

        diff = f.unified_diff().splitlines()

        assert diff[:2] == ["--- a/src/Repo.cs", "+++ b/src/Repo.cs"]
        assert "-Customer" in diff
        assert "+Client" in diff

    def test_no_diff_without_contents(self):
        assert CodefixFile(path="src/Repo.cs", changed=True).unified_diff() is None
