from contextlib import asynccontextmanager
from types import SimpleNamespace

import pytest

from state.models import Identity
from tools import backend_client
from tools.replica_errors import BackendCallError


class FakeSession:
    """Stands in for mcp.ClientSession; replies from a tool → (text, is_error) table."""

    calls = []
    replies = {}
    tools = ["ensureInitialized", "getUserInvestments", "getDashboard"]

    def __init__(self, read, write):
        pass

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    async def initialize(self):
        return None

    async def list_tools(self):
        return SimpleNamespace(tools=[SimpleNamespace(name=n) for n in self.tools])

    async def call_tool(self, name, args):
        FakeSession.calls.append((name, args))
        text, is_error = self.replies.get(name, (None, False))
        content = [SimpleNamespace(text=text)] if text is not None else []
        return SimpleNamespace(content=content, isError=is_error)


@asynccontextmanager
async def fake_stdio_client(params):
    fake_stdio_client.params.append(params)
    yield ("read", "write")


@pytest.fixture(autouse=True)
def fake_mcp(monkeypatch):
    monkeypatch.setenv("GOALS_MCP_VENV", "/venv/bin/python")
    monkeypatch.setenv("GOALS_MCP_SERVER", "server.py")
    monkeypatch.setenv("GOALS_IDENTITY", "leaked")
    monkeypatch.setattr(backend_client, "stdio_client", fake_stdio_client)
    monkeypatch.setattr(backend_client, "ClientSession", FakeSession)
    fake_stdio_client.params = []
    FakeSession.calls = []
    FakeSession.replies = {}


@pytest.mark.asyncio
async def test_build_lists_tools_and_binds_identity():
    client = await backend_client.build(Identity(key="alice"))

    assert client.supports("ensureInitialized")
    assert not client.supports(backend_client.ACCESS_CONTROL_TOOL)
    params = fake_stdio_client.params[0]
    assert params.command == "/venv/bin/python"
    assert params.args == ["server.py"]
    assert params.env["GOALS_IDENTITY"] == "alice"


@pytest.mark.asyncio
async def test_anonymous_build_does_not_forward_identity():
    await backend_client.build(None)
    assert "GOALS_IDENTITY" not in fake_stdio_client.params[0].env


@pytest.mark.asyncio
async def test_reads_parse_camel_case_records():
    FakeSession.replies["getUserInvestments"] = ("""[{
        "id": 7, "category": "equities", "subcategory": "etf",
        "investedAmount": 100.0, "currentValue": 120.5,
        "dateOfInvestment": 1705276800000000000
    }]""", False)
    client = await backend_client.build(None)

    investments = await client.get_user_investments()

    assert investments[0].id == 7
    assert investments[0].current_value == 120.5
    assert investments[0].date_of_investment == 1_705_276_800_000_000_000


@pytest.mark.asyncio
async def test_writes_send_camel_case_arguments():
    FakeSession.replies["addFinancialGoal"] = ("42", False)
    client = await backend_client.build(None)

    goal_id = await client.add_financial_goal("Car", 20_000.0, 1_900_000_000_000_000_000, "midTerm")

    assert goal_id == 42
    assert FakeSession.calls[-1] == ("addFinancialGoal", {
        "name": "Car",
        "targetAmount": 20_000.0,
        "targetDate": 1_900_000_000_000_000_000,
        "category": "midTerm",
    })


@pytest.mark.asyncio
async def test_error_result_raises_backend_call_error():
    FakeSession.replies["ensureInitialized"] = ("IC0508: Canister abc is stopped", True)
    client = await backend_client.build(None)

    with pytest.raises(BackendCallError) as excinfo:
        await client.ensure_initialized()

    assert excinfo.value.operation == "ensureInitialized"
    assert "is stopped" in str(excinfo.value)


@pytest.mark.asyncio
async def test_access_control_skipped_when_tool_missing():
    client = await backend_client.build(None)
    assert await client.initialize_access_control("s3cret") is False
    assert FakeSession.calls == []


@pytest.mark.asyncio
async def test_single_record_reads_send_ids():
    FakeSession.replies["getFinancialGoal"] = ("""{
        "id": 3, "name": "Car", "targetAmount": 20000.0,
        "targetDate": 1900000000000000000, "category": "midTerm"
    }""", False)
    FakeSession.replies["getInvestment"] = ("""{
        "id": 7, "category": "equities", "subcategory": "etf",
        "investedAmount": 100.0, "currentValue": 120.5,
        "dateOfInvestment": 1705276800000000000
    }""", False)
    client = await backend_client.build(None)

    goal = await client.get_financial_goal(3)
    investment = await client.get_investment(7)

    assert goal.name == "Car" and goal.target_amount == 20_000.0
    assert investment.invested_amount == 100.0
    assert ("getFinancialGoal", {"goalId": 3}) in FakeSession.calls
    assert ("getInvestment", {"investmentId": 7}) in FakeSession.calls
