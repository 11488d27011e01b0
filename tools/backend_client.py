"""
Goals backend MCP client.
Connects to the goals/investments MCP server via stdio subprocess.

build(identity) is the client factory: it runs one handshake session to
check the server is reachable and to learn which tools it exposes, then
returns a BackendClient bound to that identity. Every call afterwards opens
its own short session, the same way the broker clients do.

The identity key is handed to the server process as GOALS_IDENTITY; how the
server authenticates it is its own business.
"""
from __future__ import annotations

import json
import logging
import os
from typing import Any, Optional

from mcp import ClientSession, StdioServerParameters
from mcp.client.stdio import stdio_client

from state.models import (
    FinancialDashboard,
    FinancialGoal,
    GoalsAnalytics,
    Identity,
    Investment,
    InvestmentsAnalytics,
    UserProfile,
)
from tools.replica_errors import BackendCallError

logger = logging.getLogger(__name__)

ACCESS_CONTROL_TOOL = "_initializeAccessControlWithSecret"


def _server_params(identity: Optional[Identity]) -> StdioServerParameters:
    venv   = os.environ["GOALS_MCP_VENV"]
    server = os.environ["GOALS_MCP_SERVER"]
    env = dict(os.environ)
    env.pop("GOALS_IDENTITY", None)
    if identity is not None:
        env["GOALS_IDENTITY"] = identity.key
    return StdioServerParameters(command=venv, args=[server], env=env)


def _parse(text: str) -> Any:
    try:
        return json.loads(text)
    except (json.JSONDecodeError, TypeError):
        return text


class BackendClient:
    """Bound client: every backend operation as a coroutine returning models."""

    def __init__(self, params: StdioServerParameters, tools: set[str], identity: Optional[Identity] = None):
        self._params = params
        self.tools = tools
        self.identity = identity

    def supports(self, tool_name: str) -> bool:
        return tool_name in self.tools

    async def call_tool(self, tool_name: str, args: Optional[dict] = None) -> Any:
        """Call any tool on the backend. Returns parsed JSON (or raw text)."""
        async with stdio_client(self._params) as (read, write):
            async with ClientSession(read, write) as session:
                await session.initialize()
                result = await session.call_tool(tool_name, args or {})
        text = result.content[0].text if result.content else None
        if result.isError:
            raise BackendCallError(tool_name, text or f"{tool_name} returned an error")
        return _parse(text) if text is not None else None

    # ── Session ──────────────────────────────────────────────────────────────

    async def ensure_initialized(self) -> None:
        await self.call_tool("ensureInitialized")

    async def initialize_access_control(self, secret: str) -> bool:
        """Optional admin bootstrap. False when the backend lacks the tool."""
        if not self.supports(ACCESS_CONTROL_TOOL):
            logger.debug("Backend has no %s tool — skipping", ACCESS_CONTROL_TOOL)
            return False
        await self.call_tool(ACCESS_CONTROL_TOOL, {"secret": secret})
        return True

    # ── Profile ──────────────────────────────────────────────────────────────

    async def get_caller_user_profile(self) -> Optional[UserProfile]:
        raw = await self.call_tool("getCallerUserProfile")
        return UserProfile.model_validate(raw) if raw else None

    async def save_caller_user_profile(self, profile: UserProfile) -> None:
        await self.call_tool("saveCallerUserProfile", {"profile": profile.model_dump(by_alias=True)})

    # ── Goals ────────────────────────────────────────────────────────────────

    async def get_user_financial_goals(self) -> list[FinancialGoal]:
        raw = await self.call_tool("getUserFinancialGoals")
        return [FinancialGoal.model_validate(g) for g in raw or []]

    async def get_financial_goal(self, goal_id: int) -> FinancialGoal:
        raw = await self.call_tool("getFinancialGoal", {"goalId": goal_id})
        return FinancialGoal.model_validate(raw)

    async def add_financial_goal(self, name: str, target_amount: float, target_date: int, category: str) -> int:
        raw = await self.call_tool("addFinancialGoal", {
            "name": name,
            "targetAmount": target_amount,
            "targetDate": target_date,
            "category": category,
        })
        return int(raw)

    async def update_financial_goal(
        self, goal_id: int, name: str, target_amount: float, target_date: int, category: str,
    ) -> None:
        await self.call_tool("updateFinancialGoal", {
            "goalId": goal_id,
            "name": name,
            "targetAmount": target_amount,
            "targetDate": target_date,
            "category": category,
        })

    async def delete_financial_goal(self, goal_id: int) -> None:
        await self.call_tool("deleteFinancialGoal", {"goalId": goal_id})

    # ── Investments ──────────────────────────────────────────────────────────

    async def get_user_investments(self) -> list[Investment]:
        raw = await self.call_tool("getUserInvestments")
        return [Investment.model_validate(i) for i in raw or []]

    async def get_investment(self, investment_id: int) -> Investment:
        raw = await self.call_tool("getInvestment", {"investmentId": investment_id})
        return Investment.model_validate(raw)

    async def add_investment(
        self, category: str, subcategory: str, invested_amount: float,
        current_value: float, date_of_investment: int,
    ) -> int:
        raw = await self.call_tool("addInvestment", {
            "category": category,
            "subcategory": subcategory,
            "investedAmount": invested_amount,
            "currentValue": current_value,
            "dateOfInvestment": date_of_investment,
        })
        return int(raw)

    async def update_investment(
        self, investment_id: int, category: str, subcategory: str,
        invested_amount: float, current_value: float, date_of_investment: int,
    ) -> None:
        await self.call_tool("updateInvestment", {
            "investmentId": investment_id,
            "category": category,
            "subcategory": subcategory,
            "investedAmount": invested_amount,
            "currentValue": current_value,
            "dateOfInvestment": date_of_investment,
        })

    async def delete_investment(self, investment_id: int) -> None:
        await self.call_tool("deleteInvestment", {"investmentId": investment_id})

    # ── Linking ──────────────────────────────────────────────────────────────

    async def link_investment_to_goal(self, goal_id: int, investment_id: int, amount_allocated: float) -> None:
        await self.call_tool("linkInvestmentToGoal", {
            "goalId": goal_id,
            "investmentId": investment_id,
            "amountAllocated": amount_allocated,
        })

    async def unlink_investment_from_goal(self, goal_id: int, investment_id: int) -> None:
        await self.call_tool("unlinkInvestmentFromGoal", {"goalId": goal_id, "investmentId": investment_id})

    # ── Aggregates ───────────────────────────────────────────────────────────

    async def get_goal_analytics(self) -> GoalsAnalytics:
        return GoalsAnalytics.model_validate(await self.call_tool("getGoalAnalytics"))

    async def get_investment_analytics(self) -> InvestmentsAnalytics:
        return InvestmentsAnalytics.model_validate(await self.call_tool("getInvestmentAnalytics"))

    async def get_dashboard(self) -> FinancialDashboard:
        return FinancialDashboard.model_validate(await self.call_tool("getDashboard"))


async def build(identity: Optional[Identity] = None) -> BackendClient:
    """
    Client factory. Handshake + tool listing in a single MCP session.
    Raises whatever the transport raises if the server can't be reached.
    """
    params = _server_params(identity)
    async with stdio_client(params) as (read, write):
        async with ClientSession(read, write) as session:
            await session.initialize()
            listed = await session.list_tools()
    tools = {t.name for t in listed.tools}
    logger.info("Backend client ready (%d tools, identity=%s)",
                len(tools), identity.key if identity else "anonymous")
    return BackendClient(params, tools, identity)
