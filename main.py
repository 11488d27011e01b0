#!/usr/bin/env python3
"""
Goals & Investments Dashboard — Runner
=======================================
Identity
  → Agent 1 (backend readiness: client build + ensureInitialized, timeout, retry)
  → Agent 2 (dashboard / goals / investments via the cached query layer)
  → Agent 3 (monthly investment series + goal deadline insights)
  → Agent 4 (terminal report)

Usage:
  ./venv/bin/python3 main.py                      # live backend (GOALS_MCP_* in .env)
  ./venv/bin/python3 main.py --mock               # in-process mock backend
  ./venv/bin/python3 main.py --identity alice     # authenticated session
  ./venv/bin/python3 main.py --timeout 5 --retries 2
"""
import argparse
import asyncio
import logging
import os
import time
from functools import partial

from dotenv import load_dotenv
from langgraph.graph import END, START, StateGraph

from agents import agent_01_readiness, agent_02_backend_data, agent_03_analytics, agent_04_report
from agents.agent_01_readiness import INITIALIZATION_TIMEOUT, ReadinessManager
from agents.agent_02_backend_data import BackendService
from cache.readiness_cache import ReadinessCache
from state.graph_state import DashboardState
from state.models import Identity
from tools import backend_client
from tools.client_provider import ClientProvider

load_dotenv()


def _route_after_readiness(state: DashboardState) -> str:
    return "agent_02" if state["readiness"].is_ready else "agent_04"


def build_graph(manager: ReadinessManager, service: BackendService):
    graph = StateGraph(DashboardState)
    graph.add_node("agent_01", partial(agent_01_readiness.run, manager=manager))
    graph.add_node("agent_02", partial(agent_02_backend_data.run, service=service))
    graph.add_node("agent_03", agent_03_analytics.run)
    graph.add_node("agent_04", agent_04_report.run)
    graph.add_edge(START, "agent_01")
    graph.add_conditional_edges("agent_01", _route_after_readiness, ["agent_02", "agent_04"])
    graph.add_edge("agent_02", "agent_03")
    graph.add_edge("agent_03", "agent_04")
    graph.add_edge("agent_04", END)
    return graph.compile()


async def _run(args: argparse.Namespace) -> dict:
    if args.mock:
        from mock_data import build_mock
        factory = build_mock
    else:
        factory = backend_client.build

    provider = ClientProvider(factory, admin_token=os.environ.get("GOALS_ADMIN_TOKEN"))
    manager = ReadinessManager(provider, ReadinessCache(), timeout=args.timeout)
    service = BackendService(manager)

    key = (args.identity or os.environ.get("GOALS_IDENTITY", "")).strip()
    initial_state: DashboardState = {
        "identity": Identity(key=key) if key else None,
        "max_retries": args.retries,
        "data_warnings": [],
    }

    app = build_graph(manager, service)
    final = await app.ainvoke(initial_state)
    await provider.drain()
    return final


def main():
    parser = argparse.ArgumentParser(description="Goals & Investments Dashboard")
    parser.add_argument("--mock",     action="store_true",
                        help="Use the in-process mock backend instead of the MCP server")
    parser.add_argument("--identity", default=None,
                        help="Identity key (default: $GOALS_IDENTITY, empty = anonymous)")
    parser.add_argument("--timeout",  type=float, default=INITIALIZATION_TIMEOUT,
                        help="Seconds to wait for the backend client to appear")
    parser.add_argument("--retries",  type=int, default=1,
                        help="Readiness retries after a failed initialization")
    parser.add_argument("--verbose",  action="store_true")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    print(f"\n=== Goals & Investments Dashboard ===")
    print(f"Backend: {'MOCK' if args.mock else 'LIVE (MCP)'}  |  "
          f"Identity: {args.identity or os.environ.get('GOALS_IDENTITY') or 'anonymous'}  |  "
          f"Timeout: {args.timeout:.1f}s", flush=True)

    t0 = time.time()
    final = asyncio.run(_run(args))
    readiness = final["readiness"]
    print(f"Done in {time.time() - t0:.1f}s — backend {readiness.state.value}\n")
    if not readiness.is_ready:
        raise SystemExit(1)


if __name__ == "__main__":
    main()
