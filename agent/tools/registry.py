# agent/tools/registry.py
from typing import Dict, Iterable, Optional

from agent.tools.alerts import AlertsTool
from agent.tools.asset_resolver import AssetResolverTool
from agent.tools.base import BaseTool
from agent.tools.health_scores import HealthScoresTool
from agent.tools.history import HistoryTool
from agent.tools.news_research import NewsResearchTool
from agent.tools.opportunity_scanner import OpportunityScannerTool
from agent.tools.prices import PricesTool
from agent.tools.rebalance import RebalanceTool
from agent.tools.risk_metrics import RiskMetricsTool


class ToolRegistry:
    """Name -> tool lookup used by the plan executor."""

    def __init__(self, tools: Optional[Iterable[BaseTool]] = None):
        self._tools: Dict[str, BaseTool] = {}
        for tool in tools or []:
            self.register(tool)

    def register(self, tool: BaseTool):
        if not tool.name:
            raise ValueError("tool must have a name")
        self._tools[tool.name] = tool

    def get(self, name: str) -> Optional[BaseTool]:
        return self._tools.get(name)

    def names(self):
        return sorted(self._tools)

    def __contains__(self, name: str) -> bool:
        return name in self._tools


def default_registry() -> ToolRegistry:
    resolver = AssetResolverTool()
    return ToolRegistry([
        resolver,
        PricesTool(resolver),
        HistoryTool(resolver),
        RiskMetricsTool(),
        HealthScoresTool(),
        AlertsTool(),
        RebalanceTool(),
        NewsResearchTool(),
        OpportunityScannerTool(),
    ])
