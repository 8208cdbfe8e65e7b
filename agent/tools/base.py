"""
Tool contract.

Every data-fetch / analysis unit implements:

    async def run(self, input: dict, ctx: ExecutionContext) -> Any

Tools are stateless between calls. They read credentials from the context and
never touch the executor's result store.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, List, Mapping

from core.errors import ToolError
from core.http import DEFAULT_MAX_RETRIES, DEFAULT_TIMEOUT_MS


@dataclass(frozen=True)
class ExecutionContext:
    """Read-only per-run context shared by every tool call."""

    credentials: Mapping[str, str] = field(default_factory=dict)
    caller_id: str = "default"
    http_timeout_ms: int = DEFAULT_TIMEOUT_MS
    http_max_retries: int = DEFAULT_MAX_RETRIES

    def __post_init__(self):
        object.__setattr__(self, "credentials", MappingProxyType(dict(self.credentials)))

    def key(self, name: str) -> str:
        return self.credentials.get(name, "")

    @property
    def http_options(self) -> Dict[str, int]:
        """Keyword arguments for fetch_with_retry."""
        return {"timeout_ms": self.http_timeout_ms, "max_retries": self.http_max_retries}


class BaseTool(ABC):
    name: str = ""

    @abstractmethod
    async def run(self, input: Dict[str, Any], ctx: ExecutionContext) -> Any:
        raise NotImplementedError()

    def require(self, input: Dict[str, Any], key: str) -> Any:
        value = input.get(key)
        if value is None:
            raise ToolError(f"Tool '{self.name}' requires input '{key}'", tool=self.name)
        return value

    def symbols(self, input: Dict[str, Any]) -> List[str]:
        raw = self.require(input, "symbols")
        if not isinstance(raw, (list, tuple)):
            raise ToolError(f"Tool '{self.name}' expects 'symbols' to be a list", tool=self.name)
        return [str(s).strip().upper() for s in raw if str(s).strip()]


class FunctionTool(BaseTool):
    """Adapts a plain async function `fn(input, ctx)` to the tool contract."""

    def __init__(self, name: str, fn):
        self.name = name
        self._fn = fn

    async def run(self, input: Dict[str, Any], ctx: ExecutionContext) -> Any:
        return await self._fn(input, ctx)
