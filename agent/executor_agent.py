# agent/executor_agent.py
"""
Plan executor.

Runs a Plan's steps strictly in declaration order:
  1. resolve the step input (references -> stored results)
  2. look the tool up in the registry
  3. await tool.run(input, ctx)
  4. store the result under the step name

Any failure aborts the rest of the plan and the partial result store is
dropped. stream() exposes the same run as a sequence of AgentEvents ending in
exactly one complete / error event.
"""
import json
import logging
from typing import Any, AsyncIterator, Dict, Optional

from agent.tools.base import ExecutionContext
from agent.tools.registry import ToolRegistry
from core.errors import AgentError, ExecutionError, ToolError, ValidationError
from models.events import AgentEvent
from models.plan import LiteralValue, Plan, Reference, Step, check_seed_conflicts

logger = logging.getLogger(__name__)


def _preview(value: Any, limit: int = 200) -> str:
    try:
        text = json.dumps(value, default=str)
    except (TypeError, ValueError):
        text = repr(value)
    return text[:limit]


class PlanExecutor:
    def __init__(self, registry: ToolRegistry):
        self.registry = registry

    def resolve_input(self, step: Step, store: Dict[str, Any]) -> Dict[str, Any]:
        def resolve(node):
            if isinstance(node, Reference):
                if node.name not in store:
                    raise ExecutionError(
                        f"Step '{step.name}' references '{node.name}' which has no stored result"
                    )
                return store[node.name]
            if isinstance(node, LiteralValue):
                return node.value
            if isinstance(node, dict):
                return {k: resolve(v) for k, v in node.items()}
            if isinstance(node, list):
                return [resolve(v) for v in node]
            return node

        return {k: resolve(v) for k, v in step.parsed_input().items()}

    async def run_step(self, step: Step, store: Dict[str, Any], ctx: ExecutionContext) -> Any:
        resolved = self.resolve_input(step, store)

        tool = self.registry.get(step.tool)
        if tool is None:
            raise ExecutionError(f"Tool '{step.tool}' not found")

        logger.debug("Step %s input: %s", step.name, _preview(resolved))
        try:
            result = await tool.run(resolved, ctx)
        except ToolError as e:
            if e.step is None:
                e.step = step.name
            if e.tool is None:
                e.tool = step.tool
            raise
        except AgentError:
            raise
        except Exception as e:
            raise ToolError(
                f"Step '{step.name}' ({step.tool}) failed: {e}", tool=step.tool, step=step.name
            ) from e
        logger.debug("Step %s result: %s", step.name, _preview(result))
        return result

    async def execute(
        self,
        plan: Plan,
        ctx: ExecutionContext,
        initial: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Run every step; return the result store (initial seeds + one entry per step)."""
        check_seed_conflicts(plan, initial)
        store: Dict[str, Any] = dict(initial or {})
        logger.info("Executing plan '%s' (%d steps) for caller=%s", plan.goal, len(plan.steps), ctx.caller_id)
        for step in plan.steps:
            logger.info("Executing step %s with tool %s", step.name, step.tool)
            try:
                store[step.name] = await self.run_step(step, store, ctx)
            except AgentError as e:
                logger.error("Plan '%s' aborted at step %s: %s", plan.goal, step.name, e)
                raise
        return store

    async def stream(
        self,
        plan: Plan,
        ctx: ExecutionContext,
        initial: Optional[Dict[str, Any]] = None,
        data_keys: Optional[list] = None,
    ) -> AsyncIterator[AgentEvent]:
        """
        Same as execute() but yields progress events around every step and a
        single terminal event. The complete event carries the result store
        (restricted to `data_keys` when given).
        """
        try:
            check_seed_conflicts(plan, initial)
        except ValidationError as e:
            yield AgentEvent.error(str(e), step="validation")
            return
        store: Dict[str, Any] = dict(initial or {})
        for step in plan.steps:
            yield AgentEvent.progress(step.name, f"Executing {step.name}...")
            try:
                store[step.name] = await self.run_step(step, store, ctx)
            except AgentError as e:
                logger.error("Plan '%s' aborted at step %s: %s", plan.goal, step.name, e)
                yield AgentEvent.error(str(e), step=step.name)
                return
            yield AgentEvent.progress(step.name, f"Completed {step.name}")

        data = store if data_keys is None else {k: store.get(k) for k in data_keys}
        yield AgentEvent.complete(f"Plan '{plan.goal}' complete" if plan.goal else "Plan complete", data=data)
