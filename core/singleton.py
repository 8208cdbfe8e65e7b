# core/singleton.py
from agent.supervisor_agent import SupervisorAgent
from agent.tools.registry import default_registry

# Unified singleton registry
tool_registry = default_registry()
supervisor_agent = SupervisorAgent(tool_registry)


def get_supervisor() -> SupervisorAgent:
    """FastAPI dependency; tests override it with a supervisor on a custom registry."""
    return supervisor_agent


__all__ = [
    "tool_registry",
    "supervisor_agent",
    "get_supervisor",
]
