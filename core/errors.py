"""
Error taxonomy for plan execution and streaming.

- ValidationError: malformed plan or request; raised before any step runs.
- ToolError: a tool failed (including exhausted network retries).
- ExecutionError: unknown tool or unresolved reference; aborts the run.
- DecryptionError: secret blob failed authentication or is malformed.
"""


class AgentError(Exception):
    """Base class for all portfolio agent errors."""


class ValidationError(AgentError):
    pass


class ToolError(AgentError):
    def __init__(self, message: str, tool: str | None = None, step: str | None = None):
        super().__init__(message)
        self.tool = tool
        self.step = step


class ExecutionError(AgentError):
    pass


class DecryptionError(AgentError):
    pass


class StreamClosedError(AgentError):
    """Emit was attempted on a stream that is finished or whose consumer went away."""


class StreamTruncatedError(AgentError):
    """A consumed stream ended without a terminal event."""
