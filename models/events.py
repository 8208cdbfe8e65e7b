import time
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class EventType(str, Enum):
    PROGRESS = "progress"
    COMPLETE = "complete"
    ERROR = "error"


def now_ms() -> int:
    return int(time.time() * 1000)


class AgentEvent(BaseModel):
    """One point-in-time observation on an agent stream."""

    model_config = ConfigDict(frozen=True, use_enum_values=True)

    type: EventType
    step: str
    message: str
    data: Optional[Any] = None
    timestamp: int = Field(default_factory=now_ms)

    @property
    def is_terminal(self) -> bool:
        return self.type in (EventType.COMPLETE.value, EventType.ERROR.value)

    @classmethod
    def progress(cls, step: str, message: str, data: Any = None) -> "AgentEvent":
        return cls(type=EventType.PROGRESS, step=step, message=message, data=data)

    @classmethod
    def complete(cls, message: str, data: Any = None, step: str = "complete") -> "AgentEvent":
        return cls(type=EventType.COMPLETE, step=step, message=message, data=data)

    @classmethod
    def error(cls, message: str, step: str = "error") -> "AgentEvent":
        return cls(type=EventType.ERROR, step=step, message=message)
