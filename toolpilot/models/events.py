from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class EventType(str, Enum):
    START = "start"
    LOG = "log"
    TOOL_RESULT = "tool_result"
    SUMMARY_CHUNK = "summary_chunk"
    DONE = "done"
    ERROR = "error"
    # Emitted by the pipeline orchestrator only, never by the executor.
    STAGE = "stage"


TERMINAL_EVENTS = {EventType.DONE, EventType.ERROR}


class Event(BaseModel):
    type: EventType
    task_id: Optional[str] = None
    data: Dict[str, Any] = Field(default_factory=dict)
    timestamp: str = Field(default_factory=lambda: datetime.isoformat(datetime.now()))

    @property
    def is_terminal(self) -> bool:
        return self.type in TERMINAL_EVENTS

    @classmethod
    def start(cls, task_id: str, tool: str) -> "Event":
        return cls(type=EventType.START, task_id=task_id, data={"task_id": task_id, "tool": tool})

    @classmethod
    def log(cls, task_id: str, message: str) -> "Event":
        return cls(type=EventType.LOG, task_id=task_id, data={"message": message})

    @classmethod
    def tool_result(cls, task_id: str, raw_result: str) -> "Event":
        return cls(type=EventType.TOOL_RESULT, task_id=task_id, data={"raw_result": raw_result})

    @classmethod
    def summary_chunk(cls, task_id: str, content: str) -> "Event":
        return cls(type=EventType.SUMMARY_CHUNK, task_id=task_id, data={"content": content})

    @classmethod
    def done(cls, task_id: str, result: str) -> "Event":
        return cls(type=EventType.DONE, task_id=task_id, data={"result": result})

    @classmethod
    def error(cls, task_id: Optional[str], message: str) -> "Event":
        return cls(type=EventType.ERROR, task_id=task_id, data={"message": message})
