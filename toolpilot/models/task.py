from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, ValidationError

from ..core.errors import MalformedPlanInput


class TaskStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    EXECUTING = "executing"
    SUCCESS = "success"
    FAILED = "failed"


TERMINAL_STATUSES = {TaskStatus.SUCCESS, TaskStatus.FAILED}


class Task(BaseModel):
    id: str
    description: str
    # Resolved against the registry at dispatch time, not here.
    tool: str
    payload: Dict[str, Any] = Field(default_factory=dict)
    confidence: float = Field(default=1.0, ge=0.0, le=1.0)
    status: TaskStatus = TaskStatus.PENDING
    result: Optional[str] = None
    error: Optional[str] = None
    logs: List[str] = Field(default_factory=list)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


class Plan(BaseModel):
    id: str
    summary: str
    tasks: List[Task]
    created_at: str = Field(default_factory=lambda: datetime.now().isoformat())
    raw_input: str


class PlannedTask(BaseModel):
    description: str
    tool: str
    payload: Dict[str, Any] = Field(default_factory=dict)
    confidence: float = Field(default=1.0, ge=0.0, le=1.0)


class LLMTaskOutput(BaseModel):
    """Shape the planner model must return before it becomes a Plan."""
    summary: str
    tasks: List[PlannedTask]


class PlanRequest(BaseModel):
    text: str = Field(min_length=1)


class ExecuteRequest(BaseModel):
    task_id: str
    tool: str
    payload: Dict[str, Any]
    description: str = "Execute task"
    original_query: Optional[str] = None


class ExecutePlanRequest(BaseModel):
    # Validated by parse_tasks so a malformed plan is a 400, not a 422.
    tasks: List[Any]
    original_query: Optional[str] = None


def parse_tasks(raw_tasks: Any) -> List[Task]:
    """
    Validates a raw task list before anything runs.
    Either every task is well formed or MalformedPlanInput is raised,
    so a plan is never partially started.
    """
    if not isinstance(raw_tasks, list) or not raw_tasks:
        raise MalformedPlanInput("A plan needs a non-empty list of tasks")

    tasks = []
    for index, item in enumerate(raw_tasks):
        if isinstance(item, Task):
            tasks.append(item)
            continue
        try:
            tasks.append(Task.model_validate(item))
        except ValidationError as e:
            fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
            raise MalformedPlanInput(f"Task {index + 1} is malformed ({fields})") from e

    ids = [task.id for task in tasks]
    if len(set(ids)) != len(ids):
        raise MalformedPlanInput("Task ids must be unique within a plan")
    return tasks
