from .task import Task, TaskStatus, Plan, PlanRequest, ExecuteRequest, ExecutePlanRequest, LLMTaskOutput
from .events import Event, EventType
from .pipeline import PipelineContext, PipelineStage, QueryIntent, TaskResult, Citation

__all__ = [
    "Task", "TaskStatus", "Plan", "PlanRequest", "ExecuteRequest", "ExecutePlanRequest", "LLMTaskOutput",
    "Event", "EventType",
    "PipelineContext", "PipelineStage", "QueryIntent", "TaskResult", "Citation",
]
