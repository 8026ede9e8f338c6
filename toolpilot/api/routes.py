import json
import logging
from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import APIRouter, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sse_starlette.sse import EventSourceResponse

from ..core.errors import MalformedPlanInput, PlannerFailure
from ..core.intent import create_pipeline_context
from ..models.events import EventType
from ..models.task import ExecutePlanRequest, ExecuteRequest, PlanRequest, Task, TaskStatus, parse_tasks
from ..streaming.sse import event_generator

router = APIRouter()
logger = logging.getLogger(__name__)


class DomainRequest(BaseModel):
    domain: str


@router.get("/api/health")
async def health(request: Request):
    registry = request.app.state.registry
    return {
        "status": "ok",
        "timestamp": datetime.now().isoformat(),
        "tools": [t.name for t in registry.list_available()],
    }


@router.get("/api/tools")
async def list_tools(request: Request):
    return {"tools": [t.model_dump() for t in request.app.state.registry.list_available()]}


@router.post("/api/plan")
async def generate_plan(body: PlanRequest, request: Request):
    logger.info(f"Received plan request: {body.text[:80]}")
    try:
        plan = await request.app.state.planner.generate_plan(body.text)
    except PlannerFailure as e:
        logger.error(f"❌ Planning failed: {e}")
        return JSONResponse(status_code=500, content={"error": str(e)})
    return plan


@router.post("/api/execute")
async def execute_task(body: ExecuteRequest, request: Request):
    """
    Blocking single-task execution.
    Runs the same state machine as the streaming endpoints and answers with the final task.
    """
    task = Task(id=body.task_id, description=body.description, tool=body.tool, payload=body.payload)
    context = create_pipeline_context(body.original_query) if body.original_query else None

    raw_result: Optional[str] = None
    async for event in request.app.state.executor.execute_task(task, context):
        if event.type == EventType.TOOL_RESULT:
            raw_result = event.data["raw_result"]

    success = task.status == TaskStatus.SUCCESS
    return {
        "success": success,
        "task_id": task.id,
        "tool": task.tool,
        "result": task.result if success else None,
        "raw_result": raw_result,
        "error": task.error,
        "logs": task.logs,
    }


@router.get("/api/stream-execute")
async def stream_execute(
    request: Request,
    task_id: str,
    tool: str,
    payload: str = Query("{}"),
    description: str = "Execute task",
    original_query: Optional[str] = None,
):
    """Streams a single task's lifecycle as SSE."""
    try:
        parsed: Dict[str, Any] = json.loads(payload)
    except ValueError:
        raise MalformedPlanInput("payload must be a JSON object")
    if not isinstance(parsed, dict):
        raise MalformedPlanInput("payload must be a JSON object")

    task = Task(id=task_id, description=description, tool=tool, payload=parsed)
    context = create_pipeline_context(original_query) if original_query else None
    logger.info(f"Client connected to stream for task: {task_id}")
    events = request.app.state.executor.execute_task(task, context)
    return EventSourceResponse(event_generator(request, events))


@router.post("/api/execute-plan")
async def execute_plan(body: ExecutePlanRequest, request: Request):
    """Streams a whole plan, interleaving pipeline stage events with task events."""
    # Validate up front: once the stream has started a 400 can no longer be sent.
    tasks = parse_tasks(body.tasks)
    logger.info(f"Executing plan with {len(tasks)} task(s)")
    events = request.app.state.orchestrator.execute(tasks, original_query=body.original_query)
    return EventSourceResponse(event_generator(request, events))


@router.get("/api/audit")
async def audit_entries(request: Request):
    audit = request.app.state.audit
    if not audit.enabled:
        raise HTTPException(status_code=404, detail="Audit log is disabled")
    entries = await audit.get_entries()
    return {"entries": [e.model_dump() for e in entries]}


@router.get("/api/mcp_servers")
async def list_domains(request: Request):
    return {"domains": request.app.state.allowlist.list()}


@router.post("/api/mcp_servers")
async def add_domain(body: DomainRequest, request: Request):
    domain = body.domain.strip()
    if not domain:
        raise HTTPException(status_code=400, detail="Invalid domain")
    return {"success": True, "domains": request.app.state.allowlist.add(domain)}


@router.delete("/api/mcp_servers")
async def remove_domain(body: DomainRequest, request: Request):
    domain = body.domain.strip()
    if not domain:
        raise HTTPException(status_code=400, detail="Invalid domain")
    return {"success": True, "domains": request.app.state.allowlist.remove(domain)}
