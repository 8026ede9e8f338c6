import logging
from typing import Any, Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .agents import PlannerAgent, SummarizerAgent
from .api.routes import router
from .core.audit import AuditLog
from .core.config import Settings
from .core.errors import MalformedPlanInput
from .core.executor import SequentialExecutor
from .core.groq_client import get_groq_client
from .core.orchestrator import PipelineOrchestrator
from .storage import RedisClient
from .tools import DomainAllowlist, ToolDispatcher, ToolRegistry
from .tools.adapters import CalendarStore, build_adapters

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None, groq: Any = None, http: Optional[httpx.AsyncClient] = None) -> FastAPI:
    """
    Builds the application and its object graph.
    Everything lives on app.state so tests can inject fakes for Groq and HTTP.
    """
    settings = settings or Settings.from_env()
    app = FastAPI(title="Toolpilot", version="0.1.0")

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    groq = groq if groq is not None else get_groq_client(settings)
    http = http or httpx.AsyncClient(timeout=settings.http_timeout_seconds, follow_redirects=True)

    redis_client = RedisClient(settings)
    audit = AuditLog(redis_client, enabled=settings.audit_enabled, max_entries=settings.audit_max_entries)
    registry = ToolRegistry.from_settings(settings)
    allowlist = DomainAllowlist(settings.mcp_servers_path)
    adapters = build_adapters(settings, registry, http, CalendarStore(), allowlist)
    dispatcher = ToolDispatcher(
        registry,
        adapters,
        file_max_chars=settings.chain_file_max_chars,
        message_max_lines=settings.chain_message_max_lines,
    )
    summarizer = SummarizerAgent(settings, groq) if groq is not None else None
    executor = SequentialExecutor(
        dispatcher, summarizer=summarizer, audit=audit, cooldown_seconds=settings.task_cooldown_seconds
    )

    app.state.settings = settings
    app.state.http = http
    app.state.redis = redis_client
    app.state.audit = audit
    app.state.registry = registry
    app.state.allowlist = allowlist
    app.state.dispatcher = dispatcher
    app.state.executor = executor
    app.state.orchestrator = PipelineOrchestrator(executor)
    app.state.planner = PlannerAgent(settings, registry, groq=groq, audit=audit)

    app.include_router(router)

    @app.exception_handler(MalformedPlanInput)
    async def malformed_plan_handler(request: Request, exc: MalformedPlanInput):
        logger.warning(f"Rejected malformed input: {exc}")
        return JSONResponse(status_code=400, content={"error": str(exc)})

    @app.on_event("startup")
    async def startup_event():
        logger.info("Application starting up...")

        # Check Redis Connection
        if settings.audit_enabled and not await redis_client.check_connection():
            logger.warning("⚠️ Redis connection failed. Audit entries will not be persisted.")

        logger.info(f"Tools available: {[t.name for t in registry.list_available()]}")
        if groq is None:
            logger.info("Groq disabled: deterministic planner and raw tool results will be used.")

    @app.on_event("shutdown")
    async def shutdown_event():
        logger.info("Application shutting down...")
        await audit.flush()
        await http.aclose()
        await redis_client.close()

    @app.get("/")
    async def root():
        return {"message": "Toolpilot API is running"}

    return app


app = create_app()
