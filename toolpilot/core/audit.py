import asyncio
import json
import logging
import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Set

from pydantic import BaseModel, Field

from ..storage.redis_client import RedisClient

logger = logging.getLogger(__name__)

AUDIT_KEY = "audit:entries"


class AuditEntryType(str, Enum):
    PLAN = "plan"
    EXECUTE = "execute"
    ERROR = "error"


class AuditEntry(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    type: AuditEntryType
    timestamp: str = Field(default_factory=lambda: datetime.now().isoformat())
    data: Dict[str, Any] = Field(default_factory=dict)


class AuditLog:
    """
    Append-only history of plans, executions and errors, kept in a capped Redis list.

    Notifications are fire-and-forget: `notify_*` schedule the write on the running loop
    and return immediately so the pipeline never waits on storage.
    """

    def __init__(self, redis_client: RedisClient, enabled: bool = True, max_entries: int = 100):
        self.redis = redis_client
        self.enabled = enabled
        self.max_entries = max_entries
        self._pending: Set[asyncio.Task] = set()

    async def add_entry(self, entry_type: AuditEntryType, data: Dict[str, Any]) -> Optional[AuditEntry]:
        if not self.enabled:
            return None
        entry = AuditEntry(type=entry_type, data={k: v for k, v in data.items() if v is not None})
        await self.redis.push_capped(AUDIT_KEY, entry.model_dump_json(), self.max_entries)
        return entry

    async def log_plan_generated(self, plan_id: str, summary: str, task_count: int) -> Optional[AuditEntry]:
        return await self.add_entry(AuditEntryType.PLAN, {
            "plan_id": plan_id,
            "summary": summary,
            "task_count": task_count,
        })

    async def log_task_executed(
        self, task_id: str, tool: str, payload: Dict[str, Any], result: str, approved: bool = True
    ) -> Optional[AuditEntry]:
        return await self.add_entry(AuditEntryType.EXECUTE, {
            "task_id": task_id,
            "tool": tool,
            "payload": payload,
            "result": result,
            "approved": approved,
        })

    async def log_error(self, task_id: Optional[str], tool: Optional[str], error: str) -> Optional[AuditEntry]:
        return await self.add_entry(AuditEntryType.ERROR, {
            "task_id": task_id,
            "tool": tool,
            "error": error,
        })

    async def get_entries(self) -> List[AuditEntry]:
        raw = await self.redis.read_list(AUDIT_KEY)
        return [AuditEntry.model_validate(json.loads(item)) for item in raw]

    async def clear(self) -> None:
        await self.redis.delete(AUDIT_KEY)

    # Fire-and-forget wrappers used by the pipeline

    def notify_plan_generated(self, plan_id: str, summary: str, task_count: int) -> None:
        self._schedule(self.log_plan_generated(plan_id, summary, task_count))

    def notify_task_executed(self, task_id: str, tool: str, payload: Dict[str, Any], result: str) -> None:
        self._schedule(self.log_task_executed(task_id, tool, payload, result, True))

    def notify_error(self, task_id: Optional[str], tool: Optional[str], error: str) -> None:
        self._schedule(self.log_error(task_id, tool, error))

    async def flush(self) -> None:
        """Waits for scheduled writes; used on shutdown and in tests."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def _schedule(self, coro) -> None:
        if not self.enabled:
            coro.close()
            return
        task = asyncio.create_task(coro)
        self._pending.add(task)
        task.add_done_callback(self._on_done)

    def _on_done(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"❌ Failed to write audit entry: {error}")
