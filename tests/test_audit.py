import asyncio

import pytest

from toolpilot.core.audit import AuditEntryType, AuditLog
from toolpilot.storage import RedisClient


def make_audit(settings, **kwargs) -> AuditLog:
    return AuditLog(RedisClient(settings), **kwargs)


@pytest.mark.asyncio
async def test_entries_are_capped_to_the_newest(settings):
    audit = make_audit(settings, max_entries=3)
    await audit.clear()
    for index in range(5):
        await audit.log_plan_generated(f"plan-{index}", "summary", index)

    entries = await audit.get_entries()
    assert [e.data["plan_id"] for e in entries] == ["plan-2", "plan-3", "plan-4"]
    assert all(e.type == AuditEntryType.PLAN for e in entries)
    await audit.redis.close()


@pytest.mark.asyncio
async def test_notifications_are_written_in_the_background(settings):
    audit = make_audit(settings)
    await audit.clear()

    audit.notify_task_executed("t1", "search", {"query": "q"}, "result")
    audit.notify_error("t2", None, "boom")
    await audit.flush()

    entries = await audit.get_entries()
    assert [e.type for e in entries] == [AuditEntryType.EXECUTE, AuditEntryType.ERROR]
    assert entries[0].data["approved"] is True
    assert "tool" not in entries[1].data
    await audit.redis.close()


@pytest.mark.asyncio
async def test_disabled_audit_is_a_no_op(settings):
    audit = make_audit(settings, enabled=False)
    assert await audit.add_entry(AuditEntryType.ERROR, {"error": "x"}) is None
    audit.notify_plan_generated("p", "s", 1)
    assert audit._pending == set()
    await audit.redis.close()


@pytest.mark.asyncio
async def test_failed_write_is_logged_not_raised(settings, caplog):
    audit = make_audit(settings)

    async def broken(*args, **kwargs):
        raise ConnectionError("redis down")

    audit.redis.push_capped = broken
    audit.notify_error("t1", "search", "boom")
    await audit.flush()
    await asyncio.sleep(0)

    assert "Failed to write audit entry" in caplog.text
    await audit.redis.close()
