import asyncio
from contextlib import aclosing

import pytest

from toolpilot.core.errors import MalformedPlanInput
from toolpilot.core.executor import SequentialExecutor
from toolpilot.core.intent import create_pipeline_context
from toolpilot.models import EventType, Task, TaskStatus
from toolpilot.tools.dispatcher import (
    PREVIOUS_RESULT_KEY,
    PREVIOUS_RESULT_PLACEHOLDER,
    ToolDispatcher,
    strip_for_file,
)
from tests.fakes import FakeAdapter, FakeSummarizer, failing_adapter


async def collect(stream):
    return [event async for event in stream]


def kinds(events, task_id=None):
    return [e.type.value for e in events if task_id is None or e.task_id == task_id]


@pytest.mark.asyncio
async def test_single_task_event_order(executor_factory):
    executor = executor_factory([FakeAdapter("search", result="raw", logs=["one", "two"])], FakeSummarizer())
    task = Task(id="t1", description="look up", tool="search")

    events = await collect(executor.execute_task(task))

    assert kinds(events) == ["start", "log", "log", "tool_result", "summary_chunk", "summary_chunk", "done"]
    assert [e.data["message"] for e in events if e.type == EventType.LOG] == ["one", "two"]
    assert events[-1].data["result"] == "Summary"
    assert task.status == TaskStatus.SUCCESS
    assert task.result == "Summary"
    assert task.logs == ["one", "two"]


@pytest.mark.asyncio
async def test_failed_task_does_not_stop_the_plan(executor_factory):
    search = FakeAdapter("search", result="found it")
    slack = FakeAdapter("slack", result="sent")
    executor = executor_factory([failing_adapter("github", "bad repo"), search, slack])
    tasks = [
        Task(id="a", description="issue", tool="github", payload={"repo": "x/y"}),
        Task(id="b", description="search", tool="search", payload={"query": "q"}),
        Task(id="c", description="notify", tool="slack", payload={"message": "hi"}),
    ]

    events = await collect(executor.execute_plan(tasks))

    assert kinds(events, "a") == ["start", "error"]
    assert kinds(events, "b")[-1] == "done"
    assert kinds(events, "c")[-1] == "done"
    assert [t.status for t in tasks] == [TaskStatus.FAILED, TaskStatus.SUCCESS, TaskStatus.SUCCESS]
    assert tasks[0].error == "bad repo"
    # No carry from a failed task.
    assert PREVIOUS_RESULT_KEY not in search.calls[0]
    assert slack.calls[0][PREVIOUS_RESULT_KEY] == "found it"


@pytest.mark.asyncio
async def test_filesystem_failure_leaves_messaging_and_calendar_running(executor_factory):
    executor = executor_factory([
        failing_adapter("filesystem", "disk full"),
        FakeAdapter("slack", result="posted"),
        FakeAdapter("calendar", result="scheduled"),
    ])
    tasks = [
        Task(id="fs", description="save notes", tool="filesystem", payload={"action": "write", "path": "n.md"}),
        Task(id="msg", description="tell the team", tool="slack", payload={"message": "hi"}),
        Task(id="cal", description="book a slot", tool="calendar", payload={"title": "Sync", "date": "2024-01-15"}),
    ]

    events = await collect(executor.execute_plan(tasks))

    assert [t.status for t in tasks] == [TaskStatus.FAILED, TaskStatus.SUCCESS, TaskStatus.SUCCESS]
    assert kinds(events).count("start") == 3
    assert sum(1 for e in events if e.is_terminal) == 3


@pytest.mark.asyncio
async def test_cooldown_separates_task_starts(registry):
    dispatcher = ToolDispatcher(registry, {"search": FakeAdapter("search"), "utility": FakeAdapter("utility")})
    executor = SequentialExecutor(dispatcher, cooldown_seconds=0.2)
    tasks = [
        Task(id="1", description="d", tool="search"),
        Task(id="2", description="d", tool="utility"),
    ]

    loop = asyncio.get_running_loop()
    started = []
    async for event in executor.execute_plan(tasks):
        if event.type == EventType.START:
            started.append(loop.time())

    assert len(started) == 2
    assert started[1] - started[0] >= 0.15


@pytest.mark.asyncio
async def test_tasks_never_interleave(executor_factory):
    executor = executor_factory([FakeAdapter("search", logs=["x"]), FakeAdapter("utility", logs=["y"])])
    tasks = [
        Task(id="1", description="d", tool="search"),
        Task(id="2", description="d", tool="utility"),
    ]
    events = await collect(executor.execute_plan(tasks))

    ids = [e.task_id for e in events]
    assert ids == sorted(ids)
    assert events[0].type == EventType.START and events[-1].type == EventType.DONE


@pytest.mark.asyncio
async def test_no_summarizer_emits_raw_as_single_chunk(executor_factory):
    executor = executor_factory([FakeAdapter("search", result="raw text")])
    task = Task(id="t1", description="d", tool="search")
    events = await collect(executor.execute_task(task))

    chunks = [e.data["content"] for e in events if e.type == EventType.SUMMARY_CHUNK]
    assert chunks == ["raw text"]
    assert task.result == "raw text"


@pytest.mark.asyncio
async def test_summarizer_failure_degrades_to_raw(executor_factory):
    executor = executor_factory([FakeAdapter("search", result="raw text")], FakeSummarizer(["part"], fail_after=1))
    task = Task(id="t1", description="d", tool="search")
    events = await collect(executor.execute_task(task))

    assert events[-1].type == EventType.DONE
    assert events[-1].data["result"] == "raw text"
    assert task.status == TaskStatus.SUCCESS
    assert task.result == "raw text"


@pytest.mark.asyncio
async def test_summarizer_receives_context_query(executor_factory):
    summarizer = FakeSummarizer()
    executor = executor_factory([FakeAdapter("search")], summarizer)
    context = create_pipeline_context("python vs rust")
    await collect(executor.execute_task(Task(id="t1", description="d", tool="search"), context))

    assert summarizer.calls[0]["original_query"] == "python vs rust"
    assert "COMPARISON" in summarizer.calls[0]["intent_prompt"]


@pytest.mark.asyncio
async def test_search_output_round_trips_into_file(executor_factory):
    files = FakeAdapter("filesystem", result="written")
    raw = "🔍 **Search Results** for __python__\n" + "x" * 50
    executor = executor_factory([FakeAdapter("search", result=raw), files], file_max_chars=40)
    tasks = [
        Task(id="a", description="search", tool="search", payload={"query": "python"}),
        Task(id="b", description="save", tool="filesystem",
             payload={"action": "write", "path": "out.md", "content": PREVIOUS_RESULT_PLACEHOLDER}),
    ]

    await collect(executor.execute_plan(tasks))

    assert files.calls[0]["content"] == strip_for_file(raw, 40)
    assert tasks[1].status == TaskStatus.SUCCESS


@pytest.mark.asyncio
async def test_non_runnable_tasks_are_skipped(executor_factory):
    search = FakeAdapter("search")
    executor = executor_factory([search])
    done = Task(id="t1", description="d", tool="search", status=TaskStatus.SUCCESS, result="old")
    events = await collect(executor.execute_plan([done]))

    assert events == []
    assert search.calls == []
    assert done.result == "old"


@pytest.mark.asyncio
async def test_malformed_plan_starts_nothing(executor_factory):
    search = FakeAdapter("search")
    executor = executor_factory([search])
    with pytest.raises(MalformedPlanInput):
        await collect(executor.execute_plan([{"id": "t1", "tool": "search"}]))
    assert search.calls == []


@pytest.mark.asyncio
async def test_closing_the_stream_cancels_in_flight_dispatch(executor_factory):
    gate = asyncio.Event()
    adapter = FakeAdapter("search", logs=["started"], gate=gate)
    executor = executor_factory([adapter])
    task = Task(id="t1", description="d", tool="search")

    async with aclosing(executor.execute_task(task)) as stream:
        async for event in stream:
            if event.type == EventType.LOG:
                break

    assert adapter.cancelled is True
    assert task.status == TaskStatus.EXECUTING
