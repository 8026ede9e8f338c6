import asyncio
import logging
from contextlib import aclosing
from dataclasses import dataclass
from typing import Any, AsyncIterator, List, Optional

from ..models.events import Event
from ..models.pipeline import PipelineContext
from ..models.task import Task, TaskStatus, parse_tasks
from ..tools.dispatcher import ChainedToolResult, ToolDispatcher
from .audit import AuditLog
from .intent import get_intent_prompt

logger = logging.getLogger(__name__)

_DISPATCH_DONE = object()
RUNNABLE_STATUSES = {TaskStatus.PENDING, TaskStatus.APPROVED}


@dataclass
class TaskOutcome:
    """What a finished task hands to the next one in the plan."""
    success: bool = False
    raw_result: Optional[str] = None
    next_input: Optional[str] = None


class SequentialExecutor:
    """
    Drives a plan's tasks to completion one at a time and yields a typed event stream.

    Per task the stream is: start, log*, tool_result, summary_chunk*, done
    (or start, log*, error when dispatch fails). Task i always reaches its terminal
    event before task i+1 starts, and a failed task never stops the plan.

    Architecture Note:
    - Adapter progress lines are pushed into a queue owned by the executor; the
      executor drains it between the `start` and `tool_result` events.
    - Closing the stream (consumer gone) cancels the in-flight dispatch or summary.
    """

    def __init__(
        self,
        dispatcher: ToolDispatcher,
        summarizer: Optional[Any] = None,
        audit: Optional[AuditLog] = None,
        cooldown_seconds: float = 0.3,
    ):
        self.dispatcher = dispatcher
        self.summarizer = summarizer
        self.audit = audit
        self.cooldown_seconds = max(0.0, cooldown_seconds)

    async def execute_plan(
        self, tasks: List[Any], context: Optional[PipelineContext] = None
    ) -> AsyncIterator[Event]:
        # Validated as a whole before the first task starts.
        tasks = parse_tasks(tasks)
        previous_result: Optional[str] = None

        for index, task in enumerate(tasks):
            if index > 0 and self.cooldown_seconds:
                await asyncio.sleep(self.cooldown_seconds)

            next_tool = tasks[index + 1].tool if index + 1 < len(tasks) else None
            outcome = TaskOutcome()
            async with aclosing(self._run_task(task, context, previous_result, next_tool, outcome)) as events:
                async for event in events:
                    yield event

            # Only a successful task feeds the next one.
            previous_result = outcome.next_input if outcome.success else None

        logger.info(f"[Executor] Plan finished: {[t.status.value for t in tasks]}")

    async def execute_task(
        self,
        task: Task,
        context: Optional[PipelineContext] = None,
        previous_result: Optional[str] = None,
        next_tool: Optional[str] = None,
    ) -> AsyncIterator[Event]:
        async with aclosing(self._run_task(task, context, previous_result, next_tool, TaskOutcome())) as events:
            async for event in events:
                yield event

    async def _run_task(
        self,
        task: Task,
        context: Optional[PipelineContext],
        previous_result: Optional[str],
        next_tool: Optional[str],
        outcome: TaskOutcome,
    ) -> AsyncIterator[Event]:
        if task.status not in RUNNABLE_STATUSES:
            logger.warning(f"[Executor] Skipping task {task.id}: status is {task.status.value}")
            return

        # 1. start
        task.status = TaskStatus.EXECUTING
        task.result = None
        task.error = None
        logger.info(f"[Executor] Task {task.id} executing with '{task.tool}'")
        yield Event.start(task.id, task.tool)

        # 2. log* while the adapter runs
        chained = None
        async with aclosing(self._dispatch(task, previous_result, next_tool)) as events:
            async for event in events:
                if isinstance(event, ChainedToolResult):
                    chained = event
                else:
                    yield event

        # 6. error
        if not chained.success:
            task.status = TaskStatus.FAILED
            task.error = chained.result
            logger.error(f"[Executor] Task {task.id} failed: {chained.result}")
            if self.audit:
                self.audit.notify_error(task.id, task.tool, chained.result)
            yield Event.error(task.id, chained.result)
            return

        # 3. tool_result
        raw_result = chained.result
        yield Event.tool_result(task.id, raw_result)

        # 4. summary_chunk*
        task.result = ""
        async with aclosing(self._summarize(task, raw_result, context)) as chunks:
            async for chunk in chunks:
                task.result += chunk
                yield Event.summary_chunk(task.id, chunk)

        # 5. done
        task.status = TaskStatus.SUCCESS
        outcome.success = True
        outcome.raw_result = raw_result
        outcome.next_input = chained.transformed_for_next or raw_result
        if self.audit:
            self.audit.notify_task_executed(task.id, task.tool, task.payload, task.result)
        yield Event.done(task.id, task.result)

    async def _dispatch(self, task: Task, previous_result: Optional[str], next_tool: Optional[str]):
        """Yields log events as they arrive, then the ChainedToolResult last."""
        channel: asyncio.Queue = asyncio.Queue()

        async def run() -> ChainedToolResult:
            try:
                return await self.dispatcher.dispatch_with_chaining(
                    task.tool, task.payload, previous_result, next_tool, channel.put_nowait
                )
            finally:
                channel.put_nowait(_DISPATCH_DONE)

        dispatch = asyncio.create_task(run())
        try:
            while True:
                message = await channel.get()
                if message is _DISPATCH_DONE:
                    break
                task.logs.append(message)
                yield Event.log(task.id, message)

            try:
                chained = await dispatch
            except Exception as e:
                logger.exception(f"[Executor] Dispatch crashed for task {task.id}")
                chained = ChainedToolResult(success=False, tool=task.tool, result=str(e) or type(e).__name__)
            yield chained
        finally:
            if not dispatch.done():
                logger.info(f"[Executor] Cancelling in-flight dispatch for task {task.id}")
                dispatch.cancel()
                try:
                    await dispatch
                except asyncio.CancelledError:
                    pass

    async def _summarize(self, task: Task, raw_result: str, context: Optional[PipelineContext]):
        """Summarizer chunks, or the raw result as a single chunk when summarizing is impossible."""
        if self.summarizer is None:
            yield raw_result
            return

        original_query = context.original_query if context else None
        intent_prompt = get_intent_prompt(context.intent, context.original_query) if context else None
        stream = self.summarizer.stream_summarize(
            task.description, task.tool, raw_result,
            original_query=original_query, intent_prompt=intent_prompt,
        )

        produced = False
        try:
            async for chunk in stream:
                if chunk:
                    produced = True
                    yield chunk
        except Exception as e:
            logger.warning(f"[Executor] Summarization failed for task {task.id}, using raw result: {e}")
            task.result = ""
            produced = False
        finally:
            aclose = getattr(stream, "aclose", None)
            if aclose is not None:
                await aclose()

        if not produced:
            yield raw_result
