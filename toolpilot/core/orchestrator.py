import logging
from contextlib import aclosing
from typing import Any, AsyncIterator, Dict, List, Optional

from ..models.events import Event, EventType
from ..models.pipeline import PipelineContext, PipelineStage, TaskResult
from ..models.task import parse_tasks
from .executor import SequentialExecutor
from .intent import create_pipeline_context, extract_citations, extract_sources, update_stage

logger = logging.getLogger(__name__)

# Progress split: parsing and selection take the first 20%, tasks share the next 75%.
_PARSED_PROGRESS = 10
_SELECTED_PROGRESS = 20
_EXECUTION_SPAN = 75


class PipelineOrchestrator:
    """
    Request-level flow around the executor.

    Architecture Note:
    - One PipelineContext per request, created here and discarded when the stream ends.
    - Stage updates are informational: they are emitted as `stage` events between the
      executor's task events and never change how tasks run.
    """

    def __init__(self, executor: SequentialExecutor):
        self.executor = executor

    async def execute(
        self,
        tasks: List[Any],
        original_query: Optional[str] = None,
        context: Optional[PipelineContext] = None,
    ) -> AsyncIterator[Event]:
        tasks = parse_tasks(tasks)
        context = context or create_pipeline_context(original_query or tasks[0].description)
        total = len(tasks)
        finished = 0
        raw_results: Dict[str, str] = {}

        logger.info(f"Orchestrator running {total} task(s), intent={context.intent.value}")
        yield self._stage(context, PipelineStage.QUERY_PARSING, _PARSED_PROGRESS)
        yield self._stage(context, PipelineStage.TOOL_SELECTION, _SELECTED_PROGRESS)

        async with aclosing(self.executor.execute_plan(tasks, context)) as events:
            async for event in events:
                yield event

                if event.type == EventType.START:
                    context.selected_tool = event.data["tool"]
                    yield self._stage(context, PipelineStage.EXECUTING, self._progress(finished, total))

                elif event.type == EventType.TOOL_RESULT:
                    raw_results[event.task_id] = event.data["raw_result"]
                    yield self._stage(context, PipelineStage.SUMMARIZING, self._progress(finished + 0.5, total))

                elif event.is_terminal:
                    finished += 1
                    self._record(context, event, raw_results, tasks)

        all_failed = bool(context.task_results) and all(not r.success for r in context.task_results)
        final_stage = PipelineStage.FAILED if all_failed else PipelineStage.COMPLETE
        context.final_answer = "\n\n".join(r.summary for r in context.task_results if r.success and r.summary)
        yield self._stage(context, final_stage, 100)

    def _record(self, context: PipelineContext, event: Event, raw_results: Dict[str, str], tasks) -> None:
        task = next(t for t in tasks if t.id == event.task_id)
        if event.type == EventType.DONE:
            raw = raw_results.get(task.id, "")
            context.task_results.append(TaskResult(
                task_id=task.id, tool=task.tool, raw_result=raw, summary=event.data["result"], success=True,
            ))
            sources = extract_sources(raw)
            context.citations.extend(extract_citations(sources, start=len(context.citations) + 1))
        else:
            context.task_results.append(TaskResult(
                task_id=task.id, tool=task.tool, success=False, error=event.data["message"],
            ))

    @staticmethod
    def _progress(finished: float, total: int) -> int:
        return _SELECTED_PROGRESS + int(_EXECUTION_SPAN * finished / total)

    @staticmethod
    def _stage(context: PipelineContext, stage: PipelineStage, progress: int) -> Event:
        update_stage(context, stage, progress)
        return Event(type=EventType.STAGE, data={
            "stage": stage.value,
            "progress": context.progress,
            "intent": context.intent.value,
        })
