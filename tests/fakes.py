import asyncio
from pathlib import Path
from types import SimpleNamespace
from typing import Any, Dict, List, Optional, Sequence

from toolpilot.core.config import Settings
from toolpilot.core.errors import AdapterFailure
from toolpilot.tools.base import BaseAdapter


def make_settings(tmp_path: Path, **overrides) -> Settings:
    settings = Settings(
        use_fake_redis=True,
        audit_enabled=True,
        sandbox_dir=str(tmp_path / "sandbox"),
        custom_tools_path=str(tmp_path / "custom_tools.json"),
        mcp_servers_path=str(tmp_path / "mcp_servers.json"),
        task_cooldown_seconds=0,
    )
    if overrides:
        settings = settings.model_copy(update=overrides)
    return settings


class FakeAdapter(BaseAdapter):
    """Scripted adapter: emits `logs`, then returns `result` or raises `error`."""

    def __init__(
        self,
        name: str,
        result: str = "ok",
        error: Optional[Exception] = None,
        logs: Sequence[str] = (),
        gate: Optional[asyncio.Event] = None,
    ) -> None:
        self.name = name
        self.result = result
        self.error = error
        self.logs = list(logs)
        self.gate = gate
        self.calls: List[Dict[str, Any]] = []
        self.cancelled = False

    async def execute(self, payload, on_log=None) -> str:
        self.calls.append(dict(payload))
        for line in self.logs:
            self.log(on_log, line)
        if self.gate is not None:
            try:
                await self.gate.wait()
            except asyncio.CancelledError:
                self.cancelled = True
                raise
        if self.error is not None:
            raise self.error
        return self.result


def failing_adapter(name: str, message: str = "boom") -> FakeAdapter:
    return FakeAdapter(name, error=AdapterFailure(message))


class FakeSummarizer:
    def __init__(self, chunks: Sequence[str] = ("Sum", "mary"), fail_after: Optional[int] = None) -> None:
        self.chunks = list(chunks)
        self.fail_after = fail_after
        self.calls: List[Dict[str, Any]] = []

    async def stream_summarize(self, task_description, tool_name, raw_result, original_query=None, intent_prompt=None):
        self.calls.append({
            "task_description": task_description,
            "tool_name": tool_name,
            "raw_result": raw_result,
            "original_query": original_query,
            "intent_prompt": intent_prompt,
        })
        for index, chunk in enumerate(self.chunks):
            if self.fail_after is not None and index >= self.fail_after:
                raise RuntimeError("summarizer went away")
            yield chunk
        if self.fail_after is not None and self.fail_after >= len(self.chunks):
            raise RuntimeError("summarizer went away")


class FakeStream:
    def __init__(self, pieces: Sequence[str]) -> None:
        self.pieces = list(pieces)
        self.closed = False

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for piece in self.pieces:
            yield SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content=piece))])

    async def close(self) -> None:
        self.closed = True


class FakeCompletions:
    def __init__(self, responses: Sequence[Any]) -> None:
        self.responses = list(responses)
        self.calls: List[Dict[str, Any]] = []

    async def create(self, **params):
        self.calls.append(params)
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        if params.get("stream"):
            return FakeStream(response)
        return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=response))])


class FakeGroq:
    """Mimics AsyncGroq's `chat.completions.create`; each call consumes one scripted response."""

    def __init__(self, *responses: Any) -> None:
        self.completions = FakeCompletions(responses)
        self.chat = SimpleNamespace(completions=self.completions)
