from pathlib import Path

import pytest

from toolpilot.core.config import Settings
from toolpilot.core.executor import SequentialExecutor
from toolpilot.tools.dispatcher import ToolDispatcher
from toolpilot.tools.registry import ToolRegistry, builtin_definitions
from tests.fakes import make_settings


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return make_settings(tmp_path)


@pytest.fixture
def registry(settings: Settings) -> ToolRegistry:
    return ToolRegistry(builtin_definitions(settings))


@pytest.fixture
def executor_factory(registry: ToolRegistry):
    def _factory(adapters, summarizer=None, audit=None, **dispatcher_kwargs):
        dispatcher = ToolDispatcher(registry, {a.name: a for a in adapters}, **dispatcher_kwargs)
        return SequentialExecutor(dispatcher, summarizer=summarizer, audit=audit, cooldown_seconds=0)

    return _factory
