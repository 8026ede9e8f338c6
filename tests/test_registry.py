import json

import pytest

from toolpilot.core.errors import ToolDisabledOrUnknown
from toolpilot.tools.registry import (
    BUILTIN_TOOLS,
    CustomToolConfig,
    ToolRegistry,
    builtin_definitions,
    load_custom_tools,
)


def test_terminal_is_off_by_default(settings):
    registry = ToolRegistry(builtin_definitions(settings))
    names = [t.name for t in registry.list_available()]
    assert "terminal" not in names
    assert names == [name for name, *_ in BUILTIN_TOOLS if name != "terminal"]


def test_disabled_tool_is_hidden_but_resolvable(settings):
    registry = ToolRegistry(builtin_definitions(settings.model_copy(update={"enable_slack": False})))
    assert "slack" not in [t.name for t in registry.list_available()]
    assert registry.resolve("slack").enabled is False
    with pytest.raises(ToolDisabledOrUnknown) as excinfo:
        registry.resolve_enabled("slack")
    assert excinfo.value.tool == "slack"


def test_unknown_tool_raises():
    registry = ToolRegistry([])
    assert registry.resolve("nope") is None
    with pytest.raises(ToolDisabledOrUnknown):
        registry.resolve_enabled("nope")


def test_custom_tools_follow_builtins_and_cannot_shadow_them(settings):
    custom = [
        CustomToolConfig(name="search", description="shadow", type="http", url="http://x"),
        CustomToolConfig(name="stock", description="quotes", type="http", url="http://x/{arg1}"),
        CustomToolConfig(name="stock", description="duplicate", type="command", command="echo"),
    ]
    registry = ToolRegistry(builtin_definitions(settings), custom)

    available = registry.list_available()
    assert available[-1].name == "stock"
    assert available[-1].builtin is False
    assert registry.resolve("search").builtin is True
    assert [c.description for c in registry.custom_tools()] == ["quotes"]


def test_load_custom_tools(tmp_path):
    path = tmp_path / "custom_tools.json"
    path.write_text(json.dumps([{"name": "hello", "description": "greets", "type": "command", "command": "echo {arg1}"}]))
    tools = load_custom_tools(str(path))
    assert tools[0].name == "hello"


def test_broken_custom_tools_file_yields_nothing(tmp_path):
    path = tmp_path / "custom_tools.json"
    path.write_text("{not json")
    assert load_custom_tools(str(path)) == []
    assert load_custom_tools(str(tmp_path / "missing.json")) == []


def test_describe_tools_lists_available_tools(settings):
    text = ToolRegistry(builtin_definitions(settings)).describe_tools()
    assert "**SEARCH**" in text
    assert "TERMINAL" not in text
