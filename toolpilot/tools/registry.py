import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Literal, Optional

from pydantic import BaseModel, Field, ValidationError

from ..core.config import Settings
from ..core.errors import ToolDisabledOrUnknown

logger = logging.getLogger(__name__)


class ToolDefinition(BaseModel):
    name: str
    description: str
    payload_example: Dict[str, Any] = Field(default_factory=dict)
    enabled: bool = True
    builtin: bool = True


class CustomToolConfig(BaseModel):
    name: str
    description: str
    type: Literal["command", "http"]
    command: Optional[str] = None  # e.g. "python script.py {arg}"
    url: Optional[str] = None      # e.g. "https://api.example.com/data?q={arg}"
    method: Literal["GET", "POST"] = "GET"
    headers: Dict[str, str] = Field(default_factory=dict)


# (name, description, payload example, settings flag), in declaration order.
BUILTIN_TOOLS = [
    ("filesystem",
     "Read, write, list, delete LOCAL files only. NOT for web content - use search/browser for web.",
     {"action": "write", "path": "notes.md", "content": "# My Notes"}, "enable_filesystem"),
    ("github", "Create issues, PRs, and fetch repository information",
     {"action": "create_issue", "repo": "owner/repo", "title": "Bug report", "body": "Description"}, "enable_github"),
    ("slack", "Send messages to Slack channels or users",
     {"action": "send_message", "channel": "#general", "message": "Hello team!"}, "enable_slack"),
    ("calendar", "Create, list, and delete calendar events",
     {"action": "create_event", "title": "Meeting", "date": "2024-01-15", "time": "10:00"}, "enable_calendar"),
    ("terminal", "Execute whitelisted terminal commands (ls, cat, echo, pwd, date, whoami)",
     {"action": "execute", "command": "ls", "args": ["-la"]}, "allow_terminal"),
    ("browser", "Fetch content from URLs safely. For stock prices, use Yahoo Finance API",
     {"action": "fetch", "url": "https://query1.finance.yahoo.com/v8/finance/chart/AAPL", "method": "GET"},
     "enable_browser"),
    ("search", "Web search for news (HackerNews), facts, and definitions (DuckDuckGo)",
     {"action": "search", "query": "latest AI news"}, "enable_search"),
    ("leetcode", "Fetch LeetCode problems with description, examples, and starter code",
     {"action": "get_problem", "title_slug": "two-sum"}, "enable_leetcode"),
    ("mcp_registry", "Search for other MCP servers and tools (e.g. sqlite, postgres, etc.)",
     {"action": "search", "query": "database"}, None),
    ("utility", "Useful utilities: weather, time, currency/convert_currency, math, crypto, translate, ip, "
                "system, uuid, joke",
     {"action": "weather", "location": "London"}, "enable_utility"),
]


def builtin_definitions(settings: Settings) -> List[ToolDefinition]:
    return [
        ToolDefinition(
            name=name,
            description=description,
            payload_example=example,
            enabled=True if flag is None else bool(getattr(settings, flag)),
        )
        for name, description, example, flag in BUILTIN_TOOLS
    ]


def load_custom_tools(path: str) -> List[CustomToolConfig]:
    """Reads user-defined tools; a missing or broken file yields no custom tools."""
    config_path = Path(path)
    if not config_path.exists():
        return []
    try:
        raw = json.loads(config_path.read_text(encoding="utf-8"))
        tools = [CustomToolConfig.model_validate(item) for item in raw]
    except (OSError, ValueError, TypeError, ValidationError) as e:
        logger.warning(f"Failed to load {config_path}: {e}")
        return []
    logger.info(f"Loaded {len(tools)} custom tools from {config_path}")
    return tools


class ToolRegistry:
    """
    Read-only table of tool capabilities, built once at startup.

    Built-in tools win over user-defined tools of the same name: a colliding custom
    tool is dropped with a warning instead of shadowing the built-in.
    """

    def __init__(self, builtins: Iterable[ToolDefinition], custom_tools: Iterable[CustomToolConfig] = ()):
        self._builtins: Dict[str, ToolDefinition] = {}
        for definition in builtins:
            self._builtins[definition.name] = definition

        self._custom: Dict[str, CustomToolConfig] = {}
        for config in custom_tools:
            if config.name in self._builtins:
                logger.warning(f"Custom tool '{config.name}' collides with a built-in tool and is ignored.")
                continue
            if config.name in self._custom:
                logger.warning(f"Duplicate custom tool '{config.name}'; keeping the first definition.")
                continue
            self._custom[config.name] = config

    @classmethod
    def from_settings(cls, settings: Settings) -> "ToolRegistry":
        return cls(builtin_definitions(settings), load_custom_tools(settings.custom_tools_path))

    def list_available(self) -> List[ToolDefinition]:
        builtin = [d for d in self._builtins.values() if d.enabled]
        custom = [self._definition_for_custom(c) for c in self._custom.values()]
        return builtin + custom

    def resolve(self, name: str) -> Optional[ToolDefinition]:
        if name in self._builtins:
            return self._builtins[name]
        if name in self._custom:
            return self._definition_for_custom(self._custom[name])
        return None

    def resolve_enabled(self, name: str) -> ToolDefinition:
        definition = self.resolve(name)
        if definition is None or not definition.enabled:
            raise ToolDisabledOrUnknown(name)
        return definition

    def custom_tools(self) -> List[CustomToolConfig]:
        return list(self._custom.values())

    def describe_tools(self) -> str:
        return "\n".join(f"🔧 **{t.name.upper()}**: {t.description}" for t in self.list_available())

    @staticmethod
    def _definition_for_custom(config: CustomToolConfig) -> ToolDefinition:
        return ToolDefinition(
            name=config.name,
            description=config.description,
            payload_example={"arg1": "value"},
            enabled=True,
            builtin=False,
        )
