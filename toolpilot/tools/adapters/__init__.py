from typing import Dict

import httpx

from ...core.config import Settings
from ..allowlist import DomainAllowlist
from ..base import BaseAdapter
from ..registry import ToolRegistry
from .browser import BrowserAdapter
from .calendar import CalendarAdapter, CalendarStore
from .custom import CustomToolAdapter
from .filesystem import FilesystemAdapter
from .github import GithubAdapter
from .leetcode import LeetcodeAdapter
from .mcp_registry import McpRegistryAdapter
from .search import SearchAdapter
from .slack import SlackAdapter
from .terminal import TerminalAdapter
from .utility import UtilityAdapter


def build_adapters(
    settings: Settings,
    registry: ToolRegistry,
    http: httpx.AsyncClient,
    calendar_store: CalendarStore,
    allowlist: DomainAllowlist,
) -> Dict[str, BaseAdapter]:
    """One adapter per registry name; enablement is checked by the dispatcher, not here."""
    adapters: Dict[str, BaseAdapter] = {
        "filesystem": FilesystemAdapter(settings.sandbox_dir),
        "github": GithubAdapter(http, settings.github_token),
        "slack": SlackAdapter(http, settings.slack_bot_token),
        "calendar": CalendarAdapter(calendar_store),
        "terminal": TerminalAdapter(settings.allow_terminal),
        "browser": BrowserAdapter(http, allowlist, settings.browser_allow_unsafe_urls),
        "search": SearchAdapter(http),
        "leetcode": LeetcodeAdapter(http),
        "mcp_registry": McpRegistryAdapter(),
        "utility": UtilityAdapter(http),
    }
    for config in registry.custom_tools():
        adapters[config.name] = CustomToolAdapter(config, http)
    return adapters


__all__ = ["build_adapters", "CalendarStore"]
