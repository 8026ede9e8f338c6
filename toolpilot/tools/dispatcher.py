import logging
import re
from typing import Any, Callable, Dict, Mapping, Optional, Tuple
from urllib.parse import urlparse

from pydantic import BaseModel

from ..core.errors import AdapterFailure, ToolDisabledOrUnknown
from .base import BaseAdapter, OnLog
from .registry import ToolRegistry

logger = logging.getLogger(__name__)

FETCH_TOOL = "browser"
SEARCH_TOOL = "search"
FILE_TOOL = "filesystem"
MESSAGE_TOOL = "slack"

FALLBACK_MARKER = "[Fallback from browser to search]"
FALLBACK_RESULT_LIMIT = 5

# Reserved payload key carrying the previous task's output into the next adapter.
PREVIOUS_RESULT_KEY = "previous_context"
PREVIOUS_RESULT_PLACEHOLDER = "[WILL USE PREVIOUS RESULT]"

_EMPHASIS = re.compile(r"\*\*")
_EMOJI = re.compile(
    "["
    "\U0001F000-\U0001FAFF"  # pictographs, symbols, flags
    "\U00002600-\U000027BF"  # misc symbols, dingbats
    "\U00002B00-\U00002BFF"
    "\U0000FE0F\U0000200D"   # variation selector, zero-width joiner
    "]"
)


class ChainedToolResult(BaseModel):
    success: bool
    tool: str
    result: str
    fallback_used: Optional[str] = None
    transformed_for_next: Optional[str] = None


def search_query_from_url(url: str) -> str:
    """Hostname plus path tokens, whitespace-collapsed; unparseable input is used as-is."""
    parsed = urlparse(url or "")
    if not parsed.scheme or not parsed.hostname:
        return " ".join((url or "").split())
    return " ".join(f"{parsed.hostname} {parsed.path.replace('/', ' ')}".split())


def strip_for_file(result: str, max_chars: int) -> str:
    cleaned = _EMOJI.sub("", _EMPHASIS.sub("", result))
    return cleaned[:max_chars]


def first_lines(result: str, max_lines: int) -> str:
    lines = [line for line in result.split("\n") if line.strip()]
    return "\n".join(lines[:max_lines])


class ToolDispatcher:
    """
    Resolves a tool name to its adapter and invokes it.

    Two behaviours sit on top of plain dispatch:
    - the browser -> search fallback, the only automatic recovery path;
    - output transformation when one task's result feeds the next task's tool.
    """

    def __init__(
        self,
        registry: ToolRegistry,
        adapters: Mapping[str, BaseAdapter],
        file_max_chars: int = 10000,
        message_max_lines: int = 10,
    ):
        self.registry = registry
        self.adapters = dict(adapters)
        self.file_max_chars = file_max_chars
        self.message_max_lines = message_max_lines

        for_file: Callable[[str], str] = lambda r: strip_for_file(r, self.file_max_chars)
        for_message: Callable[[str], str] = lambda r: first_lines(r, self.message_max_lines)
        self.transforms: Dict[Tuple[str, str], Callable[[str], str]] = {
            (FETCH_TOOL, FILE_TOOL): for_file,
            (SEARCH_TOOL, FILE_TOOL): for_file,
            (FETCH_TOOL, MESSAGE_TOOL): for_message,
            (SEARCH_TOOL, MESSAGE_TOOL): for_message,
        }

    def adapter_for(self, tool: str) -> BaseAdapter:
        self.registry.resolve_enabled(tool)
        adapter = self.adapters.get(tool)
        if adapter is None:
            raise ToolDisabledOrUnknown(tool)
        return adapter

    async def dispatch(self, tool: str, payload: Dict[str, Any], on_log: Optional[OnLog] = None) -> str:
        """
        Invokes the adapter behind `tool`.
        Raises ToolDisabledOrUnknown before touching any adapter, AdapterFailure when the adapter fails.
        """
        adapter = self.adapter_for(tool)

        if tool != FETCH_TOOL:
            return await self._invoke(adapter, payload, on_log)

        try:
            return await self._invoke(adapter, payload, on_log)
        except AdapterFailure as e:
            return await self._fallback_to_search(payload, e, on_log)

    async def dispatch_with_chaining(
        self,
        tool: str,
        payload: Dict[str, Any],
        previous_result: Optional[str] = None,
        next_tool: Optional[str] = None,
        on_log: Optional[OnLog] = None,
    ) -> ChainedToolResult:
        """
        Dispatch for chained plans. Never raises for tool errors: failures come back as
        success=False with the error message as result, and the caller decides what to do.
        """
        enriched = inject_previous_result(payload, previous_result)

        try:
            result = await self.dispatch(tool, enriched, on_log)
        except (ToolDisabledOrUnknown, AdapterFailure) as e:
            return ChainedToolResult(success=False, tool=tool, result=str(e))

        transformed = None
        if next_tool and result:
            transformed = self.transform_result_for_next(result, tool, next_tool)

        return ChainedToolResult(
            success=True,
            tool=tool,
            result=result,
            fallback_used=SEARCH_TOOL if result.startswith(FALLBACK_MARKER) else None,
            transformed_for_next=transformed,
        )

    def transform_result_for_next(self, result: str, from_tool: str, to_tool: str) -> str:
        transform = self.transforms.get((from_tool, to_tool))
        return transform(result) if transform else result

    async def _invoke(self, adapter: BaseAdapter, payload: Dict[str, Any], on_log: Optional[OnLog]) -> str:
        try:
            return await adapter.execute(payload, on_log)
        except AdapterFailure:
            raise
        except Exception as e:
            logger.error(f"[Dispatcher] Adapter '{adapter.name}' raised {type(e).__name__}: {e}")
            raise AdapterFailure(str(e) or type(e).__name__) from e

    async def _fallback_to_search(self, payload: Dict[str, Any], error: Exception, on_log: Optional[OnLog]) -> str:
        url = str(payload.get("url", ""))
        logger.info(f"[Dispatcher] Browser fallback: {error}")
        if on_log:
            on_log(f"[Dispatcher] Browser failed for {url}, falling back to search...")

        query = search_query_from_url(url)
        if on_log:
            on_log(f'[Dispatcher] Searching for: "{query}"')

        # A failure here propagates: there is no second fallback.
        search_result = await self.dispatch(SEARCH_TOOL, {
            "action": "search",
            "query": query,
            "limit": FALLBACK_RESULT_LIMIT,
            "deep_fetch": True,
        }, on_log)
        return f"{FALLBACK_MARKER}\n\n{search_result}"


def inject_previous_result(payload: Dict[str, Any], previous_result: Optional[str]) -> Dict[str, Any]:
    """Merges prior output under the reserved key and fills placeholder values with it."""
    if not previous_result:
        return payload

    enriched = {}
    for key, value in payload.items():
        if isinstance(value, str) and PREVIOUS_RESULT_PLACEHOLDER in value:
            value = value.replace(PREVIOUS_RESULT_PLACEHOLDER, previous_result)
        enriched[key] = value
    enriched[PREVIOUS_RESULT_KEY] = previous_result
    return enriched
