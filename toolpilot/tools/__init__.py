from .allowlist import DomainAllowlist
from .dispatcher import ChainedToolResult, ToolDispatcher
from .registry import ToolDefinition, ToolRegistry

__all__ = ["DomainAllowlist", "ChainedToolResult", "ToolDispatcher", "ToolDefinition", "ToolRegistry"]
