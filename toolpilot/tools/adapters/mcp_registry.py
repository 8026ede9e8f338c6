from typing import Any, Dict, List, Optional

from pydantic import BaseModel

from ...core.errors import AdapterFailure
from ..base import BaseAdapter, OnLog

SERVERS_REPO = "https://github.com/modelcontextprotocol/servers/tree/main/src"


class ServerEntry(BaseModel):
    name: str
    description: str
    command: str
    url: Optional[str] = None


POPULAR_SERVERS = [
    ServerEntry(name="sqlite", description="SQLite database interaction",
                command="npx -y @modelcontextprotocol/server-sqlite", url=f"{SERVERS_REPO}/sqlite"),
    ServerEntry(name="postgres", description="PostgreSQL database interaction",
                command="npx -y @modelcontextprotocol/server-postgres", url=f"{SERVERS_REPO}/postgres"),
    ServerEntry(name="filesystem", description="Secure filesystem access",
                command="npx -y @modelcontextprotocol/server-filesystem", url=f"{SERVERS_REPO}/filesystem"),
    ServerEntry(name="github", description="GitHub API integration",
                command="npx -y @modelcontextprotocol/server-github", url=f"{SERVERS_REPO}/github"),
    ServerEntry(name="brave-search", description="Web search using Brave",
                command="npx -y @modelcontextprotocol/server-brave-search", url=f"{SERVERS_REPO}/brave-search"),
    ServerEntry(name="google-maps", description="Google Maps integration",
                command="npx -y @modelcontextprotocol/server-google-maps", url=f"{SERVERS_REPO}/google-maps"),
]


def format_servers(servers: List[ServerEntry], title: str) -> str:
    blocks = []
    for server in servers:
        block = f"### {server.name}\n📝 {server.description}\n💻 Command: `{server.command}`\n"
        if server.url:
            block += f"🔗 [Source]({server.url})\n"
        blocks.append(block)
    return (
        f"📦 **{title}**\n\n" + "\n---\n\n".join(blocks)
        + "\n💡 **Tip**: You can find more servers at [smithery.ai](https://smithery.ai)."
    )


class McpRegistryAdapter(BaseAdapter):
    """Searches a static catalogue of tool servers."""

    name = "mcp_registry"

    async def execute(self, payload: Dict[str, Any], on_log: Optional[OnLog] = None) -> str:
        action = payload.get("action")
        if action == "list_popular":
            return format_servers(POPULAR_SERVERS, "Popular MCP Servers")

        if action == "search":
            query = str(self.require(payload, "query", "Please provide a search query")).lower()
            matches = [s for s in POPULAR_SERVERS if query in s.name.lower() or query in s.description.lower()]
            if not matches:
                return f'No MCP servers found for "{query}".\n\nTry searching on https://smithery.ai'
            return format_servers(matches, f'Search results for "{query}"')

        raise AdapterFailure(f"Unknown action: {action}")
