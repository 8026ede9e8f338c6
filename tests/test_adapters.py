import asyncio
import json

import httpx
import pytest
import respx
from httpx import Response

from toolpilot.core.errors import AdapterFailure
from toolpilot.tools.adapters.browser import BrowserAdapter
from toolpilot.tools.adapters.calendar import CalendarAdapter, CalendarStore
from toolpilot.tools.adapters.custom import CustomToolAdapter
from toolpilot.tools.adapters.filesystem import FilesystemAdapter
from toolpilot.tools.adapters.github import GithubAdapter
from toolpilot.tools.adapters.mcp_registry import McpRegistryAdapter
from toolpilot.tools.adapters.search import SearchAdapter, parse_duckduckgo
from toolpilot.tools.adapters.terminal import TerminalAdapter
from toolpilot.tools.adapters.utility import UtilityAdapter, safe_eval
from toolpilot.tools.allowlist import DomainAllowlist
from toolpilot.tools.registry import CustomToolConfig

DDG_HTML = """
<div class="result">
  <a class="result__a" href="//duckduckgo.com/l/?uddg=https%3A%2F%2Fexample.com%2Fpage&rut=abc">Example Page</a>
  <a class="result__snippet">An example snippet</a>
</div>
<div class="result">
  <a class="result__a" href="https://duckduckgo.com/y.js?ad=1">Sponsored</a>
</div>
"""

ARTICLE_HTML = (
    "<html><body><nav>menu</nav><article>"
    + "Deep content about the topic. " * 10
    + "</article><script>var x = 1;</script></body></html>"
)


# filesystem

@pytest.mark.asyncio
async def test_filesystem_write_read_list_delete(tmp_path):
    fs = FilesystemAdapter(str(tmp_path / "sandbox"))
    assert "(5 characters)" in await fs.execute({"action": "write", "path": "notes/a.md", "content": "hello"})
    assert (await fs.execute({"action": "read", "path": "notes/a.md"})).endswith("Content: hello")
    assert "📄 a.md" in await fs.execute({"action": "list", "path": "notes"})
    await fs.execute({"action": "delete", "path": "notes/a.md"})
    with pytest.raises(AdapterFailure, match="File not found"):
        await fs.execute({"action": "read", "path": "notes/a.md"})


@pytest.mark.asyncio
async def test_filesystem_refuses_paths_outside_the_sandbox(tmp_path):
    fs = FilesystemAdapter(str(tmp_path / "sandbox"))
    with pytest.raises(AdapterFailure, match="outside sandbox"):
        await fs.execute({"action": "write", "path": "../escape.txt", "content": "x"})
    assert not (tmp_path / "escape.txt").exists()


@pytest.mark.asyncio
async def test_filesystem_mkdir_and_unknown_action(tmp_path):
    fs = FilesystemAdapter(str(tmp_path / "sandbox"))
    assert "created" in await fs.execute({"action": "mkdir", "path": "dsa"})
    assert "already exists" in await fs.execute({"action": "mkdir", "path": "dsa"})
    with pytest.raises(AdapterFailure):
        await fs.execute({"action": "chmod", "path": "dsa"})


# calendar

@pytest.mark.asyncio
async def test_calendar_store_is_owned_by_the_caller():
    store = CalendarStore()
    calendar = CalendarAdapter(store)
    created = await calendar.execute({"action": "create_event", "title": "Standup", "date": "2024-01-15"})
    assert "ID: event-1" in created
    assert "09:00" in created
    assert [e.title for e in store.list()] == ["Standup"]

    assert "Standup" in await calendar.execute({"action": "list_events"})
    await calendar.execute({"action": "delete_event", "event_id": "event-1"})
    assert await CalendarAdapter(store).execute({"action": "list_events"}) == "No events scheduled"


@pytest.mark.asyncio
async def test_calendar_requires_title_and_known_ids():
    calendar = CalendarAdapter(CalendarStore())
    with pytest.raises(AdapterFailure):
        await calendar.execute({"action": "create_event", "title": "No date"})
    with pytest.raises(AdapterFailure, match="Event not found"):
        await calendar.execute({"action": "delete_event", "event_id": "event-9"})


# utility / terminal / registry

def test_safe_eval_handles_arithmetic_only():
    assert safe_eval("2 + 3 * (4 - 1)") == 11
    assert safe_eval("-2 ** 3") == -8
    with pytest.raises(ValueError):
        safe_eval("__import__('os').getcwd()")
    with pytest.raises(ValueError):
        safe_eval("9 ** 9999")


def test_safe_eval_bounds_result_size():
    assert safe_eval("(2 ** 100) ** 2") == 2 ** 200
    with pytest.raises(ValueError, match="result too large"):
        safe_eval("((9 ** 100) ** 100) ** 100")
    with pytest.raises(ValueError, match="result too large"):
        safe_eval("(2 ** 100) ** 99 * (2 ** 100) ** 99")


@pytest.mark.asyncio
async def test_utility_math_rejects_nested_powers_quickly():
    async with httpx.AsyncClient() as http:
        utility = UtilityAdapter(http)
        with pytest.raises(AdapterFailure, match="Invalid math expression"):
            await asyncio.wait_for(
                utility.execute({"action": "math", "expression": "(((9**100)**100)**100)**100"}), timeout=1
            )


@pytest.mark.asyncio
async def test_utility_math_and_bad_timezone():
    async with httpx.AsyncClient() as http:
        utility = UtilityAdapter(http)
        assert await utility.execute({"action": "math", "expression": "6 * 7"}) == "6 * 7 = 42"
        with pytest.raises(AdapterFailure, match="Invalid timezone"):
            await utility.execute({"action": "time", "timezone": "Mars/Olympus"})
        with pytest.raises(AdapterFailure, match="Unknown utility action"):
            await utility.execute({"action": "teleport"})


@pytest.mark.asyncio
async def test_utility_weather_uses_wttr():
    async with httpx.AsyncClient() as http:
        with respx.mock(assert_all_called=True) as respx_mock:
            respx_mock.get(url__startswith="https://wttr.in/Paris").mock(
                return_value=Response(200, text="Paris: ☀️ +21°C\n")
            )
            assert await UtilityAdapter(http).execute({"action": "weather", "location": "Paris"}) == "Paris: ☀️ +21°C"


@pytest.mark.asyncio
async def test_terminal_disabled_and_whitelist():
    with pytest.raises(AdapterFailure, match="disabled"):
        await TerminalAdapter(enabled=False).execute({"command": "ls"})

    terminal = TerminalAdapter(enabled=True)
    with pytest.raises(AdapterFailure, match="not allowed"):
        await terminal.execute({"command": "rm", "args": ["-rf", "/"]})
    with pytest.raises(AdapterFailure, match="Invalid characters"):
        await terminal.execute({"command": "echo", "args": ["hi; rm -rf /"]})
    assert "hello" in await terminal.execute({"command": "echo", "args": ["hello"]})


@pytest.mark.asyncio
async def test_terminal_nonzero_exit_is_a_failure(tmp_path):
    terminal = TerminalAdapter(enabled=True, cwd=str(tmp_path))
    with pytest.raises(AdapterFailure, match="Command failed with exit code"):
        await terminal.execute({"command": "cat", "args": ["missing-file.txt"]})


@pytest.mark.asyncio
async def test_mcp_registry_search():
    registry = McpRegistryAdapter()
    assert "sqlite" in await registry.execute({"action": "search", "query": "database"})
    assert "No MCP servers found" in await registry.execute({"action": "search", "query": "kubernetes"})


# search

def test_parse_duckduckgo_unwraps_links_and_skips_internal_ones():
    results = parse_duckduckgo(DDG_HTML, limit=10)
    assert results == [{"title": "Example Page", "url": "https://example.com/page", "snippet": "An example snippet"}]


@pytest.mark.asyncio
async def test_search_with_deep_fetch_reports_progress():
    logs = []
    async with httpx.AsyncClient() as http:
        with respx.mock(assert_all_called=True) as respx_mock:
            respx_mock.post("https://html.duckduckgo.com/html/").mock(return_value=Response(200, html=DDG_HTML))
            respx_mock.get("https://example.com/page").mock(return_value=Response(200, html=ARTICLE_HTML))
            result = await SearchAdapter(http).execute({"action": "search", "query": "topic"}, logs.append)

    assert result.startswith('🔍 **Search Results for "topic"**')
    assert "**[1] Example Page**\n🔗 https://example.com/page" in result
    assert "Deep content about the topic." in result
    assert "var x" not in result
    assert logs[0] == '[Search] Starting search for: "topic"'
    assert any("Extracted" in line for line in logs)


@pytest.mark.asyncio
async def test_news_queries_try_hacker_news_first():
    hits = {"hits": [{"title": "AI ships", "url": "https://ai.example", "points": 10,
                      "num_comments": 2, "created_at": "2024-05-01T10:00:00Z", "objectID": "1"}]}
    async with httpx.AsyncClient() as http:
        with respx.mock(assert_all_called=True) as respx_mock:
            respx_mock.get(url__startswith="https://hn.algolia.com/api/v1/search").mock(
                return_value=Response(200, json=hits)
            )
            result = await SearchAdapter(http).execute({"action": "search", "query": "latest AI news"})
    assert "📰 **From Hacker News:**" in result
    assert "🔗 https://ai.example" in result


@pytest.mark.asyncio
async def test_search_falls_back_to_links_when_everything_fails():
    async with httpx.AsyncClient() as http:
        with respx.mock() as respx_mock:
            respx_mock.post("https://html.duckduckgo.com/html/").mock(return_value=Response(503))
            result = await SearchAdapter(http).execute({"action": "search", "query": "obscure", "deep_fetch": False})
    assert "Could not retrieve results" in result


@pytest.mark.asyncio
async def test_search_requires_a_query():
    async with httpx.AsyncClient() as http:
        with pytest.raises(AdapterFailure):
            await SearchAdapter(http).execute({"action": "search", "query": "  "})


# browser

@pytest.mark.asyncio
async def test_browser_blocks_domains_outside_the_allowlist(tmp_path):
    allowlist = DomainAllowlist(str(tmp_path / "mcp_servers.json"), defaults=["api.github.com"])
    async with httpx.AsyncClient() as http:
        with pytest.raises(AdapterFailure, match="URL not allowed"):
            await BrowserAdapter(http, allowlist).execute({"url": "https://evil.example/x"})


@pytest.mark.asyncio
async def test_browser_uses_reader_then_direct_fetch(tmp_path):
    allowlist = DomainAllowlist(str(tmp_path / "mcp_servers.json"), defaults=["api.github.com"])
    async with httpx.AsyncClient() as http:
        browser = BrowserAdapter(http, allowlist)
        with respx.mock(assert_all_called=True) as respx_mock:
            respx_mock.get(url__startswith="https://r.jina.ai/").mock(
                return_value=Response(200, text="# Repo a/b")
            )
            assert await browser.execute({"url": "api.github.com/repos/a/b"}) == "Fetched via Jina Reader:\n# Repo a/b"

        with respx.mock(assert_all_called=True) as respx_mock:
            respx_mock.get(url__startswith="https://r.jina.ai/").mock(return_value=Response(502))
            respx_mock.get("https://api.github.com/repos/a/b").mock(
                return_value=Response(200, json={"full_name": "a/b"})
            )
            result = await browser.execute({"url": "https://api.github.com/repos/a/b"})
    assert result.startswith("GET https://api.github.com/repos/a/b\nStatus: 200")
    assert '"full_name": "a/b"' in result


@pytest.mark.asyncio
async def test_browser_rejects_unusable_urls(tmp_path):
    allowlist = DomainAllowlist(str(tmp_path / "mcp_servers.json"))
    async with httpx.AsyncClient() as http:
        with pytest.raises(AdapterFailure, match="Invalid URL"):
            await BrowserAdapter(http, allowlist, allow_unsafe=True).execute({"url": "javascript:alert(1)"})


# github / custom

@pytest.mark.asyncio
async def test_github_without_token_answers_with_mocks():
    async with httpx.AsyncClient() as http:
        github = GithubAdapter(http, token=None)
        result = await github.execute({"action": "create_issue", "repo": "a/b", "title": "Bug"})
        assert result.startswith("[MOCK] Issue created in a/b")
        with pytest.raises(AdapterFailure, match="base, and head"):
            await github.execute({"action": "create_pr", "repo": "a/b", "title": "PR"})


@pytest.mark.asyncio
async def test_github_with_token_calls_the_api():
    async with httpx.AsyncClient() as http:
        with respx.mock(assert_all_called=True) as respx_mock:
            route = respx_mock.post("https://api.github.com/repos/a/b/issues").mock(
                return_value=Response(201, json={"html_url": "https://github.com/a/b/issues/1"})
            )
            result = await GithubAdapter(http, token="t0k").execute(
                {"action": "create_issue", "repo": "a/b", "title": "Bug"}
            )
    assert result == "Issue created successfully: https://github.com/a/b/issues/1"
    assert route.calls.last.request.headers["Authorization"] == "token t0k"
    assert json.loads(route.calls.last.request.content)["title"] == "Bug"


@pytest.mark.asyncio
async def test_custom_command_tool_quotes_arguments():
    config = CustomToolConfig(name="greet", description="d", type="command", command="echo {arg1}")
    async with httpx.AsyncClient() as http:
        result = await CustomToolAdapter(config, http).execute({"arg1": "hi; echo pwned"})
    assert result.strip() == "hi; echo pwned"


@pytest.mark.asyncio
async def test_custom_http_tool_fills_the_url():
    config = CustomToolConfig(name="quote", description="d", type="http", url="https://api.example.com/q?s={arg1}")
    async with httpx.AsyncClient() as http:
        with respx.mock(assert_all_called=True) as respx_mock:
            route = respx_mock.get(url__startswith="https://api.example.com/q").mock(
                return_value=Response(200, text="42")
            )
            result = await CustomToolAdapter(config, http).execute({"arg1": "a b", "previous_context": "x"})
    assert result == "Status: 200\nResponse: 42"
    assert route.calls.last.request.url.params["s"] == "a b"
