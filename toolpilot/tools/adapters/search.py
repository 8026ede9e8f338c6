import asyncio
import logging
import re
from datetime import datetime
from typing import Any, Dict, List, Optional
from urllib.parse import quote_plus, unquote

import httpx
from bs4 import BeautifulSoup

from ...core.errors import AdapterFailure
from ..base import BaseAdapter, OnLog

logger = logging.getLogger(__name__)

DDG_HTML = "https://html.duckduckgo.com/html/"
HN_SEARCH = "https://hn.algolia.com/api/v1/search"
BROWSER_UA = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
DEFAULT_LIMIT = 10
DEEP_FETCH_COUNT = 5
DEEP_FETCH_TIMEOUT = 8.0
PER_SOURCE_CHARS = 3000
MIN_CONTENT_CHARS = 100

NEWS_WORDS = ("news", "latest", "recent")
NOISE_SELECTOR = (
    "script, style, nav, header, footer, iframe, noscript, "
    ".ad, .ads, .advertisement, .sidebar, .menu, .navigation"
)
CONTENT_SELECTORS = [
    "article", "main", ".post-content", ".article-content", ".entry-content",
    ".content", "#content", ".post", ".blog-post", '[role="main"]',
]


def parse_duckduckgo(html: str, limit: int) -> List[Dict[str, str]]:
    """Pulls (title, url, snippet) rows out of DuckDuckGo's HTML results page."""
    soup = BeautifulSoup(html, "html.parser")
    results: List[Dict[str, str]] = []
    for element in soup.select(".result"):
        if len(results) >= limit:
            break
        anchor = element.select_one(".result__a")
        if anchor is None:
            continue
        title = anchor.get_text(strip=True)
        raw_url = anchor.get("href") or ""
        snippet_el = element.select_one(".result__snippet")
        snippet = snippet_el.get_text(strip=True) if snippet_el else ""

        # DDG wraps outbound links as /l/?uddg=<encoded>
        match = re.search(r"uddg=([^&]+)", raw_url)
        url = unquote(match.group(1)) if match else raw_url
        if title and url and "duckduckgo.com" not in url:
            results.append({"title": title, "url": url, "snippet": snippet})
    return results


def extract_main_text(html: str) -> str:
    soup = BeautifulSoup(html, "html.parser")
    for node in soup.select(NOISE_SELECTOR):
        node.decompose()

    text = ""
    for selector in CONTENT_SELECTORS:
        found = soup.select(selector)
        if found:
            text = " ".join(el.get_text(" ") for el in found)
            break
    if not text and soup.body:
        text = soup.body.get_text(" ")
    return re.sub(r"\s+", " ", text).strip()


def fallback_links(query: str) -> str:
    q = quote_plus(query)
    return (
        f'🔍 **Search for "{query}"**\n\n'
        "⚠️ Could not retrieve results. Try these direct links:\n\n"
        "🌐 **Web Search:**\n"
        f"- [Google](https://www.google.com/search?q={q})\n"
        f"- [DuckDuckGo](https://duckduckgo.com/?q={q})\n\n"
        "💡 *Tip: Click the links above to search directly*"
    )


class SearchAdapter(BaseAdapter):
    """
    Web search with deep page fetching.

    Strategy:
    1. News-like queries go to Hacker News first.
    2. DuckDuckGo HTML results, optionally with the text of the top pages.
    3. A static list of search links when both come back empty.
    """

    name = "search"

    def __init__(self, http: httpx.AsyncClient):
        self.http = http

    async def execute(self, payload: Dict[str, Any], on_log: Optional[OnLog] = None) -> str:
        query = str(self.require(payload, "query", "Search query is required")).strip()
        limit = int(payload.get("limit") or DEFAULT_LIMIT)
        deep_fetch = bool(payload.get("deep_fetch", payload.get("deepFetch", True)))

        self.log(on_log, f'[Search] Starting search for: "{query}"')
        self.log(on_log, f"[Search] Deep Fetch: {deep_fetch}")

        if any(word in query.lower() for word in NEWS_WORDS):
            self.log(on_log, "[Search] Trying Hacker News...")
            news = await self._search_hacker_news(query, limit)
            if news:
                return f'🔍 **Search Results for "{query}"**\n\n{news}'

        self.log(on_log, "[Search] Trying DuckDuckGo HTML scraping...")
        web = await self._search_duckduckgo(query, limit, deep_fetch, on_log)
        if web:
            return f'🔍 **Search Results for "{query}"**\n\n{web}'

        self.log(on_log, "[Search] Fallback to basic search...")
        return fallback_links(query)

    async def _search_hacker_news(self, query: str, limit: int) -> Optional[str]:
        try:
            response = await self.http.get(
                HN_SEARCH, params={"query": query, "tags": "story", "hitsPerPage": limit}
            )
            response.raise_for_status()
            hits = response.json().get("hits") or []
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"[Search] Hacker News failed: {e}")
            return None
        if not hits:
            return None

        lines = []
        for i, hit in enumerate(hits[:limit]):
            created = (hit.get("created_at") or "")[:10]
            try:
                created = datetime.fromisoformat(created).strftime("%d %b %Y")
            except ValueError:
                pass
            link = hit.get("url") or f"https://news.ycombinator.com/item?id={hit.get('objectID')}"
            lines.append(
                f"**{i + 1}. {hit.get('title')}**\n"
                f"📅 {created} | ⬆️ {hit.get('points', 0)} pts | 💬 {hit.get('num_comments', 0)}\n"
                f"🔗 {link}"
            )
        return "📰 **From Hacker News:**\n\n" + "\n\n".join(lines)

    async def _search_duckduckgo(
        self, query: str, limit: int, deep_fetch: bool, on_log: Optional[OnLog]
    ) -> Optional[str]:
        try:
            response = await self.http.post(
                DDG_HTML,
                data={"q": query},
                headers={"User-Agent": BROWSER_UA, "Accept": "text/html", "Accept-Language": "en-US,en;q=0.5"},
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning(f"[Search] DuckDuckGo scraping failed: {e}")
            return None

        results = parse_duckduckgo(response.text, limit)
        self.log(on_log, f"[Search] Found {len(results)} search results")
        if not results:
            return None

        if not deep_fetch:
            formatted = "\n\n".join(
                f"**{i + 1}. {r['title']}**\n{r['snippet']}\n🔗 {r['url']}" for i, r in enumerate(results)
            )
            return f"🌐 **Web Results:**\n\n{formatted}"

        self.log(on_log, "[Search] Starting deep fetch of top URLs...")
        top = results[:DEEP_FETCH_COUNT]
        contents = await asyncio.gather(*(self._fetch_page(r["url"], on_log) for r in top))

        output = ["🌐 **Web Results with Full Content:**\n"]
        for index, (item, content) in enumerate(zip(top, contents), start=1):
            output.append(f"---\n**[{index}] {item['title']}**")
            output.append(f"🔗 {item['url']}")
            output.append("\n📄 **Content:**")
            output.append(content[:PER_SOURCE_CHARS] if content else f"*{item['snippet']}*")
            output.append("")

        if len(results) > DEEP_FETCH_COUNT:
            output.append("\n📋 **Additional Results:**\n")
            for i, r in enumerate(results[DEEP_FETCH_COUNT:], start=DEEP_FETCH_COUNT + 1):
                output.append(f"**{i}. {r['title']}**\n{r['snippet']}\n🔗 {r['url']}\n")
        return "\n".join(output)

    async def _fetch_page(self, url: str, on_log: Optional[OnLog]) -> Optional[str]:
        self.log(on_log, f"[Search] Fetching content from: {url}")
        try:
            response = await self.http.get(
                url, headers={"User-Agent": BROWSER_UA}, timeout=DEEP_FETCH_TIMEOUT, follow_redirects=True
            )
        except httpx.HTTPError as e:
            self.log(on_log, f"[Search] Error fetching {url}: {e}")
            return None

        if not response.is_success:
            self.log(on_log, f"[Search] Failed to fetch {url}: {response.status_code}")
            return None
        content_type = response.headers.get("content-type", "")
        if "text/html" not in content_type:
            self.log(on_log, f"[Search] Skipping non-HTML content: {content_type}")
            return None

        text = extract_main_text(response.text)
        if len(text) < MIN_CONTENT_CHARS:
            self.log(on_log, f"[Search] Content too short for {url}")
            return None
        self.log(on_log, f"[Search] Extracted {len(text)} chars from {url}")
        return text
