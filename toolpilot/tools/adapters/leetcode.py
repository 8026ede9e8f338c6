import html
import logging
import re
from typing import Any, Dict, Optional

import httpx

from ...core.errors import AdapterFailure
from ..base import BaseAdapter, OnLog

logger = logging.getLogger(__name__)

LEETCODE_API = "https://alfa-leetcode-api.onrender.com/select"
DIFFICULTY_BADGES = {"Easy": "🟢", "Medium": "🟡", "Hard": "🔴"}
SNIPPET_PREFERENCE = ("python3", "typescript", "javascript")

POPULAR_PROBLEMS = [
    ("#1 Two Sum", "two-sum"),
    ("#2 Add Two Numbers", "add-two-numbers"),
    ("#3 Longest Substring", "longest-substring-without-repeating-characters"),
    ("#121 Best Time to Buy Stock", "best-time-to-buy-and-sell-stock"),
]


def clean_problem_html(content: str) -> str:
    text = html.unescape(re.sub(r"<[^>]*>", "", content or ""))
    return re.sub(r"\n{3,}", "\n\n", text).strip()


def format_problem(data: Dict[str, Any]) -> str:
    snippets = {s.get("langSlug"): s for s in data.get("codeSnippets") or []}
    snippet = next((snippets[lang] for lang in SNIPPET_PREFERENCE if lang in snippets), None)
    tags = ", ".join(t.get("name", "") for t in data.get("topicTags") or []) or "None"
    difficulty = data.get("difficulty") or "Unknown"
    slug = data.get("titleSlug")

    result = (
        f"# LeetCode #{data.get('questionId')}: {data.get('questionTitle')}\n\n"
        f"{DIFFICULTY_BADGES.get(difficulty, '⚪')} **Difficulty**: {difficulty}\n"
        f"🏷️ **Tags**: {tags}\n"
        f"🔗 **Link**: https://leetcode.com/problems/{slug}/\n\n"
        "---\n\n## Problem Description\n\n"
        f"{clean_problem_html(data.get('question') or '')}\n\n"
        "---\n\n## Example Test Cases\n\n"
        f"```\n{data.get('exampleTestcases') or 'No examples provided'}\n```\n"
    )
    if snippet:
        result += f"\n---\n\n## Starter Code ({snippet.get('lang')})\n\n```{snippet.get('langSlug')}\n{snippet.get('code')}\n```\n"
    return result


class LeetcodeAdapter(BaseAdapter):
    name = "leetcode"

    def __init__(self, http: httpx.AsyncClient):
        self.http = http

    async def execute(self, payload: Dict[str, Any], on_log: Optional[OnLog] = None) -> str:
        action = payload.get("action")

        if action == "get_problem":
            slug = payload.get("title_slug") or payload.get("titleSlug")
            if not slug:
                raise AdapterFailure("Please provide the problem's title_slug (e.g. 'two-sum')")
            self.log(on_log, f"[LeetCode] Fetching problem {slug}")
            try:
                response = await self.http.get(LEETCODE_API, params={"titleSlug": slug})
                response.raise_for_status()
                data = response.json()
            except (httpx.HTTPError, ValueError) as e:
                raise AdapterFailure(f"Could not fetch problem {slug}: {e}") from e
            if not data or not data.get("questionId"):
                raise AdapterFailure(f"Could not fetch problem: {slug}")
            return format_problem(data)

        if action == "search":
            query = self.require(payload, "query", "Please provide a search query")
            popular = "\n".join(f"- {label} → `title_slug: \"{slug}\"`" for label, slug in POPULAR_PROBLEMS)
            return (
                f'🔍 **LeetCode Search: "{query}"**\n\n'
                "Use `get_problem` with a `title_slug` to fetch a specific problem.\n\n"
                f"**Popular problems:**\n{popular}\n\n"
                "🔗 Browse all: https://leetcode.com/problemset/"
            )

        raise AdapterFailure(f"Unknown action: {action}. Use 'get_problem' or 'search'.")
