import json
import logging
from typing import Any, Dict, Optional

import httpx

from ...core.errors import AdapterFailure
from ...utils.url_validator import auto_fix_url, generate_url_suggestions, validate_url
from ..allowlist import DomainAllowlist
from ..base import BaseAdapter, OnLog

logger = logging.getLogger(__name__)

JINA_READER = "https://r.jina.ai/"
USER_AGENT = "toolpilot-browser/1.0"
READER_LIMIT = 15000
DIRECT_LIMIT = 5000


def _truncate(text: str, limit: int) -> str:
    return text[:limit] + "\n...(truncated)" if len(text) > limit else text


class BrowserAdapter(BaseAdapter):
    """
    Fetches a URL for the planner's tasks.

    Architecture Note:
    The URL is validated (and typo-fixed) first, then checked against the domain
    allowlist. Content is requested through the Jina reader for clean markdown; if the
    reader errors or answers non-2xx, the page is fetched directly.
    """

    name = "browser"

    def __init__(self, http: httpx.AsyncClient, allowlist: DomainAllowlist, allow_unsafe: bool = False):
        self.http = http
        self.allowlist = allowlist
        self.allow_unsafe = allow_unsafe

    def sanitize(self, url: str) -> str:
        validation = validate_url(url)
        if validation.is_valid:
            return validation.sanitized_url

        fixed = auto_fix_url(url or "")
        revalidation = validate_url(fixed)
        if revalidation.is_valid:
            logger.info(f"[Browser] Auto-fixed URL: {url} -> {fixed}")
            return revalidation.sanitized_url

        suggestions = validation.suggestions or generate_url_suggestions(url or "")
        hint = ("\nDid you mean:\n" + "\n".join(f"  • {s}" for s in suggestions)) if suggestions else ""
        raise AdapterFailure(f"Invalid URL: {validation.error}{hint}")

    async def execute(self, payload: Dict[str, Any], on_log: Optional[OnLog] = None) -> str:
        url = self.sanitize(payload.get("url") or "")
        method = str(payload.get("method") or "GET").upper()
        headers = payload.get("headers") or {}
        body = payload.get("body")

        if not self.allow_unsafe and not self.allowlist.is_allowed(url):
            raise AdapterFailure(
                f"URL not allowed. Allowed domains: {', '.join(self.allowlist.list())}, localhost. "
                "Set BROWSER_ALLOW_UNSAFE_URLS=true in .env to bypass."
            )

        self.log(on_log, f"[Browser] Fetching {url}")
        if method == "GET":
            try:
                response = await self.http.get(JINA_READER + url, headers={"User-Agent": USER_AGENT, **headers})
                if response.is_success:
                    return f"Fetched via Jina Reader:\n{_truncate(response.text, READER_LIMIT)}"
                logger.warning(f"Jina Reader failed for {url} ({response.status_code}), falling back to direct fetch.")
            except httpx.HTTPError as e:
                logger.warning(f"Jina Reader error: {e}, falling back to direct fetch.")

        return await self._direct_fetch(url, method, headers, body)

    async def _direct_fetch(self, url: str, method: str, headers: Dict[str, str], body: Any) -> str:
        try:
            response = await self.http.request(
                method,
                url,
                headers={"User-Agent": USER_AGENT, **headers},
                json=body if body is not None and method in ("POST", "PUT") else None,
            )
        except httpx.HTTPError as e:
            raise AdapterFailure(f"Fetch failed: {e}") from e

        if response.status_code >= 400:
            raise AdapterFailure(f"Fetch failed: {method} {url} returned {response.status_code}")

        if "application/json" in response.headers.get("content-type", ""):
            data = json.dumps(response.json(), indent=2)
        else:
            data = response.text
        return (
            f"{method} {url}\nStatus: {response.status_code} {response.reason_phrase}\n\n"
            f"Response:\n{_truncate(data, DIRECT_LIMIT)}"
        )
