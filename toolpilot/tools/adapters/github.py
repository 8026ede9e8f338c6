import logging
from typing import Any, Dict, Optional

import httpx

from ...core.errors import AdapterFailure
from ..base import BaseAdapter, OnLog

logger = logging.getLogger(__name__)

GITHUB_API = "https://api.github.com"


class GithubAdapter(BaseAdapter):
    """Talks to the GitHub REST API when a token is configured; otherwise answers with [MOCK] text."""

    name = "github"

    def __init__(self, http: httpx.AsyncClient, token: Optional[str] = None):
        self.http = http
        self.token = token

    @property
    def headers(self) -> Dict[str, str]:
        return {"Authorization": f"token {self.token}", "Accept": "application/vnd.github.v3+json"}

    async def execute(self, payload: Dict[str, Any], on_log: Optional[OnLog] = None) -> str:
        action = payload.get("action")
        repo = self.require(payload, "repo", "Repository (owner/repo) is required")
        title = payload.get("title")
        body = payload.get("body") or ""
        labels = payload.get("labels") or []

        if action == "create_issue":
            if not title:
                raise AdapterFailure("Title is required for creating an issue")
            if not self.token:
                return (
                    f"[MOCK] Issue created in {repo}:\nTitle: {title}\n"
                    f"Body: {body or 'No description'}\nLabels: {', '.join(labels) or 'none'}"
                )
            data = await self._call("POST", f"/repos/{repo}/issues", json={"title": title, "body": body, "labels": labels})
            return f"Issue created successfully: {data.get('html_url')}"

        if action == "list_issues":
            if not self.token:
                return f"[MOCK] Listed issues for {repo} (no token configured)"
            issues = await self._call("GET", f"/repos/{repo}/issues")
            lines = [f"#{i.get('number')} {i.get('title')}" for i in issues[:20]]
            return f"Found {len(issues)} issues in {repo}" + ("\n" + "\n".join(lines) if lines else "")

        if action == "get_repo":
            if not self.token:
                return f"[MOCK] Retrieved repo info for {repo} (no token configured)"
            data = await self._call("GET", f"/repos/{repo}")
            return (
                f"Repository: {data.get('full_name')}\nDescription: {data.get('description')}\n"
                f"Stars: {data.get('stargazers_count')}"
            )

        if action == "create_pr":
            base, head = payload.get("base"), payload.get("head")
            if not title or not base or not head:
                raise AdapterFailure("Title, base, and head are required for creating a PR")
            if not self.token:
                return f"[MOCK] PR created in {repo}:\nTitle: {title}\nBase: {base} ← Head: {head}"
            data = await self._call(
                "POST", f"/repos/{repo}/pulls", json={"title": title, "body": body, "base": base, "head": head}
            )
            return f"Pull request created successfully: {data.get('html_url')}"

        raise AdapterFailure(f"Unknown GitHub action: {action}")

    async def _call(self, method: str, path: str, json: Optional[Dict[str, Any]] = None) -> Any:
        try:
            response = await self.http.request(method, GITHUB_API + path, headers=self.headers, json=json)
        except httpx.HTTPError as e:
            raise AdapterFailure(f"GitHub API error: {e}") from e
        if response.status_code >= 400:
            try:
                message = response.json().get("message")
            except ValueError:
                message = None
            raise AdapterFailure(f"GitHub API error: {message or response.reason_phrase}")
        return response.json()
