import logging
from typing import Any, Dict, Optional

import httpx

from ...core.errors import AdapterFailure
from ..base import BaseAdapter, OnLog

logger = logging.getLogger(__name__)

SLACK_API = "https://slack.com/api"


class SlackAdapter(BaseAdapter):
    name = "slack"

    def __init__(self, http: httpx.AsyncClient, token: Optional[str] = None):
        self.http = http
        self.token = token

    async def execute(self, payload: Dict[str, Any], on_log: Optional[OnLog] = None) -> str:
        action = payload.get("action")

        if action == "send_message":
            target = payload.get("channel") or payload.get("user")
            if not target:
                raise AdapterFailure("Either channel or user is required")
            message = str(self.require(payload, "message", "Message content is required"))

            if not self.token:
                return f'[MOCK] Message sent to {target}:\n"{message}"'

            await self._call("POST", "/chat.postMessage", json={"channel": target, "text": message})
            preview = message[:100] + ("..." if len(message) > 100 else "")
            return f'Message sent to {target}: "{preview}"'

        if action == "list_channels":
            if not self.token:
                return "[MOCK] Listed Slack channels (no token configured)"
            result = await self._call("GET", "/conversations.list")
            channels = result.get("channels") or []
            names = ", ".join(f"#{c.get('name')}" for c in channels[:20])
            return f"Found {len(channels)} channels" + (f": {names}" if names else "")

        raise AdapterFailure(f"Unknown Slack action: {action}")

    async def _call(self, method: str, path: str, json: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        try:
            response = await self.http.request(
                method, SLACK_API + path, headers={"Authorization": f"Bearer {self.token}"}, json=json
            )
            result = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise AdapterFailure(f"Slack API error: {e}") from e
        if not result.get("ok"):
            raise AdapterFailure(f"Slack API error: {result.get('error')}")
        return result
