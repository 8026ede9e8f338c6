import asyncio
import logging
import shlex
from typing import Any, Dict, Optional
from urllib.parse import quote

import httpx

from ...core.errors import AdapterFailure
from ..base import BaseAdapter, OnLog
from ..registry import CustomToolConfig

logger = logging.getLogger(__name__)

OUTPUT_LIMIT = 2000
COMMAND_TIMEOUT_SECONDS = 30
RESERVED_KEYS = {"previous_context"}


class CustomToolAdapter(BaseAdapter):
    """
    Runs a user-defined tool from custom_tools.json.

    `{key}` placeholders in the command or URL are filled from the payload. Command
    values are shell-quoted and URL values are percent-encoded before substitution.
    """

    def __init__(self, config: CustomToolConfig, http: httpx.AsyncClient):
        self.config = config
        self.name = config.name
        self.http = http

    @staticmethod
    def fill(template: str, params: Dict[str, Any], encode) -> str:
        for key, value in params.items():
            template = template.replace(f"{{{key}}}", encode(str(value)))
        return template

    async def execute(self, payload: Dict[str, Any], on_log: Optional[OnLog] = None) -> str:
        params = {k: v for k, v in payload.items() if k not in RESERVED_KEYS}
        if self.config.type == "command":
            return await self._run_command(params, on_log)
        return await self._call_http(params, on_log)

    async def _run_command(self, params: Dict[str, Any], on_log: Optional[OnLog]) -> str:
        if not self.config.command:
            raise AdapterFailure(f"Command not defined for tool {self.name}")
        command = self.fill(self.config.command, params, shlex.quote)
        self.log(on_log, f"[Custom:{self.name}] $ {command}")

        proc = await asyncio.create_subprocess_shell(
            command, stdout=asyncio.subprocess.PIPE, stderr=asyncio.subprocess.PIPE
        )
        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=COMMAND_TIMEOUT_SECONDS)
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            raise AdapterFailure(f"Command timed out after {COMMAND_TIMEOUT_SECONDS}s")

        if proc.returncode != 0:
            detail = stderr.decode("utf-8", errors="replace").strip()
            raise AdapterFailure(f"Command failed ({proc.returncode}): {detail}")
        return (stdout or stderr).decode("utf-8", errors="replace")[:OUTPUT_LIMIT]

    async def _call_http(self, params: Dict[str, Any], on_log: Optional[OnLog]) -> str:
        if not self.config.url:
            raise AdapterFailure(f"URL not defined for tool {self.name}")
        url = self.fill(self.config.url, params, lambda v: quote(v, safe=""))
        self.log(on_log, f"[Custom:{self.name}] {self.config.method} {url}")

        try:
            response = await self.http.request(
                self.config.method,
                url,
                headers=self.config.headers,
                json=params if self.config.method == "POST" else None,
            )
        except httpx.HTTPError as e:
            raise AdapterFailure(f"HTTP request failed: {e}") from e
        return f"Status: {response.status_code}\nResponse: {response.text[:OUTPUT_LIMIT]}"
