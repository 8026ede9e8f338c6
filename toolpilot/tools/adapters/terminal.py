import asyncio
import logging
import shlex
from typing import Any, Dict, Optional

from ...core.errors import AdapterFailure
from ..base import BaseAdapter, OnLog

logger = logging.getLogger(__name__)

ALLOWED_COMMANDS = [
    "echo", "date", "pwd", "whoami", "ls", "dir", "cat", "type",
    "head", "tail", "wc", "grep", "find", "git",
]
FORBIDDEN_CHARS = (";", "|", "&", "`", "$", ">", "<", "\n")
TIMEOUT_SECONDS = 30
OUTPUT_LIMIT = 2000


class TerminalAdapter(BaseAdapter):
    name = "terminal"

    def __init__(self, enabled: bool, cwd: Optional[str] = None):
        self.enabled = enabled
        self.cwd = cwd

    async def execute(self, payload: Dict[str, Any], on_log: Optional[OnLog] = None) -> str:
        if not self.enabled:
            raise AdapterFailure("Terminal adapter is disabled. Set ALLOW_TERMINAL=true in .env to enable.")

        command = str(self.require(payload, "command", "Command is required")).strip()
        args = payload.get("args") or []
        if not isinstance(args, list):
            raise AdapterFailure("args must be a list of strings")

        if command.lower() not in ALLOWED_COMMANDS:
            raise AdapterFailure(f"Command not allowed: {command}. Allowed commands: {', '.join(ALLOWED_COMMANDS)}")
        for arg in args:
            if any(ch in str(arg) for ch in FORBIDDEN_CHARS):
                raise AdapterFailure("Invalid characters in arguments")

        argv = [command] + [str(a) for a in args]
        display = shlex.join(argv)
        self.log(on_log, f"[Terminal] $ {display}")

        proc = await asyncio.create_subprocess_exec(
            *argv,
            cwd=self.cwd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=TIMEOUT_SECONDS)
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            raise AdapterFailure(f"Command timed out after {TIMEOUT_SECONDS}s: {display}")

        if proc.returncode != 0:
            detail = (stderr or stdout).decode("utf-8", errors="replace").strip()[:OUTPUT_LIMIT]
            raise AdapterFailure(f"Command failed with exit code {proc.returncode}: {display}\n{detail}".rstrip())
        output = stdout.decode("utf-8", errors="replace")
        truncated = output[:OUTPUT_LIMIT] + ("\n...(truncated)" if len(output) > OUTPUT_LIMIT else "")
        return f"Command executed: {display}\n\nOutput:\n{truncated}"
