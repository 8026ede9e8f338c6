import logging
import shutil
from pathlib import Path
from typing import Any, Dict, Optional

from ...core.errors import AdapterFailure
from ..base import BaseAdapter, OnLog

logger = logging.getLogger(__name__)

READ_PREVIEW_CHARS = 500


class FilesystemAdapter(BaseAdapter):
    """Local file operations confined to a sandbox directory."""

    name = "filesystem"

    def __init__(self, sandbox_dir: str):
        self.sandbox = Path(sandbox_dir).resolve()

    def resolve_path(self, relative: str) -> Path:
        self.sandbox.mkdir(parents=True, exist_ok=True)
        candidate = (self.sandbox / str(relative).lstrip("/\\")).resolve()
        if candidate != self.sandbox and not candidate.is_relative_to(self.sandbox):
            raise AdapterFailure("Access denied: Path outside sandbox")
        return candidate

    async def execute(self, payload: Dict[str, Any], on_log: Optional[OnLog] = None) -> str:
        action = payload.get("action")
        rel = payload.get("path") or ""

        if action == "read":
            target = self.resolve_path(rel)
            if not target.is_file():
                raise AdapterFailure(f"File not found: {rel}")
            data = target.read_text(encoding="utf-8")
            suffix = "..." if len(data) > READ_PREVIEW_CHARS else ""
            return f"File read successfully. Content: {data[:READ_PREVIEW_CHARS]}{suffix}"

        if action == "write":
            content = payload.get("content")
            if content is None:
                raise AdapterFailure("Content is required for write action")
            target = self.resolve_path(self.require(payload, "path", "Path is required for write action"))
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(str(content), encoding="utf-8")
            self.log(on_log, f"[Filesystem] Wrote {rel}")
            return f"File written successfully: {rel} ({len(str(content))} characters)"

        if action == "mkdir":
            target = self.resolve_path(self.require(payload, "path", "Path is required for mkdir action"))
            if target.exists():
                return f"Folder already exists: {rel}"
            target.mkdir(parents=True)
            return f"📁 Folder created successfully: {rel}"

        if action == "list":
            target = self.resolve_path(rel or ".")
            if not target.is_dir():
                raise AdapterFailure(f"Directory not found: {rel}")
            listing = "\n".join(
                f"{'📁' if entry.is_dir() else '📄'} {entry.name}" for entry in sorted(target.iterdir())
            )
            return f"Directory listing for {rel or '/'}:\n{listing}"

        if action == "delete":
            target = self.resolve_path(self.require(payload, "path", "Path is required for delete action"))
            if target == self.sandbox:
                raise AdapterFailure("Access denied: cannot delete the sandbox root")
            if not target.exists():
                raise AdapterFailure(f"File not found: {rel}")
            if target.is_dir():
                shutil.rmtree(target)
            else:
                target.unlink()
            return f"File deleted successfully: {rel}"

        raise AdapterFailure(f"Unknown filesystem action: {action}")
