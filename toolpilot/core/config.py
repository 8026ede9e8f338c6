import os
import logging
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel

# Only load .env if environment variables are missing (Local Dev).
# In Docker, REDIS_URL is injected by docker-compose, so we skip .env to avoid override by volume mount.
if not os.getenv("REDIS_URL"):
    load_dotenv()

logger = logging.getLogger(__name__)


def _enabled_unless_false(name: str) -> bool:
    return os.getenv(name, "true").lower() != "false"


def _flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() == "true"


class Settings(BaseModel):
    # LLM
    use_groq: bool = False
    groq_api_key: Optional[str] = None
    primary_model: str = "openai/gpt-oss-120b"
    fallback_model: str = "llama-3.3-70b-versatile"

    # Storage / audit
    redis_url: str = "redis://localhost:6379"
    use_fake_redis: bool = False
    audit_enabled: bool = False
    audit_max_entries: int = 100

    # Tool switches
    enable_filesystem: bool = True
    enable_github: bool = True
    enable_slack: bool = True
    enable_calendar: bool = True
    enable_browser: bool = True
    enable_search: bool = True
    enable_leetcode: bool = True
    enable_utility: bool = True
    allow_terminal: bool = False
    browser_allow_unsafe_urls: bool = False

    # Files
    sandbox_dir: str = "sandbox"
    custom_tools_path: str = "custom_tools.json"
    mcp_servers_path: str = "mcp_servers.json"

    # Execution
    task_cooldown_seconds: float = 0.3
    chain_file_max_chars: int = 10000
    chain_message_max_lines: int = 10
    http_timeout_seconds: float = 30.0

    # Third-party tokens
    slack_bot_token: Optional[str] = None
    github_token: Optional[str] = None

    @classmethod
    def from_env(cls) -> "Settings":
        settings = cls(
            use_groq=_flag("USE_GROQ"),
            groq_api_key=os.getenv("GROQ_API_KEY") or None,
            primary_model=os.getenv("GROQ_PRIMARY_MODEL", cls.model_fields["primary_model"].default),
            fallback_model=os.getenv("GROQ_FALLBACK_MODEL", cls.model_fields["fallback_model"].default),
            redis_url=os.getenv("REDIS_URL", "redis://localhost:6379"),
            use_fake_redis=_flag("USE_FAKE_REDIS"),
            audit_enabled=_flag("AUDIT_ENABLED"),
            audit_max_entries=int(os.getenv("AUDIT_MAX_ENTRIES", "100")),
            enable_filesystem=_enabled_unless_false("ENABLE_FILESYSTEM"),
            enable_github=_enabled_unless_false("ENABLE_GITHUB"),
            enable_slack=_enabled_unless_false("ENABLE_SLACK"),
            enable_calendar=_enabled_unless_false("ENABLE_CALENDAR"),
            enable_browser=_enabled_unless_false("ENABLE_BROWSER"),
            enable_search=_enabled_unless_false("ENABLE_SEARCH"),
            enable_leetcode=_enabled_unless_false("ENABLE_LEETCODE"),
            enable_utility=_enabled_unless_false("ENABLE_UTILITY"),
            allow_terminal=_flag("ALLOW_TERMINAL"),
            browser_allow_unsafe_urls=_flag("BROWSER_ALLOW_UNSAFE_URLS"),
            sandbox_dir=os.getenv("SANDBOX_DIR", "sandbox"),
            custom_tools_path=os.getenv("CUSTOM_TOOLS_PATH", "custom_tools.json"),
            mcp_servers_path=os.getenv("MCP_SERVERS_PATH", "mcp_servers.json"),
            task_cooldown_seconds=float(os.getenv("TASK_COOLDOWN_SECONDS", "0.3")),
            chain_file_max_chars=int(os.getenv("CHAIN_FILE_MAX_CHARS", "10000")),
            chain_message_max_lines=int(os.getenv("CHAIN_MESSAGE_MAX_LINES", "10")),
            http_timeout_seconds=float(os.getenv("HTTP_TIMEOUT_SECONDS", "30")),
            slack_bot_token=os.getenv("SLACK_BOT_TOKEN") or None,
            github_token=os.getenv("GITHUB_TOKEN") or None,
        )
        if settings.use_groq and not settings.groq_api_key:
            logger.warning("USE_GROQ is true, but GROQ_API_KEY is missing. Planner and summarizer will fall back.")
        return settings
