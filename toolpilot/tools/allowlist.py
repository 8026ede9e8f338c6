import json
import logging
import threading
from pathlib import Path
from typing import Iterable, List, Optional
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

DEFAULT_ALLOWED_DOMAINS = [
    "api.github.com",
    "jsonplaceholder.typicode.com",
    "httpbin.org",
    "api.openweathermap.org",
    "api.exchangerate-api.com",
    "pokeapi.co",
    "swapi.dev",
    "finance.yahoo.com",
    "query1.finance.yahoo.com",
    "query2.finance.yahoo.com",
    "api.coingecko.com",
    "newsapi.org",
    "api.nytimes.com",
    "hacker-news.firebaseio.com",
    "api.ipify.org",
    "worldtimeapi.org",
    "en.wikipedia.org",
    "api.wikipedia.org",
    "raw.githubusercontent.com",
    "arxiv.org",
    "export.arxiv.org",
    "api.npms.io",
    "registry.npmjs.org",
    "pypi.org",
    "libretranslate.com",
    "hn.algolia.com",
]

LOCAL_HOSTS = {"localhost", "127.0.0.1"}


class DomainAllowlist:
    """
    Domains the browser tool may fetch, persisted as {"domains": [...]} in a JSON file.
    Every call re-reads the file so edits made through the API apply immediately.
    """

    def __init__(self, path: str, defaults: Optional[Iterable[str]] = None):
        self.path = Path(path)
        self.defaults = list(defaults) if defaults is not None else list(DEFAULT_ALLOWED_DOMAINS)
        self._lock = threading.Lock()

    def list(self) -> List[str]:
        with self._lock:
            return self._read()

    def add(self, domain: str) -> List[str]:
        with self._lock:
            domains = self._read()
            if domain not in domains:
                domains.append(domain)
                self._write(domains)
                logger.info(f"Allowlisted domain {domain}")
            return domains

    def remove(self, domain: str) -> List[str]:
        with self._lock:
            domains = [d for d in self._read() if d != domain]
            self._write(domains)
            logger.info(f"Removed domain {domain} from allowlist")
            return domains

    def is_allowed(self, url: str) -> bool:
        host = urlparse(url).hostname or ""
        if not host:
            return False
        if host in LOCAL_HOSTS:
            return True
        return any(host == d or host.endswith("." + d) for d in self.list())

    def _read(self) -> List[str]:
        if not self.path.exists():
            return list(self.defaults)
        try:
            domains = json.loads(self.path.read_text(encoding="utf-8")).get("domains")
        except (OSError, ValueError, AttributeError) as e:
            logger.warning(f"Failed to read {self.path}, using defaults: {e}")
            return list(self.defaults)
        if not isinstance(domains, list):
            return list(self.defaults)
        return [str(d) for d in domains]

    def _write(self, domains: List[str]) -> None:
        self.path.write_text(json.dumps({"domains": domains}, indent=2), encoding="utf-8")
