"""
URL validation and sanitising for the browser tool.

Common protocol and TLD typos are repaired, a missing scheme becomes https,
and anything that is not a plain http(s) URL with a dotted host is rejected
with a list of suggestions.
"""
import re
from dataclasses import dataclass, field
from typing import List, Optional
from urllib.parse import quote_plus, urlparse

# Checked in order; the first matching prefix wins.
COMMON_TYPOS = {
    "htp://": "http://",
    "htps://": "https://",
    "http//": "http://",
    "https//": "https://",
    "wwww.": "www.",
    ".ocm": ".com",
    ".cmo": ".com",
    ".ogr": ".org",
    ".nte": ".net",
}

SUSPICIOUS_PATTERNS = [
    re.compile(r"localhost.*localhost"),
    re.compile(r"\s"),
    re.compile(r"[<>{}|\\^`\[\]]"),
    re.compile(r"^javascript:", re.I),
    re.compile(r"^data:", re.I),
    re.compile(r"^file:", re.I),
    re.compile(r"\.{2,}"),
    re.compile(r"-{3,}"),
]

_IPV4 = re.compile(r"^\d+\.\d+\.\d+\.\d+$")
_SCHEME = re.compile(r"^[a-z][a-z0-9+.-]*://", re.I)


@dataclass
class UrlValidation:
    is_valid: bool
    sanitized_url: Optional[str] = None
    error: Optional[str] = None
    suggestions: List[str] = field(default_factory=list)
    domain: Optional[str] = None


def auto_fix_url(url: str) -> str:
    fixed = url.strip()
    lowered = fixed.lower()
    for typo, fix in COMMON_TYPOS.items():
        if lowered.startswith(typo):
            fixed = fix + fixed[len(typo):]
            break
        if typo in lowered:
            fixed = re.sub(re.escape(typo), fix, fixed, flags=re.I)
            lowered = fixed.lower()

    if not _SCHEME.match(fixed) and "." in fixed and " " not in fixed:
        fixed = "https://" + fixed

    # Collapse repeated slashes after the scheme
    match = re.match(r"(https?://)(.*)", fixed, re.I)
    if match:
        fixed = match.group(1) + re.sub(r"/+", "/", match.group(2))
    return fixed


def generate_url_suggestions(query: str) -> List[str]:
    cleaned = query.strip().lower()
    suggestions: List[str] = []
    if "." in cleaned and " " not in cleaned:
        suggestions += [f"https://{cleaned}", f"https://www.{cleaned}"]
    else:
        suggestions += [
            f"https://www.google.com/search?q={quote_plus(cleaned)}",
            f"https://duckduckgo.com/?q={quote_plus(cleaned)}",
        ]
    return list(dict.fromkeys(suggestions))


def validate_url(url: Optional[str]) -> UrlValidation:
    if not url or not isinstance(url, str) or not url.strip():
        return UrlValidation(False, error="URL is required and cannot be empty")

    trimmed = url.strip()
    for pattern in SUSPICIOUS_PATTERNS:
        if pattern.search(trimmed):
            return UrlValidation(
                False,
                error=f"URL contains invalid pattern: {pattern.pattern}",
                suggestions=[auto_fix_url(trimmed)],
            )

    sanitized = auto_fix_url(trimmed)
    parsed = urlparse(sanitized)
    if parsed.scheme not in ("http", "https"):
        return UrlValidation(
            False,
            error=f"Invalid protocol: {parsed.scheme or 'none'}. Only http and https are allowed.",
            suggestions=generate_url_suggestions(trimmed),
        )

    host = parsed.hostname or ""
    if "." not in host and host != "localhost" and not _IPV4.match(host):
        return UrlValidation(
            False,
            error=f"Invalid domain: {host or trimmed}",
            suggestions=[f"https://{host}.com", f"https://www.{host}.com"] if host else [],
        )

    return UrlValidation(True, sanitized_url=sanitized, domain=host)
