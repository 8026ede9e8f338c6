import ast
import logging
import math
import operator
import os
import platform
import uuid
from datetime import datetime
from typing import Any, Dict, Optional
from urllib.parse import quote
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import httpx

from ...core.errors import AdapterFailure
from ..base import BaseAdapter, OnLog

logger = logging.getLogger(__name__)

FALLBACK_JOKE = "Why did the developer go broke? Because he used up all his cache! (Fallback joke)"

_BINARY_OPS = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
    ast.Pow: operator.pow,
}
_UNARY_OPS = {ast.UAdd: operator.pos, ast.USub: operator.neg}
MAX_EXPONENT = 100
MAX_RESULT_BITS = 10_000


def _bits(value) -> float:
    magnitude = abs(value)
    return math.log2(magnitude) if magnitude > 1 else 0.0


def safe_eval(expression: str) -> float:
    """Evaluates an arithmetic expression without touching eval()."""

    def visit(node: ast.AST):
        if isinstance(node, ast.Expression):
            return visit(node.body)
        if isinstance(node, ast.Constant) and isinstance(node.value, (int, float)) and not isinstance(node.value, bool):
            return node.value
        if isinstance(node, ast.BinOp) and type(node.op) in _BINARY_OPS:
            left, right = visit(node.left), visit(node.right)
            if isinstance(node.op, ast.Pow):
                if abs(right) > MAX_EXPONENT:
                    raise ValueError("exponent too large")
                if _bits(left) * max(right, 0) > MAX_RESULT_BITS:
                    raise ValueError("result too large")
            elif isinstance(node.op, ast.Mult) and _bits(left) + _bits(right) > MAX_RESULT_BITS:
                raise ValueError("result too large")
            return _BINARY_OPS[type(node.op)](left, right)
        if isinstance(node, ast.UnaryOp) and type(node.op) in _UNARY_OPS:
            return _UNARY_OPS[type(node.op)](visit(node.operand))
        raise ValueError(f"unsupported expression element: {type(node).__name__}")

    return visit(ast.parse(expression, mode="eval"))


class UtilityAdapter(BaseAdapter):
    name = "utility"

    def __init__(self, http: httpx.AsyncClient):
        self.http = http

    async def execute(self, payload: Dict[str, Any], on_log: Optional[OnLog] = None) -> str:
        action = payload.get("action")
        handlers = {
            "weather": self.weather,
            "time": self.time,
            "currency": self.convert_currency,
            "convert_currency": self.convert_currency,
            "math": self.math,
            "crypto": self.crypto,
            "translate": self.translate,
            "ip": self.ip_info,
            "system": self.system,
            "uuid": self.new_uuid,
            "joke": self.joke,
        }
        handler = handlers.get(action)
        if handler is None:
            raise AdapterFailure(f"Unknown utility action: {action}")
        self.log(on_log, f"[Utility] {action}")
        return await handler(payload)

    async def _get_json(self, url: str, what: str) -> Any:
        try:
            response = await self.http.get(url)
            response.raise_for_status()
            return response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise AdapterFailure(f"Failed to fetch {what}: {e}") from e

    async def weather(self, payload: Dict[str, Any]) -> str:
        location = self.require(payload, "location", "Location is required")
        try:
            response = await self.http.get(f"https://wttr.in/{quote(str(location))}", params={"format": "3"})
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise AdapterFailure(f"Failed to fetch weather for {location}: {e}") from e
        return response.text.strip()

    async def time(self, payload: Dict[str, Any]) -> str:
        timezone = payload.get("timezone") or "UTC"
        try:
            now = datetime.now(ZoneInfo(timezone))
        except (ZoneInfoNotFoundError, ValueError):
            raise AdapterFailure(f"Invalid timezone: {timezone}. Try 'UTC', 'America/New_York', 'Asia/Tokyo'")
        return now.strftime(f"%A, %B %d, %Y at %H:%M:%S ({timezone})")

    async def convert_currency(self, payload: Dict[str, Any]) -> str:
        source = str(self.require(payload, "from", "From and To currencies are required")).upper()
        target = str(self.require(payload, "to", "From and To currencies are required")).upper()
        try:
            amount = float(payload.get("amount") or 1)
        except (TypeError, ValueError):
            raise AdapterFailure("Amount must be a number")
        data = await self._get_json(f"https://api.exchangerate-api.com/v4/latest/{source}", "exchange rates")
        rate = (data.get("rates") or {}).get(target)
        if not rate:
            raise AdapterFailure(f"Currency {target} not found")
        return f"{amount:g} {source} = {amount * rate:.2f} {target}"

    async def math(self, payload: Dict[str, Any]) -> str:
        expression = str(self.require(payload, "expression", "Expression is required"))
        try:
            result = safe_eval(expression)
        except (ValueError, TypeError, SyntaxError, ZeroDivisionError, OverflowError) as e:
            raise AdapterFailure(f"Invalid math expression: {e}") from e
        return f"{expression} = {result}"

    async def crypto(self, payload: Dict[str, Any]) -> str:
        symbol = str(self.require(payload, "symbol", "Symbol is required")).lower()
        data = await self._get_json(
            f"https://api.coingecko.com/api/v3/simple/price?ids={quote(symbol)}&vs_currencies=usd", "crypto price"
        )
        if symbol not in data:
            raise AdapterFailure(f"Crypto {symbol} not found (try full name like 'bitcoin')")
        return f"{symbol}: ${data[symbol]['usd']}"

    async def translate(self, payload: Dict[str, Any]) -> str:
        text = self.require(payload, "text", "Text is required")
        target = payload.get("target_lang") or payload.get("targetLang") or "es"
        return f"[MOCK TRANSLATE to {target}]: {text}"

    async def ip_info(self, payload: Dict[str, Any]) -> str:
        ip = payload.get("ip")
        url = f"https://ipapi.co/{ip}/json/" if ip else "https://ipapi.co/json/"
        data = await self._get_json(url, "IP info")
        return (
            f"IP: {data.get('ip')}\nLocation: {data.get('city')}, {data.get('region')}, "
            f"{data.get('country_name')}\nISP: {data.get('org')}"
        )

    async def system(self, payload: Dict[str, Any]) -> str:
        return (
            f"OS: {platform.system()} {platform.release()}\n"
            f"Platform: {platform.platform()}\n"
            f"Arch: {platform.machine()}\n"
            f"CPUs: {os.cpu_count()}\n"
            f"Python: {platform.python_version()}"
        )

    async def new_uuid(self, payload: Dict[str, Any]) -> str:
        return f"Generated UUID: {uuid.uuid4()}"

    async def joke(self, payload: Dict[str, Any]) -> str:
        try:
            data = await self._get_json("https://official-joke-api.appspot.com/random_joke", "joke")
        except AdapterFailure as e:
            logger.warning(f"{e}; using fallback joke")
            return FALLBACK_JOKE
        return f"{data.get('setup')}\n\n... {data.get('punchline')} 😂"
