import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional

from ..core.errors import AdapterFailure

logger = logging.getLogger(__name__)

OnLog = Callable[[str], None]


class BaseAdapter(ABC):
    """
    The executable behind one tool name.

    Adapters are plain request/response objects: `execute` receives the task payload
    and returns the textual result, raising AdapterFailure when the request cannot be
    completed. Progress lines go to the optional `on_log` sink, in order.
    """

    name: str = ""

    @abstractmethod
    async def execute(self, payload: Dict[str, Any], on_log: Optional[OnLog] = None) -> str:
        pass

    def log(self, on_log: Optional[OnLog], message: str) -> None:
        logger.info(message)
        if on_log:
            on_log(message)

    @staticmethod
    def require(payload: Dict[str, Any], key: str, message: str) -> Any:
        value = payload.get(key)
        if value is None or (isinstance(value, str) and not value.strip()):
            raise AdapterFailure(message)
        return value
