import itertools
import logging
import threading
from typing import Any, Dict, List, Optional

from pydantic import BaseModel

from ...core.errors import AdapterFailure
from ..base import BaseAdapter, OnLog

logger = logging.getLogger(__name__)


class CalendarEvent(BaseModel):
    id: str
    title: str
    date: str
    time: str = "09:00"
    duration: int = 60
    description: Optional[str] = None


class CalendarStore:
    """In-memory event store owned by the application and handed to the calendar adapter."""

    def __init__(self):
        self._events: Dict[str, CalendarEvent] = {}
        self._counter = itertools.count(1)
        self._lock = threading.Lock()

    def create(self, title: str, date: str, time: Optional[str] = None,
               duration: Optional[int] = None, description: Optional[str] = None) -> CalendarEvent:
        with self._lock:
            event = CalendarEvent(
                id=f"event-{next(self._counter)}",
                title=title,
                date=date,
                time=time or "09:00",
                duration=duration or 60,
                description=description,
            )
            self._events[event.id] = event
            return event

    def list(self) -> List[CalendarEvent]:
        with self._lock:
            return list(self._events.values())

    def delete(self, event_id: str) -> Optional[CalendarEvent]:
        with self._lock:
            return self._events.pop(event_id, None)


class CalendarAdapter(BaseAdapter):
    name = "calendar"

    def __init__(self, store: CalendarStore):
        self.store = store

    async def execute(self, payload: Dict[str, Any], on_log: Optional[OnLog] = None) -> str:
        action = payload.get("action")

        if action == "create_event":
            title, date = payload.get("title"), payload.get("date")
            if not title or not date:
                raise AdapterFailure("Title and date are required for creating an event")
            try:
                duration = int(payload["duration"]) if payload.get("duration") else None
            except (TypeError, ValueError):
                raise AdapterFailure("Duration must be a number of minutes")
            event = self.store.create(title, date, payload.get("time"), duration, payload.get("description"))
            text = (
                f"📅 Event created:\nID: {event.id}\nTitle: {event.title}\n"
                f"Date: {event.date} at {event.time}\nDuration: {event.duration} minutes"
            )
            if event.description:
                text += f"\nDescription: {event.description}"
            return text

        if action == "list_events":
            events = self.store.list()
            if not events:
                return "No events scheduled"
            lines = "\n".join(f"• {e.title} - {e.date} at {e.time} ({e.duration}min)" for e in events)
            return f"📅 Scheduled events:\n{lines}"

        if action == "delete_event":
            event_id = payload.get("event_id") or payload.get("eventId")
            if not event_id:
                raise AdapterFailure("Event ID is required for deletion")
            event = self.store.delete(event_id)
            if event is None:
                raise AdapterFailure(f"Event not found: {event_id}")
            return f"Event deleted: {event.title} ({event.date})"

        raise AdapterFailure(f"Unknown calendar action: {action}")
