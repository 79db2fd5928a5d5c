"""User-facing notifications (flash messages rendered as toasts)."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, MutableMapping, Protocol

SUCCESS = "success"
ERROR = "error"
INFO = "info"
WARNING = "warning"

_FLASH_KEY = "flash_messages"


@dataclass(frozen=True)
class Notification:
    message: str
    category: str = INFO


class Notifier(Protocol):
    def notify(self, message: str, *, category: str = INFO) -> None: ...


class MemoryNotifier:
    """Collects notifications in memory; used by the CLI and tests."""

    def __init__(self) -> None:
        self.messages: List[Notification] = []

    def notify(self, message: str, *, category: str = INFO) -> None:
        self.messages.append(Notification(message=message, category=category))

    def by_category(self, category: str) -> List[Notification]:
        return [item for item in self.messages if item.category == category]


class SessionNotifier:
    """Stores notifications in the Starlette session until the next page render."""

    def __init__(self, session: MutableMapping[str, Any]) -> None:
        self._session = session

    def notify(self, message: str, *, category: str = INFO) -> None:
        messages = self._session.get(_FLASH_KEY)
        if not isinstance(messages, list):
            messages = []
        messages.append({"message": message, "category": category})
        self._session[_FLASH_KEY] = messages


def consume_flash(session: MutableMapping[str, Any]) -> List[Dict[str, str]]:
    messages = session.pop(_FLASH_KEY, [])
    if isinstance(messages, list):
        return messages
    return []


__all__ = [
    "ERROR",
    "INFO",
    "MemoryNotifier",
    "Notification",
    "Notifier",
    "SUCCESS",
    "SessionNotifier",
    "WARNING",
    "consume_flash",
]
