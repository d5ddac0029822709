import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List


@dataclass(frozen=True)
class Notification:
    message: str
    kind: str = "error"  # 'error' | 'success' | 'info'
    duration: float = 4.0
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    created_at: float = field(default_factory=time.time)

    def expired(self, now: float) -> bool:
        return now - self.created_at >= self.duration

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "kind": self.kind, "message": self.message, "createdAt": self.created_at}


class Notifier:
    """Transient toast-style notifications; expired entries drop out on every notify and read."""

    def __init__(self) -> None:
        self._items: List[Notification] = []
        self._listeners: List[Callable[[Notification], None]] = []

    def notify(self, message: str, kind: str = "error") -> Notification:
        n = Notification(message=message, kind=kind)
        self._prune(n.created_at)
        self._items.append(n)
        for listener in list(self._listeners):
            listener(n)
        return n

    def active(self) -> List[Notification]:
        self._prune(time.time())
        return list(self._items)

    def _prune(self, now: float) -> None:
        self._items = [n for n in self._items if not n.expired(now)]

    def dismiss(self, notification_id: str) -> None:
        self._items = [n for n in self._items if n.id != notification_id]

    def subscribe(self, listener: Callable[[Notification], None]) -> Callable[[], None]:
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener) if listener in self._listeners else None
