from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, Union

from .frames import AppendEvent, DoneEvent, ErrorEvent, StreamEvent

QUICK = "quick"
ASSISTED = "assisted"
MODES = (QUICK, ASSISTED)

GREETING_ID = "welcome"
FALLBACK_ACTION_ID = "switch-to-quick"


@dataclass(frozen=True)
class QuickAction:
    id: str
    label: str


FALLBACK_ACTIONS: Tuple[QuickAction, ...] = (
    QuickAction(id=FALLBACK_ACTION_ID, label="Switch to Quick mode"),
)


@dataclass(frozen=True)
class Message:
    role: str  # 'user' | 'assistant'
    content: str = ""
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    streaming: bool = False
    error: bool = False
    quick_actions: Optional[Tuple[QuickAction, ...]] = None
    timestamp: float = field(default_factory=time.time)
    assisted: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "role": self.role,
            "content": self.content,
            "streaming": self.streaming,
            "error": self.error,
            "quickActions": [{"id": a.id, "label": a.label} for a in (self.quick_actions or ())],
            "timestamp": self.timestamp,
            "assisted": self.assisted,
        }


@dataclass(frozen=True)
class Conversation:
    mode: str
    messages: Tuple[Message, ...] = ()

    def get(self, message_id: str) -> Optional[Message]:
        for m in self.messages:
            if m.id == message_id:
                return m
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {"mode": self.mode, "messages": [m.to_dict() for m in self.messages]}


def apply_event(message: Message, event: StreamEvent) -> Message:
    """Return the message as it looks after one decoded stream event."""
    if isinstance(event, AppendEvent):
        return replace(message, content=message.content + event.text)
    if isinstance(event, DoneEvent):
        return replace(message, streaming=False)
    if isinstance(event, ErrorEvent):
        return mark_failed(message)
    return message


def mark_failed(message: Message) -> Message:
    return replace(message, streaming=False, error=True, content="", quick_actions=FALLBACK_ACTIONS)


Patch = Union[Mapping[str, Any], Callable[[Message], Message]]
Listener = Callable[[str, Conversation], None]


class TranscriptStore:
    """Holds one independent conversation per mode."""

    def __init__(self) -> None:
        self._conversations: Dict[str, Conversation] = {m: Conversation(mode=m) for m in MODES}
        self._listeners: List[Listener] = []

    def get_conversation(self, mode: str) -> Conversation:
        return self._conversations[_check_mode(mode)]

    def append_message(self, mode: str, message: Message) -> Message:
        conv = self.get_conversation(mode)
        if message.streaming and any(m.streaming for m in conv.messages):
            raise ValueError(f"conversation '{mode}' already has a streaming message")
        self._set(mode, replace(conv, messages=conv.messages + (message,)))
        return message

    def update_message(self, mode: str, message_id: str, patch: Patch) -> Optional[Message]:
        """Replace a message by id. Returns None when the id is no longer present."""
        conv = self.get_conversation(mode)
        updated: Optional[Message] = None
        out: List[Message] = []
        for m in conv.messages:
            if m.id == message_id:
                updated = patch(m) if callable(patch) else replace(m, **dict(patch))
                out.append(updated)
            else:
                out.append(m)
        if updated is None:
            return None
        self._set(mode, replace(conv, messages=tuple(out)))
        return updated

    def remove_message(self, mode: str, message_id: str) -> bool:
        conv = self.get_conversation(mode)
        kept = tuple(m for m in conv.messages if m.id != message_id)
        if len(kept) == len(conv.messages):
            return False
        self._set(mode, replace(conv, messages=kept))
        return True

    def reset(self, mode: str) -> None:
        self._set(_check_mode(mode), Conversation(mode=mode))

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _set(self, mode: str, conv: Conversation) -> None:
        self._conversations[mode] = conv
        for listener in list(self._listeners):
            listener(mode, conv)


def _check_mode(mode: str) -> str:
    if mode not in MODES:
        raise ValueError(f"unknown mode: {mode!r}")
    return mode
