from __future__ import annotations

import asyncio
import json
import time
import uuid
from typing import Dict, List, Optional, Sequence

from compass import metrics
from compass.errors import TransportError
from compass.log import get_logger
from compass.providers.base import ChatTransport

from .frames import AppendEvent, DoneEvent, ErrorEvent, FrameDecoder, StreamEvent
from .transcript import GREETING_ID, Message, TranscriptStore, apply_event, mark_failed

logger = get_logger("compass.chat.session")


def build_history(messages: Sequence[Message], new_text: str, limit: int) -> List[Dict[str, str]]:
    """Turns sent with a new session: settled prior turns, newest `limit`, then the new user message."""
    prior = [
        {"role": m.role, "content": m.content}
        for m in messages
        if not m.streaming and not m.error and m.id != GREETING_ID and m.content.strip()
    ]
    if limit > 0:
        prior = prior[-limit:]
    prior.append({"role": "user", "content": new_text})
    return prior


class SessionHandle:
    """One in-flight assistant response."""

    def __init__(self, mode: str, message_id: str):
        self.id = uuid.uuid4().hex
        self.mode = mode
        self.message_id = message_id
        self.cancelled = False
        self.outcome: Optional[str] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def done(self) -> bool:
        return self._task is None or self._task.done()

    async def wait(self) -> Optional[str]:
        if self._task is not None:
            await asyncio.gather(self._task, return_exceptions=True)
        return self.outcome


class StreamingSessionController:
    """Drives a transport stream through the frame decoder into one placeholder message.

    Callers must not start a second session on a conversation whose session
    is still running.
    """

    def __init__(self, transport: ChatTransport, store: TranscriptStore):
        self._transport = transport
        self._store = store

    def start_session(self, mode: str, history: List[Dict[str, str]], page_context: str = "") -> SessionHandle:
        placeholder = Message(role="assistant", streaming=True, assisted=True)
        self._store.append_message(mode, placeholder)
        handle = SessionHandle(mode, placeholder.id)
        handle._task = asyncio.get_running_loop().create_task(self._run(handle, history, page_context))
        return handle

    def cancel(self, handle: SessionHandle) -> None:
        if handle.cancelled:
            return
        handle.cancelled = True
        if handle._task is not None and not handle._task.done():
            handle._task.cancel()

    async def _run(self, handle: SessionHandle, history: List[Dict[str, str]], page_context: str) -> None:
        decoder = FrameDecoder()
        started = time.perf_counter()
        appended = False
        stream = None
        try:
            stream = self._transport.stream_chat(history, page_context, request_id=handle.id)
            async for chunk in stream:
                for event in decoder.feed(chunk):
                    appended = appended or isinstance(event, AppendEvent)
                    self._apply(handle, event, started)
                if decoder.finished:
                    break
            if not decoder.finished:
                for event in decoder.finish():
                    appended = appended or isinstance(event, AppendEvent)
                    self._apply(handle, event, started)
            if not decoder.finished:
                if not appended:
                    raise TransportError(f"chat stream returned no readable body ({decoder.dropped} records dropped)")
                # Clean end of stream without the sentinel counts as completion
                self._apply(handle, DoneEvent(), started)
        except asyncio.CancelledError:
            handle.outcome = "cancelled"
            raise
        except Exception as e:
            if handle.cancelled:
                handle.outcome = "cancelled"
                return
            handle.outcome = "transport_error"
            logger.error(json.dumps({
                "event": "chat_transport_error",
                "sessionId": handle.id,
                "mode": handle.mode,
                "error": f"{type(e).__name__}: {e}",
            }))
            self._store.update_message(handle.mode, handle.message_id, mark_failed)
        finally:
            aclose = getattr(stream, "aclose", None)
            if aclose is not None:
                await aclose()
            if decoder.dropped:
                metrics.CHAT_FRAMES_DROPPED_TOTAL.inc(decoder.dropped)
            metrics.CHAT_SESSIONS_TOTAL.labels(outcome=handle.outcome or "cancelled").inc()
            logger.info(json.dumps({
                "event": "chat_session_end",
                "sessionId": handle.id,
                "mode": handle.mode,
                "outcome": handle.outcome or "cancelled",
                "dropped": decoder.dropped,
                "latency_ms": int((time.perf_counter() - started) * 1000),
            }))

    def _apply(self, handle: SessionHandle, event: StreamEvent, started: float) -> None:
        if handle.cancelled:
            return
        if isinstance(event, AppendEvent) and handle.outcome is None:
            handle.outcome = "streaming"
            metrics.CHAT_TTFT_SECONDS.observe(time.perf_counter() - started)
        if isinstance(event, DoneEvent):
            handle.outcome = "completed"
        elif isinstance(event, ErrorEvent):
            handle.outcome = "error"
            logger.warning(json.dumps({"event": "chat_stream_error", "sessionId": handle.id, "error": event.message}))
        self._store.update_message(handle.mode, handle.message_id, lambda m: apply_event(m, event))
