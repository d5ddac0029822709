from __future__ import annotations

import json
from dataclasses import dataclass
from typing import List, Optional, Union

FIELD_PREFIX = "data:"
DONE_SENTINEL = "[DONE]"
RECORD_SEPARATOR = "\n"


@dataclass(frozen=True)
class AppendEvent:
    text: str


@dataclass(frozen=True)
class ErrorEvent:
    message: str


@dataclass(frozen=True)
class DoneEvent:
    pass


StreamEvent = Union[AppendEvent, ErrorEvent, DoneEvent]


class FrameDecoder:
    """Incremental decoder for the assistant's `data: <json>` record stream.

    Chunk boundaries carry no meaning: text is buffered until a record
    separator arrives, so any split of the same stream yields the same events.
    Records that are not `data:` lines, or whose payload is neither the done
    sentinel nor a JSON object with `token`/`error`, are dropped and counted.
    Once a done or error record is decoded the decoder is finished and ignores
    everything after it.
    """

    def __init__(self) -> None:
        self._buffer = ""
        self.finished = False
        self.dropped = 0

    def feed(self, chunk: str) -> List[StreamEvent]:
        if self.finished or not chunk:
            return []
        self._buffer += chunk
        *records, self._buffer = self._buffer.split(RECORD_SEPARATOR)
        return self._decode_all(records)

    def finish(self) -> List[StreamEvent]:
        """Decode the residual buffer as a last record (stream ended without a newline)."""
        if self.finished:
            return []
        rest, self._buffer = self._buffer, ""
        return self._decode_all([rest])

    def _decode_all(self, records: List[str]) -> List[StreamEvent]:
        events: List[StreamEvent] = []
        for record in records:
            event = self._decode_record(record)
            if event is None:
                continue
            events.append(event)
            if isinstance(event, (DoneEvent, ErrorEvent)):
                self.finished = True
                self._buffer = ""
                break
        return events

    def _decode_record(self, record: str) -> Optional[StreamEvent]:
        line = record.rstrip("\r")
        if not line.strip():
            return None
        if not line.startswith(FIELD_PREFIX):
            self.dropped += 1
            return None
        payload = line[len(FIELD_PREFIX):].strip()
        if payload == DONE_SENTINEL:
            return DoneEvent()
        try:
            obj = json.loads(payload)
        except ValueError:
            self.dropped += 1
            return None
        if not isinstance(obj, dict):
            self.dropped += 1
            return None
        if "error" in obj:
            return ErrorEvent(message=str(obj.get("error") or "unknown error"))
        token = obj.get("token")
        if isinstance(token, str):
            return AppendEvent(text=token)
        self.dropped += 1
        return None
