import asyncio
from typing import Any, Awaitable, Callable, Dict, Set

from compass import metrics

FireCallback = Callable[[str, Any], Awaitable[None]]


class DebounceCoalescer:
    """Per-key trailing-edge debounce.

    Each `schedule` restarts that key's timer and replaces its value; when a
    timer expires the callback runs once with the newest value. Keys never
    share timers.
    """

    def __init__(self, delay: float, callback: FireCallback):
        self._delay = delay
        self._callback = callback
        self._timers: Dict[str, asyncio.TimerHandle] = {}
        self._values: Dict[str, Any] = {}
        self._fired: Set[asyncio.Task] = set()

    def schedule(self, key: str, value: Any) -> None:
        loop = asyncio.get_running_loop()
        previous = self._timers.pop(key, None)
        if previous is not None:
            previous.cancel()
            metrics.NOTES_COALESCED_TOTAL.inc()
        self._values[key] = value
        self._timers[key] = loop.call_later(self._delay, self._fire, key)

    @property
    def firing(self) -> bool:
        return bool(self._fired)

    def pending(self, key: str) -> bool:
        return key in self._timers

    def cancel(self, key: str) -> None:
        handle = self._timers.pop(key, None)
        if handle is not None:
            handle.cancel()
        self._values.pop(key, None)

    def cancel_all(self) -> None:
        for key in list(self._timers):
            self.cancel(key)

    def flush(self) -> None:
        """Fire every pending timer now."""
        for key in list(self._timers):
            self._timers[key].cancel()
            self._fire(key)

    async def drain(self) -> None:
        """Wait for fired callbacks (including ones they trigger) to finish."""
        while self._fired:
            await asyncio.gather(*list(self._fired), return_exceptions=True)

    def _fire(self, key: str) -> None:
        self._timers.pop(key, None)
        value = self._values.pop(key)
        task = asyncio.get_running_loop().create_task(self._callback(key, value))
        self._fired.add(task)
        task.add_done_callback(self._fired.discard)
