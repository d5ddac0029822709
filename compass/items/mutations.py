from __future__ import annotations

import asyncio
import json
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional, Set, Tuple

from compass import metrics
from compass.errors import PersistenceError, UnknownItemError
from compass.log import get_logger
from compass.notifications import Notifier
from compass.providers.base import ItemClient

from .debounce import DebounceCoalescer
from .models import AssessmentItem, ItemRegistry, status_options

logger = get_logger("compass.items.mutations")

STATUS = "status"
NOTES = "notes"

_UNSET: Any = object()


@dataclass
class FieldChain:
    """Pending writes for one item+field.

    `snapshot` is the last value of the field the server is known to hold
    (the pre-edit value until a write is confirmed); failures roll back to it.
    `queued` is the newest local value not yet sent, `in_flight` the value of
    the single outstanding request.
    """

    field: str
    snapshot: Any
    queued: Any = _UNSET
    in_flight: Any = _UNSET
    running: bool = False

    @property
    def busy(self) -> bool:
        return self.in_flight is not _UNSET

    @property
    def has_queued(self) -> bool:
        return self.queued is not _UNSET


class OptimisticMutationEngine:
    def __init__(
        self,
        registry: ItemRegistry,
        client: ItemClient,
        notifier: Notifier,
        debounce_seconds: float = 0.5,
        status_config: str = "full",
    ):
        self._registry = registry
        self._client = client
        self._notifier = notifier
        self._options = status_options(status_config)
        self._chains: Dict[Tuple[str, str], FieldChain] = {}
        self._tasks: Set[asyncio.Task] = set()
        self._coalescer = DebounceCoalescer(debounce_seconds, self._flush_notes)

    @property
    def coalescer(self) -> DebounceCoalescer:
        return self._coalescer

    def set_status(self, item_id: str, status: str) -> AssessmentItem:
        if status not in self._options:
            raise ValueError(f"unsupported status {status!r}; expected one of {', '.join(self._options)}")
        item = self._registry.get(item_id)
        chain = self._chain(item, STATUS)
        item.status = status
        item.saving = True
        chain.queued = status
        self._registry.changed(item)
        if not chain.running:
            chain.running = True
            task = asyncio.get_running_loop().create_task(self._pump(item, chain))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
        return item

    def set_notes(self, item_id: str, notes: str) -> AssessmentItem:
        item = self._registry.get(item_id)
        self._chain(item, NOTES)
        item.notes = notes
        self._registry.changed(item)
        self._coalescer.schedule(item_id, notes)
        return item

    def pending(self, item_id: str, field: str) -> Optional[FieldChain]:
        return self._chains.get((item_id, field))

    async def settle(self, flush: bool = False) -> None:
        """Wait until no persistence work is outstanding; `flush` fires pending notes timers first."""
        if flush:
            self._coalescer.flush()
        while self._tasks or self._coalescer.firing:
            await self._coalescer.drain()
            if self._tasks:
                await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def _flush_notes(self, item_id: str, notes: str) -> None:
        try:
            item = self._registry.get(item_id)
        except UnknownItemError:
            self._chains.pop((item_id, NOTES), None)
            return
        chain = self._chain(item, NOTES)
        chain.queued = notes
        if not chain.running:
            chain.running = True
            await self._pump(item, chain)

    def _chain(self, item: AssessmentItem, field: str) -> FieldChain:
        key = (item.id, field)
        chain = self._chains.get(key)
        if chain is None:
            chain = FieldChain(field=field, snapshot=getattr(item, field))
            self._chains[key] = chain
        return chain

    def _outstanding(self, item_id: str, field: str) -> bool:
        """True while a local edit of this field has not been settled by the server."""
        chain = self._chains.get((item_id, field))
        if chain is None:
            return False
        if chain.busy or chain.has_queued:
            return True
        return field == NOTES and self._coalescer.pending(item_id)

    async def _pump(self, item: AssessmentItem, chain: FieldChain) -> None:
        """Send queued values one request at a time until the chain is empty."""
        try:
            while chain.has_queued:
                value, chain.queued = chain.queued, _UNSET
                chain.in_flight = value
                if chain.field == STATUS:
                    changes: Dict[str, Any] = {STATUS: value}
                else:
                    # Send the status too so a concurrent status change is not clobbered
                    changes = {STATUS: item.status, NOTES: value}
                t0 = time.perf_counter()
                try:
                    data = await self._client.update_item(item.assessment_id, item.id, changes)
                    chain.in_flight = _UNSET
                    self._on_success(item, chain, changes, data)
                except asyncio.CancelledError:
                    chain.in_flight = _UNSET
                    raise
                except Exception as e:
                    chain.in_flight = _UNSET
                    metrics.ITEM_MUTATIONS_TOTAL.labels(field=chain.field, outcome="failure").inc()
                    self._on_failure(item, chain, e)
                else:
                    metrics.ITEM_MUTATIONS_TOTAL.labels(field=chain.field, outcome="success").inc()
                finally:
                    metrics.ITEM_MUTATION_SECONDS.labels(field=chain.field).observe(time.perf_counter() - t0)
                self._registry.changed(item)
        finally:
            chain.running = False
            if not self._outstanding(item.id, chain.field) and self._chains.get((item.id, chain.field)) is chain:
                del self._chains[(item.id, chain.field)]
            item.saving = self._outstanding(item.id, STATUS)
            self._registry.changed(item)

    def _on_success(self, item: AssessmentItem, chain: FieldChain, changes: Dict[str, Any], data: Any) -> None:
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise PersistenceError(f"unexpected item response: {type(data).__name__}")
        updated_at = data.get("updated_at")
        if updated_at is not None and not isinstance(updated_at, (int, float)):
            raise PersistenceError(f"unexpected updated_at in item response: {updated_at!r}")
        if updated_at is not None and item.updated_at is not None and updated_at < item.updated_at:
            # A newer write already resolved; this response describes older server state
            logger.info(json.dumps({"event": "item_stale_response", "itemId": item.id, "field": chain.field}))
            return
        for field in (STATUS, NOTES):
            value = data.get(field, changes.get(field, _UNSET))
            if value is _UNSET or value is None:
                continue
            confirmed = self._chains.get((item.id, field))
            if confirmed is not None:
                confirmed.snapshot = value
            if not self._outstanding(item.id, field):
                setattr(item, field, value)
        if updated_at is not None:
            item.updated_at = updated_at

    def _on_failure(self, item: AssessmentItem, chain: FieldChain, exc: Exception) -> None:
        superseded = self._outstanding(item.id, chain.field)
        logger.error(json.dumps({
            "event": "item_update_failed",
            "itemId": item.id,
            "field": chain.field,
            "error": f"{type(exc).__name__}: {exc}",
            "rolledBack": not superseded,
        }))
        if superseded:
            # A newer edit is waiting; it keeps the snapshot and decides the final value
            return
        setattr(item, chain.field, chain.snapshot)
        self._notifier.notify(f"Failed to update {chain.field}: {exc}")
