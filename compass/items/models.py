from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, Union

from compass.errors import UnknownItemError

# Internal/org assessments rate with all five; vendors must pick a concrete status
FULL_STATUS_OPTIONS: Tuple[str, ...] = ("compliant", "partial", "non_compliant", "not_assessed", "not_applicable")
VENDOR_STATUS_OPTIONS: Tuple[str, ...] = ("compliant", "partial", "non_compliant", "not_applicable")


def status_options(configuration: str) -> Tuple[str, ...]:
    return VENDOR_STATUS_OPTIONS if configuration == "vendor" else FULL_STATUS_OPTIONS


@dataclass
class AssessmentItem:
    id: str
    assessment_id: str = ""
    status: str = "not_assessed"
    notes: str = ""
    updated_at: Optional[int] = None
    subcategory_id: Optional[str] = None
    saving: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AssessmentItem":
        return cls(
            id=str(data["id"]),
            assessment_id=str(data.get("assessment_id") or ""),
            status=str(data.get("status") or "not_assessed"),
            notes=str(data.get("notes") or ""),
            updated_at=data.get("updated_at"),
            subcategory_id=data.get("subcategory_id"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "assessment_id": self.assessment_id,
            "subcategory_id": self.subcategory_id,
            "status": self.status,
            "notes": self.notes,
            "updated_at": self.updated_at,
            "saving": self.saving,
        }


Listener = Callable[[AssessmentItem], None]


class ItemRegistry:
    """The single in-memory copy of every loaded item; all views read these instances."""

    def __init__(self) -> None:
        self._items: Dict[str, AssessmentItem] = {}
        self._listeners: List[Listener] = []

    def load(self, items: Iterable[Union[AssessmentItem, Dict[str, Any]]]) -> List[AssessmentItem]:
        loaded: List[AssessmentItem] = []
        for raw in items:
            incoming = raw if isinstance(raw, AssessmentItem) else AssessmentItem.from_dict(raw)
            current = self._items.get(incoming.id)
            if current is None:
                self._items[incoming.id] = incoming
                current = incoming
            else:
                # Keep identity so existing readers see the refresh
                current.assessment_id = incoming.assessment_id
                current.status = incoming.status
                current.notes = incoming.notes
                current.updated_at = incoming.updated_at
                current.subcategory_id = incoming.subcategory_id
            loaded.append(current)
            self.changed(current)
        return loaded

    def get(self, item_id: str) -> AssessmentItem:
        item = self._items.get(item_id)
        if item is None:
            raise UnknownItemError(item_id)
        return item

    def all(self) -> List[AssessmentItem]:
        return list(self._items.values())

    def clear(self) -> None:
        self._items.clear()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def changed(self, item: AssessmentItem) -> None:
        for listener in list(self._listeners):
            listener(item)
