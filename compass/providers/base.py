from __future__ import annotations

import abc
from typing import Any, AsyncIterator, Dict, List, Optional


class ChatTransport(abc.ABC):
    """Abstract assistant stream transport.

    Implementations yield raw text chunks exactly as read from the wire
    (record framing intact, boundaries arbitrary). Closing the iterator
    must release the underlying connection.
    """

    provider_name: str = "unknown"

    @abc.abstractmethod
    def stream_chat(
        self,
        messages: List[Dict[str, str]],
        page_context: str = "",
        request_id: Optional[str] = None,
    ) -> AsyncIterator[str]:
        ...


class ItemClient(abc.ABC):
    """Persists field changes for one assessment item and returns its canonical state."""

    provider_name: str = "unknown"

    @abc.abstractmethod
    async def update_item(self, assessment_id: str, item_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
        ...
