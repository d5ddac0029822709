from __future__ import annotations

from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from compass.chat.assistant import ChatAssistant
from compass.chat.knowledge import KnowledgeBase, StaticKnowledgeBase
from compass.chat.session import StreamingSessionController
from compass.chat.transcript import Conversation, Message, TranscriptStore
from compass.config import Settings
from compass.items.models import AssessmentItem, ItemRegistry
from compass.items.mutations import OptimisticMutationEngine
from compass.notifications import Notifier
from compass.prefs import PreferenceStore, open_preferences
from compass.providers.base import ChatTransport, ItemClient
from compass.providers.factory import get_chat_transport, get_item_client


class InteractionCore:
    """What presentation code talks to: chat sending/cancel, item edits, and read-only subscriptions."""

    def __init__(
        self,
        transport: ChatTransport,
        item_client: ItemClient,
        settings: Optional[Settings] = None,
        knowledge: Optional[KnowledgeBase] = None,
        prefs: Optional[PreferenceStore] = None,
    ):
        self.settings = settings or Settings()
        self.notifier = Notifier()
        self.transcripts = TranscriptStore()
        self.items = ItemRegistry()
        self.assistant = ChatAssistant(
            self.transcripts,
            StreamingSessionController(transport, self.transcripts),
            knowledge or StaticKnowledgeBase(),
            prefs if prefs is not None else PreferenceStore(),
            history_limit=self.settings.chat_context_limit,
        )
        self.mutations = OptimisticMutationEngine(
            self.items,
            item_client,
            self.notifier,
            debounce_seconds=self.settings.notes_debounce_seconds,
            status_config=self.settings.status_options,
        )

    @classmethod
    def from_settings(cls, settings: Settings, knowledge: Optional[KnowledgeBase] = None) -> "InteractionCore":
        return cls(
            get_chat_transport(settings),
            get_item_client(settings),
            settings=settings,
            knowledge=knowledge,
            prefs=open_preferences(settings.prefs_path),
        )

    # Chat

    def send_message(self, mode: str, text: str) -> Optional[Message]:
        return self.assistant.send_message(mode, text)

    def cancel_active_stream(self) -> None:
        self.assistant.cancel_active_stream()

    def navigate(self, page_context: str) -> None:
        self.assistant.navigate(page_context)

    def conversation(self, mode: str) -> Conversation:
        return self.transcripts.get_conversation(mode)

    def subscribe_conversation(self, listener: Callable[[str, Conversation], None]) -> Callable[[], None]:
        return self.transcripts.subscribe(listener)

    # Items

    def load_items(self, items: Iterable[Union[AssessmentItem, Dict[str, Any]]]) -> List[AssessmentItem]:
        return self.items.load(items)

    def set_item_status(self, item_id: str, status: str) -> AssessmentItem:
        return self.mutations.set_status(item_id, status)

    def set_item_notes(self, item_id: str, notes: str) -> AssessmentItem:
        return self.mutations.set_notes(item_id, notes)

    def subscribe_items(self, listener: Callable[[AssessmentItem], None]) -> Callable[[], None]:
        return self.items.subscribe(listener)

    async def shutdown(self) -> None:
        self.assistant.cancel_active_stream()
        await self.mutations.settle(flush=True)
