from __future__ import annotations

import json
from typing import Optional, Tuple

from compass.log import get_logger
from compass.prefs import BUBBLE_SEEN_KEY, MODE_KEY, PreferenceStore

from .knowledge import KnowledgeBase
from .session import SessionHandle, StreamingSessionController, build_history
from .transcript import (
    ASSISTED,
    FALLBACK_ACTION_ID,
    GREETING_ID,
    MODES,
    QUICK,
    Conversation,
    Message,
    QuickAction,
    TranscriptStore,
)

logger = get_logger("compass.chat.assistant")

ASSISTED_GREETING = (
    "I'm the CSF Compass AI assistant. Ask me anything about NIST CSF 2.0 controls, "
    "evidence, scoring, or the page you're on."
)
NO_ANSWER_TEXT = "I don't have a specific answer for that, but here are some topics I can help with:"


class ChatAssistant:
    """Mode lifecycle for the assistant panel.

    Two conversations (quick and assisted) live side by side for one page
    visit. Switching the visible mode never touches either transcript or the
    running stream; only `navigate` cancels and clears.
    """

    def __init__(
        self,
        store: TranscriptStore,
        controller: StreamingSessionController,
        knowledge: KnowledgeBase,
        prefs: PreferenceStore,
        history_limit: int = 10,
        page_context: str = "",
        fallback_actions: Tuple[QuickAction, ...] = (),
    ):
        self.store = store
        self._controller = controller
        self._knowledge = knowledge
        self._prefs = prefs
        self._history_limit = history_limit
        self._fallback_actions = fallback_actions
        self.page_context = page_context
        self.is_open = False
        saved = prefs.get(MODE_KEY)
        self.mode = saved if saved in MODES else QUICK
        self._active: Optional[SessionHandle] = None

    # Visibility

    @property
    def conversation(self) -> Conversation:
        return self.store.get_conversation(self.mode)

    def open(self) -> None:
        self.is_open = True
        self._seed_greeting(self.mode)

    def close(self) -> None:
        self.is_open = False

    def switch_mode(self, mode: str) -> None:
        if mode not in MODES:
            raise ValueError(f"unknown mode: {mode!r}")
        self.mode = mode
        self._prefs.set(MODE_KEY, mode)
        if self.is_open:
            self._seed_greeting(mode)

    def should_pulse(self) -> bool:
        return not self._prefs.get(BUBBLE_SEEN_KEY, False)

    def mark_bubble_seen(self) -> None:
        self._prefs.set(BUBBLE_SEEN_KEY, True)

    def navigate(self, page_context: str) -> None:
        """New page context: stop the stream, drop both transcripts, close the panel."""
        if self._active is not None:
            self._controller.cancel(self._active)
            self._active = None
        for mode in MODES:
            self.store.reset(mode)
        self.is_open = False
        self.page_context = page_context
        logger.info(json.dumps({"event": "chat_context_changed", "pageContext": page_context}))

    # Sending

    @property
    def active_session(self) -> Optional[SessionHandle]:
        if self._active is not None and self._active.done:
            self._active = None
        return self._active

    def send_message(self, mode: str, text: str) -> Optional[Message]:
        text = (text or "").strip()
        if not text:
            return None
        if mode not in MODES:
            raise ValueError(f"unknown mode: {mode!r}")
        self._seed_greeting(mode)
        if mode == QUICK:
            return self._answer_quick(text)
        return self._start_assisted(text)

    def handle_quick_action(self, action_id: str, label: str) -> Optional[Message]:
        if action_id == FALLBACK_ACTION_ID:
            self.switch_mode(QUICK)
            self.open()
            return None
        if self.mode == ASSISTED:
            return self.send_message(ASSISTED, label)
        answer = self._knowledge.answer_for(action_id)
        if answer is None:
            return None
        self._seed_greeting(QUICK)
        user = self.store.append_message(QUICK, Message(role="user", content=label))
        self.store.append_message(
            QUICK, Message(role="assistant", content=answer.text, quick_actions=answer.follow_up or None)
        )
        return user

    def cancel_active_stream(self) -> None:
        handle = self.active_session
        if handle is None:
            return
        self._controller.cancel(handle)
        self._active = None
        placeholder = self.store.get_conversation(handle.mode).get(handle.message_id)
        if placeholder is None or not placeholder.streaming:
            return
        if placeholder.content:
            self.store.update_message(handle.mode, handle.message_id, {"streaming": False})
        else:
            self.store.remove_message(handle.mode, handle.message_id)

    def _answer_quick(self, text: str) -> Message:
        answer = self._knowledge.match(text)
        user = self.store.append_message(QUICK, Message(role="user", content=text))
        if answer is not None:
            reply = Message(role="assistant", content=answer.text, quick_actions=answer.follow_up or None)
        else:
            fallback = self._fallback_actions or self._knowledge.context_for(self.page_context).quick_actions
            reply = Message(role="assistant", content=NO_ANSWER_TEXT, quick_actions=fallback or None)
        self.store.append_message(QUICK, reply)
        return user

    def _start_assisted(self, text: str) -> Optional[Message]:
        if self.active_session is not None:
            logger.info(json.dumps({"event": "chat_send_rejected", "reason": "session_active"}))
            return None
        prior = self.store.get_conversation(ASSISTED).messages
        user = self.store.append_message(ASSISTED, Message(role="user", content=text, assisted=True))
        history = build_history(prior, text, self._history_limit)
        self._active = self._controller.start_session(ASSISTED, history, self.page_context)
        return user

    def _seed_greeting(self, mode: str) -> None:
        if self.store.get_conversation(mode).messages:
            return
        if mode == QUICK:
            ctx = self._knowledge.context_for(self.page_context)
            greeting = Message(id=GREETING_ID, role="assistant", content=ctx.greeting,
                               quick_actions=ctx.quick_actions or None)
        else:
            greeting = Message(id=GREETING_ID, role="assistant", content=ASSISTED_GREETING, assisted=True)
        self.store.append_message(mode, greeting)
