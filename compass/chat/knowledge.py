from __future__ import annotations

import abc
import re
from dataclasses import dataclass
from typing import Dict, Optional, Pattern, Sequence, Tuple

from .transcript import QuickAction


@dataclass(frozen=True)
class Answer:
    text: str
    follow_up: Tuple[QuickAction, ...] = ()


@dataclass(frozen=True)
class ContextInfo:
    greeting: str
    quick_actions: Tuple[QuickAction, ...] = ()


DEFAULT_CONTEXT = ContextInfo(
    greeting=(
        "I'm your **CSF Compass Assistant**, here to help with NIST CSF 2.0 controls, "
        "compliance guidance, scoring, and evidence requirements. What would you like to know?"
    ),
)


class KnowledgeBase(abc.ABC):
    """Canned-answer source for quick mode."""

    @abc.abstractmethod
    def context_for(self, page_context: str) -> ContextInfo:
        ...

    @abc.abstractmethod
    def answer_for(self, action_id: str) -> Optional[Answer]:
        ...

    @abc.abstractmethod
    def match(self, text: str) -> Optional[Answer]:
        ...


class StaticKnowledgeBase(KnowledgeBase):
    """Answers keyed by id, keyword patterns tried in order, greetings keyed by page-path fragment."""

    def __init__(
        self,
        answers: Optional[Dict[str, Answer]] = None,
        keywords: Sequence[Tuple[str, str]] = (),
        contexts: Sequence[Tuple[str, ContextInfo]] = (),
        default_context: ContextInfo = DEFAULT_CONTEXT,
    ):
        self._answers = dict(answers or {})
        self._keywords: Tuple[Tuple[Pattern[str], str], ...] = tuple(
            (re.compile(pattern), answer_id) for pattern, answer_id in keywords
        )
        self._contexts = tuple(contexts)
        self._default = default_context

    def context_for(self, page_context: str) -> ContextInfo:
        for fragment, info in self._contexts:
            if fragment in (page_context or ""):
                return info
        return self._default

    def answer_for(self, action_id: str) -> Optional[Answer]:
        return self._answers.get(action_id)

    def match(self, text: str) -> Optional[Answer]:
        lower = (text or "").lower()
        for pattern, answer_id in self._keywords:
            if pattern.search(lower):
                return self._answers.get(answer_id)
        return None
