"""
NewsAI - Context Assembler
===========================
Pure, deterministic prompt construction.  No I/O, no clocks, no
randomness: the same ``(passages, history, message, limits)`` always
yields a byte-identical prompt.

Budget policy
-------------
• Passages — at most ``max_passages``, rendered in the order received
  (rank order is never re-sorted), each body cut to ``max_excerpt_chars``.
• History  — the last ``max_history_turns`` messages only (older ones
  are dropped, never sampled), each cut to ``max_history_chars``.
• No passages — the article block becomes the fixed
  "no matching articles" narrative.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

from newsai.config.prompt_templates import CATEGORY_FOCUS_INSTRUCTION, GENERAL_FOCUS_INSTRUCTION, NO_ARTICLES_CONTEXT, NO_HISTORY_PLACEHOLDER, RAG_PROMPT_TEMPLATE
from newsai.config.settings import settings
from newsai.src.core.models import Category, Message, RetrievalResult, SourceRef
from newsai.src.utils.text_utils import truncate

_ROLE_LABELS = {"user": "User", "bot": "Assistant"}


@dataclass(frozen=True)
class ContextLimits:
    max_passages: int
    max_excerpt_chars: int
    max_history_turns: int
    max_history_chars: int

    @classmethod
    def from_settings(cls) -> ContextLimits:
        return cls(max_passages=settings.CONTEXT_MAX_PASSAGES, max_excerpt_chars=settings.CONTEXT_MAX_EXCERPT_CHARS, max_history_turns=settings.CONTEXT_MAX_HISTORY_TURNS, max_history_chars=settings.CONTEXT_MAX_HISTORY_CHARS)


@dataclass(frozen=True)
class AssembledContext:
    prompt: str
    sources: list[SourceRef] = field(default_factory=list)

    @property
    def has_passages(self) -> bool:
        return bool(self.sources)


def build_context(passages: Sequence[RetrievalResult], history: Sequence[Message], message: str, limits: ContextLimits, category: Category | None = None) -> AssembledContext:
    """
    Assemble the generation prompt and its parallel sources list.

    Args:
        passages: Retrieved passages in rank order.
        history:  Session messages, oldest first.
        message:  The user's current question.
        limits:   Size budget.
        category: Detected query category, used for the focus instruction.

    Returns:
        ``AssembledContext`` with the prompt text and one ``SourceRef``
        per rendered passage.
    """
    kept = list(passages)[: max(limits.max_passages, 0)]

    articles = format_passages(kept, limits.max_excerpt_chars) if kept else NO_ARTICLES_CONTEXT
    history_block = format_history(history, limits.max_history_turns, limits.max_history_chars)
    focus = CATEGORY_FOCUS_INSTRUCTION.format(category=category.value.replace("_", " ")) if category else GENERAL_FOCUS_INSTRUCTION

    prompt = RAG_PROMPT_TEMPLATE.format(article_count=len(kept), articles=articles, history=history_block, question=message, focus=focus)
    sources = [SourceRef(title=p.title, url=p.source_url, source=p.source_name, category=p.category, score=p.score) for p in kept]
    return AssembledContext(prompt=prompt, sources=sources)


def format_passages(passages: Sequence[RetrievalResult], max_excerpt_chars: int) -> str:
    """Render passages as numbered, attributed article blocks."""
    blocks: list[str] = []
    for i, p in enumerate(passages, 1):
        header = f"Article {i} [{p.source_name} - {p.category.value.upper()} - {p.published_at.date().isoformat()}]:"
        blocks.append(f"{header}\nTitle: {p.title}\nContent: {truncate(p.body, max_excerpt_chars)}")
    return "\n\n".join(blocks)


def format_history(history: Sequence[Message], max_turns: int, max_chars: int) -> str:
    """Render the tail of the conversation, oldest first."""
    tail = list(history)[-max_turns:] if max_turns > 0 else []
    if not tail:
        return NO_HISTORY_PLACEHOLDER
    return "\n".join(f"{_ROLE_LABELS.get(m.role, m.role)}: {truncate(m.content, max_chars)}" for m in tail)
