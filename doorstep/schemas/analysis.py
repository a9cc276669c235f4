"""
doorstep/schemas/analysis.py
=============================
Conversation Analysis Types — Doorstep

Responsibility:
    - Enumerate conversation categories and customer objection kinds
    - Define the objection record, extraction result and per-conversation
      analysis records

Analyses are computed once per conversation segment and never mutated;
timestamp alignment produces a new instance via ``dataclasses.replace``.
"""

from dataclasses import dataclass
from enum import Enum


class Category(str, Enum):
    """Business category assigned to a conversation."""

    INTERACTION = "interaction"
    PITCH = "pitch"
    SALE = "sale"
    UNCATEGORIZED = "uncategorized"


class ObjectionKind(str, Enum):
    """Customer objection kinds recognised by the extractor."""

    DIY = "diy"
    SPOUSE = "spouse"
    PRICE = "price"
    COMPETITOR = "competitor"
    DELAY = "delay"
    NOT_INTERESTED = "not_interested"
    NO_PROBLEM = "no_problem"
    NO_SOLICITING = "no_soliciting"


VALID_OBJECTION_KINDS: set[str] = {member.value for member in ObjectionKind}


@dataclass(frozen=True)
class ObjectionRecord:
    """
    One customer objection with its verbatim source phrase.

    ``timestamp_seconds`` is None until aligned against the segment's words.
    """

    kind: ObjectionKind
    source_text: str
    timestamp_seconds: float | None = None


@dataclass(frozen=True)
class ExtractionResult:
    """Objections returned by the extractor, or the reason none could be."""

    objections: tuple[ObjectionRecord, ...] = ()
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class ConversationAnalysis:
    """Category, objections and diagnostics for one conversation segment."""

    category: Category
    objections: tuple[ObjectionRecord, ...]
    has_price_mention: bool
    pii_span_count: int
    completed: bool
    error_reason: str | None = None
