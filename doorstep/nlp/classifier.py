"""
doorstep/nlp/classifier.py
===========================
Conversation Classifier — Doorstep

Responsibility:
    - Detect price talk in a conversation (rule-based lexicon)
    - Assign a business category from price talk + PII density
    - Combine the category with extracted objections into a
      ConversationAnalysis

Category rules (mutually exclusive, evaluated in order):
    no price mention                     → interaction
    price mention + >= 3 PII spans       → sale   (card details were captured)
    price mention + fewer PII spans      → pitch

This module does NOT:
    - Call the OpenAI API itself (delegated to objections.py)
    - Align objections to timestamps (handled by alignment.py)
    - Decide whether a conversation is persisted (handled by pipeline.py)
"""

import logging
from collections.abc import Callable

from doorstep.nlp.objections import extract_objections
from doorstep.schemas import (
    Category,
    ConversationAnalysis,
    ExtractionResult,
    ObjectionKind,
)

logger = logging.getLogger("doorstep.nlp.classifier")

ObjectionExtractor = Callable[[str], ExtractionResult]


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

PRICE_INDICATORS: tuple[str, ...] = (
    "$",
    "dollar",
    "price",
    "cost",
    "fee",
    "payment",
    "per month",
    "monthly",
    "annual",
    "yearly",
    "subscription",
    "charge",
    "expensive",
    "cheap",
    "afford",
    "budget",
)

# Three or more redactions alongside price talk means a card was read out.
SALE_PII_THRESHOLD: int = 3

_OBJECTION_LABELS: dict[ObjectionKind, str] = {
    ObjectionKind.DIY: "DIY / Do It Themselves",
    ObjectionKind.SPOUSE: "Spouse Objection",
    ObjectionKind.PRICE: "Price Concern",
    ObjectionKind.COMPETITOR: "Competitor / Existing Service",
    ObjectionKind.DELAY: "Need to Think / Not Right Now",
    ObjectionKind.NOT_INTERESTED: "Not Interested",
    ObjectionKind.NO_PROBLEM: "No Problem / No Bugs",
    ObjectionKind.NO_SOLICITING: "No Soliciting",
}


# ---------------------------------------------------------------------------
# Rules
# ---------------------------------------------------------------------------


def detect_price_mention(text: str) -> bool:
    """Case-insensitive substring search for any price indicator."""
    lowered = (text or "").lower()
    return any(indicator in lowered for indicator in PRICE_INDICATORS)


def categorize_conversation(has_price_mention: bool, pii_count: int) -> Category:
    if not has_price_mention:
        return Category.INTERACTION
    if pii_count >= SALE_PII_THRESHOLD:
        return Category.SALE
    return Category.PITCH


def has_actionable_signal(analysis: ConversationAnalysis) -> bool:
    """A conversation is worth keeping if it has objections or closed a sale."""
    return bool(analysis.objections) or analysis.category == Category.SALE


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def classify_conversation(
    segment_text: str,
    overlapping_pii_count: int,
    extractor: ObjectionExtractor | None = None,
) -> ConversationAnalysis:
    """
    Categorize one conversation and extract its objections.

    Steps:
        1. Rule-based price-mention detection
        2. Category from price mention + overlapping PII span count
        3. Objection extraction through ``extractor`` (OpenAI by default)

    Objections come back with ``timestamp_seconds=None``; the pipeline
    aligns them against the segment's words afterwards.

    Args:
        segment_text: Space-joined words of the conversation.
        overlapping_pii_count: PII spans overlapping the conversation.
        extractor: Callable returning an ExtractionResult for the text.

    Returns:
        ConversationAnalysis. ``completed`` is False and ``error_reason``
        is set when extraction failed; the category is still assigned.
    """
    extract = extractor or extract_objections

    has_price_mention = detect_price_mention(segment_text)
    category = categorize_conversation(has_price_mention, overlapping_pii_count)

    extraction = extract(segment_text)
    if not extraction.ok:
        logger.warning("Objection extraction degraded: %s", extraction.error)

    analysis = ConversationAnalysis(
        category=category,
        objections=tuple(extraction.objections),
        has_price_mention=has_price_mention,
        pii_span_count=overlapping_pii_count,
        completed=extraction.ok,
        error_reason=extraction.error,
    )

    logger.info(
        "Classified conversation: category=%s, price=%s, pii=%d, objections=%d.",
        analysis.category.value,
        analysis.has_price_mention,
        analysis.pii_span_count,
        len(analysis.objections),
    )
    return analysis


def uncategorized_analysis(overlapping_pii_count: int, reason: str) -> ConversationAnalysis:
    """Analysis recorded when classification itself failed unexpectedly."""
    return ConversationAnalysis(
        category=Category.UNCATEGORIZED,
        objections=(),
        has_price_mention=False,
        pii_span_count=overlapping_pii_count,
        completed=False,
        error_reason=reason,
    )


# ---------------------------------------------------------------------------
# Display labels
# ---------------------------------------------------------------------------


def format_objection_kind(kind: ObjectionKind | str) -> str:
    try:
        return _OBJECTION_LABELS[ObjectionKind(kind)]
    except ValueError:
        return str(kind)


def format_category(category: Category | str) -> str:
    value = category.value if isinstance(category, Category) else str(category)
    return value[:1].upper() + value[1:]
