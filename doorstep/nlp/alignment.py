"""
doorstep/nlp/alignment.py
==========================
Objection Timestamp Alignment — Doorstep

Responsibility:
    - Locate an extracted objection quote inside a conversation's words
    - Report where playback should start for that objection

The extraction service paraphrases punctuation and drops filler words, so
matching is fuzzy:
    1. Slide a window of the quote's word count over lower-cased,
       punctuation-stripped words; a window containing the quote, or
       contained in it, matches. Windows holding punctuation-only words
       are skipped.
    2. Otherwise take the first word that contains (or is contained in)
       the quote's first word.
    3. Otherwise the caller falls back to the segment start.

A matched time is moved LEAD_IN_SECONDS earlier (floored at 0) so playback
starts slightly before the objection.
"""

import logging
import re
from collections.abc import Sequence
from dataclasses import replace

from doorstep.schemas import ConversationAnalysis, ConversationSegment, Word

logger = logging.getLogger("doorstep.nlp.alignment")

LEAD_IN_SECONDS: float = 2.0

_PUNCTUATION_PATTERN: re.Pattern[str] = re.compile(r"[^\w\s]")


def _normalize(text: str) -> str:
    return _PUNCTUATION_PATTERN.sub("", (text or "").lower()).strip()


def _with_lead_in(start: float) -> float:
    return max(0.0, start - LEAD_IN_SECONDS)


def find_text_timestamp(snippet: str, words: Sequence[Word]) -> float | None:
    """
    Find the playback time for ``snippet`` within ``words``.

    Returns:
        Matched word start minus the lead-in (>= 0), or None when neither
        the window match nor the first-word fallback finds anything.
    """
    snippet_words = _normalize(snippet).split()
    if not snippet_words or not words:
        return None

    snippet_text = " ".join(snippet_words)
    window_size = len(snippet_words)
    normalized = [_normalize(w.text) for w in words]

    for i in range(len(words) - window_size + 1):
        tokens = [t for t in normalized[i:i + window_size] if t]
        if len(tokens) < window_size:
            continue
        window_text = " ".join(tokens)
        if snippet_text in window_text or window_text in snippet_text:
            return _with_lead_in(words[i].start)

    first = snippet_words[0]
    for word, text in zip(words, normalized):
        if text and (first in text or text in first):
            return _with_lead_in(word.start)

    return None


def align_objections(
    analysis: ConversationAnalysis,
    segment: ConversationSegment,
) -> ConversationAnalysis:
    """
    Return a copy of ``analysis`` whose objections carry playback times.

    Objections that cannot be located default to the segment's start time.
    """
    if not analysis.objections:
        return analysis

    aligned = []
    for objection in analysis.objections:
        timestamp = find_text_timestamp(objection.source_text, segment.words)
        if timestamp is None:
            logger.debug(
                "Objection text not found in conversation %d: %r",
                segment.ordinal, objection.source_text,
            )
            timestamp = segment.start
        aligned.append(replace(objection, timestamp_seconds=timestamp))

    return replace(analysis, objections=tuple(aligned))
