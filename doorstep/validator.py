"""
doorstep/validator.py
======================
Stage Output Validator — Doorstep

Responsibility:
    - Validate inbound word payloads before parsing
    - Validate the outputs of PII clamping and segmentation against their
      contracts (bounds, ordering, non-overlap, dense numbering)
    - Validate that persisted conversation records keep the stable shape
      dashboards read
    - FAIL FAST with a clear error; never auto-correct

An empty transcript is valid everywhere: it simply has no spans, no
conversations and no records.

This module does NOT:
    - Execute any stage logic
    - Call any LLM or external API
    - Modify stage outputs
"""

import logging
from collections.abc import Sequence
from typing import Any

from doorstep.schemas import ConversationSegment, PiiSpan
from doorstep.schemas.transcript import END_KEYS, SPEAKER_KEYS, START_KEYS, TEXT_KEYS

logger = logging.getLogger("doorstep.validator")


# =====================================================================
# Custom exception for stage verification failures
# =====================================================================


class TranscriptValidationError(Exception):
    """Raised when inbound data or a stage output breaks its contract."""

    def __init__(self, stage: str, message: str):
        self.stage = stage
        self.message = message
        super().__init__(f"{stage} validation failed: {message}")


# =====================================================================
# Inbound words
# =====================================================================

def _lookup(item: dict[str, Any], keys: tuple[str, ...]) -> tuple[bool, Any]:
    for key in keys:
        if key in item:
            return True, item[key]
    return False, None


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def verify_words(items: Sequence[dict[str, Any]] | None) -> None:
    """
    Verify a raw word payload.

    Checks:
        - Each item is a dict with text, start and end
        - Text is a string (may be empty; empty words are skipped later)
        - start/end are numeric, non-negative, and end >= start
        - Speaker, when present, is a string or null
        - Start times never decrease

    Raises:
        TranscriptValidationError: If any check fails.
    """
    if not items:
        logger.info("Word verification passed: empty transcript.")
        return

    previous_start = float("-inf")
    for i, item in enumerate(items):
        if not isinstance(item, dict):
            raise TranscriptValidationError(
                "words", f"Word {i} is not an object: {type(item).__name__}"
            )

        has_text, text = _lookup(item, TEXT_KEYS)
        has_start, start = _lookup(item, START_KEYS)
        has_end, end = _lookup(item, END_KEYS)

        if not has_text or not isinstance(text, str):
            raise TranscriptValidationError(
                "words", f"Word {i} missing or non-string text"
            )
        if not has_start or not _is_number(start):
            raise TranscriptValidationError(
                "words", f"Word {i} start is missing or not numeric"
            )
        if not has_end or not _is_number(end):
            raise TranscriptValidationError(
                "words", f"Word {i} end is missing or not numeric"
            )
        if start < 0 or end < start:
            raise TranscriptValidationError(
                "words", f"Word {i} has invalid timing: {start}-{end}"
            )

        _, speaker = _lookup(item, SPEAKER_KEYS)
        if speaker is not None and not isinstance(speaker, str):
            raise TranscriptValidationError(
                "words", f"Word {i} speaker must be a string or null"
            )

        if start < previous_start:
            raise TranscriptValidationError(
                "words", f"Word {i} starts before the previous word ({start} < {previous_start})"
            )
        previous_start = start

    logger.info("Word verification passed: %d words.", len(items))


# =====================================================================
# PII spans
# =====================================================================


def verify_pii_spans(spans: Sequence[PiiSpan], total_duration_seconds: float) -> None:
    """
    Verify clamped PII spans.

    Checks:
        - start >= 0 and start < end for every span
        - end <= total duration (when the duration is known)

    Raises:
        TranscriptValidationError: If any check fails.
    """
    for i, span in enumerate(spans):
        if span.start < 0 or span.start >= span.end:
            raise TranscriptValidationError(
                "pii", f"Span {i} has invalid range {span.start}-{span.end}"
            )
        if total_duration_seconds > 0 and span.end > total_duration_seconds:
            raise TranscriptValidationError(
                "pii", f"Span {i} ends past the recording ({span.end} > {total_duration_seconds})"
            )

    logger.info("PII verification passed: %d spans.", len(spans))


# =====================================================================
# Conversation segments
# =====================================================================


def verify_segments(segments: Sequence[ConversationSegment]) -> None:
    """
    Verify segmenter output.

    Checks:
        - Ordinals are 1..N with no gaps
        - Every segment has at least one word and end >= start
        - Segments are ordered by start and do not overlap

    Raises:
        TranscriptValidationError: If any check fails.
    """
    previous_end = float("-inf")
    for i, segment in enumerate(segments):
        if segment.ordinal != i + 1:
            raise TranscriptValidationError(
                "segmentation", f"Segment {i} has ordinal {segment.ordinal}, expected {i + 1}"
            )
        if not segment.words:
            raise TranscriptValidationError(
                "segmentation", f"Segment {segment.ordinal} has no words"
            )
        if segment.end < segment.start:
            raise TranscriptValidationError(
                "segmentation", f"Segment {segment.ordinal} ends before it starts"
            )
        if segment.start < previous_end:
            raise TranscriptValidationError(
                "segmentation",
                f"Segment {segment.ordinal} overlaps the previous segment "
                f"({segment.start} < {previous_end})",
            )
        previous_end = segment.end

    logger.info("Segmentation verification passed: %d segments.", len(segments))


# =====================================================================
# Persisted conversation records
# =====================================================================

RECORD_KEYS: tuple[str, ...] = (
    "conversation_number",
    "start_time",
    "end_time",
    "speakers",
    "sales_rep_speaker",
    "word_count",
    "duration_seconds",
    "category",
    "objections",
    "objections_with_text",
    "objection_timestamps",
    "has_price_mention",
    "pii_redaction_count",
    "analysis_completed",
    "analysis_error",
)


def verify_record(record: dict[str, Any]) -> None:
    """
    Verify one persisted conversation record.

    Checks:
        - Exactly the stable key set, no extras
        - Objection lists agree in length
        - An incomplete analysis carries an error string

    Raises:
        TranscriptValidationError: If any check fails.
    """
    keys = set(record)
    expected = set(RECORD_KEYS)
    if keys != expected:
        raise TranscriptValidationError(
            "record",
            f"Record keys mismatch: missing={sorted(expected - keys)}, "
            f"extra={sorted(keys - expected)}",
        )

    count = len(record["objections"])
    if len(record["objections_with_text"]) != count or len(record["objection_timestamps"]) != count:
        raise TranscriptValidationError(
            "record", f"Conversation {record['conversation_number']} objection lists differ in length"
        )

    if not record["analysis_completed"] and not record["analysis_error"]:
        raise TranscriptValidationError(
            "record",
            f"Conversation {record['conversation_number']} is incomplete without an error reason",
        )
