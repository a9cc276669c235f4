"""
doorstep/pipeline.py
=====================
Transcript Analysis Orchestrator — Doorstep

Responsibility:
    1. Run each stage in order over one word-level transcript
    2. Verify stage outputs at the seams (validator.py)
    3. Keep one conversation's failure from aborting the transcript
    4. Assemble the persisted conversation records

This layer MUST NOT:
    - Detect PII, segment or classify itself
    - Call OpenAI directly
    - Modify stage outputs semantically

Stage order:
    Stage 1: PII Detection        → pii_spans + redaction_ranges
    Stage 2: Segmentation         → conversation segments
    Stage 3: Classification       → one ConversationAnalysis per segment
    Stage 4: Filtering + Assembly → persisted records
"""

import logging
from collections.abc import Sequence
from typing import Any

from doorstep.nlp.alignment import align_objections
from doorstep.nlp.classifier import (
    ObjectionExtractor,
    classify_conversation,
    has_actionable_signal,
    uncategorized_analysis,
)
from doorstep.nlp.pii_detector import (
    detect_pii,
    merge_spans,
    parse_redaction_policy,
    validate_and_clamp,
)
from doorstep.nlp.segmenter import (
    DEFAULT_REP_SPEAKER,
    SILENCE_THRESHOLD_SECONDS,
    conversation_text,
    count_pii_in_conversation,
    segment_hybrid,
)
from doorstep.schemas import ConversationAnalysis, ConversationSegment, PiiSpan, Word
from doorstep.validator import verify_pii_spans, verify_record, verify_segments

logger = logging.getLogger("doorstep.pipeline")


def _empty_result(redaction_policy: str) -> dict[str, Any]:
    return {
        "redaction_policy": redaction_policy,
        "pii_spans": [],
        "redaction_ranges": [],
        "conversation_count": 0,
        "conversations": [],
        "skipped_conversations": 0,
    }


def _banner(title: str) -> None:
    logger.info("=" * 60)
    logger.info(title)
    logger.info("=" * 60)


# =====================================================================
# Main orchestration
# =====================================================================


def run_pipeline(
    words: Sequence[Word] | None,
    redaction_policy: str = "all",
    rep_speaker: str = DEFAULT_REP_SPEAKER,
    silence_threshold_seconds: float = SILENCE_THRESHOLD_SECONDS,
    extractor: ObjectionExtractor | None = None,
) -> dict[str, Any]:
    """
    Analyze one transcript from words to persisted conversation records.

    Args:
        words: Word-level transcript ordered by start time.
        redaction_policy: ``"all"`` or a comma-separated list of PII kinds.
        rep_speaker: Speaker label of the sales rep.
        silence_threshold_seconds: Gap used by the silence fallback.
        extractor: Objection extractor; defaults to the OpenAI extractor.

    Returns:
        Dict with ``redaction_policy``, ``pii_spans``, ``redaction_ranges``,
        ``conversation_count``, ``conversations`` and
        ``skipped_conversations``.

    Raises:
        TranscriptValidationError: A stage output broke its contract.
    """
    policy = redaction_policy or "all"
    if not words:
        logger.info("Empty transcript, nothing to analyze.")
        return _empty_result(policy)

    # ==================================================================
    # STAGE 1: PII Detection
    # ==================================================================
    _banner("STAGE 1: PII Detection")

    total_duration = max(w.end for w in words)
    enabled = parse_redaction_policy(policy)
    spans = validate_and_clamp(detect_pii(words, enabled), total_duration)
    if total_duration > 0:
        verify_pii_spans(spans, total_duration)
    else:
        logger.warning("Transcript has no duration, PII spans left unclamped.")
    redaction_ranges = merge_spans(spans)

    logger.info(
        "Stage 1 complete: %d PII span(s), %d redaction range(s).",
        len(spans), len(redaction_ranges),
    )

    # ==================================================================
    # STAGE 2: Conversation Segmentation
    # ==================================================================
    _banner("STAGE 2: Conversation Segmentation")

    segments = segment_hybrid(words, rep_speaker, silence_threshold_seconds)
    verify_segments(segments)

    logger.info("Stage 2 complete: %d conversation(s).", len(segments))

    # ==================================================================
    # STAGE 3: Classification + Objection Alignment
    # ==================================================================
    _banner("STAGE 3: Classification")

    analyses = [
        (segment, _analyze_segment(segment, spans, extractor))
        for segment in segments
    ]

    # ==================================================================
    # STAGE 4: Filtering + Record Assembly
    # ==================================================================
    _banner("STAGE 4: Record Assembly")

    records: list[dict[str, Any]] = []
    skipped = 0
    for segment, analysis in analyses:
        if not has_actionable_signal(analysis):
            logger.info(
                "Skipping conversation %d: no objections and not a sale.",
                segment.ordinal,
            )
            skipped += 1
            continue
        record = _assemble_conversation_record(segment, analysis, rep_speaker)
        verify_record(record)
        records.append(record)

    logger.info(
        "Pipeline complete: %d conversation record(s), %d skipped.",
        len(records), skipped,
    )
    return {
        "redaction_policy": policy,
        "pii_spans": [span.to_dict() for span in spans],
        "redaction_ranges": [span.to_dict() for span in redaction_ranges],
        "conversation_count": len(records),
        "conversations": records,
        "skipped_conversations": skipped,
    }


def _analyze_segment(
    segment: ConversationSegment,
    spans: Sequence[PiiSpan],
    extractor: ObjectionExtractor | None,
) -> ConversationAnalysis:
    pii_count = count_pii_in_conversation(spans, segment)
    try:
        analysis = classify_conversation(conversation_text(segment), pii_count, extractor)
        return align_objections(analysis, segment)
    except Exception as exc:
        logger.error(
            "Classification failed for conversation %d: %s",
            segment.ordinal, exc, exc_info=True,
        )
        return uncategorized_analysis(pii_count, str(exc) or type(exc).__name__)


# =====================================================================
# Record assembly (stable persisted shape)
# =====================================================================


def _assemble_conversation_record(
    segment: ConversationSegment,
    analysis: ConversationAnalysis,
    rep_speaker: str,
) -> dict[str, Any]:
    """
    Assemble one persisted conversation record.

    Only assembles: every value comes from the segment or its analysis.
    Objections that were never aligned fall back to the segment start.
    """
    return {
        "conversation_number": segment.ordinal,
        "start_time": segment.start,
        "end_time": segment.end,
        "speakers": list(segment.speakers),
        "sales_rep_speaker": rep_speaker,
        "word_count": segment.word_count,
        "duration_seconds": segment.duration_seconds,
        "category": analysis.category.value,
        "objections": [o.kind.value for o in analysis.objections],
        "objections_with_text": [
            {"type": o.kind.value, "text": o.source_text}
            for o in analysis.objections
        ],
        "objection_timestamps": [
            {
                "type": o.kind.value,
                "text": o.source_text,
                "timestamp": (
                    o.timestamp_seconds
                    if o.timestamp_seconds is not None
                    else segment.start
                ),
            }
            for o in analysis.objections
        ],
        "has_price_mention": analysis.has_price_mention,
        "pii_redaction_count": analysis.pii_span_count,
        "analysis_completed": analysis.completed,
        "analysis_error": analysis.error_reason,
    }
