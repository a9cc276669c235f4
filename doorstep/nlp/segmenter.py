"""
doorstep/nlp/segmenter.py
==========================
Conversation Segmenter — Doorstep

Responsibility:
    - Split one continuous door-to-door recording into individual customer
      conversations using speaker turns and silence gaps
    - Drop rep monologue between doors and short noise blips
    - Fall back to silence-only splitting when diarization is missing or
      speaker-based splitting finds at most one conversation
    - Provide helpers for segment text and PII overlap counting

Boundary rules (speaker-based):
    - gap > LARGE_GAP_SECONDS            → new conversation (walked to a new door)
    - SMALL_GAP < gap <= LARGE_GAP and a
      customer voice not yet heard here  → new conversation
    - otherwise                          → same conversation (spouse joining,
                                           customer resuming after a pause)

Candidates are built first, then filtered (duration and speaker count) and
renumbered densely into a fresh list.

This module does NOT:
    - Detect PII or classify conversations
    - Call any LLM or external API
    - Raise on empty input (an empty transcript has no conversations)
"""

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from doorstep.schemas import ConversationSegment, PiiSpan, Word

logger = logging.getLogger("doorstep.nlp.segmenter")


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

# Shorter conversations are door slams or transcription noise.
MIN_DURATION_SECONDS: float = 20.0

# Pause inside one conversation.
SMALL_GAP_SECONDS: float = 3.0

# Walking between houses.
LARGE_GAP_SECONDS: float = 30.0

SILENCE_THRESHOLD_SECONDS: float = 30.0

MIN_SPEAKERS: int = 2

DEFAULT_REP_SPEAKER: str = "A"


# ---------------------------------------------------------------------------
# Candidate arena
# ---------------------------------------------------------------------------


@dataclass
class _Candidate:
    """A raw conversation candidate before filtering and renumbering."""

    words: list[Word] = field(default_factory=list)
    customers: list[str] = field(default_factory=list)

    def add(self, word: Word, speaker: str, rep_speaker: str) -> None:
        self.words.append(word)
        if speaker != rep_speaker and speaker not in self.customers:
            self.customers.append(speaker)

    def has_spoken(self, speaker: str) -> bool:
        return speaker in self.customers


def _ordered_unique(labels: Iterable[str]) -> tuple[str, ...]:
    return tuple(dict.fromkeys(labels))


def _build_segment(
    words: Sequence[Word],
    ordinal: int,
    speakers: tuple[str, ...],
) -> ConversationSegment:
    return ConversationSegment(
        ordinal=ordinal,
        start=words[0].start,
        end=words[-1].end,
        speakers=speakers,
        words=tuple(words),
    )


def _candidate_speakers(candidate: _Candidate, rep_speaker: str) -> tuple[str, ...]:
    """
    Rep first, then every customer voice, then any other label seen in the
    words. The rep is always present: they are the one at the door.
    """
    labels = [rep_speaker, *candidate.customers]
    labels.extend(w.speaker for w in candidate.words if w.speaker)
    return _ordered_unique(labels)


# ---------------------------------------------------------------------------
# Speaker-based segmentation
# ---------------------------------------------------------------------------


def _split_candidates(
    words: Sequence[Word],
    rep_speaker: str,
    small_gap_seconds: float,
    large_gap_seconds: float,
) -> list[_Candidate]:
    candidates: list[_Candidate] = []
    current = _Candidate()
    last_end = 0.0

    for word in words:
        speaker = word.speaker or rep_speaker

        if current.words:
            gap = word.start - last_end
            is_new_conversation = gap > large_gap_seconds or (
                gap > small_gap_seconds
                and speaker != rep_speaker
                and not current.has_spoken(speaker)
            )
            if is_new_conversation:
                candidates.append(current)
                current = _Candidate()

        current.add(word, speaker, rep_speaker)
        last_end = word.end

    if current.words:
        candidates.append(current)
    return candidates


def segment_conversations(
    words: Sequence[Word] | None,
    rep_speaker: str = DEFAULT_REP_SPEAKER,
    *,
    min_duration_seconds: float = MIN_DURATION_SECONDS,
    small_gap_seconds: float = SMALL_GAP_SECONDS,
    large_gap_seconds: float = LARGE_GAP_SECONDS,
) -> list[ConversationSegment]:
    """
    Segment a transcript into customer conversations by speaker turns.

    Args:
        words: Words with speaker labels. Unlabelled words count as the rep.
        rep_speaker: Speaker label of the sales rep.
        min_duration_seconds: Candidates shorter than this are dropped.
        small_gap_seconds: Gaps above this may start a new conversation
            when a new customer voice appears.
        large_gap_seconds: Gaps above this always start a new conversation.

    Returns:
        Retained conversations in chronological order, numbered 1..N.
    """
    if not words:
        return []

    ordered = sorted(words, key=lambda w: w.start)
    candidates = _split_candidates(
        ordered, rep_speaker, small_gap_seconds, large_gap_seconds,
    )

    raw = [
        _build_segment(c.words, idx, _candidate_speakers(c, rep_speaker))
        for idx, c in enumerate(candidates, start=1)
    ]
    kept: list[ConversationSegment] = []
    for seg in raw:
        if seg.duration_seconds >= min_duration_seconds and len(seg.speakers) >= MIN_SPEAKERS:
            kept.append(seg)
        else:
            logger.debug(
                "Dropping candidate %d: %.2fs, speakers=%s",
                seg.ordinal, seg.duration_seconds, list(seg.speakers),
            )

    retained = [
        _build_segment(seg.words, ordinal, seg.speakers)
        for ordinal, seg in enumerate(kept, start=1)
    ]

    logger.info(
        "Speaker segmentation: %d candidate(s) → %d conversation(s).",
        len(raw), len(retained),
    )
    return retained


# ---------------------------------------------------------------------------
# Silence-based segmentation
# ---------------------------------------------------------------------------


def segment_by_silence(
    words: Sequence[Word] | None,
    silence_threshold_seconds: float = SILENCE_THRESHOLD_SECONDS,
) -> list[ConversationSegment]:
    """
    Segment a transcript on long silences only.

    Any inter-word gap strictly greater than the threshold starts a new
    segment. No speaker, duration or count filtering is applied.
    """
    if not words:
        return []

    ordered = sorted(words, key=lambda w: w.start)
    groups: list[list[Word]] = [[ordered[0]]]
    for prev, word in zip(ordered, ordered[1:]):
        if word.start - prev.end > silence_threshold_seconds:
            groups.append([word])
        else:
            groups[-1].append(word)

    segments = [
        _build_segment(
            group, ordinal, _ordered_unique(w.speaker for w in group if w.speaker),
        )
        for ordinal, group in enumerate(groups, start=1)
    ]

    logger.info(
        "Silence segmentation (threshold %.1fs): %d segment(s).",
        silence_threshold_seconds, len(segments),
    )
    return segments


def segment_hybrid(
    words: Sequence[Word] | None,
    rep_speaker: str = DEFAULT_REP_SPEAKER,
    silence_threshold_seconds: float = SILENCE_THRESHOLD_SECONDS,
) -> list[ConversationSegment]:
    """
    Speaker-based segmentation with a silence-only fallback.

    Falls back to ``segment_by_silence`` when no word carries a speaker
    label (diarization failed) or when speaker-based segmentation finds
    at most one conversation.
    """
    if not words:
        return []

    if any(w.speaker is not None for w in words):
        segments = segment_conversations(words, rep_speaker)
        if len(segments) > 1:
            return segments
        logger.info(
            "Speaker segmentation found %d conversation(s), falling back to silence gaps.",
            len(segments),
        )
    else:
        logger.info("No speaker labels, using silence-gap segmentation.")

    return segment_by_silence(words, silence_threshold_seconds)


# ---------------------------------------------------------------------------
# Segment helpers
# ---------------------------------------------------------------------------


def conversation_text(segment: ConversationSegment) -> str:
    """Reconstruct a segment's text by joining its words with spaces."""
    return " ".join(w.text for w in segment.words)


def is_pii_in_conversation(span: PiiSpan, segment: ConversationSegment) -> bool:
    """True if the span overlaps the segment's time range."""
    return span.start < segment.end and span.end > segment.start


def count_pii_in_conversation(
    spans: Iterable[PiiSpan],
    segment: ConversationSegment,
) -> int:
    """Number of PII spans overlapping the segment."""
    return sum(1 for span in spans if is_pii_in_conversation(span, segment))
