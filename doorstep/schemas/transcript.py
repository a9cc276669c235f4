"""
doorstep/schemas/transcript.py
===============================
Transcript Data Types — Doorstep

Responsibility:
    - Define the immutable word-level transcript record (Word)
    - Define PII span and conversation segment records
    - Convert inbound word payloads (seconds or milliseconds) into Words

Words are produced entirely by the external transcription service. They are
ordered by start time and never modified after parsing.

This module does NOT:
    - Detect PII or segment conversations
    - Validate ordering or timestamp sanity (handled by validator.py)
    - Call any LLM or external API
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


# ---------------------------------------------------------------------------
# PII kinds
# ---------------------------------------------------------------------------


class PiiKind(str, Enum):
    """Kinds of personally identifiable information detected in a transcript."""

    EMAIL = "email"
    PHONE = "phone"
    SSN = "ssn"
    CREDIT_CARD = "credit_card"
    URL = "url"
    ADDRESS = "address"
    PERSON_NAME = "person_name"


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Word:
    """A single transcribed word with timing and an optional speaker label."""

    text: str
    start: float
    end: float
    speaker: str | None = None


@dataclass(frozen=True)
class PiiSpan:
    """A timestamped region of the recording flagged as PII."""

    start: float
    end: float
    label: PiiKind

    def to_dict(self) -> dict[str, Any]:
        return {"start": self.start, "end": self.end, "label": self.label.value}


@dataclass(frozen=True)
class ConversationSegment:
    """
    A contiguous run of words judged to be one interaction at one door.

    ``speakers`` keeps first-seen order so that the persisted speaker list
    is stable across runs.
    """

    ordinal: int
    start: float
    end: float
    speakers: tuple[str, ...]
    words: tuple[Word, ...] = field(repr=False)

    @property
    def word_count(self) -> int:
        return len(self.words)

    @property
    def duration_seconds(self) -> float:
        return round(self.end - self.start, 2)


# ---------------------------------------------------------------------------
# Inbound payload parsing
# ---------------------------------------------------------------------------

TEXT_KEYS = ("text", "word")
START_KEYS = ("start", "start_seconds", "startSeconds")
END_KEYS = ("end", "end_seconds", "endSeconds")
SPEAKER_KEYS = ("speaker", "speaker_label", "speakerLabel")


def _first_present(item: dict[str, Any], keys: tuple[str, ...]) -> Any:
    for key in keys:
        if key in item:
            return item[key]
    return None


def words_from_payload(
    items: list[dict[str, Any]] | None,
    time_unit: str = "s",
) -> list[Word]:
    """
    Build Word records from raw transcript dicts.

    Accepts ``text``/``word`` for the token, ``start``/``end`` (or their
    ``*_seconds`` / camelCase variants) for timing and an optional
    ``speaker`` label. When ``time_unit`` is ``"ms"`` timestamps are
    converted to seconds, matching transcription services that report
    word timings in milliseconds.

    Args:
        items: Raw word dicts, or None.
        time_unit: ``"s"`` (default) or ``"ms"``.

    Returns:
        List of Word records in input order. ``None`` or ``[]`` yields ``[]``.

    Raises:
        ValueError: If ``time_unit`` is not recognised.
    """
    if time_unit not in ("s", "ms"):
        raise ValueError(f"Unsupported time unit: {time_unit!r}")
    if not items:
        return []

    scale = 1000.0 if time_unit == "ms" else 1.0
    words: list[Word] = []
    for item in items:
        speaker = _first_present(item, SPEAKER_KEYS)
        words.append(
            Word(
                text=str(_first_present(item, TEXT_KEYS) or ""),
                start=float(_first_present(item, START_KEYS)) / scale,
                end=float(_first_present(item, END_KEYS)) / scale,
                speaker=str(speaker) if speaker is not None else None,
            )
        )
    return words
