"""
doorstep/nlp/pii_detector.py
=============================
PII Pattern Detector — Doorstep

Responsibility:
    - Detect personally identifiable information (PII) directly in the
      word stream and report it as timestamped spans
    - Honour the redaction policy ("all" or a comma-separated kind list)
    - Clamp spans to the recording duration for downstream audio redaction
    - Merge spans into a compact set of muting ranges

Detection runs five passes over the words:
    1. Single-word value-shape rules (first match wins per word)
    2. Person names (two consecutive capitalized words)
    3. Multi-word phone windows (spoken digit groups)
    4. Multi-word credit-card windows
    5. Multi-word street address / "City, ST ZIP" windows

Spans are returned in detection order, NOT sorted by time. A word matched
by both a single-word rule and a window pass yields two spans.

This module does NOT:
    - Modify word text or timestamps
    - Generate redacted audio
    - Call any LLM or external API
    - Raise on malformed words (empty text is skipped)
"""

import logging
import re
from collections.abc import Callable, Sequence

from doorstep.schemas import PiiKind, PiiSpan, Word

logger = logging.getLogger("doorstep.nlp.pii_detector")


# ---------------------------------------------------------------------------
# Value-shape patterns
# ---------------------------------------------------------------------------

_EMAIL_PATTERN: re.Pattern[str] = re.compile(
    r"[A-Z0-9._%+\-]+@[A-Z0-9.\-]+\.[A-Z]{2,}",
    re.IGNORECASE,
)

# Requires separators or parentheses: (555) 123-4567, 555-123-4567,
# +1 555 123 4567. Bare 10-digit runs (timestamps, order numbers) don't match.
_PHONE_PATTERN: re.Pattern[str] = re.compile(
    r"\b(?:\+?1[\s.\-]?)?(?:\(?\d{3}\)?[\s.\-]\d{3}[\s.\-]\d{4})\b",
)

_SSN_PATTERN: re.Pattern[str] = re.compile(
    r"\b\d{3}[\- ]\d{2}[\- ]\d{4}\b",
)

# Issuer prefix 4 / 51-55 / 37 / 6 followed by three groups of four.
_CREDIT_CARD_PATTERN: re.Pattern[str] = re.compile(
    r"\b(?:4\d{3}|5[1-5]\d{2}|37\d{2}|6\d{3})[\s\-]?\d{4}[\s\-]?\d{4}[\s\-]?\d{4}\b",
)

_URL_PATTERN: re.Pattern[str] = re.compile(
    r"\bhttps?://[^\s]+",
    re.IGNORECASE,
)

# Street number + name + optional suffix. Year-shaped numbers (19xx, 20xx)
# are excluded: "2008 Main Street" is a date reference, not an address.
_STREET_ADDRESS_PATTERN: re.Pattern[str] = re.compile(
    r"\b(?!(?:19|20)\d{2}\b)\d{1,6}\s+[A-Z][a-z]+(?:\s+[A-Z][a-z]+)*"
    r"(?:\s+(?:st|street|ave|avenue|blvd|boulevard|rd|road|dr|drive|ln|lane|"
    r"ct|court|cir|circle|way|pkwy|parkway|terrace|ter|pl|place))?\b",
    re.IGNORECASE,
)

# City, ST [ZIP]
_CITY_STATE_PATTERN: re.Pattern[str] = re.compile(
    r"\b[A-Z][a-z]+(?:\s+[A-Z][a-z]+)*,\s*[A-Z]{2}(?:\s+\d{5}(?:-\d{4})?)?\b",
)

_NAME_WORD_PATTERN: re.Pattern[str] = re.compile(r"^[A-Z][a-z]{2,}$")

_STREET_NUMBER_PATTERN: re.Pattern[str] = re.compile(r"^\d{1,6}$")

# Single-word rules in priority order. First match wins for each word.
_SINGLE_WORD_RULES: list[tuple[PiiKind, re.Pattern[str]]] = [
    (PiiKind.EMAIL, _EMAIL_PATTERN),
    (PiiKind.PHONE, _PHONE_PATTERN),
    (PiiKind.SSN, _SSN_PATTERN),
    (PiiKind.CREDIT_CARD, _CREDIT_CARD_PATTERN),
    (PiiKind.URL, _URL_PATTERN),
    (PiiKind.ADDRESS, _STREET_ADDRESS_PATTERN),
]


# ---------------------------------------------------------------------------
# Window limits
# ---------------------------------------------------------------------------

PHONE_MAX_WINDOW: int = 6
PHONE_MAX_CHARS: int = 30

CREDIT_CARD_MAX_WINDOW: int = 12
CREDIT_CARD_MAX_CHARS: int = 50
CREDIT_CARD_MAX_GROUPS: int = 5
_CARD_ISSUER_DIGITS: set[str] = {"4", "5", "3", "6"}

ADDRESS_MAX_WINDOW: int = 6
_MAX_STREET_NUMBER: int = 99999

# Spans kept apart by more than this are never coalesced by merge_spans().
MERGE_MAX_GAP_SECONDS: float = 2.0
MERGE_MAX_RANGES: int = 180


# ---------------------------------------------------------------------------
# Redaction policy
# ---------------------------------------------------------------------------

_KIND_ALIASES: dict[PiiKind, set[str]] = {
    PiiKind.EMAIL: {"email", "email_address", "email address"},
    PiiKind.PHONE: {"phone", "phone_number", "phone-number", "phone number"},
    PiiKind.SSN: {"ssn", "social_security", "us_social_security_number"},
    PiiKind.CREDIT_CARD: {
        "credit_card", "credit card", "credit_card_number", "credit card number",
    },
    PiiKind.URL: {"url", "link"},
    PiiKind.ADDRESS: {"address", "location", "location_address", "location address"},
    PiiKind.PERSON_NAME: {"person_name", "name", "person name"},
}


def parse_redaction_policy(policy: str | None) -> set[PiiKind]:
    """
    Resolve a redaction policy string into the set of enabled PII kinds.

    ``"all"`` (or an empty/None policy) enables every kind. Otherwise the
    policy is a comma-separated list of kind names or their synonyms,
    e.g. ``"phone, location"`` enables phone and address. Unknown names
    are ignored.
    """
    normalized = (policy or "all").strip().lower()
    if not normalized or normalized == "all":
        return set(PiiKind)

    parts = {p.strip() for p in normalized.split(",") if p.strip()}
    enabled = {kind for kind, aliases in _KIND_ALIASES.items() if parts & aliases}

    unknown = parts - set().union(*_KIND_ALIASES.values())
    if unknown:
        logger.warning("Ignoring unknown PII kinds in policy: %s", sorted(unknown))
    return enabled


# ---------------------------------------------------------------------------
# Window strategies: pure (words, start_index) -> end_index | None
# ---------------------------------------------------------------------------


def _word_text(word: Word) -> str:
    return (word.text or "").strip()


def match_phone_window(words: Sequence[Word], start: int) -> int | None:
    """
    Grow a window from ``start`` until the joined text looks like a phone
    number. Returns the index of the window's last word, or None.
    """
    combined = ""
    for offset in range(PHONE_MAX_WINDOW):
        idx = start + offset
        if idx >= len(words):
            break
        segment = _word_text(words[idx])
        if segment:
            combined = f"{combined} {segment}" if combined else segment

        if _PHONE_PATTERN.search(combined):
            return idx
        if len(combined) > PHONE_MAX_CHARS:
            break
    return None


def match_credit_card_window(words: Sequence[Word], start: int) -> int | None:
    """
    Grow a window from ``start`` until it holds a card number, either as a
    regex match on the joined text or as four spoken 4-digit groups whose
    first group begins with a valid issuer digit.
    """
    combined = ""
    digit_groups: list[str] = []
    for offset in range(CREDIT_CARD_MAX_WINDOW):
        idx = start + offset
        if idx >= len(words):
            break
        segment = _word_text(words[idx])
        if segment:
            combined = f"{combined} {segment}" if combined else segment

        digits = re.sub(r"\D", "", segment)
        if 3 <= len(digits) <= 4:
            digit_groups.append(digits)

        if _CREDIT_CARD_PATTERN.search(combined):
            return idx
        if (
            len(digit_groups) == 4
            and all(len(g) == 4 for g in digit_groups)
            and digit_groups[0][0] in _CARD_ISSUER_DIGITS
        ):
            return idx
        if len(combined) > CREDIT_CARD_MAX_CHARS or len(digit_groups) > CREDIT_CARD_MAX_GROUPS:
            break
    return None


def _is_street_number(text: str) -> bool:
    if not _STREET_NUMBER_PATTERN.match(text):
        return False
    number = int(text)
    if 1900 <= number <= 2099:
        return False
    return number <= _MAX_STREET_NUMBER


def match_address_window(words: Sequence[Word], start: int) -> int | None:
    """
    Grow a window from a street-number word until it reads as a street
    address or a "City, ST [ZIP]" location. Windows never start at
    year-shaped or implausibly large numbers.
    """
    if start >= len(words) or not _is_street_number(_word_text(words[start])):
        return None

    combined = ""
    for offset in range(ADDRESS_MAX_WINDOW):
        idx = start + offset
        if idx >= len(words):
            break
        segment = _word_text(words[idx])
        if segment:
            combined = f"{combined} {segment}" if combined else segment

        if _STREET_ADDRESS_PATTERN.search(combined) or _CITY_STATE_PATTERN.search(combined):
            return idx
    return None


# ---------------------------------------------------------------------------
# Passes
# ---------------------------------------------------------------------------


def _single_word_pass(
    words: Sequence[Word], enabled: set[PiiKind], spans: list[PiiSpan],
) -> None:
    rules = [(kind, pattern) for kind, pattern in _SINGLE_WORD_RULES if kind in enabled]
    if not rules:
        return
    for word in words:
        value = _word_text(word)
        if not value:
            continue
        for kind, pattern in rules:
            if pattern.search(value):
                spans.append(PiiSpan(word.start, word.end, kind))
                break


def _name_pass(words: Sequence[Word], spans: list[PiiSpan]) -> None:
    i = 0
    while i < len(words) - 1:
        first, second = words[i], words[i + 1]
        if _NAME_WORD_PATTERN.match(first.text or "") and _NAME_WORD_PATTERN.match(
            second.text or ""
        ):
            spans.append(PiiSpan(first.start, second.end, PiiKind.PERSON_NAME))
            # Skip the second word so "Mary Ann Smith" is not read as two names.
            i += 2
        else:
            i += 1


def _window_pass(
    words: Sequence[Word],
    kind: PiiKind,
    matcher: Callable[[Sequence[Word], int], int | None],
    spans: list[PiiSpan],
) -> None:
    i = 0
    while i < len(words):
        end = matcher(words, i)
        if end is None:
            i += 1
            continue
        spans.append(PiiSpan(words[i].start, words[end].end, kind))
        i = end + 1


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def detect_pii(
    words: Sequence[Word] | None,
    enabled_kinds: set[PiiKind] | str | None = "all",
) -> list[PiiSpan]:
    """
    Detect PII spans in a word-level transcript.

    Args:
        words: Words ordered by start time. None or empty yields [].
        enabled_kinds: A set of PiiKind values, or a redaction policy
            string (``"all"`` or a comma-separated kind list).

    Returns:
        PiiSpan list in detection order (single-word rules, names, phone
        windows, credit-card windows, address windows). Not sorted.
    """
    if not words:
        return []

    if enabled_kinds is None or isinstance(enabled_kinds, str):
        enabled = parse_redaction_policy(enabled_kinds)
    else:
        enabled = set(enabled_kinds)

    spans: list[PiiSpan] = []

    _single_word_pass(words, enabled, spans)

    if PiiKind.PERSON_NAME in enabled:
        _name_pass(words, spans)
    if PiiKind.PHONE in enabled:
        _window_pass(words, PiiKind.PHONE, match_phone_window, spans)
    if PiiKind.CREDIT_CARD in enabled:
        _window_pass(words, PiiKind.CREDIT_CARD, match_credit_card_window, spans)
    if PiiKind.ADDRESS in enabled:
        _window_pass(words, PiiKind.ADDRESS, match_address_window, spans)

    logger.info(
        "PII detection complete: %d span(s) across %d words (%d kind(s) enabled).",
        len(spans), len(words), len(enabled),
    )
    return spans


def validate_and_clamp(
    spans: Sequence[PiiSpan],
    total_duration_seconds: float,
) -> list[PiiSpan]:
    """
    Drop malformed spans and clamp the rest to the recording duration.

    Downstream audio processing cannot tolerate ranges outside the audio,
    so spans with negative or inverted bounds, and spans starting at or
    past the end of the recording, are dropped; a span overrunning the
    end is shortened to end there.

    A non-positive duration means "unknown": spans are returned unchanged.
    """
    if not spans or total_duration_seconds <= 0:
        return list(spans)

    validated: list[PiiSpan] = []
    for span in spans:
        if span.start < 0 or span.end < 0 or span.start >= span.end:
            logger.warning("Skipping invalid PII range: %s-%s", span.start, span.end)
            continue

        if span.start >= total_duration_seconds:
            logger.warning(
                "Skipping PII range beyond audio duration: %s-%s (duration: %s)",
                span.start, span.end, total_duration_seconds,
            )
            continue

        if span.end > total_duration_seconds:
            logger.warning(
                "Clamping PII range end from %s to %s",
                span.end, total_duration_seconds,
            )
            span = PiiSpan(span.start, total_duration_seconds, span.label)

        validated.append(span)

    return validated


def merge_spans(
    spans: Sequence[PiiSpan],
    max_ranges: int = MERGE_MAX_RANGES,
    max_gap_seconds: float = MERGE_MAX_GAP_SECONDS,
) -> list[PiiSpan]:
    """
    Collapse spans into time-sorted, non-overlapping muting ranges.

    Overlapping spans are merged first. While more than ``max_ranges``
    remain, neighbouring ranges at most ``max_gap_seconds`` apart are
    paired up; this stops as soon as a round fails to reduce the count.
    A merged range keeps the label of its earliest span.
    """
    if not spans:
        return []

    merged: list[PiiSpan] = []
    for span in sorted(spans, key=lambda s: s.start):
        if merged and span.start <= merged[-1].end:
            last = merged[-1]
            merged[-1] = PiiSpan(last.start, max(last.end, span.end), last.label)
        else:
            merged.append(span)

    coalesced = merged
    while len(coalesced) > max_ranges:
        paired: list[PiiSpan] = []
        i = 0
        while i < len(coalesced):
            first = coalesced[i]
            second = coalesced[i + 1] if i + 1 < len(coalesced) else None
            if second is not None and second.start - first.end <= max_gap_seconds:
                paired.append(PiiSpan(first.start, second.end, first.label))
                i += 2
            else:
                paired.append(first)
                i += 1

        if len(paired) == len(coalesced):
            break
        coalesced = paired

    logger.debug("Merged %d PII span(s) into %d range(s).", len(spans), len(coalesced))
    return coalesced
