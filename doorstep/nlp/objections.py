"""
doorstep/nlp/objections.py
===========================
Objection Extractor — Doorstep

Responsibility:
    - Send one conversation's text to the OpenAI API and ask for customer
      objections restricted to the eight ObjectionKind values
    - Parse the free-form response defensively: take the first well-formed
      JSON array anywhere in the text, discard entries with unknown kinds
    - Return an ExtractionResult: objections, or the reason there are none

Every failure (missing API key, connection error, timeout, unparseable
output) is returned as ``ExtractionResult(error=...)``. This function never
raises, so one bad conversation cannot stop analysis of the others.

The call is made exactly once per conversation: no retries, no batching.

This module does NOT:
    - Categorize conversations (handled by classifier.py)
    - Align objection text to timestamps (handled by alignment.py)
    - Detect PII or segment conversations
"""

import json
import logging
import os
from typing import Any

from openai import OpenAI, OpenAIError

from doorstep.schemas import (
    VALID_OBJECTION_KINDS,
    ExtractionResult,
    ObjectionKind,
    ObjectionRecord,
)

logger = logging.getLogger("doorstep.nlp.objections")


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

OBJECTION_MODEL: str = os.getenv("OBJECTION_MODEL", "gpt-4o-mini")
OBJECTION_TIMEOUT_SECONDS: float = float(os.getenv("OBJECTION_TIMEOUT_SECONDS", "30"))
OBJECTION_MAX_TOKENS: int = 300

MISSING_KEY_ERROR: str = "No OpenAI API key provided"
EMPTY_RESPONSE_ERROR: str = "Objection response contained no choices"


# ---------------------------------------------------------------------------
# OpenAI prompt: door-to-door objection extraction
# ---------------------------------------------------------------------------

_SYSTEM_PROMPT: str = (
    "You analyze door-to-door PEST CONTROL sales conversations to identify "
    "customer objections and the EXACT PHRASES where they occur. The "
    "salesperson is selling ongoing pest treatment subscriptions. Listen "
    "carefully for objections, even subtle ones.\n\n"
    "OBJECTION TYPES:\n"
    '1. "diy": customer handles it themselves. '
    'Examples: "I spray myself", "I do my own pest control".\n'
    '2. "spouse": needs to consult a spouse or partner. '
    'Examples: "I need to talk to my wife", "my husband handles this".\n'
    '3. "price": price objection. '
    'Examples: "too expensive", "can\'t afford it", "out of my budget".\n'
    '4. "competitor": already using another service. '
    'Examples: "I already have someone", "I use another company".\n'
    '5. "delay": wants to delay or think about it. '
    'Examples: "need to think about it", "can I get a card", "call me back".\n'
    '6. "not_interested": direct rejection. '
    'Examples: "not interested", "we\'re good", "I\'m all set".\n'
    '7. "no_problem": claims no pest problem. '
    'Examples: "don\'t see any bugs", "we don\'t have issues".\n'
    '8. "no_soliciting": no soliciting or immediate rejection. '
    'Examples: "no soliciting", "can\'t you read the sign".\n\n'
    "RULES:\n"
    "- Return ONLY objections stated by THE CUSTOMER, never the sales rep.\n"
    '- "text" MUST be an exact verbatim quote of 3-10 words.\n'
    "- If the customer raises the same objection several times, include it once.\n"
    "- If unsure, err on the side of including it.\n"
    '- Return ONLY a JSON array of objects with keys "type" and "text". '
    "If there are no objections, return [].\n\n"
    "EXAMPLE OUTPUT:\n"
    '[{"type": "price", "text": "that\'s more than I want to pay"}, '
    '{"type": "spouse", "text": "I\'d have to ask my wife"}]\n'
)


# ---------------------------------------------------------------------------
# Response parsing
# ---------------------------------------------------------------------------


def _first_json_array(raw: str) -> list[Any]:
    """
    Decode the first well-formed JSON array literal found in ``raw``.

    Raises:
        ValueError: If no position in the text decodes to a JSON array.
    """
    decoder = json.JSONDecoder()
    idx = raw.find("[")
    while idx != -1:
        try:
            value, _ = decoder.raw_decode(raw, idx)
        except json.JSONDecodeError:
            value = None
        if isinstance(value, list):
            return value
        idx = raw.find("[", idx + 1)
    raise ValueError(f"No JSON array found in objection response: {raw!r}")


def parse_objection_response(raw: str) -> list[ObjectionRecord]:
    """
    Parse the model output into objection records.

    Surrounding prose is tolerated. Entries that are not objects, whose
    ``type`` is not a known objection kind, or whose ``text`` is not a
    non-empty string are discarded.

    Raises:
        ValueError: If the response holds no decodable JSON array.
    """
    entries = _first_json_array(raw or "")

    objections: list[ObjectionRecord] = []
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        kind = entry.get("type")
        text = entry.get("text")
        if kind not in VALID_OBJECTION_KINDS:
            logger.debug("Discarding objection with unknown type: %r", kind)
            continue
        if not isinstance(text, str) or not text.strip():
            continue
        objections.append(ObjectionRecord(ObjectionKind(kind), text.strip()))
    return objections


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def extract_objections(
    conversation_text: str,
    api_key: str | None = None,
) -> ExtractionResult:
    """
    Extract customer objections from one conversation's text.

    Args:
        conversation_text: Space-joined words of one conversation segment.
        api_key: OpenAI API key; defaults to the ``OPENAI_API_KEY``
            environment variable.

    Returns:
        ExtractionResult with the objections found, or with ``error`` set
        when the key is missing, the API call fails or the output cannot
        be parsed. Never raises.
    """
    api_key = api_key or os.environ.get("OPENAI_API_KEY")
    if not api_key:
        logger.warning("OPENAI_API_KEY not set, skipping objection extraction.")
        return ExtractionResult(error=MISSING_KEY_ERROR)

    if not conversation_text or not conversation_text.strip():
        return ExtractionResult()

    try:
        client = OpenAI(
            api_key=api_key,
            timeout=OBJECTION_TIMEOUT_SECONDS,
            max_retries=0,
        )
        response = client.chat.completions.create(
            model=OBJECTION_MODEL,
            messages=[
                {"role": "system", "content": _SYSTEM_PROMPT},
                {"role": "user", "content": f"CONVERSATION TEXT:\n{conversation_text}"},
            ],
            temperature=0.0,
            max_tokens=OBJECTION_MAX_TOKENS,
        )
    except OpenAIError as exc:
        logger.error("Objection extraction call failed: %s", exc)
        return ExtractionResult(error=str(exc) or type(exc).__name__)

    if not response.choices:
        logger.warning("Objection response contained no choices.")
        return ExtractionResult(error=EMPTY_RESPONSE_ERROR)

    raw_content = response.choices[0].message.content or ""
    logger.debug("OpenAI raw objection response: %s", raw_content)

    try:
        objections = parse_objection_response(raw_content)
    except ValueError as exc:
        logger.warning("Failed to parse objection response: %s", exc)
        return ExtractionResult(error=str(exc))

    logger.info("Objection extraction complete: %d objection(s).", len(objections))
    return ExtractionResult(objections=tuple(objections))
