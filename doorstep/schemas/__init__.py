# doorstep/schemas/__init__.py
# =============================
# Data Types — Doorstep
#
# Immutable records shared by every stage:
#   - transcript.py: Word, PiiKind, PiiSpan, ConversationSegment, payload parsing
#   - analysis.py:   Category, ObjectionKind, ObjectionRecord,
#                    ExtractionResult, ConversationAnalysis

from doorstep.schemas.analysis import (  # noqa: F401
    VALID_OBJECTION_KINDS,
    Category,
    ConversationAnalysis,
    ExtractionResult,
    ObjectionKind,
    ObjectionRecord,
)
from doorstep.schemas.transcript import (  # noqa: F401
    ConversationSegment,
    PiiKind,
    PiiSpan,
    Word,
    words_from_payload,
)

__all__ = [
    "Category",
    "ConversationAnalysis",
    "ConversationSegment",
    "ExtractionResult",
    "ObjectionKind",
    "ObjectionRecord",
    "PiiKind",
    "PiiSpan",
    "VALID_OBJECTION_KINDS",
    "Word",
    "words_from_payload",
]
