# doorstep/nlp/__init__.py
# =========================
# NLP Layer — Doorstep
#
# Rule-based stages:
#   - PII detection over word-level transcripts (pii_detector.py)
#   - Conversation segmentation by speaker turns and silence (segmenter.py)
#   - Price-mention detection and categorization (classifier.py)
#   - Objection timestamp alignment (alignment.py)
#
# LLM-backed stage:
#   - Customer objection extraction via OpenAI (objections.py)

from doorstep.nlp.alignment import align_objections, find_text_timestamp  # noqa: F401
from doorstep.nlp.classifier import (  # noqa: F401
    categorize_conversation,
    classify_conversation,
    detect_price_mention,
    format_category,
    format_objection_kind,
    has_actionable_signal,
)
from doorstep.nlp.objections import extract_objections  # noqa: F401
from doorstep.nlp.pii_detector import (  # noqa: F401
    detect_pii,
    merge_spans,
    parse_redaction_policy,
    validate_and_clamp,
)
from doorstep.nlp.segmenter import (  # noqa: F401
    conversation_text,
    count_pii_in_conversation,
    is_pii_in_conversation,
    segment_by_silence,
    segment_conversations,
    segment_hybrid,
)
