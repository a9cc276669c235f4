# doorstep/__init__.py
# =====================
# Doorstep: door-to-door sales transcript analysis
#
# Stages (see pipeline.py for the orchestration order):
#   - nlp/pii_detector.py: PII spans and muting ranges
#   - nlp/segmenter.py:    split a shift recording into conversations
#   - nlp/classifier.py:   category + objections per conversation
#   - nlp/alignment.py:    playback timestamps for objections

__version__ = "1.0.0"
