# doorstep/api/__init__.py
# =========================
# API Layer — Doorstep
#
#   - POST /api/v1/analyze-transcript: run the pipeline over a word list
#   - GET  /health: liveness check
#
# The pipeline is synchronous; endpoints run it in a worker thread.
