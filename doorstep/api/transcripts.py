"""
doorstep/api/transcripts.py
============================
Transcript Analysis Endpoint — Doorstep

Responsibility:
    - Expose POST /api/v1/analyze-transcript
    - Validate the inbound word list (malformed words → 422)
    - Delegate analysis to doorstep.pipeline.run_pipeline in a worker thread
    - POST the result to the configured webhook sink, if any
    - Expose GET /health

This module does NOT:
    - Transcribe audio (words arrive already transcribed)
    - Persist records itself (the webhook sink owns storage)
"""

import asyncio
import logging
import os
from typing import Any, Literal

import aiohttp
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from doorstep.nlp.segmenter import DEFAULT_REP_SPEAKER
from doorstep.pipeline import run_pipeline
from doorstep.schemas import words_from_payload
from doorstep.validator import TranscriptValidationError, verify_words

logger = logging.getLogger("doorstep.api")

WEBHOOK_URL: str | None = os.getenv("WEBHOOK_URL")
WEBHOOK_TIMEOUT_SECONDS: float = 30.0

DEFAULT_REDACTION_POLICY: str = os.getenv("PII_FIELDS", "all")
DEFAULT_SALES_REP_SPEAKER: str = os.getenv("SALES_REP_SPEAKER", DEFAULT_REP_SPEAKER)


# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Doorstep",
    description="Door-to-door sales transcript segmentation and objection analysis.",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class TranscriptRequest(BaseModel):
    """Word-level transcript plus per-request overrides."""

    words: list[dict[str, Any]] = Field(default_factory=list)
    redaction_policy: str | None = None
    sales_rep_speaker: str | None = None
    time_unit: Literal["s", "ms"] = "s"


# ---------------------------------------------------------------------------
# Record sink
# ---------------------------------------------------------------------------


async def _post_to_webhook(payload: dict[str, Any]) -> None:
    """POST the result to WEBHOOK_URL. Failures are logged, never raised."""
    if not WEBHOOK_URL:
        logger.debug("WEBHOOK_URL not configured, skipping POST.")
        return

    try:
        async with aiohttp.ClientSession() as session:
            async with session.post(
                WEBHOOK_URL,
                json=payload,
                headers={"Content-Type": "application/json"},
                timeout=aiohttp.ClientTimeout(total=WEBHOOK_TIMEOUT_SECONDS),
            ) as resp:
                logger.info("Webhook POST to %s: status %d", WEBHOOK_URL, resp.status)
    except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
        logger.error("Webhook POST failed: %s", exc)


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.post("/api/v1/analyze-transcript")
async def analyze_transcript(request: TranscriptRequest):
    """
    Run PII detection, segmentation and classification over one transcript.

    Returns:
        The pipeline result: redaction policy, PII spans, muting ranges and
        the persisted conversation records.
    """
    logger.info("Transcript received: %d words.", len(request.words))

    try:
        verify_words(request.words)
    except TranscriptValidationError as exc:
        raise HTTPException(status_code=422, detail=exc.message)

    words = words_from_payload(request.words, request.time_unit)
    policy = request.redaction_policy or DEFAULT_REDACTION_POLICY
    rep_speaker = request.sales_rep_speaker or DEFAULT_SALES_REP_SPEAKER

    try:
        result = await asyncio.to_thread(
            run_pipeline, words, policy, rep_speaker,
        )
    except TranscriptValidationError as exc:
        logger.error("Stage verification failed: %s", exc)
        raise HTTPException(
            status_code=500,
            detail=f"Pipeline verification error in {exc.stage}: {exc.message}",
        )
    except Exception as exc:
        logger.error("Pipeline unexpected error: %s", exc, exc_info=True)
        raise HTTPException(status_code=500, detail=f"Pipeline failed: {exc}")

    logger.info(
        "Analysis complete: %d conversation record(s).", result["conversation_count"],
    )

    await _post_to_webhook(result)
    return JSONResponse(status_code=200, content=result)
