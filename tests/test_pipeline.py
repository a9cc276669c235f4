"""
tests/test_pipeline.py
=======================
Pipeline Orchestration Tests

All tests inject a fake objection extractor, so no OpenAI API key is
required. Transcripts model a rep (speaker "A") walking between doors.
"""

import os
import sys
import unittest

# Ensure project root is on sys.path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from doorstep.pipeline import _analyze_segment, run_pipeline
from doorstep.schemas import (
    Category,
    ConversationSegment,
    ExtractionResult,
    ObjectionKind,
    ObjectionRecord,
    Word,
)
from doorstep.validator import RECORD_KEYS


def _w(text: str, start: float, end: float, speaker: str | None = "A") -> Word:
    return Word(text, start, end, speaker)


# Second door: polite brush-off, no price talk, no objection from the extractor.
SECOND_DOOR = [
    _w("good", 65.0, 66.0),
    _w("morning", 66.0, 67.0),
    _w("not", 69.0, 70.0, "C"),
    _w("interested", 70.0, 71.0, "C"),
    _w("thanks", 90.0, 91.0),
]

# First door: price pitch, customer needs to ask their spouse.
PITCH_TRANSCRIPT = [
    _w("hi", 0.0, 1.0),
    _w("the", 1.0, 2.0),
    _w("price", 2.0, 3.0),
    _w("is", 3.0, 4.0),
    _w("fifty", 4.0, 5.0),
    _w("dollars", 5.0, 6.0),
    _w("I", 8.0, 9.0, "B"),
    _w("need", 9.0, 10.0, "B"),
    _w("to", 10.0, 11.0, "B"),
    _w("ask", 11.0, 12.0, "B"),
    _w("my", 12.0, 13.0, "B"),
    _w("wife", 13.0, 14.0, "B"),
    _w("okay", 24.0, 25.0),
] + SECOND_DOOR

# First door: price talk followed by a name, an email and a phone number.
SALE_TRANSCRIPT = [
    _w("the", 0.0, 1.0),
    _w("price", 1.0, 2.0),
    _w("John", 3.0, 4.0, "B"),
    _w("Smith", 4.0, 5.0, "B"),
    _w("bob@example.com", 5.0, 6.0, "B"),
    _w("555", 6.0, 7.0, "B"),
    _w("123", 7.0, 8.0, "B"),
    _w("4567", 8.0, 9.0, "B"),
    _w("thanks", 24.0, 25.0),
] + SECOND_DOOR


def spouse_extractor(text: str) -> ExtractionResult:
    if "wife" in text:
        return ExtractionResult(
            objections=(ObjectionRecord(ObjectionKind.SPOUSE, "ask my wife"),)
        )
    return ExtractionResult()


def no_objection_extractor(text: str) -> ExtractionResult:
    return ExtractionResult()


def failing_extractor(text: str) -> ExtractionResult:
    raise RuntimeError("service exploded")


class TestRunPipeline(unittest.TestCase):

    def test_pitch_with_objection_is_persisted(self):
        result = run_pipeline(PITCH_TRANSCRIPT, extractor=spouse_extractor)

        self.assertEqual(result["redaction_policy"], "all")
        self.assertEqual(result["conversation_count"], 1)
        self.assertEqual(result["skipped_conversations"], 1)

        record = result["conversations"][0]
        self.assertEqual(set(record), set(RECORD_KEYS))
        self.assertEqual(record["conversation_number"], 1)
        self.assertEqual((record["start_time"], record["end_time"]), (0.0, 25.0))
        self.assertEqual(record["speakers"], ["A", "B"])
        self.assertEqual(record["sales_rep_speaker"], "A")
        self.assertEqual(record["word_count"], 13)
        self.assertEqual(record["duration_seconds"], 25.0)
        self.assertEqual(record["category"], "pitch")
        self.assertEqual(record["objections"], ["spouse"])
        self.assertEqual(
            record["objections_with_text"],
            [{"type": "spouse", "text": "ask my wife"}],
        )
        # "ask" starts at 11.0; playback starts 2s earlier.
        self.assertEqual(
            record["objection_timestamps"],
            [{"type": "spouse", "text": "ask my wife", "timestamp": 9.0}],
        )
        self.assertTrue(record["has_price_mention"])
        self.assertEqual(record["pii_redaction_count"], 0)
        self.assertTrue(record["analysis_completed"])
        self.assertIsNone(record["analysis_error"])

    def test_sale_is_persisted_without_objections(self):
        result = run_pipeline(SALE_TRANSCRIPT, extractor=no_objection_extractor)

        self.assertEqual(result["conversation_count"], 1)
        record = result["conversations"][0]
        self.assertEqual(record["category"], "sale")
        self.assertEqual(record["objections"], [])
        self.assertGreaterEqual(record["pii_redaction_count"], 3)

        labels = {span["label"] for span in result["pii_spans"]}
        self.assertTrue({"person_name", "email", "phone"} <= labels)

        starts = [r["start"] for r in result["redaction_ranges"]]
        self.assertEqual(starts, sorted(starts))
        for prev, cur in zip(result["redaction_ranges"], result["redaction_ranges"][1:]):
            self.assertLess(prev["end"], cur["start"])

    def test_redaction_policy_limits_spans_and_category(self):
        result = run_pipeline(
            SALE_TRANSCRIPT, redaction_policy="email", extractor=no_objection_extractor,
        )

        self.assertEqual(result["redaction_policy"], "email")
        self.assertEqual([s["label"] for s in result["pii_spans"]], ["email"])
        # One PII span alongside price talk is only a pitch, with nothing to act on.
        self.assertEqual(result["conversation_count"], 0)
        self.assertEqual(result["skipped_conversations"], 2)

    def test_failing_segment_does_not_abort_transcript(self):
        with self.assertLogs("doorstep.pipeline", level="ERROR"):
            result = run_pipeline(PITCH_TRANSCRIPT, extractor=failing_extractor)

        self.assertEqual(result["conversation_count"], 0)
        self.assertEqual(result["skipped_conversations"], 2)

    def test_unlabelled_transcript_uses_silence_segmentation(self):
        words = [_w(w.text, w.start, w.end, None) for w in PITCH_TRANSCRIPT]
        result = run_pipeline(words, rep_speaker="B", extractor=spouse_extractor)

        self.assertEqual(result["conversation_count"], 1)
        record = result["conversations"][0]
        self.assertEqual(record["speakers"], [])
        self.assertEqual(record["sales_rep_speaker"], "B")
        self.assertEqual(record["end_time"], 25.0)

    def test_failed_extraction_keeps_sale(self):
        result = run_pipeline(
            SALE_TRANSCRIPT,
            extractor=lambda text: ExtractionResult(error="no choices"),
        )

        self.assertEqual(result["conversation_count"], 1)
        record = result["conversations"][0]
        self.assertEqual(record["category"], "sale")
        self.assertFalse(record["analysis_completed"])
        self.assertEqual(record["analysis_error"], "no choices")

    def test_zero_duration_transcript_is_analyzed(self):
        words = [_w("a@b.com", 0.0, 0.0), _w("hi", 0.0, 0.0, "B")]

        result = run_pipeline(words, extractor=no_objection_extractor)

        self.assertEqual(
            result["pii_spans"], [{"start": 0.0, "end": 0.0, "label": "email"}],
        )
        self.assertEqual(result["conversation_count"], 0)
        self.assertEqual(result["skipped_conversations"], 1)

    def test_empty_transcript(self):
        for words in ([], None):
            result = run_pipeline(words, redaction_policy="phone")
            self.assertEqual(result["redaction_policy"], "phone")
            self.assertEqual(result["conversations"], [])
            self.assertEqual(result["pii_spans"], [])
            self.assertEqual(result["conversation_count"], 0)


class TestAnalyzeSegment(unittest.TestCase):

    def test_unexpected_error_yields_uncategorized(self):
        segment = ConversationSegment(
            ordinal=3,
            start=0.0,
            end=25.0,
            speakers=("A", "B"),
            words=tuple(PITCH_TRANSCRIPT[:13]),
        )

        with self.assertLogs("doorstep.pipeline", level="ERROR"):
            analysis = _analyze_segment(segment, [], failing_extractor)

        self.assertEqual(analysis.category, Category.UNCATEGORIZED)
        self.assertFalse(analysis.completed)
        self.assertEqual(analysis.error_reason, "service exploded")


if __name__ == "__main__":
    unittest.main(verbosity=2)
