"""
tests/test_schemas.py
======================
Data Type Tests: payload parsing and derived properties.
"""

import os
import sys
import unittest

# Ensure project root is on sys.path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from doorstep.schemas import (
    ExtractionResult,
    PiiKind,
    PiiSpan,
    Word,
    words_from_payload,
)


class TestWordsFromPayload(unittest.TestCase):

    def test_seconds(self):
        words = words_from_payload([{"text": "hi", "start": 1, "end": 2, "speaker": "A"}])
        self.assertEqual(words, [Word("hi", 1.0, 2.0, "A")])

    def test_milliseconds(self):
        words = words_from_payload(
            [{"text": "hi", "start": 1500, "end": 2250, "speaker": "B"}], time_unit="ms",
        )
        self.assertEqual(words, [Word("hi", 1.5, 2.25, "B")])

    def test_alternate_keys(self):
        words = words_from_payload(
            [{"word": "hi", "startSeconds": 3, "endSeconds": 4, "speakerLabel": "C"}]
        )
        self.assertEqual(words, [Word("hi", 3.0, 4.0, "C")])

    def test_missing_speaker(self):
        self.assertIsNone(words_from_payload([{"text": "hi", "start": 0, "end": 1}])[0].speaker)

    def test_empty(self):
        self.assertEqual(words_from_payload(None), [])
        self.assertEqual(words_from_payload([]), [])

    def test_unknown_unit(self):
        with self.assertRaises(ValueError):
            words_from_payload([], time_unit="minutes")


class TestDerivedProperties(unittest.TestCase):

    def test_span_to_dict(self):
        self.assertEqual(
            PiiSpan(1.0, 2.0, PiiKind.CREDIT_CARD).to_dict(),
            {"start": 1.0, "end": 2.0, "label": "credit_card"},
        )

    def test_extraction_result_ok(self):
        self.assertTrue(ExtractionResult().ok)
        self.assertFalse(ExtractionResult(error="timeout").ok)


if __name__ == "__main__":
    unittest.main(verbosity=2)
