"""
tests/test_pii_detector.py
===========================
PII Pattern Detector Tests

Test categories:
    1. Single-word value-shape rules
    2. Person names
    3. Multi-word windows (phone, credit card, address)
    4. Redaction policy parsing
    5. Clamping and range merging
"""

import os
import sys
import unittest

# Ensure project root is on sys.path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from doorstep.nlp.pii_detector import (
    detect_pii,
    match_address_window,
    match_credit_card_window,
    match_phone_window,
    merge_spans,
    parse_redaction_policy,
    validate_and_clamp,
)
from doorstep.schemas import PiiKind, PiiSpan, Word


def _words(*texts: str, step: float = 1.0) -> list[Word]:
    """Consecutive one-second words starting at 0."""
    return [Word(text, i * step, i * step + step * 0.8) for i, text in enumerate(texts)]


def _kinds(spans: list[PiiSpan]) -> list[PiiKind]:
    return [s.label for s in spans]


# ===================================================================
# Single-word rules
# ===================================================================


class TestSingleWordRules(unittest.TestCase):

    def test_email(self):
        spans = detect_pii(_words("reach", "me", "at", "jane@example.com"))
        self.assertEqual(spans, [PiiSpan(3.0, 3.8, PiiKind.EMAIL)])

    def test_formatted_phone_in_one_word(self):
        # The single-word rule and the phone window both fire on this word.
        spans = detect_pii(_words("555-123-4567"))
        self.assertEqual(_kinds(spans), [PiiKind.PHONE, PiiKind.PHONE])
        self.assertTrue(all(s.start == 0.0 and s.end == 0.8 for s in spans))

    def test_url(self):
        spans = detect_pii(_words("visit", "https://example.com/offer"))
        self.assertEqual(_kinds(spans), [PiiKind.URL])

    def test_full_address_in_one_word(self):
        spans = detect_pii(_words("742 Evergreen Terrace"))
        self.assertIn(PiiKind.ADDRESS, _kinds(spans))

    def test_plain_words_have_no_pii(self):
        self.assertEqual(detect_pii(_words("we", "treat", "for", "ants")), [])

    def test_empty_input(self):
        self.assertEqual(detect_pii([]), [])
        self.assertEqual(detect_pii(None), [])

    def test_empty_word_text_is_skipped(self):
        self.assertEqual(detect_pii(_words("", "  ")), [])


# ===================================================================
# Person names
# ===================================================================


class TestPersonNames(unittest.TestCase):

    def test_two_capitalized_words_yield_one_span(self):
        spans = detect_pii(_words("John", "Smith"))
        self.assertEqual(spans, [PiiSpan(0.0, 1.8, PiiKind.PERSON_NAME)])

    def test_three_names_do_not_overlap(self):
        spans = detect_pii(_words("Mary", "Ann", "Smith"))
        self.assertEqual(spans, [PiiSpan(0.0, 1.8, PiiKind.PERSON_NAME)])

    def test_short_capitalized_words_ignored(self):
        self.assertEqual(detect_pii(_words("Hi", "Bob")), [])

    def test_lowercase_second_word_ignored(self):
        self.assertEqual(detect_pii(_words("Good", "morning")), [])


# ===================================================================
# Multi-word windows
# ===================================================================


class TestPhoneWindow(unittest.TestCase):

    def test_spoken_digit_groups(self):
        words = _words("555", "123", "4567")
        self.assertEqual(match_phone_window(words, 0), 2)
        self.assertEqual(detect_pii(words), [PiiSpan(0.0, 2.8, PiiKind.PHONE)])

    def test_no_match_returns_none(self):
        self.assertIsNone(match_phone_window(_words("555", "hello"), 0))

    def test_start_past_end(self):
        self.assertIsNone(match_phone_window(_words("555"), 3))


class TestCreditCardWindow(unittest.TestCase):

    def test_four_spoken_groups(self):
        words = _words("4111", "1111", "1111", "1111")
        self.assertEqual(match_credit_card_window(words, 0), 3)
        self.assertIn(PiiSpan(0.0, 3.8, PiiKind.CREDIT_CARD), detect_pii(words))

    def test_invalid_issuer_digit(self):
        words = _words("1111", "1111", "1111", "1111")
        self.assertIsNone(match_credit_card_window(words, 0))


class TestAddressWindow(unittest.TestCase):

    def test_street_number_and_name(self):
        words = _words("742", "Evergreen")
        self.assertEqual(match_address_window(words, 0), 1)
        self.assertEqual(detect_pii(words), [PiiSpan(0.0, 1.8, PiiKind.ADDRESS)])

    def test_year_shaped_number_is_not_an_address(self):
        self.assertEqual(detect_pii(_words("2024", "Main")), [])

    def test_large_number_is_not_a_street_number(self):
        self.assertIsNone(match_address_window(_words("123456", "Main"), 0))

    def test_window_must_start_at_a_number(self):
        self.assertIsNone(match_address_window(_words("Main", "Street"), 0))


# ===================================================================
# Redaction policy
# ===================================================================


class TestRedactionPolicy(unittest.TestCase):

    def test_all(self):
        self.assertEqual(parse_redaction_policy("all"), set(PiiKind))
        self.assertEqual(parse_redaction_policy(" ALL "), set(PiiKind))

    def test_empty_means_all(self):
        self.assertEqual(parse_redaction_policy(None), set(PiiKind))
        self.assertEqual(parse_redaction_policy(""), set(PiiKind))

    def test_aliases(self):
        self.assertEqual(
            parse_redaction_policy("phone_number, location"),
            {PiiKind.PHONE, PiiKind.ADDRESS},
        )
        self.assertEqual(parse_redaction_policy("name"), {PiiKind.PERSON_NAME})

    def test_unknown_names_ignored(self):
        with self.assertLogs("doorstep.nlp.pii_detector", level="WARNING"):
            self.assertEqual(parse_redaction_policy("bogus, email"), {PiiKind.EMAIL})

    def test_policy_limits_detection(self):
        words = _words("John", "Smith", "jane@example.com")
        self.assertEqual(_kinds(detect_pii(words, "email")), [PiiKind.EMAIL])
        self.assertEqual(detect_pii(words, {PiiKind.PHONE}), [])


# ===================================================================
# Clamping and merging
# ===================================================================


class TestValidateAndClamp(unittest.TestCase):

    def test_clamps_overrun_and_drops_out_of_range(self):
        spans = [
            PiiSpan(10.0, 500.0, PiiKind.PHONE),
            PiiSpan(150.0, 200.0, PiiKind.EMAIL),
        ]
        self.assertEqual(
            validate_and_clamp(spans, 120.0),
            [PiiSpan(10.0, 120.0, PiiKind.PHONE)],
        )

    def test_drops_inverted_and_negative(self):
        spans = [
            PiiSpan(5.0, 5.0, PiiKind.PHONE),
            PiiSpan(-1.0, 2.0, PiiKind.PHONE),
            PiiSpan(1.0, 2.0, PiiKind.PHONE),
        ]
        self.assertEqual(validate_and_clamp(spans, 60.0), [PiiSpan(1.0, 2.0, PiiKind.PHONE)])

    def test_unknown_duration_leaves_spans_unchanged(self):
        spans = [PiiSpan(10.0, 500.0, PiiKind.PHONE)]
        self.assertEqual(validate_and_clamp(spans, 0), spans)


class TestMergeSpans(unittest.TestCase):

    def test_overlaps_merge_and_keep_first_label(self):
        spans = [
            PiiSpan(1.0, 3.0, PiiKind.PHONE),
            PiiSpan(0.0, 2.0, PiiKind.PERSON_NAME),
            PiiSpan(5.0, 6.0, PiiKind.EMAIL),
        ]
        self.assertEqual(
            merge_spans(spans),
            [PiiSpan(0.0, 3.0, PiiKind.PERSON_NAME), PiiSpan(5.0, 6.0, PiiKind.EMAIL)],
        )

    def test_coalesces_close_ranges_when_over_limit(self):
        spans = [
            PiiSpan(0.0, 1.0, PiiKind.PHONE),
            PiiSpan(2.0, 3.0, PiiKind.PHONE),
            PiiSpan(10.0, 11.0, PiiKind.PHONE),
        ]
        self.assertEqual(
            merge_spans(spans, max_ranges=1, max_gap_seconds=2.0),
            [PiiSpan(0.0, 3.0, PiiKind.PHONE), PiiSpan(10.0, 11.0, PiiKind.PHONE)],
        )

    def test_under_limit_keeps_gaps(self):
        spans = [PiiSpan(0.0, 1.0, PiiKind.PHONE), PiiSpan(1.5, 2.0, PiiKind.PHONE)]
        self.assertEqual(merge_spans(spans), spans)

    def test_empty(self):
        self.assertEqual(merge_spans([]), [])


if __name__ == "__main__":
    unittest.main(verbosity=2)
