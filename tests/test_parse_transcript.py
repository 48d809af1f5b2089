"""
Unit tests for parse_transcript.py.
"""

import unittest
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

import parse_transcript

MEET = "Interviewer: So tell me about you. Jamie: Okay so I game a lot. Interviewer: Nice!"

VTT = """WEBVTT

1
00:00:01.000 --> 00:00:03.000
<v Jamie>Okay so &amp; like</v>

2
00:00:04.000 --> 00:00:05.000
second line
"""

SRT = """1
00:00:01,000 --> 00:00:02,000
{\\an8}<i>Hello</i> there

2
00:00:03,000 --> 00:00:04,000
General Kenobi
"""


class TestExtractSpeakers(unittest.TestCase):

    def test_interviewer_and_model(self):
        info = parse_transcript.extract_speakers(MEET, "Interviewer")
        self.assertEqual(info["speakers"], ["Interviewer", "Jamie"])
        self.assertEqual(info["interviewer"], "Interviewer")
        self.assertEqual(info["model"], "Jamie")
        self.assertIsNone(info["error"])

    def test_interviewer_match_is_case_insensitive(self):
        info = parse_transcript.extract_speakers(MEET, "interviewer")
        self.assertEqual(info["model"], "Jamie")

    def test_multiple_models(self):
        info = parse_transcript.extract_speakers("Interviewer: hi. Jamie: yo. Sam Lee: hey.", "Interviewer")
        self.assertTrue(info["has_multiple_models"])
        self.assertIsNone(info["model"])
        self.assertIn("Sam Lee", info["speakers"])

    def test_only_interviewer(self):
        info = parse_transcript.extract_speakers("Interviewer: hello there", "Interviewer")
        self.assertEqual(info["error"], "No model detected in transcript - only interviewer found")

    def test_no_speakers(self):
        info = parse_transcript.extract_speakers("just some words", "Interviewer")
        self.assertEqual(info["error"], "No speakers detected in transcript")


class TestFormats(unittest.TestCase):

    def test_google_meet_detection_and_split(self):
        self.assertTrue(parse_transcript.is_google_meet_format(MEET))
        self.assertFalse(parse_transcript.is_google_meet_format("Jamie: one line only"))
        self.assertEqual(
            parse_transcript.parse_google_meet_transcript(MEET),
            "Interviewer: So tell me about you.\n\nJamie: Okay so I game a lot.\n\nInterviewer: Nice!",
        )

    def test_vtt(self):
        self.assertEqual(parse_transcript.parse_vtt(VTT), "Okay so & like second line")

    def test_srt(self):
        self.assertEqual(parse_transcript.parse_srt(SRT), "Hello there General Kenobi")

    def test_txt_normalizes_newlines(self):
        self.assertEqual(parse_transcript.parse_txt("  line one\r\nline two  "), "line one\nline two")

    def test_clean_speaker_name(self):
        self.assertEqual(parse_transcript.clean_speaker_name("  jAMIE   rivera "), "Jamie Rivera")

    def test_supported_files(self):
        self.assertTrue(parse_transcript.is_supported_transcript_file("call.VTT"))
        self.assertTrue(parse_transcript.is_supported_transcript_file("notes.txt"))
        self.assertFalse(parse_transcript.is_supported_transcript_file("deck.pdf"))


class TestParseTranscript(unittest.TestCase):

    def test_dispatch_by_extension(self):
        result = parse_transcript.parse_transcript(VTT, "call.vtt", "Interviewer")
        self.assertEqual(result["formatted"], "Okay so & like second line")

    def test_text_with_speakers(self):
        result = parse_transcript.parse_transcript(MEET, interviewer_name="Interviewer")
        self.assertEqual(result["model_name"], "Jamie")
        self.assertEqual(result["speakers"], ["Interviewer", "Jamie"])
        self.assertIn("\n\nJamie:", result["formatted"])
        self.assertEqual(result["speaker_info"]["interviewer"], "Interviewer")


if __name__ == "__main__":
    unittest.main()
