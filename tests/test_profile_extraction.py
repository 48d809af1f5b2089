"""
Tests for profile_extraction: profile validation, extraction (LLM mocked) and the model-row
helpers built on an extracted profile.
"""

import unittest
import sys
from pathlib import Path
from unittest.mock import patch

sys.path.insert(0, str(Path(__file__).parent.parent))
sys.path.insert(0, str(Path(__file__).parent))

import profile_extraction
from db_test_case import llm_reply, sample_profile
from profile_extraction import ProfileExtractionError

TRANSCRIPT = "Interviewer: Tell me about yourself.\n\nJamie: " + "Okay so I literally game every night. " * 5


class TestValidateProfile(unittest.TestCase):

    def test_valid_profile(self):
        errors, warnings = profile_extraction.validate_profile(sample_profile())
        self.assertEqual(errors, [])
        self.assertEqual(warnings, [])

    def test_not_an_object(self):
        errors, _ = profile_extraction.validate_profile(["nope"])
        self.assertEqual(errors, ["Profile is not an object"])

    def test_missing_sections(self):
        profile = sample_profile()
        del profile["audience"]
        profile["sample_speech"] = []
        errors, _ = profile_extraction.validate_profile(profile)
        self.assertIn("Missing required section: audience", errors)
        self.assertIn("Missing required section: sample_speech", errors)

    def test_identity_needs_a_name(self):
        profile = sample_profile()
        profile["identity"] = {"quick_bio": "bio only"}
        errors, _ = profile_extraction.validate_profile(profile)
        self.assertIn("identity must have at least stage_name or name", errors)

    def test_archetypes_checked(self):
        profile = sample_profile()
        profile["archetype_assignment"] = {"primary": "wizard", "secondary": "bard"}
        errors, _ = profile_extraction.validate_profile(profile)
        self.assertTrue(any(e.startswith("Invalid archetype: wizard") for e in errors))
        self.assertIn("Invalid secondary archetype: bard", errors)

    def test_too_few_samples_and_swear_frequency(self):
        profile = sample_profile()
        profile["sample_speech"] = ["only one"]
        del profile["voice_mechanics"]["swear_frequency"]
        errors, _ = profile_extraction.validate_profile(profile)
        self.assertIn("sample_speech should have at least 3 verbatim quotes", errors)
        self.assertIn("voice_mechanics.swear_frequency is required", errors)

    def test_unknown_levers_only_warn(self):
        profile = sample_profile()
        profile["parasocial_config"]["strengths"].append("mind_reading")
        errors, warnings = profile_extraction.validate_profile(profile)
        self.assertEqual(errors, [])
        self.assertEqual(warnings, ["Non-standard parasocial lever in strengths: mind_reading"])


class TestExtractVoiceProfile(unittest.TestCase):

    def test_short_transcript_raises_without_llm_call(self):
        with patch("profile_extraction.llm_utils.generate_text_with_usage") as mock_generate:
            with self.assertRaises(ProfileExtractionError) as ctx:
                profile_extraction.extract_voice_profile("too short")
        mock_generate.assert_not_called()
        self.assertIn("Transcript too short", ctx.exception.message)

    @patch("profile_extraction.llm_utils.generate_text_with_usage")
    def test_returns_normalized_profile(self, mock_generate):
        profile = sample_profile()
        profile["audience"]["how_fans_talk_to_them"] = ""
        profile["boundaries"]["topics_to_avoid"] = None
        mock_generate.return_value = llm_reply(profile)

        result = profile_extraction.extract_voice_profile(TRANSCRIPT, "Jamie", "Interviewer")

        self.assertIsNone(result["audience"]["how_fans_talk_to_them"])
        self.assertEqual(result["boundaries"]["topics_to_avoid"], [])
        self.assertEqual(mock_generate.call_args[1]["response_format"], {"type": "json_object"})
        prompt = mock_generate.call_args[0][0][0]["content"]
        self.assertIn("Analyze ONLY lines spoken by: Jamie", prompt)

    @patch("profile_extraction.llm_utils.generate_text_with_usage")
    def test_validation_errors_carry_raw_profile(self, mock_generate):
        profile = sample_profile()
        profile["archetype_assignment"]["primary"] = "wizard"
        mock_generate.return_value = llm_reply(profile)

        with self.assertRaises(ProfileExtractionError) as ctx:
            profile_extraction.extract_voice_profile(TRANSCRIPT)
        self.assertTrue(ctx.exception.message.startswith("Profile validation failed"))
        self.assertIn("wizard", ctx.exception.raw_response)
        self.assertEqual(len(ctx.exception.validation_errors), 1)

    @patch("profile_extraction.llm_utils.generate_text_with_usage")
    def test_unparseable_reply(self, mock_generate):
        mock_generate.return_value = ("I could not do that", 5)
        with self.assertRaises(ProfileExtractionError) as ctx:
            profile_extraction.extract_voice_profile(TRANSCRIPT)
        self.assertEqual(ctx.exception.raw_response, "I could not do that")

    @patch("profile_extraction.llm_utils.generate_text_with_usage")
    def test_empty_or_non_object_reply(self, mock_generate):
        mock_generate.return_value = ("   ", 0)
        with self.assertRaises(ProfileExtractionError):
            profile_extraction.extract_voice_profile(TRANSCRIPT)
        mock_generate.return_value = llm_reply([1, 2, 3])
        with self.assertRaises(ProfileExtractionError):
            profile_extraction.extract_voice_profile(TRANSCRIPT)


class TestModelHelpers(unittest.TestCase):

    def test_to_db_voice_profile(self):
        stored = profile_extraction.to_db_voice_profile(sample_profile())
        self.assertEqual(stored["parasocial"], {"strengths": ["relatability", "confession"], "avoid": ["authority"]})
        self.assertNotIn("parasocial_config", stored)
        self.assertEqual(len(stored["sample_speech"]), 3)

    def test_derive_model_tags(self):
        archetypes, niches = profile_extraction.derive_model_tags(sample_profile())
        self.assertEqual(archetypes, ["next_door", "nerdy_gamer"])
        self.assertEqual(niches, ["gaming", "dating", "cats"])

    def test_model_fields_name_fallbacks(self):
        fields = profile_extraction.model_fields_from_profile(sample_profile(), transcript="raw")
        self.assertEqual(fields["name"], "Jamie Rivera")
        self.assertEqual(fields["stage_name"], "Jamie")
        self.assertEqual(fields["transcript_raw"], "raw")
        self.assertEqual(fields["boundaries"]["hard_nos"], ["my ex"])

        profile = sample_profile()
        profile["identity"] = {}
        fields = profile_extraction.model_fields_from_profile(profile, stage_name="JJ", archetype_tags=["cool_kid"])
        self.assertEqual(fields["name"], "JJ")
        self.assertEqual(fields["archetype_tags"], ["cool_kid"])
        self.assertEqual(profile_extraction.model_fields_from_profile({})["name"], "Unknown")


if __name__ == "__main__":
    unittest.main()
