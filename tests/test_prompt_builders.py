"""
Unit tests for prompt_builders.py functions.
"""

import unittest
import sys
from pathlib import Path

# Add parent directory to path so we can import modules
sys.path.insert(0, str(Path(__file__).parent.parent))
sys.path.insert(0, str(Path(__file__).parent))

import prompt_builders
from db_test_case import sample_profile


class TestVoiceProfileSummary(unittest.TestCase):
    """Test cases for get_voice_profile_summary function."""

    def test_includes_voice_mechanics(self):
        result = prompt_builders.get_voice_profile_summary(sample_profile(), "Jamie Rivera")
        self.assertIn("CREATOR: Jamie", result)
        self.assertIn("literally (high)", result)
        self.assertIn("okay but hear me out", result)
        self.assertIn("ARCHETYPE: next_door / nerdy_gamer", result)
        self.assertIn('- "Not gonna lie I rage quit twice today."', result)

    def test_empty_profile_uses_fallbacks(self):
        """Test that a bare profile still renders."""
        result = prompt_builders.get_voice_profile_summary({}, "Sam")
        self.assertIn("CREATOR: Sam", result)
        self.assertIn("ARCHETYPE: unknown", result)
        self.assertIn("none noted", result)

    def test_sample_speech_capped_at_five(self):
        profile = sample_profile()
        profile["sample_speech"] = [f"quote {i}" for i in range(8)]
        result = prompt_builders.get_voice_profile_summary(profile, "Jamie")
        self.assertIn("quote 4", result)
        self.assertNotIn("quote 5", result)


class TestBoundariesPrompt(unittest.TestCase):

    def test_lists_boundaries(self):
        result = prompt_builders.get_boundaries_prompt(sample_profile())
        self.assertIn("Hard nos: my ex", result)
        self.assertIn("Topics to avoid: politics", result)

    def test_no_boundaries(self):
        result = prompt_builders.get_boundaries_prompt({})
        self.assertIn("Hard nos: none noted", result)


class TestProfileExtractionPrompt(unittest.TestCase):

    def test_speaker_labels(self):
        result = prompt_builders.build_profile_extraction_prompt("Q: hi\nA: hey", "Jamie", "Host")
        self.assertIn("Analyze ONLY lines spoken by: Jamie", result)
        self.assertIn("IGNORE the interviewer: Host", result)
        self.assertTrue(result.rstrip().endswith("A: hey"))

    def test_no_speaker_section_without_labels(self):
        result = prompt_builders.build_profile_extraction_prompt("transcript text")
        self.assertNotIn("SPEAKERS:", result)
        self.assertIn("next_door", result)  # archetype list


class TestHookGenerationPrompt(unittest.TestCase):

    def _build(self, **kwargs):
        params = dict(
            model_name="Jamie",
            voice_profile=sample_profile(),
            corpus_examples="",
            distribution={"confession": 3, "question": 2, "hot_take": 0},
            count=5,
        )
        params.update(kwargs)
        return prompt_builders.build_hook_generation_prompt(**params)

    def test_flat_mode(self):
        result = self._build()
        self.assertIn("Generate EXACTLY 5 hooks", result)
        self.assertIn("- confession: 3", result)
        self.assertNotIn("- hot_take: 0", result)
        self.assertIn("- none available", result)
        self.assertNotIn("variation_sets", result)

    def test_variation_mode(self):
        result = self._build(count=6, variations_per_concept=3)
        self.assertIn("Generate 2 distinct CONCEPTS with 3 variations each", result)
        self.assertIn("variation_sets", result)

    def test_recent_hooks_and_pcm(self):
        result = self._build(recent_hooks=["used one", "used two"], enable_pcm_tracking=True)
        self.assertIn("RECENTLY USED HOOKS", result)
        self.assertIn("- used two", result)
        self.assertIn("pcm_type", result)
        self.assertIn("harmonizer", result)


class TestScriptExpansionPrompt(unittest.TestCase):

    def test_includes_hooks_and_length(self):
        hooks = [
            {"hook_index": 4, "hook": "I cried at a speedrun", "hook_type": "confession", "parasocial_levers": ["confession"]},
        ]
        result = prompt_builders.build_script_expansion_prompt("Jamie", sample_profile(), hooks, "", "short", "auto")
        self.assertIn("[4] (confession) I cried at a speedrun", result)
        self.assertIn("LENGTH: 30-45 words", result)
        self.assertIn("structure_breakdown", result)

    def test_cta_guidance_per_hook(self):
        hooks = [{"hook_index": 0, "hook": "x", "hook_type": "question", "parasocial_levers": []}]
        result = prompt_builders.build_script_expansion_prompt("Jamie", sample_profile(), hooks, "", "medium", "none")
        self.assertIn("LENGTH: 45-65 words", result)


class TestVoiceTransformationPrompt(unittest.TestCase):

    def test_script_index_and_extended_samples(self):
        scripts = [{"script_index": 7, "hook": "Hook text", "script": "Script text"}]
        result = prompt_builders.build_voice_transformation_prompt(
            "Jamie", sample_profile(), scripts, sample_speech_extended=["Approved opener"]
        )
        self.assertIn("[7] HOOK: Hook text", result)
        self.assertIn("APPROVED SCRIPT OPENINGS", result)
        self.assertIn('- "Approved opener"', result)

    def test_without_extended_samples(self):
        scripts = [{"script_index": 0, "hook": "h", "script": "s"}]
        result = prompt_builders.build_voice_transformation_prompt("Jamie", sample_profile(), scripts)
        self.assertNotIn("APPROVED SCRIPT OPENINGS", result)


class TestValidationPrompt(unittest.TestCase):

    def test_threshold_in_verdict_rules(self):
        scripts = [{"script_index": 2, "transformed_script": "Okay so this is me"}]
        result = prompt_builders.build_validation_prompt("Jamie", sample_profile(), scripts, min_fidelity=85)
        self.assertIn("PASS: score >= 85", result)
        self.assertIn("[2] Okay so this is me", result)


class TestShareabilityPrompt(unittest.TestCase):

    def test_rubric_and_content(self):
        result = prompt_builders.build_shareability_scoring_prompt(
            [{"index": 0, "content": "Send this to your bestie", "content_type": "hook"}]
        )
        self.assertIn("specificity_score (0-25)", result)
        self.assertIn("tag_friend", result)
        self.assertIn("Send this to your bestie", result)


class TestCorpusLeversPrompt(unittest.TestCase):

    def test_lists_every_lever_and_entry(self):
        result = prompt_builders.build_corpus_levers_prompt(
            [{"index": 0, "hook": "N/A", "hook_type": "question", "script_archetype": "N/A", "content": "Be honest with me"}]
        )
        self.assertIn("- pseudo_intimacy: a \"just between us\" private feeling", result)
        self.assertIn("best_friend_energy", result)
        self.assertIn("Be honest with me", result)
        self.assertIn('"entries"', result)


if __name__ == "__main__":
    unittest.main()
