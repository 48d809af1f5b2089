"""
Tests for hook_generation: type distribution, reply parsing, hook validation and the
generate_hooks flow (LLM mocked).
"""

import json
import unittest
import sys
from pathlib import Path
from unittest.mock import patch

sys.path.insert(0, str(Path(__file__).parent.parent))
sys.path.insert(0, str(Path(__file__).parent))

import hook_generation
from db_models import Hook
from db_test_case import DatabaseTestCase, llm_reply
from errors import NotFoundError
from extensions import db
from voice_taxonomy import ARCHETYPE_HOOK_AFFINITIES, HOOK_TYPES


def _hook(text, hook_type="confession", **extra):
    return {"hook": text, "hook_type": hook_type, "parasocial_levers": ["confession"], "why_it_works": "honest", **extra}


class TestHookTypeDistribution(unittest.TestCase):

    def test_sums_to_count(self):
        for count in (1, 7, 30, 50):
            dist = hook_generation.get_hook_type_distribution(count, {"archetype_assignment": {"primary": "next_door"}})
            self.assertEqual(sum(dist.values()), count)

    def test_affinity_types_get_more(self):
        dist = hook_generation.get_hook_type_distribution(30, {"archetype_assignment": {"primary": "next_door"}})
        affinity = ARCHETYPE_HOOK_AFFINITIES["next_door"]
        others = [t for t in HOOK_TYPES if t not in affinity]
        self.assertGreater(min(dist[t] for t in affinity), max(dist[t] for t in others))

    def test_restricted_hook_types(self):
        dist = hook_generation.get_hook_type_distribution(10, None, ["question", "hot_take"])
        self.assertEqual(set(dist), {"question", "hot_take"})
        self.assertEqual(sum(dist.values()), 10)

    def test_half_shares_round_up(self):
        # 15 hooks over weight 12: affinity types get 2.5 -> 3, the rest 1.25 -> 1
        dist = hook_generation.get_hook_type_distribution(15, {"archetype_assignment": {"primary": "next_door"}})
        self.assertEqual(dist, {
            "bold_statement": 1, "question": 3, "confession": 3, "challenge": 1,
            "relatable": 3, "fantasy": 3, "hot_take": 1, "storytime": 0,
        })

    def test_missing_archetype_uses_default(self):
        dist = hook_generation.get_hook_type_distribution(12, {})
        self.assertEqual(dist, {
            "bold_statement": 1, "question": 2, "confession": 2, "challenge": 1,
            "relatable": 2, "fantasy": 2, "hot_take": 1, "storytime": 1,
        })
        self.assertEqual(hook_generation.get_hook_type_distribution(12, None), dist)

    def test_unknown_archetype_prefers_first_four_types(self):
        dist = hook_generation.get_hook_type_distribution(12, {"archetype_assignment": {"primary": "pirate"}})
        self.assertEqual([dist[t] for t in HOOK_TYPES], [2, 2, 2, 2, 1, 1, 1, 1])


class TestParseHooksResponse(unittest.TestCase):

    def test_flat_list(self):
        hooks, sets = hook_generation.parse_hooks_response(json.dumps([_hook("a")]))
        self.assertEqual(len(hooks), 1)
        self.assertIsNone(sets)

    def test_wrapped_object(self):
        hooks, sets = hook_generation.parse_hooks_response(json.dumps({"hooks": [_hook("a"), _hook("b")]}))
        self.assertEqual([h["hook"] for h in hooks], ["a", "b"])
        self.assertIsNone(sets)

    def test_variation_sets_are_flattened_with_concept_id(self):
        payload = {"variation_sets": [
            {"concept_id": "c1", "concept": "late night gaming", "variations": [_hook("v1"), _hook("v2")],
             "recommended_for_testing": ["variation_2", 0]},
            {"concept": "no id", "variations": [_hook("v3")]},
        ]}
        hooks, sets = hook_generation.parse_hooks_response(json.dumps(payload), variation_mode=True)
        self.assertEqual([h["concept_id"] for h in hooks], ["c1", "c1", "concept_2"])
        self.assertEqual(sets[0]["recommended_for_testing"], [2, 0])
        self.assertEqual(sets[1]["recommended_for_testing"], hook_generation.DEFAULT_RECOMMENDED_VARIATIONS)

    def test_scalar_reply_raises(self):
        with self.assertRaises(ValueError):
            hook_generation.parse_hooks_response("42")


class TestValidateHooks(unittest.TestCase):

    def test_drops_long_duplicate_and_malformed(self):
        hooks = [
            _hook("I deleted his number twice"),
            _hook("i deleted his number twice"),
            _hook(" ".join(["word"] * 26)),
            {"hook": "no type"},
            {"hook_type": "question"},
        ]
        valid = hook_generation.validate_hooks(hooks)
        self.assertEqual([h["hook"] for h in valid], ["I deleted his number twice"])

    def test_keeps_optional_fields_and_defaults(self):
        valid = hook_generation.validate_hooks([
            {"hook": "  Be honest  ", "hook_type": "question", "pcm_type": "rebel", "concept_id": "c1"},
        ])
        self.assertEqual(valid[0]["hook"], "Be honest")
        self.assertEqual(valid[0]["parasocial_levers"], [])
        self.assertEqual(valid[0]["why_it_works"], "")
        self.assertEqual(valid[0]["pcm_type"], "rebel")
        self.assertEqual(valid[0]["concept_id"], "c1")
        self.assertNotIn("variation_strategy", valid[0])


class TestGenerateHooks(DatabaseTestCase):

    @patch("hook_generation.llm_utils.generate_text_with_usage")
    def test_generates_and_reports_stats(self, mock_generate):
        model = self.make_model()
        mock_generate.return_value = llm_reply(
            {"hooks": [_hook("I cried at a speedrun"), _hook("Would you let me carry you?", "question", pcm_type="rebel")]},
            tokens=321,
        )
        result = hook_generation.generate_hooks(model.id, count=2, enable_pcm_tracking=True)

        self.assertEqual(len(result.hooks), 2)
        stats = result.generation_stats
        self.assertEqual(stats["requested"], 2)
        self.assertEqual(stats["generated"], 2)
        self.assertEqual(stats["by_type"], {"confession": 1, "question": 1})
        self.assertEqual(stats["by_pcm_type"], {"rebel": 1})
        self.assertEqual(stats["tokens_used"], 321)
        self.assertIsNone(result.variation_sets)

    @patch("hook_generation.llm_utils.generate_text_with_usage")
    def test_retry_uses_lower_temperature_and_sums_tokens(self, mock_generate):
        model = self.make_model()
        mock_generate.side_effect = [
            ("not json at all", 50),
            llm_reply([_hook("Second try works")], tokens=70),
        ]
        result = hook_generation.generate_hooks(model.id, count=1, temperature=0.9)

        self.assertEqual(mock_generate.call_count, 2)
        self.assertEqual(mock_generate.call_args_list[0][1]["temperature"], 0.9)
        self.assertEqual(mock_generate.call_args_list[1][1]["temperature"], hook_generation.RETRY_TEMPERATURE)
        self.assertEqual(result.generation_stats["tokens_used"], 120)

    @patch("hook_generation.llm_utils.generate_text_with_usage")
    def test_two_failures_raise(self, mock_generate):
        model = self.make_model()
        mock_generate.return_value = ("still not json", 10)
        with self.assertRaises(ValueError):
            hook_generation.generate_hooks(model.id, count=1)

    @patch("hook_generation.llm_utils.generate_text_with_usage")
    def test_drops_hooks_already_used(self, mock_generate):
        model = self.make_model()
        hook_generation.save_generated_hooks(model.id, [_hook("Old hook here")])
        mock_generate.return_value = llm_reply([_hook("old hook here"), _hook("Fresh hook")])

        result = hook_generation.generate_hooks(model.id, count=2)
        self.assertEqual([h["hook"] for h in result.hooks], ["Fresh hook"])
        prompt = mock_generate.call_args[0][0][0]["content"]
        self.assertIn("Old hook here", prompt)

    @patch("hook_generation.llm_utils.generate_text_with_usage")
    def test_variation_mode_uses_variation_schema(self, mock_generate):
        model = self.make_model()
        mock_generate.return_value = llm_reply({"variation_sets": [
            {"concept_id": "c1", "concept": "x", "variations": [_hook("A one"), _hook("A two")]},
        ]})
        result = hook_generation.generate_hooks(model.id, count=1, variations_per_concept=2)

        self.assertIs(mock_generate.call_args[1]["response_json_schema"], hook_generation.HOOK_VARIATIONS_SCHEMA)
        self.assertEqual(len(result.variation_sets), 1)
        self.assertEqual([h["concept_id"] for h in result.hooks], ["c1", "c1"])

    def test_model_without_profile_raises(self):
        model = self.make_model(with_profile=False)
        with self.assertRaises(NotFoundError):
            hook_generation.generate_hooks(model.id, count=1)

    @patch("hook_generation.llm_utils.generate_text_with_usage")
    def test_corpus_failure_is_not_fatal(self, mock_generate):
        model = self.make_model(embedding=[0.1, 0.2, 0.3])
        mock_generate.return_value = llm_reply([_hook("Still works")])
        with patch("hook_generation.retrieve_relevant_corpus", side_effect=RuntimeError("vector store down")):
            result = hook_generation.generate_hooks(model.id, count=1)
        self.assertEqual(len(result.hooks), 1)


class TestSaveGeneratedHooks(DatabaseTestCase):

    def test_persists_tracking_fields(self):
        model = self.make_model()
        ids = hook_generation.save_generated_hooks(model.id, [
            _hook("Saved", concept_id="c9", pcm_type="thinker", variation_strategy="opener_swap"),
        ])
        row = db.session.get(Hook, ids[0])
        self.assertEqual(row.source, "generated")
        self.assertEqual(row.variation_group_id, "c9")
        self.assertEqual(row.pcm_type, "thinker")
        self.assertEqual(row.variation_strategy, "opener_swap")
        self.assertEqual(hook_generation.get_recent_hooks(model.id), ["Saved"])


if __name__ == "__main__":
    unittest.main()
