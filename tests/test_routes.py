"""
Tests for the /api blueprint using the Flask test client. Generation services are patched
in the routes namespace; models and scripts live in the in-memory test database.
"""

import unittest
import sys
from pathlib import Path
from unittest.mock import patch

sys.path.insert(0, str(Path(__file__).parent.parent))
sys.path.insert(0, str(Path(__file__).parent))

import config
from corpus_retrieval import CorpusRetrievalResult
from db_models import CreatorModel, Hook, Script, ScriptBatch
from db_test_case import DatabaseTestCase, sample_profile
from extensions import db
from hook_generation import HookGenerationResult
from profile_extraction import ProfileExtractionError
from script_pipeline import PipelineError, PipelineResult, StageFailedError

TRANSCRIPT = "Interviewer: Tell me about yourself.\n\nJamie: " + "Okay so I literally game every night. " * 5


class ApiTestCase(DatabaseTestCase):

    def setUp(self):
        super().setUp()
        self.client = self.app.test_client()
        auth_patcher = patch.object(config, "SKIP_AUTH", True)
        auth_patcher.start()
        self.addCleanup(auth_patcher.stop)
        embed_patcher = patch("routes.update_model_embedding", return_value=True)
        self.mock_embed = embed_patcher.start()
        self.addCleanup(embed_patcher.stop)

    def add_script(self, model_id, content="Okay so this is a script", **fields):
        script = Script(model_id=model_id, content=content, **fields)
        db.session.add(script)
        db.session.commit()
        return script.id


class TestAuth(ApiTestCase):

    def test_write_routes_need_a_token(self):
        with patch.object(config, "SKIP_AUTH", False), patch.object(config, "API_TOKEN", "secret"):
            response = self.client.post("/api/models", json={"name": "X", "voiceProfile": sample_profile()})
            self.assertEqual(response.status_code, 401)
            self.assertEqual(response.get_json(), {"error": "Unauthorized"})

            wrong = self.client.post("/api/models", json={"name": "X", "voiceProfile": sample_profile()},
                                     headers={"Authorization": "Bearer nope"})
            self.assertEqual(wrong.status_code, 401)

            ok = self.client.post("/api/models", json={"name": "X", "voiceProfile": sample_profile()},
                                  headers={"Authorization": "Bearer secret"})
            self.assertEqual(ok.status_code, 201)

    def test_no_configured_token_rejects_everything(self):
        with patch.object(config, "SKIP_AUTH", False), patch.object(config, "API_TOKEN", None):
            response = self.client.delete("/api/models/whatever", headers={"Authorization": "Bearer x"})
        self.assertEqual(response.status_code, 401)

    def test_read_routes_are_open(self):
        with patch.object(config, "SKIP_AUTH", False):
            self.assertEqual(self.client.get("/api/health").get_json(), {"status": "ok"})
            self.assertEqual(self.client.get("/api/models").status_code, 200)


class TestModelRoutes(ApiTestCase):

    def test_create_model(self):
        response = self.client.post("/api/models", json={"stageName": "JJ", "voiceProfile": sample_profile()})
        self.assertEqual(response.status_code, 201)
        body = response.get_json()
        self.assertTrue(body["success"])
        self.assertEqual(body["model"]["stage_name"], "JJ")
        self.assertEqual(body["model"]["name"], "Jamie Rivera")

        stored = db.session.get(CreatorModel, body["model"]["id"])
        self.assertIn("parasocial", stored.voice_profile)
        self.assertEqual(stored.archetype_tags, ["next_door", "nerdy_gamer"])
        self.mock_embed.assert_called_once_with(body["model"]["id"])

    def test_create_model_requires_name_and_profile(self):
        response = self.client.post("/api/models", json={"voiceProfile": sample_profile()})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.get_json()["error"], "Name or stage name is required")

        response = self.client.post("/api/models", json={"name": "Jamie"})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.get_json()["error"], "Voice profile is required")

    def test_create_model_field_validation(self):
        response = self.client.post("/api/models", json={"name": "x" * 101, "voiceProfile": {}})
        self.assertEqual(response.status_code, 400)
        body = response.get_json()
        self.assertEqual(body["error"], "Validation failed")
        self.assertEqual(body["details"][0]["field"], "name")

    def test_embedding_failure_does_not_block_creation(self):
        self.mock_embed.side_effect = RuntimeError("embeddings down")
        response = self.client.post("/api/models", json={"name": "Jamie", "voiceProfile": sample_profile()})
        self.assertEqual(response.status_code, 201)

    def test_list_get_delete(self):
        model = self.make_model()
        listed = self.client.get("/api/models").get_json()["models"]
        self.assertEqual([m["id"] for m in listed], [model.id])

        fetched = self.client.get(f"/api/models/{model.id}").get_json()["model"]
        self.assertEqual(fetched["stage_name"], "Jamie")
        self.assertFalse(fetched["has_embedding"])

        self.assertEqual(self.client.delete(f"/api/models/{model.id}").get_json(), {"success": True})
        missing = self.client.get(f"/api/models/{model.id}")
        self.assertEqual(missing.status_code, 404)
        self.assertIn("Not found", missing.get_json()["error"])

    @patch("routes.extract_voice_profile")
    def test_extract_preview(self, mock_extract):
        mock_extract.return_value = sample_profile()
        response = self.client.post("/api/models/extract", json={"transcript": TRANSCRIPT, "modelName": "Jamie"})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json()["profile"]["identity"]["stage_name"], "Jamie")
        mock_extract.assert_called_once_with(TRANSCRIPT, "Jamie", None)

    def test_extract_rejects_short_transcript(self):
        response = self.client.post("/api/models/extract", json={"transcript": "too short"})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.get_json()["details"][0]["field"], "transcript")

    @patch("routes.extract_voice_profile")
    def test_extraction_error_is_422(self, mock_extract):
        mock_extract.side_effect = ProfileExtractionError("Profile validation failed: x", "{}", ["x"])
        response = self.client.post("/api/models/extract", json={"transcript": TRANSCRIPT})
        self.assertEqual(response.status_code, 422)
        self.assertEqual(response.get_json(), {
            "error": "Profile validation failed: x", "raw_response": "{}", "validation_errors": ["x"],
        })

    @patch("routes.extract_voice_profile")
    def test_extract_and_save(self, mock_extract):
        mock_extract.return_value = sample_profile()
        response = self.client.post("/api/models/extract-profile", json={
            "transcript": TRANSCRIPT, "name": "Jamie Rivera", "interviewerName": "Interviewer",
        })
        self.assertEqual(response.status_code, 201)
        body = response.get_json()
        self.assertEqual(body["model"]["name"], "Jamie Rivera")
        self.assertEqual(body["model"]["transcript_summary"], sample_profile()["identity"]["quick_bio"])
        mock_extract.assert_called_once_with(TRANSCRIPT, "Jamie Rivera", "Interviewer")


class TestGenerationRoutes(ApiTestCase):

    @patch("routes.run_pipeline_and_save")
    def test_generate(self, mock_run):
        model = self.make_model()
        mock_run.return_value = PipelineResult(
            model_id=model.id, model_name="Jamie Rivera", scripts=[{"id": "s1", "script": "x"}],
            stages={"validation": {"passed": 1}}, total_time_ms=10, total_tokens_used=99,
            final_script_count=1, saved_ids=["s1"], batch_id="batch_20260101_abc123",
        )
        response = self.client.post(f"/api/models/{model.id}/generate",
                                    json={"hookCount": 3, "targetDuration": "short", "autoRevise": False})

        self.assertEqual(response.status_code, 200)
        body = response.get_json()
        self.assertEqual(body["scripts_generated"], 1)
        self.assertEqual(body["batch_id"], "batch_20260101_abc123")
        self.assertEqual(body["total_tokens_used"], 99)
        self.assertEqual(body["stats"], {"validation": {"passed": 1}})

        options = mock_run.call_args[0][1]
        self.assertEqual(options.hook_count, 3)
        self.assertEqual(options.target_duration, "short")
        self.assertFalse(options.auto_revise)
        self.assertEqual(options.min_fidelity_score, config.Config.min_fidelity_score)

    def test_generate_rejects_bad_options(self):
        model = self.make_model()
        response = self.client.post(f"/api/models/{model.id}/generate", json={"hookCount": 51})
        self.assertEqual(response.status_code, 400)
        response = self.client.post(f"/api/models/{model.id}/generate", json={"targetDuration": "epic"})
        self.assertEqual(response.status_code, 400)

    @patch("routes.run_pipeline_and_save")
    def test_generate_error_mapping(self, mock_run):
        mock_run.side_effect = PipelineError("Model m has no voice profile", "initialization")
        response = self.client.post("/api/models/m/generate", json={})
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.get_json()["stage"], "initialization")

        mock_run.side_effect = StageFailedError("validation", RuntimeError("boom"))
        response = self.client.post("/api/models/m/generate", json={})
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.get_json(), {"error": "Stage 'validation' failed: boom", "stage": "validation"})

    @patch("routes.generate_hooks")
    def test_hooks_route_saves_hooks(self, mock_hooks):
        model = self.make_model()
        hook = {"hook": "I cried at a speedrun", "hook_type": "confession", "parasocial_levers": [], "why_it_works": ""}
        mock_hooks.return_value = HookGenerationResult(model.id, [hook], {"generated": 1, "tokens_used": 5})

        response = self.client.post(f"/api/models/{model.id}/hooks", json={"count": 1, "hookTypes": ["confession"]})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json()["hooks"], [hook])
        self.assertEqual(mock_hooks.call_args[1]["count"], 1)
        self.assertEqual(mock_hooks.call_args[1]["hook_types"], ["confession"])
        saved = db.session.scalars(db.select(Hook.content)).all()
        self.assertEqual(saved, ["I cried at a speedrun"])

    @patch("routes.expand_scripts")
    def test_expand_route_passes_hooks(self, mock_expand):
        model = self.make_model()
        mock_expand.return_value.to_dict.return_value = {"model_id": model.id, "scripts": [], "expansion_stats": {}}
        response = self.client.post(f"/api/models/{model.id}/scripts/expand", json={
            "hooks": [{"hook": "Hook", "hookType": "question", "extra": 1}], "ctaType": "none",
        })
        self.assertEqual(response.status_code, 200)
        hooks = mock_expand.call_args[0][1]
        self.assertEqual(hooks[0]["hook_type"], "question")
        self.assertEqual(hooks[0]["extra"], 1)
        self.assertEqual(mock_expand.call_args[1]["cta_type"], "none")

    def test_expand_requires_hooks(self):
        model = self.make_model()
        response = self.client.post(f"/api/models/{model.id}/scripts/expand", json={"hooks": []})
        self.assertEqual(response.status_code, 400)

    @patch("routes.validate_scripts")
    def test_validate_route(self, mock_validate):
        model = self.make_model()
        mock_validate.return_value.to_dict.return_value = {"validations": []}
        response = self.client.post(f"/api/models/{model.id}/scripts/validate", json={
            "scripts": [{"scriptIndex": 0, "originalHook": "Hook", "transformedScript": "Hook body"}],
            "minFidelityScore": 90,
        })
        self.assertEqual(response.status_code, 200)
        self.assertEqual(mock_validate.call_args[1]["min_fidelity"], 90)

    def test_validate_route_unknown_model(self):
        response = self.client.post("/api/models/missing/scripts/validate", json={
            "scripts": [{"scriptIndex": 0, "originalHook": "Hook", "transformedScript": "Hook body"}],
        })
        self.assertEqual(response.status_code, 404)


class TestScriptRoutes(ApiTestCase):

    def test_list_with_pagination_and_filters(self):
        model = self.make_model()
        self.add_script(model.id, status="draft", batch_id="batch_a")
        self.add_script(model.id, status="approved", batch_id="batch_a")
        self.add_script(model.id, status="draft", batch_id="batch_b")

        page = self.client.get(f"/api/models/{model.id}/scripts?limit=2").get_json()
        self.assertEqual(page["total"], 3)
        self.assertEqual(len(page["scripts"]), 2)
        self.assertTrue(page["has_more"])

        drafts = self.client.get(f"/api/models/{model.id}/scripts?status=draft").get_json()
        self.assertEqual(drafts["total"], 2)
        self.assertFalse(drafts["has_more"])

        batch = self.client.get(f"/api/models/{model.id}/scripts?batch_id=batch_a").get_json()
        self.assertEqual(batch["total"], 2)

        capped = self.client.get(f"/api/models/{model.id}/scripts?limit=500").get_json()
        self.assertEqual(capped["limit"], config.Config.max_page_size)

    def test_list_rejects_unknown_status(self):
        model = self.make_model()
        response = self.client.get(f"/api/models/{model.id}/scripts?status=viral")
        self.assertEqual(response.status_code, 400)

    def test_bulk_status_update(self):
        model = self.make_model()
        first = self.add_script(model.id)
        second = self.add_script(model.id)
        other_model = self.make_model(name="Other")
        foreign = self.add_script(other_model.id)

        response = self.client.patch(f"/api/models/{model.id}/scripts",
                                     json={"scriptIds": [first, second, foreign], "status": "approved"})

        body = response.get_json()
        self.assertEqual(body["updated"], 2)
        self.assertTrue(all(s["approved_at"] for s in body["scripts"]))
        db.session.expire_all()
        self.assertEqual(db.session.get(Script, foreign).status, "draft")

    def test_bulk_status_update_validates_status(self):
        model = self.make_model()
        response = self.client.patch(f"/api/models/{model.id}/scripts", json={"scriptIds": ["x"], "status": "viral"})
        self.assertEqual(response.status_code, 400)

    def test_update_single_script(self):
        model = self.make_model()
        script_id = self.add_script(model.id)

        self.assertEqual(self.client.patch(f"/api/scripts/{script_id}", json={}).status_code, 400)

        body = self.client.patch(f"/api/scripts/{script_id}", json={"content": "one two three four five"}).get_json()
        self.assertEqual(body["script"]["word_count"], 5)
        self.assertEqual(body["script"]["duration_seconds"], 2)

        body = self.client.patch(f"/api/scripts/{script_id}",
                                 json={"status": "posted", "postedUrl": "https://example.com/v/1"}).get_json()
        self.assertEqual(body["script"]["status"], "posted")
        self.assertIsNotNone(body["script"]["posted_at"])
        self.assertEqual(body["script"]["posted_url"], "https://example.com/v/1")

    def test_get_and_delete_script(self):
        model = self.make_model()
        script_id = self.add_script(model.id)

        body = self.client.get(f"/api/scripts/{script_id}").get_json()
        self.assertEqual(body["script"]["model"]["stage_name"], "Jamie")

        self.assertEqual(self.client.delete(f"/api/scripts/{script_id}").get_json(), {"success": True})
        self.assertEqual(self.client.get(f"/api/scripts/{script_id}").status_code, 404)

    def test_batches(self):
        model = self.make_model()
        db.session.add(ScriptBatch(id="batch_1", model_id=model.id, scripts_generated=4, scripts_passed=2,
                                   avg_fidelity_score=88, avg_word_count=50))
        db.session.commit()
        body = self.client.get(f"/api/models/{model.id}/batches").get_json()
        self.assertEqual([b["id"] for b in body["batches"]], ["batch_1"])
        self.assertEqual(body["stats"]["total_scripts_passed"], 2)


class TestCorpusAndTranscriptRoutes(ApiTestCase):

    def test_corpus_without_embedding_is_404(self):
        model = self.make_model()
        response = self.client.get(f"/api/models/{model.id}/corpus")
        self.assertEqual(response.status_code, 404)
        self.assertIn("no embedding", response.get_json()["error"])

    def test_corpus_with_embedding(self):
        model = self.make_model(embedding=[1.0, 0.0])
        response = self.client.get(f"/api/models/{model.id}/corpus?limit=5&diversify=false")
        self.assertEqual(response.status_code, 200)
        body = response.get_json()
        self.assertEqual(body["matches"], [])
        self.assertEqual(body["retrieval_stats"]["total_corpus"], 0)

    @patch("routes.retrieve_relevant_corpus")
    def test_corpus_limit_is_clamped(self, mock_retrieve):
        model = self.make_model(embedding=[1.0, 0.0])
        mock_retrieve.return_value = CorpusRetrievalResult(model.id, [], {"total_corpus": 0})
        self.client.get(f"/api/models/{model.id}/corpus?limit=100000")
        self.client.get(f"/api/models/{model.id}/corpus?limit=-3")
        limits = [c[1]["limit"] for c in mock_retrieve.call_args_list]
        self.assertEqual(limits, [config.Config.max_page_size, 1])

    def test_parse_transcript(self):
        content = "Interviewer: So tell me about you. Jamie: Okay so I game a lot."
        body = self.client.post("/api/transcripts/parse", json={"content": content, "filename": "call.txt"}).get_json()
        self.assertEqual(body["model_name"], "Jamie")
        self.assertIn("\n\nJamie:", body["formatted"])

    def test_parse_transcript_rejects_unsupported_file(self):
        response = self.client.post("/api/transcripts/parse", json={"content": "x", "filename": "deck.pdf"})
        self.assertEqual(response.status_code, 400)


if __name__ == "__main__":
    unittest.main()
