"""
API routes blueprint.
Creator models, profile extraction, the generation pipeline and its individual stages,
script management, batch history, corpus lookup and transcript parsing.
"""
from datetime import datetime, timezone

from flask import Blueprint, jsonify, request
from pydantic import ValidationError
from werkzeug.exceptions import HTTPException

from auth import require_auth
from batch_tracking import get_batch_stats, get_recent_batches
from config import Config, DEBUG
from corpus_retrieval import retrieve_relevant_corpus
from db_models import SCRIPT_STATUSES, CreatorModel, Script, get_creator_model
from embeddings import update_model_embedding
from errors import CorpusRetrievalError, NotFoundError
from extensions import db
from hook_generation import generate_hooks, save_generated_hooks
from parse_transcript import is_supported_transcript_file, parse_transcript
from profile_extraction import ProfileExtractionError, extract_voice_profile, model_fields_from_profile
from script_expansion import expand_scripts
from script_pipeline import PipelineError, PipelineOptions, run_pipeline_and_save
from script_validation import validate_scripts
from utils import count_words, estimate_duration_seconds
from validations import (
    CreateModelRequest,
    ExpandScriptsRequest,
    ExtractOnlyRequest,
    ExtractProfileRequest,
    GenerateHooksRequest,
    GeneratePipelineRequest,
    ParseTranscriptRequest,
    TransformScriptsRequest,
    UpdateScriptRequest,
    UpdateScriptsStatusRequest,
    ValidateScriptsRequest,
    error_details,
    validate_request,
)
from voice_transformation import transform_voice

api_bp = Blueprint("api", __name__, url_prefix="/api")


def _log(msg: str, verbose_only: bool = False) -> None:
    """Log with [API] prefix. Use verbose_only for extra debug output."""
    if verbose_only and not DEBUG:
        return
    print(f"[API] {msg}")


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _json_body():
    return request.get_json(silent=True) or {}


# ===================
# Error mapping
# ===================

@api_bp.errorhandler(NotFoundError)
def handle_not_found(e):
    return jsonify({"error": str(e)}), 404


@api_bp.errorhandler(CorpusRetrievalError)
def handle_corpus_error(e):
    return jsonify({"error": str(e)}), 404


@api_bp.errorhandler(ProfileExtractionError)
def handle_profile_error(e):
    db.session.rollback()
    return jsonify({
        "error": e.message,
        "raw_response": e.raw_response,
        "validation_errors": e.validation_errors,
    }), 422


@api_bp.errorhandler(ValidationError)
def handle_validation_error(e):
    return jsonify({"error": "Validation failed", "details": error_details(e)}), 400


@api_bp.errorhandler(PipelineError)
def handle_pipeline_error(e):
    db.session.rollback()
    _log(f"Pipeline failed at {e.stage}: {e.message}")
    if e.stage == "initialization":
        return jsonify({"error": e.message, "stage": e.stage}), 404
    return jsonify({"error": e.message, "stage": e.stage}), 500


@api_bp.errorhandler(Exception)
def handle_unexpected(e):
    if isinstance(e, HTTPException):
        return e
    db.session.rollback()
    _log(f"Unhandled error on {request.method} {request.path}: {e}")
    return jsonify({"error": str(e) or "Internal server error"}), 500


# ===================
# Models
# ===================

@api_bp.route("/health", methods=["GET"])
def health():
    return jsonify({"status": "ok"})


@api_bp.route("/models", methods=["GET"])
def list_models():
    models = db.session.scalars(db.select(CreatorModel).order_by(CreatorModel.created_at.desc()))
    return jsonify({"models": [m.to_dict() for m in models]})


def _save_model(fields: dict) -> CreatorModel:
    """Insert a model, then try to embed it. Embedding failures only log."""
    model = CreatorModel(**fields)
    db.session.add(model)
    db.session.commit()
    try:
        if update_model_embedding(model.id):
            _log(f"Generated voice embedding for model {model.id}")
    except Exception as e:
        db.session.rollback()
        print(f"[WARNING] Failed to generate model embedding for {model.id}: {e}")
    return model


@api_bp.route("/models", methods=["POST"])
@require_auth
def create_model():
    body, error = validate_request(CreateModelRequest, _json_body())
    if error:
        return error
    if not body.name and not body.stage_name:
        return jsonify({"error": "Name or stage name is required"}), 400
    if not body.voice_profile:
        return jsonify({"error": "Voice profile is required"}), 400

    model = _save_model(model_fields_from_profile(
        body.voice_profile,
        name=body.name,
        stage_name=body.stage_name,
        transcript=body.transcript,
        archetype_tags=body.archetype_tags,
    ))
    _log(f"Created model {model.id} ({model.display_name})")
    return jsonify({
        "success": True,
        "model": {"id": model.id, "name": model.name, "stage_name": model.stage_name},
    }), 201


@api_bp.route("/models/<model_id>", methods=["GET"])
def get_model(model_id):
    return jsonify({"model": get_creator_model(model_id).to_dict()})


@api_bp.route("/models/<model_id>", methods=["DELETE"])
@require_auth
def delete_model(model_id):
    model = get_creator_model(model_id)
    db.session.delete(model)
    db.session.commit()
    _log(f"Deleted model {model_id}")
    return jsonify({"success": True})


@api_bp.route("/models/extract", methods=["POST"])
def extract_profile_preview():
    body, error = validate_request(ExtractOnlyRequest, _json_body())
    if error:
        return error
    profile = extract_voice_profile(body.transcript, body.model_name, body.interviewer_name)
    return jsonify({"profile": profile})


@api_bp.route("/models/extract-profile", methods=["POST"])
@require_auth
def extract_and_save_profile():
    body, error = validate_request(ExtractProfileRequest, _json_body())
    if error:
        return error
    profile = extract_voice_profile(body.transcript, body.name, body.interviewer_name)
    model = _save_model(model_fields_from_profile(
        profile,
        name=body.name,
        stage_name=body.stage_name,
        transcript=body.transcript,
    ))
    _log(f"Extracted and saved model {model.id} ({model.display_name})")
    return jsonify({"success": True, "model": model.to_dict(), "profile": profile}), 201


# ===================
# Generation
# ===================

@api_bp.route("/models/<model_id>/generate", methods=["POST"])
@require_auth
def generate(model_id):
    body, error = validate_request(GeneratePipelineRequest, _json_body())
    if error:
        return error
    options = PipelineOptions(**body.model_dump(exclude_none=True))
    result = run_pipeline_and_save(model_id, options)
    return jsonify({
        "scripts": result.scripts,
        "stats": result.stages,
        "total_time_ms": result.total_time_ms,
        "total_tokens_used": result.total_tokens_used,
        "scripts_generated": result.final_script_count,
        "batch_id": result.batch_id,
    })


@api_bp.route("/models/<model_id>/hooks", methods=["POST"])
@require_auth
def generate_model_hooks(model_id):
    body, error = validate_request(GenerateHooksRequest, _json_body())
    if error:
        return error
    result = generate_hooks(
        model_id,
        count=body.count or Config.hook_count,
        hook_types=body.hook_types,
        corpus_limit=body.corpus_limit or Config.corpus_limit,
        variations_per_concept=body.variations_per_concept or 1,
        enable_pcm_tracking=bool(body.enable_pcm_tracking),
    )
    try:
        save_generated_hooks(model_id, result.hooks)
    except Exception as e:
        db.session.rollback()
        print(f"[WARNING] Failed to save hooks for tracking: {e}")
    return jsonify(result.to_dict())


@api_bp.route("/models/<model_id>/scripts/expand", methods=["POST"])
@require_auth
def expand_model_scripts(model_id):
    body, error = validate_request(ExpandScriptsRequest, _json_body())
    if error:
        return error
    result = expand_scripts(
        model_id,
        [h.model_dump() for h in body.hooks],
        target_duration=body.target_duration,
        corpus_limit=body.corpus_limit or 10,
        cta_type=body.cta_type,
    )
    return jsonify(result.to_dict())


@api_bp.route("/models/<model_id>/scripts/transform", methods=["POST"])
@require_auth
def transform_model_scripts(model_id):
    body, error = validate_request(TransformScriptsRequest, _json_body())
    if error:
        return error
    result = transform_voice(model_id, [s.model_dump() for s in body.scripts])
    return jsonify(result.to_dict())


@api_bp.route("/models/<model_id>/scripts/validate", methods=["POST"])
@require_auth
def validate_model_scripts(model_id):
    body, error = validate_request(ValidateScriptsRequest, _json_body())
    if error:
        return error
    get_creator_model(model_id, require_profile=True)
    result = validate_scripts(
        model_id,
        [s.model_dump() for s in body.scripts],
        min_fidelity=body.min_fidelity_score if body.min_fidelity_score is not None else Config.min_fidelity_score,
    )
    return jsonify(result.to_dict())


# ===================
# Scripts
# ===================

def _apply_status(script: Script, status: str) -> None:
    script.status = status
    if status == "approved":
        script.approved_at = _now()
    elif status == "posted":
        script.posted_at = _now()


@api_bp.route("/models/<model_id>/scripts", methods=["GET"])
def list_model_scripts(model_id):
    get_creator_model(model_id)
    page = max(request.args.get("page", 1, type=int), 1)
    limit = request.args.get("limit", Config.default_page_size, type=int)
    limit = min(max(limit, 1), Config.max_page_size)
    status = request.args.get("status")
    batch_id = request.args.get("batch_id")
    if status and status not in SCRIPT_STATUSES:
        return jsonify({"error": f"Invalid status: {status}. Must be one of: {', '.join(SCRIPT_STATUSES)}"}), 400

    stmt = db.select(Script).where(Script.model_id == model_id)
    if status:
        stmt = stmt.where(Script.status == status)
    if batch_id:
        stmt = stmt.where(Script.batch_id == batch_id)
    total = db.session.scalar(db.select(db.func.count()).select_from(stmt.subquery()))
    scripts = db.session.scalars(
        stmt.order_by(Script.created_at.desc()).offset((page - 1) * limit).limit(limit)
    )
    return jsonify({
        "scripts": [s.to_dict() for s in scripts],
        "total": total,
        "page": page,
        "limit": limit,
        "has_more": page * limit < total,
    })


@api_bp.route("/models/<model_id>/scripts", methods=["PATCH"])
@require_auth
def update_model_scripts_status(model_id):
    body, error = validate_request(UpdateScriptsStatusRequest, _json_body())
    if error:
        return error
    get_creator_model(model_id)
    scripts = list(db.session.scalars(
        db.select(Script).where(Script.model_id == model_id, Script.id.in_(body.script_ids))
    ))
    for script in scripts:
        _apply_status(script, body.status)
    db.session.commit()
    _log(f"Set {len(scripts)} scripts to {body.status} for model {model_id}")
    return jsonify({"updated": len(scripts), "scripts": [s.to_dict() for s in scripts]})


@api_bp.route("/models/<model_id>/batches", methods=["GET"])
def list_model_batches(model_id):
    get_creator_model(model_id)
    limit = min(max(request.args.get("limit", 10, type=int), 1), Config.max_page_size)
    return jsonify({
        "batches": [b.to_dict() for b in get_recent_batches(model_id, limit)],
        "stats": get_batch_stats(model_id),
    })


@api_bp.route("/models/<model_id>/corpus", methods=["GET"])
def model_corpus(model_id):
    result = retrieve_relevant_corpus(
        model_id,
        limit=min(max(request.args.get("limit", 20, type=int), 1), Config.max_page_size),
        min_similarity=request.args.get("min_similarity", 0.3, type=float),
        diversify=request.args.get("diversify", "true").lower() != "false",
        hook_type_filter=request.args.get("hook_type") or None,
        thematic_query=request.args.get("query") or None,
    )
    return jsonify({
        "model_id": result.model_id,
        "matches": [m.to_dict() for m in result.matches],
        "retrieval_stats": result.retrieval_stats,
    })


def _get_script(script_id: str) -> Script:
    script = db.session.get(Script, script_id)
    if script is None:
        raise NotFoundError(f"Not found: script {script_id}")
    return script


@api_bp.route("/scripts/<script_id>", methods=["GET"])
def get_script(script_id):
    return jsonify({"script": _get_script(script_id).to_dict(include_model=True)})


@api_bp.route("/scripts/<script_id>", methods=["PATCH"])
@require_auth
def update_script(script_id):
    body, error = validate_request(UpdateScriptRequest, _json_body())
    if error:
        return error
    updates = body.model_dump(exclude_unset=True)
    if not updates:
        return jsonify({"error": "No fields to update"}), 400

    script = _get_script(script_id)
    if body.status:
        _apply_status(script, body.status)
    if body.content:
        script.content = body.content
        script.word_count = count_words(body.content)
        script.duration_seconds = estimate_duration_seconds(script.word_count)
    if "posted_url" in updates:
        script.posted_url = body.posted_url
    db.session.commit()
    return jsonify({"script": script.to_dict()})


@api_bp.route("/scripts/<script_id>", methods=["DELETE"])
@require_auth
def delete_script(script_id):
    db.session.delete(_get_script(script_id))
    db.session.commit()
    return jsonify({"success": True})


# ===================
# Transcripts
# ===================

@api_bp.route("/transcripts/parse", methods=["POST"])
def parse_transcript_upload():
    body, error = validate_request(ParseTranscriptRequest, _json_body())
    if error:
        return error
    if body.filename and not is_supported_transcript_file(body.filename):
        return jsonify({"error": f"Unsupported file type: {body.filename}"}), 400
    return jsonify(parse_transcript(body.content, body.filename, body.interviewer_name))
