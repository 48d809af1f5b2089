"""
Script generation pipeline.
Runs the stages in order (corpus retrieval, hook generation, shareability scoring, script
expansion, voice transformation, validation with auto-revision), collects per-stage timing
and token usage, and optionally saves the passing scripts as a tracked batch.
"""
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from batch_tracking import create_batch
from config import Config, DEBUG
from corpus_retrieval import retrieve_relevant_corpus
from db_models import CreatorModel, Script
from extensions import db
from hook_generation import generate_hooks, save_generated_hooks
from script_expansion import expand_scripts
from script_validation import get_passing_scripts, get_scripts_needing_revision, validate_scripts
from shareability_scoring import score_shareability
from utils import elapsed_ms, estimate_duration_seconds
from voice_transformation import transform_voice

STAGES = [
    "initialization",
    "corpus_retrieval",
    "hook_generation",
    "shareability_scoring",
    "script_expansion",
    "voice_transformation",
    "validation",
    "save",
]


def _log(msg: str, verbose_only: bool = False) -> None:
    """Log with [PIPELINE] prefix. Use verbose_only for extra debug output."""
    if verbose_only and not DEBUG:
        return
    print(f"[PIPELINE] {msg}")


class PipelineError(Exception):
    """A pipeline failure tied to the stage it happened in."""

    def __init__(self, message: str, stage: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.message = message
        self.stage = stage
        self.cause = cause


class ModelNotFoundError(PipelineError):
    def __init__(self, model_id: str):
        super().__init__(f"Model not found: {model_id}", "initialization")
        self.model_id = model_id


class StageFailedError(PipelineError):
    def __init__(self, stage: str, cause: BaseException):
        super().__init__(f"Stage '{stage}' failed: {cause}", stage, cause)


@dataclass
class PipelineCallbacks:
    on_stage_start: Optional[Callable[[str], None]] = None
    on_stage_complete: Optional[Callable[[str, dict], None]] = None
    on_stage_error: Optional[Callable[[str, Exception], None]] = None
    on_progress: Optional[Callable[[str, int, int], None]] = None


@dataclass
class PipelineOptions:
    hook_count: int = Config.hook_count
    hook_types: Optional[list[str]] = None
    target_duration: str = Config.target_duration
    min_fidelity_score: int = Config.min_fidelity_score
    auto_revise: bool = Config.auto_revise
    max_revision_attempts: int = Config.max_revision_attempts
    corpus_limit: int = Config.corpus_limit
    variations_per_concept: int = Config.variations_per_concept
    enable_shareability_scoring: bool = Config.enable_shareability_scoring
    cta_style: str = Config.cta_style
    enable_pcm_tracking: bool = Config.enable_pcm_tracking
    retry_failed_stages: bool = Config.retry_failed_stages
    max_retries: int = Config.max_retries
    callbacks: PipelineCallbacks = field(default_factory=PipelineCallbacks)


@dataclass
class PipelineResult:
    model_id: str
    model_name: str
    scripts: list[dict]
    stages: dict
    total_time_ms: int
    total_tokens_used: int
    final_script_count: int
    variation_sets: Optional[list[dict]] = None
    pcm_distribution: Optional[dict] = None
    shareability_summary: Optional[dict] = None
    saved_ids: Optional[list[str]] = None
    batch_id: Optional[str] = None

    def to_dict(self) -> dict:
        data = {
            "model_id": self.model_id,
            "model_name": self.model_name,
            "scripts": self.scripts,
            "stages": self.stages,
            "total_time_ms": self.total_time_ms,
            "total_tokens_used": self.total_tokens_used,
            "final_script_count": self.final_script_count,
            "variation_sets": self.variation_sets,
            "pcm_distribution": self.pcm_distribution,
            "shareability_summary": self.shareability_summary,
        }
        if self.saved_ids is not None:
            data["saved_ids"] = self.saved_ids
            data["batch_id"] = self.batch_id
        return data


def _emit(callbacks: PipelineCallbacks, name: str, *args) -> None:
    fn = getattr(callbacks, name, None)
    if fn is not None:
        fn(*args)


def with_retry(operation: Callable[[], Any], stage: str, max_retries: int = 2) -> Any:
    """Run operation, retrying up to max_retries times with 1s, 2s, 4s... backoff. Raises StageFailedError."""
    last_error: Optional[Exception] = None
    for attempt in range(max_retries + 1):
        try:
            return operation()
        except Exception as e:
            last_error = e
            if attempt < max_retries:
                delay = 2 ** attempt
                print(f"[WARNING] Stage '{stage}' failed (attempt {attempt + 1}/{max_retries + 1}), retrying in {delay}s: {e}")
                time.sleep(delay)
    raise StageFailedError(stage, last_error)


def execute_stage(stage: str, operation: Callable[[], Any], options: PipelineOptions) -> Any:
    """
    Run a critical stage: emit on_stage_start, run (with retries when enabled), and on failure
    emit on_stage_error once and raise a PipelineError.
    """
    _emit(options.callbacks, "on_stage_start", stage)
    try:
        if options.retry_failed_stages:
            return with_retry(operation, stage, options.max_retries)
        return operation()
    except Exception as e:
        error = e if isinstance(e, PipelineError) else StageFailedError(stage, e)
        _emit(options.callbacks, "on_stage_error", stage, error)
        if error is e:
            raise
        raise error from e


def _run_corpus_stage(model: CreatorModel, options: PipelineOptions) -> dict:
    start = time.time()
    _emit(options.callbacks, "on_stage_start", "corpus_retrieval")
    stats = {"matches": 0, "avg_similarity": 0, "time_ms": 0}
    failed = False
    if model.embedding is not None:
        try:
            corpus = retrieve_relevant_corpus(model.id, limit=options.corpus_limit)
            stats["matches"] = len(corpus.matches)
            stats["avg_similarity"] = corpus.retrieval_stats["avg_similarity"]
        except Exception as e:
            failed = True
            print(f"[WARNING] Corpus retrieval failed (non-critical): {e}")
            _emit(options.callbacks, "on_stage_error", "corpus_retrieval", e)
    else:
        _log("Model has no embedding; skipping corpus retrieval", verbose_only=True)
    stats["time_ms"] = elapsed_ms(start)
    if not failed:
        _emit(options.callbacks, "on_stage_complete", "corpus_retrieval", stats)
    return stats


def _run_shareability_stage(hooks: list[dict], options: PipelineOptions) -> tuple[dict | None, dict]:
    """Returns (stage stats or None when the stage failed, {hook position: shareability})."""
    start = time.time()
    _emit(options.callbacks, "on_stage_start", "shareability_scoring")
    try:
        result = score_shareability([{"content": h["hook"], "content_type": "hook"} for h in hooks])
    except Exception as e:
        print(f"[WARNING] Shareability scoring failed (non-critical): {e}")
        _emit(options.callbacks, "on_stage_error", "shareability_scoring", e)
        return None, {}
    by_hook = {s["index"]: s["shareability"] for s in result.scores}
    stats = {
        "scored": len(result.scores),
        "avg_score": result.batch_stats["avg_score"],
        "high_potential_count": result.batch_stats["high_potential_count"],
        "time_ms": elapsed_ms(start),
        "tokens_used": result.batch_stats["tokens_used"],
    }
    _emit(options.callbacks, "on_stage_complete", "shareability_scoring", stats)
    return stats, by_hook


def _validate_with_revisions(model_id: str, transformed: list[dict], options: PipelineOptions) -> tuple[dict, Any, dict]:
    """
    Validate, then re-transform REVISE scripts and re-validate the whole set, up to
    max_revision_attempts times.

    Returns:
        (scripts keyed by script_index, final ValidationBatchResult, revision counters)
    """
    current = {s["script_index"]: s for s in transformed}
    validation = validate_scripts(model_id, list(current.values()), options.min_fidelity_score)
    counters = {"revised": 0, "attempts": 0, "validation_tokens": validation.tokens_used, "revision_tokens": 0}

    if not options.auto_revise:
        return current, validation, counters

    for attempt in range(options.max_revision_attempts):
        needs_revision = get_scripts_needing_revision(list(current.values()), validation.validations)
        if not needs_revision:
            break
        _log(f"Revision attempt {attempt + 1}: {len(needs_revision)} scripts")
        to_revise = [
            {
                "hook_index": item["script"]["script_index"],
                "hook": item["script"]["original_hook"],
                "script": item["script"]["transformed_script"],
            }
            for item in needs_revision
        ]
        revised = transform_voice(
            model_id,
            to_revise,
            batch_size=Config.voice_batch_size,
            temperature=Config.revision_temperature,
        )
        counters["attempts"] += 1
        counters["revision_tokens"] += revised.transformation_stats["tokens_used"]
        counters["revised"] += len(revised.transformed_scripts)
        for script in revised.transformed_scripts:
            if script["script_index"] in current:
                current[script["script_index"]] = script

        validation = validate_scripts(model_id, list(current.values()), options.min_fidelity_score)
        counters["validation_tokens"] += validation.tokens_used

    return current, validation, counters


def _build_final_scripts(
    passing: list[dict],
    hooks: list[dict],
    expanded: list[dict],
    validations: list[dict],
    shareability: dict,
) -> list[dict]:
    expanded_by_index = {s["hook_index"]: s for s in expanded}
    validation_by_index = {v["script_index"]: v for v in validations}
    final = []
    for script in passing:
        idx = script["script_index"]
        hook = hooks[idx] if 0 <= idx < len(hooks) else {}
        source = expanded_by_index.get(idx) or {}
        verdict = validation_by_index.get(idx) or {}
        share = shareability.get(idx) or {}
        final.append({
            "script_index": idx,
            "hook": script["original_hook"],
            "hook_type": hook.get("hook_type") or "unknown",
            "script": script["transformed_script"],
            "word_count": script["word_count"],
            "estimated_duration_seconds": estimate_duration_seconds(script["word_count"]),
            "voice_fidelity_score": verdict.get("voice_fidelity_score") or script["voice_fidelity_score"],
            "parasocial_levers": hook.get("parasocial_levers") or [],
            "concept_id": hook.get("concept_id"),
            "shareability_score": share.get("score"),
            "share_trigger": share.get("primary_trigger"),
            "share_prediction": share.get("share_prediction"),
            "emotional_response": share.get("emotional_response"),
            "cta_type": source.get("cta_type"),
            "pcm_type": hook.get("pcm_type"),
        })
    return final


def run_pipeline(model_id: str, options: PipelineOptions | None = None) -> PipelineResult:
    """
    Run the full generation pipeline for one creator model.

    Corpus retrieval and shareability scoring are non-critical: failures are reported through
    on_stage_error and the run continues. Hook generation, expansion, voice transformation and
    validation are critical and raise StageFailedError.

    Raises:
        ModelNotFoundError: the model does not exist.
        PipelineError: the model has no voice profile (stage "initialization").
        StageFailedError: a critical stage failed.
    """
    options = options or PipelineOptions()
    callbacks = options.callbacks
    pipeline_start = time.time()

    _emit(callbacks, "on_stage_start", "initialization")
    model = db.session.get(CreatorModel, model_id)
    if model is None:
        error = ModelNotFoundError(model_id)
        _emit(callbacks, "on_stage_error", "initialization", error)
        raise error
    if not model.voice_profile:
        error = PipelineError(f"Model {model_id} has no voice profile", "initialization")
        _emit(callbacks, "on_stage_error", "initialization", error)
        raise error
    _emit(callbacks, "on_stage_complete", "initialization", {"model_id": model_id, "model_name": model.name})
    _log(f"Generating {options.hook_count} scripts for {model.display_name}")

    stages: dict[str, dict] = {}

    _log("Stage 1: Corpus retrieval", verbose_only=True)
    stages["corpus_retrieval"] = _run_corpus_stage(model, options)

    _log("Stage 2: Hook generation", verbose_only=True)
    stage_start = time.time()
    hook_result = execute_stage(
        "hook_generation",
        lambda: generate_hooks(
            model_id,
            count=options.hook_count,
            hook_types=options.hook_types,
            corpus_limit=options.corpus_limit,
            temperature=Config.hook_temperature,
            variations_per_concept=options.variations_per_concept,
            enable_pcm_tracking=options.enable_pcm_tracking,
        ),
        options,
    )
    hooks = hook_result.hooks
    stages["hook_generation"] = {
        "generated": len(hooks),
        "by_pcm_type": hook_result.generation_stats.get("by_pcm_type"),
        "variation_sets_count": len(hook_result.variation_sets) if hook_result.variation_sets else None,
        "time_ms": elapsed_ms(stage_start),
        "tokens_used": hook_result.generation_stats["tokens_used"],
    }
    _emit(callbacks, "on_stage_complete", "hook_generation", stages["hook_generation"])
    _emit(callbacks, "on_progress", "hook_generation", len(hooks), options.hook_count)
    try:
        save_generated_hooks(model_id, hooks)
    except Exception as e:
        db.session.rollback()
        print(f"[WARNING] Failed to save hooks for tracking: {e}")

    shareability: dict = {}
    if options.enable_shareability_scoring and hooks:
        _log("Stage 3: Shareability scoring", verbose_only=True)
        share_stats, shareability = _run_shareability_stage(hooks, options)
        if share_stats is not None:
            stages["shareability_scoring"] = share_stats

    _log("Stage 4: Script expansion", verbose_only=True)
    stage_start = time.time()
    expansion = execute_stage(
        "script_expansion",
        lambda: expand_scripts(
            model_id,
            hooks,
            target_duration=options.target_duration,
            corpus_limit=options.corpus_limit,
            cta_type=options.cta_style,
        ),
        options,
    )
    stages["script_expansion"] = {
        "expanded": len(expansion.scripts),
        "scripts_generated": len(expansion.scripts),
        "avg_words": expansion.expansion_stats["avg_word_count"],
        "time_ms": elapsed_ms(stage_start),
        "tokens_used": expansion.expansion_stats["tokens_used"],
    }
    _emit(callbacks, "on_stage_complete", "script_expansion", stages["script_expansion"])
    _emit(callbacks, "on_progress", "script_expansion", len(expansion.scripts), len(hooks))

    _log("Stage 5: Voice transformation", verbose_only=True)
    stage_start = time.time()
    transformation = execute_stage(
        "voice_transformation",
        lambda: transform_voice(
            model_id,
            expansion.scripts,
            batch_size=Config.voice_batch_size,
            temperature=Config.voice_temperature,
        ),
        options,
    )
    stages["voice_transformation"] = {
        "transformed": len(transformation.transformed_scripts),
        "avg_fidelity": transformation.transformation_stats["avg_voice_fidelity"],
        "time_ms": elapsed_ms(stage_start),
        "tokens_used": transformation.transformation_stats["tokens_used"],
    }
    _emit(callbacks, "on_stage_complete", "voice_transformation", stages["voice_transformation"])
    _emit(
        callbacks, "on_progress", "voice_transformation",
        len(transformation.transformed_scripts), len(expansion.scripts),
    )

    _log("Stage 6: Validation", verbose_only=True)
    stage_start = time.time()
    current, validation, counters = execute_stage(
        "validation",
        lambda: _validate_with_revisions(model_id, transformation.transformed_scripts, options),
        options,
    )
    stages["validation"] = {
        "passed": validation.summary["passed"],
        "revised": counters["revised"],
        "revision_attempts": counters["attempts"],
        "failed": validation.summary["failed"],
        "avg_fidelity": validation.summary["avg_fidelity_score"],
        "time_ms": elapsed_ms(stage_start),
        "tokens_used": counters["validation_tokens"] + counters["revision_tokens"],
    }
    _emit(callbacks, "on_stage_complete", "validation", stages["validation"])
    _emit(callbacks, "on_progress", "validation", validation.summary["passed"], validation.summary["total"])

    passing = get_passing_scripts(list(current.values()), validation.validations)
    final_scripts = _build_final_scripts(passing, hooks, expansion.scripts, validation.validations, shareability)

    pcm_distribution: dict[str, int] = {}
    for s in final_scripts:
        if s["pcm_type"]:
            pcm_distribution[s["pcm_type"]] = pcm_distribution.get(s["pcm_type"], 0) + 1

    shareability_summary = None
    if "shareability_scoring" in stages:
        top_triggers: dict[str, int] = {}
        for s in final_scripts:
            if s["share_trigger"]:
                top_triggers[s["share_trigger"]] = top_triggers.get(s["share_trigger"], 0) + 1
        shareability_summary = {
            "avg_score": stages["shareability_scoring"]["avg_score"],
            "high_potential_count": stages["shareability_scoring"]["high_potential_count"],
            "top_triggers": top_triggers,
        }

    total_tokens = sum(s.get("tokens_used") or 0 for s in stages.values())
    result = PipelineResult(
        model_id=model_id,
        model_name=model.name,
        scripts=final_scripts,
        stages=stages,
        total_time_ms=elapsed_ms(pipeline_start),
        total_tokens_used=total_tokens,
        final_script_count=len(final_scripts),
        variation_sets=hook_result.variation_sets,
        pcm_distribution=pcm_distribution or None,
        shareability_summary=shareability_summary,
    )
    _log(
        f"Done: {result.final_script_count}/{options.hook_count} scripts passed "
        f"in {result.total_time_ms} ms, {result.total_tokens_used} tokens"
    )
    return result


def save_scripts_to_database(
    model_id: str,
    scripts: list[dict],
    batch_id: str | None = None,
    variation_group_id: str | None = None,
) -> list[str]:
    """Insert final scripts as drafts. Returns the new script ids in input order."""
    rows = [
        Script(
            model_id=model_id,
            batch_id=batch_id,
            hook=s["hook"],
            hook_type=s.get("hook_type"),
            content=s["script"],
            word_count=s.get("word_count"),
            duration_seconds=s.get("estimated_duration_seconds"),
            voice_fidelity_score=s.get("voice_fidelity_score"),
            validation_passed=True,
            parasocial_levers=s.get("parasocial_levers") or [],
            status="draft",
            variation_group_id=variation_group_id or s.get("variation_group_id") or s.get("concept_id"),
            shareability_score=s.get("shareability_score"),
            share_trigger=s.get("share_trigger"),
            share_prediction=s.get("share_prediction"),
            emotional_response=s.get("emotional_response"),
            cta_type=s.get("cta_type"),
            pcm_type=s.get("pcm_type"),
        )
        for s in scripts
    ]
    db.session.add_all(rows)
    db.session.commit()
    return [r.id for r in rows]


def run_pipeline_and_save(model_id: str, options: PipelineOptions | None = None) -> PipelineResult:
    """Run the pipeline, record the batch, and save the passing scripts (ids set on each script)."""
    options = options or PipelineOptions()
    result = run_pipeline(model_id, options)

    _emit(options.callbacks, "on_stage_start", "save")
    start = time.time()
    try:
        batch_id = create_batch(model_id, result, options.hook_count)
        saved_ids = save_scripts_to_database(model_id, result.scripts, batch_id=batch_id)
    except Exception as e:
        db.session.rollback()
        error = StageFailedError("save", e)
        _emit(options.callbacks, "on_stage_error", "save", error)
        raise error from e

    for script, script_id in zip(result.scripts, saved_ids):
        script["id"] = script_id
    result.saved_ids = saved_ids
    result.batch_id = batch_id
    _emit(options.callbacks, "on_stage_complete", "save", {"saved": len(saved_ids), "batch_id": batch_id, "time_ms": elapsed_ms(start)})
    return result
