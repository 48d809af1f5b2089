"""
Batch tracking.
Every pipeline run is recorded as a script_batches row (counts, averages, time, tokens and a
rough USD cost) so per-creator generation history can be reported.
"""
import secrets
import string
from datetime import datetime, timezone

from config import DEBUG
from db_models import ScriptBatch
from extensions import db

PIPELINE_VERSION = "1.0"
TOKEN_OVERHEAD = 1.2            # output tokens undercount billed tokens
EMBEDDING_COST_PER_BATCH = 0.001

# USD per million tokens, by stage tier
VALIDATION_RATE = 1.25
GENERATION_RATE = 15.0
VOICE_RATE = 75.0

_ID_ALPHABET = string.ascii_lowercase + string.digits


def _log(msg: str, verbose_only: bool = False) -> None:
    """Log with [BATCH] prefix. Use verbose_only for extra debug output."""
    if verbose_only and not DEBUG:
        return
    print(f"[BATCH] {msg}")


def generate_batch_id() -> str:
    """batch_YYYYMMDD_xxxxxx (UTC date, 6 random lowercase alphanumerics)."""
    date_str = datetime.now(timezone.utc).strftime("%Y%m%d")
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(6))
    return f"batch_{date_str}_{suffix}"


def _stage_tokens(stages: dict, name: str) -> int:
    return (stages.get(name) or {}).get("tokens_used") or 0


def calculate_estimated_cost(stages: dict) -> float:
    """Estimated USD cost of one run from per-stage token counts, rounded to 4 places."""
    validation = _stage_tokens(stages, "validation")
    generation = _stage_tokens(stages, "hook_generation") + _stage_tokens(stages, "script_expansion")
    voice = _stage_tokens(stages, "voice_transformation")
    cost = (
        validation * TOKEN_OVERHEAD * VALIDATION_RATE
        + generation * TOKEN_OVERHEAD * GENERATION_RATE
        + voice * TOKEN_OVERHEAD * VOICE_RATE
    ) / 1_000_000
    return round(cost + EMBEDDING_COST_PER_BATCH, 4)


def create_batch(model_id: str, result, hooks_requested: int, batch_id: str | None = None) -> str:
    """
    Record a finished pipeline run. `result` is a script_pipeline.PipelineResult.

    Returns:
        The batch id.
    """
    batch_id = batch_id or generate_batch_id()
    scripts = result.scripts
    stages = result.stages
    avg_fidelity = sum(s["voice_fidelity_score"] for s in scripts) / len(scripts) if scripts else 0
    avg_words = sum(s["word_count"] for s in scripts) / len(scripts) if scripts else 0

    batch = ScriptBatch(
        id=batch_id,
        model_id=model_id,
        hooks_requested=hooks_requested,
        scripts_generated=(stages.get("script_expansion") or {}).get("scripts_generated", 0),
        scripts_passed=result.final_script_count,
        scripts_failed=(stages.get("validation") or {}).get("failed", 0),
        avg_fidelity_score=round(avg_fidelity, 2),
        avg_word_count=round(avg_words, 1),
        generation_time_ms=result.total_time_ms,
        tokens_used=result.total_tokens_used,
        estimated_cost=calculate_estimated_cost(stages),
        pipeline_version=PIPELINE_VERSION,
    )
    db.session.add(batch)
    db.session.commit()
    _log(f"Recorded {batch_id}: {batch.scripts_passed} passed, ${batch.estimated_cost}")
    return batch_id


def get_batch_stats(model_id: str) -> dict:
    """Totals across a model's batches; fidelity and word-count averages are weighted by scripts_passed."""
    batches = list(db.session.scalars(db.select(ScriptBatch).where(ScriptBatch.model_id == model_id)))
    passed = sum(b.scripts_passed or 0 for b in batches)
    if passed:
        avg_fidelity = sum((b.avg_fidelity_score or 0) * (b.scripts_passed or 0) for b in batches) / passed
        avg_words = sum((b.avg_word_count or 0) * (b.scripts_passed or 0) for b in batches) / passed
    else:
        avg_fidelity = avg_words = 0
    return {
        "total_batches": len(batches),
        "total_scripts_generated": sum(b.scripts_generated or 0 for b in batches),
        "total_scripts_passed": passed,
        "avg_voice_fidelity": round(avg_fidelity, 2),
        "avg_word_count": round(avg_words, 1),
        "total_time_ms": sum(b.generation_time_ms or 0 for b in batches),
        "total_tokens": sum(b.tokens_used or 0 for b in batches),
        "total_estimated_cost": round(sum(b.estimated_cost or 0 for b in batches), 4),
    }


def get_recent_batches(model_id: str, limit: int = 10) -> list[ScriptBatch]:
    stmt = (
        db.select(ScriptBatch)
        .where(ScriptBatch.model_id == model_id)
        .order_by(ScriptBatch.created_at.desc())
        .limit(limit)
    )
    return list(db.session.scalars(stmt))
