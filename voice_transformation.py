"""
Voice transformation service.
Rewrites expanded scripts so they read like the creator actually said them, then puts the
hook back at the front if the rewrite buried it under filler.
"""
import re
import time
from dataclasses import dataclass

import llm_utils
import prompt_builders
from config import Config, DEBUG
from db_models import Script, get_creator_model
from extensions import db
from schemas import TRANSFORMED_SCRIPTS_SCHEMA, unwrap_list
from utils import average, count_words, elapsed_ms, round_half_up

APPROVED_SAMPLE_LIMIT = 5
APPROVED_SAMPLE_CHARS = 100
BATCH_DELAY_SECONDS = 1.0
HOOK_OPENER_WORDS = 4

LEADING_FILLER_PATTERNS = [
    re.compile(r"^okay\s+so\s+like\b,?\s*", re.IGNORECASE),
    re.compile(r"^so\s+like\b,?\s*", re.IGNORECASE),
    re.compile(r"^um,?\s+okay\s+so\s+like\b,?\s*", re.IGNORECASE),
    re.compile(r"^um,?\s+so\s+like\b,?\s*", re.IGNORECASE),
    re.compile(r"^um,?\s+like\b,?\s*", re.IGNORECASE),
    re.compile(r"^like\b,?\s*", re.IGNORECASE),
    re.compile(r"^okay\s+so\b,?\s*", re.IGNORECASE),
    re.compile(r"^um\b,?\s*", re.IGNORECASE),
]

_NON_LETTER_RE = re.compile(r"[^a-z\s]")


def _log(msg: str, verbose_only: bool = False) -> None:
    """Log with [VOICE] prefix. Use verbose_only for extra debug output."""
    if verbose_only and not DEBUG:
        return
    print(f"[VOICE] {msg}")


@dataclass
class VoiceTransformationResult:
    model_id: str
    transformed_scripts: list[dict]
    transformation_stats: dict

    def to_dict(self) -> dict:
        return {
            "model_id": self.model_id,
            "transformed_scripts": self.transformed_scripts,
            "transformation_stats": self.transformation_stats,
        }


def _letters_only(text: str) -> str:
    return _NON_LETTER_RE.sub("", text.lower()).strip()


def _starts_with(text: str, words: list[str]) -> bool:
    if not words:
        return True
    pattern = r"\s+".join(re.escape(w) for w in words)
    return re.match(pattern, _letters_only(text)) is not None


def preserve_hook_opener(script: str, hook: str) -> str:
    """Strip filler the rewrite put in front of the hook. Scripts already opening with the hook are untouched."""
    script = (script or "").strip()
    hook_words = _letters_only(hook or "").split()[:HOOK_OPENER_WORDS]
    if _starts_with(script, hook_words):
        return script

    previous = None
    while previous != script:
        previous = script
        for pattern in LEADING_FILLER_PATTERNS:
            script = pattern.sub("", script)
        script = script.strip()
    return script


def process_transformed_script(raw: dict, original: dict | None = None) -> dict:
    """Normalize one rewrite: clamp fidelity to 0-100, restore the hook opener, recount words."""
    original = original or {}
    hook = raw.get("original_hook") or original.get("hook") or ""
    text = preserve_hook_opener(raw.get("transformed_script") or "", hook)
    score = raw.get("voice_fidelity_score")
    if isinstance(score, (int, float)) and not isinstance(score, bool):
        score = min(100, max(0, score))
    else:
        score = 0

    def _list(key):
        value = raw.get(key)
        return value if isinstance(value, list) else []

    return {
        "script_index": original.get("hook_index", raw.get("script_index", 0)),
        "original_hook": hook,
        "transformed_script": text,
        "word_count": count_words(text),
        "changes_made": _list("changes_made"),
        "voice_fidelity_score": score,
        "ai_tells_removed": _list("ai_tells_removed"),
        "voice_elements_added": _list("voice_elements_added"),
    }


def _approved_samples(model_id: str) -> list[str]:
    stmt = (
        db.select(Script.content)
        .where(Script.model_id == model_id, Script.status == "approved")
        .order_by(Script.created_at.desc())
        .limit(APPROVED_SAMPLE_LIMIT)
    )
    return [c[:APPROVED_SAMPLE_CHARS] for c in db.session.scalars(stmt) if c]


def _match_batch(raw_results: list[dict], batch: list[dict]) -> list[tuple[dict, dict]]:
    """Pair each reply item with its input script, by script_index, falling back to reply order."""
    by_index = {s.get("hook_index"): s for s in batch}
    pairs = []
    used = set()
    for pos, raw in enumerate(raw_results):
        if not isinstance(raw, dict):
            continue
        original = by_index.get(raw.get("script_index"))
        if original is None and pos < len(batch):
            original = batch[pos]
        if original is None or id(original) in used:
            continue
        used.add(id(original))
        pairs.append((raw, original))
    return pairs


def transform_voice(
    model_id: str,
    scripts: list[dict],
    batch_size: int = Config.voice_batch_size,
    temperature: float = Config.voice_temperature,
    max_retries: int = 2,
) -> VoiceTransformationResult:
    """
    Rewrite scripts in the creator's voice.

    Each input script needs 'hook_index' (its position in the caller's list), 'hook' and
    'script'. Output script_index is always that hook_index. A batch is retried max_retries
    times with linear backoff, then skipped.

    Raises:
        NotFoundError: model missing or has no voice profile.
    """
    start = time.time()
    model = get_creator_model(model_id, require_profile=True)
    voice_profile = model.voice_profile
    samples = _approved_samples(model_id)
    provider = llm_utils.get_provider_for_step("voice")

    scripts = [{**s, "hook_index": s.get("hook_index", i)} for i, s in enumerate(scripts)]
    transformed: list[dict] = []
    total_tokens = 0
    for offset in range(0, len(scripts), batch_size):
        batch = scripts[offset:offset + batch_size]
        batch_no = offset // batch_size + 1
        prompt = prompt_builders.build_voice_transformation_prompt(
            model.display_name,
            voice_profile,
            [{"script_index": s["hook_index"], "hook": s.get("hook", ""), "script": s.get("script", "")} for s in batch],
            samples,
        )
        last_error = None
        for attempt in range(max_retries + 1):
            try:
                text, tokens = llm_utils.generate_text_with_usage(
                    [{"role": "user", "content": prompt}],
                    provider=provider,
                    temperature=temperature,
                    response_json_schema=TRANSFORMED_SCRIPTS_SCHEMA,
                )
                total_tokens += tokens
                raw = unwrap_list(llm_utils.parse_json_response(text), "scripts")
                transformed.extend(process_transformed_script(r, o) for r, o in _match_batch(raw, batch))
                last_error = None
                break
            except Exception as e:
                last_error = e
                print(f"[WARNING] Voice batch {batch_no} attempt {attempt + 1} failed: {e}")
                if attempt < max_retries:
                    time.sleep(1.0 * (attempt + 1))
        if last_error is not None:
            print(f"[WARNING] Voice batch {batch_no} skipped after {max_retries + 1} attempts")

        if offset + batch_size < len(scripts):
            time.sleep(BATCH_DELAY_SECONDS)

    stats = {
        "scripts_received": len(scripts),
        "scripts_transformed": len(transformed),
        "avg_voice_fidelity": round_half_up(average([s["voice_fidelity_score"] for s in transformed])),
        "avg_ai_tells_removed": average([len(s["ai_tells_removed"]) for s in transformed], 1),
        "avg_voice_elements_added": average([len(s["voice_elements_added"]) for s in transformed], 1),
        "time_ms": elapsed_ms(start),
        "tokens_used": total_tokens,
    }
    _log(f"Transformed {len(transformed)}/{len(scripts)} scripts (avg fidelity {stats['avg_voice_fidelity']})")
    return VoiceTransformationResult(model_id=model_id, transformed_scripts=transformed, transformation_stats=stats)


def transform_single_script(model_id: str, script: dict, **options) -> dict | None:
    """Rewrite one script; None if the call produced nothing."""
    options.pop("batch_size", None)
    result = transform_voice(model_id, [script], batch_size=1, **options)
    return result.transformed_scripts[0] if result.transformed_scripts else None
