"""
Hook generation service.
Asks the LLM for opening lines in a creator's voice, steered by the creator's archetype
(hook-type distribution), corpus examples and the hooks already used for that creator.
"""
import re
import time
from dataclasses import dataclass

import llm_utils
import prompt_builders
from config import Config, DEBUG
from corpus_retrieval import format_corpus_examples, retrieve_relevant_corpus
from db_models import Hook, get_creator_model
from extensions import db
from schemas import HOOK_VARIATIONS_SCHEMA, HOOKS_SCHEMA, unwrap_list
from utils import count_words, elapsed_ms, round_half_up
from voice_taxonomy import DEFAULT_ARCHETYPE, HOOK_TYPES, get_affinity_hook_types

MAX_HOOK_WORDS = 25
RETRY_TEMPERATURE = 0.7
RECENT_HOOKS_IN_PROMPT = 30
DEFAULT_RECOMMENDED_VARIATIONS = [0, 1]

_VARIATION_INDEX_RE = re.compile(r"(\d+)")


def _log(msg: str, verbose_only: bool = False) -> None:
    """Log with [HOOKS] prefix. Use verbose_only for extra debug output."""
    if verbose_only and not DEBUG:
        return
    print(f"[HOOKS] {msg}")


@dataclass
class HookGenerationResult:
    model_id: str
    hooks: list[dict]
    generation_stats: dict
    variation_sets: list[dict] | None = None

    def to_dict(self) -> dict:
        return {
            "model_id": self.model_id,
            "hooks": self.hooks,
            "variation_sets": self.variation_sets,
            "generation_stats": self.generation_stats,
        }


def get_hook_type_distribution(
    count: int,
    voice_profile: dict | None,
    hook_types: list[str] | None = None,
) -> dict[str, int]:
    """
    Split `count` hooks across hook types, weighting the archetype's affinity types 2:1.

    A profile without a primary archetype is treated as DEFAULT_ARCHETYPE. The returned
    counts always sum to `count`.
    """
    types = list(hook_types or HOOK_TYPES)
    if not types:
        return {}
    primary = ((voice_profile or {}).get("archetype_assignment") or {}).get("primary") or DEFAULT_ARCHETYPE
    affinities = get_affinity_hook_types(primary)

    weighted = [(t, 2 if t in affinities else 1) for t in types]
    total_weight = sum(w for _, w in weighted)

    distribution: dict[str, int] = {}
    remaining = count
    for hook_type, weight in weighted:
        n = min(round_half_up(weight / total_weight * count), remaining)
        distribution[hook_type] = n
        remaining -= n

    i = 0
    while remaining > 0:
        distribution[weighted[i % len(weighted)][0]] += 1
        remaining -= 1
        i += 1
    return distribution


def _parse_recommended(values) -> list[int]:
    if not values:
        return list(DEFAULT_RECOMMENDED_VARIATIONS)
    indices = []
    for v in values:
        if isinstance(v, int):
            indices.append(v)
        elif isinstance(v, str):
            m = _VARIATION_INDEX_RE.search(v)
            if m:
                indices.append(int(m.group(1)))
    return indices or list(DEFAULT_RECOMMENDED_VARIATIONS)


def parse_hooks_response(text: str, variation_mode: bool = False) -> tuple[list[dict], list[dict] | None]:
    """
    Parse the model reply into (hooks, variation_sets).

    Accepts a flat hook list, a list of concept variation sets, or an object wrapping either
    under "hooks" / "variation_sets". Variation sets are flattened into hooks, each tagged
    with its concept_id. Raises ValueError if the reply is not one of those shapes.
    """
    parsed = llm_utils.parse_json_response(text)
    if isinstance(parsed, dict):
        key = "variation_sets" if "variation_sets" in parsed else "hooks"
        items = unwrap_list(parsed, key)
    elif isinstance(parsed, list):
        items = parsed
    else:
        raise ValueError("Response is not a list of hooks")

    if items and isinstance(items[0], dict) and "variations" in items[0]:
        variation_sets = []
        hooks = []
        for s in items:
            if not isinstance(s, dict):
                continue
            concept_id = s.get("concept_id") or f"concept_{len(variation_sets) + 1}"
            variations = [
                {**v, "concept_id": concept_id}
                for v in (s.get("variations") or [])
                if isinstance(v, dict)
            ]
            variation_sets.append({
                "concept_id": concept_id,
                "concept": s.get("concept", ""),
                "variations": variations,
                "recommended_for_testing": _parse_recommended(s.get("recommended_for_testing")),
            })
            hooks.extend(variations)
        return hooks, variation_sets

    if variation_mode:
        print("[WARNING] Expected hook variation sets but got a flat hook list")
    return [h for h in items if isinstance(h, dict)], None


def validate_hooks(hooks: list[dict]) -> list[dict]:
    """Drop malformed, over-long (>25 words) and duplicate hooks; normalize the rest."""
    seen: set[str] = set()
    valid = []
    for h in hooks:
        text = h.get("hook")
        hook_type = h.get("hook_type")
        if not isinstance(text, str) or not isinstance(hook_type, str) or not hook_type:
            continue
        text = text.strip()
        if not text or count_words(text) > MAX_HOOK_WORDS:
            continue
        key = text.lower()
        if key in seen:
            continue
        seen.add(key)

        levers = h.get("parasocial_levers")
        cleaned = {
            "hook": text,
            "hook_type": hook_type,
            "parasocial_levers": list(levers) if isinstance(levers, list) else [],
            "why_it_works": h.get("why_it_works") or "",
        }
        for optional in ("pcm_type", "concept_id", "variation_strategy"):
            if h.get(optional):
                cleaned[optional] = h[optional]
        valid.append(cleaned)
    return valid


def get_recent_hooks(model_id: str, limit: int = 100) -> list[str]:
    """Hook texts recently saved for a model, newest first."""
    stmt = (
        db.select(Hook.content)
        .where(Hook.model_id == model_id)
        .order_by(Hook.created_at.desc())
        .limit(limit)
    )
    return list(db.session.scalars(stmt))


def save_generated_hooks(model_id: str, hooks: list[dict]) -> list[str]:
    """Persist hooks with source 'generated'. Returns the new hook ids."""
    rows = [
        Hook(
            model_id=model_id,
            content=h["hook"],
            hook_type=h.get("hook_type"),
            source="generated",
            variation_group_id=h.get("concept_id"),
            pcm_type=h.get("pcm_type"),
            variation_strategy=h.get("variation_strategy"),
            shareability_score=h.get("shareability_score"),
        )
        for h in hooks
    ]
    db.session.add_all(rows)
    db.session.commit()
    _log(f"Saved {len(rows)} hooks for model {model_id}", verbose_only=True)
    return [r.id for r in rows]


def generate_hooks(
    model_id: str,
    count: int = Config.hook_count,
    hook_types: list[str] | None = None,
    corpus_limit: int = Config.corpus_limit,
    temperature: float = Config.hook_temperature,
    variations_per_concept: int = 1,
    enable_pcm_tracking: bool = False,
) -> HookGenerationResult:
    """
    Generate hooks for a creator model.

    Makes two attempts; the retry runs at a lower temperature. Corpus retrieval is
    best-effort. Hooks identical to one the creator already has are dropped.

    Raises:
        NotFoundError: model missing or has no voice profile.
        ValueError / provider errors: both attempts failed.
    """
    start = time.time()
    variation_mode = variations_per_concept > 1
    model = get_creator_model(model_id, require_profile=True)
    voice_profile = model.voice_profile

    corpus_examples = ""
    if model.embedding is not None:
        try:
            corpus = retrieve_relevant_corpus(model_id, limit=corpus_limit)
            corpus_examples = format_corpus_examples(corpus.matches)
        except Exception as e:
            print(f"[WARNING] Corpus retrieval failed, generating hooks without examples: {e}")

    distribution = get_hook_type_distribution(count, voice_profile, hook_types)
    recent_hooks = get_recent_hooks(model_id)
    prompt = prompt_builders.build_hook_generation_prompt(
        model.display_name,
        voice_profile,
        corpus_examples,
        distribution,
        count,
        recent_hooks=recent_hooks[:RECENT_HOOKS_IN_PROMPT],
        variations_per_concept=variations_per_concept,
        enable_pcm_tracking=enable_pcm_tracking,
    )
    schema = HOOK_VARIATIONS_SCHEMA if variation_mode else HOOKS_SCHEMA
    provider = llm_utils.get_provider_for_step("hooks")

    hooks: list[dict] = []
    variation_sets = None
    tokens_used = 0
    attempt_temp = temperature
    for attempt in range(2):
        try:
            text, tokens = llm_utils.generate_text_with_usage(
                [{"role": "user", "content": prompt}],
                provider=provider,
                temperature=attempt_temp,
                response_json_schema=schema,
            )
            tokens_used += tokens
            hooks, variation_sets = parse_hooks_response(text, variation_mode)
            break
        except Exception as e:
            print(f"[WARNING] Hook generation attempt {attempt + 1} failed: {e}")
            if attempt == 0:
                attempt_temp = RETRY_TEMPERATURE
            else:
                raise

    hooks = validate_hooks(hooks)
    if recent_hooks:
        used = {h.strip().lower() for h in recent_hooks}
        before = len(hooks)
        hooks = [h for h in hooks if h["hook"].lower() not in used]
        if len(hooks) < before:
            _log(f"Dropped {before - len(hooks)} hooks already used by this creator")

    by_type: dict[str, int] = {}
    for h in hooks:
        by_type[h["hook_type"]] = by_type.get(h["hook_type"], 0) + 1
    stats = {
        "requested": count,
        "generated": len(hooks),
        "by_type": by_type,
        "generation_time_ms": elapsed_ms(start),
        "tokens_used": tokens_used,
    }
    if enable_pcm_tracking:
        by_pcm: dict[str, int] = {}
        for h in hooks:
            if h.get("pcm_type"):
                by_pcm[h["pcm_type"]] = by_pcm.get(h["pcm_type"], 0) + 1
        stats["by_pcm_type"] = by_pcm

    _log(f"{len(hooks)}/{count} hooks for {model.display_name} ({llm_utils.get_text_model_display()})")
    return HookGenerationResult(
        model_id=model_id,
        hooks=hooks,
        generation_stats=stats,
        variation_sets=variation_sets,
    )
