"""
Script expansion service.
Turns accepted hooks into full short-form scripts (hook, tension, payload, closer) sized
to a target spoken duration.
"""
import time
from dataclasses import dataclass

import llm_utils
import prompt_builders
from config import DEBUG
from corpus_retrieval import format_corpus_examples, retrieve_relevant_corpus
from db_models import get_creator_model
from organic_cta import find_cta_anti_patterns
from schemas import EXPANDED_SCRIPTS_SCHEMA, unwrap_list
from utils import average, count_words, elapsed_ms, estimate_duration_seconds, normalize_text, round_half_up
from voice_taxonomy import DURATION_GUIDELINES

STRUCTURE_PARTS = ("hook", "tension", "payload", "closer")
BATCH_DELAY_SECONDS = 0.5


def _log(msg: str, verbose_only: bool = False) -> None:
    """Log with [EXPANSION] prefix. Use verbose_only for extra debug output."""
    if verbose_only and not DEBUG:
        return
    print(f"[EXPANSION] {msg}")


@dataclass
class ScriptCheck:
    valid: bool
    issues: list[str]


@dataclass
class ScriptExpansionResult:
    model_id: str
    scripts: list[dict]
    expansion_stats: dict

    def to_dict(self) -> dict:
        return {"model_id": self.model_id, "scripts": self.scripts, "expansion_stats": self.expansion_stats}


def validate_script(script: dict, target_duration: str, boundaries: dict | None) -> ScriptCheck:
    """Heuristic checks on one expanded script: length, hook opener, boundaries, structure, salesy CTAs."""
    issues = []
    guide = DURATION_GUIDELINES[target_duration]
    min_words, max_words = guide["words"]
    target = f"{min_words}-{max_words}"
    words = script.get("word_count") or 0
    text = script.get("script") or ""

    if words < min_words - 10:
        issues.append(f"Script too short: {words} words (target: {target})")
    if words > max_words + 20:
        issues.append(f"Script too long: {words} words (target: {target})")

    hook_start = normalize_text(script.get("hook"))[:30]
    if hook_start not in normalize_text(text[:200]):
        issues.append("Script may not start with the hook")

    lowered = text.lower()
    boundaries = boundaries or {}
    for hard_no in boundaries.get("hard_nos") or []:
        if hard_no and hard_no.lower() in lowered:
            issues.append(f'Contains hard no: "{hard_no}"')
    for topic in boundaries.get("topics_to_avoid") or []:
        if topic and topic.lower() in lowered:
            issues.append(f'Contains topic to avoid: "{topic}"')

    breakdown = script.get("structure_breakdown")
    if not breakdown:
        issues.append("Missing structure_breakdown")
    else:
        for part in STRUCTURE_PARTS:
            if not breakdown.get(part):
                issues.append(f"Missing structure: {part}")

    for phrase in find_cta_anti_patterns(text):
        issues.append(f'Salesy CTA: "{phrase}"')

    return ScriptCheck(valid=not issues, issues=issues)


def process_scripts(raw_scripts: list[dict], target_duration: str, boundaries: dict | None) -> list[dict]:
    """Fill defaults, recompute word counts and durations, and attach validation issues."""
    processed = []
    for raw in raw_scripts:
        if not isinstance(raw, dict):
            continue
        text = raw.get("script") or ""
        words = count_words(text)
        breakdown = raw.get("structure_breakdown")
        script = {
            "hook_index": raw.get("hook_index") if isinstance(raw.get("hook_index"), int) else 0,
            "hook": raw.get("hook") or "",
            "script": text,
            "word_count": words,
            "estimated_duration_seconds": estimate_duration_seconds(words),
            "structure_breakdown": breakdown if isinstance(breakdown, dict) else {p: "" for p in STRUCTURE_PARTS},
            "parasocial_levers_used": raw.get("parasocial_levers_used") if isinstance(raw.get("parasocial_levers_used"), list) else [],
            "voice_elements_used": raw.get("voice_elements_used") if isinstance(raw.get("voice_elements_used"), list) else [],
            "cta_type": raw.get("cta_type"),
        }
        check = validate_script(script, target_duration, boundaries)
        if not check.valid:
            script["validation_issues"] = check.issues
        processed.append(script)
    return processed


def expand_scripts(
    model_id: str,
    hooks: list[dict],
    target_duration: str = "medium",
    corpus_limit: int = 10,
    batch_size: int = 10,
    temperature: float = 0.8,
    cta_type: str = "auto",
) -> ScriptExpansionResult:
    """
    Expand hooks into full scripts, batch_size hooks per LLM call.

    Each script's hook_index is the position of its hook in `hooks`. A batch that fails is
    logged and skipped, so fewer scripts than hooks may come back.

    Raises:
        NotFoundError: model missing or has no voice profile.
    """
    if target_duration not in DURATION_GUIDELINES:
        raise ValueError(f"Unknown target_duration '{target_duration}'. Use one of: {list(DURATION_GUIDELINES)}")
    start = time.time()
    model = get_creator_model(model_id, require_profile=True)
    voice_profile = model.voice_profile
    boundaries = voice_profile.get("boundaries") or model.boundaries

    corpus_examples = ""
    if model.embedding is not None:
        try:
            corpus = retrieve_relevant_corpus(model_id, limit=corpus_limit)
            corpus_examples = format_corpus_examples(corpus.matches)
        except Exception as e:
            print(f"[WARNING] Corpus retrieval failed, expanding without examples: {e}")

    provider = llm_utils.get_provider_for_step("expansion")
    all_scripts: list[dict] = []
    total_tokens = 0
    for offset in range(0, len(hooks), batch_size):
        batch = hooks[offset:offset + batch_size]
        prompt_hooks = [{**h, "hook_index": i} for i, h in enumerate(batch)]
        prompt = prompt_builders.build_script_expansion_prompt(
            model.display_name, voice_profile, prompt_hooks, corpus_examples, target_duration, cta_type
        )
        try:
            text, tokens = llm_utils.generate_text_with_usage(
                [{"role": "user", "content": prompt}],
                provider=provider,
                temperature=temperature,
                response_json_schema=EXPANDED_SCRIPTS_SCHEMA,
            )
            total_tokens += tokens
            raw = unwrap_list(llm_utils.parse_json_response(text), "scripts")
            processed = process_scripts(raw, target_duration, boundaries)
            for script in processed:
                local = script["hook_index"]
                script["hook_index"] = local + offset
                if 0 <= local < len(batch):
                    source = batch[local]
                    script["hook_type"] = source.get("hook_type")
                    script.setdefault("parasocial_levers", source.get("parasocial_levers") or [])
            all_scripts.extend(processed)
            _log(f"Batch {offset // batch_size + 1}: {len(processed)}/{len(batch)} scripts", verbose_only=True)
        except Exception as e:
            print(f"[WARNING] Expansion batch {offset // batch_size + 1} failed: {e}")

        if offset + batch_size < len(hooks):
            time.sleep(BATCH_DELAY_SECONDS)

    stats = {
        "hooks_received": len(hooks),
        "scripts_generated": len(all_scripts),
        "avg_word_count": round_half_up(average([s["word_count"] for s in all_scripts])),
        "avg_duration_seconds": round_half_up(average([s["estimated_duration_seconds"] for s in all_scripts])),
        "generation_time_ms": elapsed_ms(start),
        "tokens_used": total_tokens,
    }
    _log(f"Expanded {len(all_scripts)}/{len(hooks)} hooks ({target_duration})")
    return ScriptExpansionResult(model_id=model_id, scripts=all_scripts, expansion_stats=stats)


def expand_single_hook(model_id: str, hook: dict, **options) -> dict | None:
    """Expand one hook; returns the script or None if the call produced nothing."""
    result = expand_scripts(model_id, [hook], **options)
    return result.scripts[0] if result.scripts else None
