"""
Script validation service.
Scores voice-transformed scripts for fidelity to the creator, flags AI-sounding phrasing
and boundary violations, and assigns a PASS / REVISE / FAIL verdict.
"""
import re
import time
from collections import Counter
from dataclasses import dataclass

import llm_utils
import prompt_builders
from config import Config, DEBUG
from db_models import get_creator_model
from schemas import VALIDATION_SCHEMA, unwrap_list
from utils import average, elapsed_ms, round_half_up

VERDICTS = ("PASS", "REVISE", "FAIL")
REVISION_PRIORITIES = ("none", "low", "medium", "high")
FAIL_BELOW_SCORE = 60
LOW_PRIORITY_MIN_SCORE = 75
COMMON_ISSUE_MIN_COUNT = 2
COMMON_ISSUE_LIMIT = 5

# Stock phrasing that gives away machine-written copy
AI_TELL_PHRASES = [
    "Furthermore",
    "Additionally",
    "Moreover",
    "Nevertheless",
    "Consequently",
    "Thus",
    "Hence",
    "It's important to note",
    "One could argue",
    "Interestingly enough",
    "That being said",
    "At the end of the day",
    "In today's world",
    "Many people don't realize",
    "As someone who",
    "I find it fascinating",
    "It's worth noting",
]

_AI_TELL_RES = [
    (phrase, re.compile(r"\b" + re.escape(phrase.lower()).replace("'", "['’]") + r"\b"))
    for phrase in AI_TELL_PHRASES
]
_SENTENCE_REF_RE = re.compile(r"in sentence \d+")


def _log(msg: str, verbose_only: bool = False) -> None:
    """Log with [VALIDATION] prefix. Use verbose_only for extra debug output."""
    if verbose_only and not DEBUG:
        return
    print(f"[VALIDATION] {msg}")


@dataclass
class ValidationBatchResult:
    model_id: str
    validations: list[dict]
    summary: dict
    validation_time_ms: int
    tokens_used: int

    def to_dict(self) -> dict:
        return {
            "model_id": self.model_id,
            "validations": self.validations,
            "summary": self.summary,
            "validation_time_ms": self.validation_time_ms,
            "tokens_used": self.tokens_used,
        }


def detect_ai_tells(text: str) -> list[str]:
    """Stock AI phrases present in text (case-insensitive, whole words)."""
    lowered = (text or "").lower()
    return [phrase for phrase, pattern in _AI_TELL_RES if pattern.search(lowered)]


def _derive_priority(verdict: str, score: float) -> str:
    if verdict == "PASS":
        return "none"
    if verdict == "REVISE":
        return "low" if score >= LOW_PRIORITY_MIN_SCORE else "medium"
    return "high"


def process_validation_result(raw: dict, min_fidelity: int = Config.min_fidelity_score) -> dict:
    """
    Normalize one validation verdict.

    The score is clamped to 0-100. Missing or invalid verdicts and priorities are derived
    from the score, and a PASS below min_fidelity is demoted to REVISE.
    """
    score = raw.get("voice_fidelity_score")
    if isinstance(score, (int, float)) and not isinstance(score, bool):
        score = min(100, max(0, score))
    else:
        score = 0

    def _list(key):
        value = raw.get(key)
        return list(value) if isinstance(value, list) else []

    violations = _list("boundary_violations")
    verdict = raw.get("verdict")
    if verdict not in VERDICTS:
        if score >= 80 and not violations:
            verdict = "PASS"
        elif score < FAIL_BELOW_SCORE or violations:
            verdict = "FAIL"
        else:
            verdict = "REVISE"

    priority = raw.get("revision_priority")
    if verdict == "PASS" and score < min_fidelity:
        verdict = "REVISE"
        priority = None
    if priority not in REVISION_PRIORITIES:
        priority = _derive_priority(verdict, score)

    return {
        "script_index": raw.get("script_index") if isinstance(raw.get("script_index"), int) else 0,
        "voice_fidelity_score": score,
        "ai_tells_found": _list("ai_tells_found"),
        "boundary_violations": violations,
        "strengths": _list("strengths"),
        "improvements": _list("improvements"),
        "verdict": verdict,
        "revision_priority": priority,
    }


def calculate_summary(results: list[dict]) -> dict:
    """Verdict counts, average fidelity and the issues seen at least twice (top 5)."""
    issues: Counter = Counter()
    for v in results:
        for tell in v.get("ai_tells_found") or []:
            issues[_SENTENCE_REF_RE.sub("", tell.lower()).strip()] += 1
        for improvement in v.get("improvements") or []:
            issues[improvement] += 1
    common = [issue for issue, n in issues.most_common() if n >= COMMON_ISSUE_MIN_COUNT][:COMMON_ISSUE_LIMIT]

    return {
        "total": len(results),
        "passed": sum(1 for v in results if v["verdict"] == "PASS"),
        "needs_revision": sum(1 for v in results if v["verdict"] == "REVISE"),
        "failed": sum(1 for v in results if v["verdict"] == "FAIL"),
        "avg_fidelity_score": round_half_up(average([v["voice_fidelity_score"] for v in results])),
        "common_issues": common,
    }


def _merge_tells(found: list[str], local: list[str]) -> list[str]:
    seen = {t.lower() for t in found}
    merged = list(found)
    for tell in local:
        if tell.lower() not in seen:
            merged.append(tell)
            seen.add(tell.lower())
    return merged


def _missing_result(script_index: int) -> dict:
    return {
        "script_index": script_index,
        "voice_fidelity_score": 0,
        "ai_tells_found": [],
        "boundary_violations": [],
        "strengths": [],
        "improvements": ["No validation result returned"],
        "verdict": "REVISE",
        "revision_priority": _derive_priority("REVISE", 0),
    }


def validate_scripts(
    model_id: str,
    scripts: list[dict],
    min_fidelity: int = Config.min_fidelity_score,
    temperature: float = 0.3,
) -> ValidationBatchResult:
    """
    Validate transformed scripts in one LLM call.

    Scripts carry 'script_index' and 'transformed_script'. Results come back in input order,
    keyed by the caller's script_index; a script the reply skipped becomes REVISE with score 0.

    Raises:
        NotFoundError: model missing or has no voice profile.
    """
    start = time.time()
    model = get_creator_model(model_id, require_profile=True)
    scripts = [{**s, "script_index": s.get("script_index", i)} for i, s in enumerate(scripts)]
    if not scripts:
        return ValidationBatchResult(model_id, [], calculate_summary([]), elapsed_ms(start), 0)

    prompt = prompt_builders.build_validation_prompt(
        model.display_name, model.voice_profile, scripts, min_fidelity
    )
    text, tokens = llm_utils.generate_text_with_usage(
        [{"role": "user", "content": prompt}],
        provider=llm_utils.get_provider_for_step("validation"),
        temperature=temperature,
        response_json_schema=VALIDATION_SCHEMA,
    )
    raw_results = [r for r in unwrap_list(llm_utils.parse_json_response(text), "validations") if isinstance(r, dict)]

    wanted = [s["script_index"] for s in scripts]
    by_index: dict[int, dict] = {}
    for pos, raw in enumerate(raw_results):
        idx = raw.get("script_index")
        if idx not in wanted or idx in by_index:
            # Replies sometimes renumber from zero; fall back to reply order
            idx = wanted[pos] if pos < len(wanted) else None
        if idx is None or idx in by_index:
            continue
        by_index[idx] = process_validation_result({**raw, "script_index": idx}, min_fidelity)

    validations = []
    for s in scripts:
        idx = s["script_index"]
        result = by_index.get(idx)
        if result is None:
            print(f"[WARNING] No validation returned for script {idx}; marking REVISE")
            result = _missing_result(idx)
        result["ai_tells_found"] = _merge_tells(result["ai_tells_found"], detect_ai_tells(s.get("transformed_script", "")))
        validations.append(result)

    summary = calculate_summary(validations)
    _log(
        f"{summary['passed']} PASS / {summary['needs_revision']} REVISE / {summary['failed']} FAIL "
        f"(avg fidelity {summary['avg_fidelity_score']}, min {min_fidelity})"
    )
    return ValidationBatchResult(
        model_id=model_id,
        validations=validations,
        summary=summary,
        validation_time_ms=elapsed_ms(start),
        tokens_used=tokens,
    )


def _by_index(scripts: list[dict]) -> dict:
    return {s.get("script_index", i): s for i, s in enumerate(scripts)}


def get_passing_scripts(scripts: list[dict], validations: list[dict]) -> list[dict]:
    """Scripts whose validation verdict is PASS."""
    lookup = _by_index(scripts)
    return [lookup[v["script_index"]] for v in validations if v["verdict"] == "PASS" and v["script_index"] in lookup]


def _with_verdict(scripts: list[dict], validations: list[dict], verdict: str) -> list[dict]:
    lookup = _by_index(scripts)
    return [
        {"script": lookup[v["script_index"]], "validation": v}
        for v in validations
        if v["verdict"] == verdict and v["script_index"] in lookup
    ]


def get_scripts_needing_revision(scripts: list[dict], validations: list[dict]) -> list[dict]:
    """[{"script", "validation"}] for REVISE verdicts."""
    return _with_verdict(scripts, validations, "REVISE")


def get_failed_scripts(scripts: list[dict], validations: list[dict]) -> list[dict]:
    return _with_verdict(scripts, validations, "FAIL")
