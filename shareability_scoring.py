"""
Shareability scoring.
LLM rubric scoring of hooks/scripts (how likely a viewer is to forward them) plus an offline
keyword estimate used when no LLM call is wanted.
"""
import time
from dataclasses import dataclass

import llm_utils
import prompt_builders
from config import DEBUG
from schemas import SHAREABILITY_SCHEMA, unwrap_list
from utils import elapsed_ms
from voice_taxonomy import (
    EMOTIONAL_RESPONSES,
    SHARE_TRIGGER_PATTERNS,
    SHARE_TRIGGERS,
    SPECIFICITY_INDICATORS,
    VIRAL_POTENTIALS,
)

RUBRIC_KEYS = ("specificity_score", "emotional_punch_score", "share_trigger_score", "authenticity_score")
HIGH_POTENTIAL = ("high", "viral")

# Offline estimate weights
BASE_SCORE = 35
POINTS_PER_MATCH = 8
MAX_MATCH_POINTS = 30
MULTI_TRIGGER_BONUS = 10
SPECIFICITY_POINTS = 5
MAX_ESTIMATE = 85


def _log(msg: str, verbose_only: bool = False) -> None:
    """Log with [SHAREABILITY] prefix. Use verbose_only for extra debug output."""
    if verbose_only and not DEBUG:
        return
    print(f"[SHAREABILITY] {msg}")


@dataclass
class ShareabilityScoringResult:
    scores: list[dict]
    batch_stats: dict

    def to_dict(self) -> dict:
        return {"scores": self.scores, "batch_stats": self.batch_stats}


def _clamp_int(value, low: int, high: int) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return low
    return int(min(high, max(low, round(value))))


def _normalize_score(raw: dict) -> dict:
    sub = {k: _clamp_int(raw.get(k), 0, 25) for k in RUBRIC_KEYS}
    total = raw.get("total_score")
    total = _clamp_int(total, 0, 100) if isinstance(total, (int, float)) else sum(sub.values())
    primary = raw.get("primary_trigger")
    secondary = raw.get("secondary_trigger")
    emotional = raw.get("emotional_response")
    potential = raw.get("viral_potential")
    return {
        "score": total,
        **sub,
        "primary_trigger": primary if primary in SHARE_TRIGGERS else None,
        "secondary_trigger": secondary if secondary in SHARE_TRIGGERS else None,
        "share_prediction": raw.get("share_prediction") or "",
        "emotional_response": emotional if emotional in EMOTIONAL_RESPONSES else None,
        "viral_potential": potential if potential in VIRAL_POTENTIALS else "low",
        "reasoning": raw.get("reasoning") or "",
    }


def score_shareability(contents: list[dict], temperature: float = 0.3) -> ShareabilityScoringResult:
    """
    Score hooks or scripts against the shareability rubric.

    Args:
        contents: [{"content": str, "content_type": "hook"|"script"}]

    Returns:
        scores aligned with `contents` by index (items the reply skipped are absent) and
        batch_stats (avg_score, high_potential_count, primary_triggers, tokens_used, time_ms).
    """
    start = time.time()
    if not contents:
        return ShareabilityScoringResult(
            scores=[],
            batch_stats={"avg_score": 0, "high_potential_count": 0, "primary_triggers": {}, "tokens_used": 0, "time_ms": 0},
        )

    items = [
        {"index": i, "content": c["content"], "content_type": c.get("content_type", "hook")}
        for i, c in enumerate(contents)
    ]
    text, tokens = llm_utils.generate_text_with_usage(
        [{"role": "user", "content": prompt_builders.build_shareability_scoring_prompt(items)}],
        provider=llm_utils.get_provider_for_step("shareability"),
        temperature=temperature,
        response_json_schema=SHAREABILITY_SCHEMA,
    )

    scores = []
    seen: set[int] = set()
    for raw in unwrap_list(llm_utils.parse_json_response(text), "scores"):
        if not isinstance(raw, dict):
            continue
        idx = raw.get("index")
        if not isinstance(idx, int) or not 0 <= idx < len(items) or idx in seen:
            continue
        seen.add(idx)
        scores.append({
            "index": idx,
            "content": items[idx]["content"],
            "content_type": items[idx]["content_type"],
            "shareability": _normalize_score(raw),
        })
    scores.sort(key=lambda s: s["index"])

    primary_triggers: dict[str, int] = {}
    for s in scores:
        trigger = s["shareability"]["primary_trigger"]
        if trigger:
            primary_triggers[trigger] = primary_triggers.get(trigger, 0) + 1
    avg = round(sum(s["shareability"]["score"] for s in scores) / len(scores)) if scores else 0
    stats = {
        "avg_score": avg,
        "high_potential_count": sum(1 for s in scores if s["shareability"]["viral_potential"] in HIGH_POTENTIAL),
        "primary_triggers": primary_triggers,
        "tokens_used": tokens,
        "time_ms": elapsed_ms(start),
    }
    _log(f"Scored {len(scores)}/{len(contents)} items (avg {avg}, {stats['high_potential_count']} high potential)")
    return ShareabilityScoringResult(scores=scores, batch_stats=stats)


def estimate_shareability_from_patterns(content: str) -> dict:
    """
    Keyword estimate of shareability with no LLM call.

    Returns estimated_score (capped at 85), detected_triggers, confidence and strongest_trigger.
    """
    lowered = (content or "").lower()
    trigger_matches: dict[str, int] = {}
    for trigger, data in SHARE_TRIGGER_PATTERNS.items():
        n = sum(1 for indicator in data["indicators"] if indicator.lower() in lowered)
        if n:
            trigger_matches[trigger] = n

    score = BASE_SCORE + min(sum(trigger_matches.values()) * POINTS_PER_MATCH, MAX_MATCH_POINTS)
    if len(trigger_matches) >= 2:
        score += MULTI_TRIGGER_BONUS
    if len(trigger_matches) >= 3:
        score += MULTI_TRIGGER_BONUS
    score += SPECIFICITY_POINTS * sum(1 for ind in SPECIFICITY_INDICATORS if ind in lowered)
    score = min(score, MAX_ESTIMATE)

    strongest = None
    best = 0
    for trigger, n in trigger_matches.items():
        if n > best:
            strongest, best = trigger, n

    if len(trigger_matches) >= 2:
        confidence = "high"
    elif trigger_matches:
        confidence = "medium"
    else:
        confidence = "low"
    return {
        "estimated_score": score,
        "detected_triggers": list(trigger_matches),
        "confidence": confidence,
        "strongest_trigger": strongest,
    }
