"""
Modular prompt builders for the script pipeline.
Shared voice-profile blocks live here so every stage describes the creator the same way.
"""
import json
from typing import Optional

import organic_cta
from voice_taxonomy import (
    ARCHETYPES,
    PARASOCIAL_LEVERS,
    PARASOCIAL_LEVER_DESCRIPTIONS,
    PCM_TYPES,
    DURATION_GUIDELINES,
    SHARE_TRIGGER_PATTERNS,
    SHAREABILITY_RUBRIC,
    get_hook_types_prompt_str,
)


def _join(values, sep: str = ", ", default: str = "none noted") -> str:
    items = [str(v) for v in (values or []) if v]
    return sep.join(items) if items else default


def get_voice_profile_summary(voice_profile: dict, model_name: str) -> str:
    """Compact description of a creator's voice for any generation stage."""
    identity = voice_profile.get("identity") or {}
    mechanics = voice_profile.get("voice_mechanics") or {}
    personality = voice_profile.get("personality") or {}
    content = voice_profile.get("content") or {}
    audience = voice_profile.get("audience") or {}
    archetype = voice_profile.get("archetype_assignment") or {}
    parasocial = voice_profile.get("parasocial") or voice_profile.get("parasocial_config") or {}

    fillers = [
        f"{f.get('word')} ({f.get('frequency', 'medium')})"
        for f in mechanics.get("filler_words") or []
        if isinstance(f, dict) and f.get("word")
    ]
    samples = "\n".join(f'- "{s}"' for s in (voice_profile.get("sample_speech") or [])[:5])

    return f"""CREATOR: {identity.get('stage_name') or model_name}
BIO: {identity.get('quick_bio') or 'n/a'}
ARCHETYPE: {archetype.get('primary') or 'unknown'}{f" / {archetype['secondary']}" if archetype.get('secondary') else ''}

VOICE MECHANICS:
- Fillers: {_join(fillers)}
- Sentence starters: {_join(mechanics.get('sentence_starters'))}
- Sentence enders: {_join(mechanics.get('sentence_enders'))}
- Sentence style: {mechanics.get('sentence_style') or 'n/a'} ({mechanics.get('avg_sentence_length') or 'n/a'} sentences)
- Catchphrases: {_join(mechanics.get('catchphrases'))}
- Swearing: {mechanics.get('swear_frequency') or 'none'} ({_join(mechanics.get('swear_words'))})

PERSONALITY:
- Humor: {personality.get('humor_style') or 'n/a'}
- Energy: {personality.get('energy_level') or 'n/a'}
- Hot takes: {_join(personality.get('hot_takes'))}

CONTENT:
- Niche: {_join(content.get('niche_topics'))}
- Differentiator: {content.get('differentiator') or 'n/a'}

AUDIENCE: {audience.get('target_viewer_description') or 'general short-form viewers'}
CONNECTION STRENGTHS: {_join(parasocial.get('strengths'))}
CONNECTION TACTICS TO AVOID: {_join(parasocial.get('avoid'))}

SAMPLE SPEECH (verbatim):
{samples or '- none'}"""


def get_boundaries_prompt(voice_profile: dict) -> str:
    """Hard limits every script must respect."""
    boundaries = voice_profile.get("boundaries") or {}
    return f"""BOUNDARIES (CRITICAL - never cross these):
- Hard nos: {_join(boundaries.get('hard_nos'))}
- Topics to avoid: {_join(boundaries.get('topics_to_avoid'))}"""


PROFILE_JSON_TEMPLATE = """{
  "identity": {"name": "string|null", "stage_name": "string", "nicknames_fans_use": [], "origin_location": "string|null", "age_range": "string|null", "quick_bio": "2-3 sentences"},
  "voice_mechanics": {
    "filler_words": [{"word": "like", "frequency": "high|medium|low"}],
    "sentence_starters": [], "sentence_enders": [],
    "avg_sentence_length": "short|medium|long", "sentence_style": "fragmented|complete|run-on",
    "question_frequency": "high|medium|low", "self_interruption_patterns": [],
    "swear_words": [], "swear_frequency": "high|medium|low|none",
    "catchphrases": [], "cta_style": "string",
    "emphasis_style": {"uses_caps": false, "stretches_words": false, "uses_repetition": false},
    "text_style": {"lowercase_preference": false, "emoji_usage": "heavy|moderate|minimal|none", "abbreviations": [], "grammar_strictness": "strict|relaxed|chaotic"}
  },
  "personality": {"self_described_traits": [], "friend_described_traits": [], "humor_style": "string", "energy_level": "high|medium|low", "toxic_trait": "string|null", "hot_takes": [], "conflict_style": "string|null"},
  "content": {"niche_topics": [], "can_talk_hours_about": [], "content_types": [], "differentiator": "string", "strong_opinions_on": [], "trends_they_hate": [], "brand_anchors": []},
  "audience": {"target_viewer_description": "string", "audience_appeal": "what viewers get from this creator", "how_fans_talk_to_them": "string|null", "best_performing_content": "string|null"},
  "boundaries": {"hard_nos": [], "topics_to_avoid": []},
  "aesthetic": {"visual_style": "string|null", "colors_vibes": "string|null", "content_energy": "string|null"},
  "archetype_assignment": {"primary": "archetype", "secondary": "archetype|null", "mix": {"archetype": 0.6}, "confidence": 0.85},
  "parasocial_config": {"strengths": [], "avoid": [], "custom_levers": []},
  "voice_transformation_rules": {"always_include": [], "never_include": [], "tone_calibration": {"baseline": "string", "vulnerability": "string"}},
  "sample_speech": ["verbatim quote 1", "verbatim quote 2", "verbatim quote 3", "verbatim quote 4", "verbatim quote 5"]
}"""


def build_profile_extraction_prompt(
    transcript: str,
    model_name: Optional[str] = None,
    interviewer_name: Optional[str] = None,
) -> str:
    """
    Build the voice-profile extraction prompt.

    Args:
        transcript: Interview transcript (already formatted by parse_transcript)
        model_name: Speaker label of the creator, if known
        interviewer_name: Speaker label to ignore, if known
    """
    speaker_note = ""
    if model_name or interviewer_name:
        speaker_note = "\nSPEAKERS:\n"
        if model_name:
            speaker_note += f"- Analyze ONLY lines spoken by: {model_name}\n"
        if interviewer_name:
            speaker_note += f"- IGNORE the interviewer: {interviewer_name}\n"

    return f"""Analyze this interview transcript and extract a complete voice profile of the creator.
{speaker_note}
RULES:
- Quote the creator VERBATIM in sample_speech (keep fillers, false starts, swearing). At least 3 quotes.
- Only list boundaries the creator EXPLICITLY states. Use empty arrays otherwise.
- archetype_assignment.primary and .secondary must come from: {", ".join(ARCHETYPES)}
- parasocial_config levers should come from: {", ".join(PARASOCIAL_LEVERS)}
- Leave audience fields empty ("") rather than guessing wildly.

Respond with JSON matching this structure:
{PROFILE_JSON_TEMPLATE}

TRANSCRIPT:
{transcript}"""


def build_hook_generation_prompt(
    model_name: str,
    voice_profile: dict,
    corpus_examples: str,
    distribution: dict[str, int],
    count: int,
    recent_hooks: list[str] | None = None,
    variations_per_concept: int = 1,
    enable_pcm_tracking: bool = False,
) -> str:
    """Build the hook generation prompt (flat list or concept variation sets)."""
    distribution_lines = "\n".join(f"- {t}: {n}" for t, n in distribution.items() if n > 0)
    recent = ""
    if recent_hooks:
        recent = "\nRECENTLY USED HOOKS (do NOT repeat or closely paraphrase):\n" + "\n".join(
            f"- {h}" for h in recent_hooks[:30]
        ) + "\n"
    pcm_note = ""
    if enable_pcm_tracking:
        pcm_note = (
            f"\nTag every hook with the personality type it speaks to (pcm_type): {', '.join(PCM_TYPES)}. "
            "Spread hooks across several types.\n"
        )

    if variations_per_concept > 1:
        concepts = max(1, round(count / variations_per_concept))
        output_spec = f"""Generate {concepts} distinct CONCEPTS with {variations_per_concept} variations each.
Variations of one concept share the idea but differ by variation_strategy (angle_shift, intensity_modulation, opener_swap, specificity_change).
Mark the variations worth A/B testing in recommended_for_testing as "variation_index_N".

Respond with JSON: {{"variation_sets": [{{"concept_id": "...", "concept": "...", "variations": [{{"hook": "...", "hook_type": "...", "parasocial_levers": [], "why_it_works": "...", "variation_strategy": "...", "pcm_type": null}}], "recommended_for_testing": ["variation_index_0"]}}]}}"""
    else:
        output_spec = f"""Generate EXACTLY {count} hooks.

Respond with JSON: {{"hooks": [{{"hook": "...", "hook_type": "...", "parasocial_levers": [], "why_it_works": "...", "pcm_type": null}}]}}"""

    return f"""You write scroll-stopping opening lines (hooks) for short-form vertical videos, in the exact voice of one creator.

{get_voice_profile_summary(voice_profile, model_name)}

{get_boundaries_prompt(voice_profile)}

HOOK TYPES:
{get_hook_types_prompt_str(list(distribution))}

TARGET DISTRIBUTION:
{distribution_lines}

REFERENCE EXAMPLES (style only, never copy):
{corpus_examples or '- none available'}
{recent}{pcm_note}
HOOK RULES:
- 25 words maximum, ideally under 15
- Sounds spoken, not written: use the creator's starters and fillers
- Specific beats generic: concrete detail, real moments
- Every hook names the parasocial_levers it pulls

{output_spec}"""


def build_script_expansion_prompt(
    model_name: str,
    voice_profile: dict,
    hooks: list[dict],
    corpus_examples: str,
    target_duration: str = "medium",
    cta_type: str = "auto",
) -> str:
    """Build the prompt that expands hooks into full scripts."""
    guide = DURATION_GUIDELINES[target_duration]
    personality = voice_profile.get("personality") or {}
    mechanics = voice_profile.get("voice_mechanics") or {}
    voice_traits = {
        "energy_level": personality.get("energy_level", "medium"),
        "humor_style": personality.get("humor_style", ""),
        "typical_closers": mechanics.get("sentence_enders") or [],
    }
    hook_blocks = []
    for h in hooks:
        hook_blocks.append(
            f"[{h['hook_index']}] ({h.get('hook_type', 'unknown')}) {h['hook']}\n"
            f"    levers: {_join(h.get('parasocial_levers'))}\n"
            + organic_cta.build_cta_guidance(
                h.get("hook_type", ""), h.get("parasocial_levers"), cta_type, voice_traits
            ).replace("\n", "\n    ")
        )

    return f"""Expand each hook into a complete short-form script spoken to camera.

{get_voice_profile_summary(voice_profile, model_name)}

{get_boundaries_prompt(voice_profile)}

LENGTH: {guide['words'][0]}-{guide['words'][1]} words, {guide['sentences'][0]}-{guide['sentences'][1]} sentences (~{guide['seconds']} seconds spoken)

STRUCTURE (fill structure_breakdown for every script):
- hook: the hook, VERBATIM, as the first words of the script
- tension: why the viewer should keep watching
- payload: the story, opinion or reveal
- closer: an organic closer (see per-hook guidance) or nothing

REFERENCE EXAMPLES (style only, never copy):
{corpus_examples or '- none available'}

HOOKS:
{chr(10).join(hook_blocks)}

Keep hook_index exactly as given in brackets. Set cta_type to the closer you used.
Respond with JSON: {{"scripts": [{{"hook_index": 0, "hook": "...", "script": "...", "structure_breakdown": {{"hook": "...", "tension": "...", "payload": "...", "closer": "..."}}, "parasocial_levers_used": [], "voice_elements_used": [], "cta_type": "..."}}]}}"""


def build_voice_transformation_prompt(
    model_name: str,
    voice_profile: dict,
    scripts: list[dict],
    sample_speech_extended: list[str] | None = None,
) -> str:
    """Build the voice rewrite prompt. Scripts carry their global index in 'script_index'."""
    rules = voice_profile.get("voice_transformation_rules") or {}
    extended = ""
    if sample_speech_extended:
        extended = "\nAPPROVED SCRIPT OPENINGS (this creator signed off on these):\n" + "\n".join(
            f'- "{s}"' for s in sample_speech_extended
        ) + "\n"
    script_blocks = "\n\n".join(
        f"[{s['script_index']}] HOOK: {s['hook']}\nSCRIPT: {s['script']}" for s in scripts
    )

    return f"""Rewrite each script so it sounds EXACTLY like this creator talking to camera. Keep the meaning, change the voice.

{get_voice_profile_summary(voice_profile, model_name)}
{extended}
{get_boundaries_prompt(voice_profile)}

ALWAYS INCLUDE: {_join(rules.get('always_include'))}
NEVER INCLUDE: {_join(rules.get('never_include'))}

TRANSFORMATION RULES:
- The script MUST still open with the hook's words; do not prepend fillers before the hook
- One continuous flow of speech, no paragraph breaks
- Use the creator's fillers, starters, enders and catchphrases at their natural frequency
- Remove AI tells: "Furthermore", "Additionally", "It's important to note", tidy three-part lists, neat summaries
- Score voice_fidelity_score 0-100 for how indistinguishable it is from the sample speech

SCRIPTS:
{script_blocks}

Keep script_index exactly as given in brackets.
Respond with JSON: {{"scripts": [{{"script_index": 0, "original_hook": "...", "transformed_script": "...", "changes_made": [], "voice_fidelity_score": 0, "ai_tells_removed": [], "voice_elements_added": []}}]}}"""


def build_validation_prompt(
    model_name: str,
    voice_profile: dict,
    scripts: list[dict],
    min_fidelity: int = 80,
) -> str:
    """Build the validation prompt that scores each transformed script."""
    script_blocks = "\n\n".join(
        f"[{s['script_index']}] {s['transformed_script']}" for s in scripts
    )
    return f"""You are a strict reviewer checking whether scripts sound like this creator wrote and said them.

{get_voice_profile_summary(voice_profile, model_name)}

{get_boundaries_prompt(voice_profile)}

SCORING:
- voice_fidelity_score 0-100: would a long-time follower believe the creator said this?
- ai_tells_found: phrases that sound machine-written (cite the sentence)
- boundary_violations: any crossing of the boundaries above
- strengths / improvements: short, concrete

VERDICT:
- PASS: score >= {min_fidelity} and no boundary violations
- REVISE: fixable voice problems
- FAIL: boundary violations or score below 60
revision_priority: none (PASS), low/medium (REVISE), high (FAIL)

SCRIPTS:
{script_blocks}

Keep script_index exactly as given in brackets.
Respond with JSON: {{"validations": [{{"script_index": 0, "voice_fidelity_score": 0, "ai_tells_found": [], "boundary_violations": [], "strengths": [], "improvements": [], "verdict": "PASS", "revision_priority": "none"}}]}}"""


def build_shareability_scoring_prompt(contents: list[dict]) -> str:
    """Build the shareability rubric prompt. contents: [{"index", "content", "content_type"}]."""
    triggers = "\n".join(
        f"- {name}: {data['description']} (e.g. \"{data['example_hook']}\")"
        for name, data in SHARE_TRIGGER_PATTERNS.items()
    )
    rubric = "\n".join(f"- {dim}_score (0-25): {desc}" for dim, desc in SHAREABILITY_RUBRIC.items())
    items = json.dumps(contents, indent=2, ensure_ascii=False)
    return f"""Score each piece of short-form content on how likely viewers are to SHARE it.

RUBRIC (total_score is the sum, 0-100):
{rubric}

SHARE TRIGGERS:
{triggers}

viral_potential: low (<40), medium (40-64), high (65-84), viral (85+)
share_prediction: one sentence on who sends it to whom and why.

CONTENT:
{items}

Keep index exactly as given.
Respond with JSON: {{"scores": [{{"index": 0, "specificity_score": 0, "emotional_punch_score": 0, "share_trigger_score": 0, "authenticity_score": 0, "total_score": 0, "primary_trigger": "...", "secondary_trigger": null, "share_prediction": "...", "emotional_response": "...", "viral_potential": "...", "reasoning": "..."}}]}}"""


def build_corpus_levers_prompt(entries: list[dict]) -> str:
    """Build the lever-tagging prompt. entries: [{"index", "hook", "hook_type", "script_archetype", "content"}]."""
    levers = "\n".join(f"- {lever}: {PARASOCIAL_LEVER_DESCRIPTIONS.get(lever, lever)}" for lever in PARASOCIAL_LEVERS)
    items = json.dumps(entries, indent=2, ensure_ascii=False)
    return f"""Tag each reference short-form script with the parasocial levers it uses.

VALID LEVERS (use only these exact strings):
{levers}

For each script pick 1-4 levers that are clearly present. Be conservative and only tag what is obviously there.

SCRIPTS:
{items}

Keep index exactly as given.
Respond with JSON: {{"entries": [{{"index": 0, "parasocial_levers": ["..."]}}]}}"""
