"""
JSON schemas for the generation pipeline.
Pass these to llm_utils.generate_text_with_usage(response_json_schema=...) for structured output.
Every stage returns an object wrapping its list so OpenAI strict mode accepts the schema.
"""

from voice_taxonomy import (
    HOOK_TYPES, PARASOCIAL_LEVERS, PCM_TYPES, VARIATION_STRATEGIES, SHARE_TRIGGERS, EMOTIONAL_RESPONSES,
    VIRAL_POTENTIALS,
)
from organic_cta import CTA_TYPES

_STRING_LIST = {"type": "array", "items": {"type": "string"}}

_HOOK_ITEM = {
    "type": "object",
    "properties": {
        "hook": {"type": "string"},
        "hook_type": {"type": "string", "enum": HOOK_TYPES},
        "parasocial_levers": _STRING_LIST,
        "why_it_works": {"type": "string"},
        "pcm_type": {"type": ["string", "null"], "enum": PCM_TYPES + [None]},
    },
    "required": ["hook", "hook_type", "parasocial_levers", "why_it_works", "pcm_type"],
}

# --- Hooks (flat list) ---
HOOKS_SCHEMA = {
    "type": "object",
    "title": "generated_hooks",
    "properties": {
        "hooks": {"type": "array", "items": _HOOK_ITEM},
    },
    "required": ["hooks"],
}

# --- Hooks grouped as concept variation sets ---
HOOK_VARIATIONS_SCHEMA = {
    "type": "object",
    "title": "hook_variation_sets",
    "properties": {
        "variation_sets": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "concept_id": {"type": "string"},
                    "concept": {"type": "string"},
                    "variations": {
                        "type": "array",
                        "items": {
                            "type": "object",
                            "properties": {
                                **_HOOK_ITEM["properties"],
                                "variation_strategy": {"type": "string", "enum": VARIATION_STRATEGIES},
                            },
                            "required": _HOOK_ITEM["required"] + ["variation_strategy"],
                        },
                    },
                    "recommended_for_testing": _STRING_LIST,
                },
                "required": ["concept_id", "concept", "variations", "recommended_for_testing"],
            },
        },
    },
    "required": ["variation_sets"],
}

# --- Expanded scripts ---
EXPANDED_SCRIPTS_SCHEMA = {
    "type": "object",
    "title": "expanded_scripts",
    "properties": {
        "scripts": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "hook_index": {"type": "integer"},
                    "hook": {"type": "string"},
                    "script": {"type": "string"},
                    "structure_breakdown": {
                        "type": "object",
                        "properties": {
                            "hook": {"type": "string"},
                            "tension": {"type": "string"},
                            "payload": {"type": "string"},
                            "closer": {"type": "string"},
                        },
                        "required": ["hook", "tension", "payload", "closer"],
                    },
                    "parasocial_levers_used": _STRING_LIST,
                    "voice_elements_used": _STRING_LIST,
                    "cta_type": {"type": "string", "enum": CTA_TYPES},
                },
                "required": [
                    "hook_index", "hook", "script", "structure_breakdown",
                    "parasocial_levers_used", "voice_elements_used", "cta_type",
                ],
            },
        },
    },
    "required": ["scripts"],
}

# --- Voice-transformed scripts ---
TRANSFORMED_SCRIPTS_SCHEMA = {
    "type": "object",
    "title": "transformed_scripts",
    "properties": {
        "scripts": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "script_index": {"type": "integer"},
                    "original_hook": {"type": "string"},
                    "transformed_script": {"type": "string"},
                    "changes_made": _STRING_LIST,
                    "voice_fidelity_score": {"type": "number"},
                    "ai_tells_removed": _STRING_LIST,
                    "voice_elements_added": _STRING_LIST,
                },
                "required": [
                    "script_index", "original_hook", "transformed_script", "changes_made",
                    "voice_fidelity_score", "ai_tells_removed", "voice_elements_added",
                ],
            },
        },
    },
    "required": ["scripts"],
}

# --- Validation verdicts ---
VALIDATION_SCHEMA = {
    "type": "object",
    "title": "script_validations",
    "properties": {
        "validations": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "script_index": {"type": "integer"},
                    "voice_fidelity_score": {"type": "number"},
                    "ai_tells_found": _STRING_LIST,
                    "boundary_violations": _STRING_LIST,
                    "strengths": _STRING_LIST,
                    "improvements": _STRING_LIST,
                    "verdict": {"type": "string", "enum": ["PASS", "REVISE", "FAIL"]},
                    "revision_priority": {"type": "string", "enum": ["none", "low", "medium", "high"]},
                },
                "required": [
                    "script_index", "voice_fidelity_score", "ai_tells_found", "boundary_violations",
                    "strengths", "improvements", "verdict", "revision_priority",
                ],
            },
        },
    },
    "required": ["validations"],
}

# --- Shareability scores ---
SHAREABILITY_SCHEMA = {
    "type": "object",
    "title": "shareability_scores",
    "properties": {
        "scores": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "index": {"type": "integer"},
                    "specificity_score": {"type": "integer"},
                    "emotional_punch_score": {"type": "integer"},
                    "share_trigger_score": {"type": "integer"},
                    "authenticity_score": {"type": "integer"},
                    "total_score": {"type": "integer"},
                    "primary_trigger": {"type": "string", "enum": SHARE_TRIGGERS},
                    "secondary_trigger": {"type": ["string", "null"], "enum": SHARE_TRIGGERS + [None]},
                    "share_prediction": {"type": "string"},
                    "emotional_response": {"type": "string", "enum": EMOTIONAL_RESPONSES},
                    "viral_potential": {"type": "string", "enum": VIRAL_POTENTIALS},
                    "reasoning": {"type": "string"},
                },
                "required": [
                    "index", "specificity_score", "emotional_punch_score", "share_trigger_score",
                    "authenticity_score", "total_score", "primary_trigger", "secondary_trigger",
                    "share_prediction", "emotional_response", "viral_potential", "reasoning",
                ],
            },
        },
    },
    "required": ["scores"],
}


# --- Parasocial lever tags for corpus entries ---
CORPUS_LEVERS_SCHEMA = {
    "type": "object",
    "title": "corpus_levers",
    "properties": {
        "entries": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "index": {"type": "integer"},
                    "parasocial_levers": {"type": "array", "items": {"type": "string", "enum": PARASOCIAL_LEVERS}},
                },
                "required": ["index", "parasocial_levers"],
            },
        },
    },
    "required": ["entries"],
}


def unwrap_list(parsed, key: str) -> list:
    """Return the list under `key` (or the parsed value itself if the model replied with a bare list)."""
    if isinstance(parsed, list):
        return parsed
    if isinstance(parsed, dict) and isinstance(parsed.get(key), list):
        return parsed[key]
    raise ValueError(f"Expected a list or an object with '{key}' list, got {type(parsed).__name__}")
