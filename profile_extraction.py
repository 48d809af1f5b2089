"""
Voice profile extraction.
Turns an interview transcript into a structured voice profile (identity, speech mechanics,
personality, content, audience, boundaries, archetype, parasocial levers, verbatim samples).
"""
import json

import llm_utils
import prompt_builders
from config import DEBUG
from voice_taxonomy import ARCHETYPES, PARASOCIAL_LEVERS

MIN_TRANSCRIPT_CHARS = 100
MIN_SAMPLE_SPEECH = 3

REQUIRED_SECTIONS = [
    "identity",
    "voice_mechanics",
    "personality",
    "content",
    "audience",
    "boundaries",
    "archetype_assignment",
    "sample_speech",
]
AUDIENCE_FIELDS = [
    "target_viewer_description",
    "audience_appeal",
    "how_fans_talk_to_them",
    "best_performing_content",
]


def _log(msg: str, verbose_only: bool = False) -> None:
    """Log with [PROFILE] prefix. Use verbose_only for extra debug output."""
    if verbose_only and not DEBUG:
        return
    print(f"[PROFILE] {msg}")


class ProfileExtractionError(Exception):
    """Extraction failed: transcript too short, unparseable reply, or a profile that fails validation."""

    def __init__(self, message: str, raw_response: str | None = None, validation_errors: list[str] | None = None):
        super().__init__(message)
        self.message = message
        self.raw_response = raw_response
        self.validation_errors = validation_errors or []


def validate_profile(profile) -> tuple[list[str], list[str]]:
    """
    Check an extracted profile.

    Returns:
        (errors, warnings). Errors make the profile unusable; unknown parasocial levers
        are only warnings.
    """
    if not isinstance(profile, dict):
        return ["Profile is not an object"], []
    errors: list[str] = []
    warnings: list[str] = []

    for section in REQUIRED_SECTIONS:
        if not profile.get(section):
            errors.append(f"Missing required section: {section}")

    identity = profile.get("identity")
    if isinstance(identity, dict) and not (identity.get("stage_name") or identity.get("name")):
        errors.append("identity must have at least stage_name or name")

    archetype = profile.get("archetype_assignment")
    if isinstance(archetype, dict):
        primary = archetype.get("primary")
        if not primary:
            errors.append("archetype_assignment.primary is required")
        elif primary not in ARCHETYPES:
            errors.append(f"Invalid archetype: {primary}. Must be one of: {', '.join(ARCHETYPES)}")
        secondary = archetype.get("secondary")
        if secondary and secondary not in ARCHETYPES:
            errors.append(f"Invalid secondary archetype: {secondary}")

    parasocial = profile.get("parasocial_config")
    if isinstance(parasocial, dict):
        for field_name in ("strengths", "avoid"):
            for lever in parasocial.get(field_name) or []:
                if isinstance(lever, str) and lever not in PARASOCIAL_LEVERS:
                    warnings.append(f"Non-standard parasocial lever in {field_name}: {lever}")

    samples = profile.get("sample_speech")
    if samples:
        if not isinstance(samples, list):
            errors.append("sample_speech must be an array")
        elif len(samples) < MIN_SAMPLE_SPEECH:
            errors.append(f"sample_speech should have at least {MIN_SAMPLE_SPEECH} verbatim quotes")

    mechanics = profile.get("voice_mechanics")
    if isinstance(mechanics, dict) and not mechanics.get("swear_frequency"):
        errors.append("voice_mechanics.swear_frequency is required")

    return errors, warnings


def _normalize_profile(profile: dict) -> dict:
    audience = profile.get("audience")
    if isinstance(audience, dict):
        for key in AUDIENCE_FIELDS:
            if audience.get(key) == "":
                audience[key] = None
    boundaries = profile.get("boundaries")
    if isinstance(boundaries, dict):
        for key in ("hard_nos", "topics_to_avoid"):
            if not isinstance(boundaries.get(key), list):
                boundaries[key] = []
    return profile


def extract_voice_profile(
    transcript: str,
    model_name: str | None = None,
    interviewer_name: str | None = None,
    temperature: float = 0.3,
) -> dict:
    """
    Extract a voice profile from an interview transcript.

    Raises:
        ProfileExtractionError: transcript shorter than 100 chars, empty or unparseable
            reply, or a profile that fails validate_profile.
    """
    if not transcript or len(transcript.strip()) < MIN_TRANSCRIPT_CHARS:
        raise ProfileExtractionError(
            f"Transcript too short. Need at least {MIN_TRANSCRIPT_CHARS} characters for meaningful extraction."
        )

    prompt = prompt_builders.build_profile_extraction_prompt(transcript, model_name, interviewer_name)
    text, tokens = llm_utils.generate_text_with_usage(
        [{"role": "user", "content": prompt}],
        provider=llm_utils.get_provider_for_step("profile"),
        temperature=temperature,
        response_format={"type": "json_object"},
    )
    if not text or not text.strip():
        raise ProfileExtractionError("Empty response from the language model")

    try:
        profile = llm_utils.parse_json_response(text)
    except ValueError as e:
        raise ProfileExtractionError(f"Failed to parse voice profile JSON from response: {e}", text) from e
    if not isinstance(profile, dict):
        raise ProfileExtractionError("Voice profile response is not a JSON object", text)

    profile = _normalize_profile(profile)
    errors, warnings = validate_profile(profile)
    for w in warnings:
        print(f"[WARNING] {w}")
    if errors:
        raise ProfileExtractionError(
            f"Profile validation failed: {', '.join(errors)}",
            json.dumps(profile, indent=2, ensure_ascii=False),
            errors,
        )

    identity = profile["identity"]
    _log(f"Extracted profile for {identity.get('stage_name') or identity.get('name')} ({tokens} tokens)")
    return profile


def to_db_voice_profile(profile: dict) -> dict:
    """Storage shape: parasocial_config becomes parasocial (strengths/avoid only)."""
    parasocial = profile.get("parasocial_config") or profile.get("parasocial") or {}
    return {
        "identity": profile.get("identity"),
        "voice_mechanics": profile.get("voice_mechanics"),
        "personality": profile.get("personality"),
        "content": profile.get("content"),
        "audience": profile.get("audience"),
        "boundaries": profile.get("boundaries"),
        "aesthetic": profile.get("aesthetic"),
        "parasocial": {
            "strengths": parasocial.get("strengths") or [],
            "avoid": parasocial.get("avoid") or [],
        },
        "archetype_assignment": profile.get("archetype_assignment"),
        "sample_speech": profile.get("sample_speech") or [],
        "voice_transformation_rules": profile.get("voice_transformation_rules"),
    }


def derive_model_tags(profile: dict) -> tuple[list[str], list[str]]:
    """(archetype_tags, niche_tags) for a model row."""
    archetype = profile.get("archetype_assignment") or {}
    archetype_tags = [a for a in (archetype.get("primary"), archetype.get("secondary")) if a]
    niche_tags = list((profile.get("content") or {}).get("niche_topics") or [])
    return archetype_tags, niche_tags


def model_fields_from_profile(
    profile: dict,
    name: str | None = None,
    stage_name: str | None = None,
    transcript: str | None = None,
    archetype_tags: list[str] | None = None,
) -> dict:
    """Column values for a new CreatorModel built from an extracted profile."""
    identity = profile.get("identity") or {}
    derived_archetypes, niche_tags = derive_model_tags(profile)
    return {
        "name": name or identity.get("name") or stage_name or identity.get("stage_name") or "Unknown",
        "stage_name": stage_name or identity.get("stage_name"),
        "transcript_raw": transcript,
        "transcript_summary": identity.get("quick_bio"),
        "voice_profile": to_db_voice_profile(profile),
        "archetype_tags": archetype_tags or derived_archetypes,
        "niche_tags": niche_tags,
        "boundaries": profile.get("boundaries"),
    }
