"""
Voice fingerprints and vector helpers.
A creator's voice profile is flattened into a labelled text fingerprint and embedded so it
can be compared against the reference corpus.
"""
import json

import numpy as np

import llm_utils
from db_models import get_creator_model
from extensions import db

MIN_FINGERPRINT_CHARS = 50


def build_voice_fingerprint(voice_profile: dict) -> str:
    """Labelled text summary of the parts of a profile that define how the creator sounds."""
    parts: list[str] = []
    identity = voice_profile.get("identity") or {}
    mechanics = voice_profile.get("voice_mechanics") or {}
    personality = voice_profile.get("personality") or {}
    audience = voice_profile.get("audience") or {}
    parasocial = voice_profile.get("parasocial") or voice_profile.get("parasocial_config") or {}

    samples = voice_profile.get("sample_speech") or []
    if samples:
        parts.append(f"VOICE SAMPLES: {' | '.join(samples)}")
    if mechanics.get("catchphrases"):
        parts.append(f"CATCHPHRASES: {', '.join(mechanics['catchphrases'])}")
    if identity.get("quick_bio"):
        parts.append(f"PERSONALITY: {identity['quick_bio']}")
    if personality.get("humor_style"):
        parts.append(f"HUMOR: {personality['humor_style']}")
    if personality.get("energy_level"):
        parts.append(f"ENERGY: {personality['energy_level']}")

    high_fillers = [
        f["word"] for f in mechanics.get("filler_words") or []
        if isinstance(f, dict) and f.get("word") and f.get("frequency") == "high"
    ]
    if high_fillers:
        parts.append(f"SPEECH PATTERNS: {', '.join(high_fillers)}")
    if mechanics.get("sentence_starters"):
        parts.append(f"SENTENCE STARTERS: {', '.join(mechanics['sentence_starters'][:5])}")
    if parasocial.get("strengths"):
        parts.append(f"CONNECTION STYLE: {', '.join(parasocial['strengths'])}")
    if audience.get("target_viewer_description"):
        parts.append(f"TARGET AUDIENCE: {audience['target_viewer_description']}")
    if audience.get("audience_appeal"):
        parts.append(f"AUDIENCE APPEAL: {audience['audience_appeal']}")

    return "\n".join(parts)


def generate_model_embedding(voice_profile: dict) -> list[float] | None:
    """Embed a profile's fingerprint, or None when there is too little to embed."""
    fingerprint = build_voice_fingerprint(voice_profile)
    if len(fingerprint) <= MIN_FINGERPRINT_CHARS:
        print(f"[WARNING] Voice fingerprint too short to embed ({len(fingerprint)} chars)")
        return None
    return llm_utils.generate_embedding(fingerprint)


def update_model_embedding(model_id: str) -> bool:
    """Recompute and store a model's embedding. Returns False when the profile is too thin."""
    model = get_creator_model(model_id, require_profile=True)
    embedding = generate_model_embedding(model.voice_profile)
    if embedding is None:
        return False
    model.embedding = embedding
    db.session.commit()
    return True


def parse_embedding(raw) -> np.ndarray | None:
    """Coerce a stored embedding (list or JSON string) to a float vector. Raises ValueError if malformed."""
    if raw is None:
        return None
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ValueError(f"Malformed embedding string: {e}") from e
    if not isinstance(raw, (list, tuple)) or not raw:
        raise ValueError("Embedding must be a non-empty list of numbers")
    return np.asarray(raw, dtype=float)


def cosine_similarity(a, b) -> float:
    """Cosine similarity of two vectors; 0.0 if either is all zeros or lengths differ."""
    va = np.asarray(a, dtype=float)
    vb = np.asarray(b, dtype=float)
    if va.shape != vb.shape:
        return 0.0
    denom = np.linalg.norm(va) * np.linalg.norm(vb)
    if denom == 0:
        return 0.0
    return float(np.dot(va, vb) / denom)


def cosine_similarities(query, matrix) -> np.ndarray:
    """Similarity of one query vector against each row of a matrix."""
    q = np.asarray(query, dtype=float)
    m = np.asarray(matrix, dtype=float)
    if m.size == 0:
        return np.zeros(0)
    norms = np.linalg.norm(m, axis=1) * np.linalg.norm(q)
    dots = m @ q
    with np.errstate(divide="ignore", invalid="ignore"):
        sims = np.where(norms > 0, dots / norms, 0.0)
    return sims
