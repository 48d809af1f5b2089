"""
Corpus retrieval for hook generation and script expansion.
Ranks reference corpus entries by cosine similarity to a creator's voice embedding (or a themed
query embedding) and optionally diversifies the result across hook types.
"""
import time
from dataclasses import dataclass, field

import numpy as np

import llm_utils
from config import DEBUG
from db_models import CorpusEntry, CreatorModel, get_creator_model
from embeddings import cosine_similarities, parse_embedding
from errors import CorpusRetrievalError, NotFoundError
from extensions import db
from utils import elapsed_ms

HIGH_QUALITY_THRESHOLD = 0.8


def _log(msg: str, verbose_only: bool = False) -> None:
    """Log with [CORPUS] prefix. Use verbose_only for extra debug output."""
    if verbose_only and not DEBUG:
        return
    print(f"[CORPUS] {msg}")


@dataclass
class CorpusMatch:
    id: str
    content: str
    hook: str | None
    hook_type: str | None
    script_archetype: str | None
    parasocial_levers: list[str]
    quality_score: float | None
    similarity_score: float
    creator: str | None
    match_reasons: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return dict(self.__dict__)


@dataclass
class CorpusRetrievalResult:
    model_id: str | None
    matches: list[CorpusMatch]
    retrieval_stats: dict


def _model_lever_strengths(voice_profile: dict | None) -> set[str]:
    profile = voice_profile or {}
    parasocial = profile.get("parasocial_config") or profile.get("parasocial") or {}
    return set(parasocial.get("strengths") or [])


def _query_vector(model: CreatorModel, thematic_query: str | None) -> np.ndarray:
    if thematic_query:
        bio = ((model.voice_profile or {}).get("identity") or {}).get("quick_bio") or ""
        text = f"{thematic_query}\n\nVoice style: {bio}" if bio else thematic_query
        return np.asarray(llm_utils.generate_embedding(text), dtype=float)
    if model.embedding is None:
        raise CorpusRetrievalError(f"Model {model.id} has no embedding; generate one before retrieving corpus")
    try:
        return parse_embedding(model.embedding)
    except ValueError as e:
        raise CorpusRetrievalError(f"Model {model.id} has a malformed embedding: {e}") from e


def rank_corpus(
    query: np.ndarray,
    entries: list[CorpusEntry],
    min_similarity: float,
    exclude_id: str | None = None,
) -> list[tuple[CorpusEntry, float]]:
    """(entry, similarity) pairs at or above min_similarity, best first. Entries with bad embeddings are skipped."""
    vectors = []
    usable = []
    for entry in entries:
        if entry.id == exclude_id:
            continue
        try:
            vec = parse_embedding(entry.embedding)
        except ValueError:
            _log(f"Skipping corpus entry {entry.id}: malformed embedding", verbose_only=True)
            continue
        if vec is None or vec.shape != query.shape:
            continue
        vectors.append(vec)
        usable.append(entry)
    if not usable:
        return []
    sims = cosine_similarities(query, np.vstack(vectors))
    ranked = [(e, float(s)) for e, s in zip(usable, sims) if s >= min_similarity]
    ranked.sort(key=lambda pair: pair[1], reverse=True)
    return ranked


def select_matches(
    ranked: list[tuple[CorpusEntry, float]],
    limit: int,
    diversify: bool = True,
    per_hook_type: int = 3,
    hook_type_filter: str | None = None,
) -> list[tuple[CorpusEntry, float]]:
    """Apply diversification (cap per hook_type) or the optional hook_type filter, then cut to limit."""
    if diversify:
        picked = []
        per_type: dict[str, int] = {}
        for entry, sim in ranked:
            key = entry.hook_type or "unknown"
            if per_type.get(key, 0) >= per_hook_type:
                continue
            per_type[key] = per_type.get(key, 0) + 1
            picked.append((entry, sim))
            if len(picked) >= limit:
                break
        return picked
    if hook_type_filter:
        ranked = [(e, s) for e, s in ranked if e.hook_type == hook_type_filter]
    return ranked[:limit]


def _to_match(entry: CorpusEntry, similarity: float, levers: set[str], archetypes: set[str]) -> CorpusMatch:
    reasons = []
    entry_levers = entry.parasocial_levers or []
    if levers and levers.intersection(entry_levers):
        reasons.append("lever_match")
    if entry.script_archetype and entry.script_archetype in archetypes:
        reasons.append("archetype_match")
    if (entry.quality_score or 0) >= HIGH_QUALITY_THRESHOLD:
        reasons.append("high_quality")
    return CorpusMatch(
        id=entry.id,
        content=entry.content,
        hook=entry.hook,
        hook_type=entry.hook_type,
        script_archetype=entry.script_archetype,
        parasocial_levers=list(entry_levers),
        quality_score=entry.quality_score,
        similarity_score=round(similarity, 4),
        creator=entry.creator,
        match_reasons=reasons,
    )


def _active_corpus_with_embeddings() -> list[CorpusEntry]:
    return list(
        db.session.scalars(
            db.select(CorpusEntry).where(CorpusEntry.is_active.is_(True), CorpusEntry.embedding.is_not(None))
        )
    )


def retrieve_relevant_corpus(
    model_id: str,
    limit: int = 10,
    min_similarity: float = 0.3,
    diversify: bool = True,
    per_hook_type: int = 3,
    hook_type_filter: str | None = None,
    thematic_query: str | None = None,
) -> CorpusRetrievalResult:
    """
    Retrieve corpus entries that match a creator's voice.

    Args:
        model_id: Creator model id.
        limit: Maximum matches returned.
        min_similarity: Cosine similarity floor.
        diversify: Cap matches at per_hook_type per hook type.
        per_hook_type: Cap used when diversify is on.
        hook_type_filter: Only return this hook type (ignored when diversify is on).
        thematic_query: Embed this query (plus the creator's bio) instead of the stored voice embedding.

    Raises:
        NotFoundError: model does not exist.
        CorpusRetrievalError: model has no (or a malformed) embedding.
    """
    start = time.time()
    model = get_creator_model(model_id)

    query = _query_vector(model, thematic_query)
    corpus = _active_corpus_with_embeddings()
    ranked = rank_corpus(query, corpus, min_similarity)
    picked = select_matches(ranked, limit, diversify, per_hook_type, hook_type_filter)

    levers = _model_lever_strengths(model.voice_profile)
    archetypes = set(model.archetype_tags or [])
    matches = [_to_match(e, s, levers, archetypes) for e, s in picked]

    avg_sim = round(sum(m.similarity_score for m in matches) / len(matches), 3) if matches else 0
    stats = {
        "total_corpus": len(corpus),
        "candidates_returned": len(matches),
        "avg_similarity": avg_sim,
        "archetype_matches": sum(1 for m in matches if "archetype_match" in m.match_reasons),
        "lever_matches": sum(1 for m in matches if "lever_match" in m.match_reasons),
        "time_ms": elapsed_ms(start),
    }
    _log(f"{len(matches)} matches from {len(corpus)} embedded entries (avg similarity {avg_sim})")
    return CorpusRetrievalResult(model_id=model_id, matches=matches, retrieval_stats=stats)


def search_corpus_by_theme(model_id: str, theme: str, limit: int = 10) -> CorpusRetrievalResult:
    """Thematic retrieval: embeds the theme instead of using the stored voice embedding."""
    return retrieve_relevant_corpus(model_id, limit=limit, min_similarity=0.4, thematic_query=theme)


def find_similar_corpus_entries(entry_id: str, limit: int = 5, min_similarity: float = 0.5) -> list[CorpusMatch]:
    """Nearest neighbours of one corpus entry (excluding itself)."""
    entry = db.session.get(CorpusEntry, entry_id)
    if entry is None:
        raise NotFoundError(f"Not found: corpus entry {entry_id}")
    try:
        query = parse_embedding(entry.embedding)
    except ValueError as e:
        raise CorpusRetrievalError(f"Corpus entry {entry_id} has a malformed embedding: {e}") from e
    if query is None:
        raise CorpusRetrievalError(f"Corpus entry {entry_id} has no embedding")
    ranked = rank_corpus(query, _active_corpus_with_embeddings(), min_similarity, exclude_id=entry_id)
    return [_to_match(e, s, set(), set()) for e, s in ranked[:limit]]


def format_corpus_examples(matches: list[CorpusMatch], max_chars: int = 400) -> str:
    """Numbered example block for prompts."""
    lines = []
    for i, m in enumerate(matches, 1):
        content = m.content if len(m.content) <= max_chars else m.content[:max_chars].rstrip() + "..."
        label = m.hook_type or "unknown"
        lines.append(f"{i}. [{label}] HOOK: {m.hook or content[:80]}\n   SCRIPT: {content}")
    return "\n".join(lines)
