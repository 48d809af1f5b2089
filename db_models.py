"""
Database tables for creator models, generated scripts, batches, hooks and the reference corpus.
"""
import uuid
from datetime import datetime, timezone

from errors import NotFoundError
from extensions import db

SCRIPT_STATUSES = ("draft", "approved", "posted", "archived", "rejected")


def _uuid() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


class CreatorModel(db.Model):
    """A creator whose voice the pipeline imitates."""
    __tablename__ = "models"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    name = db.Column(db.String(100), nullable=False)
    stage_name = db.Column(db.String(100))
    transcript_raw = db.Column(db.Text)
    transcript_summary = db.Column(db.Text)
    voice_profile = db.Column(db.JSON)
    archetype_tags = db.Column(db.JSON, default=list)
    niche_tags = db.Column(db.JSON, default=list)
    boundaries = db.Column(db.JSON)
    embedding = db.Column(db.JSON(none_as_null=True))  # list[float]; older rows may hold a JSON string
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    scripts = db.relationship("Script", back_populates="model", cascade="all, delete-orphan")
    hooks = db.relationship("Hook", back_populates="model", cascade="all, delete-orphan")
    batches = db.relationship("ScriptBatch", back_populates="model", cascade="all, delete-orphan")

    @property
    def display_name(self) -> str:
        return self.stage_name or self.name

    def to_dict(self, include_transcript: bool = False) -> dict:
        data = {
            "id": self.id,
            "name": self.name,
            "stage_name": self.stage_name,
            "transcript_summary": self.transcript_summary,
            "voice_profile": self.voice_profile,
            "archetype_tags": self.archetype_tags or [],
            "niche_tags": self.niche_tags or [],
            "boundaries": self.boundaries,
            "has_embedding": self.embedding is not None,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }
        if include_transcript:
            data["transcript_raw"] = self.transcript_raw
        return data


class Script(db.Model):
    __tablename__ = "scripts"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    model_id = db.Column(db.String(36), db.ForeignKey("models.id", ondelete="CASCADE"), nullable=False, index=True)
    batch_id = db.Column(db.String(40), index=True)
    content = db.Column(db.Text, nullable=False)
    hook = db.Column(db.Text)
    hook_type = db.Column(db.String(40))
    script_archetype = db.Column(db.String(60))
    parasocial_levers = db.Column(db.JSON, default=list)
    duration_seconds = db.Column(db.Integer)
    word_count = db.Column(db.Integer)
    voice_fidelity_score = db.Column(db.Float)
    validation_passed = db.Column(db.Boolean)
    status = db.Column(db.String(20), default="draft", nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)
    approved_at = db.Column(db.DateTime(timezone=True))
    posted_at = db.Column(db.DateTime(timezone=True))
    posted_url = db.Column(db.Text)
    variation_group_id = db.Column(db.String(80))
    shareability_score = db.Column(db.Float)
    share_trigger = db.Column(db.String(40))
    share_prediction = db.Column(db.Text)
    emotional_response = db.Column(db.String(40))
    cta_type = db.Column(db.String(40))
    pcm_type = db.Column(db.String(20))

    model = db.relationship("CreatorModel", back_populates="scripts")

    def to_dict(self, include_model: bool = False) -> dict:
        data = {
            "id": self.id,
            "model_id": self.model_id,
            "batch_id": self.batch_id,
            "content": self.content,
            "hook": self.hook,
            "hook_type": self.hook_type,
            "script_archetype": self.script_archetype,
            "parasocial_levers": self.parasocial_levers or [],
            "duration_seconds": self.duration_seconds,
            "word_count": self.word_count,
            "voice_fidelity_score": self.voice_fidelity_score,
            "validation_passed": self.validation_passed,
            "status": self.status,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
            "approved_at": _iso(self.approved_at),
            "posted_at": _iso(self.posted_at),
            "posted_url": self.posted_url,
            "variation_group_id": self.variation_group_id,
            "shareability_score": self.shareability_score,
            "share_trigger": self.share_trigger,
            "share_prediction": self.share_prediction,
            "emotional_response": self.emotional_response,
            "cta_type": self.cta_type,
            "pcm_type": self.pcm_type,
        }
        if include_model and self.model is not None:
            data["model"] = {
                "id": self.model.id,
                "name": self.model.name,
                "stage_name": self.model.stage_name,
            }
        return data


class ScriptBatch(db.Model):
    """One pipeline run: counts, averages, tokens and estimated cost."""
    __tablename__ = "script_batches"

    id = db.Column(db.String(40), primary_key=True)
    model_id = db.Column(db.String(36), db.ForeignKey("models.id", ondelete="CASCADE"), nullable=False, index=True)
    hooks_requested = db.Column(db.Integer, default=0)
    scripts_generated = db.Column(db.Integer, default=0)
    scripts_passed = db.Column(db.Integer, default=0)
    scripts_failed = db.Column(db.Integer, default=0)
    avg_fidelity_score = db.Column(db.Float)
    avg_word_count = db.Column(db.Float)
    generation_time_ms = db.Column(db.Integer)
    tokens_used = db.Column(db.Integer)
    estimated_cost = db.Column(db.Float)
    pipeline_version = db.Column(db.String(20), default="1.0")
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)

    model = db.relationship("CreatorModel", back_populates="batches")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "model_id": self.model_id,
            "hooks_requested": self.hooks_requested,
            "scripts_generated": self.scripts_generated,
            "scripts_passed": self.scripts_passed,
            "scripts_failed": self.scripts_failed,
            "avg_fidelity_score": self.avg_fidelity_score,
            "avg_word_count": self.avg_word_count,
            "generation_time_ms": self.generation_time_ms,
            "tokens_used": self.tokens_used,
            "estimated_cost": self.estimated_cost,
            "pipeline_version": self.pipeline_version,
            "created_at": _iso(self.created_at),
        }


class CorpusEntry(db.Model):
    """A reference short-form script used as retrieval context."""
    __tablename__ = "corpus"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    content = db.Column(db.Text, nullable=False)
    creator = db.Column(db.String(100))
    duration_seconds = db.Column(db.Integer)
    hook = db.Column(db.Text)
    hook_type = db.Column(db.String(40))
    script_archetype = db.Column(db.String(60))
    parasocial_levers = db.Column(db.JSON)
    emotional_arc = db.Column(db.String(100))
    niche_tags = db.Column(db.JSON)
    quality_score = db.Column(db.Float, default=0.7)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    embedding = db.Column(db.JSON(none_as_null=True))
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "content": self.content,
            "creator": self.creator,
            "duration_seconds": self.duration_seconds,
            "hook": self.hook,
            "hook_type": self.hook_type,
            "script_archetype": self.script_archetype,
            "parasocial_levers": self.parasocial_levers or [],
            "emotional_arc": self.emotional_arc,
            "niche_tags": self.niche_tags or [],
            "quality_score": self.quality_score,
            "is_active": self.is_active,
            "has_embedding": self.embedding is not None,
        }


class Hook(db.Model):
    __tablename__ = "hooks"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    content = db.Column(db.Text, nullable=False)
    hook_type = db.Column(db.String(40))
    source = db.Column(db.String(20), default="generated")
    model_id = db.Column(db.String(36), db.ForeignKey("models.id", ondelete="CASCADE"), index=True)
    times_used = db.Column(db.Integer, default=0)
    freshness_score = db.Column(db.Float, default=1.0)
    variation_group_id = db.Column(db.String(80))
    pcm_type = db.Column(db.String(20))
    variation_strategy = db.Column(db.String(40))
    shareability_score = db.Column(db.Float)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)

    model = db.relationship("CreatorModel", back_populates="hooks")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "content": self.content,
            "hook_type": self.hook_type,
            "source": self.source,
            "model_id": self.model_id,
            "times_used": self.times_used,
            "freshness_score": self.freshness_score,
            "variation_group_id": self.variation_group_id,
            "pcm_type": self.pcm_type,
            "variation_strategy": self.variation_strategy,
            "shareability_score": self.shareability_score,
            "created_at": _iso(self.created_at),
        }


def get_creator_model(model_id: str, require_profile: bool = False) -> CreatorModel:
    """Load a creator model or raise NotFoundError (also when a voice profile is required but missing)."""
    model = db.session.get(CreatorModel, model_id)
    if model is None:
        raise NotFoundError(f"Not found: model {model_id}")
    if require_profile and not model.voice_profile:
        raise NotFoundError(f"Model {model_id} has no voice profile")
    return model
