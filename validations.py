"""
Request body validation for the API routes (pydantic models).
Fields are snake_case; camelCase keys are accepted too.
"""
from typing import Literal, Optional

from flask import jsonify
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from db_models import SCRIPT_STATUSES

Duration = Literal["short", "medium", "long"]
ScriptStatus = Literal[SCRIPT_STATUSES]
PcmType = Literal["harmonizer", "thinker", "rebel", "persister", "imaginer", "promoter"]


class RequestModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, protected_namespaces=())


class PassThroughModel(RequestModel):
    """Items the services consume as dicts; unknown keys are kept."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, protected_namespaces=(), extra="allow")


class CreateModelRequest(RequestModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    stage_name: Optional[str] = Field(default=None, max_length=100)
    voice_profile: Optional[dict] = None
    transcript: Optional[str] = None
    archetype_tags: Optional[list[str]] = None


class ExtractProfileRequest(RequestModel):
    transcript: str = Field(min_length=100)
    name: str = Field(min_length=1, max_length=100)
    stage_name: Optional[str] = None
    interviewer_name: Optional[str] = None


class ExtractOnlyRequest(RequestModel):
    transcript: str = Field(min_length=100)
    model_name: Optional[str] = None
    interviewer_name: Optional[str] = None


class GeneratePipelineRequest(RequestModel):
    hook_count: Optional[int] = Field(default=None, gt=0, le=50)
    hook_types: Optional[list[str]] = None
    target_duration: Optional[Duration] = None
    min_fidelity_score: Optional[int] = Field(default=None, ge=0, le=100)
    auto_revise: Optional[bool] = None
    corpus_limit: Optional[int] = Field(default=None, gt=0, le=100)
    variations_per_concept: Optional[int] = Field(default=None, gt=0, le=5)
    enable_shareability_scoring: Optional[bool] = None
    cta_style: Optional[str] = None
    enable_pcm_tracking: Optional[bool] = None
    retry_failed_stages: Optional[bool] = None
    max_retries: Optional[int] = Field(default=None, gt=0, le=5)


class GenerateHooksRequest(RequestModel):
    count: Optional[int] = Field(default=None, gt=0, le=50)
    hook_types: Optional[list[str]] = None
    corpus_limit: Optional[int] = Field(default=None, gt=0, le=100)
    variations_per_concept: Optional[int] = Field(default=None, gt=0, le=5)
    enable_pcm_tracking: Optional[bool] = None


class HookInput(PassThroughModel):
    hook: str = Field(min_length=1)
    hook_type: str = Field(min_length=1)
    parasocial_levers: list[str] = Field(default_factory=list)
    why_it_works: str = ""
    pcm_type: Optional[PcmType] = None
    concept_id: Optional[str] = None
    variation_strategy: Optional[str] = None


class ExpandScriptsRequest(RequestModel):
    hooks: list[HookInput] = Field(min_length=1)
    target_duration: Duration = "medium"
    corpus_limit: Optional[int] = Field(default=None, gt=0, le=100)
    cta_type: str = "auto"


class ExpandedScriptInput(PassThroughModel):
    hook_index: int = Field(ge=0)
    hook: str = Field(min_length=1)
    script: str = Field(min_length=1)


class TransformScriptsRequest(RequestModel):
    scripts: list[ExpandedScriptInput] = Field(min_length=1)


class TransformedScriptInput(PassThroughModel):
    script_index: int = Field(ge=0)
    original_hook: str = Field(min_length=1)
    transformed_script: str = Field(min_length=1)


class ValidateScriptsRequest(RequestModel):
    scripts: list[TransformedScriptInput] = Field(min_length=1)
    min_fidelity_score: Optional[int] = Field(default=None, ge=0, le=100)


class UpdateScriptsStatusRequest(RequestModel):
    script_ids: list[str] = Field(min_length=1)
    status: ScriptStatus


class UpdateScriptRequest(RequestModel):
    status: Optional[ScriptStatus] = None
    content: Optional[str] = Field(default=None, min_length=1)
    posted_url: Optional[str] = None


class ParseTranscriptRequest(RequestModel):
    content: str = Field(min_length=1)
    filename: Optional[str] = None
    interviewer_name: Optional[str] = None


def error_details(error: ValidationError) -> list[dict]:
    return [
        {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
        for err in error.errors()
    ]


def validate_request(schema: type[BaseModel], data):
    """
    Parse a request body.

    Returns:
        (parsed model, None) on success, or (None, (response, 400)) with
        {"error": "Validation failed", "details": [...]}.
    """
    try:
        return schema.model_validate(data if data is not None else {}), None
    except ValidationError as e:
        return None, (jsonify({"error": "Validation failed", "details": error_details(e)}), 400)
