"""
Unified LLM utilities for text generation and embeddings.
Dispatches text to OpenAI or Google (Gemini) based on .env TEXT_PROVIDER;
embeddings always use OpenAI.

.env variables (defaults preserve OpenAI-only behavior):
  TEXT_PROVIDER         - "openai" or "google" (default: openai)
  TEXT_PROVIDER_<STEP>  - Per-step override, e.g. TEXT_PROVIDER_VALIDATION=google
  TEXT_MODEL_OPENAI     - OpenAI chat model (default: gpt-5.2)
  TEXT_MODEL_GOOGLE     - Gemini model (default: gemini-2.0-flash)
  EMBEDDING_MODEL       - OpenAI embedding model (default: text-embedding-3-small)
  OPENAI_API_KEY        - Required for OpenAI text and all embeddings
  GOOGLE_API_KEY        - Required for Google (Gemini) text (GEMINI_API_KEY also supported)
"""

import os
import re
import json
from typing import Any

from config import TEXT_PROVIDER, TEXT_MODEL_OPENAI, TEXT_MODEL_GOOGLE, EMBEDDING_MODEL

MAX_EMBEDDING_INPUT_CHARS = 8000


def get_provider_for_step(step: str) -> str:
    """Provider for a pipeline step: TEXT_PROVIDER_<STEP> if set, else TEXT_PROVIDER."""
    override = os.getenv(f"TEXT_PROVIDER_{step.upper()}")
    if override:
        return override.lower()
    return TEXT_PROVIDER


def get_text_model_display() -> str:
    """Return a short string for logging: provider / model (e.g. 'openai / gpt-5.2')."""
    prov = TEXT_PROVIDER.lower()
    model = TEXT_MODEL_OPENAI if prov == "openai" else TEXT_MODEL_GOOGLE
    return f"{prov} / {model}"


def clean_json_response(content: str) -> str:
    """Remove markdown code blocks from JSON response."""
    content = content.strip()
    if content.startswith("```json"):
        content = content[7:]
    elif content.startswith("```"):
        content = content[3:]
    if content.endswith("```"):
        content = content[:-3]
    return content.strip()


def parse_json_response(content: str) -> Any:
    """
    Parse JSON from a model reply.

    Tries the (fence-stripped) reply as-is, then a fenced block embedded in prose,
    then the outermost [...] or {...} span. Raises ValueError if nothing parses.
    """
    try:
        return json.loads(clean_json_response(content))
    except json.JSONDecodeError:
        pass
    fenced = re.search(r"```(?:json)?\s*([\s\S]*?)```", content)
    if fenced:
        try:
            return json.loads(fenced.group(1).strip())
        except json.JSONDecodeError:
            pass
    for open_ch, close_ch in (("[", "]"), ("{", "}")):
        start = content.find(open_ch)
        end = content.rfind(close_ch)
        if start != -1 and end > start:
            try:
                return json.loads(content[start:end + 1])
            except json.JSONDecodeError:
                continue
    raise ValueError(f"Could not parse JSON from response: {content[:200]!r}")


def _resolve_json_schema(schema: dict | type) -> dict:
    """Resolve a JSON schema from a Pydantic model or dict."""
    if isinstance(schema, dict):
        return schema
    # Pydantic BaseModel
    if hasattr(schema, "model_json_schema"):
        return schema.model_json_schema()
    raise TypeError("response_json_schema must be a dict or Pydantic BaseModel")


def _ensure_openai_schema(schema: dict) -> dict:
    """Ensure schema has additionalProperties: false for OpenAI Structured Outputs."""
    if schema.get("type") != "object":
        if schema.get("type") == "array" and isinstance(schema.get("items"), dict):
            result = dict(schema)
            result["items"] = _ensure_openai_schema(schema["items"])
            return result
        return schema
    result = dict(schema)
    if "additionalProperties" not in result:
        result["additionalProperties"] = False
    if "properties" in result:
        result["properties"] = {
            k: _ensure_openai_schema(v) if isinstance(v, dict) else v
            for k, v in result["properties"].items()
        }
    if "items" in result and isinstance(result["items"], dict):
        result["items"] = _ensure_openai_schema(result["items"])
    if "$defs" in result:
        result["$defs"] = {
            k: _ensure_openai_schema(v) if isinstance(v, dict) else v
            for k, v in result["$defs"].items()
        }
    return result


def _usage_tokens(usage: Any, *names: str) -> int:
    """First integer usage counter found on a provider usage object, else 0."""
    if usage is None:
        return 0
    for name in names:
        value = getattr(usage, name, None)
        if isinstance(value, int):
            return value
    return 0


def _openai_client():
    api_key = os.getenv("OPENAI_API_KEY")
    if not api_key:
        raise ValueError("OPENAI_API_KEY is not set. Set it in .env for OpenAI text and embeddings.")
    from openai import OpenAI
    return OpenAI()


def _strict_response_format(schema: dict) -> dict:
    """OpenAI Structured Outputs response_format for a JSON schema."""
    strict_schema = _ensure_openai_schema(schema)
    return {
        "type": "json_schema",
        "json_schema": {
            "name": strict_schema.get("title", "response"),
            "strict": True,
            "schema": strict_schema,
        },
    }


def _openai_text(
    messages: list[dict[str, str]],
    model_name: str,
    temperature: float,
    response_format: dict | None,
    schema: dict | None,
    **kwargs: Any,
) -> tuple[str, int]:
    client = _openai_client()
    req: dict[str, Any] = {"model": model_name, "messages": messages, "temperature": temperature, **kwargs}
    if schema is not None:
        req["response_format"] = _strict_response_format(schema)
    elif response_format is not None:
        req["response_format"] = response_format
    response = client.chat.completions.create(**req)
    text = response.choices[0].message.content or ""
    return text, _usage_tokens(getattr(response, "usage", None), "completion_tokens", "output_tokens")


def _gemini_prompt(messages: list[dict[str, str]], json_only: bool) -> tuple[str | None, str]:
    """
    Split OpenAI-shaped messages into (system_instruction, contents) for Gemini.
    A single user turn is sent as-is; longer histories are folded into one labelled prompt.
    """
    system_parts: list[str] = []
    turns: list[tuple[str, str]] = []
    for m in messages:
        content = (m.get("content") or "").strip()
        if not content:
            continue
        role = (m.get("role") or "user").lower()
        if role == "system":
            system_parts.append(content)
        else:
            turns.append(("User" if role == "user" else "Assistant", content))
    if json_only:
        system_parts.append("Respond with valid JSON only.")
    system_instruction = "\n\n".join(system_parts) or None

    if not turns:
        return system_instruction, ""
    if len(turns) == 1 and turns[0][0] == "User":
        return system_instruction, turns[0][1]
    return system_instruction, "\n\n".join(f"{label}: {content}" for label, content in turns)


def _gemini_reply_text(response: Any) -> str:
    if not response:
        raise RuntimeError("Google Gemini returned no response.")
    text = getattr(response, "text", None) or ""
    candidates = getattr(response, "candidates", None)
    if not text and candidates:
        parts = getattr(getattr(candidates[0], "content", None), "parts", None)
        if parts:
            text = getattr(parts[0], "text", None) or ""
    if not text:
        raise RuntimeError("Google Gemini returned empty text. The model may have blocked the response.")
    return text


def _google_text(
    messages: list[dict[str, str]],
    model_name: str,
    temperature: float,
    response_format: dict | None,
    schema: dict | None,
) -> tuple[str, int]:
    api_key = os.getenv("GOOGLE_API_KEY") or os.getenv("GEMINI_API_KEY")
    if not api_key:
        raise ValueError(
            "GOOGLE_API_KEY or GEMINI_API_KEY is not set. Set one in .env for Google (Gemini) text. "
            "You can create an API key in Google AI Studio."
        )
    from google import genai
    from google.genai import types

    # JSON mode without a schema only gets the plain-text instruction
    json_only = schema is None and response_format == {"type": "json_object"}
    system_instruction, contents = _gemini_prompt(messages, json_only)
    config_kw: dict[str, Any] = {"temperature": temperature, "system_instruction": system_instruction}
    if schema is not None:
        config_kw.update(response_mime_type="application/json", response_json_schema=schema)
    elif json_only:
        config_kw["response_mime_type"] = "application/json"

    client = genai.Client(api_key=api_key)
    response = client.models.generate_content(
        model=model_name,
        contents=contents,
        config=types.GenerateContentConfig(**config_kw),
    )
    text = _gemini_reply_text(response)
    return text, _usage_tokens(getattr(response, "usage_metadata", None), "candidates_token_count")


def generate_text_with_usage(
    messages: list[dict[str, str]],
    model: str | None = None,
    provider: str | None = None,
    temperature: float = 0.7,
    response_format: dict | None = None,
    response_json_schema: dict | type | None = None,
    **kwargs: Any,
) -> tuple[str, int]:
    """
    Generate text from messages using OpenAI or Google Gemini.

    Args:
        messages: List of {"role": "user"|"system"|"assistant", "content": str} (OpenAI shape).
        model: Model name; if None, use env TEXT_MODEL_OPENAI or TEXT_MODEL_GOOGLE.
        provider: "openai" or "google"; if None, use env TEXT_PROVIDER.
        temperature: Sampling temperature.
        response_format: Optional e.g. {"type": "json_object"} for JSON mode.
        response_json_schema: Optional JSON schema (dict or Pydantic BaseModel) for structured
            output. Takes precedence over response_format.
        **kwargs: Passed through to the OpenAI API.

    Returns:
        (reply text, output tokens used). Token count is 0 when the provider omits usage.
    """
    prov = (provider or TEXT_PROVIDER).lower()
    if prov not in ("openai", "google"):
        raise ValueError(
            f"TEXT_PROVIDER must be 'openai' or 'google'. Got: {prov}. "
            "Set TEXT_PROVIDER in .env or pass provider=."
        )
    schema = _resolve_json_schema(response_json_schema) if response_json_schema is not None else None

    if prov == "openai":
        return _openai_text(messages, model or TEXT_MODEL_OPENAI, temperature, response_format, schema, **kwargs)
    return _google_text(messages, model or TEXT_MODEL_GOOGLE, temperature, response_format, schema)


def generate_text(messages: list[dict[str, str]], **kwargs: Any) -> str:
    """Same as generate_text_with_usage but returns only the reply text."""
    text, _ = generate_text_with_usage(messages, **kwargs)
    return text


def generate_embedding(text: str, model: str | None = None) -> list[float]:
    """Embed a single text (truncated to MAX_EMBEDDING_INPUT_CHARS)."""
    resp = _openai_client().embeddings.create(
        model=model or EMBEDDING_MODEL,
        input=text[:MAX_EMBEDDING_INPUT_CHARS],
    )
    return list(resp.data[0].embedding)


def generate_embeddings(texts: list[str], model: str | None = None) -> list[list[float]]:
    """Embed many texts in one request; output order matches input order."""
    if not texts:
        return []
    resp = _openai_client().embeddings.create(
        model=model or EMBEDDING_MODEL,
        input=[t[:MAX_EMBEDDING_INPUT_CHARS] for t in texts],
    )
    ordered = sorted(resp.data, key=lambda d: getattr(d, "index", 0))
    return [list(d.embedding) for d in ordered]
