"""
Configuration settings for the script studio.
Environment values come from .env; pipeline defaults live on Config and can be
overridden per request.
"""

import os

from dotenv import load_dotenv

load_dotenv()

# LLM provider and model selection (from .env); used by llm_utils
# TEXT_PROVIDER: "google" or "openai"
TEXT_PROVIDER = os.getenv("TEXT_PROVIDER", "openai").lower()
TEXT_MODEL_OPENAI = os.getenv("TEXT_MODEL_OPENAI", "gpt-5.2")
TEXT_MODEL_GOOGLE = os.getenv("TEXT_MODEL_GOOGLE", "gemini-2.0-flash")
EMBEDDING_MODEL = os.getenv("EMBEDDING_MODEL", "text-embedding-3-small")

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///script_studio.db")
SKIP_AUTH = os.getenv("SKIP_AUTH", "").lower() in ("1", "true", "yes")
API_TOKEN = os.getenv("API_TOKEN")
INTERVIEWER_NAME = os.getenv("INTERVIEWER_NAME", "Interviewer")
DEBUG = os.getenv("DEBUG", "").lower() in ("1", "true", "yes")


def required_env_vars() -> list[str]:
    """Env vars the running provider needs. DATABASE_URL has a sqlite default."""
    required = ["OPENAI_API_KEY"]  # embeddings always go through OpenAI
    if TEXT_PROVIDER == "google":
        required.append("GOOGLE_API_KEY")
    return required


def validate_environment() -> list[str]:
    """Return names of missing required env vars (GEMINI_API_KEY counts for GOOGLE_API_KEY)."""
    missing = []
    for name in required_env_vars():
        value = os.getenv(name)
        if not value and name == "GOOGLE_API_KEY":
            value = os.getenv("GEMINI_API_KEY")
        if not value:
            missing.append(name)
    return missing


class Config:
    # Pipeline settings
    hook_count = 30              # Hooks requested per run
    target_duration = "medium"   # short | medium | long
    min_fidelity_score = 80      # Scripts below this never PASS
    auto_revise = True           # Re-transform REVISE scripts
    max_revision_attempts = 2
    corpus_limit = 15            # Corpus examples fed to hook generation
    variations_per_concept = 1   # >1 switches hook generation to variation sets
    enable_shareability_scoring = True
    cta_style = "auto"
    enable_pcm_tracking = True
    retry_failed_stages = False
    max_retries = 2

    # Stage tuning
    hook_temperature = 0.9
    voice_batch_size = 5
    voice_temperature = 0.7
    revision_temperature = 0.5

    # API settings
    default_page_size = 50
    max_page_size = 100

    words_per_second = 2.5
