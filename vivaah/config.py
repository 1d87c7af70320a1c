from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent


@dataclass(frozen=True)
class Settings:
    """Configuration container for collaborators, prompts, and pipeline limits."""
    gemini_api_key: str
    gemini_model: str
    openai_api_key: str
    embedding_model: str
    moderation_model: str
    pinecone_api_key: str
    pinecone_index: str
    pinecone_namespace: str
    supabase_url: str
    supabase_key: str
    tavily_api_key: str
    prompts_dir: Path
    vector_top_k: int = 8
    shortlist_size: int = 6
    name_fallback_limit: int = 6
    rows_per_name: int = 3
    web_results: int = 3
    max_tool_steps: int = 5
    inline_payload: bool = False
    llm_narrative: bool = True


def _env_flag(name: str, default: str = "0") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


def load_settings() -> Settings:
    """Purpose: Load configuration from environment variables and defaults.
    Inputs/Outputs: No inputs; returns a Settings instance.
    Side Effects / State: Reads environment variables and filesystem paths.
    Dependencies: Uses os.getenv and BASE_DIR for the prompts directory.
    Failure Modes: Invalid integer env values (VECTOR_TOP_K, SHORTLIST_SIZE, ...) raise ValueError.
    If Removed: Collaborators cannot be configured and the app fails at startup.
    Testing Notes: Verify defaults and overrides via environment variables.
    """
    # Resolve prompt path, then build Settings from the environment.
    prompts_dir = Path(os.getenv("PROMPTS_DIR") or (BASE_DIR / "prompts")).resolve()

    return Settings(
        gemini_api_key=os.getenv("GEMINI_API_KEY", ""),
        gemini_model=os.getenv("GEMINI_MODEL", "gemini-2.5-flash"),
        openai_api_key=os.getenv("OPENAI_API_KEY", ""),
        embedding_model=os.getenv("EMBEDDING_MODEL", "text-embedding-3-small"),
        moderation_model=os.getenv("MODERATION_MODEL", "omni-moderation-latest"),
        pinecone_api_key=os.getenv("PINECONE_API_KEY", ""),
        pinecone_index=os.getenv("PINECONE_INDEX_NAME") or os.getenv("PINECONE_INDEX", "vendors"),
        pinecone_namespace=os.getenv("PINECONE_NAMESPACE", ""),
        supabase_url=os.getenv("SUPABASE_URL", ""),
        supabase_key=os.getenv("SUPABASE_SERVICE_ROLE_KEY") or os.getenv("SUPABASE_SERVICE_KEY", ""),
        tavily_api_key=os.getenv("TAVILY_API_KEY", ""),
        prompts_dir=prompts_dir,
        vector_top_k=int(os.getenv("VECTOR_TOP_K", "8")),
        shortlist_size=int(os.getenv("SHORTLIST_SIZE", "6")),
        name_fallback_limit=int(os.getenv("NAME_FALLBACK_LIMIT", "6")),
        rows_per_name=int(os.getenv("ROWS_PER_NAME", "3")),
        web_results=int(os.getenv("WEB_RESULTS", "3")),
        max_tool_steps=int(os.getenv("MAX_TOOL_STEPS", "5")),
        inline_payload=_env_flag("VIVAAH_INLINE_PAYLOAD"),
        llm_narrative=_env_flag("VIVAAH_LLM_NARRATIVE", "1"),
    )
