from __future__ import annotations

from functools import lru_cache
from pathlib import Path

SYSTEM_PROMPT = "system.md"
VENDOR_FACTS_PROMPT = "vendor_facts.md"


@lru_cache(maxsize=16)
def load_prompt(prompt_path: Path) -> str:
    """Purpose: Load a prompt file as UTF-8 text (BOM stripped), cached per path.
    Inputs/Outputs: Input is a Path to the prompt file; output is the decoded string.
    Side Effects / State: Reads the filesystem once per path.
    Dependencies: Used by the orchestrator for the system and fact-bound prompts.
    Failure Modes: Missing files raise FileNotFoundError at agent construction;
        undecodable bytes are dropped.
    If Removed: The general path and vendor narratives have no instructions.
    Testing Notes: Both shipped prompts must load and contain their placeholders.
    """
    try:
        return prompt_path.read_text(encoding="utf-8").lstrip("\ufeff")
    except UnicodeDecodeError:
        return prompt_path.read_bytes().decode("utf-8", errors="ignore").lstrip("\ufeff")


def load_named_prompt(prompts_dir: Path, name: str) -> str:
    return load_prompt(Path(prompts_dir) / name)
