"""Prompt templates for LLM-backed collaborators.

Modules:
    stance_prompts: System and user prompts for per-source stance judgment
"""

from truthcast.config.prompts.stance_prompts import (
    STANCE_SYSTEM_PROMPT,
    STANCE_USER_PROMPT,
)

__all__ = [
    "STANCE_SYSTEM_PROMPT",
    "STANCE_USER_PROMPT",
]
