"""Generation service client, prompt handling and response parsing."""

from .json_extraction import extract_json_block, parse_json_object
from .llm_client import (
    MODEL_REGISTRY,
    AttemptOutcome,
    AttemptRecord,
    LLMClient,
    LLMResponse,
    backoff_delay,
    next_outcome,
)
from .prompt_builder import PromptBuilder, render_placeholders
from .prompt_loader import PromptInfo, list_prompts, load_prompt

__all__ = [
    "extract_json_block",
    "parse_json_object",
    "MODEL_REGISTRY",
    "AttemptOutcome",
    "AttemptRecord",
    "LLMClient",
    "LLMResponse",
    "backoff_delay",
    "next_outcome",
    "PromptBuilder",
    "render_placeholders",
    "PromptInfo",
    "list_prompts",
    "load_prompt",
]
