"""
Generation service client using LiteLLM.

One primary model, one fallback model, a bounded number of attempts.
Retry control is an explicit state machine so its semantics can be tested
without a network:

    attempt fails on primary   -> RETRY_WITH_FALLBACK (switch model, no wait)
    attempt fails on fallback  -> RETRY_WITH_BACKOFF  (wait 2s, 4s, ...)
    attempt budget used up     -> EXHAUSTED           (EnrichmentExhaustedError)
    JSON object parsed         -> SUCCESS

Usage:
    from catalog_enricher.llm.llm_client import LLMClient

    client = LLMClient(api_key=settings.require_api_key())
    data, response = client.generate_json(prompt, system_prompt=system)
"""

import hashlib
import logging
import os
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

import litellm
from litellm import completion, completion_cost

from ..constants import (
    DEFAULT_REQUEST_TIMEOUT_SECONDS,
    ENRICH_INITIAL_BACKOFF_SECONDS,
    ENRICH_MAX_ATTEMPTS,
    FALLBACK_MODEL,
    GENERATION_TEMPERATURE,
    PRIMARY_MODEL,
)
from ..errors import ConfigurationError, EnrichmentExhaustedError, GenerationError
from .json_extraction import parse_json_object

# Suppress verbose LiteLLM logging
litellm.suppress_debug_info = True

logging.getLogger("LiteLLM").setLevel(logging.WARNING)
logging.getLogger("httpx").setLevel(logging.WARNING)


# =============================================================================
# MODEL REGISTRY - LiteLLM mapping and fallback pricing
# =============================================================================

MODEL_REGISTRY: Dict[str, Dict[str, Any]] = {
    "gpt-4o": {
        "litellm_name": "gpt-4o",
        "provider": "openai",
        "cost_per_1m_input": 2.50,
        "cost_per_1m_output": 10.00,
    },
    "gpt-4o-mini": {
        "litellm_name": "gpt-4o-mini",
        "provider": "openai",
        "cost_per_1m_input": 0.15,
        "cost_per_1m_output": 0.60,
    },
    "gpt-4-turbo": {
        "litellm_name": "gpt-4-turbo",
        "provider": "openai",
        "cost_per_1m_input": 10.00,
        "cost_per_1m_output": 30.00,
    },
    "gpt-3.5-turbo": {
        "litellm_name": "gpt-3.5-turbo",
        "provider": "openai",
        "cost_per_1m_input": 0.50,
        "cost_per_1m_output": 1.50,
    },
}


def get_model_config(model: str) -> Dict[str, Any]:
    if model not in MODEL_REGISTRY:
        raise ConfigurationError(f"Unknown model: {model}. Available: {list(MODEL_REGISTRY.keys())}")
    return MODEL_REGISTRY[model]


# =============================================================================
# RETRY STATE MACHINE
# =============================================================================


class AttemptOutcome(Enum):
    """What happens after one generation attempt."""

    SUCCESS = "success"
    RETRY_WITH_FALLBACK = "retry_with_fallback"
    RETRY_WITH_BACKOFF = "retry_with_backoff"
    EXHAUSTED = "exhausted"


def next_outcome(succeeded: bool, attempt: int, max_attempts: int, on_fallback: bool) -> AttemptOutcome:
    """
    Decide the transition after attempt number `attempt` (1-based).

    The first failure on the primary model switches to the fallback model
    immediately; failures on the fallback wait before trying again.
    """
    if succeeded:
        return AttemptOutcome.SUCCESS
    if attempt >= max_attempts:
        return AttemptOutcome.EXHAUSTED
    if not on_fallback:
        return AttemptOutcome.RETRY_WITH_FALLBACK
    return AttemptOutcome.RETRY_WITH_BACKOFF


def backoff_delay(fallback_failures: int, initial: float = ENRICH_INITIAL_BACKOFF_SECONDS) -> float:
    """Wait before the next attempt after the n-th failure on the fallback model."""
    return initial * (2 ** max(fallback_failures - 1, 0))


# =============================================================================
# LLM RESPONSE WITH TRACKING
# =============================================================================


@dataclass
class LLMResponse:
    """Response from one successful call, with tracking metadata."""

    text: str
    model: str
    provider: str
    input_tokens: int = 0
    output_tokens: int = 0
    cost_usd: float = 0.0
    finish_reason: Optional[str] = None

    model_version: str = ""  # LiteLLM model name
    prompt_version: str = ""  # Version of the prompt template used
    prompt_hash: str = ""  # SHA256 of the prompt actually sent
    timestamp: str = ""
    attempts: int = 1

    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class AttemptRecord:
    """One entry of the attempt history kept for diagnostics."""

    attempt: int
    model: str
    outcome: AttemptOutcome
    error: Optional[str] = None
    waited_seconds: float = 0.0


# =============================================================================
# LLM CLIENT
# =============================================================================


class LLMClient:
    """
    Generation client with primary/fallback models and bounded retries.

    `completion_fn` and `sleep` are injectable so tests can script responses
    and skip real waits.
    """

    def __init__(
        self,
        primary_model: str = PRIMARY_MODEL,
        fallback_model: Optional[str] = FALLBACK_MODEL,
        api_key: Optional[str] = None,
        temperature: float = GENERATION_TEMPERATURE,
        max_attempts: int = ENRICH_MAX_ATTEMPTS,
        initial_backoff: float = ENRICH_INITIAL_BACKOFF_SECONDS,
        timeout: float = DEFAULT_REQUEST_TIMEOUT_SECONDS,
        completion_fn: Optional[Callable[..., Any]] = None,
        sleep: Callable[[float], None] = time.sleep,
        logger=None,
    ):
        if max_attempts < 1:
            raise ConfigurationError("max_attempts must be at least 1")

        self.primary_model = primary_model
        self.fallback_model = fallback_model if fallback_model and fallback_model != primary_model else None
        self.temperature = temperature
        self.max_attempts = max_attempts
        self.initial_backoff = initial_backoff
        self.timeout = timeout
        self.logger = logger or logging.getLogger(__name__)
        self._completion = completion_fn or completion
        self._sleep = sleep
        self.history: List[AttemptRecord] = []

        # Fail fast on unknown model names
        get_model_config(primary_model)
        if self.fallback_model:
            get_model_config(self.fallback_model)

        if api_key and not os.environ.get("OPENAI_API_KEY"):
            os.environ["OPENAI_API_KEY"] = api_key

        fallback_str = f" (fallback: {self.fallback_model})" if self.fallback_model else ""
        self.logger.info(f"LLM client initialized: {self.primary_model}{fallback_str}")

    def _is_transient_error(self, error: Exception) -> bool:
        """Check if an error looks transient (used to label log lines)."""
        error_str = str(error).lower()
        transient_indicators = [
            "rate limit",
            "too many requests",
            "429",
            "503",
            "502",
            "timeout",
            "timed out",
            "connection",
            "temporary",
            "overloaded",
        ]
        return any(indicator in error_str for indicator in transient_indicators)

    def _compute_prompt_hash(self, prompt: str, system_prompt: Optional[str] = None) -> str:
        full_prompt = f"{system_prompt or ''}|||{prompt}"
        return hashlib.sha256(full_prompt.encode()).hexdigest()[:16]

    def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        model_name: Optional[str] = None,
        prompt_version: Optional[str] = None,
    ) -> LLMResponse:
        """
        Make exactly one call to one model.

        Raises:
            GenerationError: Transport failure or empty reply
        """
        model_name = model_name or self.primary_model
        model_config = get_model_config(model_name)

        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        try:
            response = self._completion(
                model=model_config["litellm_name"],
                messages=messages,
                temperature=self.temperature,
                timeout=self.timeout,
            )
        except Exception as e:
            raise GenerationError(f"{type(e).__name__}: {e}", model=model_name) from e

        if not getattr(response, "choices", None):
            raise GenerationError(
                f"LLM API returned empty choices array. Response: {getattr(response, 'id', 'unknown')}",
                model=model_name,
            )

        text = response.choices[0].message.content or ""

        usage = getattr(response, "usage", None)
        input_tokens = (getattr(usage, "prompt_tokens", 0) or 0) if usage else 0
        output_tokens = (getattr(usage, "completion_tokens", 0) or 0) if usage else 0
        try:
            cost = completion_cost(completion_response=response)
        except Exception:
            cost = (input_tokens / 1_000_000) * model_config["cost_per_1m_input"] + (
                output_tokens / 1_000_000
            ) * model_config["cost_per_1m_output"]

        llm_response = LLMResponse(
            text=text,
            model=model_name,
            provider=model_config["provider"],
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            cost_usd=cost,
            finish_reason=getattr(response.choices[0], "finish_reason", None),
            model_version=model_config["litellm_name"],
            prompt_version=prompt_version or "",
            prompt_hash=self._compute_prompt_hash(prompt, system_prompt),
            timestamp=datetime.now(timezone.utc).isoformat(),
            metadata={"raw_response_id": getattr(response, "id", None)},
        )

        self.logger.debug(
            f"LLM call: {model_name} | "
            f"Tokens: {llm_response.input_tokens}->{llm_response.output_tokens} | "
            f"Cost: ${llm_response.cost_usd:.6f}"
        )
        return llm_response

    def generate_json(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        prompt_version: Optional[str] = None,
    ) -> Tuple[Dict[str, Any], LLMResponse]:
        """
        Generate and parse one JSON object, retrying per the state machine.

        Returns:
            (parsed object, response of the successful attempt)

        Raises:
            EnrichmentExhaustedError: Every attempt failed
        """
        self.history = []
        model_name = self.primary_model
        on_fallback = self.fallback_model is None
        fallback_failures = 0
        errors: List[str] = []

        for attempt in range(1, self.max_attempts + 1):
            self.logger.info(f"Making generation request using model: {model_name} (attempt {attempt}/{self.max_attempts})")
            try:
                response = self.generate(prompt, system_prompt, model_name=model_name, prompt_version=prompt_version)
                data = parse_json_object(response.text, model=model_name)
            except GenerationError as e:
                errors.append(str(e))
                if on_fallback:
                    fallback_failures += 1
                outcome = next_outcome(False, attempt, self.max_attempts, on_fallback)
                label = "TRANSIENT" if self._is_transient_error(e) else "UNEXPECTED"
                self.logger.warning(f"{label} error with {model_name} (attempt {attempt}/{self.max_attempts}): {e}")

                record = AttemptRecord(attempt=attempt, model=model_name, outcome=outcome, error=str(e))
                self.history.append(record)

                if outcome is AttemptOutcome.EXHAUSTED:
                    break
                if outcome is AttemptOutcome.RETRY_WITH_FALLBACK:
                    self.logger.warning(f"Switching to fallback model: {self.fallback_model}")
                    model_name = self.fallback_model
                    on_fallback = True
                else:
                    wait = backoff_delay(fallback_failures, self.initial_backoff)
                    record.waited_seconds = wait
                    self.logger.info(f"Waiting {wait:.1f}s before retrying...")
                    self._sleep(wait)
                continue

            self.history.append(AttemptRecord(attempt=attempt, model=model_name, outcome=AttemptOutcome.SUCCESS))
            response.attempts = attempt
            self.logger.info(f"Successfully received response from model: {model_name}")
            return data, response

        raise EnrichmentExhaustedError(self.max_attempts, errors)
