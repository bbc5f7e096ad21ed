"""Tests for the generation client's retry / fallback state machine."""

from types import SimpleNamespace

import pytest

from catalog_enricher.errors import ConfigurationError, EnrichmentExhaustedError
from catalog_enricher.llm.llm_client import (
    AttemptOutcome,
    LLMClient,
    backoff_delay,
    next_outcome,
)

GOOD_REPLY = '{"benchmark_score": "86.4"}'

# ─── Pure transitions ─────────────────────────────────────────────────────────


class TestNextOutcome:
    def test_success_wins(self):
        assert next_outcome(True, 1, 3, on_fallback=False) is AttemptOutcome.SUCCESS
        assert next_outcome(True, 3, 3, on_fallback=True) is AttemptOutcome.SUCCESS

    def test_primary_failure_switches_to_fallback(self):
        assert next_outcome(False, 1, 3, on_fallback=False) is AttemptOutcome.RETRY_WITH_FALLBACK

    def test_fallback_failure_backs_off(self):
        assert next_outcome(False, 2, 3, on_fallback=True) is AttemptOutcome.RETRY_WITH_BACKOFF

    def test_last_attempt_exhausts(self):
        assert next_outcome(False, 3, 3, on_fallback=True) is AttemptOutcome.EXHAUSTED
        assert next_outcome(False, 1, 1, on_fallback=False) is AttemptOutcome.EXHAUSTED


class TestBackoffDelay:
    def test_doubles_per_fallback_failure(self):
        assert [backoff_delay(n, 2.0) for n in (1, 2, 3)] == [2.0, 4.0, 8.0]

    def test_zero_failures_uses_initial(self):
        assert backoff_delay(0, 2.0) == 2.0


# ─── generate_json ────────────────────────────────────────────────────────────


class TestGenerateJson:
    def test_primary_success_makes_one_call(self, fake_completion, make_client, sleeps):
        completion = fake_completion(GOOD_REPLY)
        data, response = make_client(completion).generate_json("prompt", system_prompt="system")
        assert data == {"benchmark_score": "86.4"}
        assert completion.models == ["gpt-4o"]
        assert response.model == "gpt-4o"
        assert response.attempts == 1
        assert sleeps == []

    def test_request_shape(self, fake_completion, make_client):
        completion = fake_completion(GOOD_REPLY)
        make_client(completion).generate_json("user prompt", system_prompt="system prompt")
        call = completion.calls[0]
        assert call["messages"] == [
            {"role": "system", "content": "system prompt"},
            {"role": "user", "content": "user prompt"},
        ]
        assert call["temperature"] == 0.3
        assert call["timeout"] == 120

    def test_switches_to_fallback_on_second_attempt(self, fake_completion, make_client, sleeps):
        completion = fake_completion(RuntimeError("503 Service Unavailable"), GOOD_REPLY)
        data, response = make_client(completion).generate_json("prompt")
        assert data == {"benchmark_score": "86.4"}
        assert completion.models == ["gpt-4o", "gpt-3.5-turbo"]
        assert response.attempts == 2
        assert sleeps == []  # no wait when switching models

    def test_malformed_reply_counts_as_failure(self, fake_completion, make_client):
        completion = fake_completion("Sorry, I cannot help with that.", GOOD_REPLY)
        data, _ = make_client(completion).generate_json("prompt")
        assert data == {"benchmark_score": "86.4"}
        assert completion.models == ["gpt-4o", "gpt-3.5-turbo"]

    def test_truncated_json_counts_as_failure(self, fake_completion, make_client):
        completion = fake_completion('{"benchmark_score": "86', GOOD_REPLY)
        make_client(completion).generate_json("prompt")
        assert len(completion.calls) == 2

    def test_backs_off_between_fallback_attempts(self, fake_completion, make_client, sleeps):
        completion = fake_completion(RuntimeError("timeout"), RuntimeError("timeout"), GOOD_REPLY)
        data, response = make_client(completion).generate_json("prompt")
        assert data == {"benchmark_score": "86.4"}
        assert completion.models == ["gpt-4o", "gpt-3.5-turbo", "gpt-3.5-turbo"]
        assert sleeps == [2.0]
        assert response.attempts == 3

    def test_exhaustion_raises_with_history(self, fake_completion, make_client, sleeps):
        completion = fake_completion(RuntimeError("connection reset"))
        client = make_client(completion)
        with pytest.raises(EnrichmentExhaustedError) as exc_info:
            client.generate_json("prompt")
        assert "Failed to get response after 3 attempts" in str(exc_info.value)
        assert exc_info.value.attempts == 3
        assert len(exc_info.value.history) == 3
        assert len(completion.calls) == 3
        assert sleeps == [2.0]  # no wait after the final attempt
        assert [record.outcome for record in client.history] == [
            AttemptOutcome.RETRY_WITH_FALLBACK,
            AttemptOutcome.RETRY_WITH_BACKOFF,
            AttemptOutcome.EXHAUSTED,
        ]

    def test_without_fallback_retries_primary_with_backoff(self, fake_completion, make_client, sleeps):
        completion = fake_completion(RuntimeError("429"), RuntimeError("429"), GOOD_REPLY)
        client = make_client(completion, fallback_model=None)
        client.generate_json("prompt")
        assert completion.models == ["gpt-4o", "gpt-4o", "gpt-4o"]
        assert sleeps == [2.0, 4.0]

    def test_non_object_json_counts_as_failure(self, fake_completion, make_client):
        completion = fake_completion('["a", "b"]', GOOD_REPLY)
        data, _ = make_client(completion).generate_json("prompt")
        assert data == {"benchmark_score": "86.4"}

    def test_empty_choices_counts_as_failure(self, fake_completion, make_client):
        calls = []
        good = fake_completion(GOOD_REPLY)

        def no_choices(**kwargs):
            calls.append(kwargs)
            if len(calls) == 1:
                return SimpleNamespace(choices=[], id="empty")
            return good(**kwargs)

        data, _ = make_client(no_choices).generate_json("prompt")
        assert data == {"benchmark_score": "86.4"}
        assert len(calls) == 2


class TestClientConfiguration:
    def test_unknown_model_is_configuration_error(self, fake_completion):
        with pytest.raises(ConfigurationError):
            LLMClient(primary_model="not-a-model", completion_fn=fake_completion(GOOD_REPLY))

    def test_same_primary_and_fallback_means_no_fallback(self, fake_completion):
        client = LLMClient(primary_model="gpt-4o", fallback_model="gpt-4o", completion_fn=fake_completion(GOOD_REPLY))
        assert client.fallback_model is None

    def test_at_least_one_attempt(self, fake_completion):
        with pytest.raises(ConfigurationError):
            LLMClient(max_attempts=0, completion_fn=fake_completion(GOOD_REPLY))
