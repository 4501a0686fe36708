from repo_chat.agent.cascade import ModelCascade, is_non_retryable
from repo_chat.config import CascadeConfig
from repo_chat.types import FALLBACK

MODELS = ["m1", "m2", "m3"]


class StatusError(Exception):
    def __init__(self, status_code: int) -> None:
        super().__init__(f"HTTP {status_code}")
        self.status_code = status_code


class ScriptedBackend:
    """Plays back per-model outcomes; an Exception instance is raised."""

    def __init__(self, script: dict[str, list[object]]) -> None:
        self.script = {model: list(outcomes) for model, outcomes in script.items()}
        self.calls: list[str] = []

    def generate(self, model: str, prompt: str, *, temperature: float, max_output_tokens: int) -> str:
        self.calls.append(model)
        outcomes = self.script.get(model) or [""]
        outcome = outcomes.pop(0) if len(outcomes) > 1 else outcomes[0]
        if isinstance(outcome, Exception):
            raise outcome
        return str(outcome)


def _cascade(backend, **overrides) -> tuple[ModelCascade, list[float]]:
    sleeps: list[float] = []
    config = CascadeConfig(models=MODELS, **overrides)
    return ModelCascade(backend, config, sleep=sleeps.append, clock=lambda: 0.0), sleeps


def test_first_model_answers() -> None:
    backend = ScriptedBackend({"m1": ["  the answer \n"]})
    cascade, sleeps = _cascade(backend)

    result = cascade.generate("prompt", "fallback")

    assert result.text == "the answer"
    assert result.model == "m1"
    assert result.attempts == 1
    assert sleeps == []


def test_transient_error_retries_same_model_with_backoff() -> None:
    backend = ScriptedBackend({"m1": [RuntimeError("503"), "recovered"]})
    cascade, sleeps = _cascade(backend)

    result = cascade.generate("prompt", "fallback")

    assert result.model == "m1"
    assert result.attempts == 2
    assert backend.calls == ["m1", "m1"]
    assert sleeps == [1.0]


def test_backoff_doubles_per_retry() -> None:
    backend = ScriptedBackend({"m1": [RuntimeError("a"), RuntimeError("b"), "ok"]})
    cascade, sleeps = _cascade(backend, attempts_per_model=3, base_delay_seconds=0.5)

    assert cascade.generate("prompt", "fallback").text == "ok"
    assert sleeps == [0.5, 1.0]


def test_exhausted_model_moves_to_next() -> None:
    backend = ScriptedBackend({"m1": [RuntimeError("down")], "m2": ["from m2"]})
    cascade, _ = _cascade(backend)

    result = cascade.generate("prompt", "fallback")

    assert result.model == "m2"
    assert backend.calls == ["m1", "m1", "m2"]
    assert result.attempts == 3


def test_empty_reply_advances_without_retry() -> None:
    backend = ScriptedBackend({"m1": ["   "], "m2": ["real answer"]})
    cascade, sleeps = _cascade(backend)

    result = cascade.generate("prompt", "fallback")

    assert result.model == "m2"
    assert backend.calls == ["m1", "m2"]
    assert sleeps == []


def test_total_failure_returns_fallback() -> None:
    backend = ScriptedBackend({model: [RuntimeError("down")] for model in MODELS})
    cascade, sleeps = _cascade(backend)

    result = cascade.generate("prompt", "sorry")

    assert result.text == "sorry"
    assert result.model == FALLBACK
    assert result.attempts == 6
    assert sleeps == [1.0, 1.0, 1.0]


def test_credential_error_stops_cascade_immediately() -> None:
    backend = ScriptedBackend({"m1": [StatusError(401)], "m2": ["never"]})
    cascade, sleeps = _cascade(backend)

    result = cascade.generate("prompt", "sorry")

    assert result.model == FALLBACK
    assert backend.calls == ["m1"]
    assert sleeps == []


def test_retry_that_would_overrun_deadline_moves_to_next_model() -> None:
    backend = ScriptedBackend({"m1": [RuntimeError("503")], "m2": ["from m2"]})
    cascade, sleeps = _cascade(backend, deadline_seconds=0.5)

    result = cascade.generate("prompt", "sorry")

    assert result.model == "m2"
    assert result.text == "from m2"
    assert backend.calls == ["m1", "m2"]
    assert sleeps == []


class SlowBackend(ScriptedBackend):
    """Advances a shared clock on every call."""

    def __init__(self, script: dict[str, list[object]], now: list[float], cost: float) -> None:
        super().__init__(script)
        self.now = now
        self.cost = cost

    def generate(self, model: str, prompt: str, *, temperature: float, max_output_tokens: int) -> str:
        self.now[0] += self.cost
        return super().generate(
            model, prompt, temperature=temperature, max_output_tokens=max_output_tokens
        )


def test_no_attempt_starts_after_deadline() -> None:
    now = [0.0]
    backend = SlowBackend({model: [RuntimeError("timeout")] for model in MODELS}, now, cost=10.0)
    sleeps: list[float] = []
    config = CascadeConfig(models=MODELS, deadline_seconds=5.0)
    cascade = ModelCascade(backend, config, sleep=sleeps.append, clock=lambda: now[0])

    result = cascade.generate("prompt", "sorry")

    assert result.model == FALLBACK
    assert result.attempts == 1
    assert backend.calls == ["m1"]
    assert sleeps == []


def test_no_backend_means_fallback_without_attempts() -> None:
    cascade = ModelCascade(None)
    result = cascade.generate("prompt", "offline")

    assert result.text == "offline"
    assert result.model == FALLBACK
    assert result.attempts == 0


def test_non_retryable_classification() -> None:
    assert is_non_retryable(StatusError(401))
    assert is_non_retryable(StatusError(403))
    assert not is_non_retryable(StatusError(429))
    assert not is_non_retryable(TimeoutError("slow"))
