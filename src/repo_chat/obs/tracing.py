"""Answer tracing, cost accounting, and latency metrics."""

from __future__ import annotations

import math
import re
import threading
import time
import uuid
from collections import Counter, OrderedDict
from dataclasses import dataclass
from datetime import datetime, timezone

from repo_chat.types import FALLBACK, RULE_BASED

_TOKEN_PATTERN = re.compile(r"\w+|[^\w\s]", flags=re.UNICODE)


@dataclass(slots=True)
class AnswerTrace:
    trace_id: str
    timestamp_utc: str
    question: str
    answer: str
    provenance: str
    repo_id: str | None
    chunks_used: int
    cited_paths: list[str]
    input_tokens: int
    output_tokens: int
    estimated_cost_usd: float
    latency_ms: float
    model_attempts: int = 0


@dataclass(slots=True)
class CostModel:
    """USD per 1K tokens, priced at the first cascade model's list rate."""

    input_per_1k: float = 0.00015
    output_per_1k: float = 0.0006

    def estimate_cost(self, input_tokens: int, output_tokens: int) -> float:
        return (input_tokens * self.input_per_1k + output_tokens * self.output_per_1k) / 1000.0


class TraceStore:
    """Keeps the most recent answer traces, oldest dropped first."""

    def __init__(
        self,
        *,
        cost_model: CostModel | None = None,
        max_records: int = 1000,
    ) -> None:
        self._records: OrderedDict[str, AnswerTrace] = OrderedDict()
        self._cost_model = cost_model or CostModel()
        self._max_records = max_records
        self._lock = threading.Lock()

    def create_record(
        self,
        *,
        question: str,
        answer: str,
        provenance: str,
        repo_id: str | None = None,
        chunks_used: int = 0,
        cited_paths: list[str] | None = None,
        input_tokens: int = 0,
        output_tokens: int = 0,
        latency_ms: float = 0.0,
        model_attempts: int = 0,
    ) -> AnswerTrace:
        # Rule-based and fallback answers never reach a paid model.
        billable = provenance not in (RULE_BASED, FALLBACK)
        record = AnswerTrace(
            trace_id=str(uuid.uuid4()),
            timestamp_utc=datetime.now(timezone.utc).isoformat(),
            question=question,
            answer=answer,
            provenance=provenance,
            repo_id=repo_id,
            chunks_used=chunks_used,
            cited_paths=list(cited_paths or []),
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            estimated_cost_usd=(
                self._cost_model.estimate_cost(input_tokens, output_tokens) if billable else 0.0
            ),
            latency_ms=latency_ms,
            model_attempts=model_attempts,
        )
        with self._lock:
            self._records[record.trace_id] = record
            while len(self._records) > self._max_records:
                self._records.popitem(last=False)
        return record

    def get(self, trace_id: str) -> AnswerTrace:
        with self._lock:
            record = self._records.get(trace_id)
        if record is None:
            raise KeyError(f"Trace not found: {trace_id}")
        return record

    def list_recent(self, limit: int = 20) -> list[AnswerTrace]:
        with self._lock:
            records = list(self._records.values())
        return records[-limit:] if limit > 0 else []

    def summary(self) -> dict[str, object]:
        """Roll the retained traces up into the numbers served by `/metrics`.

        `rule_based_rate` is the share of answers that never reached a model;
        `fallback_rate` is the share where every model failed.
        """
        with self._lock:
            records = list(self._records.values())

        provenance = Counter(record.provenance for record in records)
        latencies = [record.latency_ms for record in records]
        count = len(records)
        return {
            "total_requests": count,
            "avg_latency_ms": sum(latencies) / count if count else 0.0,
            "p95_latency_ms": _percentile(latencies, 0.95),
            "total_input_tokens": sum(record.input_tokens for record in records),
            "total_output_tokens": sum(record.output_tokens for record in records),
            "total_estimated_cost_usd": sum(record.estimated_cost_usd for record in records),
            "total_model_attempts": sum(record.model_attempts for record in records),
            "rule_based_rate": provenance[RULE_BASED] / count if count else 0.0,
            "fallback_rate": provenance[FALLBACK] / count if count else 0.0,
            "by_provenance": dict(provenance),
        }


def _percentile(values: list[float], fraction: float) -> float:
    """Nearest-rank percentile; 0.0 for no samples."""
    if not values:
        return 0.0
    ordered = sorted(values)
    rank = max(1, math.ceil(fraction * len(ordered)))
    return ordered[rank - 1]


class Timer:
    """Wall-clock stopwatch; `elapsed_ms` is set when the block exits."""

    def __init__(self) -> None:
        self.started_at = 0.0
        self.elapsed_ms = 0.0

    def __enter__(self) -> "Timer":
        self.started_at = time.perf_counter()
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> None:
        self.elapsed_ms = 1000.0 * (time.perf_counter() - self.started_at)


def estimate_token_count(text: str) -> int:
    """Rough token count: words plus standalone punctuation."""
    return len(_TOKEN_PATTERN.findall(text))
