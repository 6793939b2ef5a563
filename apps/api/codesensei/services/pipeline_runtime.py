from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable

from codesensei.core.config import Settings


logger = logging.getLogger(__name__)


class PipelineFailure(RuntimeError):
    def __init__(
        self,
        *,
        pipeline: str,
        kind: str,
        status_code: int,
        retryable: bool,
        reason: str,
        attempt_count: int,
    ) -> None:
        self.pipeline = pipeline
        self.kind = kind
        self.status_code = status_code
        self.retryable = retryable
        self.reason = reason
        self.attempt_count = attempt_count
        super().__init__(f"{pipeline}:{kind}:{reason}")


@dataclass
class RetryPolicy:
    max_attempts: int = 3
    base_delay_sec: float = 1.0
    # None이면 모든 실패 종류를 재시도한다.
    retryable_kinds: set[str] | None = None
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False)

    @classmethod
    def from_settings(cls, settings: Settings) -> RetryPolicy:
        return cls(
            max_attempts=settings.retry_max_attempts,
            base_delay_sec=settings.retry_base_delay_sec,
        )

    def delay_for(self, attempt: int) -> float:
        # attempt 1 -> 2s, 2 -> 4s, 3 -> 8s (base 1s)
        return max(0.0, self.base_delay_sec) * (2**attempt)

    def should_retry(self, kind: str) -> bool:
        return self.retryable_kinds is None or kind in self.retryable_kinds


def ai_error_detail(exc: Exception) -> str:
    message = str(exc).strip()
    if not message:
        return f"{type(exc).__name__.lower()}_ai_provider_failed"
    return message[:300]


def normalize_error_reason(value: str) -> str:
    return " ".join(str(value or "").split())[:260] or "ai_provider_failed"


def format_pipeline_error_detail(pipeline: str, kind: str, reason: str) -> str:
    return f"{pipeline}_failed:{kind}:{normalize_error_reason(reason)}"


def classify_ai_failure(detail: str) -> tuple[str, int, bool]:
    text = str(detail or "").lower()

    rate_limit_tokens = (
        "429",
        "too many requests",
        "rate limit",
        "rate_limit",
        "resource exhausted",
        "quota",
        "ai_backpressure_busy",
    )
    timeout_tokens = (
        "timed out",
        "timeout",
        "read operation timed out",
    )
    schema_tokens = (
        "schema",
        "json",
        "jsondecodeerror",
        "expecting value",
        "expecting property name",
        "ai_response_not_object",
        "question_fields_missing",
    )
    config_tokens = (
        "api_key_missing",
        "openai_base_url_missing",
        "unsupported_ai_provider",
        "ai_service_init_failed",
        "config_error",
    )

    if any(token in text for token in rate_limit_tokens):
        return ("rate_limited", 429, True)
    if any(token in text for token in timeout_tokens):
        return ("timeout", 504, True)
    if any(token in text for token in schema_tokens):
        return ("schema_mismatch", 422, True)
    if any(token in text for token in config_tokens):
        return ("config_error", 503, False)
    return ("provider_error", 502, False)


def run_with_retry(
    call: Callable[[int], Any],
    *,
    pipeline: str,
    policy: RetryPolicy,
) -> tuple[Any, int]:
    attempts = max(1, int(policy.max_attempts))

    for attempt in range(1, attempts + 1):
        try:
            return call(attempt), attempt
        except Exception as exc:
            reason = ai_error_detail(exc)
            kind, status_code, retryable = classify_ai_failure(reason)
            logger.warning(
                "%s attempt %s/%s failed (%s): %s",
                pipeline,
                attempt,
                attempts,
                kind,
                reason,
            )
            if attempt < attempts and policy.should_retry(kind):
                delay = policy.delay_for(attempt)
                if delay > 0:
                    logger.info("%s retrying in %.1fs", pipeline, delay)
                    policy.sleep(delay)
                continue
            raise PipelineFailure(
                pipeline=pipeline,
                kind=kind,
                status_code=status_code,
                retryable=retryable,
                reason=reason,
                attempt_count=attempt,
            ) from exc

    raise PipelineFailure(
        pipeline=pipeline,
        kind="provider_error",
        status_code=502,
        retryable=False,
        reason="ai_retry_exhausted",
        attempt_count=attempts,
    )
