import logging
from typing import Any

from codesensei.domain.ai.providers.common import parse_json_text
from codesensei.services.normalizer_validator import missing_question_fields, normalize_question_record
from codesensei.services.pipeline_runtime import PipelineFailure, RetryPolicy, run_with_retry


logger = logging.getLogger(__name__)

QUESTION_SYSTEM_PROMPT = (
    "You are an expert competitive-programming problem setter. "
    "Return exactly one JSON object and nothing else."
)


def build_question_prompt(topic: str, difficulty: str) -> str:
    return f"""Generate a {difficulty} data structures and algorithms question themed around "{topic}".

Rules:
1. The problem must be original, similar in style to LeetCode, with the {topic} theme woven into the story.
2. Include exactly 2 example test cases with concrete input and output values.
3. Return valid, complete JSON only, with keys in exactly this order:
{{
  "qname": "<short problem title>",
  "description": "<full problem statement>",
  "constraints": ["<constraint 1>", "<constraint 2>"],
  "example_test_cases": [
    {{"input": <input value or object>, "output": <expected output>}},
    {{"input": <input value or object>, "output": <expected output>}}
  ]
}}"""


def parse_question_response(text: str) -> dict[str, Any]:
    data = parse_json_text(text)
    missing = missing_question_fields(data)
    if missing:
        raise ValueError(f"question_fields_missing:{','.join(missing)}")
    return normalize_question_record(data)


class QuestionGenerator:
    def __init__(self, ai_service: Any, policy: RetryPolicy) -> None:
        self.ai_service = ai_service
        self.policy = policy

    def generate(self, topic: str, difficulty: str = "medium") -> dict[str, Any] | None:
        """Return a normalized question record, or None when generation failed.

        Callers substitute a fallback question on None.
        """
        if self.ai_service is None:
            logger.warning("No AI provider configured, skipping question generation")
            return None

        prompt = build_question_prompt(topic, difficulty)

        def _attempt(attempt: int) -> dict[str, Any]:
            logger.info(
                "Generating question attempt %s/%s topic=%r difficulty=%s",
                attempt,
                self.policy.max_attempts,
                topic,
                difficulty,
            )
            raw = self.ai_service.generate_text(
                prompt=prompt,
                system_prompt=QUESTION_SYSTEM_PROMPT,
                json_mode=True,
            )
            logger.debug("Raw AI response: %s", raw)
            return parse_question_response(raw)

        try:
            question, attempt_count = run_with_retry(_attempt, pipeline="question_generate", policy=self.policy)
        except PipelineFailure as failure:
            logger.error(
                "Question generation failed after %s attempts (%s): %s",
                failure.attempt_count,
                failure.kind,
                failure.reason,
            )
            return None

        logger.info("Generated question %r in %s attempt(s)", question["qname"], attempt_count)
        return question
