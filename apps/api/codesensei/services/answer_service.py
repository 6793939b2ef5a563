import json
import logging
import re
from datetime import datetime
from typing import Any

from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from codesensei.core.config import Settings
from codesensei.core.monitoring import timed
from codesensei.models.orm import GeneratedAnswer, as_utc, utcnow
from codesensei.services.error_policy import build_structured_error_detail, pipeline_http_exception
from codesensei.services.pipeline_runtime import PipelineFailure, RetryPolicy, run_with_retry
from codesensei.services.question_service import QuestionService


logger = logging.getLogger(__name__)

_CODE_LANGUAGES = (
    "javascript|python|java|cpp|c\\+\\+|csharp|c#|cs|c|typescript|go|rust|php|ruby|swift|kotlin|scala|r|sql|bash|shell"
)

# 굵은 표시(**) 유무와 관계없이 섹션 머리를 찾는다.
_APPROACH_RE = re.compile(
    r"\**Approach:\**\s*([\s\S]*?)(?=\**Solution:\**|\**Time Complexity:\**|$)", re.IGNORECASE
)
_SOLUTION_RE = re.compile(rf"```(?:{_CODE_LANGUAGES})?\s*([\s\S]*?)```", re.IGNORECASE)
_TIME_RE = re.compile(r"\**Time Complexity:\**\s*([^\n]+)", re.IGNORECASE)
_SPACE_RE = re.compile(r"\**Space Complexity:\**\s*([^\n]+)", re.IGNORECASE)
_EXPLANATION_RE = re.compile(
    r"\**Explanation:\**\s*([\s\S]*?)(?=\**Edge Cases:\**|\**Alternative Approaches:\**|$)", re.IGNORECASE
)
_EDGE_CASES_RE = re.compile(r"\**Edge Cases:\**\s*([\s\S]*?)(?=\**Alternative Approaches:\**|$)", re.IGNORECASE)
_ALTERNATIVES_RE = re.compile(r"\**Alternative Approaches:\**\s*([\s\S]*?)$", re.IGNORECASE)

_BOILERPLATE_SOLUTIONS = {
    "javascript": """function solve(input) {
    // Your solution here
    // Consider the problem constraints and examples

    return result;
}""",
    "python": """def solve(input):
    # Your solution here
    # Consider the problem constraints and examples

    return result""",
    "java": """public class Solution {
    public static int solve(int[] input) {
        // Your solution here
        // Consider the problem constraints and examples

        return result;
    }
}""",
    "cpp": """#include <iostream>
#include <vector>
using namespace std;

int solve(vector<int>& input) {
    // Your solution here
    // Consider the problem constraints and examples

    return result;
}""",
}


def _match(pattern: re.Pattern, text: str, default: str = "") -> str:
    match = pattern.search(text)
    if not match:
        return default
    return match.group(1).strip().strip("*").strip()


def parse_answer_response(text: str) -> dict[str, str]:
    return {
        "approach": _match(_APPROACH_RE, text),
        "solution": _match(_SOLUTION_RE, text),
        "timeComplexity": _match(_TIME_RE, text, "Not specified") or "Not specified",
        "spaceComplexity": _match(_SPACE_RE, text, "Not specified") or "Not specified",
        "explanation": _match(_EXPLANATION_RE, text),
        "edgeCases": _match(_EDGE_CASES_RE, text),
        "alternativeApproaches": _match(_ALTERNATIVES_RE, text),
        "rawResponse": text,
    }


def fallback_answer(language: str) -> dict[str, str]:
    solution = _BOILERPLATE_SOLUTIONS.get(language.lower(), _BOILERPLATE_SOLUTIONS["javascript"])
    return {
        "approach": (
            "This is a basic solution template. For a detailed AI-generated solution, "
            "configure an AI provider API key."
        ),
        "solution": solution,
        "timeComplexity": "O(n) - depends on the specific problem",
        "spaceComplexity": "O(1) - depends on the specific problem",
        "explanation": (
            "This is a placeholder solution because the AI service is currently not available."
        ),
        "edgeCases": "Consider edge cases like empty inputs, single elements, and boundary conditions.",
        "alternativeApproaches": (
            "Different approaches may include iterative vs recursive solutions, or using different data structures."
        ),
        "rawResponse": "Fallback solution generated due to AI service unavailability",
    }


def _format_examples(examples: list[Any]) -> str:
    if not examples:
        return "No examples provided"
    blocks = []
    for index, example in enumerate(examples, start=1):
        if isinstance(example, dict):
            blocks.append(
                f"Example {index}:\n"
                f"Input: {json.dumps(example.get('input'))}\n"
                f"Output: {json.dumps(example.get('output'))}\n"
                f"Explanation: {example.get('explanation') or 'N/A'}"
            )
        else:
            blocks.append(f"Example {index}:\n{json.dumps(example)}")
    return "\n\n".join(blocks)


def build_answer_prompt(question: dict[str, Any], language: str) -> str:
    constraints = "\n".join(f"- {item}" for item in question.get("constraints") or []) or "None specified"
    return f"""You are an expert programming tutor. Provide a complete solution for the following coding problem in {language}.

**Problem:**
{question.get("qname", "")}

**Description:**
{question.get("description", "")}

**Constraints:**
{constraints}

**Example Test Cases:**
{_format_examples(question.get("example_test_cases") or [])}

**Requirements:**
1. Provide a complete, working solution in {language}
2. Running the solution on each example input must produce exactly the example output shown above
3. Include detailed time and space complexity analysis
4. Explain the approach and algorithm used
5. Add comments to explain key parts of the code
6. Handle edge cases appropriately

**Response Format:**

**Approach:**
[Explain the algorithm and approach]

**Solution:**
```{language}
[Your complete code solution here]
```

**Time Complexity:** O([complexity])
**Space Complexity:** O([complexity])

**Explanation:**
[Detailed explanation of how the solution works]

**Edge Cases:**
[Discuss edge cases and how they're handled]

**Alternative Approaches:**
[If applicable, mention other possible solutions]"""


def _answer_response(row: GeneratedAnswer, *, cached: bool) -> dict[str, Any]:
    generated_at = as_utc(row.generated_at)
    return {
        "success": True,
        "answer": row.answer,
        "cached": cached,
        "generatedAt": generated_at.isoformat() if generated_at else None,
        "isRegenerated": bool(row.is_regenerated),
    }


class AnswerService:
    def __init__(
        self,
        db: Session,
        settings: Settings,
        question_service: QuestionService,
        ai_service: Any,
        policy: RetryPolicy,
    ) -> None:
        self.db = db
        self.settings = settings
        self.question_service = question_service
        self.ai_service = ai_service
        self.policy = policy

    @property
    def answer_owner(self) -> str:
        # 답변은 사용자와 무관하게 공유된다.
        return self.settings.default_user_id

    def find_answer(self, question_id: str, language: str) -> GeneratedAnswer | None:
        return self.db.scalar(
            select(GeneratedAnswer).where(
                GeneratedAnswer.question_id == question_id,
                GeneratedAnswer.language == language,
                GeneratedAnswer.user_id == self.answer_owner,
            )
        )

    def generate_answer(self, question_id: str, language: str, force_regenerate: bool = False) -> dict[str, Any]:
        existing = self.find_answer(question_id, language)
        if existing is not None and not force_regenerate:
            logger.info("Returning cached solution for question %s language %s", question_id, language)
            return _answer_response(existing, cached=True)

        question = self.question_service.get_question(question_id)
        if question is None:
            raise HTTPException(
                status_code=404,
                detail=build_structured_error_detail(error_code="not_found", message="Question not found"),
            )

        if self.ai_service is None:
            logger.warning("AI provider not configured, returning boilerplate solution")
            return {
                "success": True,
                "answer": fallback_answer(language),
                "cached": False,
                "generatedAt": utcnow().isoformat(),
                "isRegenerated": False,
            }

        prompt = build_answer_prompt(question, language)

        def _attempt(attempt: int) -> dict[str, str]:
            raw = self.ai_service.generate_text(prompt=prompt)
            if not str(raw or "").strip():
                raise RuntimeError("ai_answer_empty")
            return parse_answer_response(raw)

        try:
            with timed("answer_generate", question_id=question_id, language=language):
                answer, _ = run_with_retry(_attempt, pipeline="answer_generate", policy=self.policy)
        except PipelineFailure as failure:
            logger.error("Answer generation failed for %s: %s", question_id, failure)
            raise pipeline_http_exception(failure) from failure

        row = self._upsert(question_id, language, answer, utcnow(), force_regenerate)
        return _answer_response(row, cached=False)

    def _upsert(
        self,
        question_id: str,
        language: str,
        answer: dict[str, str],
        generated_at: datetime,
        is_regenerated: bool,
    ) -> GeneratedAnswer:
        values = {
            "question_id": question_id,
            "language": language,
            "user_id": self.answer_owner,
            "answer": answer,
            "generated_at": generated_at,
            "is_regenerated": is_regenerated,
        }
        dialect = self.db.get_bind().dialect.name
        if dialect == "postgresql":
            stmt = postgresql.insert(GeneratedAnswer).values(**values)
        elif dialect == "sqlite":
            stmt = sqlite.insert(GeneratedAnswer).values(**values)
        else:
            raise RuntimeError(f"unsupported_dialect:{dialect}")

        stmt = stmt.on_conflict_do_update(
            index_elements=["question_id", "language", "user_id"],
            set_={
                "answer": stmt.excluded.answer,
                "generated_at": stmt.excluded.generated_at,
                "is_regenerated": stmt.excluded.is_regenerated,
            },
        )
        self.db.execute(stmt)
        self.db.commit()

        row = self.find_answer(question_id, language)
        if row is None:
            raise RuntimeError("answer_upsert_missing")
        return row
