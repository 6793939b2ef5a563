from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from codesensei.api.deps import enforce_rate_limit, get_answer_service
from codesensei.services.answer_service import AnswerService
from codesensei.services.error_policy import build_structured_error_detail


router = APIRouter(prefix="/api", tags=["answers"])


class GenerateAnswerRequest(BaseModel):
    questionId: str
    language: str
    forceRegenerate: bool = False


@router.post("/generate-answer", dependencies=[Depends(enforce_rate_limit)])
def generate_answer(payload: GenerateAnswerRequest, service: AnswerService = Depends(get_answer_service)) -> dict[str, Any]:
    question_id = payload.questionId.strip()
    language = payload.language.strip()
    if not question_id or not language:
        raise HTTPException(
            status_code=400,
            detail=build_structured_error_detail(
                error_code="invalid_request",
                message="Question ID and language are required",
            ),
        )
    return service.generate_answer(question_id, language, payload.forceRegenerate)
