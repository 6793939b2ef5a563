from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError

from codesensei.api.deps import enforce_rate_limit, get_question_service
from codesensei.services.error_policy import build_structured_error_detail
from codesensei.services.normalizer_validator import DIFFICULTIES, is_valid_difficulty, missing_question_fields
from codesensei.services.question_service import QuestionService


router = APIRouter(prefix="/api", tags=["questions"])


class GenerateQuestionRequest(BaseModel):
    topic: str | None = None
    difficulty: str | None = None


class SaveQuestionRequest(BaseModel):
    qid: str
    questionData: dict[str, Any]


def _bad_request(message: str) -> HTTPException:
    return HTTPException(
        status_code=400,
        detail=build_structured_error_detail(error_code="invalid_request", message=message),
    )


@router.post("/generate-question", dependencies=[Depends(enforce_rate_limit)])
def generate_question(
    payload: GenerateQuestionRequest | None = None,
    service: QuestionService = Depends(get_question_service),
) -> dict[str, Any]:
    payload = payload or GenerateQuestionRequest()
    if payload.difficulty and not is_valid_difficulty(payload.difficulty):
        raise _bad_request(f"difficulty must be one of: {', '.join(DIFFICULTIES)}")
    return service.get_next_question(payload.topic, payload.difficulty)


@router.get("/question")
def get_question(qid: str | None = None, service: QuestionService = Depends(get_question_service)) -> dict[str, Any]:
    if not qid or not qid.strip():
        raise _bad_request("Question ID is required")
    question = service.get_question(qid.strip())
    if question is None:
        raise HTTPException(
            status_code=404,
            detail=build_structured_error_detail(error_code="not_found", message="Question not found"),
        )
    return question


@router.post("/question")
def save_question(payload: SaveQuestionRequest, service: QuestionService = Depends(get_question_service)) -> dict[str, Any]:
    qid = payload.qid.strip()
    if not qid:
        raise _bad_request("Question ID is required")
    missing = missing_question_fields(payload.questionData)
    if missing:
        raise _bad_request(f"questionData is missing: {', '.join(missing)}")
    try:
        service.save_question(qid, payload.questionData)
    except SQLAlchemyError as exc:
        service.db.rollback()
        raise HTTPException(
            status_code=500,
            detail=build_structured_error_detail(error_code="db_error", detail=f"question_save_failed:{exc}"),
        ) from exc
    return {"success": True, "qid": qid}
