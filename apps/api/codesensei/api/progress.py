from typing import Any

from fastapi import APIRouter, Body, Depends
from sqlalchemy.orm import Session

from codesensei.core.config import Settings, get_settings
from codesensei.core.database import get_db
from codesensei.core.security import get_current_user_id
from codesensei.services import progress_service
from codesensei.services.progress_service import (
    MarkSolvedRequest,
    QuestionRefRequest,
    SaveQuestionRequest,
    require_question_id,
)


router = APIRouter(prefix="/api", tags=["progress"])


@router.post("/mark-solved")
def mark_solved(
    payload: MarkSolvedRequest,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
    settings: Settings = Depends(get_settings),
) -> dict[str, Any]:
    question_id = require_question_id(payload.questionId)
    return progress_service.mark_solved(db, user_id, question_id, settings)


@router.get("/mark-solved")
def solved_status(
    questionId: str | None = None,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
) -> dict[str, Any]:
    return progress_service.solved_status(db, user_id, require_question_id(questionId))


@router.post("/saved-questions")
def save_question(
    payload: SaveQuestionRequest,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
) -> dict[str, Any]:
    question_id = require_question_id(payload.questionId)
    return progress_service.save_question(db, user_id, question_id, payload.questionData)


@router.get("/saved-questions")
def list_saved_questions(
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
) -> dict[str, Any]:
    return progress_service.list_saved_questions(db, user_id)


@router.delete("/saved-questions")
def delete_saved_question(
    questionId: str | None = None,
    payload: QuestionRefRequest | None = Body(default=None),
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
) -> dict[str, Any]:
    # 본문과 쿼리 문자열 모두 허용한다.
    question_id = require_question_id(payload.questionId if payload else questionId)
    return progress_service.delete_saved_question(db, user_id, question_id)


@router.api_route("/saved-questions/check", methods=["GET", "POST"])
def check_bookmark(
    questionId: str | None = None,
    payload: QuestionRefRequest | None = Body(default=None),
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
) -> dict[str, bool]:
    question_id = require_question_id(payload.questionId if payload else questionId)
    return {"isBookmarked": progress_service.is_bookmarked(db, user_id, question_id)}
