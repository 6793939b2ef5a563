import logging
from datetime import datetime
from typing import Any

from fastapi import HTTPException
from pydantic import BaseModel
from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from codesensei.core.config import Settings
from codesensei.models.orm import SavedQuestion, SolvedQuestion, User, as_utc, utcnow
from codesensei.services.error_policy import build_structured_error_detail


logger = logging.getLogger(__name__)


class MarkSolvedRequest(BaseModel):
    questionId: str


class SaveQuestionRequest(BaseModel):
    questionId: str
    questionData: dict[str, Any]


class QuestionRefRequest(BaseModel):
    questionId: str


def require_question_id(value: str | None) -> str:
    question_id = str(value or "").strip()
    if not question_id:
        raise HTTPException(
            status_code=400,
            detail=build_structured_error_detail(error_code="invalid_request", message="Question ID is required"),
        )
    return question_id


def get_or_create_user(db: Session, username: str, settings: Settings) -> User:
    user = db.scalar(select(User).where(User.username == username))
    if user is not None:
        return user

    user = User(
        username=username,
        email=f"{username}@{settings.default_email_domain}",
        last_active=utcnow(),
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        # 동시 요청이 먼저 생성한 경우
        db.rollback()
        return db.scalars(select(User).where(User.username == username)).one()
    logger.info("Created user %s", username)
    return user


def next_streak(current: int, last_active: datetime | None, now: datetime) -> int:
    last = as_utc(last_active)
    if last is None:
        return 1
    days = (now.date() - last.date()).days
    if days <= 0:
        return max(1, current)
    if days == 1:
        return current + 1
    return 1


def mark_solved(db: Session, user_id: str, question_id: str, settings: Settings) -> dict[str, Any]:
    if find_solved(db, user_id, question_id) is not None:
        return {"success": True, "message": "Question already marked as solved", "alreadySolved": True}

    user = get_or_create_user(db, user_id, settings)
    now = utcnow()
    db.add(SolvedQuestion(user_id=user_id, question_id=question_id, solved_at=now))
    user.solved_questions = (user.solved_questions or 0) + 1
    user.streak = next_streak(user.streak or 0, user.last_active, now)
    user.last_active = now
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        return {"success": True, "message": "Question already marked as solved", "alreadySolved": True}

    logger.info("Question %s marked as solved for user %s", question_id, user_id)
    return {"success": True, "message": "Question marked as solved successfully", "alreadySolved": False}


def find_solved(db: Session, user_id: str, question_id: str) -> SolvedQuestion | None:
    return db.scalar(
        select(SolvedQuestion).where(SolvedQuestion.user_id == user_id, SolvedQuestion.question_id == question_id)
    )


def solved_status(db: Session, user_id: str, question_id: str) -> dict[str, Any]:
    solved = find_solved(db, user_id, question_id)
    solved_at = as_utc(solved.solved_at) if solved else None
    return {"isSolved": solved is not None, "solvedAt": solved_at.isoformat() if solved_at else None}


def save_question(db: Session, user_id: str, question_id: str, question_data: dict[str, Any]) -> dict[str, Any]:
    if is_bookmarked(db, user_id, question_id):
        return {"success": True, "message": "Question already saved"}

    db.add(SavedQuestion(user_id=user_id, question_id=question_id, question_data=question_data))
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        return {"success": True, "message": "Question already saved"}

    logger.info("Question %s saved for user %s", question_id, user_id)
    return {"success": True}


def list_saved_questions(db: Session, user_id: str) -> dict[str, Any]:
    rows = db.scalars(
        select(SavedQuestion)
        .where(SavedQuestion.user_id == user_id)
        .order_by(SavedQuestion.saved_at.desc(), SavedQuestion.id.desc())
    )
    saved = []
    for row in rows:
        saved_at = as_utc(row.saved_at)
        saved.append(
            {
                "userId": row.user_id,
                "questionId": row.question_id,
                "questionData": row.question_data,
                "savedAt": saved_at.isoformat() if saved_at else None,
            }
        )
    return {"savedQuestions": saved}


def delete_saved_question(db: Session, user_id: str, question_id: str) -> dict[str, Any]:
    result = db.execute(
        delete(SavedQuestion).where(SavedQuestion.user_id == user_id, SavedQuestion.question_id == question_id)
    )
    db.commit()
    if not result.rowcount:
        raise HTTPException(
            status_code=404,
            detail=build_structured_error_detail(
                error_code="not_found",
                message="Question not found in saved questions",
            ),
        )
    logger.info("Question %s removed from saved questions of %s", question_id, user_id)
    return {"success": True}


def is_bookmarked(db: Session, user_id: str, question_id: str) -> bool:
    found = db.scalar(
        select(SavedQuestion.id).where(SavedQuestion.user_id == user_id, SavedQuestion.question_id == question_id)
    )
    return found is not None


def count_solved(db: Session, user_id: str, since: datetime | None = None) -> int:
    stmt = select(func.count(SolvedQuestion.id)).where(SolvedQuestion.user_id == user_id)
    if since is not None:
        stmt = stmt.where(SolvedQuestion.solved_at >= since)
    return int(db.scalar(stmt) or 0)


def count_saved(db: Session, user_id: str) -> int:
    return int(db.scalar(select(func.count(SavedQuestion.id)).where(SavedQuestion.user_id == user_id)) or 0)
