import logging
from datetime import timedelta
from typing import Any

from fastapi import HTTPException
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.orm import Session

from codesensei.core.config import Settings
from codesensei.models.orm import User, as_utc, utcnow
from codesensei.services.error_policy import build_structured_error_detail
from codesensei.services.progress_service import count_saved, count_solved, get_or_create_user
from codesensei.services.storage import ALLOWED_IMAGE_TYPES, LocalObjectStorage, generate_file_name


logger = logging.getLogger(__name__)

DEFAULT_WEAK_TOPICS = ["Dynamic Programming", "Graphs"]
DEFAULT_STRONG_TOPICS = ["Arrays", "Strings", "Sorting"]


class ProfileUpdateRequest(BaseModel):
    level: str | None = None
    interests: list[str] | None = None
    preferredLanguages: list[str] | None = None


def _iso(value: Any) -> str:
    value = as_utc(value)
    return (value or utcnow()).isoformat()


def get_profile(db: Session, user_id: str, settings: Settings) -> dict[str, Any]:
    user = get_or_create_user(db, user_id, settings)

    # 해결 수는 항상 solved_questions 행에서 계산한다.
    solved = count_solved(db, user_id)
    saved = count_saved(db, user_id)
    total = max(user.total_questions or 0, solved)
    completion_rate = round(solved / total * 100) if total else 0
    recent_activity = count_solved(db, user_id, since=utcnow() - timedelta(days=7))
    last_active = _iso(user.last_active)

    return {
        "username": user.username,
        "email": user.email,
        "level": user.level or "beginner",
        "totalQuestions": total,
        "solvedQuestions": solved,
        "savedQuestions": saved,
        "streak": user.streak or 0,
        "averageTime": user.average_time or 0,
        "weakTopics": user.weak_topics or list(DEFAULT_WEAK_TOPICS),
        "strongTopics": user.strong_topics or list(DEFAULT_STRONG_TOPICS),
        "joinDate": _iso(user.created_at),
        "interests": user.interests or [],
        "preferredLanguages": user.preferred_languages or ["javascript"],
        "timezone": user.timezone or "UTC",
        "completionRate": completion_rate,
        "recentActivity": recent_activity,
        "lastActive": last_active,
        "imageUrl": user.image_url,
        "progress": {
            "totalQuestions": total,
            "solvedQuestions": solved,
            "streak": user.streak or 0,
            "lastActive": last_active,
        },
    }


def _not_found(message: str) -> HTTPException:
    return HTTPException(
        status_code=404,
        detail=build_structured_error_detail(error_code="not_found", message=message),
    )


def update_profile(db: Session, user_id: str, payload: ProfileUpdateRequest) -> dict[str, Any]:
    user = db.scalar(select(User).where(User.username == user_id))
    if user is None:
        raise _not_found("User not found")

    if payload.level:
        user.level = payload.level
    if payload.interests is not None:
        user.interests = list(payload.interests)
    if payload.preferredLanguages is not None:
        user.preferred_languages = list(payload.preferredLanguages)
    user.updated_at = utcnow()
    db.commit()
    return {"success": True}


def _invalid_upload(message: str) -> HTTPException:
    return HTTPException(
        status_code=400,
        detail=build_structured_error_detail(error_code="invalid_request", message=message),
    )


def upload_profile_image(
    db: Session,
    user_id: str,
    settings: Settings,
    storage: LocalObjectStorage,
    *,
    data: bytes,
    filename: str,
    content_type: str,
) -> dict[str, Any]:
    if content_type not in ALLOWED_IMAGE_TYPES:
        raise _invalid_upload("Invalid file type. Only JPEG, PNG, GIF, and WebP images are allowed.")
    if len(data) > settings.max_image_bytes:
        limit_mb = settings.max_image_bytes // (1024 * 1024)
        raise _invalid_upload(f"File size too large. Maximum size is {limit_mb}MB.")

    name = generate_file_name(user_id, filename, content_type)
    image_url = storage.upload(data, name, content_type)

    user = get_or_create_user(db, user_id, settings)
    previous = user.image_url
    user.image_url = image_url
    user.updated_at = utcnow()
    db.commit()

    if previous and previous != image_url:
        old_name = storage.name_from_url(previous)
        if old_name:
            storage.delete(old_name)

    return {"success": True, "imageUrl": image_url, "message": "Profile image uploaded successfully"}


def remove_profile_image(db: Session, user_id: str, storage: LocalObjectStorage) -> dict[str, Any]:
    user = db.scalar(select(User).where(User.username == user_id))
    if user is None or not user.image_url:
        raise _not_found("No profile image found")

    name = storage.name_from_url(user.image_url)
    user.image_url = None
    user.updated_at = utcnow()
    db.commit()

    if name:
        storage.delete(name)
    return {"success": True, "message": "Profile image removed successfully"}
