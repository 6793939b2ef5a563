from typing import Any

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from sqlalchemy.orm import Session

from codesensei.api.deps import get_storage
from codesensei.core.config import Settings, get_settings
from codesensei.core.database import get_db
from codesensei.core.security import get_current_user_id
from codesensei.services import profile_service
from codesensei.services.error_policy import build_structured_error_detail
from codesensei.services.profile_service import ProfileUpdateRequest
from codesensei.services.storage import LocalObjectStorage


router = APIRouter(prefix="/api", tags=["profile"])


@router.get("/user-profile")
def get_user_profile(
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
    settings: Settings = Depends(get_settings),
) -> dict[str, Any]:
    return profile_service.get_profile(db, user_id, settings)


@router.put("/user-profile")
def update_user_profile(
    payload: ProfileUpdateRequest,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
) -> dict[str, Any]:
    return profile_service.update_profile(db, user_id, payload)


@router.post("/upload-profile-image")
def upload_profile_image(
    image: UploadFile | None = File(default=None),
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
    settings: Settings = Depends(get_settings),
    storage: LocalObjectStorage = Depends(get_storage),
) -> dict[str, Any]:
    if image is None:
        raise HTTPException(
            status_code=400,
            detail=build_structured_error_detail(error_code="invalid_request", message="No image file provided"),
        )
    # 한도보다 1바이트만 더 읽어 초과 여부를 판단한다.
    data = image.file.read(settings.max_image_bytes + 1)
    return profile_service.upload_profile_image(
        db,
        user_id,
        settings,
        storage,
        data=data,
        filename=image.filename or "",
        content_type=image.content_type or "",
    )


@router.delete("/upload-profile-image")
def remove_profile_image(
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
    storage: LocalObjectStorage = Depends(get_storage),
) -> dict[str, Any]:
    return profile_service.remove_profile_image(db, user_id, storage)
