from typing import Any

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from codesensei.api.deps import enforce_rate_limit
from codesensei.core.config import Settings, get_settings
from codesensei.core.database import get_db
from codesensei.services import auth_service
from codesensei.services.auth_service import LoginRequest, VerifyTokenRequest


router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login", dependencies=[Depends(enforce_rate_limit)])
def login(
    payload: LoginRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> JSONResponse:
    body, created = auth_service.login(db, payload, settings)
    return JSONResponse(status_code=201 if created else 200, content=body)


@router.post("/verify-token")
def verify_token(payload: VerifyTokenRequest, settings: Settings = Depends(get_settings)) -> dict[str, Any]:
    return auth_service.verify(payload, settings)
