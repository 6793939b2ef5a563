import logging
from typing import Any

from fastapi import HTTPException
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from codesensei.core.config import Settings
from codesensei.core.security import create_token, hash_password, verify_password, verify_token
from codesensei.models.orm import User, utcnow
from codesensei.services.error_policy import build_structured_error_detail


logger = logging.getLogger(__name__)


class LoginRequest(BaseModel):
    username: str
    password: str


class VerifyTokenRequest(BaseModel):
    token: str


def _unauthorized(message: str) -> HTTPException:
    return HTTPException(
        status_code=401,
        detail=build_structured_error_detail(error_code="unauthorized", message=message),
    )


def login(db: Session, payload: LoginRequest, settings: Settings) -> tuple[dict[str, Any], bool]:
    """Authenticate, creating the account on first sight.

    An existing account without a password hash (the default user) takes the
    password of whoever logs in to it first.

    Returns the response body and whether a user was created.
    """
    username = payload.username.strip()
    if not username or not payload.password:
        raise HTTPException(
            status_code=400,
            detail=build_structured_error_detail(
                error_code="invalid_request",
                message="Username and password are required",
            ),
        )

    user = db.scalar(select(User).where(User.username == username))
    created = False
    if user is None:
        user = User(
            username=username,
            email=f"{username}@{settings.default_email_domain}",
            password_hash=hash_password(payload.password),
            last_active=utcnow(),
        )
        db.add(user)
        try:
            db.commit()
        except IntegrityError as exc:
            db.rollback()
            raise _unauthorized("Invalid credentials") from exc
        created = True
        logger.info("Created user %s on first login", username)
    elif not user.password_hash:
        # 기본 사용자처럼 비밀번호 없이 생성된 계정은 첫 로그인 때 비밀번호를 설정한다.
        user.password_hash = hash_password(payload.password)
        db.commit()
    elif not verify_password(payload.password, user.password_hash):
        raise _unauthorized("Invalid credentials")

    token = create_token(username, settings)
    return {"token": token, "username": username, "created": created}, created


def verify(payload: VerifyTokenRequest, settings: Settings) -> dict[str, Any]:
    claims = verify_token(payload.token, settings)
    if claims is None:
        raise _unauthorized("Invalid token")
    username = claims.get("username") or claims.get("sub")
    if not username:
        raise _unauthorized("Username not found in token")
    return {"username": username}
