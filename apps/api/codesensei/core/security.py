import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

import bcrypt
import jwt
from fastapi import Depends, HTTPException, Request, status

from codesensei.core.config import Settings, get_settings


logger = logging.getLogger(__name__)


def hash_password(password: str) -> str:
    # bcrypt는 72바이트까지만 사용한다.
    pw_bytes = password.encode("utf-8")[:72]
    return bcrypt.hashpw(pw_bytes, bcrypt.gensalt()).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    try:
        return bcrypt.checkpw(plain_password.encode("utf-8")[:72], hashed_password.encode("utf-8"))
    except ValueError as exc:
        logger.warning("Malformed password hash: %s", exc)
        return False


def create_token(username: str, settings: Settings, ttl_minutes: int | None = None) -> str:
    now = datetime.now(timezone.utc)
    ttl = ttl_minutes if ttl_minutes is not None else settings.jwt_expiry_minutes
    payload = {
        "sub": username,
        "username": username,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(minutes=ttl)).timestamp()),
        "jti": uuid.uuid4().hex,
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def verify_token(token: str, settings: Settings) -> dict[str, Any] | None:
    try:
        return jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except jwt.PyJWTError:
        return None


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_user_id(request: Request, settings: Settings = Depends(get_settings)) -> str:
    """Resolve the acting user.

    Requests without an Authorization header act as the shared default user,
    which keeps the single-tenant front end working. A header that is present
    but not a valid bearer token is rejected.
    """
    auth_header = request.headers.get("Authorization")
    if not auth_header:
        return settings.default_user_id
    if not auth_header.startswith("Bearer "):
        raise _unauthorized("Missing or invalid Authorization header")

    payload = verify_token(auth_header.split(" ", 1)[1], settings)
    if payload is None:
        raise _unauthorized("Invalid or expired token")

    username = payload.get("username") or payload.get("sub")
    if not username:
        raise _unauthorized("Token payload missing required claims")
    return str(username)
