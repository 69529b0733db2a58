import os
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from fastapi import Depends, Header, HTTPException, status
from jose import JWTError, jwt

from vermafarm.config import positive_int_env

TOKEN_TTL_HOURS = positive_int_env("JWT_EXPIRE_HOURS", 24)
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
_JWT_SECRET = os.getenv("JWT_SECRET", "dev-insecure-secret-change-me")


@dataclass(frozen=True)
class AuthenticatedUser:
    user_id: str
    user_type: str
    email: str = ""


def create_access_token(user_id: str, user_type: str, email: str = "") -> tuple[str, str]:
    expiry = datetime.now(timezone.utc) + timedelta(hours=TOKEN_TTL_HOURS)
    claims = {"sub": user_id, "userType": user_type, "email": email, "exp": expiry}
    token = jwt.encode(claims, _JWT_SECRET, algorithm=JWT_ALGORITHM)
    return token, expiry.isoformat()


def verify_access_token(token: str) -> Optional[AuthenticatedUser]:
    try:
        claims = jwt.decode(token, _JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except JWTError:
        return None
    user_id = claims.get("sub")
    user_type = claims.get("userType")
    if not user_id or not user_type:
        return None
    return AuthenticatedUser(user_id=str(user_id), user_type=str(user_type), email=str(claims.get("email") or ""))


def parse_bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    parts = authorization.split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return None
    return parts[1].strip() or None


def resolve_request_user(authorization: Optional[str]) -> Optional[AuthenticatedUser]:
    token = parse_bearer_token(authorization)
    if not token:
        return None
    return verify_access_token(token)


def require_authenticated_user(authorization: Optional[str] = Header(default=None)) -> AuthenticatedUser:
    user = resolve_request_user(authorization)
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authorized to access this route")
    return user


def require_user_type(*user_types: str) -> Callable[..., AuthenticatedUser]:
    """Dependency factory gating a route on the caller's account type."""

    def dependency(user: AuthenticatedUser = Depends(require_authenticated_user)) -> AuthenticatedUser:
        if user.user_type not in user_types:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"User type {user.user_type} is not authorized to access this route",
            )
        return user

    return dependency
