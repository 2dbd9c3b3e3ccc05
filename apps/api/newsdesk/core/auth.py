from dataclasses import dataclass

from fastapi import Depends, HTTPException, status
from jose import JWTError, jwt
from starlette.requests import Request

from newsdesk.core.config import get_settings


@dataclass
class AuthUser:
    sub: str
    username: str | None = None


async def get_optional_user(request: Request) -> AuthUser | None:
    """Decode the bearer token, returning ``None`` for anonymous callers."""

    auth_header = request.headers.get("authorization", "")
    token = auth_header.replace("Bearer ", "") if auth_header.startswith("Bearer ") else ""

    if not token:
        return None

    settings = get_settings()
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None

    subject = payload.get("sub")
    if not subject:
        return None

    context = getattr(request.state, "context", None)
    if context is not None:
        context.user_id = str(subject)
    username = payload.get("username")
    return AuthUser(sub=str(subject), username=str(username) if username is not None else None)


async def get_current_user(user: AuthUser | None = Depends(get_optional_user)) -> AuthUser:
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user
