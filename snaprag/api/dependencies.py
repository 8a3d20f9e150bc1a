"""FastAPI dependency injection."""

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from snaprag.config import Settings
from snaprag.errors import AuthError
from snaprag.services import Services

security = HTTPBearer(auto_error=False)


def get_settings_dep(request: Request) -> Settings:
    return request.app.state.settings


def get_services(request: Request) -> Services:
    return request.app.state.services


def decode_access_token(token: str, settings: Settings) -> str | None:
    """Return the token subject (the user id), or None when the token is not valid."""
    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
            audience=settings.JWT_AUDIENCE,
            options={"verify_aud": settings.JWT_AUDIENCE is not None},
        )
    except JWTError:
        return None
    subject = payload.get("sub")
    return subject if isinstance(subject, str) and subject else None


async def get_current_user_id(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    settings: Settings = Depends(get_settings_dep),
) -> str:
    """Authenticate via Bearer JWT; resolves before the request body is validated."""
    if credentials:
        user_id = decode_access_token(credentials.credentials, settings)
        if user_id:
            return user_id
    raise AuthError("User not authenticated")
