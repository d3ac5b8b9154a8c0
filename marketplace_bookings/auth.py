from typing import Annotated, Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import APIKeyHeader
from jose import jwt, JWTError
from pydantic import BaseModel

from .config import settings

ROLE_USER = "user"
ROLE_VENDOR = "vendor"
ROLE_ADMIN = "admin"

api_key_header = APIKeyHeader(name="Authorization", auto_error=False)


class CurrentUser(BaseModel):
    id: int
    role: str = ROLE_USER
    email: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    @property
    def is_vendor(self) -> bool:
        return self.role == ROLE_VENDOR


def decode_bearer(token: Optional[str]) -> Optional[CurrentUser]:
    """
    Decodes an 'Authorization: Bearer ...' header value.
    Returns None when the header is missing, malformed or the JWT is invalid.
    """
    try:
        scheme, jwt_token = token.split()
        if scheme.lower() != "bearer":
            return None
        payload = jwt.decode(jwt_token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        user_id = payload.get("sub")
        if user_id is None:
            return None
        return CurrentUser(
            id=int(user_id),
            role=payload.get("role") or ROLE_USER,
            email=payload.get("email"),
        )
    except (JWTError, ValueError, AttributeError, TypeError):
        return None


async def get_key_by_user_id_or_ip(request: Request) -> str:
    """
    Tries to get the user ID from the JWT token.
    If it fails (no token, invalid token), it falls back to the client's IP.
    """
    user = decode_bearer(request.headers.get("Authorization"))
    if user is not None:
        return str(user.id)
    return request.client.host if request.client else "anonymous"


async def get_current_user(
        token: Annotated[Optional[str], Depends(api_key_header)]
) -> CurrentUser:
    if token is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    user = decode_bearer(token)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


async def get_optional_user(
        token: Annotated[Optional[str], Depends(api_key_header)]
) -> Optional[CurrentUser]:
    """Guests can book without an account; a bad token is treated as no token."""
    if token is None:
        return None
    return decode_bearer(token)


def require_role(*roles: str):
    """
    Dependency factory. Admins always pass.
        user: CurrentUser = Depends(require_role("vendor"))
    """

    async def dep(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if user.role not in roles and not user.is_admin:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions"
            )
        return user

    return dep
