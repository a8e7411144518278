"""
Auth dependency — shared across all protected endpoints.

Usage in any route:
    from playedit.deps.auth import get_current_owner_id

    @router.get("/protected")
    def protected(owner_id: UUID = Depends(get_current_owner_id)):
        ...

Whether the owner still exists is checked by the ranking service, which
reports an unknown owner as 404.
"""
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer

from playedit.core.security import decode_access_token

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")


def get_current_owner_id(token: str = Depends(oauth2_scheme)) -> UUID:
    """
    Decode the bearer JWT and return the owner's UUID.

    Raises 401 on a missing, invalid or expired token.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid or expired token",
        headers={"WWW-Authenticate": "Bearer"},
    )

    sub = decode_access_token(token)
    if sub is None:
        raise credentials_exception

    # Validate sub is a proper UUID string
    try:
        return UUID(sub)
    except (ValueError, AttributeError):
        raise credentials_exception
