"""FastAPI dependency: get_current_owner.

Usage in any protected router:
    from src.pt_gateway.auth.dependencies import get_current_owner

    @router.get("/protected")
    async def protected(owner_id: str = Depends(get_current_owner)):
        ...
"""

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer

from src.pt_common.errors import InvalidCredentialsError
from src.pt_gateway.auth.jwt_handler import decode_access_token

# Tokens come from the identity service; tokenUrl only feeds Swagger UI
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login")

_CREDENTIALS_EXCEPTION = HTTPException(
    status_code=status.HTTP_401_UNAUTHORIZED,
    detail="Invalid or expired token",
    headers={"WWW-Authenticate": "Bearer"},
)


async def get_current_owner(token: str = Depends(oauth2_scheme)) -> str:
    """Return the owner id (`sub`) of a valid Bearer access token, else HTTP 401."""
    try:
        payload = decode_access_token(token)
    except InvalidCredentialsError:
        raise _CREDENTIALS_EXCEPTION from None
    return payload["sub"]
