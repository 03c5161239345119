"""JWT access-token verification.

Tokens are issued by the identity service that owns user accounts; this
service only verifies them. HS256 with the shared JWT_SECRET; the `sub`
claim is the owner id that scopes every holdings query.
"""

from jose import JWTError, jwt

from config.settings import settings
from src.pt_common.errors import InvalidCredentialsError


def decode_access_token(token: str) -> dict[str, str]:
    """Decode and validate an access token.

    Raises:
        InvalidCredentialsError: signature, expiry, token type or subject is invalid.
    """
    try:
        payload: dict[str, str] = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],  # Explicit list prevents algorithm confusion
        )
    except JWTError:
        raise InvalidCredentialsError() from None

    if payload.get("type") != "access" or not payload.get("sub"):
        raise InvalidCredentialsError()
    return payload
