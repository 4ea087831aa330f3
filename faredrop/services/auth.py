from typing import Any, Optional

from jose import JWTError, jwt

from faredrop.core.config import settings
from faredrop.core.exceptions import UnauthorizedError


def decode_access_token(token: str) -> dict[str, Any] | None:
    try:
        return jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            audience=settings.jwt_audience,
            options={'verify_aud': settings.jwt_audience is not None},
        )
    except JWTError:
        return None


def extract_subject(claims: Optional[dict[str, Any]]) -> str:
    """Stable caller id from already validated token claims."""
    if not claims:
        raise UnauthorizedError()
    subject = claims.get('sub') or (claims.get('claims') or {}).get('sub')
    if not subject:
        raise UnauthorizedError()
    return str(subject)
