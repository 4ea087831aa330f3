from fastapi import Header

from faredrop.core.exceptions import UnauthorizedError
from faredrop.services.auth import decode_access_token, extract_subject


async def get_current_user_id(
    authorization: str | None = Header(None),
) -> str:
    if not authorization or not authorization.startswith('Bearer '):
        raise UnauthorizedError('Missing bearer token')
    token = authorization.split(' ', 1)[1].strip()
    return extract_subject(decode_access_token(token))
