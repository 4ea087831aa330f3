from fastapi import Request, Response

from faredrop.core.config import settings
from faredrop.core.constants import (CORS_ALLOWED_HEADERS,
                                     CORS_ALLOWED_METHODS)


def preflight_headers(origin: str | None) -> dict[str, str]:
    allowed = settings.cors_allowed_origins
    if origin and (origin in allowed or '*' in allowed):
        allow_origin = origin
    else:
        allow_origin = allowed[0] if allowed else '*'
    return {
        'Access-Control-Allow-Origin': allow_origin,
        'Access-Control-Allow-Methods': ', '.join(CORS_ALLOWED_METHODS),
        'Access-Control-Allow-Headers': ', '.join(CORS_ALLOWED_HEADERS),
        'Access-Control-Allow-Credentials': 'true',
    }


async def preflight_middleware(request: Request, call_next):
    """Answer every OPTIONS probe directly, before routing and auth."""
    if request.method == 'OPTIONS':
        return Response(
            status_code=200,
            headers=preflight_headers(request.headers.get('origin')),
        )
    return await call_next(request)
