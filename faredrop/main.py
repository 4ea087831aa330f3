import logging
from contextlib import asynccontextmanager
from logging.handlers import RotatingFileHandler

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from faredrop.api.middleware import preflight_middleware
from faredrop.api.watch import router as watch_router
from faredrop.core.config import settings
from faredrop.core.constants import CORS_ALLOWED_METHODS
from faredrop.core.db import get_async_session
from faredrop.core.exceptions import (NotFoundError, UnauthorizedError,
                                      ValidationError)
from faredrop.services.scheduler import start_scheduler

# --- Logging ---
logger = logging.getLogger('faredrop')
logger.setLevel(logging.DEBUG)

handler = RotatingFileHandler(
    'faredrop.log', maxBytes=200000, backupCount=100
)
handler.setLevel(logging.DEBUG)
formatter = logging.Formatter(
    '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
handler.setFormatter(formatter)
logger.addHandler(handler)


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.session_factory = get_async_session()
    app.state.scheduler = None
    if settings.scheduler_enabled:
        app.state.scheduler = start_scheduler(app)
    try:
        yield
    finally:
        try:
            if app.state.scheduler:
                app.state.scheduler.shutdown(wait=True)
        except Exception as e:
            logger.exception(f'Scheduler shutdown error: {e}')


app = FastAPI(
    title=settings.app_title,
    description=settings.app_description,
    lifespan=lifespan,
)


@app.get('/health')
async def health():
    return {'status': 'ok'}


def _error_response(status_code: int, body: dict) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=body)


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    body = {'error': exc.message}
    if exc.required:
        body['required'] = exc.required
    return _error_response(status.HTTP_400_BAD_REQUEST, body)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(
    request: Request, exc: RequestValidationError
):
    fields = [
        str(err['loc'][-1]) for err in exc.errors() if err.get('loc')
    ]
    logger.debug(f'Rejected request body on {request.url.path}: {fields}')
    return _error_response(
        status.HTTP_400_BAD_REQUEST,
        {'error': 'Invalid request', 'fields': fields},
    )


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return _error_response(
        status.HTTP_404_NOT_FOUND, {'error': exc.message}
    )


@app.exception_handler(UnauthorizedError)
async def unauthorized_handler(request: Request, exc: UnauthorizedError):
    return _error_response(
        status.HTTP_401_UNAUTHORIZED,
        {'error': 'Unauthorized', 'message': exc.message},
    )


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return _error_response(exc.status_code, {'error': exc.detail})


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception(
        f'Unhandled error on {request.method} {request.url.path}: {exc}'
    )
    return _error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        {'error': 'Internal Server Error'},
    )


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allowed_origins,
    allow_credentials=True,
    allow_methods=CORS_ALLOWED_METHODS,
    allow_headers=['*'],
)
# Added last so it wraps CORS and answers OPTIONS before anything else
app.middleware('http')(preflight_middleware)

app.include_router(watch_router, prefix=settings.api_prefix)
