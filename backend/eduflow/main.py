"""FastAPI application entrypoint and HTTP controllers.

This module defines the HTTP endpoints of the EduFlow study backend.
Controllers are intentionally thin: they accept requests, delegate to
services, and return JSON responses. Run with
`uvicorn eduflow.main:app`.

Endpoints implemented:
- GET|POST /auth/register
- GET|POST /auth/login
- GET|POST /auth/logout
- POST /data/{entity}    create or edit
- DELETE /data/{entity}  delete
- GET /data/{entity}     filtered read
- GET /health

`{entity}` is one of course, topic, study_goal, exam, todo.
"""

import json
import logging
import time
import uuid
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from . import services
from .auth import Principal, get_current_principal
from .config import settings
from .database import create_db_and_tables, engine, get_session
from .errors import ApiError, BadRequest, Unauthorized
from .registry import EntityDescriptor, descriptor_for
from .schemas import IdOut, RegisterIn, TokenOut
from .utils.token_sweeper import TokenSweeper

logger = logging.getLogger("eduflow.api")
if not logger.handlers:
    logging.basicConfig(level=settings.LOG_LEVEL)


@asynccontextmanager
async def lifespan(app: FastAPI):
    sweeper = None
    if settings.TOKEN_SWEEP_INTERVAL_SECONDS > 0:
        sweeper = TokenSweeper(engine, settings.TOKEN_SWEEP_INTERVAL_SECONDS)
        sweeper.start()
    try:
        yield
    finally:
        if sweeper is not None:
            sweeper.stop()


app = FastAPI(title="EduFlow Study API", lifespan=lifespan)

# Wide-open CORS keeps local frontends working without extra config in dev.
if settings.ALLOW_DEV_CORS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

create_db_and_tables()


def _log_request(message: str, request: Request, started: float, req_id: str, status_code=None, exc_info=False):
    fields = {
        "request_id": req_id,
        "path": request.url.path,
        "method": request.method,
        "duration_ms": round((time.perf_counter() - started) * 1000.0, 2),
        "client": request.client.host if request.client else "unknown",
    }
    if status_code is not None:
        fields["status_code"] = status_code
    log = logger.exception if exc_info else logger.info
    log("%s %s", message, json.dumps(fields, ensure_ascii=True))


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    req_id = request.headers.get("X-Request-ID", uuid.uuid4().hex)
    request.state.request_id = req_id
    started = time.perf_counter()
    try:
        response = await call_next(request)
    except Exception:
        _log_request("request_failed", request, started, req_id, exc_info=True)
        raise
    response.headers["X-Request-ID"] = req_id
    _log_request("request_done", request, started, req_id, status_code=response.status_code)
    return response


@app.exception_handler(ApiError)
async def api_error_handler(request: Request, exc: ApiError):
    if isinstance(exc, Unauthorized):
        return Response(status_code=exc.status_code, headers={"WWW-Authenticate": "Bearer"})
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=400, content={"detail": "invalid request"})


@app.exception_handler(SQLAlchemyError)
async def store_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error("unhandled store error on %s", request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"detail": "internal server error"})


def get_descriptor(entity: str) -> EntityDescriptor:
    """Resolve the `{entity}` path segment through the registry."""
    descriptor = descriptor_for(entity)
    if descriptor is None:
        raise BadRequest(f"unknown entity: {entity}")
    return descriptor


async def read_json_body(request: Request):
    """Parse the request body as JSON; runs after the auth gate."""
    raw = await request.body()
    if not raw:
        raise BadRequest("missing JSON body")
    try:
        return json.loads(raw)
    except (ValueError, RecursionError) as exc:
        raise BadRequest("invalid JSON body") from exc


@app.api_route('/auth/register', methods=['GET', 'POST'], response_model=TokenOut)
def register(payload: RegisterIn, db: Session = Depends(get_session)):
    """Register a new user and return a first bearer token.

    Responds 409 when the username is already taken.
    """
    user_id = services.AuthService(db).register(payload.username, payload.password)
    return {'token': services.TokenAuthority(db).issue(user_id)}


@app.api_route('/auth/login', methods=['GET', 'POST'], response_model=TokenOut)
def login(payload: RegisterIn, db: Session = Depends(get_session)):
    """Verify credentials and return a new bearer token.

    Every login issues a separate token; earlier tokens stay valid.
    """
    user_id = services.AuthService(db).verify(payload.username, payload.password)
    return {'token': services.TokenAuthority(db).issue(user_id)}


@app.api_route('/auth/logout', methods=['GET', 'POST'])
def logout(principal: Principal = Depends(get_current_principal), db: Session = Depends(get_session)):
    """Revoke the presented token. Other tokens of the user are kept."""
    services.TokenAuthority(db).revoke(principal.token)
    return Response(status_code=200)


@app.post('/data/{entity}', response_model=IdOut)
def save_entity(
    principal: Principal = Depends(get_current_principal),
    descriptor: EntityDescriptor = Depends(get_descriptor),
    payload=Depends(read_json_body),
    db: Session = Depends(get_session),
):
    """Create (`id` null or absent) or fully replace an owned record."""
    result = services.CrudService(db).create_or_update(descriptor, principal.user_id, payload)
    return {'id': result.id}


@app.delete('/data/{entity}', response_model=IdOut)
def delete_entity(
    principal: Principal = Depends(get_current_principal),
    descriptor: EntityDescriptor = Depends(get_descriptor),
    payload=Depends(read_json_body),
    db: Session = Depends(get_session),
):
    """Delete an owned record by id. Deleting a missing id also succeeds."""
    result = services.CrudService(db).delete_payload(descriptor, principal.user_id, payload)
    return {'id': result.id}


@app.get('/data/{entity}')
def find_entities(
    request: Request,
    principal: Principal = Depends(get_current_principal),
    descriptor: EntityDescriptor = Depends(get_descriptor),
    db: Session = Depends(get_session),
):
    """List owned records; query parameters are exact-match filters."""
    svc = services.CrudService(db)
    filters = svc.parse_filters(descriptor, request.query_params.multi_items())
    return svc.find(descriptor, principal.user_id, filters)


@app.get("/health")
def health():
    """Lightweight health check for uptime monitoring."""
    return {"status": "ok"}
