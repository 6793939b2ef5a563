import logging
import os
from contextlib import asynccontextmanager
from typing import AsyncIterator
from uuid import uuid4

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from codesensei.api.answers import router as answers_router
from codesensei.api.auth import router as auth_router
from codesensei.api.execute import router as execute_router
from codesensei.api.interests import router as interests_router
from codesensei.api.profile import router as profile_router
from codesensei.api.progress import router as progress_router
from codesensei.api.questions import router as questions_router
from codesensei.core.config import get_settings
from codesensei.core.database import init_db
from codesensei.core.monitoring import configure_logging
from codesensei.services.error_policy import (
    build_http_error_payload,
    build_unexpected_error_payload,
    build_validation_error_payload,
)


settings = get_settings()
configure_logging(settings.log_level)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    init_db()
    os.makedirs(settings.media_root, exist_ok=True)
    logger.info("Code Sensei API started (env=%s)", settings.env)
    yield


app = FastAPI(
    title="Code Sensei API",
    version="0.1.0",
    description="Themed coding question and solution service",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _trace_id(request: Request) -> str:
    return request.headers.get("x-trace-id") or uuid4().hex


@app.get("/health")
def health_check() -> dict[str, str]:
    return {"status": "ok", "env": settings.env}


@app.exception_handler(HTTPException)
async def handle_http_exception(request: Request, exc: HTTPException) -> JSONResponse:
    payload = build_http_error_payload(exc, _trace_id(request))
    return JSONResponse(status_code=exc.status_code, content=payload, headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    payload = build_validation_error_payload(list(exc.errors()), _trace_id(request))
    return JSONResponse(status_code=400, content=payload)


@app.exception_handler(Exception)
async def handle_unexpected_exception(request: Request, exc: Exception) -> JSONResponse:
    trace_id = _trace_id(request)
    logger.error("Unhandled error on %s (trace_id=%s)", request.url.path, trace_id, exc_info=exc)
    payload = build_unexpected_error_payload(trace_id)
    return JSONResponse(status_code=500, content=payload)


app.include_router(questions_router)
app.include_router(answers_router)
app.include_router(progress_router)
app.include_router(profile_router)
app.include_router(auth_router)
app.include_router(execute_router)
app.include_router(interests_router)
app.mount(settings.media_base_url, StaticFiles(directory=settings.media_root, check_dir=False), name="media")
