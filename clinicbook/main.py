import time
import logging
from datetime import datetime, timezone
from dotenv import load_dotenv

# Load environment variables from .env file before anything else
load_dotenv()

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from clinicbook.core.config import settings
from clinicbook.core.logging import setup_logging, request_id_ctx
from clinicbook.core.errors import AppError
from clinicbook.core.db import SessionLocal, init_models
from clinicbook.api.router import api_router
from clinicbook.modules.audit.service import AUDIT_METHODS, read_json_body, record_request


setup_logging()
app = FastAPI(title=settings.APP_NAME)
app.state.session_factory = SessionLocal

logger = logging.getLogger(__name__)


def _error_body(request: Request, status_code: int, message: str, error_code: str, details=None) -> dict:
    body = {
        "status": "fail" if status_code < 500 else "error",
        "message": message,
        "error_code": error_code,
        "path": request.url.path,
        "method": request.method,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    if details:
        body["errors"] = details
    return body


@app.middleware("http")
async def audit_requests(request: Request, call_next):
    audited = (
        settings.AUDIT_ENABLED
        and request.method in AUDIT_METHODS
        and request.url.path.startswith(settings.API_PREFIX)
    )
    if not audited:
        return await call_next(request)

    body = await read_json_body(request)
    start_time = time.perf_counter()
    # unhandled errors leave as a 500 from the outer error middleware
    status_code = 500
    try:
        response = await call_next(request)
        status_code = response.status_code
        return response
    finally:
        duration_ms = int((time.perf_counter() - start_time) * 1000)
        await record_request(request.app.state.session_factory, request, status_code, duration_ms, body)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start_time = time.time()

    response = await call_next(request)

    process_time = (time.time() - start_time) * 1000
    formatted_process_time = f"{process_time:.2f}ms"

    logger.info(
        f"Request: {request.method} {request.url.path} - Response: {response.status_code} - Time: {formatted_process_time}"
    )

    return response


@app.middleware("http")
async def add_request_id(request: Request, call_next):
    rid = request.headers.get("x-request-id", "-")
    request_id_ctx.set(rid)
    response = await call_next(request)
    return response


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error(f"{exc.error_code} for {request.method} {request.url.path}: {exc.message}")
    else:
        logger.info(f"{exc.error_code} for {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(request, exc.status_code, exc.message, exc.error_code, exc.details),
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    details = {}
    for err in exc.errors():
        field = ".".join(str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path"))
        details[field or "request"] = err.get("msg")
    return JSONResponse(
        status_code=400,
        content=_error_body(request, 400, "Invalid input data", "VALIDATION_ERROR", details),
    )


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(request, exc.status_code, str(exc.detail), "HTTP_ERROR"),
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.critical(f"Unhandled exception for request {request.method} {request.url.path}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content=_error_body(request, 500, "An internal server error occurred.", "SERVER_ERROR"),
    )


@app.on_event("startup")
async def on_startup():
    await init_models()


app.include_router(api_router, prefix=settings.API_PREFIX)
