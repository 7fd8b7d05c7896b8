import time

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator
from sqlalchemy.exc import IntegrityError

from school_roster.api.v1.router import api_router
from school_roster.core.config import settings
from school_roster.core.errors import RosterError, TransientStorageError, ValidationError
from school_roster.core.logging import (
    generate_request_id, get_logger, log_with_context, request_id_var, setup_logging,
)
from school_roster.db.bootstrap import run_migrations_and_seed

setup_logging()
logger = get_logger("http")

api = FastAPI(
    title="School Roster API",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    swagger_ui_parameters={"displayRequestDuration": True, "persistAuthorization": True},
)

api.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # restrict to the front-end origin in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID"],
)

# /metrics (Prometheus)
Instrumentator().instrument(api).expose(api, include_in_schema=False, should_gzip=True)

@api.middleware("http")
async def request_id_middleware(request: Request, call_next):
    req_id = request.headers.get("X-Request-ID") or generate_request_id()
    request_id_var.set(req_id)
    start = time.perf_counter()

    response = await call_next(request)

    duration_ms = (time.perf_counter() - start) * 1000
    response.headers["X-Request-ID"] = req_id
    log_with_context(logger, "INFO",
        f"{request.method} {request.url.path} -> {response.status_code}",
        extra_data={"duration_ms": round(duration_ms, 2), "status_code": response.status_code})
    return response

api.include_router(api_router, prefix="/api/v1")

@api.get("/healthz", tags=["health"])
def healthz():
    return {"status": "ok"}

@api.on_event("startup")
def startup():
    if settings.AUTO_MIGRATE:
        run_migrations_and_seed()

@api.exception_handler(RosterError)
def handle_roster_error(request: Request, exc: RosterError):
    level = "WARNING" if exc.status_code < 500 else "ERROR"
    log_with_context(logger, level, exc.message,
                     context={"path": request.url.path}, extra_data={"code": exc.code})
    headers = {"Retry-After": "1"} if isinstance(exc, TransientStorageError) else None
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)

@api.exception_handler(RequestValidationError)
def handle_request_validation(request: Request, exc: RequestValidationError):
    errors = [{"loc": list(e["loc"]), "msg": e["msg"]} for e in exc.errors()]
    return handle_roster_error(request, ValidationError("Invalid input", details={"errors": errors}))

@api.exception_handler(IntegrityError)
def handle_integrity_error(request: Request, exc: IntegrityError):
    return JSONResponse(
        status_code=409,
        content={"code": "UNIQUE_VIOLATION", "message": "Duplicate record.", "details": str(getattr(exc, "orig", exc))},
    )

@api.exception_handler(Exception)
def handle_unexpected(request: Request, exc: Exception):
    log_with_context(logger, "ERROR", "Unhandled error",
                     context={"path": request.url.path}, exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={"code": "INTERNAL_ERROR", "message": "Internal error."},
    )
