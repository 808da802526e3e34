# edudash/main.py
import asyncio
import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from edudash.api import pages
from edudash.api.v1.endpoints import (
    admin,
    auth,
    evaluations,
    gamify,
    health,
    notifications,
    role,
    students,
    users,
)
from edudash.core.config import settings
from edudash.core.errors import ServiceError, service_error_handler
from edudash.core.logging_config import setup_logging
from edudash.core.security import PageRedirect, page_redirect_handler
from edudash.db.session import init_db
from edudash.services.realtime import relay_redis_events

setup_logging()
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.PROJECT_NAME)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

SECURITY_HEADERS = {
    "X-Frame-Options": "DENY",
    "X-Content-Type-Options": "nosniff",
    "Strict-Transport-Security": "max-age=31536000; includeSubDomains; preload",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Permissions-Policy": "camera=(), microphone=(), geolocation=(), payment=()",
}


@app.middleware("http")
async def add_security_headers(request: Request, call_next):
    response = await call_next(request)
    for name, value in SECURITY_HEADERS.items():
        response.headers.setdefault(name, value)
    return response


async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = [
        {"loc": [str(part) for part in e.get("loc", ())], "msg": e.get("msg", "")}
        for e in exc.errors()
    ]
    message = errors[0]["msg"] if errors else "Invalid request"
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": message, "details": errors},
    )


app.add_exception_handler(ServiceError, service_error_handler)
app.add_exception_handler(PageRedirect, page_redirect_handler)
app.add_exception_handler(RequestValidationError, request_validation_handler)

_relay_task: asyncio.Task | None = None


@app.on_event("startup")
async def on_startup():
    global _relay_task
    init_db()
    if settings.REALTIME_BACKEND == "redis":
        _relay_task = asyncio.create_task(relay_redis_events())
    logger.info("%s started (%s)", settings.PROJECT_NAME, settings.ENVIRONMENT)


@app.on_event("shutdown")
async def on_shutdown():
    if _relay_task is not None:
        _relay_task.cancel()


app.include_router(auth.router, prefix="/api/v1/auth", tags=["auth"])
app.include_router(users.router, prefix="/api/v1")
app.include_router(role.router, prefix="/api/v1")
app.include_router(admin.router, prefix="/api/v1")
app.include_router(notifications.router, prefix="/api/v1")
app.include_router(gamify.router, prefix="/api/v1")
app.include_router(evaluations.router, prefix="/api/v1")
app.include_router(students.router, prefix="/api/v1")
app.include_router(health.router, prefix="/api/v1/health")
app.include_router(notifications.ws_router)
app.include_router(pages.router)
