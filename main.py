from contextlib import asynccontextmanager

from app.config import settings
from app.dependencies.database import create_tables, engine, redis_client
from app.dependencies.scheduler import start_scheduler, stop_scheduler
from app.helpers import utcnow
from app.log import system_logger
from app.models.error import ErrorType, RequestError
from app.router import admin_router, auth_router
from app.service.mail_providers import init_provider

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import sentry_sdk
from starlette.exceptions import HTTPException


@asynccontextmanager
async def lifespan(app: FastAPI):
    # === on startup ===
    if settings.auto_create_tables:
        await create_tables()
    await init_provider()
    if settings.enable_cleanup_job:
        from app.tasks import database_cleanup  # noqa: F401

        start_scheduler()
        system_logger("Scheduler").info("Database cleanup job scheduled")

    yield

    # === on shutdown ===
    stop_scheduler()

    # close database & redis
    await engine.dispose()
    await redis_client.aclose()


desc = """LACPA member portal API.

## Authentication

Members sign up with their full name, email and password and receive a LACPA id.
A one-time code is emailed to confirm the address; members cannot log in before
confirming it. Logging in with the LACPA id and password returns a bearer token
for `Authorization: Bearer <token>`.

All auth endpoints begin with `/api/auth/`. Admin account management endpoints
begin with `/api/admin/` and require an admin session.

## Responses

Successful responses are `{"success": true, "message": ..., "data": ...}`.
Errors are `{"success": false, "error": <code>, "message": ...}` where `error`
is a stable code clients can branch on.
"""

if settings.sentry_dsn is not None:
    sentry_sdk.init(
        dsn=str(settings.sentry_dsn),
        send_default_pii=False,
        environment="production" if not settings.debug else "development",
    )

app = FastAPI(
    title="lacpa-server",
    version="0.1.0",
    lifespan=lifespan,
    description=desc,
)

app.include_router(auth_router)
app.include_router(admin_router)

# CORS
origins = []
for url in [*settings.cors_urls, settings.server_url]:
    origins.append(str(url))
    origins.append(str(url).removesuffix("/"))
if settings.frontend_url:
    origins.append(str(settings.frontend_url))
    origins.append(str(settings.frontend_url).removesuffix("/"))
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health", include_in_schema=False)
async def health_check():
    return {"status": "ok", "timestamp": utcnow().isoformat()}


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):  # noqa: ARG001
    fields = [
        {
            "field": ".".join(str(part) for part in error["loc"] if part != "body"),
            "message": error["msg"],
        }
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=422,
        content=RequestError(ErrorType.VALIDATION_ERROR, {"fields": fields}).to_content(),
    )


@app.exception_handler(RequestError)
async def request_error_handler(request: Request, exc: RequestError):  # noqa: ARG001
    return JSONResponse(status_code=exc.status_code, content=exc.to_content(), headers=exc.headers)


@app.exception_handler(exc_class_or_status_code=HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):  # noqa: ARG001
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": "http_error", "message": exc.detail},
        headers=exc.headers,
    )


if settings.secret_key == "your_jwt_secret_here":  # noqa: S105
    raise RuntimeError(
        "jwt_secret_key is unset. Your server is unsafe. Use this command to generate: openssl rand -hex 32"
    )

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_config=None,
        access_log=True,
    )
