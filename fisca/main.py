"""FastAPI main application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from fisca.core.config import settings
from fisca.core.middleware import setup_middleware
from fisca.core.exceptions import FiscaError

from fisca.api.auth import router as auth_router
from fisca.api.users import router as users_router
from fisca.api.roles import router as roles_router, permissions_router
from fisca.api.organization import router as organization_router

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else settings.LOG_LEVEL.upper(),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger("fisca")


def _error_body(error: str, message) -> dict:
    return {"success": False, "error": error, "message": message}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    logger.info("Starting %s API", settings.APP_NAME)
    yield
    logger.info("Shutting down %s API", settings.APP_NAME)


def create_app() -> FastAPI:
    app = FastAPI(
        title=f"{settings.APP_NAME} API",
        description="Role-scoped user and access administration",
        version="0.1.0",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Middleware
    setup_middleware(app)

    @app.exception_handler(FiscaError)
    async def fisca_exception_handler(request: Request, exc: FiscaError):
        if exc.status_code >= 500:
            logger.error("%s: %s", type(exc).__name__, exc.message)
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(type(exc).__name__, exc.message),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        error = "AuthenticationError" if exc.status_code == 401 else (
            "AuthorizationDenied" if exc.status_code == 403 else "HTTPError"
        )
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(error, exc.detail),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=422,
            content={
                **_error_body("ValidationError", "Invalid request"),
                "detail": jsonable_errors(exc),
            },
        )

    # Register routers
    app.include_router(auth_router, prefix="/api")
    app.include_router(users_router, prefix="/api")
    app.include_router(roles_router, prefix="/api")
    app.include_router(permissions_router, prefix="/api")
    app.include_router(organization_router, prefix="/api")

    @app.get("/")
    async def root():
        return {
            "name": settings.APP_NAME,
            "version": "0.1.0",
            "docs": "/docs",
        }

    @app.get("/api/health")
    async def health():
        """Quick health check endpoint."""
        return {"status": "ok"}

    return app


def jsonable_errors(exc: RequestValidationError) -> list:
    """Pydantic error list reduced to location and message."""
    return [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg")}
        for error in exc.errors()
    ]


app = create_app()
