"""FastAPI application factory for Certchain."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from certchain.common.config import get_settings
from certchain.common.exceptions import CertchainError
from certchain.common.logging import setup_logging
from certchain.common.schemas import ErrorResponse, HealthResponse

logger = logging.getLogger(__name__)


def _error_response(status_code: int, body: ErrorResponse) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


async def certchain_error_handler(request: Request, exc: CertchainError) -> JSONResponse:
    if exc.status_code >= 500 and exc.status_code != 502:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return _error_response(
            exc.status_code, ErrorResponse(error="Internal server error", code=exc.code)
        )
    return _error_response(
        exc.status_code,
        ErrorResponse(
            error=exc.message,
            code=exc.code,
            hash=exc.context.get("hash"),
            details=exc.context.get("details"),
        ),
    )


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    first = exc.errors()[0] if exc.errors() else {}
    location = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    message = first.get("msg", "Invalid request")
    return _error_response(
        400,
        ErrorResponse(
            error=f"{location}: {message}" if location else message,
            code="INVALID_INPUT",
        ),
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _error_response(500, ErrorResponse(error="Internal server error", code="INTERNAL"))


def create_app() -> FastAPI:
    settings = get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        setup_logging(settings.log_level)
        from certchain.deps import get_chain_client, get_db, get_signer
        get_signer()  # missing signing keys are fatal here, not per request
        db = get_db()
        await db.init()
        await db.create_all()
        yield
        # Shutdown
        await get_chain_client().close()
        await db.close()

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(CertchainError, certchain_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    @app.get("/health", response_model=HealthResponse)
    async def health():
        return HealthResponse(version=settings.api_version)

    # Mount routers
    from certchain.accounts.router import auth_router, users_router
    from certchain.certificates.router import router as certificates_router
    from certchain.chain.router import router as chain_router

    prefix = settings.api_prefix
    app.include_router(certificates_router, prefix=prefix, tags=["certificates"])
    app.include_router(auth_router, prefix=prefix)
    app.include_router(users_router, prefix=prefix)
    app.include_router(chain_router, prefix=prefix)

    return app
