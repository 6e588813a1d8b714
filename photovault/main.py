"""
FastAPI Photo Vault API Application.

Main application entry point that configures:
- CORS middleware
- API routers
- Database lifecycle
- Logging system
- Exception handlers (album domain errors + unhandled errors)
- Prometheus metrics
- Rate limiting for anonymous public album access
"""
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from photovault.config import get_settings
from photovault.database import close_db, init_db
from photovault.exceptions import AlbumServiceError
from photovault.middlewares.logging_middleware import LoggingMiddleware, mask_path
from photovault.middlewares.rate_limit_middleware import setup_rate_limit_exception_handler
from photovault.routers import albums_router, health_router, public_router, sharing_router
from photovault.utils.logger import get_request_id, log_error, log_info, setup_logging
from photovault.utils.prometheus_metrics import exceptions_total, ready, setup_prometheus

settings = get_settings()
logger = logging.getLogger("photovault")

# Python logging 설정
setup_logging()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan.

    Startup: 설정 검증 (프로덕션), DB 테이블 생성, ready=1
    Shutdown: ready=0 (health check 즉시 실패), DB 연결 종료
    """
    # 설정 검증 (프로덕션 환경에서만)
    if settings.is_production:
        from photovault.utils.config_validator import validate_all_config
        config_ok, config_errors = await validate_all_config()
        if not config_ok:
            error_msg = "Configuration validation failed:\n" + "\n".join(f"  - {e}" for e in config_errors)
            log_error(
                "Startup failed: configuration validation errors",
                error_message=error_msg,
                event="lifecycle",
            )
            raise RuntimeError(error_msg)
        log_info("Configuration validation passed", event="lifecycle")

    await init_db()
    ready.set(1)
    log_info(
        "Application startup completed",
        event="lifecycle",
        version=settings.app_version,
        environment=settings.environment.value,
    )

    yield

    ready.set(0)
    log_info("Application shutdown initiated", event="lifecycle")
    await close_db()
    log_info("Shutdown completed", event="lifecycle")


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="""
## Photo Vault API

Album access control and sharing for the photo vault.

### Features
- **Albums**: Create albums and organize your photos
- **Collaborators**: Share albums with registered users or email addresses (view / edit)
- **Public links**: Publish an album through an unguessable, revocable link

### Authentication
Album endpoints require a Bearer token issued by the identity service.
Public album links do not.
    """,
    openapi_tags=[
        {"name": "Albums", "description": "Album management and photo organization"},
        {"name": "Sharing", "description": "Collaborators and public links (owner only)"},
        {"name": "Public Albums", "description": "Anonymous access through public links"},
        {"name": "Health", "description": "Health probes"},
    ],
    lifespan=lifespan,
)

# Prometheus: FastAPI metrics + node info at /metrics
setup_prometheus(app)

# Rate limiting: 예외 처리 핸들러 등록
setup_rate_limit_exception_handler(app)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.frontend_url] if settings.is_production else ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Add structured logging middleware
app.add_middleware(LoggingMiddleware)


@app.exception_handler(AlbumServiceError)
async def album_service_exception_handler(request: Request, exc: AlbumServiceError):
    """
    Expected album errors (not found, forbidden, invalid input, conflict).
    LoggingMiddleware already logs 4xx responses, so nothing is logged here.
    """
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "detail": exc.detail,
            "request_id": get_request_id(),
        },
    )


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """
    Unhandled exception handler with structured logging.

    모든 처리되지 않은 예외를 캐치하여:
    - ERROR 로그 남김 (구조화된 포맷)
    - 500 응답 반환
    - Request ID 포함 (장애 추적용)
    """
    exceptions_total.inc()
    rid = get_request_id()

    log_error(
        "Unhandled exception occurred",
        error_type=type(exc).__name__,
        error_code="INTERNAL_SERVER_ERROR",
        http_method=request.method,
        http_path=mask_path(request.url.path),
        request_id=rid,
        event="exception",
        exc_info=True,
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "detail": "Internal server error",
            "request_id": rid,  # 사용자가 이 ID로 문의 가능
        },
    )


# Include routers
app.include_router(health_router)
app.include_router(albums_router)
app.include_router(sharing_router)
app.include_router(public_router)


# Root endpoint
@app.get(
    "/",
    tags=["Root"],
    summary="API information",
)
async def root():
    """
    Root endpoint with API information.
    """
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "docs": "/docs",
    }
