"""
Rate limiting middleware using slowapi.
Protects the anonymous public album endpoint against token guessing.
"""
import logging
from typing import Callable

from fastapi import Request
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from photovault.config import get_settings
from photovault.utils.client_ip import get_client_identifier
from photovault.utils.prometheus_metrics import rate_limit_hits_total

logger = logging.getLogger("photovault.rate_limit")
settings = get_settings()

# Rate limiter 인스턴스 생성 (전역 기본 한도 없음, route별 데코레이터로만 적용)
limiter = Limiter(
    key_func=get_client_identifier,
    storage_uri="memory://",  # 메모리 기반 (다중 인스턴스 환경에서는 Redis 사용)
    enabled=settings.rate_limit_enabled,
)


def _endpoint_label(request: Request) -> str:
    # 토큰이 메트릭 라벨에 남지 않도록 라우트 템플릿 사용
    route = request.scope.get("route")
    return getattr(route, "path", None) or "unknown"


def setup_rate_limit_exception_handler(app) -> None:
    """
    Rate limit 초과 시 예외 처리 핸들러 등록.
    """
    app.state.limiter = limiter

    @app.exception_handler(RateLimitExceeded)
    async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
        endpoint = _endpoint_label(request)
        rate_limit_hits_total.labels(endpoint=endpoint).inc()

        logger.warning(
            "Rate limit exceeded",
            extra={
                "event": "rate_limit",
                "client_ip": get_client_identifier(request),
                "endpoint": endpoint,
                "limit": getattr(exc, "detail", "unknown"),
            },
        )
        return _rate_limit_exceeded_handler(request, exc)


def get_rate_limit_decorator(limit: str):
    """
    Rate limit 데코레이터 생성 헬퍼.

    Args:
        limit: Rate limit 문자열 (예: "10/minute", "60/hour")

    Returns:
        Rate limit 데코레이터
    """
    if not settings.rate_limit_enabled:
        # Rate limiting 비활성화 시 빈 데코레이터 반환
        def noop_decorator(func: Callable) -> Callable:
            return func
        return noop_decorator

    return limiter.limit(limit)
