"""
설정 검증 유틸리티.

애플리케이션 시작 시 필수 설정을 검증합니다.
프로덕션 환경에서만 실행됩니다.
"""
import logging
from typing import List, Tuple

from sqlalchemy import text

from photovault.config import Settings, get_settings

logger = logging.getLogger("photovault.config_validator")

# 기본값 그대로 운영하면 토큰 위조가 가능해지는 값들
_INSECURE_SECRETS = frozenset({"", "jwt-secret-change-in-production", "change-me"})


def validate_security_config(settings: Settings) -> List[str]:
    """JWT / public link 설정 검증."""
    errors: List[str] = []

    if settings.jwt_secret_key in _INSECURE_SECRETS:
        errors.append("JWT_SECRET_KEY must be set to a non-default value")

    if settings.jwt_algorithm.upper() == "NONE":
        errors.append("JWT_ALGORITHM must not be 'none'")

    if settings.public_token_bytes < 32:
        logger.warning(
            "PUBLIC_TOKEN_BYTES below 32 shortens public album links",
            extra={"event": "config", "public_token_bytes": settings.public_token_bytes},
        )

    if not settings.frontend_url.startswith("https://"):
        logger.warning(
            "FRONTEND_URL is not https; public album links will be served over plain http",
            extra={"event": "config"},
        )

    return errors


async def validate_all_config() -> Tuple[bool, List[str]]:
    """
    애플리케이션 설정을 검증합니다.

    Returns:
        (성공 여부, 에러 메시지 목록)
    """
    from photovault.database import engine

    settings = get_settings()
    errors: List[str] = []

    logger.info("Starting configuration validation", extra={"event": "config"})

    # DB 연결 테스트
    try:
        async with engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
        logger.info("Database connection: OK", extra={"event": "config"})
    except Exception as e:
        error_msg = f"Database connection failed: {str(e)}"
        errors.append(error_msg)
        logger.error(error_msg, extra={"event": "config"}, exc_info=True)

    errors.extend(validate_security_config(settings))

    if errors:
        logger.error(
            "Configuration validation failed",
            extra={"event": "config", "errors": errors},
        )
        return False, errors

    logger.info(
        "Configuration validation completed successfully",
        extra={"event": "config"},
    )
    return True, []
