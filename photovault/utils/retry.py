"""
재시도 로직 구현.

충돌(예: public token unique 위반)처럼 새 입력으로 다시 시도하면 해결되는
실패를 자동 재시도합니다. 기본값은 지연 없이 즉시 재시도이며, 필요하면
지수 백오프를 사용할 수 있습니다.
"""
import asyncio
import logging
import random
from typing import Awaitable, Callable, Optional, Type, TypeVar

logger = logging.getLogger("photovault.retry")

T = TypeVar("T")


async def retry_async(
    func: Callable[[], Awaitable[T]],
    max_attempts: int = 3,
    retryable_exceptions: tuple[Type[Exception], ...] = (Exception,),
    initial_delay: float = 0.0,
    max_delay: float = 1.0,
    exponential_base: float = 2.0,
    jitter: bool = False,
    target: Optional[str] = None,
    on_retry: Optional[Callable[[int, Exception], None]] = None,
) -> T:
    """
    func를 최대 max_attempts번 호출.

    Args:
        func: 매 시도마다 새로 호출할 async 함수 (인자 없음)
        max_attempts: 총 시도 횟수
        retryable_exceptions: 재시도할 예외 타입
        initial_delay: 첫 재시도 전 지연 (초), 0이면 즉시 재시도
        max_delay: 최대 지연 시간 (초)
        exponential_base: 지수 백오프 베이스
        jitter: 지터(랜덤 지연) 추가 여부
        target: 재시도 대상 식별 (예: "public_link.assign"), 로그용
        on_retry: 실패한 시도마다 (attempt, exception)으로 호출 (메트릭 등)

    Returns:
        func 반환값

    Raises:
        마지막 시도에서 발생한 예외
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be >= 1")

    for attempt in range(max_attempts):
        try:
            return await func()
        except retryable_exceptions as e:
            if on_retry is not None:
                on_retry(attempt + 1, e)

            extra = {
                "event": "retry",
                "attempt": attempt + 1,
                "max_attempts": max_attempts,
                "error_type": type(e).__name__,
            }
            if target is not None:
                extra["retry_target"] = target

            # 마지막 시도면 예외 발생
            if attempt == max_attempts - 1:
                logger.error(f"Retry exhausted after {max_attempts} attempts", extra=extra)
                raise

            delay = min(initial_delay * (exponential_base ** attempt), max_delay)
            if jitter:
                delay = delay * (0.5 + random.random() * 0.5)

            logger.warning(f"Retry attempt {attempt + 1}/{max_attempts}", extra=extra)
            if delay > 0:
                await asyncio.sleep(delay)

    raise RuntimeError("Retry logic error")
