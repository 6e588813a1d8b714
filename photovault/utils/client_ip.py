"""
클라이언트 IP 추출 유틸리티.

프록시나 로드밸런서를 거치는 경우 실제 클라이언트 IP를 추출합니다.
Rate limit 키와 요청 로그에 사용됩니다.
"""
from typing import Optional

from fastapi import Request

# 확인 순서: 일반 프록시 > nginx > Cloudflare > Akamai
_PROXY_HEADERS = ("X-Real-IP", "CF-Connecting-IP", "True-Client-IP")


def get_client_ip(request: Request) -> Optional[str]:
    """
    요청에서 실제 클라이언트 IP를 추출합니다.

    X-Forwarded-For 형식은 "client, proxy1, proxy2"이며 첫 번째 IP가
    실제 클라이언트입니다. 헤더가 없으면 직접 연결 IP를 사용합니다.

    Security:
        프로덕션에서는 로드밸런서가 외부 요청의 이 헤더들을 제거하고
        내부에서만 설정해야 합니다 (클라이언트가 위조 가능).
    """
    x_forwarded_for = request.headers.get("X-Forwarded-For")
    if x_forwarded_for:
        client_ip = x_forwarded_for.split(",")[0].strip()
        if client_ip:
            return client_ip

    for header in _PROXY_HEADERS:
        value = request.headers.get(header)
        if value and value.strip():
            return value.strip()

    # 직접 연결 (프록시 없음)
    if request.client:
        return request.client.host

    return None


def get_client_identifier(request: Request) -> str:
    """Rate limiting 키. IP를 알 수 없으면 'unknown' 버킷을 공유합니다."""
    return get_client_ip(request) or "unknown"
