"""
Prometheus metrics for stability and album access-control activity.

- FastAPI: request count, latency (Instrumentator)
- Node/instance: app_info
- Stability: exceptions_total, db_errors_total, db pool gauges
- HA: ready gauge (1=up, 0=shutting down)
- Albums: lifecycle, membership, sharing, public link issuance/resolution
"""
import logging
import socket

from prometheus_client import REGISTRY, Counter, Gauge, Histogram
from prometheus_fastapi_instrumentator import Instrumentator

from photovault.config import get_settings

logger = logging.getLogger(__name__)

# --- Stability ---
exceptions_total = Counter(
    "photo_vault_exceptions_total",
    "Total unhandled exceptions",
    registry=REGISTRY,
)
db_errors_total = Counter(
    "photo_vault_db_errors_total",
    "Total database session/transaction errors",
    registry=REGISTRY,
)
db_pool_active_connections = Gauge(
    "photo_vault_db_pool_active_connections",
    "Connections currently checked out of the pool",
    registry=REGISTRY,
)
db_pool_waiting_requests = Gauge(
    "photo_vault_db_pool_waiting_requests",
    "Requests waiting for a pooled connection",
    registry=REGISTRY,
)

# --- HA ---
ready = Gauge(
    "photo_vault_ready",
    "Application ready (1=up, 0=shutting down)",
    registry=REGISTRY,
)

# --- Rate limiting ---
rate_limit_hits_total = Counter(
    "photo_vault_rate_limit_hits_total",
    "Total number of requests rejected by the rate limiter",
    ["endpoint"],
    registry=REGISTRY,
)

# --- Album Metrics ---
album_operations_total = Counter(
    "photo_vault_album_operations_total",
    "Total number of album operations",
    ["operation", "result"],  # operation: create | update | delete, result: success | failure
    registry=REGISTRY,
)

album_photo_operations_total = Counter(
    "photo_vault_album_photo_operations_total",
    "Total number of album membership operations",
    ["operation", "result"],  # operation: add | remove, result: success | noop | failure
    registry=REGISTRY,
)

access_denied_total = Counter(
    "photo_vault_access_denied_total",
    "Requests rejected by the album access guard",
    ["required", "reason"],  # reason: not_owner | insufficient_permission | not_found
    registry=REGISTRY,
)

# --- Collaborator sharing ---
album_share_operations_total = Counter(
    "photo_vault_album_share_operations_total",
    "Total number of collaborator share operations",
    ["operation", "result"],  # operation: share | unshare, result: created | noop | failure
    registry=REGISTRY,
)

# --- Public links ---
public_link_operations_total = Counter(
    "photo_vault_public_link_operations_total",
    "Public link issuance and revocation",
    ["operation", "result"],  # operation: generate | revoke
    registry=REGISTRY,
)

public_token_collisions_total = Counter(
    "photo_vault_public_token_collisions_total",
    "Public token uniqueness violations (retried)",
    registry=REGISTRY,
)

# 외부에는 동일한 404를 반환하지만 내부 지표에서는 원인을 구분
public_album_access_total = Counter(
    "photo_vault_public_album_access_total",
    "Anonymous public album lookups",
    ["token_status", "result"],  # token_status: valid | malformed | unknown | revoked | expired
    registry=REGISTRY,
)

public_album_access_duration_seconds = Histogram(
    "photo_vault_public_album_access_duration_seconds",
    "Public album lookup duration in seconds",
    ["result"],
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
    registry=REGISTRY,
)


def _node_identity() -> str:
    """Node/instance identifier: NODE_NAME env or hostname."""
    settings = get_settings()
    if settings.node_name:
        return settings.node_name
    try:
        return socket.gethostname()
    except Exception:
        return "unknown"


def setup_prometheus(app) -> None:
    """
    Register Prometheus instrumentation and expose /metrics.

    1. app_info (node identity, labels only).
    2. Instrumentator (FastAPI request metrics).
    """
    settings = get_settings()

    app_info = Gauge(
        "photo_vault_app_info",
        "Application and node identity (labels only, value is 1)",
        ["node", "app", "version", "environment"],
        registry=REGISTRY,
    )
    app_info.labels(
        node=_node_identity(),
        app=settings.app_name,
        version=settings.app_version,
        environment=settings.environment.value,
    ).set(1)

    # status 라벨을 2xx 대신 구체 코드(200, 404 등)로 노출
    Instrumentator(should_group_status_codes=False).instrument(app).expose(
        app, endpoint="/metrics"
    )
