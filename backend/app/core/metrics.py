"""
Prometheus metrics configuration
"""
import os

from prometheus_client import (CONTENT_TYPE_LATEST, CollectorRegistry, Counter,
                               Histogram, Info, generate_latest)
from prometheus_client.multiprocess import MultiProcessCollector
from prometheus_client.registry import REGISTRY

from app.core.config import get_settings

# ============================================================================
# HTTP Request Metrics
# ============================================================================

http_requests_total = Counter(
    'http_requests_total',
    'Total number of HTTP requests',
    ['method', 'endpoint', 'status_code']
)

http_request_duration_seconds = Histogram(
    'http_request_duration_seconds',
    'HTTP request duration in seconds',
    ['method', 'endpoint', 'status_code'],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0)
)

http_errors_total = Counter(
    'http_errors_total',
    'Total number of HTTP errors',
    ['method', 'endpoint', 'status_code', 'error_type']
)

# ============================================================================
# Engine Invocation Metrics
# ============================================================================

engine_invocations_total = Counter(
    'engine_invocations_total',
    'Total number of external engine invocations',
    ['engine', 'outcome']  # outcome: 'success', 'timeout', 'launch_failed', 'non_zero_exit', ...
)

engine_invocation_duration_seconds = Histogram(
    'engine_invocation_duration_seconds',
    'External engine invocation duration in seconds',
    ['engine'],
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0)
)

engine_responses_total = Counter(
    'engine_responses_total',
    'Classified responses returned to clients',
    ['endpoint', 'status']  # status: 'result', 'error'
)

transient_cleanup_failures_total = Counter(
    'transient_cleanup_failures_total',
    'Transient input files that could not be removed'
)

# ============================================================================
# System Info
# ============================================================================

app_info = Info(
    'app_info',
    'Application information'
)

_settings = get_settings()
app_info.info({
    'app_name': _settings.app_name,
    'app_env': _settings.app_env,
    'version': '0.1.0'
})

# ============================================================================
# Helper Functions
# ============================================================================

def build_registry() -> CollectorRegistry:
    """
    Registry to expose on /metrics

    With PROMETHEUS_MULTIPROC_DIR set, samples from every worker process are
    aggregated through a fresh registry; otherwise the default one is used.
    """
    if os.environ.get("PROMETHEUS_MULTIPROC_DIR"):
        registry = CollectorRegistry()
        MultiProcessCollector(registry)
        return registry
    return REGISTRY


def get_metrics():
    """
    Get Prometheus metrics in text format

    Returns:
        bytes: Metrics in Prometheus text format
    """
    return generate_latest(build_registry())


def get_metrics_content_type():
    """Get content type for Prometheus metrics"""
    return CONTENT_TYPE_LATEST
