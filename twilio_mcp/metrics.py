"""
Prometheus metrics for the webhook receiver and the MCP tool server.

Both entry points run in one process and share the default registry,
so /metrics reports tool calls alongside webhook traffic.
"""

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest

http_requests_total = Counter(
    "http_requests_total",
    "Webhook app HTTP requests",
    labelnames=["method", "path", "status"],
)

request_latency_seconds = Histogram(
    "request_latency_seconds",
    "Webhook app request latency in seconds",
    labelnames=["method", "path"],
)

# endpoint: sms | status
# result: stored | duplicate | not_stored | status_updated | invalid_signature | validation_error | error
webhook_requests_total = Counter(
    "webhook_requests_total",
    "Twilio webhook outcomes",
    labelnames=["endpoint", "result"],
)

# outcome: success | error
tool_calls_total = Counter(
    "tool_calls_total",
    "MCP tool calls",
    labelnames=["tool", "outcome"],
)


def record_http_request(method: str, path: str, status: int, latency_seconds: float) -> None:
    # query strings would explode label cardinality
    path = path.split("?", 1)[0]
    http_requests_total.labels(method=method, path=path, status=str(status)).inc()
    request_latency_seconds.labels(method=method, path=path).observe(latency_seconds)


def record_webhook_outcome(endpoint: str, result: str) -> None:
    webhook_requests_total.labels(endpoint=endpoint, result=result).inc()


def record_tool_call(tool: str, outcome: str) -> None:
    tool_calls_total.labels(tool=tool, outcome=outcome).inc()


def get_metrics() -> bytes:
    """Render the default registry in Prometheus text exposition format."""
    return generate_latest()


def get_metrics_content_type() -> str:
    return CONTENT_TYPE_LATEST
