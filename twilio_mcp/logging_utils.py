"""
Structured JSON logging shared by the MCP server and the webhook app.

Every record carries ts, level, name and message; records emitted while a
webhook request is being handled also carry its request_id.
"""

import logging
import sys
import time
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Callable, Optional

from fastapi import Request, Response
from pythonjsonlogger import jsonlogger
from starlette.middleware.base import BaseHTTPMiddleware

from twilio_mcp.metrics import record_http_request

REQUEST_ID_HEADER = "X-Request-ID"

request_id_ctx: ContextVar[Optional[str]] = ContextVar("request_id", default=None)

request_logger = logging.getLogger("twilio_mcp.requests")


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter adding a millisecond UTC timestamp and the current request_id."""

    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)
        # the "%(ts)s" format field arrives here as a None placeholder
        if not log_record.get("ts"):
            log_record["ts"] = datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(
                timespec="milliseconds"
            )
        log_record["level"] = record.levelname
        request_id = request_id_ctx.get()
        if request_id and "request_id" not in log_record:
            log_record["request_id"] = request_id


def setup_logging(log_level: str = "INFO") -> logging.Logger:
    """
    Route all logging, uvicorn's included, through one JSON handler on stderr.

    stdout is reserved for the MCP stdio stream, so nothing may log there.
    """
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(CustomJsonFormatter("%(ts)s %(level)s %(name)s %(message)s"))

    root = logging.getLogger()
    root.setLevel(log_level.upper())
    root.handlers = [handler]

    for name in ("uvicorn", "uvicorn.error"):
        uvicorn_logger = logging.getLogger(name)
        uvicorn_logger.handlers = [handler]
        uvicorn_logger.propagate = False

    # RequestLoggingMiddleware writes the access log
    logging.getLogger("uvicorn.access").disabled = True

    return root


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Tag each webhook request with an id, time it, and write one access log line.

    The line holds request_id, method, path, status and latency_ms, plus
    whatever the route attached through log_webhook_data (message_sid,
    conversation_id, result).
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id
        token = request_id_ctx.set(request_id)
        started = time.perf_counter()
        try:
            response = await call_next(request)
            elapsed = time.perf_counter() - started
            response.headers[REQUEST_ID_HEADER] = request_id

            path = request.url.path
            if path != "/metrics":
                record_http_request(request.method, path, response.status_code, elapsed)

            fields = {
                "request_id": request_id,
                "method": request.method,
                "path": path,
                "status": response.status_code,
                "latency_ms": round(elapsed * 1000, 2),
            }
            fields.update(getattr(request.state, "webhook_log_data", {}))
            request_logger.log(_level_for(response.status_code), "Request completed", extra=fields)
            return response
        finally:
            request_id_ctx.reset(token)


def _level_for(status_code: int) -> int:
    if status_code >= 500:
        return logging.ERROR
    if status_code >= 400:
        return logging.WARNING
    return logging.INFO


def log_webhook_data(
    request: Request,
    message_sid: Optional[str] = None,
    conversation_id: Optional[str] = None,
    result: Optional[str] = None,
) -> None:
    """Attach webhook outcome fields for the access log line written by the middleware."""
    fields = {"message_sid": message_sid, "conversation_id": conversation_id, "result": result}
    request.state.webhook_log_data = {key: value for key, value in fields.items() if value is not None}
