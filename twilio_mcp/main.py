import logging
from contextlib import asynccontextmanager
from typing import Annotated

from fastapi import FastAPI, Response, Request, Depends, Header, status
from fastapi.responses import PlainTextResponse
from sqlalchemy.orm import Session

from twilio_mcp import __version__
from twilio_mcp.config import settings
from twilio_mcp.storage import init_db, check_db_health, get_db
from twilio_mcp.logging_utils import setup_logging, RequestLoggingMiddleware, log_webhook_data
from twilio_mcp.message_store import MessageStore
from twilio_mcp.metrics import record_webhook_outcome, get_metrics, get_metrics_content_type
from twilio_mcp.schemas import HealthResponse, ReadinessResponse
from twilio_mcp.threading_service import record_inbound_message
from twilio_mcp.twilio_client import TwilioTransport, get_transport
from twilio_mcp.utils import utc_now


# Setup structured JSON logging
setup_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

SMS_WEBHOOK_PATH = "/webhooks/twilio/sms"
STATUS_WEBHOOK_PATH = "/webhooks/twilio/status"

# Empty TwiML: acknowledge without an auto-reply
EMPTY_TWIML = "<Response></Response>"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the data directory and schema before serving webhooks."""
    init_db()
    logger.info(f"Inbound SMS endpoint: {settings.WEBHOOK_BASE_URL}{SMS_WEBHOOK_PATH}")
    logger.info(f"Status callback endpoint: {settings.WEBHOOK_BASE_URL}{STATUS_WEBHOOK_PATH}")
    yield


app = FastAPI(
    title="Twilio MCP Webhooks",
    description="Receives inbound SMS/MMS and delivery status callbacks from Twilio",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(RequestLoggingMiddleware)


def extract_media_urls(params: dict[str, str]) -> list[str]:
    """Collect MediaUrl0..N-1 in attachment order, skipping gaps."""
    try:
        num_media = int(params.get("NumMedia") or 0)
    except ValueError:
        num_media = 0
    return [params[f"MediaUrl{i}"] for i in range(num_media) if params.get(f"MediaUrl{i}")]


async def _signed_form(
    request: Request,
    signature: str | None,
    transport: TwilioTransport,
) -> dict[str, str] | None:
    """Parse the form body and return it only if the Twilio signature matches."""
    form = await request.form()
    params = {key: str(value) for key, value in form.items()}
    # Twilio signs the full callback URL, query string included
    url = f"{settings.WEBHOOK_BASE_URL}{request.url.path}"
    if request.url.query:
        url = f"{url}?{request.url.query}"
    if not transport.validate_signature(signature, url, params):
        return None
    return params


def _forbidden(request: Request, endpoint: str) -> Response:
    logger.error("Invalid webhook signature")
    record_webhook_outcome(endpoint, "invalid_signature")
    log_webhook_data(request, result="invalid_signature")
    return PlainTextResponse("Forbidden", status_code=status.HTTP_403_FORBIDDEN)


def _bad_request(request: Request, endpoint: str, missing: list[str]) -> Response:
    logger.error(f"Webhook payload missing fields: {missing}")
    record_webhook_outcome(endpoint, "validation_error")
    log_webhook_data(request, result="validation_error")
    return PlainTextResponse(
        f"Missing fields: {', '.join(missing)}",
        status_code=status.HTTP_400_BAD_REQUEST,
    )


def _internal_error(request: Request, endpoint: str, db: Session, message_sid: str | None) -> Response:
    db.rollback()
    record_webhook_outcome(endpoint, "error")
    log_webhook_data(request, message_sid=message_sid, result="error")
    return PlainTextResponse(
        "Internal Server Error",
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )


# =============================================================================
# Health Check Routes
# =============================================================================

@app.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    """Liveness probe - always returns 200 once the app is running."""
    return HealthResponse(status="ok", timestamp=utc_now())


@app.get("/health/ready", response_model=ReadinessResponse)
async def health_ready(response: Response) -> ReadinessResponse:
    """
    Readiness probe - returns 200 only if the database is reachable and the
    schema is applied, otherwise 503.
    """
    if not check_db_health():
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return ReadinessResponse(
            status="not_ready",
            reason="Database not reachable or schema not applied"
        )
    return ReadinessResponse(status="ready")


# =============================================================================
# Webhook Routes
# =============================================================================

@app.post(SMS_WEBHOOK_PATH)
async def inbound_sms(
    request: Request,
    x_twilio_signature: Annotated[str | None, Header(alias="X-Twilio-Signature")] = None,
    db: Session = Depends(get_db),
    transport: TwilioTransport = Depends(get_transport),
) -> Response:
    """
    Receive an inbound SMS/MMS from Twilio.

    - Validates the X-Twilio-Signature header (403 otherwise, nothing stored)
    - Threads the message into the conversation for From/To
    - Responds with empty TwiML, including when auto-creation is disabled and
      the message could not be threaded
    """
    params = await _signed_form(request, x_twilio_signature, transport)
    if params is None:
        return _forbidden(request, "sms")

    missing = [field for field in ("MessageSid", "From", "To") if not params.get(field)]
    if missing:
        return _bad_request(request, "sms", missing)

    message_sid = params["MessageSid"]
    try:
        message, is_duplicate = record_inbound_message(
            db,
            message_sid=message_sid,
            from_number=params["From"],
            to_number=params["To"],
            body=params.get("Body", ""),
            media_urls=extract_media_urls(params) or None,
            auto_create=settings.AUTO_CREATE_CONVERSATIONS,
        )
    except Exception as e:
        logger.exception(f"Error processing inbound SMS {message_sid}: {e}")
        return _internal_error(request, "sms", db, message_sid)

    if is_duplicate:
        result = "duplicate"
    elif message:
        result = "stored"
    else:
        result = "not_stored"
    record_webhook_outcome("sms", result)
    log_webhook_data(
        request,
        message_sid=message_sid,
        conversation_id=message.conversation_id if message else None,
        result=result,
    )
    return Response(content=EMPTY_TWIML, media_type="text/xml")


@app.post(STATUS_WEBHOOK_PATH)
async def message_status(
    request: Request,
    x_twilio_signature: Annotated[str | None, Header(alias="X-Twilio-Signature")] = None,
    db: Session = Depends(get_db),
    transport: TwilioTransport = Depends(get_transport),
) -> Response:
    """
    Receive a delivery status callback (queued -> sent -> delivered, or
    failed/undelivered with an error code) and update the stored message.
    """
    params = await _signed_form(request, x_twilio_signature, transport)
    if params is None:
        return _forbidden(request, "status")

    missing = [field for field in ("MessageSid", "MessageStatus") if not params.get(field)]
    if missing:
        return _bad_request(request, "status", missing)

    message_sid = params["MessageSid"]
    try:
        MessageStore(db).update_status(
            message_sid,
            params["MessageStatus"],
            params.get("ErrorCode"),
            params.get("ErrorMessage"),
        )
    except Exception as e:
        logger.exception(f"Error processing status callback for {message_sid}: {e}")
        return _internal_error(request, "status", db, message_sid)

    logger.info(f"Updated message {message_sid} status to {params['MessageStatus']}")
    record_webhook_outcome("status", "status_updated")
    log_webhook_data(request, message_sid=message_sid, result="status_updated")
    return Response(status_code=status.HTTP_200_OK)


# =============================================================================
# Metrics Route
# =============================================================================

@app.get("/metrics")
async def metrics() -> Response:
    """Expose Prometheus-style metrics."""
    return Response(
        content=get_metrics(),
        media_type=get_metrics_content_type()
    )
