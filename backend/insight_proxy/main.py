"""FastAPI application entrypoint for the insight proxy."""
import logging
import time
import uuid

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from insight_proxy.api.routes import api_router
from insight_proxy.core.config import get_settings
from insight_proxy.core.logging_utils import configure_logging
from insight_proxy.deps import get_audit_logger
from insight_proxy.schemas.insight import HealthResponse
from insight_proxy.services.audit import AuditRecord

configure_logging(get_settings().log_level)
logger = logging.getLogger(__name__)

# CORS is decided per request by the insight service, so no CORSMiddleware here
app = FastAPI(title="Insight Proxy API", version="0.1.0")

app.include_router(api_router, prefix="/api")


@app.get("/health", response_model=HealthResponse, tags=["health"])
async def health_check() -> HealthResponse:
    """Return service health information for monitoring and load-balancers."""
    return HealthResponse()


def _audit(request: Request, status_code: int) -> None:
    started = getattr(request.state, "started", None)
    metadata = {}
    if started is not None:
        metadata["duration_ms"] = (time.perf_counter() - started) * 1000.0
    get_audit_logger().log(
        AuditRecord(
            request_id=request.state.request_id,
            method=request.method,
            path=str(request.url.path),
            status_code=status_code,
            ip=request.client.host if request.client else None,
            user_agent=request.headers.get("user-agent"),
            metadata=metadata,
        )
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    # runs outside audit_middleware, so the audit line and request id are written here
    request_id = getattr(request.state, "request_id", None) or uuid.uuid4().hex
    request.state.request_id = request_id
    logger.exception("Unhandled error", extra={"request_id": request_id}, exc_info=exc)
    _audit(request, 500)
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error."},
        headers={"X-Request-Id": request_id},
    )


@app.middleware("http")
async def audit_middleware(request: Request, call_next):
    request_id = request.headers.get("x-request-id") or uuid.uuid4().hex
    request.state.request_id = request_id
    request.state.started = time.perf_counter()

    response = await call_next(request)

    _audit(request, response.status_code)
    response.headers["X-Request-Id"] = request_id
    return response
