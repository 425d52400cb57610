import logging
import time
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path

from dotenv import load_dotenv

# Load .env from the project root wherever uvicorn is started from
_PROJ_ROOT = Path(__file__).resolve().parent.parent
load_dotenv(_PROJ_ROOT / ".env")

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from sqlalchemy import text
from sqlmodel import Session

from payapp.api.payments import router as payments_router
from payapp.core.config import allowed_origins_list, get_credentials, settings
from payapp.core.database import engine, init_db
from payapp.core.exceptions import PayAppError
from payapp.core.rate_limit import limiter
from payapp.logging import setup_logging

setup_logging(level=settings.log_level)
log = logging.getLogger("payapp")


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    log.info("PayApp credentials loaded: %s", "yes" if get_credentials().configured else "NO (set PAYAPP_USERID / PAYAPP_LINKKEY / PAYAPP_LINKVAL)")
    if not settings.payapp_feedback_url:
        log.warning("PAYAPP_FEEDBACK_URL is empty: PayApp will not send payment callbacks")
    yield


app = FastAPI(
    title="PayApp Bridge",
    description="PayApp payment / rebill gateway for the storefront",
    lifespan=lifespan,
)
app.state.limiter = limiter


def _error_response(request: Request, status_code: int, message: str, code: str | None = None) -> JSONResponse:
    body = {"success": False, "message": message}
    if code:
        body["errorCode"] = code
    rid = getattr(request.state, "request_id", None)
    if rid:
        body["request_id"] = rid
    return JSONResponse(status_code=status_code, content=body)


def _validation_error_message(exc: RequestValidationError) -> str:
    errs = exc.errors()
    if not errs:
        return "Invalid request."
    first = errs[0]
    loc = [str(p) for p in (first.get("loc") or []) if p not in ("body", "query", "path")]
    field = loc[-1] if loc else None
    if first.get("type") == "missing" and field is None:
        return "Request body is missing."
    if field:
        return f"{field}: {first.get('msg') or 'invalid value'}"
    return first.get("msg") or "Invalid request."


@app.exception_handler(PayAppError)
def payapp_error_handler(request: Request, exc: PayAppError) -> JSONResponse:
    return _error_response(request, exc.status_code, exc.message, exc.code)


@app.exception_handler(RequestValidationError)
def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    log.warning(
        "Request validation error: path=%s method=%s detail=%s",
        request.url.path,
        request.method,
        exc.errors(),
    )
    # Same 400 shape as ValidationError raised by the services
    return _error_response(request, 400, _validation_error_message(exc))


def _rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    log.warning("Rate limit exceeded: path=%s detail=%s", request.url.path, exc.detail)
    return _error_response(request, 429, "Too many requests. Please wait a minute.")


app.add_exception_handler(RateLimitExceeded, _rate_limit_handler)


@app.exception_handler(HTTPException)
def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    return _error_response(request, exc.status_code, exc.detail if isinstance(exc.detail, str) else str(exc.detail))


@app.exception_handler(Exception)
def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    log.exception("Unhandled exception: path=%s %s", request.url.path, exc, exc_info=True)
    return _error_response(request, 500, "Unexpected server error.")


@app.middleware("http")
async def request_id_and_latency(request: Request, call_next):
    request.state.request_id = str(uuid.uuid4())
    start = time.perf_counter()
    response = await call_next(request)
    latency_ms = (time.perf_counter() - start) * 1000
    response.headers["X-Request-ID"] = request.state.request_id
    log.info(
        "request_id=%s method=%s path=%s status=%s latency_ms=%.2f",
        request.state.request_id,
        request.method,
        request.url.path,
        response.status_code,
        latency_ms,
    )
    return response


app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins_list(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(payments_router)


@app.get("/health")
def health():
    database = "ok"
    try:
        with Session(engine) as db:
            db.connection().execute(text("SELECT 1"))
    except Exception as e:
        log.warning("Health check DB error: %s", e)
        database = "error"
    return {
        "status": "ok",
        "database": database,
        "gateway_configured": get_credentials().configured,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
