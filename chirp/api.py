from __future__ import annotations

import logging
import os
from datetime import datetime
from http import HTTPStatus
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from fastapi import APIRouter, FastAPI, HTTPException, Query, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from chirp.lib.digest import DigestError, StoreUnavailable
from chirp.lib.logging_utils import setup_debug_logging
from chirp.lib.notifications import NotificationService, SendError, SpecialSighting
from chirp.lib.notifications.scheduler import SummaryScheduler
from chirp.lib.schemas import (
    DigestResponse,
    DispatchResponse,
    MessageResponse,
    SpecialSightingRequest,
    SubscribeRequest,
    SubscribeResponse,
    UnsubscribeResponse,
    dispatch_payload,
)
from chirp.lib.setup import Environment, initialize_environment


PROJECT_ROOT = Path(__file__).resolve().parent
_config_override = os.getenv("CHIRP_CONFIG")
CONFIG_PATH = Path(_config_override) if _config_override else PROJECT_ROOT / "config.yaml"

app = FastAPI(title="ChirpChirp Email Service", version="1.0.0")
setup_debug_logging(PROJECT_ROOT)
logger = logging.getLogger("chirp.api")
router = APIRouter(prefix="/email")


_ERROR_CODE_MAP = {
    status.HTTP_400_BAD_REQUEST: "bad_request",
    status.HTTP_404_NOT_FOUND: "not_found",
    status.HTTP_422_UNPROCESSABLE_ENTITY: "validation_error",
    status.HTTP_500_INTERNAL_SERVER_ERROR: "server_error",
    status.HTTP_502_BAD_GATEWAY: "send_failed",
    status.HTTP_503_SERVICE_UNAVAILABLE: "service_unavailable",
}


def _status_to_error_code(status_code: int) -> str:
    return _ERROR_CODE_MAP.get(status_code, f"http_{status_code}")


def _build_error_payload(status_code: int, detail: Any) -> Dict[str, Any]:
    code = _status_to_error_code(status_code)
    message: Optional[str] = None
    extra: Optional[Any] = None

    if isinstance(detail, dict):
        code = str(detail.get("code") or code)
        message = detail.get("message") or detail.get("detail")
        remaining = {k: v for k, v in detail.items() if k not in {"code", "message", "detail"}}
        if remaining:
            extra = remaining
    elif isinstance(detail, list):
        extra = detail
    elif detail:
        message = str(detail)

    if message is None:
        try:
            message = HTTPStatus(status_code).phrase
        except ValueError:
            message = "Request failed"

    payload: Dict[str, Any] = {
        "error": {
            "code": code,
            "message": message,
        }
    }
    if extra is not None:
        payload["error"]["details"] = extra
    return payload


@app.exception_handler(HTTPException)
async def _http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    payload = _build_error_payload(exc.status_code, exc.detail)
    return JSONResponse(status_code=exc.status_code, content=payload)


@app.exception_handler(RequestValidationError)
async def _validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    detail = {
        "code": "validation_error",
        "message": "Request validation failed",
        "fields": exc.errors(),
    }
    payload = _build_error_payload(status.HTTP_422_UNPROCESSABLE_ENTITY, detail)
    return JSONResponse(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, content=payload)


@app.exception_handler(DigestError)
async def _digest_exception_handler(request: Request, exc: DigestError) -> JSONResponse:
    code = "store_unavailable" if isinstance(exc, StoreUnavailable) else "invalid_records"
    logger.error("api.digest_error", extra={"path": request.url.path, "error": str(exc)})
    payload = _build_error_payload(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        {"code": code, "message": str(exc)},
    )
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=payload)


@app.exception_handler(SendError)
async def _send_exception_handler(request: Request, exc: SendError) -> JSONResponse:
    logger.error("api.send_error", extra={"path": request.url.path, "error": str(exc)})
    payload = _build_error_payload(status.HTTP_502_BAD_GATEWAY, str(exc))
    return JSONResponse(status_code=status.HTTP_502_BAD_GATEWAY, content=payload)


def _parse_now(value: Optional[str]) -> Optional[datetime]:
    if value in (None, "", "null"):
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid now value: {value}",
        ) from exc


@app.on_event("startup")
async def startup_event() -> None:
    if getattr(app.state, "notification_service", None) is not None:
        return

    environment = initialize_environment(
        yaml.safe_load(CONFIG_PATH.read_text(encoding="utf-8")),
        base_dir=CONFIG_PATH.parent,
    )
    scheduler = environment.build_scheduler()
    if scheduler is not None:
        scheduler.start()

    app.state.environment = environment
    app.state.notification_service = environment.service
    app.state.summary_scheduler = scheduler


@app.on_event("shutdown")
async def shutdown_event() -> None:
    scheduler: SummaryScheduler | None = getattr(app.state, "summary_scheduler", None)
    if scheduler is not None:
        await scheduler.stop()
    environment: Environment | None = getattr(app.state, "environment", None)
    if environment is not None:
        environment.close()


def _ensure_service(request: Request) -> NotificationService:
    service: Optional[NotificationService] = getattr(request.app.state, "notification_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Application not initialized",
        )
    return service


@app.get("/")
def health_check() -> Dict[str, Any]:
    return {"status": "ok", "service": "email-service"}


@router.get("/digest", response_model=DigestResponse)
def preview_digest(
    request: Request,
    now: Optional[str] = Query(None, description="Reference instant (ISO 8601); defaults to the current time"),
) -> DigestResponse:
    service = _ensure_service(request)
    summary = service.build_digest(_parse_now(now))
    return DigestResponse.from_summary(summary)


@router.post("/send/daily-summary", response_model=Union[DispatchResponse, MessageResponse])
def send_daily_summary(request: Request) -> Union[DispatchResponse, MessageResponse]:
    service = _ensure_service(request)
    outcome = service.send_daily_summary()
    return dispatch_payload(outcome)


@router.post("/send/special-sighting", response_model=Union[DispatchResponse, MessageResponse])
def send_special_sighting(
    request: Request,
    body: SpecialSightingRequest,
) -> Union[DispatchResponse, MessageResponse]:
    service = _ensure_service(request)
    species = (body.species or "").strip()
    if not species:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Species is required")
    outcome = service.send_special_sighting(
        SpecialSighting(species=species, image_url=body.image_url, confidence=body.confidence)
    )
    return dispatch_payload(outcome)


@router.post("/subscribe", response_model=SubscribeResponse)
def subscribe(request: Request, body: SubscribeRequest) -> SubscribeResponse:
    service = _ensure_service(request)
    email = (body.email or "").strip()
    if not email:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email required")
    result = service.subscribe(email, body.name)
    return SubscribeResponse(
        subscription_id=result["subscription_id"],
        email=result["email"],
        message_id=result["message_id"],
    )


@router.post("/unsubscribe", response_model=UnsubscribeResponse)
def unsubscribe(request: Request, body: SubscribeRequest) -> UnsubscribeResponse:
    service = _ensure_service(request)
    email = (body.email or "").strip()
    if not email:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email is required")
    subscription = service.unsubscribe(email)
    if subscription is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Email not found in subscriptions",
        )
    return UnsubscribeResponse(message="Successfully unsubscribed", email=subscription["email"])


app.include_router(router)
