"""Health probes."""
from fastapi import APIRouter
from pydantic import BaseModel

from voicechat.chat.store_service import MessageStoreError, get_message_store
from voicechat.common.error_envelope import error_response

SERVICE_VERSION = "0.1.0"

router = APIRouter(tags=["system"])


class HealthStatus(BaseModel):
    status: str
    version: str = SERVICE_VERSION


@router.get("/health", response_model=HealthStatus)
def health_check():
    return HealthStatus(status="ok")


@router.get("/ready", response_model=HealthStatus)
def readiness_check():
    try:
        get_message_store().recent(1)
    except MessageStoreError as exc:
        raise error_response(
            code="store.unavailable",
            message="Message store unavailable",
            status_code=503,
            details={"reason": str(exc)},
        )
    return HealthStatus(status="ok")
