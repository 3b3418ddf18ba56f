"""
Client-side security signals: device checks at launch and ad-hoc events.
"""

from typing import Optional

from fastapi import APIRouter, Depends

from auth import get_optional_user
from config import get_settings
from models.security import (
    DeviceCheckRequest,
    DeviceCheckResponse,
    SecurityEventRequest,
    SecurityEventResponse,
)
from security import evaluate_device, is_version_supported, report_security_event

router = APIRouter(prefix="/security", tags=["Security"])


@router.post("/device-check", response_model=DeviceCheckResponse)
async def device_check(payload: DeviceCheckRequest, user: Optional[dict] = Depends(get_optional_user)):
    minimum = get_settings().min_app_version
    events = evaluate_device(payload.app_version, payload.jailbroken, minimum, user["id"] if user else None)
    supported = payload.app_version is None or is_version_supported(payload.app_version, minimum)
    return DeviceCheckResponse(
        supported=supported,
        minimum_version=minimum,
        events=[SecurityEventResponse(**e) for e in events],
    )


@router.post("/events", response_model=SecurityEventResponse, status_code=201)
async def security_event(payload: SecurityEventRequest, user: Optional[dict] = Depends(get_optional_user)):
    record = report_security_event(payload.event, payload.severity, payload.details, user["id"] if user else None)
    return SecurityEventResponse(**record)
