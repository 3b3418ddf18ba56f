from pydantic import BaseModel, Field
from typing import Optional, List

from security import SecuritySeverity


class DeviceCheckRequest(BaseModel):
    app_version: Optional[str] = None
    jailbroken: bool = False


class SecurityEventRequest(BaseModel):
    event: str = Field(..., min_length=1, max_length=100)
    severity: SecuritySeverity = SecuritySeverity.low
    details: dict = Field(default_factory=dict)


class SecurityEventResponse(BaseModel):
    event: str
    severity: SecuritySeverity
    details: dict
    user_id: Optional[str] = None


class DeviceCheckResponse(BaseModel):
    supported: bool
    minimum_version: str
    events: List[SecurityEventResponse]
