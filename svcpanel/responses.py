from typing import List, Optional

from pydantic import BaseModel, Field


class ServiceStatus(BaseModel):
    name: str = Field(..., description="Systemd unit name", examples=["jellyfin.service"])
    status: str = Field(
        ...,
        description="Unit state reported by systemctl, or 'error' / 'not_allowed'",
        examples=["active"],
    )
    active: bool = Field(..., description="True if and only if status is 'active'")


class APIResponse(BaseModel):
    success: bool = Field(..., description="Whether the request was handled")
    service: Optional[ServiceStatus] = Field(None, description="Status after a start/stop action")
    services: Optional[List[ServiceStatus]] = Field(None, description="Status of every allowlisted service")
    error: Optional[str] = Field(None, description="Error message when success is false")
