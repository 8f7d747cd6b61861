"""Order domain schemas - Pydantic models for validation"""

from datetime import date
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from ...config import DEFAULT_PLATFORM_FEE
from ...models import OrderStatus
from ...shared.validators import parse_hhmm, validate_uuid


def _require_uuid(v):
    if v is not None and not validate_uuid(v):
        raise ValueError("Must be a valid UUID")
    return v


class OrderCreate(BaseModel):
    """Schema for booking a cleaner"""

    cleanerId: str
    serviceId: str
    serviceDate: date
    startTime: str
    endTime: Optional[str] = None
    addressId: Optional[str] = None
    serviceAddress: str = Field(..., max_length=500)
    basePrice: int = Field(..., ge=0)
    additionalServices: list[str] = Field(default_factory=list)
    additionalServicesPrice: int = Field(0, ge=0)
    platformFee: int = Field(DEFAULT_PLATFORM_FEE, ge=0)
    taxAmount: Optional[int] = Field(None, ge=0)
    totalPrice: int = Field(..., ge=0)
    specialInstructions: Optional[str] = Field(None, max_length=1000)

    @field_validator("cleanerId", "serviceId", "addressId")
    @classmethod
    def validate_ids(cls, v):
        return _require_uuid(v)

    @field_validator("startTime", "endTime")
    @classmethod
    def validate_clock_time(cls, v):
        if v is not None:
            parse_hhmm(v)
        return v


class OrderStatusUpdate(BaseModel):
    status: OrderStatus
    notes: Optional[str] = Field(None, max_length=500)


class OrderCancel(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)
