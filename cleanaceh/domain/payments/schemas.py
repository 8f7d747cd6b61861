"""Payment domain schemas - Pydantic models for validation"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ...models import PaymentMethodType
from ...shared.validators import validate_uuid
from .channels import PROVIDERS_BY_TYPE, normalize_provider


class PaymentCreate(BaseModel):
    orderId: str
    paymentMethodId: str

    @field_validator("orderId", "paymentMethodId")
    @classmethod
    def validate_ids(cls, v):
        if not validate_uuid(v):
            raise ValueError("Must be a valid UUID")
        return v


class PaymentMethodCreate(BaseModel):
    type: PaymentMethodType
    provider: str = Field(..., min_length=1, max_length=50)
    accountNumber: Optional[str] = Field(None, min_length=8, max_length=20)
    accountName: Optional[str] = Field(None, min_length=2, max_length=100)

    @model_validator(mode="after")
    def check_provider(self):
        provider = normalize_provider(self.type, self.provider)
        if not provider:
            supported = ", ".join(PROVIDERS_BY_TYPE[self.type].values())
            raise ValueError(f"Unsupported {self.type.value} provider. Supported: {supported}")
        self.provider = provider
        return self


class MidtransNotification(BaseModel):
    """Fields of a Midtrans HTTP notification the reconciler reads. Others are kept."""

    model_config = ConfigDict(extra="allow")

    order_id: str
    transaction_status: Optional[str] = None
    fraud_status: Optional[str] = None
    transaction_id: Optional[str] = None
    status_code: Optional[str] = None
    gross_amount: Optional[str] = None
    signature_key: Optional[str] = None
