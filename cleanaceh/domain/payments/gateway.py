"""Midtrans Core API gateway - Charge requests over HTTPS"""

import base64
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional

import httpx

from ...config import MIDTRANS_IS_PRODUCTION, MIDTRANS_SERVER_KEY, MIDTRANS_TIMEOUT_SECONDS
from ...errors import GatewayError, GatewayRejected

logger = logging.getLogger(__name__)

SANDBOX_BASE_URL = "https://api.sandbox.midtrans.com"
PRODUCTION_BASE_URL = "https://api.midtrans.com"


@dataclass
class ChargeResult:
    transaction_id: Optional[str]
    status: Optional[str]
    payment_type: Optional[str] = None
    redirect_url: Optional[str] = None
    actions: list = field(default_factory=list)

    def action_url(self, name: str) -> Optional[str]:
        for action in self.actions:
            if action.get("name") == name:
                return action.get("url")
        return None


class PaymentGateway(ABC):
    @abstractmethod
    async def charge(
        self,
        transaction_id: str,
        amount: int,
        customer: dict,
        items: list[dict],
        channel_params: dict,
    ) -> ChargeResult:
        """
        Request a charge.

        Raises:
            GatewayRejected: provider refused the charge; the same request will fail again
            GatewayError: provider unreachable or failed on its side
        """


class MidtransGateway(PaymentGateway):
    """Core API client. One instance per process."""

    def __init__(
        self,
        server_key: Optional[str] = MIDTRANS_SERVER_KEY,
        is_production: bool = MIDTRANS_IS_PRODUCTION,
        timeout: float = MIDTRANS_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.server_key = server_key
        self.base_url = PRODUCTION_BASE_URL if is_production else SANDBOX_BASE_URL
        self.timeout = timeout
        self.transport = transport

        if not self.server_key:
            logger.warning("MIDTRANS_SERVER_KEY not set; payment charges will fail until configured")
        else:
            logger.info(f"Midtrans gateway initialized ({'production' if is_production else 'sandbox'})")

    def _headers(self) -> dict:
        token = base64.b64encode(f"{self.server_key}:".encode()).decode()
        return {
            "Accept": "application/json",
            "Content-Type": "application/json",
            "Authorization": f"Basic {token}",
        }

    async def charge(
        self,
        transaction_id: str,
        amount: int,
        customer: dict,
        items: list[dict],
        channel_params: dict,
    ) -> ChargeResult:
        if not self.server_key:
            raise GatewayError("Midtrans server key not configured")

        payload = {
            "transaction_details": {"order_id": transaction_id, "gross_amount": amount},
            "customer_details": customer,
            "item_details": items,
            **channel_params,
        }

        try:
            async with httpx.AsyncClient(
                base_url=self.base_url, timeout=self.timeout, transport=self.transport
            ) as client:
                response = await client.post("/v2/charge", json=payload, headers=self._headers())
        except httpx.HTTPError as e:
            logger.error(f"❌ Midtrans charge request failed for {transaction_id}: {type(e).__name__}: {e}")
            raise GatewayError(f"Midtrans unreachable: {e}") from e

        try:
            body = response.json()
        except ValueError:
            body = {}

        # Core API reports errors in the body's status_code, sometimes with HTTP 200
        body_status = str(body.get("status_code", response.status_code))
        if response.status_code >= 400 or not body_status.startswith("2"):
            logger.error(
                f"❌ Midtrans rejected charge {transaction_id}: HTTP {response.status_code}, "
                f"status_code={body_status}, message={body.get('status_message')}, "
                f"errors={body.get('validation_messages')}"
            )
            if response.status_code >= 500 or body_status.startswith("5"):
                raise GatewayError(f"Midtrans charge failed with status {body_status}")
            raise GatewayRejected(f"Midtrans charge rejected with status {body_status}")

        logger.info(
            f"✅ Midtrans charge created: order_id={transaction_id}, "
            f"transaction_id={body.get('transaction_id')}, status={body.get('transaction_status')}"
        )
        return ChargeResult(
            transaction_id=body.get("transaction_id"),
            status=body.get("transaction_status"),
            payment_type=body.get("payment_type"),
            redirect_url=body.get("redirect_url"),
            actions=body.get("actions") or [],
        )


# Global instance
midtrans_gateway = MidtransGateway()


def get_payment_gateway() -> PaymentGateway:
    """FastAPI dependency; overridden in tests"""
    return midtrans_gateway
