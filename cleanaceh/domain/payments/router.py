"""Payment router - FastAPI endpoints for payments, payment methods and the Midtrans webhook"""

import json
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from ...auth import get_current_user, require_customer
from ...config import MIDTRANS_SERVER_KEY, MIDTRANS_VERIFY_SIGNATURE
from ...database import get_db
from ...models import PaymentStatus, User
from ...shared.responses import create_pagination, send_paginated, send_success
from ...webhook_security import verify_midtrans_signature
from .formatters import format_charge, format_method, format_payment
from .gateway import PaymentGateway, get_payment_gateway
from .reconciler import PaymentReconciler, WebhookOutcome
from .schemas import MidtransNotification, PaymentCreate, PaymentMethodCreate
from .service import PaymentService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments", tags=["Payments"])


def get_payment_service(db: Session = Depends(get_db)) -> PaymentService:
    """Dependency injection for PaymentService"""
    return PaymentService(db)


def get_reconciler(
    db: Session = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
) -> PaymentReconciler:
    """Dependency injection for PaymentReconciler"""
    return PaymentReconciler(db, gateway)


@router.post("/create", status_code=201)
async def create_payment(
    data: PaymentCreate,
    current_user: User = Depends(require_customer),
    reconciler: PaymentReconciler = Depends(get_reconciler),
):
    """Create a payment for a confirmed order and charge it through Midtrans"""
    payment, charge = await reconciler.create_payment(data.orderId, data.paymentMethodId, current_user)
    return send_success(format_charge(payment, charge), "Payment created successfully", 201)


@router.post("/webhook")
async def handle_midtrans_webhook(
    request: Request,
    reconciler: PaymentReconciler = Depends(get_reconciler),
):
    """
    Midtrans HTTP notification endpoint.

    Answers a bare {"message"} body, never the standard envelope:
    200 processed or already applied, 404 unknown payment, 403 bad signature,
    500 processing failure (Midtrans retries on non-2xx).
    """
    try:
        payload = json.loads(await request.body())
        notification = MidtransNotification.model_validate(payload)
    except (ValueError, PydanticValidationError) as e:
        logger.error(f"❌ Failed to parse Midtrans notification: {e}")
        return JSONResponse(status_code=400, content={"message": "Invalid notification payload"})

    logger.info(
        f"🔔 Midtrans webhook received: order_id={notification.order_id}, "
        f"transaction_status={notification.transaction_status}, fraud_status={notification.fraud_status}"
    )

    if MIDTRANS_VERIFY_SIGNATURE and not verify_midtrans_signature(payload, MIDTRANS_SERVER_KEY):
        return JSONResponse(status_code=403, content={"message": "Invalid signature"})

    try:
        outcome = reconciler.reconcile_webhook(notification)
    except Exception as e:
        logger.exception(f"❌ Webhook processing failed for order_id={notification.order_id}: {e}")
        return JSONResponse(status_code=500, content={"message": "Webhook processing failed"})

    if outcome.result == WebhookOutcome.NOT_FOUND:
        return JSONResponse(status_code=404, content={"message": "Payment not found"})
    return JSONResponse(status_code=200, content={"message": "Webhook processed successfully"})


@router.get("/history")
async def get_payment_history(
    page: Optional[int] = Query(1, ge=1),
    limit: Optional[int] = Query(10, ge=1, le=50),
    status: Optional[PaymentStatus] = Query(None),
    current_user: User = Depends(require_customer),
    service: PaymentService = Depends(get_payment_service),
):
    pagination = create_pagination(page, limit)
    payments, total = service.get_history(current_user, pagination, status)
    return send_paginated(
        [format_payment(p) for p in payments], pagination, total, "Payment history retrieved successfully"
    )


# ============================================================================
# PAYMENT METHODS
# ============================================================================


@router.get("/methods")
async def get_payment_methods(
    current_user: User = Depends(get_current_user),
    service: PaymentService = Depends(get_payment_service),
):
    methods = service.list_methods(current_user)
    return send_success([format_method(m) for m in methods], "Payment methods retrieved successfully")


@router.post("/methods", status_code=201)
async def add_payment_method(
    data: PaymentMethodCreate,
    current_user: User = Depends(get_current_user),
    service: PaymentService = Depends(get_payment_service),
):
    method = service.add_method(data, current_user)
    return send_success(format_method(method), "Payment method added successfully", 201)


@router.delete("/methods/{method_id}")
async def delete_payment_method(
    method_id: str,
    current_user: User = Depends(get_current_user),
    service: PaymentService = Depends(get_payment_service),
):
    service.delete_method(method_id, current_user)
    return send_success(None, "Payment method deleted successfully")


# ============================================================================
# SINGLE PAYMENT
# ============================================================================


@router.post("/{payment_id}/retry")
async def retry_payment(
    payment_id: str,
    current_user: User = Depends(require_customer),
    reconciler: PaymentReconciler = Depends(get_reconciler),
):
    """Re-charge a pending payment whose first charge failed"""
    payment, charge = await reconciler.retry_charge(payment_id, current_user)
    return send_success(format_charge(payment, charge), "Payment charge retried successfully")


@router.get("/{payment_id}")
async def get_payment(
    payment_id: str,
    current_user: User = Depends(require_customer),
    service: PaymentService = Depends(get_payment_service),
):
    payment = service.get_payment(payment_id, current_user)
    return send_success(format_payment(payment, detailed=True), "Payment retrieved successfully")
