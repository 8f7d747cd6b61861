"""
Payment reconciler.

Payments move pending -> paid | failed and paid -> refunded, and only here:
on creation (charge request to the gateway) and when a gateway notification
arrives. Notifications are delivered at least once and possibly out of
order, so each one is checked against the payment's current status before
anything is written. A notification whose target status equals the current
one, or whose move is not in PAYMENT_TRANSITIONS, is acknowledged without a
write or side effects.
"""

import logging
import time
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...errors import (
    GatewayError,
    GatewayRejected,
    NotFound,
    OrderNotConfirmed,
    PaymentAlreadyExists,
    PolicyViolation,
)
from ...models import Order, OrderStatus, Payment, PaymentMethod, PaymentStatus, User
from ...services.notification_service import NotificationService
from ...shared.clock import utcnow
from ..orders.repository import OrderRepository
from ..orders.state_machine import SYSTEM_ACTOR, OrderStateMachine
from .channels import channel_params_for
from .gateway import ChargeResult, PaymentGateway
from .repository import PaymentRepository
from .schemas import MidtransNotification

logger = logging.getLogger(__name__)

PAYMENT_TRANSITIONS: dict[PaymentStatus, frozenset[PaymentStatus]] = {
    PaymentStatus.PENDING: frozenset({PaymentStatus.PAID, PaymentStatus.FAILED}),
    PaymentStatus.PAID: frozenset({PaymentStatus.REFUNDED}),
    PaymentStatus.FAILED: frozenset(),
    PaymentStatus.REFUNDED: frozenset(),
}

PAID_TRANSACTION_STATUSES = {"capture", "settlement"}
FAILED_TRANSACTION_STATUSES = {"deny", "expire", "cancel"}


def map_transaction_status(transaction_status: Optional[str], fraud_status: Optional[str]) -> Optional[PaymentStatus]:
    """Local status for a gateway transaction status, or None when it implies no change"""
    if transaction_status in PAID_TRANSACTION_STATUSES:
        if not fraud_status or fraud_status == "accept":
            return PaymentStatus.PAID
        return None
    if transaction_status == "pending":
        return PaymentStatus.PENDING
    if transaction_status in FAILED_TRANSACTION_STATUSES:
        return PaymentStatus.FAILED
    return None


def generate_payment_reference(order: Order) -> str:
    return f"CA-{order.order_number}-{int(time.time() * 1000)}"


@dataclass(frozen=True)
class WebhookOutcome:
    PROCESSED = "processed"
    DUPLICATE = "duplicate"
    IGNORED = "ignored"
    NOT_FOUND = "not_found"

    result: str
    payment_id: Optional[str] = None
    status: Optional[str] = None


class PaymentReconciler:
    def __init__(
        self,
        db: Session,
        gateway: PaymentGateway,
        notifier: Optional[NotificationService] = None,
        machine: Optional[OrderStateMachine] = None,
    ):
        self.db = db
        self.gateway = gateway
        self.repo = PaymentRepository()
        self.notifier = notifier or NotificationService(db)
        self.machine = machine or OrderStateMachine(db, self.notifier)

    # ------------------------------------------------------------------
    # Charging
    # ------------------------------------------------------------------

    async def create_payment(
        self, order_id: str, payment_method_id: str, customer: User
    ) -> tuple[Payment, ChargeResult]:
        """
        Persist a pending payment for a confirmed order, then charge it.

        Raises:
            NotFound: order or active payment method not owned by the customer
            OrderNotConfirmed: order is not confirmed
            PaymentAlreadyExists: order already has a pending or paid payment
            GatewayRejected: gateway refused the charge; the payment is marked failed
            GatewayError: gateway unreachable; the payment stays pending for a retry
        """
        order = self.repo.get_customer_order(self.db, order_id, customer.id)
        if not order:
            raise NotFound("Order not found")
        if OrderStatus(order.status) != OrderStatus.CONFIRMED:
            raise OrderNotConfirmed()

        method = self.repo.get_method(self.db, payment_method_id, customer.id, active_only=True)
        if not method:
            raise NotFound("Payment method not found")

        if self.repo.get_active_payment_for_order(self.db, order.id):
            raise PaymentAlreadyExists()

        payment = Payment(
            order_id=order.id,
            payment_method_id=method.id,
            amount=order.total_price,
            status=PaymentStatus.PENDING,
            payment_reference=generate_payment_reference(order),
        )
        self.db.add(payment)
        try:
            self.db.commit()
        except IntegrityError as e:
            # uq_payments_order_active: a concurrent request created one first
            self.db.rollback()
            raise PaymentAlreadyExists() from e
        self.db.refresh(payment)
        logger.info(f"💳 Payment {payment.payment_reference} created for order {order.order_number}")

        charge = await self._charge(payment, order, method)
        return payment, charge

    async def retry_charge(self, payment_id: str, customer: User) -> tuple[Payment, ChargeResult]:
        """Re-issue the charge for a pending payment whose first charge never reached the gateway"""
        payment = self.repo.get_customer_payment(self.db, payment_id, customer.id)
        if not payment:
            raise NotFound("Payment not found")
        if PaymentStatus(payment.status) != PaymentStatus.PENDING:
            raise PolicyViolation("Only pending payments can be retried")
        if payment.gateway_transaction_id:
            raise PolicyViolation("Payment already has an active charge")
        if OrderStatus(payment.order.status) != OrderStatus.CONFIRMED:
            raise OrderNotConfirmed()

        method = payment.payment_method
        if not method or not method.is_active:
            raise PolicyViolation("Payment method is no longer active")

        logger.info(f"🔁 Retrying charge for payment {payment.payment_reference}")
        charge = await self._charge(payment, payment.order, method)
        return payment, charge

    async def _charge(self, payment: Payment, order: Order, method: PaymentMethod) -> ChargeResult:
        customer = order.customer
        try:
            result = await self.gateway.charge(
                transaction_id=payment.payment_reference,
                amount=payment.amount,
                customer={
                    "first_name": customer.full_name if customer else None,
                    "email": customer.email if customer else None,
                    "phone": customer.phone if customer else None,
                },
                items=[
                    {
                        "id": order.service_id,
                        "price": payment.amount,
                        "quantity": 1,
                        "name": f"CleanAceh - {order.order_number}",
                    }
                ],
                channel_params=channel_params_for(method),
            )
        except GatewayRejected as e:
            self._fail_rejected(payment, e)
            raise
        except GatewayError as e:
            logger.error(f"❌ Charge failed for payment {payment.payment_reference}, left pending: {e.message}")
            raise

        if result.transaction_id:
            payment.gateway_transaction_id = result.transaction_id
            self.db.commit()
            self.db.refresh(payment)
        return result

    def _fail_rejected(self, payment: Payment, error: GatewayRejected) -> None:
        """Close a payment the gateway refused so the order can be paid with a new one"""
        moved = self.repo.compare_and_set_status(
            self.db,
            payment.id,
            PaymentStatus.PENDING,
            {"status": PaymentStatus.FAILED, "updated_at": utcnow()},
        )
        self.db.commit()
        self.db.refresh(payment)
        if moved:
            logger.warning(
                f"⚠️ Charge rejected for payment {payment.payment_reference}, marked failed: {error.message}"
            )
        else:
            logger.info(
                f"ℹ️ Charge rejected for payment {payment.payment_reference}, "
                f"already {PaymentStatus(payment.status).value}"
            )

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    def reconcile_webhook(self, notification: MidtransNotification) -> WebhookOutcome:
        payment = self.repo.get_by_reference(self.db, notification.order_id)
        if not payment:
            logger.warning(f"⚠️ Payment not found for order_id: {notification.order_id}")
            return WebhookOutcome(WebhookOutcome.NOT_FOUND)

        current = PaymentStatus(payment.status)
        target = map_transaction_status(notification.transaction_status, notification.fraud_status)

        if target is None or target == current:
            logger.info(
                f"ℹ️ Notification for {payment.payment_reference} ({notification.transaction_status}) "
                f"needs no change from {current.value}"
            )
            return WebhookOutcome(WebhookOutcome.DUPLICATE, payment.id, current.value)

        if target not in PAYMENT_TRANSITIONS[current]:
            logger.warning(
                f"⚠️ Ignoring out-of-order notification for {payment.payment_reference}: "
                f"{current.value} → {target.value} not allowed"
            )
            return WebhookOutcome(WebhookOutcome.IGNORED, payment.id, current.value)

        now = utcnow()
        values = {"status": target, "updated_at": now}
        if target == PaymentStatus.PAID:
            values["paid_at"] = now
        if notification.transaction_id and not payment.gateway_transaction_id:
            values["gateway_transaction_id"] = notification.transaction_id

        if not self.repo.compare_and_set_status(self.db, payment.id, current, values):
            # A concurrent delivery of the same notification won
            self.db.rollback()
            logger.info(f"ℹ️ Payment {payment.payment_reference} already moved by a concurrent notification")
            return WebhookOutcome(WebhookOutcome.DUPLICATE, payment.id, target.value)

        record = None
        order = OrderRepository.get_order(self.db, payment.order_id)
        if target == PaymentStatus.PAID and order and OrderStatus(order.status) == OrderStatus.PENDING:
            record = self.machine.apply(order, OrderStatus.CONFIRMED, SYSTEM_ACTOR, "Payment received")

        self.db.commit()
        logger.info(f"✅ Payment {payment.payment_reference}: {current.value} → {target.value}")

        if record:
            self.machine.after_commit(record)
        if target == PaymentStatus.PAID and order:
            self.notifier.notify(
                order.customer_id,
                "Payment Successful",
                "Your payment has been confirmed",
                "payment",
                payment.id,
            )

        return WebhookOutcome(WebhookOutcome.PROCESSED, payment.id, target.value)
