"""Payment service - Payment history and saved payment methods"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from ...errors import Conflict, NotFound, PolicyViolation
from ...models import Payment, PaymentMethod, PaymentStatus, User
from ...shared.responses import Pagination
from .repository import PaymentRepository
from .schemas import PaymentMethodCreate

logger = logging.getLogger(__name__)


class PaymentService:
    """Read side of payments plus payment method management"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = PaymentRepository()

    def get_history(
        self, customer: User, pagination: Pagination, status: Optional[PaymentStatus] = None
    ) -> tuple[list[Payment], int]:
        return self.repo.list_customer_payments(
            self.db, customer.id, status, offset=pagination.offset, limit=pagination.limit
        )

    def get_payment(self, payment_id: str, customer: User) -> Payment:
        payment = self.repo.get_customer_payment(self.db, payment_id, customer.id)
        if not payment:
            raise NotFound("Payment not found")
        return payment

    def list_methods(self, user: User) -> list[PaymentMethod]:
        return self.repo.list_active_methods(self.db, user.id)

    def add_method(self, data: PaymentMethodCreate, user: User) -> PaymentMethod:
        if self.repo.get_active_method_by_provider(self.db, user.id, data.provider):
            raise Conflict(f"{data.provider} is already registered")

        method = self.repo.create_method(
            self.db,
            user.id,
            type=data.type,
            provider=data.provider,
            account_number=data.accountNumber,
            account_name=data.accountName,
        )
        logger.info(f"✅ Payment method {method.provider} added for user {user.id}")
        return method

    def delete_method(self, method_id: str, user: User) -> None:
        """Soft delete; payment history keeps pointing at the row"""
        method = self.repo.get_method(self.db, method_id, user.id)
        if not method:
            raise NotFound("Payment method not found")
        if self.repo.method_has_pending_payment(self.db, method.id):
            raise PolicyViolation("Payment method is in use by a pending payment")

        self.repo.deactivate_method(self.db, method)
        logger.info(f"🗑️ Payment method {method.id} deactivated for user {user.id}")
