"""Payment repository - Database operations for payments and payment methods"""

from typing import Optional

from sqlalchemy import update
from sqlalchemy.orm import Session, joinedload

from ...models import CleanerProfile, Order, Payment, PaymentMethod, PaymentStatus

ACTIVE_PAYMENT_STATUSES = (PaymentStatus.PENDING, PaymentStatus.PAID)


class PaymentRepository:
    """Repository for payment database operations"""

    @staticmethod
    def get_customer_order(db: Session, order_id: str, customer_id: str) -> Optional[Order]:
        return (
            db.query(Order)
            .options(joinedload(Order.customer), joinedload(Order.cleaner).joinedload(CleanerProfile.user))
            .filter(Order.id == order_id, Order.customer_id == customer_id)
            .first()
        )

    @staticmethod
    def get_active_payment_for_order(db: Session, order_id: str) -> Optional[Payment]:
        return (
            db.query(Payment)
            .filter(Payment.order_id == order_id, Payment.status.in_(ACTIVE_PAYMENT_STATUSES))
            .first()
        )

    @staticmethod
    def get_by_reference(db: Session, reference: str) -> Optional[Payment]:
        return db.query(Payment).filter(Payment.payment_reference == reference).first()

    @staticmethod
    def get_customer_payment(db: Session, payment_id: str, customer_id: str) -> Optional[Payment]:
        return (
            db.query(Payment)
            .join(Order, Payment.order_id == Order.id)
            .options(
                joinedload(Payment.order).joinedload(Order.service),
                joinedload(Payment.order).joinedload(Order.customer),
                joinedload(Payment.payment_method),
            )
            .filter(Payment.id == payment_id, Order.customer_id == customer_id)
            .first()
        )

    @staticmethod
    def list_customer_payments(
        db: Session,
        customer_id: str,
        status: Optional[PaymentStatus] = None,
        offset: int = 0,
        limit: int = 10,
    ) -> tuple[list[Payment], int]:
        query = db.query(Payment).join(Order, Payment.order_id == Order.id).filter(Order.customer_id == customer_id)
        if status:
            query = query.filter(Payment.status == status)
        total = query.count()
        payments = (
            query.options(
                joinedload(Payment.order).joinedload(Order.service),
                joinedload(Payment.payment_method),
            )
            .order_by(Payment.created_at.desc(), Payment.id)
            .offset(offset)
            .limit(limit)
            .all()
        )
        return payments, total

    @staticmethod
    def compare_and_set_status(db: Session, payment_id: str, expected: PaymentStatus, values: dict) -> bool:
        result = db.execute(
            update(Payment)
            .where(Payment.id == payment_id, Payment.status == expected)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    # Payment methods

    @staticmethod
    def list_active_methods(db: Session, user_id: str) -> list[PaymentMethod]:
        return (
            db.query(PaymentMethod)
            .filter(PaymentMethod.user_id == user_id, PaymentMethod.is_active.is_(True))
            .order_by(PaymentMethod.created_at.desc(), PaymentMethod.id)
            .all()
        )

    @staticmethod
    def get_method(db: Session, method_id: str, user_id: str, active_only: bool = False) -> Optional[PaymentMethod]:
        query = db.query(PaymentMethod).filter(PaymentMethod.id == method_id, PaymentMethod.user_id == user_id)
        if active_only:
            query = query.filter(PaymentMethod.is_active.is_(True))
        return query.first()

    @staticmethod
    def get_active_method_by_provider(db: Session, user_id: str, provider: str) -> Optional[PaymentMethod]:
        return (
            db.query(PaymentMethod)
            .filter(
                PaymentMethod.user_id == user_id,
                PaymentMethod.provider == provider,
                PaymentMethod.is_active.is_(True),
            )
            .first()
        )

    @staticmethod
    def method_has_pending_payment(db: Session, method_id: str) -> bool:
        return (
            db.query(Payment.id)
            .filter(Payment.payment_method_id == method_id, Payment.status == PaymentStatus.PENDING)
            .first()
            is not None
        )

    @staticmethod
    def create_method(db: Session, user_id: str, **method_data) -> PaymentMethod:
        method = PaymentMethod(user_id=user_id, is_active=True, **method_data)
        db.add(method)
        db.commit()
        db.refresh(method)
        return method

    @staticmethod
    def deactivate_method(db: Session, method: PaymentMethod) -> None:
        method.is_active = False
        db.commit()
