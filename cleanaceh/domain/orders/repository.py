"""Order repository - Database operations for orders and cleaner schedules"""

from datetime import date
from typing import Optional

from sqlalchemy import update
from sqlalchemy.orm import Session, joinedload

from ...models import (
    ACTIVE_ORDER_STATUSES,
    CleanerProfile,
    CleanerSchedule,
    Order,
    OrderStatus,
    OrderStatusHistory,
    Service,
    UserAddress,
)

SORTABLE_FIELDS = {
    "created_at": Order.created_at,
    "service_date": Order.service_date,
    "total_price": Order.total_price,
}


class OrderRepository:
    """Repository for order database operations"""

    @staticmethod
    def get_order(db: Session, order_id: str) -> Optional[Order]:
        return (
            db.query(Order)
            .options(
                joinedload(Order.cleaner).joinedload(CleanerProfile.user),
                joinedload(Order.customer),
            )
            .filter(Order.id == order_id)
            .first()
        )

    @staticmethod
    def get_order_detail(db: Session, order_id: str) -> Optional[Order]:
        """Order with everything the detail view renders"""
        return (
            db.query(Order)
            .options(
                joinedload(Order.cleaner).joinedload(CleanerProfile.user),
                joinedload(Order.customer),
                joinedload(Order.service),
                joinedload(Order.address),
                joinedload(Order.status_history).joinedload(OrderStatusHistory.actor),
                joinedload(Order.payments),
            )
            .filter(Order.id == order_id)
            .first()
        )

    @staticmethod
    def list_orders(
        db: Session,
        customer_id: Optional[str] = None,
        cleaner_id: Optional[str] = None,
        statuses: Optional[list[OrderStatus]] = None,
        sort_by: str = "created_at",
        sort_order: str = "desc",
        offset: int = 0,
        limit: int = 10,
    ) -> tuple[list[Order], int]:
        """Filtered page of orders plus the total row count"""
        query = db.query(Order)
        if customer_id:
            query = query.filter(Order.customer_id == customer_id)
        if cleaner_id:
            query = query.filter(Order.cleaner_id == cleaner_id)
        if statuses:
            query = query.filter(Order.status.in_(statuses))

        total = query.count()

        column = SORTABLE_FIELDS.get(sort_by, Order.created_at)
        ordering = column.asc() if sort_order == "asc" else column.desc()
        orders = (
            query.options(
                joinedload(Order.service),
                joinedload(Order.cleaner).joinedload(CleanerProfile.user),
                joinedload(Order.customer),
                joinedload(Order.address),
            )
            .order_by(ordering, Order.id)
            .offset(offset)
            .limit(limit)
            .all()
        )
        return orders, total

    @staticmethod
    def recent_orders(
        db: Session, customer_id: Optional[str] = None, cleaner_id: Optional[str] = None, limit: int = 5
    ) -> list[Order]:
        query = db.query(Order).options(joinedload(Order.service))
        if customer_id:
            query = query.filter(Order.customer_id == customer_id)
        if cleaner_id:
            query = query.filter(Order.cleaner_id == cleaner_id)
        return query.order_by(Order.created_at.desc(), Order.id).limit(limit).all()

    @staticmethod
    def status_values(db: Session, customer_id: Optional[str] = None, cleaner_id: Optional[str] = None) -> list:
        query = db.query(Order.status)
        if customer_id:
            query = query.filter(Order.customer_id == customer_id)
        if cleaner_id:
            query = query.filter(Order.cleaner_id == cleaner_id)
        return [row[0] for row in query.all()]

    @staticmethod
    def has_active_order_on(db: Session, cleaner_id: str, service_date: date) -> bool:
        return (
            db.query(Order.id)
            .filter(
                Order.cleaner_id == cleaner_id,
                Order.service_date == service_date,
                Order.status.in_(ACTIVE_ORDER_STATUSES),
            )
            .first()
            is not None
        )

    @staticmethod
    def compare_and_set_status(db: Session, order_id: str, expected: OrderStatus, values: dict) -> bool:
        """
        Write `values` only while the order still has status `expected`.

        Returns False when another writer moved the order first.
        """
        result = db.execute(
            update(Order)
            .where(Order.id == order_id, Order.status == expected)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    @staticmethod
    def add_history(
        db: Session,
        order_id: str,
        old_status: Optional[OrderStatus],
        new_status: OrderStatus,
        changed_by: Optional[str],
        notes: Optional[str],
    ) -> OrderStatusHistory:
        entry = OrderStatusHistory(
            order_id=order_id,
            old_status=old_status.value if old_status else None,
            new_status=new_status.value,
            changed_by=changed_by,
            notes=notes,
        )
        db.add(entry)
        return entry

    # Collaborators read while booking

    @staticmethod
    def get_cleaner_profile(db: Session, cleaner_id: str) -> Optional[CleanerProfile]:
        return (
            db.query(CleanerProfile)
            .options(joinedload(CleanerProfile.user))
            .filter(CleanerProfile.id == cleaner_id)
            .first()
        )

    @staticmethod
    def get_cleaner_profile_for_user(db: Session, user_id: str) -> Optional[CleanerProfile]:
        return db.query(CleanerProfile).filter(CleanerProfile.user_id == user_id).first()

    @staticmethod
    def get_service(db: Session, service_id: str) -> Optional[Service]:
        return db.query(Service).filter(Service.id == service_id).first()

    @staticmethod
    def get_customer_address(db: Session, address_id: str, user_id: str) -> Optional[UserAddress]:
        return (
            db.query(UserAddress)
            .filter(UserAddress.id == address_id, UserAddress.user_id == user_id)
            .first()
        )

    @staticmethod
    def get_schedule(db: Session, cleaner_id: str, day_of_week: int) -> Optional[CleanerSchedule]:
        return (
            db.query(CleanerSchedule)
            .filter(CleanerSchedule.cleaner_id == cleaner_id, CleanerSchedule.day_of_week == day_of_week)
            .first()
        )
