"""Order service - Business logic for booking and managing orders"""

import logging
import secrets
import time as _time
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...errors import Conflict, DoubleBooked, Forbidden, NotFound, PolicyViolation
from ...models import Order, OrderStatus, User, UserType
from ...services.cleaner_stats import CleanerStatsService
from ...services.notification_service import NotificationService
from ...shared.clock import local_today
from ...shared.responses import Pagination
from ...shared.validators import parse_hhmm
from .cancellation import compute_cancellation_fee
from .pricing import validate_total
from .repository import OrderRepository
from .schedule_matcher import is_bookable
from .schemas import OrderCreate
from .state_machine import (
    CUSTOMER_CANCELLABLE,
    Actor,
    OrderStateMachine,
    is_order_cleaner,
    is_order_customer,
)

logger = logging.getLogger(__name__)

# Statuses a cleaner may still cancel from via the cancel endpoint
CLEANER_CANCELLABLE = frozenset({OrderStatus.PENDING, OrderStatus.CONFIRMED, OrderStatus.ON_THE_WAY})


def generate_order_number() -> str:
    """CA + last 6 digits of the epoch millis + 3 random digits"""
    millis = str(int(_time.time() * 1000))
    return f"CA{millis[-6:]}{secrets.randbelow(1000):03d}"


@dataclass
class CancellationResult:
    order: Order
    fee: int
    reason: str


class OrderService:
    """Service layer for order business logic"""

    def __init__(
        self,
        db: Session,
        notifier: Optional[NotificationService] = None,
        stats: Optional[CleanerStatsService] = None,
    ):
        self.db = db
        self.repo = OrderRepository()
        self.notifier = notifier or NotificationService(db)
        self.machine = OrderStateMachine(db, self.notifier, stats)

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create_order(self, data: OrderCreate, customer: User) -> Order:
        """Book a cleaner. Gated by the schedule matcher and the price check."""
        logger.info(f"📥 Creating order for customer {customer.id} with cleaner {data.cleanerId}")

        if data.serviceDate < local_today():
            raise PolicyViolation("Service date cannot be in the past")

        cleaner = self.repo.get_cleaner_profile(self.db, data.cleanerId)
        if not cleaner:
            raise NotFound("Cleaner not found")
        if not cleaner.user or cleaner.user.status != "active":
            raise PolicyViolation("Cleaner is currently inactive")
        if not cleaner.is_available:
            raise PolicyViolation("Cleaner is currently unavailable")

        service = self.repo.get_service(self.db, data.serviceId)
        if not service:
            raise NotFound("Service not found")
        if not service.is_active:
            raise PolicyViolation("Service is currently unavailable")

        if data.addressId and not self.repo.get_customer_address(self.db, data.addressId, customer.id):
            raise NotFound("Address not found")

        quote = validate_total(
            data.basePrice,
            data.additionalServicesPrice,
            data.platformFee,
            data.taxAmount,
            data.totalPrice,
        )

        start_time = parse_hhmm(data.startTime)
        end_time = parse_hhmm(data.endTime) if data.endTime else None
        is_bookable(self.db, cleaner.id, data.serviceDate, start_time, end_time).raise_for_reason()

        order = Order(
            order_number=generate_order_number(),
            customer_id=customer.id,
            cleaner_id=cleaner.id,
            service_id=service.id,
            address_id=data.addressId,
            service_address=data.serviceAddress,
            status=OrderStatus.PENDING,
            service_date=data.serviceDate,
            start_time=start_time,
            end_time=end_time,
            base_price=data.basePrice,
            additional_services_price=data.additionalServicesPrice,
            platform_fee=data.platformFee,
            tax_amount=quote.computed_tax,
            total_price=data.totalPrice,
            additional_services=data.additionalServices,
            special_instructions=data.specialInstructions,
        )
        self.db.add(order)
        try:
            self.db.flush()
            self.repo.add_history(self.db, order.id, None, OrderStatus.PENDING, customer.id, "Order created")
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            # The partial unique index on (cleaner_id, service_date) lost a race
            if self.repo.has_active_order_on(self.db, data.cleanerId, data.serviceDate):
                logger.warning(f"⚠️ Double booking blocked for cleaner {data.cleanerId} on {data.serviceDate}")
                raise DoubleBooked() from e
            logger.error(f"❌ Failed to create order: {e}")
            raise Conflict("Order could not be created, please retry") from e

        self.db.refresh(order)
        logger.info(f"✅ Order {order.order_number} created")

        self.notifier.notify(
            cleaner.user_id,
            "New Order",
            f"You have a new order for {service.name} on {data.serviceDate.isoformat()}",
            "order",
            order.id,
        )
        return self.repo.get_order_detail(self.db, order.id)

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def _scope(self, user: User) -> dict:
        """Repository filters restricting queries to the user's own orders"""
        if user.user_type == UserType.CUSTOMER:
            return {"customer_id": user.id}
        if user.user_type == UserType.CLEANER:
            profile = self.repo.get_cleaner_profile_for_user(self.db, user.id)
            if not profile:
                raise NotFound("Cleaner profile not found")
            return {"cleaner_id": profile.id}
        return {}

    def list_orders(
        self,
        user: User,
        pagination: Pagination,
        statuses: Optional[list[OrderStatus]] = None,
        sort_by: str = "created_at",
        sort_order: str = "desc",
    ) -> tuple[list[Order], int]:
        return self.repo.list_orders(
            self.db,
            statuses=statuses,
            sort_by=sort_by,
            sort_order=sort_order,
            offset=pagination.offset,
            limit=pagination.limit,
            **self._scope(user),
        )

    def get_order(self, order_id: str, user: User) -> Order:
        order = self.repo.get_order_detail(self.db, order_id)
        if not order:
            raise NotFound("Order not found")

        actor = Actor.from_user(user)
        if not (
            user.user_type == UserType.ADMIN
            or (user.user_type == UserType.CUSTOMER and is_order_customer(order, actor))
            or (user.user_type == UserType.CLEANER and is_order_cleaner(order, actor))
        ):
            raise Forbidden("You do not have access to this order")
        return order

    def get_stats(self, user: User) -> dict:
        scope = self._scope(user)
        statuses = [OrderStatus(s) for s in self.repo.status_values(self.db, **scope)]

        def count(status: OrderStatus) -> int:
            return sum(1 for s in statuses if s == status)

        return {
            "total": len(statuses),
            "pending": count(OrderStatus.PENDING),
            "confirmed": count(OrderStatus.CONFIRMED),
            "onTheWay": count(OrderStatus.ON_THE_WAY),
            "inProgress": count(OrderStatus.IN_PROGRESS),
            "completed": count(OrderStatus.COMPLETED),
            "cancelled": count(OrderStatus.CANCELLED),
            "recentOrders": self.repo.recent_orders(self.db, **scope),
        }

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def _load_for_update(self, order_id: str) -> Order:
        order = self.repo.get_order(self.db, order_id)
        if not order:
            raise NotFound("Order not found")
        return order

    def update_status(self, order_id: str, target: OrderStatus, user: User, notes: Optional[str] = None) -> Order:
        order = self._load_for_update(order_id)
        self.machine.transition(order, target, Actor.from_user(user), notes)
        return order

    def cancel_order(self, order_id: str, user: User, reason: Optional[str] = None) -> CancellationResult:
        """
        Cancel through the state machine and disclose the late-cancellation fee.

        Customers may cancel pending/confirmed orders, assigned cleaners
        pending/confirmed/on_the_way orders, admins anything still cancellable.
        """
        order = self._load_for_update(order_id)
        actor = Actor.from_user(user)
        status = OrderStatus(order.status)

        if user.user_type == UserType.CUSTOMER:
            if not is_order_customer(order, actor):
                raise Forbidden("You do not have access to this order")
            allowed = status in CUSTOMER_CANCELLABLE
        elif user.user_type == UserType.CLEANER:
            if not is_order_cleaner(order, actor):
                raise Forbidden("You do not have access to this order")
            allowed = status in CLEANER_CANCELLABLE
        else:
            allowed = True

        if status == OrderStatus.CANCELLED:
            raise PolicyViolation("Order has already been cancelled")
        if not allowed:
            raise PolicyViolation("Order cannot be cancelled in its current status")

        fee = compute_cancellation_fee(order)
        reason = reason or "Order cancelled"
        notes = f"{reason} (cancellation fee: {fee})" if fee else reason

        self.machine.transition(order, OrderStatus.CANCELLED, actor, notes)
        logger.info(f"🚫 Order {order.order_number} cancelled by {actor.role}, fee {fee}")
        return CancellationResult(order=order, fee=fee, reason=reason)
