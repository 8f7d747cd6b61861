"""
Order lifecycle state machine.

ORDER_TRANSITIONS is the only place legal moves are defined:

    pending     -> confirmed, cancelled
    confirmed   -> on_the_way, cancelled
    on_the_way  -> in_progress, cancelled
    in_progress -> completed
    completed, cancelled are terminal

Every move goes through OrderStateMachine, which checks the actor, writes the
new status with a compare-and-set UPDATE, stamps the lifecycle timestamp,
appends a history row and, after commit, notifies the other party.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from ...errors import Conflict, Forbidden, InvalidTransition
from ...models import Order, OrderStatus, User, UserType
from ...services.cleaner_stats import CleanerStatsService
from ...services.notification_service import NotificationService
from ...shared.clock import utcnow
from .repository import OrderRepository

logger = logging.getLogger(__name__)

ORDER_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.CONFIRMED, OrderStatus.CANCELLED}),
    OrderStatus.CONFIRMED: frozenset({OrderStatus.ON_THE_WAY, OrderStatus.CANCELLED}),
    OrderStatus.ON_THE_WAY: frozenset({OrderStatus.IN_PROGRESS, OrderStatus.CANCELLED}),
    OrderStatus.IN_PROGRESS: frozenset({OrderStatus.COMPLETED}),
    OrderStatus.COMPLETED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

# on_the_way has no timestamp of its own
TRANSITION_TIMESTAMPS = {
    OrderStatus.CONFIRMED: "confirmed_at",
    OrderStatus.IN_PROGRESS: "started_at",
    OrderStatus.COMPLETED: "completed_at",
    OrderStatus.CANCELLED: "cancelled_at",
}

CUSTOMER_CANCELLABLE = frozenset({OrderStatus.PENDING, OrderStatus.CONFIRMED})

SYSTEM_ROLE = "system"


@dataclass(frozen=True)
class Actor:
    """Who is asking for a transition. The system actor has no user id."""

    role: str
    user_id: Optional[str] = None

    @classmethod
    def from_user(cls, user: User) -> "Actor":
        return cls(role=UserType(user.user_type).value, user_id=user.id)

    @property
    def is_system(self) -> bool:
        return self.role == SYSTEM_ROLE


SYSTEM_ACTOR = Actor(role=SYSTEM_ROLE)


@dataclass
class TransitionRecord:
    order: Order
    old_status: OrderStatus
    new_status: OrderStatus
    actor: Actor
    at: datetime


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    return target in ORDER_TRANSITIONS[OrderStatus(current)]


def is_order_customer(order: Order, actor: Actor) -> bool:
    return actor.user_id is not None and order.customer_id == actor.user_id


def is_order_cleaner(order: Order, actor: Actor) -> bool:
    return actor.user_id is not None and order.cleaner is not None and order.cleaner.user_id == actor.user_id


def authorize(order: Order, actor: Actor, target: OrderStatus) -> None:
    """
    Raises:
        Forbidden: actor may not request `target` on this order
    """
    if actor.is_system or actor.role == UserType.ADMIN.value:
        return
    if actor.role == UserType.CLEANER.value and is_order_cleaner(order, actor):
        return
    if (
        actor.role == UserType.CUSTOMER.value
        and is_order_customer(order, actor)
        and target == OrderStatus.CANCELLED
        and OrderStatus(order.status) in CUSTOMER_CANCELLABLE
    ):
        return
    raise Forbidden("You do not have permission to change the status of this order")


class OrderStateMachine:
    def __init__(
        self,
        db: Session,
        notifier: Optional[NotificationService] = None,
        stats: Optional[CleanerStatsService] = None,
    ):
        self.db = db
        self.repo = OrderRepository()
        self.notifier = notifier or NotificationService(db)
        self.stats = stats or CleanerStatsService(db)

    def apply(
        self, order: Order, target: OrderStatus, actor: Actor, notes: Optional[str] = None
    ) -> TransitionRecord:
        """
        Validate and write one transition inside the caller's transaction.
        Nothing is committed and no side effects run.

        Raises:
            Forbidden: actor not allowed to make this move
            InvalidTransition: move not in ORDER_TRANSITIONS
            Conflict: order changed status concurrently
        """
        current = OrderStatus(order.status)
        target = OrderStatus(target)

        authorize(order, actor, target)
        if not can_transition(current, target):
            raise InvalidTransition(current.value, target.value)

        now = utcnow()
        values = {"status": target, "updated_at": now}
        stamp = TRANSITION_TIMESTAMPS.get(target)
        if stamp:
            values[stamp] = now

        if not self.repo.compare_and_set_status(self.db, order.id, current, values):
            self.db.rollback()
            logger.warning(f"⚠️ Order {order.id} left {current.value} before {target.value} was applied")
            raise Conflict("Order status was changed by another request, please retry")

        self.repo.add_history(
            self.db,
            order.id,
            current,
            target,
            actor.user_id,
            notes or f"Status changed to {target.value}",
        )
        logger.info(f"🔄 Order {order.order_number}: {current.value} → {target.value} by {actor.role}")
        return TransitionRecord(order=order, old_status=current, new_status=target, actor=actor, at=now)

    def transition(
        self, order: Order, target: OrderStatus, actor: Actor, notes: Optional[str] = None
    ) -> TransitionRecord:
        """Apply, commit, then run side effects"""
        record = self.apply(order, target, actor, notes)
        self.db.commit()
        self.db.refresh(order)
        self.after_commit(record)
        return record

    def after_commit(self, record: TransitionRecord) -> None:
        """Notifications and stats. Failures are logged by the collaborators, never raised."""
        order = record.order
        status = record.new_status.value
        customer_id = order.customer_id
        cleaner_user_id = order.cleaner.user_id if order.cleaner else None

        if record.actor.role == UserType.CLEANER.value:
            recipients = [(customer_id, f"Your order status changed to {status}")]
        elif record.actor.role == UserType.CUSTOMER.value:
            recipients = [(cleaner_user_id, f"Customer changed the order status to {status}")]
        else:
            recipients = [
                (customer_id, f"Your order status changed to {status}"),
                (cleaner_user_id, f"Order #{order.order_number} status changed to {status}"),
            ]

        for user_id, message in recipients:
            self.notifier.notify(user_id, "Order Status Update", message, "order", order.id)

        if record.new_status == OrderStatus.COMPLETED:
            self.stats.record_completed_job(order.cleaner_id)
