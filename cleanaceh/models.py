import enum
import uuid

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Time,
    UniqueConstraint,
    event,
    text,
)
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base
from .errors import InternalError
from .shared.clock import utcnow


def generate_uuid():
    return str(uuid.uuid4())


def _enum_column(enum_cls, name: str):
    # Stored as VARCHAR holding the enum value so partial indexes can filter on it
    return SAEnum(
        enum_cls,
        name=name,
        native_enum=False,
        length=20,
        values_callable=lambda members: [m.value for m in members],
    )


class UserType(str, enum.Enum):
    CUSTOMER = "customer"
    CLEANER = "cleaner"
    ADMIN = "admin"


class OrderStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    ON_THE_WAY = "on_the_way"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# Statuses that hold the cleaner's day
ACTIVE_ORDER_STATUSES = (
    OrderStatus.PENDING,
    OrderStatus.CONFIRMED,
    OrderStatus.ON_THE_WAY,
    OrderStatus.IN_PROGRESS,
)


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


class PaymentMethodType(str, enum.Enum):
    EWALLET = "ewallet"
    BANK_TRANSFER = "bank_transfer"


_ACTIVE_ORDER_SQL = "status IN ('pending', 'confirmed', 'on_the_way', 'in_progress')"
_ACTIVE_PAYMENT_SQL = "status IN ('pending', 'paid')"


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    email = Column(String(255), unique=True, index=True, nullable=False)
    phone = Column(String(50), nullable=True)
    full_name = Column(String(255), nullable=True)
    profile_picture_url = Column(String(500), nullable=True)
    user_type = Column(_enum_column(UserType, "user_type"), nullable=False, default=UserType.CUSTOMER)
    status = Column(String(20), nullable=False, default="active")  # active, suspended, inactive
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    cleaner_profile = relationship("CleanerProfile", back_populates="user", uselist=False)
    addresses = relationship("UserAddress", back_populates="user")
    payment_methods = relationship("PaymentMethod", back_populates="user")


class CleanerProfile(Base):
    __tablename__ = "cleaner_profiles"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey("users.id"), unique=True, nullable=False)
    is_available = Column(Boolean, default=True, nullable=False)
    total_jobs = Column(Integer, default=0, nullable=False)
    total_reviews = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, server_default=func.now())

    user = relationship("User", back_populates="cleaner_profile")
    schedules = relationship(
        "CleanerSchedule", back_populates="cleaner", order_by="CleanerSchedule.day_of_week"
    )


class Service(Base):
    __tablename__ = "services"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String(100), nullable=True)
    base_price = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now())


class UserAddress(Base):
    __tablename__ = "user_addresses"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    label = Column(String(100), nullable=True)  # e.g. "Rumah", "Kantor"
    full_address = Column(String(500), nullable=False)
    city = Column(String(100), nullable=True)
    postal_code = Column(String(20), nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    user = relationship("User", back_populates="addresses")


class CleanerSchedule(Base):
    __tablename__ = "cleaner_schedules"
    __table_args__ = (UniqueConstraint("cleaner_id", "day_of_week", name="uq_cleaner_schedule_day"),)

    id = Column(String(36), primary_key=True, default=generate_uuid)
    cleaner_id = Column(String(36), ForeignKey("cleaner_profiles.id"), nullable=False, index=True)
    day_of_week = Column(Integer, nullable=False)  # 0 = Sunday ... 6 = Saturday
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    is_available = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now())

    cleaner = relationship("CleanerProfile", back_populates="schedules")


class Order(Base):
    __tablename__ = "orders"
    __table_args__ = (
        # One active job per cleaner per day, enforced by the database on insert
        Index(
            "uq_orders_cleaner_active_day",
            "cleaner_id",
            "service_date",
            unique=True,
            postgresql_where=text(_ACTIVE_ORDER_SQL),
            sqlite_where=text(_ACTIVE_ORDER_SQL),
        ),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid)
    order_number = Column(String(20), unique=True, index=True, nullable=False)
    customer_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    cleaner_id = Column(String(36), ForeignKey("cleaner_profiles.id"), nullable=False, index=True)
    service_id = Column(String(36), ForeignKey("services.id"), nullable=False)
    address_id = Column(String(36), ForeignKey("user_addresses.id"), nullable=True)
    service_address = Column(String(500), nullable=True)
    status = Column(_enum_column(OrderStatus, "order_status"), nullable=False, default=OrderStatus.PENDING)
    service_date = Column(Date, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=True)
    # Amounts are integers in currency minor units (IDR)
    base_price = Column(Integer, nullable=False)
    additional_services_price = Column(Integer, nullable=False, default=0)
    platform_fee = Column(Integer, nullable=False, default=0)
    tax_amount = Column(Integer, nullable=False, default=0)
    total_price = Column(Integer, nullable=False)
    additional_services = Column(JSON, default=list, nullable=True)
    special_instructions = Column(Text, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
    confirmed_at = Column(DateTime, nullable=True)
    started_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)

    customer = relationship("User", foreign_keys=[customer_id])
    cleaner = relationship("CleanerProfile")
    service = relationship("Service")
    address = relationship("UserAddress")
    status_history = relationship(
        "OrderStatusHistory", back_populates="order", order_by="OrderStatusHistory.created_at"
    )
    payments = relationship("Payment", back_populates="order", order_by="Payment.created_at")


class OrderStatusHistory(Base):
    """Append-only audit log, one row per status transition."""

    __tablename__ = "order_status_history"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    order_id = Column(String(36), ForeignKey("orders.id"), nullable=False, index=True)
    old_status = Column(String(20), nullable=True)
    new_status = Column(String(20), nullable=False)
    changed_by = Column(String(36), ForeignKey("users.id"), nullable=True)  # NULL for system
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    order = relationship("Order", back_populates="status_history")
    actor = relationship("User")


@event.listens_for(OrderStatusHistory, "before_update")
def _reject_history_update(mapper, connection, target):
    raise InternalError("order_status_history rows are immutable")


@event.listens_for(OrderStatusHistory, "before_delete")
def _reject_history_delete(mapper, connection, target):
    raise InternalError("order_status_history rows cannot be deleted")


class PaymentMethod(Base):
    __tablename__ = "payment_methods"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    type = Column(_enum_column(PaymentMethodType, "payment_method_type"), nullable=False)
    provider = Column(String(50), nullable=False)  # GoPay, ShopeePay, BCA, BNI, Mandiri, ...
    account_number = Column(String(20), nullable=True)
    account_name = Column(String(100), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)  # soft delete keeps payment history intact
    created_at = Column(DateTime, server_default=func.now())

    user = relationship("User", back_populates="payment_methods")


class Payment(Base):
    __tablename__ = "payments"
    __table_args__ = (
        Index(
            "uq_payments_order_active",
            "order_id",
            unique=True,
            postgresql_where=text(_ACTIVE_PAYMENT_SQL),
            sqlite_where=text(_ACTIVE_PAYMENT_SQL),
        ),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid)
    order_id = Column(String(36), ForeignKey("orders.id"), nullable=False, index=True)
    payment_method_id = Column(String(36), ForeignKey("payment_methods.id"), nullable=True)
    amount = Column(Integer, nullable=False)
    status = Column(_enum_column(PaymentStatus, "payment_status"), nullable=False, default=PaymentStatus.PENDING)
    # Merchant order id sent to the gateway; notifications echo it back as `order_id`
    payment_reference = Column(String(100), unique=True, index=True, nullable=False)
    gateway_transaction_id = Column(String(100), nullable=True, index=True)
    paid_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    order = relationship("Order", back_populates="payments")
    payment_method = relationship("PaymentMethod")


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    type = Column(String(50), nullable=False)  # order, payment
    related_id = Column(String(36), nullable=True)
    is_read = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
