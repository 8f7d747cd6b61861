"""
Pytest configuration and shared fixtures for the CleanAceh API tests.

Environment is set before the application is imported so config.py reads
test values. Each test gets a fresh in-memory SQLite database.
"""

import os

os.environ["APP_ENV"] = "test"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_SECRET"] = "test-secret-key-that-is-at-least-32-characters"
os.environ["MIDTRANS_SERVER_KEY"] = "SB-Mid-server-test-key"
os.environ["MIDTRANS_VERIFY_SIGNATURE"] = "true"
os.environ["DB_LOG_SLOW_QUERIES"] = "false"

from datetime import time, timedelta  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from cleanaceh.auth import create_access_token  # noqa: E402
from cleanaceh.database import Base, get_db, make_engine  # noqa: E402
from cleanaceh.domain.payments.gateway import (  # noqa: E402
    ChargeResult,
    PaymentGateway,
    get_payment_gateway,
)
from cleanaceh.errors import GatewayError, GatewayRejected  # noqa: E402
from cleanaceh.main import app  # noqa: E402
from cleanaceh.models import (  # noqa: E402
    CleanerProfile,
    CleanerSchedule,
    Order,
    OrderStatus,
    Payment,
    PaymentMethod,
    PaymentMethodType,
    PaymentStatus,
    Service,
    User,
    UserAddress,
    UserType,
)
from cleanaceh.shared.clock import local_today  # noqa: E402


class FakeGateway(PaymentGateway):
    """Records charges instead of calling Midtrans"""

    def __init__(self):
        self.calls = []
        self.fail = False
        self.reject = False

    async def charge(self, transaction_id, amount, customer, items, channel_params):
        self.calls.append(
            {
                "transaction_id": transaction_id,
                "amount": amount,
                "customer": customer,
                "items": items,
                "channel_params": channel_params,
            }
        )
        if self.fail:
            raise GatewayError("Midtrans charge failed with status 500")
        if self.reject:
            raise GatewayRejected("Midtrans charge rejected with status 406")
        return ChargeResult(
            transaction_id=f"midtrans-txn-{len(self.calls)}",
            status="pending",
            payment_type=channel_params.get("payment_type"),
            actions=[{"name": "deeplink-redirect", "url": "gojek://gopay/merchanttransfer?tref=1"}],
        )


@pytest.fixture
def engine():
    test_engine = make_engine("sqlite://")
    Base.metadata.create_all(bind=test_engine)
    yield test_engine
    Base.metadata.drop_all(bind=test_engine)
    test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def client(session_factory, gateway):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def _add(session, obj):
    session.add(obj)
    session.commit()
    session.refresh(obj)
    return obj


@pytest.fixture
def customer(db_session):
    return _add(
        db_session,
        User(email="sari@example.com", full_name="Sari Customer", phone="+6281234567890", user_type=UserType.CUSTOMER),
    )


@pytest.fixture
def other_customer(db_session):
    return _add(db_session, User(email="budi@example.com", full_name="Budi Customer", user_type=UserType.CUSTOMER))


@pytest.fixture
def cleaner_user(db_session):
    return _add(
        db_session,
        User(email="rina@example.com", full_name="Rina Cleaner", phone="+6281111111111", user_type=UserType.CLEANER),
    )


@pytest.fixture
def cleaner(db_session, cleaner_user):
    profile = _add(db_session, CleanerProfile(user_id=cleaner_user.id, is_available=True))
    for day in range(7):
        db_session.add(
            CleanerSchedule(cleaner_id=profile.id, day_of_week=day, start_time=time(8, 0), end_time=time(17, 0))
        )
    db_session.commit()
    return profile


@pytest.fixture
def other_cleaner_user(db_session):
    return _add(db_session, User(email="dewi@example.com", full_name="Dewi Cleaner", user_type=UserType.CLEANER))


@pytest.fixture
def other_cleaner(db_session, other_cleaner_user):
    return _add(db_session, CleanerProfile(user_id=other_cleaner_user.id, is_available=True))


@pytest.fixture
def admin(db_session):
    return _add(db_session, User(email="admin@example.com", full_name="Admin", user_type=UserType.ADMIN))


@pytest.fixture
def service(db_session):
    return _add(
        db_session,
        Service(name="Deep Cleaning", description="Whole-house deep clean", category="home", base_price=150000),
    )


@pytest.fixture
def address(db_session, customer):
    return _add(
        db_session,
        UserAddress(user_id=customer.id, label="Rumah", full_address="Jl. Teuku Umar 10", city="Banda Aceh"),
    )


@pytest.fixture
def service_date():
    return local_today() + timedelta(days=7)


@pytest.fixture
def make_order(db_session, customer, cleaner, service, service_date):
    """Insert an order directly, bypassing booking checks"""
    counter = {"n": 0}

    def factory(status=OrderStatus.PENDING, **overrides):
        counter["n"] += 1
        values = {
            "order_number": f"CA000000{counter['n']:03d}",
            "customer_id": customer.id,
            "cleaner_id": cleaner.id,
            "service_id": service.id,
            "service_address": "Jl. Teuku Umar 10",
            "status": status,
            "service_date": service_date + timedelta(days=counter["n"] - 1),
            "start_time": time(9, 0),
            "base_price": 150000,
            "additional_services_price": 30000,
            "platform_fee": 10000,
            "tax_amount": 19800,
            "total_price": 209800,
        }
        values.update(overrides)
        return _add(db_session, Order(**values))

    return factory


@pytest.fixture
def gopay_method(db_session, customer):
    return _add(
        db_session,
        PaymentMethod(user_id=customer.id, type=PaymentMethodType.EWALLET, provider="GoPay", account_number="081234567890"),
    )


@pytest.fixture
def make_payment(db_session, gopay_method):
    def factory(order, status=PaymentStatus.PENDING, reference=None, **overrides):
        values = {
            "order_id": order.id,
            "payment_method_id": gopay_method.id,
            "amount": order.total_price,
            "status": status,
            "payment_reference": reference or f"CA-{order.order_number}-1700000000000",
        }
        values.update(overrides)
        return _add(db_session, Payment(**values))

    return factory


def auth_headers(user):
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


@pytest.fixture
def customer_headers(customer):
    return auth_headers(customer)


@pytest.fixture
def other_customer_headers(other_customer):
    return auth_headers(other_customer)


@pytest.fixture
def cleaner_headers(cleaner, cleaner_user):
    return auth_headers(cleaner_user)


@pytest.fixture
def other_cleaner_headers(other_cleaner, other_cleaner_user):
    return auth_headers(other_cleaner_user)


@pytest.fixture
def admin_headers(admin):
    return auth_headers(admin)
