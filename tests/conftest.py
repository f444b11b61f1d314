import itertools
import os
from datetime import datetime, timedelta

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["DB_LOG_SLOW_QUERIES"] = "false"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from booking_engine.database import Base, get_db
from booking_engine.domain.bookings.numbering import generate_booking_number
from booking_engine.domain.payments import stripe_service as stripe_module
from booking_engine.main import app
from booking_engine.models import (
    AddOn,
    Booking,
    BookingStatus,
    CorporateOrg,
    CorporatePackage,
    OrgSeat,
    Payment,
    PaymentStatus,
    Product,
    User,
    UserRole,
)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def _save(db, obj):
    db.add(obj)
    db.commit()
    db.refresh(obj)
    return obj


@pytest.fixture
def make_user(db):
    counter = itertools.count(1)

    def _make(role=UserRole.CUSTOMER, name=None):
        n = next(counter)
        return _save(db, User(name=name or f"User {n}", email=f"user{n}@example.com", role=role))

    return _make


@pytest.fixture
def customer(make_user):
    return make_user(UserRole.CUSTOMER, "Casey Customer")


@pytest.fixture
def staff(make_user):
    return make_user(UserRole.STAFF, "Sam Staff")


@pytest.fixture
def admin(make_user):
    return make_user(UserRole.ADMIN, "Alex Admin")


@pytest.fixture
def make_org(db):
    def _make(name="Acme Corp", discount_percent=0, is_active=True):
        return _save(
            db, CorporateOrg(name=name, discount_percent=discount_percent, is_active=is_active)
        )

    return _make


@pytest.fixture
def make_seat(db):
    def _make(user, org, is_active=True):
        return _save(db, OrgSeat(user_id=user.id, org_id=org.id, is_active=is_active))

    return _make


@pytest.fixture
def make_product(db):
    def _make(price=100.0, name="Photo Booth", is_active=True):
        return _save(db, Product(name=name, price=price, is_active=is_active))

    return _make


@pytest.fixture
def product(make_product):
    return make_product()


@pytest.fixture
def make_add_on(db):
    def _make(price=20.0, name="Props Box", product_id=None, is_active=True):
        return _save(
            db, AddOn(name=name, price=price, product_id=product_id, is_active=is_active)
        )

    return _make


@pytest.fixture
def make_package(db):
    def _make(
        org,
        total_credits=10,
        used_credits=0,
        permanent_discount_percent=0,
        expires_at=None,
        is_active=True,
    ):
        return _save(
            db,
            CorporatePackage(
                org_id=org.id,
                name="Event Pack",
                total_credits=total_credits,
                used_credits=used_credits,
                permanent_discount_percent=permanent_discount_percent,
                expires_at=expires_at,
                is_active=is_active,
            ),
        )

    return _make


@pytest.fixture
def corporate_member(make_user, make_org, make_seat):
    """(user, org) with an active seat"""
    user = make_user(UserRole.CORPORATE_MEMBER, "Corin Corporate")
    org = make_org(discount_percent=10)
    make_seat(user, org)
    return user, org


@pytest.fixture
def make_booking(db, product):
    def _make(
        customer,
        status=BookingStatus.PENDING,
        final_price=100.0,
        package=None,
        org=None,
        is_corporate=False,
        quote_requested=False,
        vat_rate=None,
        scheduled_at=None,
    ):
        return _save(
            db,
            Booking(
                booking_number=generate_booking_number(),
                customer_id=customer.id,
                product_id=product.id,
                org_id=org.id if org else (package.org_id if package else None),
                package_id=package.id if package else None,
                status=status,
                scheduled_at=scheduled_at or datetime.utcnow() + timedelta(days=7),
                final_price=final_price,
                is_corporate=is_corporate or org is not None or package is not None,
                quote_requested=quote_requested,
                vat_rate=vat_rate,
            ),
        )

    return _make


@pytest.fixture
def make_payment(db):
    def _make(booking, amount, stripe_payment_id, status=PaymentStatus.PENDING):
        return _save(
            db,
            Payment(
                booking_id=booking.id,
                amount=amount,
                status=status,
                stripe_payment_id=stripe_payment_id,
            ),
        )

    return _make


class FakeStripe:
    """Stands in for StripeService; records what would have been sent"""

    def __init__(self):
        self.intents = []
        self.sessions = []

    def create_payment_intent(self, amount, metadata, description, receipt_email=None):
        intent_id = f"pi_test_{len(self.intents) + 1}"
        self.intents.append({"id": intent_id, "amount": amount, "metadata": metadata})
        return {"id": intent_id, "client_secret": f"{intent_id}_secret"}

    def create_checkout_session(
        self, amount, product_name, success_url, cancel_url, metadata, customer_email=None
    ):
        session_id = f"cs_test_{len(self.sessions) + 1}"
        self.sessions.append({"id": session_id, "amount": amount, "success_url": success_url})
        return {"id": session_id, "url": f"https://checkout.stripe.test/{session_id}"}


@pytest.fixture
def fake_stripe(monkeypatch):
    fake = FakeStripe()
    monkeypatch.setattr(stripe_module, "stripe_service", fake)
    return fake
