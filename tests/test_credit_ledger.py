from datetime import datetime, timedelta

import pytest

from booking_engine.domain.packages.ledger import CreditLedger
from booking_engine.exceptions import (
    NotFoundError,
    PackageExhausted,
    PackageExpired,
    PackageInactive,
)


@pytest.fixture
def org(make_org):
    return make_org()


def test_available_package_passes(db, org, make_package):
    package = make_package(org, total_credits=3, used_credits=2)

    assert CreditLedger(db).check_available(package.id).id == package.id


def test_exhausted_package(db, org, make_package):
    package = make_package(org, total_credits=2, used_credits=2)

    with pytest.raises(PackageExhausted) as exc:
        CreditLedger(db).check_available(package.id)
    assert exc.value.detail == "Package has no remaining credits"
    assert exc.value.status_code == 409


def test_expired_package(db, org, make_package):
    package = make_package(org, expires_at=datetime.utcnow() - timedelta(days=1))

    with pytest.raises(PackageExpired):
        CreditLedger(db).check_available(package.id)


def test_package_without_expiry_never_expires(db, org, make_package):
    package = make_package(org, expires_at=None)

    CreditLedger(db).check_available(package.id)


def test_inactive_package(db, org, make_package):
    package = make_package(org, total_credits=1, used_credits=1, is_active=False)

    with pytest.raises(PackageInactive):
        CreditLedger(db).check_available(package.id)


def test_missing_package(db):
    with pytest.raises(NotFoundError):
        CreditLedger(db).check_available(999)


def test_deduct_consumes_one_credit(db, org, make_package):
    package = make_package(org, total_credits=5, used_credits=1)

    CreditLedger(db).deduct(package.id)
    db.commit()

    db.refresh(package)
    assert package.used_credits == 2
    assert package.remaining_credits == 3


def test_deduct_never_exceeds_total(db, org, make_package):
    package = make_package(org, total_credits=1)
    ledger = CreditLedger(db)

    ledger.deduct(package.id)
    db.commit()
    with pytest.raises(PackageExhausted):
        ledger.deduct(package.id)
    db.rollback()

    db.refresh(package)
    assert package.used_credits == 1
