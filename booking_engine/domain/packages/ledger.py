"""
Credit ledger - availability checks and deductions against corporate packages.

Availability is checked when a booking is created. The deduction happens once,
inside the same unit of work that moves the booking into CONFIRMED.
"""

import logging
from datetime import datetime

from sqlalchemy.orm import Session

from ...exceptions import NotFoundError, PackageExhausted, PackageExpired, PackageInactive
from ...models import CorporatePackage
from .repository import PackageRepository

logger = logging.getLogger(__name__)


class CreditLedger:
    def __init__(self, db: Session):
        self.db = db
        self.repo = PackageRepository()

    def _load(self, package_id: int) -> CorporatePackage:
        package = self.repo.get_package(self.db, package_id)
        if not package:
            raise NotFoundError("Corporate package not found")
        return package

    def check_available(self, package_id: int) -> CorporatePackage:
        """Validation gate; raises instead of returning False"""
        package = self._load(package_id)

        if not package.is_active:
            raise PackageInactive()
        if package.used_credits >= package.total_credits:
            raise PackageExhausted()
        if package.expires_at and package.expires_at < datetime.utcnow():
            raise PackageExpired()

        return package

    def deduct(self, package_id: int) -> CorporatePackage:
        """
        Consume one credit. Must run inside the caller's unit of work so a failure
        here rolls back the status change that triggered it.
        """
        self.check_available(package_id)

        updated = self.repo.increment_used_credits(self.db, package_id)
        if updated == 0:
            # Another confirmation consumed the last credit since the check above
            logger.warning(f"⚠️ Package {package_id} exhausted during deduction")
            raise PackageExhausted()

        package = self._load(package_id)
        self.db.refresh(package)
        logger.info(
            f"💳 Deducted 1 credit from package {package_id} "
            f"({package.used_credits}/{package.total_credits} used)"
        )
        return package
