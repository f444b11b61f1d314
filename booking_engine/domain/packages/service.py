"""Package service - Administration of corporate credit packages"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from ...auth import Actor, require_role
from ...database import unit_of_work
from ...exceptions import NotFoundError, ValidationError
from ...models import CorporatePackage, UserRole
from .repository import PackageRepository
from .schemas import PackageCreate, PackageUpdate

logger = logging.getLogger(__name__)


class PackageService:
    """Service layer for package administration"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = PackageRepository()

    def list_packages(
        self, actor: Actor, org_id: Optional[int] = None, is_active: Optional[bool] = None
    ) -> list[CorporatePackage]:
        require_role(actor, UserRole.ADMIN)
        return self.repo.list_packages(self.db, org_id, is_active)

    def get_package(self, actor: Actor, package_id: int) -> CorporatePackage:
        require_role(actor, UserRole.ADMIN)
        package = self.repo.get_package(self.db, package_id)
        if not package:
            raise NotFoundError("Corporate package not found")
        return package

    def create_package(self, actor: Actor, data: PackageCreate) -> CorporatePackage:
        require_role(actor, UserRole.ADMIN)

        if not self.repo.get_org(self.db, data.orgId):
            raise NotFoundError("Organization not found")

        with unit_of_work(self.db):
            package = self.repo.add_package(
                self.db,
                org_id=data.orgId,
                name=data.name,
                description=(data.description or "").strip() or None,
                total_credits=data.totalCredits,
                permanent_discount_percent=data.permanentDiscountPercent,
                expires_at=data.expiresAt,
                is_active=data.isActive,
            )

        self.db.refresh(package)
        logger.info(f"📦 Package {package.id} created for org {package.org_id} by {actor.id}")
        return package

    def update_package(self, actor: Actor, package_id: int, data: PackageUpdate) -> CorporatePackage:
        package = self.get_package(actor, package_id)

        if data.totalCredits is not None and data.totalCredits < package.used_credits:
            raise ValidationError(
                f"Total credits cannot be lower than credits already used ({package.used_credits})"
            )

        with unit_of_work(self.db):
            if data.name is not None:
                if not data.name.strip():
                    raise ValidationError("Package name is required")
                package.name = data.name.strip()
            if data.description is not None:
                package.description = data.description.strip() or None
            if data.totalCredits is not None:
                package.total_credits = data.totalCredits
            if data.permanentDiscountPercent is not None:
                package.permanent_discount_percent = data.permanentDiscountPercent
            if data.expiresAt is not None:
                package.expires_at = data.expiresAt
            if data.isActive is not None:
                package.is_active = data.isActive

        self.db.refresh(package)
        logger.info(f"📦 Package {package.id} updated by {actor.id}")
        return package

    def deactivate_package(self, actor: Actor, package_id: int) -> CorporatePackage:
        return self.update_package(actor, package_id, PackageUpdate(isActive=False))
