"""Package repository - Database operations for corporate packages"""

from typing import Optional

from sqlalchemy.orm import Session

from ...models import CorporateOrg, CorporatePackage


class PackageRepository:
    """Repository for corporate package database operations"""

    @staticmethod
    def get_package(db: Session, package_id: int) -> Optional[CorporatePackage]:
        return db.query(CorporatePackage).filter(CorporatePackage.id == package_id).first()

    @staticmethod
    def get_org(db: Session, org_id: int) -> Optional[CorporateOrg]:
        return db.query(CorporateOrg).filter(CorporateOrg.id == org_id).first()

    @staticmethod
    def list_packages(
        db: Session, org_id: Optional[int] = None, is_active: Optional[bool] = None
    ) -> list[CorporatePackage]:
        query = db.query(CorporatePackage)
        if org_id is not None:
            query = query.filter(CorporatePackage.org_id == org_id)
        if is_active is not None:
            query = query.filter(CorporatePackage.is_active == is_active)
        return query.order_by(CorporatePackage.created_at.desc(), CorporatePackage.id.desc()).all()

    @staticmethod
    def add_package(db: Session, **package_data) -> CorporatePackage:
        package = CorporatePackage(**package_data)
        db.add(package)
        db.flush()
        return package

    @staticmethod
    def increment_used_credits(db: Session, package_id: int) -> int:
        """
        Compare-and-set increment: only succeeds while credits remain.
        Returns the number of rows updated (0 or 1).
        """
        return (
            db.query(CorporatePackage)
            .filter(
                CorporatePackage.id == package_id,
                CorporatePackage.used_credits < CorporatePackage.total_credits,
            )
            .update(
                {CorporatePackage.used_credits: CorporatePackage.used_credits + 1},
                synchronize_session=False,
            )
        )
