"""Package router - FastAPI endpoints for corporate package administration"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import Actor, get_current_actor
from ...database import get_db
from ...models import CorporatePackage
from .schemas import PackageCreate, PackageResponse, PackageUpdate
from .service import PackageService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin/corporate-packages", tags=["Corporate Packages"])


def get_package_service(db: Session = Depends(get_db)) -> PackageService:
    """Dependency injection for PackageService"""
    return PackageService(db)


def to_response(package: CorporatePackage) -> PackageResponse:
    return PackageResponse(
        id=package.id,
        orgId=package.org_id,
        name=package.name,
        description=package.description,
        totalCredits=package.total_credits,
        usedCredits=package.used_credits,
        remainingCredits=package.remaining_credits,
        permanentDiscountPercent=package.permanent_discount_percent,
        expiresAt=package.expires_at,
        isActive=package.is_active,
    )


@router.get("", response_model=list[PackageResponse])
async def list_packages(
    orgId: Optional[int] = Query(None),
    isActive: Optional[bool] = Query(None),
    actor: Actor = Depends(get_current_actor),
    service: PackageService = Depends(get_package_service),
):
    """List packages, optionally filtered by organization and active flag"""
    return [to_response(p) for p in service.list_packages(actor, orgId, isActive)]


@router.post("", response_model=PackageResponse, status_code=201)
async def create_package(
    data: PackageCreate,
    actor: Actor = Depends(get_current_actor),
    service: PackageService = Depends(get_package_service),
):
    return to_response(service.create_package(actor, data))


@router.get("/{package_id}", response_model=PackageResponse)
async def get_package(
    package_id: int,
    actor: Actor = Depends(get_current_actor),
    service: PackageService = Depends(get_package_service),
):
    return to_response(service.get_package(actor, package_id))


@router.patch("/{package_id}", response_model=PackageResponse)
async def update_package(
    package_id: int,
    data: PackageUpdate,
    actor: Actor = Depends(get_current_actor),
    service: PackageService = Depends(get_package_service),
):
    return to_response(service.update_package(actor, package_id, data))


@router.delete("/{package_id}", response_model=PackageResponse)
async def deactivate_package(
    package_id: int,
    actor: Actor = Depends(get_current_actor),
    service: PackageService = Depends(get_package_service),
):
    """Packages referenced by bookings are deactivated, never deleted"""
    return to_response(service.deactivate_package(actor, package_id))
