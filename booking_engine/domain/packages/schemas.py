"""Package domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, field_validator

from ...shared.validators import validate_percent


class PackageCreate(BaseModel):
    """Schema for creating a corporate package"""

    orgId: int
    name: str
    description: Optional[str] = None
    totalCredits: int
    permanentDiscountPercent: float = 0
    expiresAt: Optional[datetime] = None
    isActive: bool = True

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Package name is required")
        return v.strip()

    @field_validator("totalCredits")
    @classmethod
    def validate_total_credits(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("Valid total credits is required")
        return v

    @field_validator("permanentDiscountPercent")
    @classmethod
    def validate_discount(cls, v: float) -> float:
        return validate_percent(v, "Discount percent")


class PackageUpdate(BaseModel):
    """Schema for updating a corporate package"""

    name: Optional[str] = None
    description: Optional[str] = None
    totalCredits: Optional[int] = None
    permanentDiscountPercent: Optional[float] = None
    expiresAt: Optional[datetime] = None
    isActive: Optional[bool] = None

    @field_validator("permanentDiscountPercent")
    @classmethod
    def validate_discount(cls, v: Optional[float]) -> Optional[float]:
        return validate_percent(v, "Discount percent")


class PackageResponse(BaseModel):
    id: int
    orgId: int
    name: str
    description: Optional[str] = None
    totalCredits: int
    usedCredits: int
    remainingCredits: int
    permanentDiscountPercent: float
    expiresAt: Optional[datetime] = None
    isActive: bool
