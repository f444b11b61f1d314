"""Booking domain schemas - Pydantic models for validation"""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, field_validator, model_validator

from ...models import RecurringRule
from ...shared.validators import (
    parse_time_of_day,
    validate_email,
    validate_percent,
    validate_us_phone,
)


class AddOnSelection(BaseModel):
    id: int
    quantity: int = 1

    @field_validator("quantity")
    @classmethod
    def validate_quantity(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Add-on quantity must be at least 1")
        return v


class BulkLocation(BaseModel):
    address: str
    date: date
    time: str

    @field_validator("address")
    @classmethod
    def validate_address(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Address is required for each bulk location")
        return v.strip()

    @field_validator("time")
    @classmethod
    def validate_time(cls, v: str) -> str:
        parse_time_of_day(v)
        return v.strip()


class BookingDetails(BaseModel):
    """Contact and event details shared by every booking form"""

    notes: Optional[str] = None
    contactName: Optional[str] = None
    contactEmail: Optional[str] = None
    contactPhone: Optional[str] = None
    eventAddress: Optional[str] = None
    eventType: Optional[str] = None
    eventNotes: Optional[str] = None
    hasPowerSupply: bool = False
    hasParking: bool = False
    attendeeCount: Optional[int] = None
    referralSource: Optional[str] = None
    poNumber: Optional[str] = None
    costCentre: Optional[str] = None
    vatRate: Optional[float] = None

    @field_validator("contactEmail")
    @classmethod
    def validate_contact_email(cls, v):
        return validate_email(v)

    @field_validator("contactPhone")
    @classmethod
    def validate_phone(cls, v):
        if v:
            return validate_us_phone(v)
        return v

    @field_validator("attendeeCount")
    @classmethod
    def validate_attendee_count(cls, v):
        if v is not None and v < 0:
            raise ValueError("Attendee count cannot be negative")
        return v

    @field_validator("vatRate")
    @classmethod
    def validate_vat_rate(cls, v):
        return validate_percent(v, "VAT rate")


class BookingCreate(BookingDetails):
    """
    Booking request. Exactly one shape is used: a single ``scheduledAt``,
    ``multiDayDates``, ``bulkLocations`` or a recurring rule with a start.
    ``holdSlot`` reserves the slot as a draft but is validated like a submitted booking.
    """

    productId: int
    scheduledAt: Optional[datetime] = None
    orgId: Optional[int] = None
    packageId: Optional[int] = None
    addOns: list[AddOnSelection] = []
    isDraft: bool = False
    holdSlot: bool = False
    requestQuote: bool = False

    isMultiDay: bool = False
    multiDayDates: list[date] = []

    isRecurring: bool = False
    recurringRule: Optional[str] = None
    recurringEndDate: Optional[datetime] = None

    isBulkBooking: bool = False
    bulkLocations: list[BulkLocation] = []

    @field_validator("recurringRule")
    @classmethod
    def validate_rule(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        rule = v.strip().upper()
        if rule not in RecurringRule.ALL:
            raise ValueError(f"Recurring rule must be one of {', '.join(RecurringRule.ALL)}")
        return rule

    @model_validator(mode="after")
    def validate_shape(self):
        modes = [self.isBulkBooking, self.isMultiDay, self.isRecurring]
        if sum(bool(m) for m in modes) > 1:
            raise ValueError("Choose only one of bulk, multi-day or recurring booking")

        if self.isBulkBooking and not self.bulkLocations:
            raise ValueError("At least one bulk location is required")
        if self.isMultiDay and not self.multiDayDates:
            raise ValueError("At least one date is required for a multi-day booking")
        if self.isRecurring:
            if not self.recurringRule:
                raise ValueError("Recurring rule is required for a recurring booking")
            if not self.scheduledAt:
                raise ValueError("Start date is required for a recurring booking")
            if self.recurringEndDate and self.recurringEndDate.date() < self.scheduledAt.date():
                raise ValueError("Recurring end date cannot be before the start date")

        if self.mode == "single" and not self.isDraft and not self.scheduledAt:
            raise ValueError("Scheduled time is required for non-draft bookings")
        return self

    @property
    def mode(self) -> str:
        if self.isBulkBooking:
            return "bulk"
        if self.isMultiDay:
            return "multi_day"
        if self.isRecurring:
            return "recurring"
        return "single"


class DraftSave(BookingDetails):
    """Create a new draft, or update the caller's draft when ``id`` is set"""

    id: Optional[int] = None
    productId: int
    scheduledAt: Optional[datetime] = None
    orgId: Optional[int] = None
    packageId: Optional[int] = None
    addOns: list[AddOnSelection] = []


class StaffAction(BaseModel):
    action: str
    netTerms: Optional[int] = None

    @field_validator("action")
    @classmethod
    def normalize_action(cls, v: str) -> str:
        return v.strip().lower().replace("-", "_")

    @field_validator("netTerms")
    @classmethod
    def validate_net_terms(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v < 0:
            raise ValueError("Net terms must be a non-negative number of days")
        return v


class QuoteApproval(BaseModel):
    netTerms: Optional[int] = None

    @field_validator("netTerms")
    @classmethod
    def validate_net_terms(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v < 0:
            raise ValueError("Net terms must be a non-negative number of days")
        return v


class BookingAddOnResponse(BaseModel):
    addOnId: int
    quantity: int
    price: float


class TimelineEntryResponse(BaseModel):
    id: int
    action: str
    details: Optional[str] = None
    userId: Optional[int] = None
    createdAt: Optional[datetime] = None


class PaymentSummary(BaseModel):
    id: int
    amount: float
    status: str
    stripePaymentId: Optional[str] = None
    processedAt: Optional[datetime] = None
    refundedAt: Optional[datetime] = None


class BookingResponse(BaseModel):
    id: int
    publicId: str
    bookingNumber: str
    customerId: int
    productId: int
    orgId: Optional[int] = None
    packageId: Optional[int] = None
    status: str
    scheduledAt: datetime
    completedAt: Optional[datetime] = None
    notes: Optional[str] = None
    isCorporate: bool
    quoteRequested: bool
    quoteApprovedAt: Optional[datetime] = None
    quoteApprovedById: Optional[int] = None
    netTerms: Optional[int] = None
    finalPrice: float
    vatRate: Optional[float] = None
    vatAmount: Optional[float] = None
    invoiceNumber: Optional[str] = None
    invoiceSentAt: Optional[datetime] = None
    isRecurring: bool
    recurringRule: Optional[str] = None
    recurringEndDate: Optional[datetime] = None
    parentBookingId: Optional[int] = None
    bookingGroupId: Optional[int] = None
    contactName: Optional[str] = None
    contactEmail: Optional[str] = None
    contactPhone: Optional[str] = None
    eventAddress: Optional[str] = None
    eventType: Optional[str] = None
    eventNotes: Optional[str] = None
    hasPowerSupply: bool = False
    hasParking: bool = False
    attendeeCount: Optional[int] = None
    referralSource: Optional[str] = None
    poNumber: Optional[str] = None
    costCentre: Optional[str] = None
    addOns: list[BookingAddOnResponse] = []


class BookingDetailResponse(BookingResponse):
    timeline: list[TimelineEntryResponse] = []
    payments: list[PaymentSummary] = []
    amountPaid: float = 0
    balanceDue: float = 0


class BookingCreateResponse(BaseModel):
    booking: BookingResponse
    bookings: list[BookingResponse]
    bookingGroupId: Optional[int] = None
    message: str


class DashboardCounts(BaseModel):
    pendingBookings: int
    pendingQuotes: int
