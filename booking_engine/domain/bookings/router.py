"""Booking router - FastAPI endpoints for bookings and the staff workflow"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import Actor, get_current_actor
from ...database import get_db
from ...models import Booking, PaymentStatus
from .schemas import (
    BookingAddOnResponse,
    BookingCreate,
    BookingCreateResponse,
    BookingDetailResponse,
    BookingResponse,
    DashboardCounts,
    DraftSave,
    PaymentSummary,
    QuoteApproval,
    StaffAction,
    TimelineEntryResponse,
)
from .service import BookingService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/bookings", tags=["Bookings"])
admin_router = APIRouter(prefix="/admin", tags=["Booking Administration"])


def get_booking_service(db: Session = Depends(get_db)) -> BookingService:
    """Dependency injection for BookingService"""
    return BookingService(db)


def booking_fields(b: Booking) -> dict:
    return dict(
        id=b.id,
        publicId=b.public_id,
        bookingNumber=b.booking_number,
        customerId=b.customer_id,
        productId=b.product_id,
        orgId=b.org_id,
        packageId=b.package_id,
        status=b.status,
        scheduledAt=b.scheduled_at,
        completedAt=b.completed_at,
        notes=b.notes,
        isCorporate=b.is_corporate,
        quoteRequested=b.quote_requested,
        quoteApprovedAt=b.quote_approved_at,
        quoteApprovedById=b.quote_approved_by_id,
        netTerms=b.net_terms,
        finalPrice=b.final_price,
        vatRate=b.vat_rate,
        vatAmount=b.vat_amount,
        invoiceNumber=b.invoice_number,
        invoiceSentAt=b.invoice_sent_at,
        isRecurring=b.is_recurring,
        recurringRule=b.recurring_rule,
        recurringEndDate=b.recurring_end_date,
        parentBookingId=b.parent_booking_id,
        bookingGroupId=b.booking_group_id,
        contactName=b.contact_name,
        contactEmail=b.contact_email,
        contactPhone=b.contact_phone,
        eventAddress=b.event_address,
        eventType=b.event_type,
        eventNotes=b.event_notes,
        hasPowerSupply=b.has_power_supply,
        hasParking=b.has_parking,
        attendeeCount=b.attendee_count,
        referralSource=b.referral_source,
        poNumber=b.po_number,
        costCentre=b.cost_centre,
        addOns=[
            BookingAddOnResponse(addOnId=a.add_on_id, quantity=a.quantity, price=a.price)
            for a in b.add_ons
        ],
    )


def to_response(booking: Booking) -> BookingResponse:
    return BookingResponse(**booking_fields(booking))


def to_detail_response(booking: Booking) -> BookingDetailResponse:
    paid = sum(p.amount for p in booking.payments if p.status == PaymentStatus.COMPLETED)
    return BookingDetailResponse(
        **booking_fields(booking),
        timeline=[
            TimelineEntryResponse(
                id=t.id,
                action=t.action,
                details=t.details,
                userId=t.user_id,
                createdAt=t.created_at,
            )
            for t in booking.timeline
        ],
        payments=[
            PaymentSummary(
                id=p.id,
                amount=p.amount,
                status=p.status,
                stripePaymentId=p.stripe_payment_id,
                processedAt=p.processed_at,
                refundedAt=p.refunded_at,
            )
            for p in booking.payments
        ],
        amountPaid=round(paid, 2),
        balanceDue=round(max(0.0, booking.final_price - paid), 2),
    )


# ============================================================================
# CUSTOMER OPERATIONS
# ============================================================================


@router.post("", response_model=BookingCreateResponse, status_code=201)
async def create_booking(
    data: BookingCreate,
    actor: Actor = Depends(get_current_actor),
    service: BookingService = Depends(get_booking_service),
):
    """Create a booking, or a bulk / multi-day / recurring set of bookings"""
    result = service.create_booking(actor, data)
    bookings = [to_response(b) for b in result.bookings]

    if data.mode == "bulk":
        message = f"Bulk booking created with {len(bookings)} locations"
    elif data.mode == "multi_day":
        message = f"Multi-day booking created with {len(bookings)} dates"
    elif data.mode == "recurring":
        message = f"Recurring booking created with {len(bookings)} occurrences"
    elif data.holdSlot and not data.isDraft:
        message = "Slot held successfully"
    else:
        message = "Booking created successfully"

    return BookingCreateResponse(
        booking=bookings[0],
        bookings=bookings,
        bookingGroupId=result.group.id if result.group else None,
        message=message,
    )


@router.post("/draft", response_model=BookingResponse)
async def save_draft(
    data: DraftSave,
    actor: Actor = Depends(get_current_actor),
    service: BookingService = Depends(get_booking_service),
):
    """Create a new draft or update one of the caller's drafts"""
    return to_response(service.save_draft(actor, data))


@router.get("", response_model=list[BookingResponse])
async def list_bookings(
    status: Optional[str] = Query(None),
    actor: Actor = Depends(get_current_actor),
    service: BookingService = Depends(get_booking_service),
):
    """Staff see every booking; everyone else sees their own"""
    return [to_response(b) for b in service.list_bookings(actor, status)]


@router.get("/{booking_id}", response_model=BookingDetailResponse)
async def get_booking(
    booking_id: int,
    actor: Actor = Depends(get_current_actor),
    service: BookingService = Depends(get_booking_service),
):
    return to_detail_response(service.get_booking(actor, booking_id))


@router.post("/{booking_id}/clone", response_model=BookingResponse, status_code=201)
async def clone_booking(
    booking_id: int,
    actor: Actor = Depends(get_current_actor),
    service: BookingService = Depends(get_booking_service),
):
    return to_response(service.clone_booking(actor, booking_id))


# ============================================================================
# STAFF WORKFLOW
# ============================================================================


@router.post("/{booking_id}/actions", response_model=BookingResponse)
async def perform_action(
    booking_id: int,
    data: StaffAction,
    actor: Actor = Depends(get_current_actor),
    service: BookingService = Depends(get_booking_service),
):
    """approve / reject / confirm / complete / no_show / cancel / invoice"""
    booking = service.perform_action(actor, booking_id, data.action, data.netTerms)
    return to_response(booking)


@admin_router.post("/bookings/{booking_id}/approve-quote", response_model=BookingResponse)
async def approve_quote(
    booking_id: int,
    data: QuoteApproval,
    actor: Actor = Depends(get_current_actor),
    service: BookingService = Depends(get_booking_service),
):
    return to_response(service.approve_quote(actor, booking_id, data.netTerms))


@admin_router.post("/bookings/{booking_id}/recalculate-price", response_model=BookingResponse)
async def recalculate_price(
    booking_id: int,
    actor: Actor = Depends(get_current_actor),
    service: BookingService = Depends(get_booking_service),
):
    return to_response(service.recalculate_price(actor, booking_id))


@admin_router.get("/bookings/quotes", response_model=list[BookingResponse])
async def list_quote_requests(
    actor: Actor = Depends(get_current_actor),
    service: BookingService = Depends(get_booking_service),
):
    """Corporate quote requests awaiting review, oldest first"""
    return [to_response(b) for b in service.list_quote_requests(actor)]


@admin_router.get("/dashboard-counts", response_model=DashboardCounts)
async def dashboard_counts(
    actor: Actor = Depends(get_current_actor),
    service: BookingService = Depends(get_booking_service),
):
    return DashboardCounts(**service.dashboard_counts(actor))
