"""Payment router - FastAPI endpoints for payments and processor webhooks"""

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from ...auth import Actor, get_current_actor
from ...database import get_db
from ...webhook_security import verify_stripe_webhook
from .reconciler import SettlementReconciler
from .schemas import CheckoutSessionResponse, PaymentIntentResponse, PaymentRequest
from .service import PaymentService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments", tags=["Payments"])


def get_payment_service(db: Session = Depends(get_db)) -> PaymentService:
    """Dependency injection for PaymentService"""
    return PaymentService(db)


@router.post("/create-intent", response_model=PaymentIntentResponse)
async def create_payment_intent(
    data: PaymentRequest,
    actor: Actor = Depends(get_current_actor),
    service: PaymentService = Depends(get_payment_service),
):
    """Start a card payment for the full balance or a deposit"""
    return PaymentIntentResponse(**service.create_payment_intent(actor, data.bookingId, data.depositOnly))


@router.post("/checkout", response_model=CheckoutSessionResponse)
async def create_checkout_session(
    data: PaymentRequest,
    actor: Actor = Depends(get_current_actor),
    service: PaymentService = Depends(get_payment_service),
):
    """Start a hosted checkout for the full balance or a deposit"""
    return CheckoutSessionResponse(
        **service.create_checkout_session(actor, data.bookingId, data.depositOnly)
    )


@router.post("/webhook")
async def stripe_webhook(request: Request, db: Session = Depends(get_db)):
    """
    Stripe event feed. Answers 500 when processing fails so Stripe redelivers;
    redelivery is safe because settlement is idempotent.
    """
    event = await verify_stripe_webhook(request)

    try:
        result = SettlementReconciler(db).handle_event(event)
    except Exception as e:
        logger.error(f"❌ Webhook handler error for {event.get('type')} ({event.get('id')}): {e}")
        return JSONResponse(status_code=500, content={"error": "Webhook handler failed"})

    return {"received": True, **result}
