"""Payment domain schemas - Pydantic models for validation"""

from pydantic import BaseModel


class PaymentRequest(BaseModel):
    """The amount is derived from the booking, never taken from the client"""

    bookingId: int
    depositOnly: bool = False


class PaymentIntentResponse(BaseModel):
    clientSecret: str
    paymentIntentId: str
    amount: float


class CheckoutSessionResponse(BaseModel):
    sessionId: str
    url: str
    amount: float
