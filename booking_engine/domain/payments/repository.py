"""Payment repository - Database operations for payments"""

from datetime import datetime
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from ...models import Payment, PaymentStatus


class PaymentRepository:
    """Repository for payment database operations"""

    @staticmethod
    def get_by_processor_id(db: Session, stripe_payment_id: str) -> Optional[Payment]:
        if not stripe_payment_id:
            return None
        return db.query(Payment).filter(Payment.stripe_payment_id == stripe_payment_id).first()

    @staticmethod
    def add_payment(db: Session, **payment_data) -> Payment:
        payment = Payment(**payment_data)
        db.add(payment)
        db.flush()
        return payment

    @staticmethod
    def completed_total(db: Session, booking_id: int) -> float:
        """Sum of COMPLETED payments, recomputed from every row"""
        total = (
            db.query(func.coalesce(func.sum(Payment.amount), 0.0))
            .filter(Payment.booking_id == booking_id, Payment.status == PaymentStatus.COMPLETED)
            .scalar()
        )
        return round(float(total or 0), 2)

    @staticmethod
    def mark_completed(
        db: Session, payment_id: int, processed_at: datetime, stripe_payment_id: Optional[str] = None
    ) -> int:
        """PENDING -> COMPLETED; returns 0 when another delivery already settled it"""
        values = {Payment.status: PaymentStatus.COMPLETED, Payment.processed_at: processed_at}
        if stripe_payment_id:
            values[Payment.stripe_payment_id] = stripe_payment_id
        return (
            db.query(Payment)
            .filter(Payment.id == payment_id, Payment.status == PaymentStatus.PENDING)
            .update(values, synchronize_session=False)
        )

    @staticmethod
    def mark_refunded(
        db: Session, payment_id: int, refunded_at: datetime, stripe_refund_id: Optional[str]
    ) -> int:
        return (
            db.query(Payment)
            .filter(Payment.id == payment_id, Payment.status != PaymentStatus.REFUNDED)
            .update(
                {
                    Payment.status: PaymentStatus.REFUNDED,
                    Payment.refunded_at: refunded_at,
                    Payment.stripe_refund_id: stripe_refund_id,
                },
                synchronize_session=False,
            )
        )
