"""Human-readable identifiers for bookings and invoices"""

import secrets
from datetime import datetime
from typing import Optional


def _token() -> str:
    return secrets.token_hex(4).upper()


def generate_booking_number(now: Optional[datetime] = None) -> str:
    """BK-<year>-<8 random hex chars>; unique-indexed in the database"""
    year = (now or datetime.utcnow()).year
    return f"BK-{year}-{_token()}"


def child_booking_number(parent_number: str, occurrence: int) -> str:
    return f"{parent_number}-R{occurrence}"


def group_member_number(prefix: str, index: int) -> str:
    return f"{prefix}-{index}"


def generate_invoice_number(now: Optional[datetime] = None) -> str:
    year = (now or datetime.utcnow()).year
    return f"INV-{year}-{_token()}"
