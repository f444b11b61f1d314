"""Shared validation utilities"""

import re
from datetime import date, datetime, time
from typing import Optional


def validate_us_phone(phone: Optional[str]) -> Optional[str]:
    """
    Validate and normalize US phone number to E.164 format.

    Raises:
        ValueError: If phone number is invalid
    """
    if not phone:
        return phone

    # Remove all non-digit characters
    digits = re.sub(r"\D", "", phone)

    # Handle +1 prefix
    if digits.startswith("1") and len(digits) == 11:
        digits = digits[1:]

    if len(digits) != 10:
        raise ValueError("Phone number must be 10 digits for US numbers")

    return f"+1{digits}"


def validate_email(email: Optional[str]) -> Optional[str]:
    """
    Validate email format and lowercase it.

    Raises:
        ValueError: If email format is invalid
    """
    if not email:
        return email

    email = email.strip().lower()

    email_pattern = r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$"

    if not re.match(email_pattern, email):
        raise ValueError("Invalid email format")

    return email


def validate_percent(value: Optional[float], field_name: str = "Percent") -> Optional[float]:
    """Percentages are stored as 0-100"""
    if value is None:
        return value
    if value < 0 or value > 100:
        raise ValueError(f"{field_name} must be between 0 and 100")
    return value


def parse_time_of_day(value: str) -> time:
    """Parse HH:MM (or HH:MM:SS) into a time"""
    try:
        return time.fromisoformat(value.strip())
    except (ValueError, AttributeError):
        raise ValueError(f"Invalid time '{value}', expected HH:MM") from None


def combine_date_time(day: date, time_of_day: str) -> datetime:
    return datetime.combine(day, parse_time_of_day(time_of_day))
