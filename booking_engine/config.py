import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./bookings.db")

# Stripe Configuration
STRIPE_API_KEY = os.getenv("STRIPE_API_KEY")
STRIPE_WEBHOOK_SECRET = os.getenv("STRIPE_WEBHOOK_SECRET")
STRIPE_CURRENCY = os.getenv("STRIPE_CURRENCY", "usd")

# Frontend base URL for checkout redirects
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:3000")

# Share of the final price charged when a customer pays a deposit only
DEPOSIT_PERCENT = float(os.getenv("DEPOSIT_PERCENT", "50"))

# Time of day (HH:MM) applied to multi-day bookings submitted without a base time
DEFAULT_BOOKING_TIME = os.getenv("DEFAULT_BOOKING_TIME", "10:00")
