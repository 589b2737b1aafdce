import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./practice_admin.db")

# Hosted auth provider (JWT verification only - sessions live with the provider)
AUTH_JWT_SECRET = os.getenv("AUTH_JWT_SECRET")
if not AUTH_JWT_SECRET:
    import warnings

    warnings.warn(
        "AUTH_JWT_SECRET not set! Using insecure default - DO NOT USE IN PRODUCTION",
        RuntimeWarning,
        stacklevel=2,
    )
    AUTH_JWT_SECRET = "INSECURE-DEV-SECRET-CHANGE-IN-PRODUCTION"  # noqa: S105 - Dev fallback only
AUTH_JWT_ALGORITHM = os.getenv("AUTH_JWT_ALGORITHM", "HS256")
AUTH_JWT_AUDIENCE = os.getenv("AUTH_JWT_AUDIENCE", "authenticated")

# Admin seed list - copied into the admin_roles table at startup, never read at request time
ADMIN_EMAILS = [
    email.strip().lower()
    for email in os.getenv("ADMIN_EMAILS", "").split(",")
    if email.strip()
]

# IntakeQ (EHR) Configuration
INTAKEQ_API_KEY = os.getenv("INTAKEQ_API_KEY")
INTAKEQ_BASE_URL = os.getenv("INTAKEQ_BASE_URL", "https://intakeq.com/api/v1")
INTAKEQ_DAILY_LIMIT = int(os.getenv("INTAKEQ_DAILY_LIMIT", "500"))
INTAKEQ_TIMEOUT_SECONDS = float(os.getenv("INTAKEQ_TIMEOUT_SECONDS", "15"))
# Appointment lookups are cached for 5 minutes
INTAKEQ_APPOINTMENT_CACHE_TTL = int(os.getenv("INTAKEQ_APPOINTMENT_CACHE_TTL", "300"))

# Slot times are naive wall-clock times in the practice's timezone
PRACTICE_TIMEZONE = os.getenv("PRACTICE_TIMEZONE", "America/Denver")
DEFAULT_APPOINTMENT_DURATION = int(os.getenv("DEFAULT_APPOINTMENT_DURATION", "60"))
# Cap on slots returned per merged availability response
MAX_AVAILABLE_SLOTS = int(os.getenv("MAX_AVAILABLE_SLOTS", "50"))
