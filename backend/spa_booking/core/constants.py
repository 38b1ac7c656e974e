"""Application-wide constants for the Spa Booking platform."""

from __future__ import annotations

BRAND_NAME = "Serenity Spa"

API_TITLE = f"{BRAND_NAME} Booking API"
API_VERSION = "0.1.0"

# Hold time-to-live bounds (minutes)
DEFAULT_RESERVATION_TIMEOUT_MINUTES = 5
MIN_RESERVATION_TIMEOUT_MINUTES = 1
MAX_RESERVATION_TIMEOUT_MINUTES = 60

# Cancellation notice bounds (hours); 0 disables the policy
DEFAULT_MIN_CANCELLATION_NOTICE_HOURS = 0
MIN_CANCELLATION_NOTICE_HOURS = 0
MAX_CANCELLATION_NOTICE_HOURS = 168

# Expiry sweep interval bounds (seconds)
DEFAULT_CLEANUP_INTERVAL_SECONDS = 30
MIN_CLEANUP_INTERVAL_SECONDS = 10
MAX_CLEANUP_INTERVAL_SECONDS = 300

# Text constraints
MAX_NOTES_LENGTH = 1000

# Query limits
DEFAULT_QUERY_LIMIT = 100
MAX_QUERY_LIMIT = 500

# Operations slower than this are logged as warnings
SLOW_OPERATION_SECONDS = 1.0

# Available-slot search window when no end date is given
DEFAULT_SLOT_SEARCH_DAYS = 30
MAX_SLOT_SEARCH_DAYS = 90
