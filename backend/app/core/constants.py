"""Application-wide constants for the InSkate platform."""

from __future__ import annotations

BRAND_NAME = "InSkate"

API_TITLE = f"{BRAND_NAME} API"
API_DESCRIPTION = "API for the InSkate online figure skating school"
API_VERSION = "2.0.0"

# Pagination
DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100

# Slot listings default to a 30 day window
DEFAULT_SLOT_WINDOW_DAYS = 30

# Text constraints
MAX_NOTES_LENGTH = 1000
MAX_PUSH_TITLE_LENGTH = 100
MAX_PUSH_BODY_LENGTH = 500

# Manual grant defaults
DEFAULT_GRANT_DAYS = 30

# Push copy sent when a coach session gets confirmed
BOOKING_CONFIRMED_PUSH_TITLE = "Тренировка подтверждена"
BOOKING_CONFIRMED_PUSH_BODY = "Ваша тренировка с {coach_name} подтверждена"
