import os

BOOKING_STORE = (os.getenv("BOOKING_STORE") or "memory").lower()
BOOKING_DB = os.getenv("BOOKING_DB")

BOOKING_GUARD = (os.getenv("BOOKING_GUARD") or "local").lower()
REDIS_URL = os.getenv("REDIS_URL")
LEASE_TTL_SECONDS = int(os.getenv("LEASE_TTL_SECONDS") or "30")

LOG_LEVEL = (os.getenv("LOG_LEVEL") or "INFO").upper()
LOG_FILE = os.getenv("LOG_FILE")
