"""
CourseHub Configuration
Store, payment gateway and follow-up settings
"""

import os

# MongoDB
MONGO_URL = os.getenv("MONGO_URL", "mongodb://localhost:27017")
DATABASE_NAME = os.getenv("DATABASE_NAME", "coursehub")

# Razorpay (hosted checkout via Payment Links)
RAZORPAY_KEY_ID = os.getenv("RAZORPAY_KEY_ID", "")
RAZORPAY_KEY_SECRET = os.getenv("RAZORPAY_KEY_SECRET", "")
CHECKOUT_CURRENCY = os.getenv("CHECKOUT_CURRENCY", "USD")
GATEWAY_TIMEOUT_SECONDS = float(os.getenv("GATEWAY_TIMEOUT_SECONDS", "20"))

# Frontend used to build redirect URLs
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173").rstrip("/")

# Grading
PASSING_SCORE = int(os.getenv("PASSING_SCORE", "70"))

# Best-effort follow-ups
FOLLOWUP_MAX_ATTEMPTS = int(os.getenv("FOLLOWUP_MAX_ATTEMPTS", "3"))
FOLLOWUP_BACKOFF_SECONDS = float(os.getenv("FOLLOWUP_BACKOFF_SECONDS", "0.5"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

REQUIRED_SETTINGS = ("MONGO_URL", "RAZORPAY_KEY_ID", "RAZORPAY_KEY_SECRET", "FRONTEND_URL")


def missing_settings() -> list:
    """Names of required environment variables that are not set"""
    return [name for name in REQUIRED_SETTINGS if not os.getenv(name)]
