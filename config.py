import os

BASE_DIR = os.path.abspath(os.path.dirname(__file__))

class Config:
    # Secrets
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-only-change-me")

    # SQLite database file stored next to the app as carwash.db
    SQLALCHEMY_DATABASE_URI = os.getenv(
        "DATABASE_URL",
        "sqlite:///" + os.path.join(BASE_DIR, "carwash.db")
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Working hours: slots from OPENING_HOUR (inclusive) to CLOSING_HOUR (exclusive)
    OPENING_HOUR = int(os.getenv("OPENING_HOUR", "8"))
    CLOSING_HOUR = int(os.getenv("CLOSING_HOUR", "18"))
    SLOT_MINUTES = int(os.getenv("SLOT_MINUTES", "30"))
    SLOT_LABEL_FORMAT = os.getenv("SLOT_LABEL_FORMAT", "24h")  # "24h" -> 14:30, "12h" -> 2:30 PM

    # Two bookings on the same day must start at least this far apart
    MIN_GAP_MINUTES = int(os.getenv("MIN_GAP_MINUTES", "60"))

    # All booking times are local to this zone
    OPERATING_TIMEZONE = os.getenv("OPERATING_TIMEZONE", "Africa/Johannesburg")

    #Cancellation policy
    CANCEL_CUTOFF_HOURS = float(os.getenv("CANCEL_CUTOFF_HOURS", "1"))

    # Pending bookings with no payment session are failed after this long
    ORPHAN_TTL_MINUTES = int(os.getenv("ORPHAN_TTL_MINUTES", "30"))

    # Payments (Stripe Checkout)
    CURRENCY = os.getenv("CURRENCY", "ZAR")
    STRIPE_SECRET_KEY = os.getenv("STRIPE_SECRET_KEY")
    STRIPE_WEBHOOK_SECRET = os.getenv("STRIPE_WEBHOOK_SECRET")
    PAYMENT_GATEWAY_TIMEOUT_SECONDS = float(os.getenv("PAYMENT_GATEWAY_TIMEOUT_SECONDS", "10"))
    FRONTEND_BASE_URL = os.getenv("FRONTEND_BASE_URL", "http://localhost:3000")
    PAYMENT_SUCCESS_URL = os.getenv("PAYMENT_SUCCESS_URL", "http://localhost:5002/pay/success")
    PAYMENT_CANCEL_URL = os.getenv("PAYMENT_CANCEL_URL", "http://localhost:5002/pay/cancel")

    # Shared secret for the generic /api/payments/confirm callback
    PAYMENT_CALLBACK_SECRET = os.getenv("PAYMENT_CALLBACK_SECRET")

    # Email (SMTP)
    SMTP_HOST = os.getenv("SMTP_HOST")
    SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
    SMTP_USERNAME = os.getenv("SMTP_USERNAME")
    SMTP_PASSWORD = os.getenv("SMTP_PASSWORD")
    SMTP_FROM_EMAIL = os.getenv("SMTP_FROM_EMAIL")
    SMTP_USE_TLS = os.getenv("SMTP_USE_TLS", "true").lower() == "true"
    SMTP_TIMEOUT_SECONDS = float(os.getenv("SMTP_TIMEOUT_SECONDS", "10"))

    # Receives a copy of every confirmed booking
    OWNER_EMAIL = os.getenv("OWNER_EMAIL")
    BUSINESS_NAME = os.getenv("BUSINESS_NAME", "Kiings Car Wash")

    # Basic app settings
    DEBUG = False
