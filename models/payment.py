from datetime import datetime
from models.db import db


class PaymentStatus:
    PENDING = "pending"
    SUCCESSFUL = "successful"
    FAILED = "failed"

    TERMINAL = (SUCCESSFUL, FAILED)


class Payment(db.Model):
    __tablename__ = "payments"

    id = db.Column(db.Integer, primary_key=True)
    booking_id = db.Column(db.Integer, db.ForeignKey("bookings.id"), nullable=False, unique=True, index=True)

    provider = db.Column(db.String(20), nullable=False, default="STRIPE")
    amount = db.Column(db.Integer, nullable=False)   # smallest unit
    currency = db.Column(db.String(10), nullable=False, default="ZAR")

    status = db.Column(db.String(20), nullable=False, default=PaymentStatus.PENDING)  # pending, successful, failed
    session_id = db.Column(db.String(255), nullable=False, unique=True, index=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    paid_at = db.Column(db.DateTime, nullable=True)
