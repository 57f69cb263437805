from datetime import datetime
from models.db import db


class BookingStatus:
    PENDING = "Pending"
    PAID = "Paid"
    FAILED = "Failed"

    # statuses that hold their slot
    ACTIVE = (PENDING, PAID)


class Booking(db.Model):
    __tablename__ = "bookings"

    id = db.Column(db.Integer, primary_key=True)

    first_name = db.Column(db.String(80), nullable=False)
    last_name = db.Column(db.String(80), nullable=False)
    email = db.Column(db.String(255), nullable=False, index=True)
    car_model = db.Column(db.String(120), nullable=False)

    wash_type_name = db.Column(db.String(120), nullable=True)
    wash_type_price = db.Column(db.Numeric(10, 2), nullable=True)
    additional_services_json = db.Column(db.Text, nullable=True)  # [{"name": ..., "price": ...}]

    date = db.Column(db.Date, nullable=False, index=True)
    time = db.Column(db.String(16), nullable=False)      # slot label as shown to the customer
    start_minute = db.Column(db.Integer, nullable=False)  # minutes since midnight

    service_location = db.Column(db.String(160), nullable=True)
    address = db.Column(db.String(255), nullable=True)
    subscription = db.Column(db.Boolean, nullable=False, default=False)

    total_price = db.Column(db.Numeric(10, 2), nullable=False)
    payment_status = db.Column(db.String(20), nullable=False, default=BookingStatus.PENDING)
    # status values: Pending, Paid, Failed

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    claims = db.relationship(
        "SlotClaim",
        backref="booking",
        cascade="all, delete-orphan",
        lazy="select",
    )
    payment = db.relationship(
        "Payment",
        backref="booking",
        cascade="all, delete-orphan",
        uselist=False,
    )

    __table_args__ = (
        db.CheckConstraint("total_price > 0", name="ck_booking_total_positive"),
    )
