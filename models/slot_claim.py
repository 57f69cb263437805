from models.db import db


class SlotClaim(db.Model):
    """One minute of the day held by a booking.

    A booking claims every grid minute from its start up to start + minimum gap,
    so two bookings closer than the gap always collide on at least one row.
    """
    __tablename__ = "slot_claims"

    id = db.Column(db.Integer, primary_key=True)
    booking_id = db.Column(db.Integer, db.ForeignKey("bookings.id"), nullable=False, index=True)

    date = db.Column(db.Date, nullable=False)
    minute = db.Column(db.Integer, nullable=False)

    __table_args__ = (
        # Hard business-rule: a minute of a day can be held by one booking only
        db.UniqueConstraint("date", "minute", name="uq_slot_claim_minute"),
    )
