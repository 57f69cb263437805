"""Booking store - database operations for bookings, payments and slot claims"""
from datetime import datetime

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from models.booking import Booking, BookingStatus
from models.payment import Payment, PaymentStatus
from models.slot_claim import SlotClaim
from services.exceptions import ConflictError, UpstreamError


class BookingStore:
    """
    Repository over a SQLAlchemy session.

    Every write that has to be race-free goes through a database guarantee
    (unique constraint or conditional UPDATE), never a read-then-write.
    """

    def __init__(self, session):
        self.session = session

    def _fail(self, exc, message="Booking store unavailable"):
        self.session.rollback()
        raise UpstreamError(message) from exc

    # ---------- reads ----------
    def booked_minutes(self, day) -> list:
        """Start minutes of the active (Pending/Paid) bookings on ``day``."""
        try:
            rows = (
                self.session.query(Booking.start_minute)
                .filter(Booking.date == day, Booking.payment_status.in_(BookingStatus.ACTIVE))
                .all()
            )
        except SQLAlchemyError as exc:
            self._fail(exc)
        return [r.start_minute for r in rows]

    def get_booking(self, booking_id: int):
        return self.session.get(Booking, booking_id)

    def find_payment_by_session(self, session_id: str):
        try:
            return self.session.query(Payment).filter_by(session_id=session_id).first()
        except SQLAlchemyError as exc:
            self._fail(exc)

    def list_bookings(self, email=None, day=None, status=None, limit=200) -> list:
        q = self.session.query(Booking)
        if email:
            q = q.filter(Booking.email == email)
        if day:
            q = q.filter(Booking.date == day)
        if status:
            q = q.filter(Booking.payment_status == status)
        return q.order_by(Booking.created_at.desc(), Booking.id.desc()).limit(limit).all()

    def orphans(self, created_before: datetime) -> list:
        """Pending bookings that never got a payment session."""
        return (
            self.session.query(Booking)
            .outerjoin(Payment, Payment.booking_id == Booking.id)
            .filter(
                Booking.payment_status == BookingStatus.PENDING,
                Booking.created_at < created_before,
                Payment.id.is_(None),
            )
            .all()
        )

    # ---------- writes ----------
    def insert_booking(self, booking: Booking, claim_minutes: list) -> int:
        """
        Persist ``booking`` together with its slot claims in one transaction.

        Returns the new booking id. A unique-constraint hit on slot_claims means
        another booking inside the minimum gap won the race.
        """
        for minute in claim_minutes:
            booking.claims.append(SlotClaim(date=booking.date, minute=minute))
        self.session.add(booking)
        try:
            self.session.flush()
            booking_id = booking.id
            self.session.commit()
        except IntegrityError as exc:
            self.session.rollback()
            raise ConflictError("Selected time slot is no longer available") from exc
        except SQLAlchemyError as exc:
            self._fail(exc)
        return booking_id

    def add_payment(self, payment: Payment) -> Payment:
        self.session.add(payment)
        try:
            self.session.commit()
        except SQLAlchemyError as exc:
            self._fail(exc, "Could not record payment session")
        return payment

    def delete_booking(self, booking: Booking):
        """Delete a booking with its payment and claims."""
        self.session.delete(booking)
        try:
            self.session.commit()
        except SQLAlchemyError as exc:
            self._fail(exc)

    def mark_failed(self, booking: Booking):
        """Fail a booking that never reached the gateway and free its slot."""
        booking.payment_status = BookingStatus.FAILED
        booking.claims.clear()
        try:
            self.session.commit()
        except SQLAlchemyError as exc:
            self._fail(exc)

    def settle_payment(self, payment_id: int, booking_id: int, new_status: str) -> bool:
        """
        Move a payment out of ``pending`` and mirror the outcome on its booking.

        The UPDATE only matches a pending row, so of two concurrent callbacks
        exactly one sees rowcount == 1. Returns False for the loser, in which
        case nothing is changed.
        """
        values = {"status": new_status}
        if new_status == PaymentStatus.SUCCESSFUL:
            values["paid_at"] = datetime.utcnow()

        try:
            result = self.session.execute(
                update(Payment)
                .where(Payment.id == payment_id, Payment.status == PaymentStatus.PENDING)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                self.session.rollback()
                return False

            booking = self.session.get(Booking, booking_id)
            if booking is not None:
                if new_status == PaymentStatus.SUCCESSFUL:
                    booking.payment_status = BookingStatus.PAID
                else:
                    booking.payment_status = BookingStatus.FAILED
                    booking.claims.clear()
            self.session.commit()
        except SQLAlchemyError as exc:
            self._fail(exc)

        return True
