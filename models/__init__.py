from .db import db
from .audit_log import AuditLog
from .booking import Booking, BookingStatus
from .payment import Payment, PaymentStatus
from .slot_claim import SlotClaim
