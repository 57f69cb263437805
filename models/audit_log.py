import json
from datetime import datetime

from models.db import db


class AuditLog(db.Model):
    """Append-only trail of booking and payment events."""

    __tablename__ = "audit_logs"
    __table_args__ = (
        db.Index("ix_audit_logs_entity", "entity", "entity_id"),
    )

    id = db.Column(db.Integer, primary_key=True)
    action = db.Column(db.String(80), nullable=False, index=True)  # BOOKING_CREATE, PAYMENT_PAID, ...
    entity = db.Column(db.String(80), nullable=True)  # booking | payment
    entity_id = db.Column(db.String(80), nullable=True)

    # request origin; empty for CLI runs
    ip = db.Column(db.String(64), nullable=True)
    user_agent = db.Column(db.String(255), nullable=True)
    metadata_json = db.Column(db.Text, nullable=True)

    timestamp = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    @property
    def details(self) -> dict:
        return json.loads(self.metadata_json) if self.metadata_json else {}

    @classmethod
    def trail(cls, entity: str, entity_id) -> list:
        """Events recorded against one entity, oldest first."""
        return (
            cls.query.filter_by(entity=entity, entity_id=str(entity_id))
            .order_by(cls.id.asc())
            .all()
        )
