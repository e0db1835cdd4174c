from sqlalchemy import Index, func
from sqlalchemy.dialects.postgresql import JSONB
from ..extensions import db


class AuditLog(db.Model):
    __tablename__ = "audit_logs"

    id = db.Column(db.BigInteger().with_variant(db.Integer, "sqlite"), primary_key=True)
    actor_user_id = db.Column(db.BigInteger, db.ForeignKey("users.id", ondelete="SET NULL"))
    action = db.Column(db.String(120), nullable=False)
    entity_type = db.Column(db.String(120), nullable=False)
    entity_id = db.Column(db.BigInteger, nullable=False)
    details = db.Column(db.JSON().with_variant(JSONB, "postgresql"))
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now())

    actor = db.relationship("User", back_populates="audit_logs", foreign_keys=[actor_user_id])

    __table_args__ = (
        Index("idx_audit_entity", "entity_type", "entity_id"),
        Index("idx_audit_created_at", "created_at"),
    )


def record(action: str, entity_type: str, entity_id: int, actor_user_id: int | None = None, **details) -> AuditLog:
    """Add an audit row to the current session; committed with the caller's unit of work."""
    log = AuditLog(
        actor_user_id=actor_user_id,
        action=action,
        entity_type=entity_type,
        entity_id=int(entity_id),
        details=details or None,
    )
    db.session.add(log)
    return log
