from sqlalchemy import func, text, CheckConstraint, Index
from ..extensions import db
from .enums import swap_status_enum, swap_type_enum


class SwapRequest(db.Model):
    __tablename__ = "swap_requests"

    id = db.Column(db.BigInteger().with_variant(db.Integer, "sqlite"), primary_key=True)
    item_id = db.Column(db.BigInteger, db.ForeignKey("items.id", ondelete="CASCADE"), nullable=False)
    requester_user_id = db.Column(db.BigInteger, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    item_owner_user_id = db.Column(db.BigInteger, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    swap_type = db.Column(swap_type_enum, nullable=False)
    status = db.Column(swap_status_enum, nullable=False, default="pending", server_default="pending")

    offered_item_id = db.Column(db.BigInteger, db.ForeignKey("items.id", ondelete="SET NULL"))
    offered_points = db.Column(db.Integer)

    message = db.Column(db.String(500))
    response_message = db.Column(db.String(500))
    completed_at = db.Column(db.DateTime(timezone=True))
    cancelled_by_user_id = db.Column(db.BigInteger, db.ForeignKey("users.id", ondelete="SET NULL"))
    cancelled_reason = db.Column(db.String(200))

    # Set when a ledger transfer actually happened; enables exact reversal
    points_transferred = db.Column(db.Boolean, nullable=False, default=False)
    transfer_amount = db.Column(db.Integer)

    is_read = db.Column(db.Boolean, nullable=False, default=False)
    read_at = db.Column(db.DateTime(timezone=True))

    # Optimistic concurrency: a losing concurrent writer raises StaleDataError
    version = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    item = db.relationship("Item", back_populates="swap_requests", foreign_keys=[item_id])
    offered_item = db.relationship("Item", foreign_keys=[offered_item_id])
    requester = db.relationship("User", foreign_keys=[requester_user_id])
    item_owner = db.relationship("User", foreign_keys=[item_owner_user_id])
    cancelled_by = db.relationship("User", foreign_keys=[cancelled_by_user_id])

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        CheckConstraint("requester_user_id <> item_owner_user_id", name="ck_swap_requests_not_self"),
        CheckConstraint("offered_points IS NULL OR offered_points >= 0", name="ck_swap_requests_offered_points"),
        Index("idx_swap_requests_requester_status", "requester_user_id", "status"),
        Index("idx_swap_requests_owner_status", "item_owner_user_id", "status"),
        Index("idx_swap_requests_item", "item_id"),
        Index("idx_swap_requests_created_at", "created_at"),
        # At most one pending request per requester and item
        Index(
            "uq_swap_requests_pending_request",
            "item_id",
            "requester_user_id",
            unique=True,
            postgresql_where=text("status = 'pending'"),
            sqlite_where=text("status = 'pending'"),
        ),
    )
