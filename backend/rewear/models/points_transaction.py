from sqlalchemy import func, Index
from ..extensions import db
from .enums import ledger_source_enum


class PointsTransaction(db.Model):
    """Append-only audit trail of every ledger credit and debit.

    ``User.points`` is the balance; these rows explain how it got there.
    """

    __tablename__ = "points_transactions"

    id = db.Column(db.BigInteger().with_variant(db.Integer, "sqlite"), primary_key=True)
    user_id = db.Column(db.BigInteger, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    # Positive for credit, negative for debit
    points = db.Column(db.Integer, nullable=False)
    balance_after = db.Column(db.Integer, nullable=False)
    transaction_type = db.Column(db.String(20), nullable=False)  # credit, debit
    source = db.Column(ledger_source_enum, nullable=False)
    swap_request_id = db.Column(db.BigInteger, db.ForeignKey("swap_requests.id", ondelete="SET NULL"))
    description = db.Column(db.String(500))
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now())

    user = db.relationship("User", back_populates="points_transactions")
    swap_request = db.relationship("SwapRequest")

    __table_args__ = (
        Index("idx_points_transactions_user_created", "user_id", "created_at"),
    )

    def __repr__(self):
        return f"<PointsTransaction {self.id}: {self.points} pts for user {self.user_id}>"
