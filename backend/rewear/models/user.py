from sqlalchemy import func, true, CheckConstraint, Index
from ..extensions import db
from .enums import role_enum


class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.BigInteger().with_variant(db.Integer, "sqlite"), primary_key=True)
    # Stored lower-cased; uniqueness is therefore case-insensitive
    email = db.Column(db.String(255), unique=True, nullable=False)
    name = db.Column(db.String(50), nullable=False)
    role = db.Column(role_enum, nullable=False, default="user", server_default="user")
    password_hash = db.Column(db.Text)
    bio = db.Column(db.String(200))
    location = db.Column(db.String(100))
    is_active = db.Column(db.Boolean, nullable=False, default=True, server_default=true())

    # Points ledger balance. Mutated only by services.ledger.
    points = db.Column(db.Integer, nullable=False, default=0, server_default="0")

    # Stats counters
    items_listed = db.Column(db.Integer, nullable=False, default=0, server_default="0")
    items_swapped = db.Column(db.Integer, nullable=False, default=0, server_default="0")
    swaps_completed = db.Column(db.Integer, nullable=False, default=0, server_default="0")
    total_points_earned = db.Column(db.Integer, nullable=False, default=0, server_default="0")
    total_points_spent = db.Column(db.Integer, nullable=False, default=0, server_default="0")

    last_login_at = db.Column(db.DateTime(timezone=True))
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    items = db.relationship(
        "Item",
        back_populates="uploader",
        foreign_keys="Item.uploader_user_id",
        lazy=True,
    )
    points_transactions = db.relationship(
        "PointsTransaction",
        back_populates="user",
        lazy="dynamic",
    )
    audit_logs = db.relationship(
        "AuditLog",
        back_populates="actor",
        foreign_keys="AuditLog.actor_user_id",
        lazy=True,
    )

    __table_args__ = (
        CheckConstraint("points >= 0", name="ck_users_points_non_negative"),
        Index("idx_users_role", "role"),
        Index("idx_users_points", "points"),
    )

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    def stats(self) -> dict:
        return {
            "itemsListed": self.items_listed,
            "itemsSwapped": self.items_swapped,
            "swapsCompleted": self.swaps_completed,
            "totalPointsEarned": self.total_points_earned,
            "totalPointsSpent": self.total_points_spent,
            "memberSince": self.created_at.isoformat() if self.created_at else None,
        }
