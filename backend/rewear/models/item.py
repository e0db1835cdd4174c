from sqlalchemy import func, CheckConstraint, Index
from ..extensions import db
from .enums import item_status_enum


class Item(db.Model):
    __tablename__ = "items"

    id = db.Column(db.BigInteger().with_variant(db.Integer, "sqlite"), primary_key=True)
    uploader_user_id = db.Column(db.BigInteger, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    title = db.Column(db.String(100), nullable=False)
    description = db.Column(db.String(1000), nullable=False)
    category = db.Column(db.String(30), nullable=False)
    size = db.Column(db.String(20), nullable=False)
    condition = db.Column(db.String(20), nullable=False)
    # Fixed valuation for points redemption and the listing-completion bonus
    points = db.Column(db.Integer, nullable=False)
    image_url = db.Column(db.String(512))
    brand = db.Column(db.String(50))
    color = db.Column(db.String(30))
    location = db.Column(db.String(100))
    # Mutated only by services.inventory
    status = db.Column(item_status_enum, nullable=False, default="pending", server_default="pending")

    # Moderation
    approved_by_user_id = db.Column(db.BigInteger, db.ForeignKey("users.id", ondelete="SET NULL"))
    approved_at = db.Column(db.DateTime(timezone=True))
    rejected_reason = db.Column(db.String(200))
    admin_notes = db.Column(db.String(500))

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    uploader = db.relationship("User", back_populates="items", foreign_keys=[uploader_user_id])
    approved_by = db.relationship("User", foreign_keys=[approved_by_user_id])
    # Back-references to every swap request naming this item (informational)
    swap_requests = db.relationship(
        "SwapRequest",
        back_populates="item",
        foreign_keys="SwapRequest.item_id",
        lazy="dynamic",
    )

    __table_args__ = (
        CheckConstraint("points >= 1 AND points <= 1000", name="ck_items_points_range"),
        Index("idx_items_status_category", "status", "category"),
        Index("idx_items_uploader", "uploader_user_id"),
        Index("idx_items_created_at", "created_at"),
    )

    def is_owned_by(self, user_id: int | None) -> bool:
        return user_id is not None and int(self.uploader_user_id) == int(user_id)
