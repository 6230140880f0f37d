from sqlalchemy import func, text, UniqueConstraint, Index
from ..extensions import db
from .enums import BigIntPK, JSONType, claim_status_enum

MAX_NOTES_LENGTH = 500


class Claim(db.Model):
    __tablename__ = "claims"

    id = db.Column(BigIntPK, primary_key=True)
    item_id = db.Column(BigIntPK, db.ForeignKey("items.id", ondelete="CASCADE"), nullable=False)
    claimant_user_id = db.Column(BigIntPK, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    # [{url, name, type, size, publicId}]
    verification_documents = db.Column(JSONType, nullable=False, default=list)
    notes = db.Column(db.String(MAX_NOTES_LENGTH))
    status = db.Column(claim_status_enum, nullable=False, default="pending", server_default="pending")
    reviewed_by_user_id = db.Column(BigIntPK, db.ForeignKey("users.id", ondelete="SET NULL"))
    reviewed_at = db.Column(db.DateTime(timezone=True))
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    item = db.relationship("Item", back_populates="claims")
    claimant = db.relationship("User", back_populates="claims", foreign_keys=[claimant_user_id])
    reviewer = db.relationship("User", foreign_keys=[reviewed_by_user_id])

    __table_args__ = (
        UniqueConstraint("item_id", "claimant_user_id", name="uq_claims_item_claimant"),
        Index("idx_claims_claimant", "claimant_user_id"),
        Index("idx_claims_status", "status"),
        # Single winner per item
        Index(
            "uq_claims_item_approved",
            "item_id",
            unique=True,
            postgresql_where=text("status = 'approved'"),
            sqlite_where=text("status = 'approved'"),
        ),
    )
