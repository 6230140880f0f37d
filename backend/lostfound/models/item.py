from __future__ import annotations

from datetime import datetime, timedelta

from sqlalchemy import Index, event, func
from ..extensions import db
from ..utils import as_utc, utcnow
from .enums import BigIntPK, JSONType, item_category_enum, item_status_enum, item_type_enum

DEFAULT_EXPIRY_DAYS = 30


def _default_expiry() -> datetime:
    return utcnow() + timedelta(days=DEFAULT_EXPIRY_DAYS)


class Item(db.Model):
    __tablename__ = "items"

    id = db.Column(BigIntPK, primary_key=True)
    reporter_user_id = db.Column(BigIntPK, db.ForeignKey("users.id", ondelete="SET NULL"))
    type = db.Column(item_type_enum, nullable=False)
    category = db.Column(item_category_enum, nullable=False)
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=False)
    location = db.Column(db.String(200), nullable=False)
    district = db.Column(db.String(120), nullable=False)
    date = db.Column(db.Date, nullable=False)
    status = db.Column(item_status_enum, nullable=False, default="active", server_default="active")
    images = db.Column(JSONType, nullable=False, default=list)
    contact_name = db.Column(db.String(120), nullable=False)
    contact_email = db.Column(db.String(255), nullable=False)
    contact_phone = db.Column(db.String(40), nullable=False)
    # color / brand / size / identifiers
    additional_details = db.Column(JSONType)
    expiry_date = db.Column(db.DateTime(timezone=True), nullable=False, default=_default_expiry)
    handed_over_to_police = db.Column(db.Boolean, nullable=False, default=False, server_default=db.false())
    police_report_number = db.Column(db.String(120))
    police_station = db.Column(db.String(200))
    police_handover_date = db.Column(db.DateTime(timezone=True))
    return_notes = db.Column(db.Text)
    return_date = db.Column(db.DateTime(timezone=True))
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    reporter = db.relationship("User", back_populates="reported_items", foreign_keys=[reporter_user_id])
    claims = db.relationship(
        "Claim",
        back_populates="item",
        cascade="all, delete-orphan",
        order_by="Claim.id",
    )

    __table_args__ = (
        Index("idx_items_type_status", "type", "status"),
        Index("idx_items_category", "category"),
        Index("idx_items_location_date", "location", "date"),
        Index("idx_items_expiry", "status", "expiry_date"),
        Index("idx_items_reporter", "reporter_user_id"),
    )

    def can_accept_claims(self, now: datetime | None = None) -> bool:
        """Open for claims while active and inside the claim window.

        Does not rely on the expiry sweep having run: an item past its expiry
        date is closed even if its status still reads 'active'.
        """
        if self.status != "active" or self.expiry_date is None:
            return False
        return as_utc(self.expiry_date) > (now or utcnow())

    def get_claim(self, claim_id: int):
        for claim in self.claims:
            if claim.id == claim_id:
                return claim
        return None

    def claim_by(self, user_id: int):
        for claim in self.claims:
            if claim.claimant_user_id == user_id:
                return claim
        return None

    def approved_claim(self):
        return next((c for c in self.claims if c.status == "approved"), None)

    def pending_claims(self) -> list:
        return [c for c in self.claims if c.status == "pending"]


@event.listens_for(Item, "before_update")
def _expire_on_save(mapper, connection, target: Item) -> None:
    # Saving an overdue active item flips it to expired
    if target.status == "active" and target.expiry_date is not None and as_utc(target.expiry_date) < utcnow():
        target.status = "expired"
