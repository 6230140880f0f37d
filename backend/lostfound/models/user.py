from sqlalchemy import func, Index
from ..extensions import db
from .enums import BigIntPK, role_enum


class User(db.Model):
    __tablename__ = "users"

    id = db.Column(BigIntPK, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=False)
    phone = db.Column(db.String(40))
    role = db.Column(role_enum, nullable=False, server_default="user")
    # Physical location scope for staff members; matched against Item.location
    branch = db.Column(db.String(120))
    is_active = db.Column(db.Boolean, nullable=False, default=True, server_default=db.true())
    password_hash = db.Column(db.Text)
    last_login_at = db.Column(db.DateTime(timezone=True))
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    reported_items = db.relationship(
        "Item",
        back_populates="reporter",
        foreign_keys="Item.reporter_user_id",
        lazy=True,
    )
    claims = db.relationship(
        "Claim",
        back_populates="claimant",
        foreign_keys="Claim.claimant_user_id",
        lazy=True,
        cascade="save-update, merge, delete",
    )
    notifications = db.relationship(
        "Notification",
        back_populates="recipient",
        foreign_keys="Notification.recipient_user_id",
        lazy=True,
        cascade="save-update, merge, delete",
    )

    __table_args__ = (
        Index("idx_users_role_active", "role", "is_active"),
    )

    @property
    def is_reviewer(self) -> bool:
        return self.role in ("staff", "admin")
