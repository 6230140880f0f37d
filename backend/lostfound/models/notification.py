from sqlalchemy import Index, func
from ..extensions import db
from .enums import BigIntPK, JSONType, notification_type_enum


class Notification(db.Model):
    __tablename__ = "notifications"

    id = db.Column(BigIntPK, primary_key=True)
    recipient_user_id = db.Column(BigIntPK, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    type = db.Column(notification_type_enum, nullable=False)
    title = db.Column(db.String(200), nullable=False)
    message = db.Column(db.Text, nullable=False)
    related_item_id = db.Column(BigIntPK, db.ForeignKey("items.id", ondelete="SET NULL"))
    related_user_id = db.Column(BigIntPK, db.ForeignKey("users.id", ondelete="SET NULL"))
    data = db.Column(JSONType, nullable=False, default=dict)
    read = db.Column(db.Boolean, nullable=False, default=False, server_default=db.false())
    read_at = db.Column(db.DateTime(timezone=True))
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now())

    recipient = db.relationship("User", back_populates="notifications", foreign_keys=[recipient_user_id])
    related_item = db.relationship("Item", foreign_keys=[related_item_id])
    related_user = db.relationship("User", foreign_keys=[related_user_id])

    __table_args__ = (
        Index("idx_notifications_recipient_created", "recipient_user_id", "created_at"),
        Index("idx_notifications_recipient_read", "recipient_user_id", "read"),
        Index("idx_notifications_type", "type"),
        Index("idx_notifications_related_item", "related_item_id"),
    )
