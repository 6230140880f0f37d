from marshmallow import EXCLUDE, Schema, fields, validate

from ..models.enums import NOTIFICATION_TYPES


class NotificationSchema(Schema):
    id = fields.Int(dump_only=True)
    recipient = fields.Int(attribute="recipient_user_id", dump_only=True)
    type = fields.Str(dump_only=True)
    title = fields.Str(dump_only=True)
    message = fields.Str(dump_only=True)
    related_item = fields.Method("_related_item", data_key="relatedItem")
    related_user = fields.Method("_related_user", data_key="relatedUser")
    data = fields.Dict(dump_only=True)
    read = fields.Bool(dump_only=True)
    read_at = fields.DateTime(dump_only=True, data_key="readAt")
    created_at = fields.DateTime(dump_only=True, data_key="createdAt")

    def _related_item(self, n):
        it = n.related_item
        if it is None:
            return None
        return {"id": it.id, "title": it.title, "type": it.type, "status": it.status, "location": it.location}

    def _related_user(self, n):
        u = n.related_user
        if u is None:
            return None
        return {"id": u.id, "name": u.name, "email": u.email}


class NotificationQuerySchema(Schema):
    class Meta:
        unknown = EXCLUDE

    page = fields.Int(load_default=1, validate=validate.Range(min=1))
    limit = fields.Int(load_default=20, validate=validate.Range(min=1, max=100))
    unread_only = fields.Bool(data_key="unreadOnly", load_default=False)
    type = fields.Str(validate=validate.OneOf(NOTIFICATION_TYPES))


class SystemNotificationSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    message = fields.Str(required=True, validate=validate.Length(min=1, error="Message is required"))
    title = fields.Str(load_default="System Announcement", validate=validate.Length(min=1, max=200))
    target_users = fields.List(fields.Int(), data_key="targetUsers", load_default=list)


notification_schema = NotificationSchema()
notifications_schema = NotificationSchema(many=True)
