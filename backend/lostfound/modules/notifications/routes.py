from __future__ import annotations

import json
import time
from queue import Empty

from flask import Blueprint, Response, current_app, request, stream_with_context

from ...access import admin_only, login_required, require_user
from ...errors import NotFoundError
from ...extensions import db
from ...models.notification import Notification
from ...schemas.notification import (
    NotificationQuerySchema,
    SystemNotificationSchema,
    notification_schema,
    notifications_schema,
)
from ...utils import ok, paginate, utcnow
from ..items.expiry import send_deadline_reminders
from .bus import subscribe, unsubscribe
from .dispatcher import dispatch

bp = Blueprint("notifications", __name__, url_prefix="/notifications")


def _unread_count(user_id: int) -> int:
    return Notification.query.filter(
        Notification.recipient_user_id == user_id,
        Notification.read.is_(False),
    ).count()


def _own_notification_or_404(notif_id: int, user_id: int) -> Notification:
    n = Notification.query.filter(
        Notification.id == notif_id,
        Notification.recipient_user_id == user_id,
    ).one_or_none()
    if n is None:
        raise NotFoundError("Notification")
    return n


@bp.get("")
@login_required
def list_notifications():
    user = require_user()
    args = NotificationQuerySchema().load({k: v for k, v in request.args.items() if v != ""})
    q = Notification.query.filter(Notification.recipient_user_id == user.id)
    if args["unread_only"]:
        q = q.filter(Notification.read.is_(False))
    if args.get("type"):
        q = q.filter(Notification.type == args["type"])
    q = q.order_by(Notification.created_at.desc(), Notification.id.desc())

    rows, meta = paginate(q, args["page"], args["limit"])
    meta["unread"] = _unread_count(user.id)
    return ok(notifications_schema.dump(rows), pagination=meta)


@bp.get("/unread-count")
@login_required
def unread_count():
    user = require_user()
    return ok({"count": _unread_count(user.id)})


@bp.get("/stream")
@login_required
def stream_notifications():
    """Server-Sent Events stream of the caller's new notifications."""
    uid = require_user().id
    q = subscribe(uid)
    keepalive = int(current_app.config.get("SSE_KEEPALIVE_SECONDS", 15))

    def event_stream():
        try:
            # Initial comment to establish stream
            yield ": connected\n\n"
            while True:
                try:
                    # Keep below gunicorn's timeout to ensure periodic yields
                    evt = q.get(timeout=keepalive)
                except Empty:
                    yield "event: ping\n" + f"data: {json.dumps({'ts': int(time.time())})}\n\n"
                    continue
                yield "event: notification\n" + f"data: {json.dumps(evt, default=str)}\n\n"
        finally:
            unsubscribe(uid, q)

    headers = {
        "Content-Type": "text/event-stream",
        "Cache-Control": "no-cache",
        "Connection": "keep-alive",
        "X-Accel-Buffering": "no",
    }
    return Response(stream_with_context(event_stream()), headers=headers)


@bp.put("/mark-all-read")
@login_required
def mark_all_read():
    user = require_user()
    updated = (
        Notification.query.filter(
            Notification.recipient_user_id == user.id,
            Notification.read.is_(False),
        ).update({"read": True, "read_at": utcnow()}, synchronize_session=False)
    )
    db.session.commit()
    return ok({"modifiedCount": updated}, message=f"{updated} notifications marked as read")


@bp.put("/<int:notif_id>/read")
@login_required
def mark_read(notif_id: int):
    user = require_user()
    n = _own_notification_or_404(notif_id, user.id)
    if not n.read:
        n.read = True
        n.read_at = utcnow()
        db.session.commit()
    return ok(notification_schema.dump(n), message="Notification marked as read")


@bp.delete("/<int:notif_id>")
@login_required
def delete_notification(notif_id: int):
    user = require_user()
    n = _own_notification_or_404(notif_id, user.id)
    db.session.delete(n)
    db.session.commit()
    return ok(message="Notification deleted")


@bp.post("/system")
@admin_only
def system_notification():
    admin = require_user()
    data = SystemNotificationSchema().load(request.get_json(silent=True) or {})
    dispatch(
        "system_announcement",
        title=data["title"],
        message=data["message"],
        target_user_ids=data["target_users"],
        sender_id=admin.id,
    )
    return ok(message="System notification sent successfully")


@bp.post("/deadline-reminders")
@admin_only
def deadline_reminders():
    window = int(current_app.config.get("DEADLINE_REMINDER_DAYS", 3))
    run = send_deadline_reminders(window_days=window)
    return ok(
        {
            "itemsExpiringSoon": run.expiring_soon,
            "itemsExpiringTomorrow": run.expiring_tomorrow,
            "remindersSent": run.reminders_sent,
        },
        message=f"{run.reminders_sent} deadline reminders sent",
    )
