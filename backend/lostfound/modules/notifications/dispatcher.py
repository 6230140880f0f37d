"""
Notification fan-out for lifecycle events.

Events are plain names plus JSON-friendly keyword arguments (ids, strings,
numbers) so they can cross the Celery queue unchanged. ``dispatch`` is always
called after the triggering transaction has committed, and whatever goes wrong
while delivering is logged to the dead-letter logger instead of reaching the
caller.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Iterable, List, Optional

from flask import current_app

from ...extensions import db
from ...models.claim import Claim
from ...models.item import Item
from ...models.notification import Notification
from ...models.user import User
from ...schemas.notification import notification_schema
from .bus import publish

logger = logging.getLogger(__name__)
deadletter = logging.getLogger("lostfound.notifications.deadletter")

CLAIM_SUPERSEDED_REASON = "Another claim was approved first"


def _publish(notifications: Iterable[Notification]) -> None:
    for n in notifications:
        publish(n.recipient_user_id, notification_schema.dump(n))


def _build(recipient_id: int, type: str, title: str, message: str, related_item_id=None, related_user_id=None, data=None):
    return Notification(
        recipient_user_id=recipient_id,
        type=type,
        title=title,
        message=message,
        related_item_id=related_item_id,
        related_user_id=related_user_id,
        data=dict(data or {}),
    )


def create_notification(recipient_id: int, **payload) -> Notification:
    """Persist one notification and push it to the recipient's open streams."""
    n = _build(recipient_id, **payload)
    db.session.add(n)
    db.session.commit()
    _publish([n])
    return n


def create_bulk_notifications(recipient_ids: Iterable[Optional[int]], **payload) -> List[Notification]:
    """One independent record per distinct recipient, sharing the payload."""
    seen: set[int] = set()
    rows: List[Notification] = []
    for rid in recipient_ids:
        if rid is None or rid in seen:
            continue
        seen.add(rid)
        rows.append(_build(rid, **payload))
    if not rows:
        return []
    db.session.add_all(rows)
    db.session.commit()
    _publish(rows)
    return rows


def get_admin_staff_ids() -> List[int]:
    rows = (
        db.session.query(User.id)
        .filter(User.role.in_(("admin", "staff")), User.is_active.is_(True))
        .order_by(User.id)
        .all()
    )
    return [r[0] for r in rows]


def get_active_user_ids() -> List[int]:
    rows = db.session.query(User.id).filter(User.is_active.is_(True)).order_by(User.id).all()
    return [r[0] for r in rows]


def _item_or_none(item_id: int) -> Optional[Item]:
    item = db.session.get(Item, item_id)
    if item is None:
        logger.warning("Notification skipped: item %s no longer exists", item_id)
    return item


def _name(user: Optional[User], fallback: str = "Staff") -> str:
    return user.name if user is not None else fallback


# Event handlers


def on_claim_submitted(item_id: int, claim_id: int) -> List[Notification]:
    item = _item_or_none(item_id)
    claim = db.session.get(Claim, claim_id)
    if item is None or claim is None:
        return []
    claimant = claim.claimant
    data = {"itemTitle": item.title, "itemType": item.type, "claimantName": claimant.name}
    out: List[Notification] = []
    if item.reporter_user_id is not None:
        out.append(
            create_notification(
                item.reporter_user_id,
                type="claim_submitted",
                title="New Claim Submitted",
                message=f'{claimant.name} has submitted a claim for your {item.type} item "{item.title}"',
                related_item_id=item.id,
                related_user_id=claimant.id,
                data=data,
            )
        )
    reviewers = [uid for uid in get_admin_staff_ids() if uid != item.reporter_user_id]
    out.extend(
        create_bulk_notifications(
            reviewers,
            type="claim_submitted",
            title="New Claim Requires Review",
            message=(
                f'{claimant.name} submitted a claim for {item.type} item "{item.title}". '
                "Please review and approve/reject."
            ),
            related_item_id=item.id,
            related_user_id=claimant.id,
            data={**data, "requiresAction": True},
        )
    )
    return out


def on_claim_approved(item_id: int, claim_id: int, reviewer_id: Optional[int] = None) -> List[Notification]:
    item = _item_or_none(item_id)
    claim = db.session.get(Claim, claim_id)
    if item is None or claim is None:
        return []
    claimant = claim.claimant
    reviewer = db.session.get(User, reviewer_id) if reviewer_id else None
    out = [
        create_notification(
            claimant.id,
            type="claim_approved",
            title="Claim Approved!",
            message=(
                f'Great news! Your claim for "{item.title}" has been approved. '
                "Please contact the item owner to arrange pickup."
            ),
            related_item_id=item.id,
            related_user_id=reviewer_id,
            data={
                "itemTitle": item.title,
                "itemType": item.type,
                "approvedBy": _name(reviewer),
                "contactInfo": {"name": item.contact_name, "email": item.contact_email, "phone": item.contact_phone},
            },
        )
    ]
    if item.reporter_user_id is not None:
        out.append(
            create_notification(
                item.reporter_user_id,
                type="claim_approved",
                title="Claim Approved for Your Item",
                message=(
                    f'A claim for your {item.type} item "{item.title}" has been approved. '
                    f"The claimant ({claimant.name}) may contact you soon."
                ),
                related_item_id=item.id,
                related_user_id=claimant.id,
                data={"itemTitle": item.title, "itemType": item.type, "claimantName": claimant.name},
            )
        )
    return out


def on_claims_rejected(
    item_id: int,
    claim_ids: List[int],
    reviewer_id: Optional[int] = None,
    reason: Optional[str] = None,
) -> List[Notification]:
    item = _item_or_none(item_id)
    if item is None:
        return []
    reviewer = db.session.get(User, reviewer_id) if reviewer_id else None
    suffix = f" Reason: {reason}" if reason else ""
    out: List[Notification] = []
    for claim_id in claim_ids:
        claim = db.session.get(Claim, claim_id)
        if claim is None:
            continue
        out.append(
            create_notification(
                claim.claimant_user_id,
                type="claim_rejected",
                title="Claim Not Approved",
                message=f'Your claim for "{item.title}" was not approved.{suffix}',
                related_item_id=item.id,
                related_user_id=reviewer_id,
                data={
                    "itemTitle": item.title,
                    "itemType": item.type,
                    "rejectedBy": _name(reviewer),
                    "reason": reason,
                },
            )
        )
    return out


def on_item_returned(item_id: int, returned_by_id: Optional[int] = None) -> List[Notification]:
    item = _item_or_none(item_id)
    if item is None or item.reporter_user_id is None:
        return []
    returned_by = db.session.get(User, returned_by_id) if returned_by_id else None
    return [
        create_notification(
            item.reporter_user_id,
            type="item_returned",
            title="Item Successfully Returned!",
            message=f'Excellent! Your {item.type} item "{item.title}" has been successfully returned.',
            related_item_id=item.id,
            related_user_id=returned_by_id,
            data={
                "itemTitle": item.title,
                "itemType": item.type,
                "returnedBy": _name(returned_by),
                "returnedDate": item.return_date.isoformat() if item.return_date else None,
            },
        )
    ]


def on_deadline_reminder(item_id: int, days_left: int) -> List[Notification]:
    item = _item_or_none(item_id)
    if item is None or item.reporter_user_id is None:
        return []
    return [
        create_notification(
            item.reporter_user_id,
            type="deadline_reminder",
            title="Item Expiring Soon",
            message=(
                f'Your {item.type} item "{item.title}" will expire in {days_left} day(s). '
                "Please take action if needed."
            ),
            related_item_id=item.id,
            data={
                "itemTitle": item.title,
                "itemType": item.type,
                "daysUntilExpiry": days_left,
                "expiryDate": item.expiry_date.isoformat() if item.expiry_date else None,
            },
        )
    ]


def on_item_expired(item_id: int) -> List[Notification]:
    item = _item_or_none(item_id)
    if item is None or item.reporter_user_id is None:
        return []
    return [
        create_notification(
            item.reporter_user_id,
            type="item_expired",
            title="Item Expired",
            message=f'Your {item.type} item "{item.title}" has expired and no longer accepts claims.',
            related_item_id=item.id,
            data={"itemTitle": item.title, "itemType": item.type},
        )
    ]


def on_system_announcement(
    title: str,
    message: str,
    target_user_ids: Optional[List[int]] = None,
    sender_id: Optional[int] = None,
) -> List[Notification]:
    recipients = target_user_ids or get_active_user_ids()
    return create_bulk_notifications(
        recipients,
        type="system",
        title=title,
        message=message,
        related_user_id=sender_id,
        data={"announcement": True},
    )


EVENT_HANDLERS: Dict[str, Callable[..., List[Notification]]] = {
    "claim_submitted": on_claim_submitted,
    "claim_approved": on_claim_approved,
    "claims_rejected": on_claims_rejected,
    "item_returned": on_item_returned,
    "deadline_reminder": on_deadline_reminder,
    "item_expired": on_item_expired,
    "system_announcement": on_system_announcement,
}


def run_event(event: str, params: Dict[str, Any]) -> int:
    """Deliver one event in-process. Returns the number of notifications created.

    Never raises: a failure rolls the session back and lands in the dead-letter log.
    """
    handler = EVENT_HANDLERS.get(event)
    if handler is None:
        deadletter.error("Unknown notification event %r params=%r", event, params)
        return 0
    try:
        created = handler(**params)
    except Exception:
        db.session.rollback()
        deadletter.error("Notification event %r failed params=%r", event, params, exc_info=True)
        return 0
    logger.debug("Notification event %s delivered %d notification(s)", event, len(created))
    return len(created)


def dispatch(event: str, **params) -> None:
    """Fire-and-forget delivery of an event after the caller's commit."""
    if current_app.config.get("NOTIFICATIONS_ASYNC"):
        from ...tasks.jobs.notifications import deliver_event

        try:
            deliver_event.delay(event, params)
        except Exception:
            deadletter.error("Could not enqueue notification event %r params=%r", event, params, exc_info=True)
        return
    run_event(event, params)
