"""Periodic maintenance of the claim window on items."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional

from ...extensions import db
from ...models.item import Item
from ...models.notification import Notification
from ...utils import as_utc, utcnow
from ..notifications.dispatcher import dispatch

logger = logging.getLogger(__name__)


def expire_overdue_items(now: Optional[datetime] = None) -> List[int]:
    """Flip every active item past its expiry date to expired and tell the reporter."""
    now = now or utcnow()
    overdue = (
        Item.query.filter(Item.status == "active", Item.expiry_date < now)
        .order_by(Item.id)
        .all()
    )
    ids = []
    for item in overdue:
        item.status = "expired"
        ids.append(item.id)
    if not ids:
        return []
    db.session.commit()
    logger.info("Expired %d overdue item(s)", len(ids))
    for item_id in ids:
        dispatch("item_expired", item_id=item_id)
    return ids


def _already_reminded(item_id: int, days_left: int) -> bool:
    rows = Notification.query.filter(
        Notification.related_item_id == item_id,
        Notification.type == "deadline_reminder",
    ).all()
    return any((n.data or {}).get("daysUntilExpiry") == days_left for n in rows)


@dataclass
class ReminderRun:
    expiring_soon: int = 0
    expiring_tomorrow: int = 0
    reminders_sent: int = 0


def send_deadline_reminders(now: Optional[datetime] = None, window_days: int = 3) -> ReminderRun:
    """Remind reporters of active items expiring within ``window_days``.

    A reminder is sent once per item and number of days left.
    """
    now = now or utcnow()
    horizon = now + timedelta(days=window_days)
    expiring = (
        Item.query.filter(
            Item.status == "active",
            Item.expiry_date > now,
            Item.expiry_date <= horizon,
            Item.reporter_user_id.isnot(None),
        )
        .order_by(Item.expiry_date)
        .all()
    )
    run = ReminderRun(expiring_soon=len(expiring))
    for item in expiring:
        remaining = (as_utc(item.expiry_date) - now).total_seconds() / 86400
        if remaining <= 1:
            run.expiring_tomorrow += 1
        days_left = max(1, math.ceil(remaining))
        if _already_reminded(item.id, days_left):
            continue
        dispatch("deadline_reminder", item_id=item.id, days_left=days_left)
        run.reminders_sent += 1
    if run.reminders_sent:
        logger.info("Queued %d deadline reminder(s)", run.reminders_sent)
    return run
