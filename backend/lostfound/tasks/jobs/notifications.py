import logging

from flask import current_app

from lostfound.modules.items.expiry import expire_overdue_items, send_deadline_reminders
from lostfound.modules.notifications.dispatcher import run_event
from lostfound.tasks.celery_app import celery_app

logger = logging.getLogger(__name__)


@celery_app.task(name="lostfound.tasks.jobs.notifications.deliver_event")
def deliver_event(event: str, params: dict) -> int:
    # No retries: failures end up in the dead-letter log inside run_event
    return run_event(event, params)


@celery_app.task(name="lostfound.tasks.jobs.notifications.expire_items")
def expire_items() -> int:
    expired = expire_overdue_items()
    return len(expired)


@celery_app.task(name="lostfound.tasks.jobs.notifications.deadline_reminders")
def deadline_reminders() -> int:
    window = int(current_app.config.get("DEADLINE_REMINDER_DAYS", 3))
    run = send_deadline_reminders(window_days=window)
    logger.info("Deadline reminder sweep: %d expiring, %d reminded", run.expiring_soon, run.reminders_sent)
    return run.reminders_sent
