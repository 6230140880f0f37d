from datetime import timedelta

from lostfound.extensions import db
from lostfound.models import Item, Notification
from lostfound.modules.items.expiry import expire_overdue_items, send_deadline_reminders
from lostfound.utils import utcnow


def test_expire_overdue_items(make_user, make_item):
    reporter = make_user()
    overdue = make_item(reporter=reporter, title="Old scarf", expiry_date=utcnow() - timedelta(days=1))
    fresh = make_item(reporter=reporter, expiry_date=utcnow() + timedelta(days=5))
    claimed = make_item(reporter=reporter, status="claimed", expiry_date=utcnow() - timedelta(days=3))

    expired_ids = expire_overdue_items()

    assert expired_ids == [overdue.id]
    assert db.session.get(Item, overdue.id).status == "expired"
    assert db.session.get(Item, fresh.id).status == "active"
    assert db.session.get(Item, claimed.id).status == "claimed"
    [n] = Notification.query.filter_by(recipient_user_id=reporter.id).all()
    assert n.type == "item_expired"
    assert n.related_item_id == overdue.id


def test_expire_overdue_items_noop(make_item):
    make_item()
    assert expire_overdue_items() == []
    assert Notification.query.count() == 0


def test_saving_overdue_item_marks_it_expired(make_item):
    item = make_item(expiry_date=utcnow() - timedelta(minutes=5))

    item.title = "Renamed"
    db.session.commit()

    assert item.status == "expired"


def test_deadline_reminders_sent_once_per_day_count(make_user, make_item):
    reporter = make_user()
    now = utcnow()
    soon = make_item(reporter=reporter, expiry_date=now + timedelta(days=2, hours=-1))
    tomorrow = make_item(reporter=reporter, expiry_date=now + timedelta(hours=10))
    make_item(reporter=reporter, expiry_date=now + timedelta(days=10))

    run = send_deadline_reminders(now=now, window_days=3)

    assert run.expiring_soon == 2
    assert run.expiring_tomorrow == 1
    assert run.reminders_sent == 2
    reminders = {
        n.related_item_id: n
        for n in Notification.query.filter_by(type="deadline_reminder").all()
    }
    assert reminders[soon.id].data["daysUntilExpiry"] == 2
    assert reminders[tomorrow.id].data["daysUntilExpiry"] == 1
    assert reminders[soon.id].title == "Item Expiring Soon"

    again = send_deadline_reminders(now=now, window_days=3)
    assert again.expiring_soon == 2
    assert again.reminders_sent == 0
    assert Notification.query.filter_by(type="deadline_reminder").count() == 2


def test_deadline_reminders_skip_inactive_items(make_item):
    make_item(status="claimed", expiry_date=utcnow() + timedelta(days=1))

    run = send_deadline_reminders(window_days=3)

    assert run.expiring_soon == 0
    assert run.reminders_sent == 0
