import logging

from lostfound.models import Notification
from lostfound.modules.notifications import bus, dispatcher
from lostfound.tasks.jobs import notifications as jobs


def _for(user):
    return Notification.query.filter_by(recipient_user_id=user.id).order_by(Notification.id).all()


def test_bulk_notifications_dedupe_and_skip_missing(make_user):
    a, b = make_user(), make_user()

    rows = dispatcher.create_bulk_notifications(
        [a.id, None, b.id, a.id],
        type="system",
        title="Maintenance",
        message="Back soon",
    )

    assert len(rows) == 2
    assert {r.recipient_user_id for r in rows} == {a.id, b.id}
    # Each recipient has its own record
    rows[0].read = True
    assert rows[1].read is False


def test_claim_submitted_notifies_reporter_and_reviewers(make_user, make_item, make_claim):
    reporter = make_user()
    staff = make_user(role="staff", branch="Central")
    admin = make_user(role="admin")
    make_user(role="staff", branch="North", is_active=False)
    claimant = make_user(name="Kamal")
    item = make_item(reporter=reporter)
    claim = make_claim(item, claimant)

    created = dispatcher.run_event("claim_submitted", {"item_id": item.id, "claim_id": claim.id})

    assert created == 3
    [to_reporter] = _for(reporter)
    assert to_reporter.title == "New Claim Submitted"
    assert "Kamal" in to_reporter.message
    for reviewer in (staff, admin):
        [n] = _for(reviewer)
        assert n.title == "New Claim Requires Review"
        assert n.data["requiresAction"] is True
        assert n.related_item_id == item.id
    assert _for(claimant) == []


def test_reviewer_reporting_an_item_is_notified_once(make_user, make_item, make_claim):
    staff = make_user(role="staff", branch="Central")
    item = make_item(reporter=staff)
    claim = make_claim(item, make_user())

    dispatcher.run_event("claim_submitted", {"item_id": item.id, "claim_id": claim.id})

    notes = _for(staff)
    assert [n.title for n in notes] == ["New Claim Submitted"]


def test_rejection_reason_is_appended(make_user, make_item, make_claim):
    claimant = make_user()
    item = make_item(title="Red umbrella")
    claim = make_claim(item, claimant, status="rejected")

    dispatcher.run_event(
        "claims_rejected",
        {"item_id": item.id, "claim_ids": [claim.id], "reviewer_id": None, "reason": "Receipt unreadable"},
    )

    [n] = _for(claimant)
    assert n.type == "claim_rejected"
    assert n.message == 'Your claim for "Red umbrella" was not approved. Reason: Receipt unreadable'
    assert n.data["rejectedBy"] == "Staff"


def test_system_announcement_defaults_to_all_active_users(make_user):
    users = [make_user(), make_user(role="staff", branch="Central"), make_user(role="admin")]
    inactive = make_user(is_active=False)

    created = dispatcher.run_event(
        "system_announcement",
        {"title": "Holiday hours", "message": "Closed on Monday", "target_user_ids": [], "sender_id": users[2].id},
    )

    assert created == 3
    assert _for(inactive) == []
    assert all(_for(u)[0].type == "system" for u in users)


def test_handler_failure_goes_to_deadletter(make_user, make_item, make_claim, monkeypatch, caplog):
    item = make_item()
    claim = make_claim(item, make_user())

    def boom(*args, **kwargs):
        raise RuntimeError("smtp down")

    monkeypatch.setattr(dispatcher, "create_notification", boom)

    with caplog.at_level(logging.ERROR, logger="lostfound.notifications.deadletter"):
        created = dispatcher.run_event("claim_submitted", {"item_id": item.id, "claim_id": claim.id})

    assert created == 0
    assert any("claim_submitted" in r.getMessage() for r in caplog.records)
    assert Notification.query.count() == 0


def test_unknown_event_is_dead_lettered(app, caplog):
    with caplog.at_level(logging.ERROR, logger="lostfound.notifications.deadletter"):
        assert dispatcher.run_event("no_such_event", {}) == 0
    assert "no_such_event" in caplog.text


def test_dispatch_enqueues_when_async(app, make_user, make_item, monkeypatch):
    calls = []

    class FakeTask:
        def delay(self, event, params):
            calls.append((event, params))

    monkeypatch.setattr(jobs, "deliver_event", FakeTask())
    app.config["NOTIFICATIONS_ASYNC"] = True
    item = make_item()

    dispatcher.dispatch("item_expired", item_id=item.id)

    assert calls == [("item_expired", {"item_id": item.id})]
    assert Notification.query.count() == 0


def test_dispatch_swallows_enqueue_failure(app, monkeypatch, caplog):
    class BrokenTask:
        def delay(self, event, params):
            raise ConnectionError("broker unreachable")

    monkeypatch.setattr(jobs, "deliver_event", BrokenTask())
    app.config["NOTIFICATIONS_ASYNC"] = True

    with caplog.at_level(logging.ERROR, logger="lostfound.notifications.deadletter"):
        dispatcher.dispatch("item_expired", item_id=1)

    assert "Could not enqueue" in caplog.text


def test_new_notification_is_published_to_open_streams(make_user):
    user = make_user()
    q = bus.subscribe(user.id)
    try:
        n = dispatcher.create_notification(user.id, type="system", title="Hello", message="World")
        event = q.get_nowait()
    finally:
        bus.unsubscribe(user.id, q)

    assert event["id"] == n.id
    assert event["title"] == "Hello"
    assert bus.subscriber_count(user.id) == 0


def test_full_queue_drops_event(caplog):
    q = bus.subscribe(991, maxsize=1)
    try:
        assert bus.publish(991, {"n": 1}) == 1
        with caplog.at_level(logging.WARNING, logger="lostfound.modules.notifications.bus"):
            assert bus.publish(991, {"n": 2}) == 0
    finally:
        bus.unsubscribe(991, q)
    assert "queue full" in caplog.text
