from datetime import timedelta

import pytest

from lostfound.access import GLOBAL_SCOPE, BranchScope
from lostfound.modules.analytics import service
from lostfound.utils import utcnow

CENTRAL = BranchScope(branch="Central", label="Central Branch")


@pytest.fixture
def branch_items(make_user, make_item, make_claim):
    central_lost = make_item(type="lost", category="bags", location="Central Library")
    central_found = make_item(type="found", category="electronics", location="Central Station", status="returned")
    north = make_item(type="found", category="electronics", location="North Branch")
    make_item(type="found", category="keys", location="north gate", status="expired")
    make_claim(central_lost, make_user())
    make_claim(north, make_user())
    return central_lost, central_found, north


def test_status_and_type_breakdown(branch_items):
    assert service.status_breakdown(CENTRAL) == {"active": 1, "claimed": 0, "returned": 1, "expired": 0, "total": 2}
    assert service.status_breakdown(GLOBAL_SCOPE)["total"] == 4
    assert service.type_breakdown(CENTRAL) == {"lost": 1, "found": 1}
    assert service.pending_claim_count(CENTRAL) == 1
    assert service.pending_claim_count(GLOBAL_SCOPE) == 2


def test_category_breakdown(branch_items):
    stats = service.category_breakdown(GLOBAL_SCOPE)

    assert stats[0]["category"] == "electronics"
    assert stats[0]["total"] == 2
    assert stats[0]["found"] == 2
    assert stats[0]["returned"] == 1
    assert [s["category"] for s in stats[1:]] == ["bags", "keys"]


def test_location_breakdown_respects_limit(branch_items):
    rows = service.location_breakdown(GLOBAL_SCOPE, limit=2)
    assert len(rows) == 2
    assert all(r["total"] == 1 for r in rows)


def test_branch_comparison_groups_by_first_word(branch_items):
    rows = {r["branch"]: r for r in service.branch_comparison()}

    assert set(rows) == {"central", "north"}
    assert rows["central"]["totalItems"] == 2
    assert rows["central"]["returnedItems"] == 1
    assert rows["central"]["successRate"] == 50.0
    assert rows["north"]["activeItems"] == 1
    assert service.available_branches() == ["central", "north"]


def test_branch_of():
    assert service.branch_of("  Kandy City Centre") == "kandy"
    assert service.branch_of("") is None
    assert service.branch_of(None) is None


def test_response_time(make_user, make_item, make_claim):
    now = utcnow()
    fast = make_item(created_at=now - timedelta(days=1))
    slow = make_item(created_at=now - timedelta(days=3))
    make_item()
    make_claim(fast, make_user(), created_at=now)
    make_claim(slow, make_user(), created_at=now)
    make_claim(slow, make_user(), created_at=now + timedelta(days=1))

    result = service.response_time(GLOBAL_SCOPE)

    assert result == {"avgResponseTime": 2.0, "minResponseTime": 1.0, "maxResponseTime": 3.0, "totalProcessed": 2}


def test_response_time_without_claims(app):
    assert service.response_time(GLOBAL_SCOPE)["totalProcessed"] == 0


def test_daily_and_weekly_trends(make_item):
    now = utcnow()
    make_item(type="lost", created_at=now - timedelta(hours=1))
    make_item(type="found", created_at=now - timedelta(hours=1))
    make_item(type="found", created_at=now - timedelta(days=40))

    daily = service.daily_trend(GLOBAL_SCOPE, service.DateRange.last_days(30, now=now))
    weekly = service.weekly_trends(GLOBAL_SCOPE, now - timedelta(days=30))

    day = (now - timedelta(hours=1)).date().isoformat()
    assert daily == [{"date": day, "lost": 1, "found": 1}]
    assert sum(w["lost"] + w["found"] for w in weekly) == 2
    assert weekly[-1]["week"].startswith(str((now - timedelta(hours=1)).isocalendar()[0]))


def test_peak_hours_and_top_categories(make_item):
    base = utcnow().replace(hour=9, minute=15, second=0, microsecond=0) - timedelta(days=1)
    make_item(category="keys", created_at=base)
    make_item(category="keys", created_at=base + timedelta(minutes=20))
    make_item(category="books", created_at=base + timedelta(hours=5))
    make_item(category="books", created_at=base - timedelta(days=60))

    hours = service.peak_hours(GLOBAL_SCOPE, base - timedelta(days=1))
    top = service.top_categories(GLOBAL_SCOPE, base - timedelta(days=1))

    assert hours[0] == {"hour": 9, "count": 2}
    assert {"hour": 14, "count": 1} in hours
    assert top == [
        {"category": "books", "count": 2, "recent": 1},
        {"category": "keys", "count": 2, "recent": 2},
    ]


def test_recent_activity_feed(make_user, make_item, make_claim):
    now = utcnow()
    item = make_item(title="Wallet", created_at=now - timedelta(hours=2))
    claimant = make_user(name="Sunil")
    make_claim(item, claimant, created_at=now - timedelta(hours=1))

    feed = service.recent_activity(GLOBAL_SCOPE)

    assert [e["type"] for e in feed] == ["claim_submitted", "item_reported"]
    assert feed[0]["data"]["claimedBy"]["name"] == "Sunil"
    assert feed[1]["data"]["itemTitle"] == "Wallet"


def test_items_requiring_attention(make_user, make_item, make_claim):
    now = utcnow()
    with_claim = make_item(location="Central Hall")
    make_claim(with_claim, make_user())
    overdue = make_item(location="Central Hall", expiry_date=now - timedelta(days=1))
    expiring = make_item(location="Central Hall", expiry_date=now + timedelta(days=1))
    make_item(location="North Hall", expiry_date=now + timedelta(days=1))

    pending, late, soon = service.items_requiring_attention(CENTRAL, now=now, window_days=3)

    assert [i.id for i in pending] == [with_claim.id]
    assert [i.id for i in late] == [overdue.id]
    assert [i.id for i in soon] == [expiring.id]


def test_police_handover_stats(make_item):
    now = utcnow()
    make_item(
        status="expired",
        handed_over_to_police=True,
        police_station="Fort",
        police_report_number="A1",
        police_handover_date=now,
    )
    make_item(status="expired")

    stats = service.police_handover_stats(GLOBAL_SCOPE, now - timedelta(days=30))

    assert stats["totalHandedOver"] == 1
    assert stats["recentHandovers"] == 1
    assert stats["awaitingHandover"] == 1
    assert stats["handoverRate"] == 33.3
    assert stats["topPoliceStations"] == [{"station": "Fort", "count": 1}]


def test_staff_dashboard_is_branch_scoped(client, make_user, make_item, auth_headers):
    staff = make_user(role="staff", branch="Central")
    make_item(location="Central Library")
    make_item(location="North Branch")

    resp = client.get("/api/v1/dashboard/stats", headers=auth_headers(staff))

    assert resp.status_code == 200
    data = resp.get_json()["data"]
    assert data["scope"] == "Central Branch"
    assert data["overview"]["totalItems"] == 1
    assert data["overview"]["totalUsers"] == 1


def test_admin_dashboard_is_global_unless_branch_given(client, make_user, make_item, auth_headers):
    admin = make_user(role="admin")
    make_item(location="Central Library")
    make_item(location="North Branch")

    data = client.get("/api/v1/dashboard/stats", headers=auth_headers(admin)).get_json()["data"]
    assert data["scope"] == "All Locations"
    assert data["overview"]["totalItems"] == 2

    data = client.get("/api/v1/dashboard/stats?branch=north", headers=auth_headers(admin)).get_json()["data"]
    assert data["scope"] == "north Branch"
    assert data["overview"]["totalItems"] == 1


def test_dashboard_refuses_plain_users_and_branchless_staff(client, make_user, auth_headers):
    assert client.get("/api/v1/dashboard/stats", headers=auth_headers(make_user())).status_code == 403

    resp = client.get("/api/v1/staff/dashboard/stats", headers=auth_headers(make_user(role="staff")))
    assert resp.status_code == 400
    assert resp.get_json()["message"] == "Staff user must have a branch assigned"


def test_user_stats_endpoint(client, make_user, make_item, make_claim, auth_headers):
    me = make_user()
    make_item(reporter=me, type="lost")
    make_item(reporter=me, type="found", status="returned")
    make_claim(make_item(), me)

    data = client.get("/api/v1/dashboard/user-stats", headers=auth_headers(me)).get_json()["data"]

    assert data["overview"]["myTotalItems"] == 2
    assert data["overview"]["myLostItems"] == 1
    assert data["overview"]["myReturnedItems"] == 1
    assert data["overview"]["myClaims"] == 1
    assert len(data["recentActivity"]["claims"]) == 1


def test_staff_endpoints(client, make_user, make_item, make_claim, auth_headers):
    staff = make_user(role="staff", branch="Central")
    item = make_item(location="Central Library")
    make_claim(item, make_user())
    make_item(location="North Branch")

    stats = client.get("/api/v1/staff/dashboard/stats", headers=auth_headers(staff)).get_json()["data"]
    assert stats["location"] == "Central"
    assert stats["overview"]["pendingClaims"] == 1
    assert "policeHandover" in stats

    attention = client.get("/api/v1/staff/dashboard/attention", headers=auth_headers(staff)).get_json()["data"]
    assert attention["counts"] == {"pendingClaims": 1, "expired": 0, "expiringSoon": 0}
    assert len(attention["pendingClaims"][0]["claims"]) == 1

    activity = client.get("/api/v1/staff/dashboard/activity", headers=auth_headers(staff)).get_json()["data"]
    assert {e["data"]["itemId"] for e in activity} == {item.id}

    analytics = client.get("/api/v1/staff/dashboard/analytics", headers=auth_headers(staff)).get_json()["data"]
    assert analytics["timeRange"] == 30
    assert analytics["topCategories"][0]["count"] == 1


def test_analytics_report(client, make_user, make_item, auth_headers):
    admin = make_user(role="admin")
    staff = make_user(role="staff", branch="Central")
    make_item(location="Central Library")
    make_item(location="North Branch")

    admin_report = client.get("/api/v1/analytics", headers=auth_headers(admin)).get_json()["data"]
    assert admin_report["summary"]["reportScope"] == "All Locations"
    assert admin_report["summary"]["userBranch"] == "N/A"
    assert {b["branch"] for b in admin_report["branchComparison"]} == {"central", "north"}

    staff_report = client.get("/api/v1/analytics", headers=auth_headers(staff)).get_json()["data"]
    assert staff_report["summary"]["totalItems"] == 1
    assert staff_report["summary"]["userBranch"] == "Central"
    assert staff_report["branchComparison"] == []
    assert set(staff_report["dateRange"]) == {"start", "end"}


def test_analytics_rejects_inverted_range(client, make_user, auth_headers):
    resp = client.get(
        "/api/v1/analytics?startDate=2026-02-01&endDate=2026-01-01",
        headers=auth_headers(make_user(role="admin")),
    )
    assert resp.status_code == 400


def test_analytics_forbidden_for_users(client, make_user, auth_headers):
    assert client.get("/api/v1/analytics", headers=auth_headers(make_user())).status_code == 403


def test_available_branches_endpoint(client, make_user, make_item, auth_headers):
    make_item(location="Galle Fort")
    resp = client.get("/api/v1/analytics/branches", headers=auth_headers(make_user(role="admin")))
    assert resp.get_json()["data"] == ["galle"]
