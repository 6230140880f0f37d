from datetime import timedelta

from lostfound.extensions import db
from lostfound.models import Claim, Item, User
from lostfound.utils import utcnow


def test_admin_routes_require_admin(client, make_user, auth_headers):
    assert client.get("/api/v1/admin/users").status_code == 401
    staff = make_user(role="staff", branch="Central")
    assert client.get("/api/v1/admin/users", headers=auth_headers(staff)).status_code == 403


def test_list_users_with_stats(client, make_user, make_item, make_claim, auth_headers):
    admin = make_user(role="admin", name="Root")
    reporter = make_user(name="Priya Perera")
    make_user(name="Ravi", role="staff", branch="Kandy")
    item = make_item(reporter=reporter)
    make_claim(item, admin)

    resp = client.get("/api/v1/admin/users?search=priya", headers=auth_headers(admin))
    [row] = resp.get_json()["data"]
    assert row["id"] == reporter.id
    assert row["stats"] == {"itemsReported": 1, "claimsSubmitted": 0}

    resp = client.get("/api/v1/admin/users?role=staff&branch=Kandy", headers=auth_headers(admin))
    assert [u["name"] for u in resp.get_json()["data"]] == ["Ravi"]

    resp = client.get("/api/v1/admin/users?role=admin", headers=auth_headers(admin))
    assert resp.get_json()["data"][0]["stats"]["claimsSubmitted"] == 1


def test_promote_user_to_staff(client, make_user, auth_headers):
    admin = make_user(role="admin")
    user = make_user()

    resp = client.put(f"/api/v1/admin/users/{user.id}", json={"role": "staff"}, headers=auth_headers(admin))
    assert resp.status_code == 400
    assert resp.get_json()["message"] == "Staff user must have a branch assigned"
    assert db.session.get(User, user.id).role == "user"

    resp = client.put(
        f"/api/v1/admin/users/{user.id}",
        json={"role": "staff", "branch": "Galle"},
        headers=auth_headers(admin),
    )
    assert resp.status_code == 200
    data = resp.get_json()["data"]
    assert data["role"] == "staff"
    assert data["branch"] == "Galle"


def test_admin_cannot_deactivate_or_delete_self(client, make_user, auth_headers):
    admin = make_user(role="admin")

    resp = client.put(f"/api/v1/admin/users/{admin.id}", json={"isActive": False}, headers=auth_headers(admin))
    assert resp.status_code == 400
    assert resp.get_json()["message"] == "Cannot deactivate your own account"

    resp = client.delete(f"/api/v1/admin/users/{admin.id}", headers=auth_headers(admin))
    assert resp.status_code == 400
    assert resp.get_json()["message"] == "Cannot delete your own account"


def test_delete_user_guarded_by_open_work(client, make_user, make_item, make_claim, auth_headers):
    admin = make_user(role="admin")
    busy = make_user()
    make_item(reporter=busy)

    resp = client.delete(f"/api/v1/admin/users/{busy.id}", headers=auth_headers(admin))
    assert resp.status_code == 400
    assert resp.get_json()["message"] == "Cannot delete user with active items or pending claims"

    done = make_user()
    returned = make_item(reporter=done, status="returned")
    make_claim(make_item(), done, status="rejected")

    resp = client.delete(f"/api/v1/admin/users/{done.id}", headers=auth_headers(admin))
    assert resp.status_code == 200
    assert db.session.get(User, done.id) is None
    assert Claim.query.filter_by(claimant_user_id=done.id).count() == 0
    assert db.session.get(Item, returned.id).reporter_user_id is None


def test_delete_unknown_user(client, make_user, auth_headers):
    resp = client.delete("/api/v1/admin/users/9999", headers=auth_headers(make_user(role="admin")))
    assert resp.status_code == 404
    assert resp.get_json()["message"] == "User not found"


def test_overview(client, make_user, make_item, make_claim, auth_headers):
    admin = make_user(role="admin", branch="HQ")
    make_user(role="staff", branch="Central")
    make_user(role="staff", branch="Central")
    item = make_item()
    make_claim(item, make_user())
    make_item(expiry_date=utcnow() - timedelta(days=1))

    data = client.get("/api/v1/admin/overview", headers=auth_headers(admin)).get_json()["data"]

    assert data["users"]["staff"] == 2
    assert data["users"]["admins"] == 1
    assert data["items"] == {"total": 2, "pendingClaims": 1, "expiredItems": 1}
    assert data["branches"][0] == {"branch": "Central", "count": 2, "staff": 2, "admins": 0}
    assert data["health"]["expiredItemsNeedAttention"] is True
    assert data["systemStatus"] == "operational"


def test_bulk_update(client, make_user, make_item, auth_headers):
    admin = make_user(role="admin")
    a = make_item(status="claimed")
    b = make_item(status="active")

    resp = client.put(
        "/api/v1/admin/items/bulk-update",
        json={"itemIds": [a.id, b.id, 9999], "updateData": {"status": "active", "district": "Galle"}},
        headers=auth_headers(admin),
    )

    assert resp.status_code == 200
    assert resp.get_json()["data"] == {"matched": 2, "modified": 2}
    assert db.session.get(Item, a.id).status == "active"
    assert db.session.get(Item, b.id).district == "Galle"


def test_bulk_update_requires_ids(client, make_user, auth_headers):
    resp = client.put(
        "/api/v1/admin/items/bulk-update",
        json={"itemIds": [], "updateData": {"status": "expired"}},
        headers=auth_headers(make_user(role="admin")),
    )
    assert resp.status_code == 400
    assert resp.get_json()["message"] == "Item IDs array is required"
