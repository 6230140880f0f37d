from __future__ import annotations

from datetime import timedelta

from flask import Blueprint, request

from ...access import branch_scope_for, login_required, require_user, staff_or_admin
from ...models.claim import Claim
from ...models.item import Item
from ...models.notification import Notification
from ...schemas.claim import claim_schema
from ...schemas.item import item_summary_schema
from ...utils import int_arg, ok, utcnow
from ..analytics import service

bp = Blueprint("dashboard", __name__, url_prefix="/dashboard")


@bp.get("/stats")
@staff_or_admin
def stats():
    user = require_user()
    scope = branch_scope_for(user, request.args.get("branch"))
    days = int_arg("timeRange", 30, maximum=365)
    since = utcnow() - timedelta(days=days)

    statuses = service.status_breakdown(scope)
    types = service.type_breakdown(scope)
    return ok(
        {
            "scope": scope.label,
            "overview": {
                "totalItems": statuses["total"],
                "totalUsers": service.user_stats(scope)["totalUsers"],
                "activeItems": statuses["active"],
                "claimedItems": statuses["claimed"],
                "returnedItems": statuses["returned"],
                "expiredItems": statuses["expired"],
                "recentItems": service.recent_item_count(scope, since),
                "pendingClaims": service.pending_claim_count(scope),
                "successRate": service.success_rate(statuses["returned"], types["found"]),
            },
            "breakdown": {
                "lostItems": types["lost"],
                "foundItems": types["found"],
                "categories": service.category_breakdown(scope),
            },
            "trends": {
                "daily": service.daily_trend(scope, service.DateRange.last_days(days)),
                "timeRange": days,
            },
            "performance": service.response_time(scope),
        }
    )


@bp.get("/activity")
@staff_or_admin
def activity():
    user = require_user()
    scope = branch_scope_for(user, request.args.get("branch"))
    return ok(service.recent_activity(scope, limit=int_arg("limit", 20, maximum=100)))


@bp.get("/location-stats")
@staff_or_admin
def location_stats():
    user = require_user()
    scope = branch_scope_for(user, request.args.get("branch"))
    return ok(service.location_breakdown(scope, limit=20))


@bp.get("/user-stats")
@login_required
def user_stats():
    """Personal dashboard for any signed-in user."""
    user = require_user()
    mine = Item.query.filter(Item.reporter_user_id == user.id)
    by_type = dict(
        (t, mine.filter(Item.type == t).count()) for t in ("lost", "found")
    )
    by_status = dict(
        (s, mine.filter(Item.status == s).count()) for s in ("active", "claimed", "returned")
    )
    my_claims = Claim.query.filter(Claim.claimant_user_id == user.id)
    unread = Notification.query.filter(
        Notification.recipient_user_id == user.id,
        Notification.read.is_(False),
    ).count()

    recent_items = mine.order_by(Item.created_at.desc(), Item.id.desc()).limit(5).all()
    recent_claims = my_claims.order_by(Claim.created_at.desc(), Claim.id.desc()).limit(5).all()
    return ok(
        {
            "overview": {
                "myTotalItems": mine.count(),
                "myLostItems": by_type["lost"],
                "myFoundItems": by_type["found"],
                "myActiveItems": by_status["active"],
                "myClaimedItems": by_status["claimed"],
                "myReturnedItems": by_status["returned"],
                "myClaims": my_claims.count(),
                "unreadNotifications": unread,
            },
            "recentActivity": {
                "items": [item_summary_schema.dump(it) for it in recent_items],
                "claims": [
                    {"item": item_summary_schema.dump(c.item), "claim": claim_schema.dump(c)} for c in recent_claims
                ],
            },
        }
    )
