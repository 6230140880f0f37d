from __future__ import annotations

from datetime import timedelta

from flask import Blueprint, current_app, request

from ...access import branch_scope_for, require_user, staff_or_admin
from ...schemas.item import item_detail_schema, items_schema
from ...utils import int_arg, ok, utcnow
from ..analytics import service

bp = Blueprint("staff", __name__, url_prefix="/staff/dashboard")


def _scope():
    return branch_scope_for(require_user(), request.args.get("branch"))


@bp.get("/stats")
@staff_or_admin
def stats():
    """Branch dashboard: counts, breakdowns, trends and police handovers."""
    scope = _scope()
    days = int_arg("timeRange", 30, maximum=365)
    since = utcnow() - timedelta(days=days)

    statuses = service.status_breakdown(scope)
    types = service.type_breakdown(scope)
    police = service.police_handover_stats(scope, since)
    return ok(
        {
            "location": scope.branch or scope.label,
            "overview": {
                "totalItems": statuses["total"],
                "activeItems": statuses["active"],
                "claimedItems": statuses["claimed"],
                "returnedItems": statuses["returned"],
                "expiredItems": statuses["expired"],
                "recentItems": service.recent_item_count(scope, since),
                "pendingClaims": service.pending_claim_count(scope),
                "handedOverToPolice": police["totalHandedOver"],
                "itemsAwaitingHandover": police["awaitingHandover"],
                "successRate": service.success_rate(statuses["returned"], types["found"]),
                "policeHandoverRate": police["handoverRate"],
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
            "policeHandover": police,
        }
    )


@bp.get("/activity")
@staff_or_admin
def activity():
    return ok(service.recent_activity(_scope(), limit=int_arg("limit", 20, maximum=100)))


@bp.get("/attention")
@staff_or_admin
def attention():
    window = int(current_app.config.get("DEADLINE_REMINDER_DAYS", 3))
    pending, overdue, expiring = service.items_requiring_attention(_scope(), window_days=window)
    return ok(
        {
            "pendingClaims": [item_detail_schema.dump(it) for it in pending],
            "expiredItems": items_schema.dump(overdue),
            "expiringSoon": items_schema.dump(expiring),
            "counts": {
                "pendingClaims": len(pending),
                "expired": len(overdue),
                "expiringSoon": len(expiring),
            },
        }
    )


@bp.get("/analytics")
@staff_or_admin
def analytics():
    scope = _scope()
    days = int_arg("timeRange", 30, maximum=365)
    since = utcnow() - timedelta(days=days)
    return ok(
        {
            "location": scope.branch or scope.label,
            "timeRange": days,
            "weeklyTrends": service.weekly_trends(scope, since),
            "peakHours": service.peak_hours(scope, since),
            "topCategories": service.top_categories(scope, since),
        }
    )
