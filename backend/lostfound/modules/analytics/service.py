"""
Read-only reporting over items and claims.

Every function takes a ``BranchScope`` and never writes. Grouping that differs
between Postgres and SQLite (weeks, hours, day differences) is done in Python
over narrow row sets.
"""

from __future__ import annotations

import re
from collections import Counter, defaultdict
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import func

from ...access import BranchScope, GLOBAL_SCOPE
from ...extensions import db
from ...models.claim import Claim
from ...models.item import Item
from ...models.user import User
from ...utils import as_utc, utcnow

STATUS_KEYS = ("active", "claimed", "returned", "expired")
_FIRST_WORD = re.compile(r"^(\w+)")


@dataclass(frozen=True)
class DateRange:
    start: datetime
    end: datetime

    @classmethod
    def last_days(cls, days: int, now: Optional[datetime] = None) -> "DateRange":
        end = now or utcnow()
        return cls(start=end - timedelta(days=days), end=end)

    def as_dict(self) -> Dict[str, str]:
        return {"start": self.start.isoformat(), "end": self.end.isoformat()}


def _day_key(value: Any) -> str:
    # func.date() comes back as a date on Postgres and a string on SQLite
    if isinstance(value, (date, datetime)):
        return value.isoformat()[:10]
    return str(value)[:10]


def _round(value: Optional[float], digits: int = 1) -> float:
    return round(value, digits) if value is not None else 0


def branch_of(location: Optional[str]) -> Optional[str]:
    """Branch key of a location: its first word, lowercased."""
    m = _FIRST_WORD.match((location or "").strip().lower())
    return m.group(1) if m else None


# Counts


def status_breakdown(scope: BranchScope = GLOBAL_SCOPE) -> Dict[str, int]:
    rows = scope.apply(db.session.query(Item.status, func.count(Item.id))).group_by(Item.status).all()
    counts = {key: 0 for key in STATUS_KEYS}
    for status, n in rows:
        counts[status] = n
    counts["total"] = sum(counts[k] for k in STATUS_KEYS)
    return counts


def type_breakdown(scope: BranchScope = GLOBAL_SCOPE) -> Dict[str, int]:
    rows = scope.apply(db.session.query(Item.type, func.count(Item.id))).group_by(Item.type).all()
    counts = {"lost": 0, "found": 0}
    counts.update({t: n for t, n in rows})
    return counts


def pending_claim_count(scope: BranchScope = GLOBAL_SCOPE) -> int:
    q = db.session.query(func.count(Claim.id)).join(Item, Claim.item_id == Item.id).filter(Claim.status == "pending")
    return scope.apply(q).scalar() or 0


def recent_item_count(scope: BranchScope, since: datetime) -> int:
    return scope.apply(Item.query.filter(Item.created_at >= since)).count()


def category_breakdown(scope: BranchScope = GLOBAL_SCOPE) -> List[Dict[str, Any]]:
    """Per-category lost/found/total plus per-status counts, largest first."""
    rows = (
        scope.apply(db.session.query(Item.category, Item.type, Item.status, func.count(Item.id)))
        .group_by(Item.category, Item.type, Item.status)
        .all()
    )
    stats: Dict[str, Dict[str, Any]] = {}
    for category, type_, status, n in rows:
        entry = stats.setdefault(
            category,
            {"category": category, "lost": 0, "found": 0, "total": 0, **{k: 0 for k in STATUS_KEYS}},
        )
        entry[type_] += n
        entry[status] += n
        entry["total"] += n
    return sorted(stats.values(), key=lambda e: (-e["total"], e["category"]))


def location_breakdown(scope: BranchScope = GLOBAL_SCOPE, limit: int = 20) -> List[Dict[str, Any]]:
    rows = (
        scope.apply(db.session.query(Item.location, Item.type, Item.status, func.count(Item.id)))
        .group_by(Item.location, Item.type, Item.status)
        .all()
    )
    stats: Dict[str, Dict[str, Any]] = {}
    for location, type_, status, n in rows:
        entry = stats.setdefault(
            location,
            {"location": location, "total": 0, "lost": 0, "found": 0, "active": 0, "returned": 0},
        )
        entry["total"] += n
        entry[type_] += n
        if status in ("active", "returned"):
            entry[status] += n
    ordered = sorted(stats.values(), key=lambda e: (-e["total"], e["location"]))
    return ordered[:limit]


def daily_trend(scope: BranchScope, window: DateRange) -> List[Dict[str, Any]]:
    day = func.date(Item.created_at)
    rows = (
        scope.apply(db.session.query(day, Item.type, func.count(Item.id)))
        .filter(Item.created_at >= window.start, Item.created_at <= window.end)
        .group_by(day, Item.type)
        .all()
    )
    days: Dict[str, Dict[str, Any]] = {}
    for d, type_, n in rows:
        key = _day_key(d)
        entry = days.setdefault(key, {"date": key, "lost": 0, "found": 0})
        entry[type_] += n
    return [days[k] for k in sorted(days)]


def response_time(scope: BranchScope = GLOBAL_SCOPE) -> Dict[str, Any]:
    """Days between an item being reported and its first claim."""
    first_claim = func.min(Claim.created_at)
    rows = (
        scope.apply(db.session.query(Item.id, Item.created_at, first_claim))
        .join(Claim, Claim.item_id == Item.id)
        .group_by(Item.id, Item.created_at)
        .all()
    )
    diffs = []
    for _, created, claimed in rows:
        if created is None or claimed is None:
            continue
        diffs.append((as_utc(claimed) - as_utc(created)).total_seconds() / 86400)
    if not diffs:
        return {"avgResponseTime": 0, "minResponseTime": 0, "maxResponseTime": 0, "totalProcessed": 0}
    return {
        "avgResponseTime": _round(sum(diffs) / len(diffs)),
        "minResponseTime": _round(min(diffs)),
        "maxResponseTime": _round(max(diffs)),
        "totalProcessed": len(diffs),
    }


def user_stats(scope: BranchScope = GLOBAL_SCOPE) -> Dict[str, int]:
    users = User.query
    if not scope.is_global:
        users = users.filter(func.lower(User.branch) == scope.branch.lower())
    total = users.count()
    staff = users.filter(User.role == "staff").count()
    reporters = (
        scope.apply(db.session.query(func.count(func.distinct(Item.reporter_user_id))))
        .filter(Item.reporter_user_id.isnot(None))
        .scalar()
        or 0
    )
    return {"totalUsers": total, "activeUsers": reporters, "staffUsers": staff}


def success_rate(returned: int, found: int) -> float:
    return round(returned / found * 100, 1) if found else 0


# Branches


def branch_comparison(limit: int = 10) -> List[Dict[str, Any]]:
    """Admin-only view grouping every item by the first word of its location."""
    rows = db.session.query(Item.location, Item.status, func.count(Item.id)).group_by(Item.location, Item.status).all()
    stats: Dict[str, Dict[str, Any]] = {}
    for location, status, n in rows:
        key = branch_of(location)
        if key is None:
            continue
        entry = stats.setdefault(key, {"branch": key, "totalItems": 0, "activeItems": 0, "returnedItems": 0})
        entry["totalItems"] += n
        if status == "active":
            entry["activeItems"] += n
        elif status == "returned":
            entry["returnedItems"] += n
    for entry in stats.values():
        total = entry["totalItems"]
        entry["successRate"] = round(entry["returnedItems"] / total * 100, 1) if total else 0
    ordered = sorted(stats.values(), key=lambda e: (-e["totalItems"], e["branch"]))
    return ordered[:limit]


def available_branches() -> List[str]:
    locations = [row[0] for row in db.session.query(Item.location).distinct().all()]
    return sorted({b for b in (branch_of(loc) for loc in locations) if b})


# Staff views


def police_handover_stats(scope: BranchScope, since: datetime) -> Dict[str, Any]:
    handed = scope.apply(Item.query.filter(Item.handed_over_to_police.is_(True)))
    total = handed.count()
    recent = handed.filter(Item.police_handover_date >= since).count()
    awaiting = scope.apply(
        Item.query.filter(
            Item.type == "found",
            Item.status == "expired",
            Item.handed_over_to_police.is_(False),
        )
    ).count()
    stations = (
        scope.apply(db.session.query(Item.police_station, func.count(Item.id)))
        .filter(Item.handed_over_to_police.is_(True), Item.police_station.isnot(None))
        .group_by(Item.police_station)
        .order_by(func.count(Item.id).desc())
        .limit(5)
        .all()
    )
    expired = scope.apply(Item.query.filter(Item.status == "expired")).count()
    rate = round(total / (expired + total) * 100, 1) if expired else 0
    return {
        "totalHandedOver": total,
        "recentHandovers": recent,
        "awaitingHandover": awaiting,
        "handoverRate": rate,
        "topPoliceStations": [{"station": s, "count": n} for s, n in stations],
    }


def recent_activity(scope: BranchScope = GLOBAL_SCOPE, limit: int = 20) -> List[Dict[str, Any]]:
    """Newest item reports and claim submissions merged into one feed."""
    items = scope.apply(Item.query).order_by(Item.created_at.desc(), Item.id.desc()).limit(limit).all()
    claims = (
        scope.apply(Claim.query.join(Item, Claim.item_id == Item.id))
        .order_by(Claim.created_at.desc(), Claim.id.desc())
        .limit(limit)
        .all()
    )
    feed: List[Dict[str, Any]] = []
    for it in items:
        feed.append(
            {
                "type": "item_reported",
                "timestamp": as_utc(it.created_at),
                "data": {
                    "itemId": it.id,
                    "itemTitle": it.title,
                    "itemType": it.type,
                    "category": it.category,
                    "location": it.location,
                    "status": it.status,
                    "reportedBy": {"id": it.reporter.id, "name": it.reporter.name} if it.reporter else None,
                },
            }
        )
    for c in claims:
        feed.append(
            {
                "type": "claim_submitted",
                "timestamp": as_utc(c.created_at),
                "data": {
                    "itemId": c.item.id,
                    "itemTitle": c.item.title,
                    "itemType": c.item.type,
                    "claimId": c.id,
                    "claimStatus": c.status,
                    "claimedBy": {"id": c.claimant.id, "name": c.claimant.name},
                },
            }
        )
    feed.sort(key=lambda e: e["timestamp"] or datetime.min.replace(tzinfo=timezone.utc), reverse=True)
    for entry in feed:
        entry["timestamp"] = entry["timestamp"].isoformat() if entry["timestamp"] else None
    return feed[:limit]


def items_requiring_attention(scope: BranchScope, now: Optional[datetime] = None, window_days: int = 3, limit: int = 10):
    """Items with pending claims, overdue active items and items about to expire."""
    now = now or utcnow()
    pending = (
        scope.apply(Item.query.filter(Item.claims.any(Claim.status == "pending")))
        .order_by(Item.created_at.asc(), Item.id.asc())
        .limit(limit)
        .all()
    )
    overdue = (
        scope.apply(Item.query.filter(Item.status == "active", Item.expiry_date < now))
        .order_by(Item.expiry_date.asc())
        .limit(limit)
        .all()
    )
    expiring = (
        scope.apply(
            Item.query.filter(
                Item.status == "active",
                Item.expiry_date >= now,
                Item.expiry_date <= now + timedelta(days=window_days),
            )
        )
        .order_by(Item.expiry_date.asc())
        .limit(limit)
        .all()
    )
    return pending, overdue, expiring


def _created_rows(scope: BranchScope, since: datetime):
    return (
        scope.apply(db.session.query(Item.created_at, Item.type, Item.category))
        .filter(Item.created_at >= since)
        .all()
    )


def weekly_trends(scope: BranchScope, since: datetime) -> List[Dict[str, Any]]:
    weeks: Dict[str, Dict[str, Any]] = {}
    for created, type_, _ in _created_rows(scope, since):
        year, week, _ = as_utc(created).isocalendar()
        key = f"{year}-W{week:02d}"
        entry = weeks.setdefault(key, {"week": key, "lost": 0, "found": 0})
        entry[type_] += 1
    return [weeks[k] for k in sorted(weeks)]


def peak_hours(scope: BranchScope, since: datetime, limit: int = 5) -> List[Dict[str, int]]:
    hours = Counter(as_utc(created).hour for created, _, _ in _created_rows(scope, since))
    ordered = sorted(hours.items(), key=lambda kv: (-kv[1], kv[0]))
    return [{"hour": h, "count": n} for h, n in ordered[:limit]]


def top_categories(scope: BranchScope, since: datetime, limit: int = 8) -> List[Dict[str, Any]]:
    totals = dict(
        scope.apply(db.session.query(Item.category, func.count(Item.id))).group_by(Item.category).all()
    )
    recent: Dict[str, int] = defaultdict(int)
    for _, _, category in _created_rows(scope, since):
        recent[category] += 1
    ordered = sorted(totals.items(), key=lambda kv: (-kv[1], kv[0]))
    return [{"category": c, "count": n, "recent": recent.get(c, 0)} for c, n in ordered[:limit]]


# Report


def build_report(user: User, scope: BranchScope, window: DateRange) -> Dict[str, Any]:
    """Full analytics payload for GET /analytics."""
    statuses = status_breakdown(scope)
    summary = {
        "totalItems": statuses["total"],
        "activeItems": statuses["active"],
        "claimedItems": statuses["claimed"],
        "returnedItems": statuses["returned"],
        "expiredItems": statuses["expired"],
        "pendingClaims": pending_claim_count(scope),
        **user_stats(scope),
        "reportScope": scope.label,
        "userRole": user.role,
        "userBranch": user.branch or "N/A",
    }
    return {
        "summary": summary,
        "dailyTrends": daily_trend(scope, window),
        "categoryStats": category_breakdown(scope),
        "locationStats": location_breakdown(scope, limit=5 if user.role == "staff" else 15),
        "branchComparison": branch_comparison() if user.role == "admin" else [],
        "responseTime": response_time(scope),
        "dateRange": window.as_dict(),
    }
