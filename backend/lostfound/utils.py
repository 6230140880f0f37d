from __future__ import annotations

import math
from datetime import date, datetime, timezone
from typing import Any

from flask import jsonify, request


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes (SQLite drops tzinfo on the way back)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_date(value: str | None) -> date | None:
    if not value:
        return None
    for fmt in ("%Y-%m-%d", "%Y/%m/%d", "%d-%m-%Y"):
        try:
            return datetime.strptime(value, fmt).date()
        except ValueError:
            continue
    return None


def parse_datetime(value: str | None) -> datetime | None:
    """Parse an ISO-8601 timestamp or a bare date into an aware UTC datetime."""
    if not value:
        return None
    try:
        return as_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))
    except ValueError:
        d = parse_date(value)
        return datetime(d.year, d.month, d.day, tzinfo=timezone.utc) if d else None


def int_arg(name: str, default: int, minimum: int = 1, maximum: int | None = None) -> int:
    try:
        value = int(request.args.get(name, default))
    except (TypeError, ValueError):
        value = default
    value = max(minimum, value)
    if maximum is not None:
        value = min(maximum, value)
    return value


def ok(data: Any = None, message: str | None = None, status: int = 200, **extra):
    """Render the standard success envelope."""
    body: dict[str, Any] = {"success": True}
    if data is not None:
        body["data"] = data
    if message:
        body["message"] = message
    body.update(extra)
    return jsonify(body), status


def pagination_meta(page: int, limit: int, total: int, **extra) -> dict:
    pages = math.ceil(total / limit) if limit else 0
    meta = {
        "current": page,
        "pages": pages,
        "total": total,
        "limit": limit,
        "hasNext": page * limit < total,
        "hasPrev": page > 1,
    }
    meta.update(extra)
    return meta


def paginate(query, page: int, limit: int):
    """Paginate a Flask-SQLAlchemy query, returning (rows, pagination dict)."""
    pager = query.paginate(page=page, per_page=limit, error_out=False)
    return pager.items, pagination_meta(page, limit, pager.total or 0)


def contains_pattern(value: str) -> str:
    """LIKE pattern matching ``value`` anywhere, with wildcards escaped (escape char ``\\``)."""
    escaped = value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"
