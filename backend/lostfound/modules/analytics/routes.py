from __future__ import annotations

from datetime import timedelta

from flask import Blueprint, request

from ...access import branch_scope_for, login_required, require_user, staff_or_admin
from ...errors import ValidationError
from ...utils import ok, parse_datetime, utcnow
from . import service

bp = Blueprint("analytics", __name__, url_prefix="/analytics")

DEFAULT_WINDOW_DAYS = 30


def _window_from_args() -> service.DateRange:
    end = parse_datetime(request.args.get("endDate")) or utcnow()
    start = parse_datetime(request.args.get("startDate")) or end - timedelta(days=DEFAULT_WINDOW_DAYS)
    if start > end:
        raise ValidationError("startDate must be before endDate")
    return service.DateRange(start=start, end=end)


@bp.get("")
@login_required
def analytics():
    """Role-scoped report: staff see their branch, admins everything or ?branch=."""
    user = require_user()
    scope = branch_scope_for(user, request.args.get("branch"))
    return ok(service.build_report(user, scope, _window_from_args()))


@bp.get("/branches")
@staff_or_admin
def branches():
    return ok(service.available_branches())
