from __future__ import annotations

from flask import Blueprint, request

from ...access import login_required, require_user
from ...errors import ValidationError
from ...models.claim import Claim
from ...models.enums import CLAIM_STATUSES
from ...schemas.claim import claim_schema
from ...schemas.item import item_summary_schema
from ...utils import int_arg, ok, paginate

bp = Blueprint("claims", __name__, url_prefix="/claims")


@bp.get("/my-claims")
@login_required
def my_claims():
    """Claims the caller has submitted, newest first, each with its item."""
    user = require_user()
    status = request.args.get("status") or None
    if status is not None and status not in CLAIM_STATUSES:
        raise ValidationError("Invalid status")

    q = Claim.query.filter(Claim.claimant_user_id == user.id)
    if status:
        q = q.filter(Claim.status == status)
    q = q.order_by(Claim.created_at.desc(), Claim.id.desc())

    rows, meta = paginate(q, int_arg("page", 1), int_arg("limit", 10, maximum=100))
    data = [{**item_summary_schema.dump(c.item), "claim": claim_schema.dump(c)} for c in rows]
    return ok(data, pagination=meta)
