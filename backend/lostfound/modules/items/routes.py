from __future__ import annotations

import logging
from datetime import timedelta

from flask import Blueprint, current_app, request
from sqlalchemy import or_

from ...access import (
    current_user,
    ensure_can_manage_item,
    is_reviewer,
    login_required,
    require_user,
    staff_or_admin,
)
from ...errors import NotFoundError, ValidationError
from ...extensions import db
from ...models.item import Item
from ...schemas.claim import (
    ClaimStatusSchema,
    ClaimSubmitSchema,
    HandoverSchema,
    ReturnSchema,
    claim_schema,
    claims_schema,
)
from ...schemas.item import (
    ItemCreateSchema,
    ItemQuerySchema,
    ItemUpdateSchema,
    item_detail_schema,
    item_schema,
    items_schema,
)
from ...utils import contains_pattern, ok, paginate, utcnow
from ..claims import lifecycle
from ..notifications.dispatcher import CLAIM_SUPERSEDED_REASON, dispatch

logger = logging.getLogger(__name__)

bp = Blueprint("items", __name__, url_prefix="/items")

SORT_COLUMNS = {
    "createdAt": Item.created_at,
    "date": Item.date,
    "title": Item.title,
    "expiryDate": Item.expiry_date,
    "status": Item.status,
}
MATCH_WINDOW_DAYS = 7


def _query_args() -> dict:
    # Empty query-string values mean "no filter"
    return {k: v for k, v in request.args.items() if v != ""}


def _get_item_or_404(item_id: int) -> Item:
    item = db.session.get(Item, item_id)
    if item is None:
        raise NotFoundError("Item")
    return item


@bp.get("")
def list_items():
    """Public listing with filters, text search, sorting and pagination."""
    args = ItemQuerySchema().load(_query_args())
    q = Item.query
    for field in ("type", "category", "status"):
        if args.get(field):
            q = q.filter(getattr(Item, field) == args[field])
    if args.get("location"):
        q = q.filter(Item.location.ilike(contains_pattern(args["location"]), escape="\\"))
    if args.get("district"):
        q = q.filter(Item.district.ilike(contains_pattern(args["district"]), escape="\\"))
    if args.get("search"):
        pattern = contains_pattern(args["search"])
        q = q.filter(or_(Item.title.ilike(pattern, escape="\\"), Item.description.ilike(pattern, escape="\\")))

    column = SORT_COLUMNS[args["sort_by"]]
    order = column.asc() if args["sort_order"] == "asc" else column.desc()
    q = q.order_by(order, Item.id.desc())

    rows, meta = paginate(q, args["page"], args["limit"])
    return ok(items_schema.dump(rows), pagination=meta)


@bp.post("")
@login_required
def create_item():
    user = require_user()
    data = ItemCreateSchema().load(request.get_json(silent=True) or {})
    expiry_days = int(current_app.config.get("ITEM_EXPIRY_DAYS", 30))
    item = Item(
        reporter_user_id=user.id,
        expiry_date=utcnow() + timedelta(days=expiry_days),
        **data,
    )
    db.session.add(item)
    db.session.commit()
    logger.info("Item %s (%s) reported by user %s", item.id, item.type, user.id)
    return ok(item_schema.dump(item), status=201)


@bp.get("/my-items")
@login_required
def my_items():
    user = require_user()
    args = ItemQuerySchema(only=("type", "status", "page", "limit")).load(_query_args())
    q = Item.query.filter(Item.reporter_user_id == user.id)
    if args.get("type"):
        q = q.filter(Item.type == args["type"])
    if args.get("status"):
        q = q.filter(Item.status == args["status"])
    q = q.order_by(Item.created_at.desc(), Item.id.desc())
    rows, meta = paginate(q, args["page"], args["limit"])
    return ok(items_schema.dump(rows), pagination=meta)


@bp.post("/search-matches")
@login_required
def search_matches():
    """Candidate counterparts for an item: opposite type, same category, nearby date.

    A candidate must also share the location or the first word of the title.
    """
    payload = request.get_json(silent=True) or {}
    try:
        source_id = int(payload.get("itemId"))
    except (TypeError, ValueError):
        raise ValidationError("Item ID is required")
    source = _get_item_or_404(source_id)

    opposite = "found" if source.type == "lost" else "lost"
    window = timedelta(days=MATCH_WINDOW_DAYS)
    similar = [Item.location.ilike(contains_pattern(source.location), escape="\\")]
    first_word = (source.title or "").split(" ")[0].strip()
    if first_word:
        similar.append(Item.title.ilike(contains_pattern(first_word), escape="\\"))

    matches = (
        Item.query.filter(
            Item.id != source.id,
            Item.type == opposite,
            Item.category == source.category,
            Item.status == "active",
            Item.date >= source.date - window,
            Item.date <= source.date + window,
            or_(*similar),
        )
        .order_by(Item.date.desc(), Item.id.desc())
        .all()
    )
    return ok(items_schema.dump(matches), sourceItem=source.title)


@bp.get("/<int:item_id>")
def get_item(item_id: int):
    item = _get_item_or_404(item_id)
    user = current_user()
    # Claims are only shown to the reporter and reviewers
    if user is not None and (item.reporter_user_id == user.id or is_reviewer(user)):
        return ok(item_detail_schema.dump(item))
    return ok(item_schema.dump(item))


@bp.put("/<int:item_id>")
@login_required
def update_item(item_id: int):
    user = require_user()
    item = lifecycle.lock_item(item_id)
    ensure_can_manage_item(user, item, "update")
    data = ItemUpdateSchema().load(request.get_json(silent=True) or {}, partial=True)
    if "status" in data:
        lifecycle.check_item_transition(item, data["status"], override=user.role == "admin")
    for key, value in data.items():
        setattr(item, key, value)
    db.session.commit()
    return ok(item_schema.dump(item))


@bp.delete("/<int:item_id>")
@login_required
def delete_item(item_id: int):
    user = require_user()
    item = _get_item_or_404(item_id)
    ensure_can_manage_item(user, item, "delete")
    db.session.delete(item)
    db.session.commit()
    logger.info("Item %s deleted by user %s", item_id, user.id)
    return ok(message="Item deleted successfully")


@bp.post("/<int:item_id>/claim")
@login_required
def submit_claim(item_id: int):
    user = require_user()
    data = ClaimSubmitSchema().load(request.get_json(silent=True) or {})
    item = lifecycle.lock_item(item_id)
    claim = lifecycle.submit_claim(item, user, data["verification_documents"], data.get("notes"))
    dispatch("claim_submitted", item_id=item.id, claim_id=claim.id)
    return ok(claim_schema.dump(claim), message="Claim submitted successfully", status=201)


@bp.get("/<int:item_id>/claims")
@staff_or_admin
def item_claims(item_id: int):
    item = _get_item_or_404(item_id)
    return ok(
        {
            "item": {"id": item.id, "title": item.title, "status": item.status, "type": item.type},
            "claims": claims_schema.dump(item.claims),
        }
    )


@bp.put("/<int:item_id>/claims/<int:claim_id>")
@staff_or_admin
def update_claim_status(item_id: int, claim_id: int):
    user = require_user()
    data = ClaimStatusSchema().load(request.get_json(silent=True) or {})
    item = lifecycle.lock_item(item_id)
    transition = lifecycle.update_claim_status(item, claim_id, data["status"], data.get("notes"), reviewer=user)

    claim = transition.claim
    if transition.changed and claim.status == "approved":
        dispatch("claim_approved", item_id=item.id, claim_id=claim.id, reviewer_id=user.id)
    elif transition.changed and claim.status == "rejected":
        dispatch(
            "claims_rejected",
            item_id=item.id,
            claim_ids=[claim.id],
            reviewer_id=user.id,
            reason=data.get("notes"),
        )
    # Re-approving the winner can still sweep up claims reopened since
    if transition.auto_rejected:
        dispatch(
            "claims_rejected",
            item_id=item.id,
            claim_ids=[c.id for c in transition.auto_rejected],
            reviewer_id=user.id,
            reason=CLAIM_SUPERSEDED_REASON,
        )

    return ok(item_detail_schema.dump(item), message=f"Claim {claim.status} successfully")


@bp.put("/<int:item_id>/return")
@staff_or_admin
def mark_returned(item_id: int):
    user = require_user()
    data = ReturnSchema().load(request.get_json(silent=True) or {})
    item = lifecycle.lock_item(item_id)
    lifecycle.mark_item_returned(item, data.get("claim_id"), data.get("return_notes"))
    dispatch("item_returned", item_id=item.id, returned_by_id=user.id)
    return ok(item_detail_schema.dump(item), message="Item marked as returned successfully")


@bp.put("/handover/<int:item_id>")
@staff_or_admin
def handover_to_police(item_id: int):
    data = HandoverSchema().load(request.get_json(silent=True) or {})
    item = lifecycle.lock_item(item_id)
    lifecycle.hand_over_to_police(item, data.get("police_report_number"), data.get("police_station"))
    return ok(item_detail_schema.dump(item), message="Item handed over to police successfully")
