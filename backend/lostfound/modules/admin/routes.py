from __future__ import annotations

import logging
from datetime import timedelta

from flask import Blueprint, request
from sqlalchemy import or_

from ...access import Role, require_user
from ...errors import ForbiddenError, NotFoundError, ValidationError
from ...extensions import db
from ...models.claim import Claim
from ...models.item import Item
from ...models.user import User
from ...schemas.item import BulkUpdateSchema
from ...schemas.user import AdminUserUpdateSchema, UserSchema
from ...utils import contains_pattern, int_arg, ok, paginate, utcnow
from ..claims.lifecycle import check_item_transition

logger = logging.getLogger(__name__)

bp = Blueprint("admin", __name__, url_prefix="/admin")

user_schema = UserSchema()


@bp.before_request
def _require_admin():
    if require_user().role != Role.ADMIN.value:
        raise ForbiddenError()


def _get_user_or_404(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError("User")
    return user


@bp.get("/users")
def list_users():
    q = User.query
    role = (request.args.get("role") or "").strip()
    branch = (request.args.get("branch") or "").strip()
    is_active = (request.args.get("isActive") or "").strip().lower()
    search = (request.args.get("search") or "").strip()
    if role:
        q = q.filter(User.role == role)
    if branch:
        q = q.filter(User.branch == branch)
    if is_active in ("true", "false"):
        q = q.filter(User.is_active.is_(is_active == "true"))
    if search:
        pattern = contains_pattern(search)
        q = q.filter(or_(User.name.ilike(pattern, escape="\\"), User.email.ilike(pattern, escape="\\")))
    q = q.order_by(User.created_at.desc(), User.id.desc())

    rows, meta = paginate(q, int_arg("page", 1), int_arg("limit", 20, maximum=100))
    data = []
    for u in rows:
        entry = user_schema.dump(u)
        entry["stats"] = {
            "itemsReported": Item.query.filter(Item.reporter_user_id == u.id).count(),
            "claimsSubmitted": Claim.query.filter(Claim.claimant_user_id == u.id).count(),
        }
        data.append(entry)
    return ok(data, pagination=meta)


@bp.put("/users/<int:user_id>")
def update_user(user_id: int):
    admin = require_user()
    user = _get_user_or_404(user_id)
    data = AdminUserUpdateSchema().load(request.get_json(silent=True) or {})

    if user.id == admin.id and data.get("is_active") is False:
        raise ValidationError("Cannot deactivate your own account")

    if data.get("role"):
        user.role = data["role"]
    if "is_active" in data:
        user.is_active = data["is_active"]
    if data.get("branch"):
        user.branch = data["branch"].strip()
    if user.role == Role.STAFF.value and not (user.branch or "").strip():
        raise ValidationError("Staff user must have a branch assigned")

    db.session.commit()
    logger.info("Admin %s updated user %s (role=%s, active=%s)", admin.id, user.id, user.role, user.is_active)
    return ok(user_schema.dump(user), message="User updated successfully")


@bp.delete("/users/<int:user_id>")
def delete_user(user_id: int):
    admin = require_user()
    if user_id == admin.id:
        raise ValidationError("Cannot delete your own account")
    user = _get_user_or_404(user_id)

    active_items = Item.query.filter(Item.reporter_user_id == user.id, Item.status == "active").count()
    pending_claims = Claim.query.filter(Claim.claimant_user_id == user.id, Claim.status == "pending").count()
    if active_items or pending_claims:
        raise ValidationError("Cannot delete user with active items or pending claims")

    db.session.delete(user)
    db.session.commit()
    logger.info("Admin %s deleted user %s", admin.id, user_id)
    return ok(message="User deleted successfully")


@bp.get("/overview")
def overview():
    now = utcnow()
    users = {
        "total": User.query.count(),
        "staff": User.query.filter(User.role == "staff").count(),
        "admins": User.query.filter(User.role == "admin").count(),
        "active": User.query.filter(User.is_active.is_(True)).count(),
        "recentRegistrations": User.query.filter(User.created_at >= now - timedelta(days=7)).count(),
    }
    items = {
        "total": Item.query.count(),
        "pendingClaims": Item.query.filter(Item.claims.any(Claim.status == "pending")).count(),
        "expiredItems": Item.query.filter(Item.status == "active", Item.expiry_date < now).count(),
    }

    branch_rows = (
        db.session.query(User.branch, User.role, db.func.count(User.id))
        .filter(User.role.in_(("staff", "admin")))
        .group_by(User.branch, User.role)
        .all()
    )
    branches: dict = {}
    for branch, role, n in branch_rows:
        entry = branches.setdefault(branch, {"branch": branch, "count": 0, "staff": 0, "admins": 0})
        entry["count"] += n
        entry["staff" if role == "staff" else "admins"] += n

    return ok(
        {
            "users": users,
            "items": items,
            "branches": sorted(branches.values(), key=lambda e: -e["count"]),
            "health": {
                "userRegistrations": users["recentRegistrations"] > 0,
                "itemActivity": items["total"] > 0,
                "expiredItemsNeedAttention": items["expiredItems"] > 0,
            },
            "systemStatus": "operational",
        }
    )


@bp.put("/items/bulk-update")
def bulk_update_items():
    payload = request.get_json(silent=True) or {}
    if not isinstance(payload.get("itemIds"), list) or not payload["itemIds"]:
        raise ValidationError("Item IDs array is required")
    data = BulkUpdateSchema().load(payload)
    changes = data["update_data"]

    items = Item.query.filter(Item.id.in_(data["item_ids"])).order_by(Item.id).all()
    modified = 0
    for item in items:
        if "status" in changes:
            check_item_transition(item, changes["status"], override=True)
        before = {key: getattr(item, key) for key in changes}
        for key, value in changes.items():
            setattr(item, key, value)
        if any(before[key] != value for key, value in changes.items()):
            modified += 1
    db.session.commit()
    logger.info("Bulk update touched %d of %d item(s)", modified, len(items))
    return ok(
        {"matched": len(items), "modified": modified},
        message=f"{modified} items updated successfully",
    )
