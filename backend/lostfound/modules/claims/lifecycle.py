"""
Claim lifecycle on an item.

Every operation here works on one item row loaded with ``lock_item`` and ends
in a single commit, so the item status and all of its claims move together.
Notifications are not sent from here; callers dispatch them after the commit.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from sqlalchemy.exc import IntegrityError

from ...errors import NotFoundError, ValidationError
from ...extensions import db
from ...models.claim import Claim
from ...models.enums import CLAIM_STATUSES, ITEM_STATUSES
from ...models.item import Item
from ...models.user import User
from ...utils import utcnow

logger = logging.getLogger(__name__)

AUTO_REJECT_NOTE = "Automatically rejected - another claim was approved"

# Forward-only item status moves; anything else needs an admin override.
ITEM_TRANSITIONS = {
    "active": frozenset({"claimed", "returned", "expired"}),
    "claimed": frozenset({"returned"}),
    "returned": frozenset(),
    "expired": frozenset(),
}


@dataclass
class ClaimTransition:
    claim: Claim
    previous_status: str
    auto_rejected: List[Claim] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return self.claim.status != self.previous_status


def lock_item(item_id: int) -> Item:
    """Load an item for a read-modify-write, holding its row lock until commit."""
    item = (
        db.session.query(Item)
        .filter(Item.id == item_id)
        .with_for_update()
        .populate_existing()
        .one_or_none()
    )
    if item is None:
        raise NotFoundError("Item")
    return item


def submit_claim(
    item: Item,
    claimant: User,
    documents: Optional[Iterable[dict]] = None,
    notes: Optional[str] = None,
) -> Claim:
    if not item.can_accept_claims():
        raise ValidationError("This item is no longer available for claims")
    if item.claim_by(claimant.id) is not None:
        raise ValidationError("You have already submitted a claim for this item")

    claim = Claim(
        claimant_user_id=claimant.id,
        verification_documents=list(documents or []),
        notes=notes or "",
        status="pending",
    )
    item.claims.append(claim)
    try:
        db.session.commit()
    except IntegrityError:
        # Lost a race with a concurrent submission from the same claimant
        db.session.rollback()
        raise ValidationError("You have already submitted a claim for this item")
    logger.info("Claim %s submitted on item %s by user %s", claim.id, item.id, claimant.id)
    return claim


def update_claim_status(
    item: Item,
    claim_id: int,
    new_status: str,
    notes: Optional[str] = None,
    reviewer: Optional[User] = None,
) -> ClaimTransition:
    """Move one claim to ``new_status``.

    Approval makes the item ``claimed`` and rejects every other pending claim
    in the same commit. Rejection and reverting to pending touch nothing else.
    """
    if new_status not in CLAIM_STATUSES:
        raise ValidationError("Invalid status")
    claim = item.get_claim(claim_id)
    if claim is None:
        raise NotFoundError("Claim")

    transition = ClaimTransition(claim=claim, previous_status=claim.status)

    if new_status == "approved":
        winner = item.approved_claim()
        if winner is not None and winner.id != claim.id:
            raise ValidationError("Another claim has already been approved for this item")
        if item.status == "returned":
            raise ValidationError("Item has already been returned")
        item.status = "claimed"
        for other in item.pending_claims():
            if other.id == claim.id:
                continue
            other.status = "rejected"
            other.notes = AUTO_REJECT_NOTE
            other.reviewed_at = utcnow()
            other.reviewed_by_user_id = reviewer.id if reviewer else None
            transition.auto_rejected.append(other)

    claim.status = new_status
    if notes:
        claim.notes = notes
    claim.reviewed_at = utcnow()
    claim.reviewed_by_user_id = reviewer.id if reviewer else None

    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ValidationError("Another claim has already been approved for this item")

    logger.info(
        "Claim %s on item %s: %s -> %s (%d auto-rejected)",
        claim.id,
        item.id,
        transition.previous_status,
        new_status,
        len(transition.auto_rejected),
    )
    return transition


def mark_item_returned(item: Item, claim_id: Optional[int] = None, return_notes: Optional[str] = None) -> Item:
    if item.status != "claimed":
        raise ValidationError("Item must be claimed before it can be marked as returned")
    if claim_id is not None:
        claim = item.get_claim(claim_id)
        if claim is None:
            raise NotFoundError("Claim")
        if claim.status != "approved":
            raise ValidationError("Only approved claims can be marked as returned")

    item.status = "returned"
    item.return_date = utcnow()
    if return_notes:
        item.return_notes = return_notes
    db.session.commit()
    logger.info("Item %s marked as returned", item.id)
    return item


def hand_over_to_police(item: Item, report_number: Optional[str], station: Optional[str] = None) -> Item:
    if not (report_number or "").strip():
        raise ValidationError("Police report number is required")
    if item.handed_over_to_police:
        raise ValidationError("Item has already been handed over to police")
    if item.status == "returned":
        raise ValidationError("Returned items cannot be handed over to police")

    item.handed_over_to_police = True
    item.police_report_number = report_number.strip()
    item.police_station = (station or "").strip() or None
    item.police_handover_date = utcnow()
    db.session.commit()
    logger.info("Item %s handed over to police (report %s)", item.id, item.police_report_number)
    return item


def check_item_transition(item: Item, new_status: str, override: bool = False) -> None:
    """Reject backwards item status moves unless an admin is correcting a record."""
    if new_status not in ITEM_STATUSES:
        raise ValidationError("Invalid status")
    if new_status == item.status or override:
        return
    if new_status not in ITEM_TRANSITIONS.get(item.status, frozenset()):
        raise ValidationError(f"Cannot change item status from {item.status} to {new_status}")
