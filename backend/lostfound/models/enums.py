from sqlalchemy.dialects.postgresql import JSONB

from ..extensions import db

# Value sets shared by models, schemas and routes.
ROLES = ("user", "staff", "admin")
ITEM_TYPES = ("lost", "found")
ITEM_STATUSES = ("active", "claimed", "returned", "expired")
ITEM_CATEGORIES = ("electronics", "clothing", "accessories", "documents", "keys", "bags", "books", "other")
CLAIM_STATUSES = ("pending", "approved", "rejected")
NOTIFICATION_TYPES = (
    "claim_submitted",
    "claim_approved",
    "claim_rejected",
    "item_returned",
    "match_found",
    "deadline_reminder",
    "item_expired",
    "system",
)

# Column types. Postgres gets native ENUM/JSONB/BIGINT; SQLite (tests) falls back
# to VARCHAR/JSON/INTEGER so autoincrement primary keys keep working.
role_enum = db.Enum(*ROLES, name="role_enum")
item_type_enum = db.Enum(*ITEM_TYPES, name="item_type_enum")
item_status_enum = db.Enum(*ITEM_STATUSES, name="item_status_enum")
item_category_enum = db.Enum(*ITEM_CATEGORIES, name="item_category_enum")
claim_status_enum = db.Enum(*CLAIM_STATUSES, name="claim_status_enum")
notification_type_enum = db.Enum(*NOTIFICATION_TYPES, name="notification_type_enum")

BigIntPK = db.BigInteger().with_variant(db.Integer(), "sqlite")
JSONType = db.JSON().with_variant(JSONB(), "postgresql")
