from datetime import timezone

from marshmallow import EXCLUDE, Schema, fields, post_load, validate

from ..models.enums import ITEM_CATEGORIES, ITEM_STATUSES, ITEM_TYPES
from .claim import ClaimSchema
from .user import UserSummarySchema


class ContactInfoSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    name = fields.Str(required=True, validate=validate.Length(min=1, error="Contact name is required"))
    email = fields.Email(required=True, error_messages={"invalid": "Valid contact email is required"})
    phone = fields.Str(required=True, validate=validate.Length(min=1, error="Contact phone is required"))


class AdditionalDetailsSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    color = fields.Str(allow_none=True)
    brand = fields.Str(allow_none=True)
    size = fields.Str(allow_none=True)
    identifiers = fields.Str(allow_none=True)


class ItemCreateSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    title = fields.Str(required=True, validate=validate.Length(min=1, max=200, error="Title is required"))
    description = fields.Str(required=True, validate=validate.Length(min=1, error="Description is required"))
    category = fields.Str(required=True, validate=validate.OneOf(ITEM_CATEGORIES, error="Invalid category"))
    type = fields.Str(required=True, validate=validate.OneOf(ITEM_TYPES, error="Type must be either lost or found"))
    location = fields.Str(required=True, validate=validate.Length(min=1, max=200, error="Location is required"))
    district = fields.Str(required=True, validate=validate.Length(min=1, max=120, error="District is required"))
    date = fields.Date(required=True, error_messages={"invalid": "Valid date is required"})
    images = fields.List(fields.Str(), load_default=list)
    contact_info = fields.Nested(ContactInfoSchema, required=True, data_key="contactInfo")
    additional_details = fields.Nested(AdditionalDetailsSchema, allow_none=True, data_key="additionalDetails")

    @post_load
    def _flatten_contact(self, data, **kwargs):
        # Partial updates may carry only some contact fields
        contact = data.pop("contact_info", None) or {}
        for key in ("name", "email", "phone"):
            if key in contact:
                data[f"contact_{key}"] = contact[key]
        return data


class ItemUpdateSchema(ItemCreateSchema):
    """Fields accepted by PUT /items/<id>; always loaded with partial=True."""

    status = fields.Str(validate=validate.OneOf(ITEM_STATUSES, error="Invalid status"))
    expiry_date = fields.AwareDateTime(data_key="expiryDate", default_timezone=timezone.utc)
    images = fields.List(fields.Str())


class BulkUpdateSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    item_ids = fields.List(
        fields.Int(),
        required=True,
        data_key="itemIds",
        validate=validate.Length(min=1, error="Item IDs array is required"),
    )
    update_data = fields.Nested(ItemUpdateSchema(partial=True), required=True, data_key="updateData")


class ItemQuerySchema(Schema):
    """Query-string filters for GET /items."""

    class Meta:
        unknown = EXCLUDE

    type = fields.Str(validate=validate.OneOf(ITEM_TYPES))
    category = fields.Str(validate=validate.OneOf(ITEM_CATEGORIES))
    status = fields.Str(validate=validate.OneOf(ITEM_STATUSES))
    location = fields.Str()
    district = fields.Str()
    search = fields.Str()
    page = fields.Int(load_default=1, validate=validate.Range(min=1))
    limit = fields.Int(load_default=10, validate=validate.Range(min=1, max=100))
    sort_by = fields.Str(
        data_key="sortBy",
        load_default="createdAt",
        validate=validate.OneOf(("createdAt", "date", "title", "expiryDate", "status")),
    )
    sort_order = fields.Str(data_key="sortOrder", load_default="desc", validate=validate.OneOf(("asc", "desc")))


class ItemSchema(Schema):
    id = fields.Int(dump_only=True)
    title = fields.Str(dump_only=True)
    description = fields.Str(dump_only=True)
    category = fields.Str(dump_only=True)
    type = fields.Str(dump_only=True)
    status = fields.Str(dump_only=True)
    location = fields.Str(dump_only=True)
    district = fields.Str(dump_only=True)
    date = fields.Date(dump_only=True)
    images = fields.List(fields.Str(), dump_only=True)
    contact_info = fields.Method("_contact_info", data_key="contactInfo")
    additional_details = fields.Dict(dump_only=True, data_key="additionalDetails")
    reported_by = fields.Nested(
        UserSummarySchema(only=("id", "name", "email")),
        attribute="reporter",
        dump_only=True,
        data_key="reportedBy",
    )
    expiry_date = fields.DateTime(dump_only=True, data_key="expiryDate")
    can_accept_claims = fields.Method("_can_accept_claims", data_key="canAcceptClaims")
    claim_count = fields.Method("_claim_count", data_key="claimCount")
    handed_over_to_police = fields.Bool(dump_only=True, data_key="handedOverToPolice")
    police_report_number = fields.Str(dump_only=True, data_key="policeReportNumber")
    police_station = fields.Str(dump_only=True, data_key="policeStation")
    police_handover_date = fields.DateTime(dump_only=True, data_key="policeHandoverDate")
    return_notes = fields.Str(dump_only=True, data_key="returnNotes")
    return_date = fields.DateTime(dump_only=True, data_key="returnDate")
    claims = fields.List(fields.Nested(ClaimSchema), dump_only=True)
    created_at = fields.DateTime(dump_only=True, data_key="createdAt")
    updated_at = fields.DateTime(dump_only=True, data_key="updatedAt")

    def _contact_info(self, item):
        return {"name": item.contact_name, "email": item.contact_email, "phone": item.contact_phone}

    def _can_accept_claims(self, item):
        return item.can_accept_claims()

    def _claim_count(self, item):
        return len(item.claims)


class ItemSummarySchema(Schema):
    id = fields.Int(dump_only=True)
    title = fields.Str(dump_only=True)
    type = fields.Str(dump_only=True)
    category = fields.Str(dump_only=True)
    status = fields.Str(dump_only=True)
    location = fields.Str(dump_only=True)
    date = fields.Date(dump_only=True)
    images = fields.List(fields.Str(), dump_only=True)
    reported_by = fields.Nested(
        UserSummarySchema(only=("id", "name", "email")),
        attribute="reporter",
        dump_only=True,
        data_key="reportedBy",
    )
    created_at = fields.DateTime(dump_only=True, data_key="createdAt")


# Public listing hides claim details; reviewers and owners get the full item.
item_schema = ItemSchema(exclude=("claims",))
items_schema = ItemSchema(exclude=("claims",), many=True)
item_detail_schema = ItemSchema()
item_summary_schema = ItemSummarySchema()
