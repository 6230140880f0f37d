from marshmallow import EXCLUDE, Schema, fields, validate

from ..models.claim import MAX_NOTES_LENGTH
from .user import UserSummarySchema


class VerificationDocumentSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    url = fields.Str(required=True, validate=validate.Length(min=1))
    name = fields.Str(required=True, validate=validate.Length(min=1))
    type = fields.Str(required=True, validate=validate.Length(min=1))
    size = fields.Int(allow_none=True)
    publicId = fields.Str(allow_none=True)


class ClaimSubmitSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    verification_documents = fields.List(
        fields.Nested(VerificationDocumentSchema),
        data_key="verificationDocuments",
        load_default=list,
    )
    notes = fields.Str(
        load_default="",
        allow_none=True,
        validate=validate.Length(max=MAX_NOTES_LENGTH, error="Notes must be less than 500 characters"),
    )


class ClaimStatusSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    # Validated by the lifecycle so an unknown value yields its "Invalid status" error
    status = fields.Str(required=True)
    notes = fields.Str(allow_none=True, validate=validate.Length(max=MAX_NOTES_LENGTH))


class ReturnSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    claim_id = fields.Int(data_key="claimId", allow_none=True, load_default=None)
    return_notes = fields.Str(data_key="returnNotes", allow_none=True, load_default=None)


class HandoverSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    police_report_number = fields.Str(data_key="policeReportNumber", allow_none=True, load_default=None)
    police_station = fields.Str(data_key="policeStation", allow_none=True, load_default=None)


class ClaimSchema(Schema):
    id = fields.Int(dump_only=True)
    item_id = fields.Int(dump_only=True, data_key="itemId")
    claimed_by = fields.Nested(UserSummarySchema, attribute="claimant", dump_only=True, data_key="claimedBy")
    verification_documents = fields.List(fields.Dict(), dump_only=True, data_key="verificationDocuments")
    notes = fields.Str(dump_only=True)
    status = fields.Str(dump_only=True)
    reviewed_by = fields.Int(attribute="reviewed_by_user_id", dump_only=True, data_key="reviewedBy")
    reviewed_at = fields.DateTime(dump_only=True, data_key="reviewedAt")
    created_at = fields.DateTime(dump_only=True, data_key="createdAt")
    updated_at = fields.DateTime(dump_only=True, data_key="updatedAt")


claim_schema = ClaimSchema()
claims_schema = ClaimSchema(many=True)
