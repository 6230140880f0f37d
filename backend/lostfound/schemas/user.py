from marshmallow import EXCLUDE, Schema, fields, validate, validates_schema, ValidationError

from ..models.enums import ROLES


class UserSummarySchema(Schema):
    """Populated reference to a user inside item/claim/notification payloads."""

    id = fields.Int(dump_only=True)
    name = fields.Str(dump_only=True)
    email = fields.Email(dump_only=True)
    phone = fields.Str(dump_only=True)
    role = fields.Str(dump_only=True)
    branch = fields.Str(dump_only=True)


class UserSchema(Schema):
    id = fields.Int(dump_only=True)
    name = fields.Str(dump_only=True)
    email = fields.Email(dump_only=True)
    phone = fields.Str(dump_only=True)
    role = fields.Str(dump_only=True)
    branch = fields.Str(dump_only=True)
    is_active = fields.Bool(dump_only=True, data_key="isActive")
    last_login_at = fields.DateTime(dump_only=True, data_key="lastLoginAt")
    created_at = fields.DateTime(dump_only=True, data_key="createdAt")


class RegisterSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    name = fields.Str(required=True, validate=validate.Length(min=1, max=120, error="Name is required"))
    email = fields.Email(required=True, error_messages={"invalid": "Please enter a valid email"})
    password = fields.Str(required=True, load_only=True, validate=validate.Length(min=6, error="Password must be at least 6 characters"))
    phone = fields.Str(required=True, validate=validate.Length(min=1, max=40, error="Phone number is required"))


class LoginSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    email = fields.Email(required=True)
    password = fields.Str(required=True, load_only=True)


class ProfileUpdateSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    name = fields.Str(validate=validate.Length(min=1, max=120))
    phone = fields.Str(validate=validate.Length(min=1, max=40))
    password = fields.Str(load_only=True, validate=validate.Length(min=6))


class AdminUserUpdateSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    role = fields.Str(validate=validate.OneOf(ROLES))
    is_active = fields.Bool(data_key="isActive")
    branch = fields.Str(allow_none=True, validate=validate.Length(max=120))

    @validates_schema
    def _staff_needs_branch(self, data, **kwargs):
        if data.get("role") == "staff" and "branch" in data and not (data.get("branch") or "").strip():
            raise ValidationError("Branch is required for staff users", field_name="branch")
