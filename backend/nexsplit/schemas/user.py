"""User account Marshmallow schemas."""

from __future__ import annotations

from marshmallow import Schema, ValidationError, fields, validate, validates_schema


class ProfileSchema(Schema):
    """Profile of the authenticated user."""

    id = fields.Integer(required=True)
    email = fields.Email(required=True)
    username = fields.String(required=True)
    full_name = fields.String(allow_none=True)
    role = fields.String(required=True)
    is_active = fields.Boolean(required=True)


class ProfileUpdateSchema(Schema):
    """Profile changes; at least one field must be present."""

    username = fields.String(validate=validate.Length(min=3, max=50))
    full_name = fields.String(validate=validate.Length(min=2, max=100))

    @validates_schema
    def _not_empty(self, data, **kwargs):
        if not data:
            raise ValidationError("Provide username or full_name.")


class ChangePasswordSchema(Schema):
    current_password = fields.String(required=True, validate=validate.Length(min=1, max=128))
    new_password = fields.String(required=True, validate=validate.Length(min=1, max=128))
    confirm_password = fields.String(required=True, validate=validate.Length(min=1, max=128))

    @validates_schema
    def _passwords_match(self, data, **kwargs):
        if data.get("new_password") != data.get("confirm_password"):
            raise ValidationError(
                "New password and confirm password do not match", field_name="confirm_password"
            )


class EmailQuerySchema(Schema):
    email = fields.Email(required=True)


class UsernameQuerySchema(Schema):
    username = fields.String(required=True, validate=validate.Length(min=1, max=50))


class AvailabilitySchema(Schema):
    available = fields.Boolean(required=True)
