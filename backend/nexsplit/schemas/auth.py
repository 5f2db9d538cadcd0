"""Authentication-related Marshmallow schemas."""

from __future__ import annotations

from marshmallow import Schema, fields, validate


class RegisterSchema(Schema):
    """Input payload for account registration.

    Password strength is enforced by the service so clients receive the
    policy hints; only the length ceiling is checked here.
    """

    email = fields.Email(required=True, validate=validate.Length(max=254))
    username = fields.String(required=True, validate=validate.Length(min=3, max=50))
    password = fields.String(required=True, validate=validate.Length(min=1, max=128))
    full_name = fields.String(load_default=None, validate=validate.Length(max=100))


class LoginSchema(Schema):
    """Input payload for authenticating a user."""

    email = fields.Email(required=True, validate=validate.Length(max=254))
    password = fields.String(required=True, validate=validate.Length(min=1, max=128))


class RefreshSchema(Schema):
    """Refresh request body; the cookie is used when the field is absent."""

    refresh_token = fields.String(load_default=None, validate=validate.Length(min=1, max=512))


class LogoutSchema(Schema):
    refresh_token = fields.String(load_default=None, validate=validate.Length(min=1, max=512))
    family_id = fields.String(load_default=None, validate=validate.Length(equal=36))
    all_sessions = fields.Boolean(load_default=False)


class PasswordCheckSchema(Schema):
    password = fields.String(required=True, validate=validate.Length(max=128))


class TokenResponseSchema(Schema):
    """Response payload containing the token pair."""

    access_token = fields.String(required=True)
    token_type = fields.String(dump_default="Bearer")
    expires_in = fields.Integer(required=True)
    refresh_token = fields.String()
    refresh_expires_at = fields.DateTime(required=True)
    family_id = fields.String(required=True)


class WhoAmISchema(Schema):
    """Response payload exposing identity details for the authenticated user."""

    id = fields.Integer(required=True)
    email = fields.Email(required=True)
    username = fields.String(required=True)
    full_name = fields.String(allow_none=True)
    role = fields.String(required=True)


class LogoutResponseSchema(Schema):
    revoked = fields.Integer(required=True)


class PasswordStrengthSchema(Schema):
    valid = fields.Boolean(required=True)
    message = fields.String(required=True)
