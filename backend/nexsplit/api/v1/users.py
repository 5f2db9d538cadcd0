"""User account endpoints: profile, password, deactivation and availability."""

from __future__ import annotations

from flask import Blueprint, request

from nexsplit.api.deps import client_meta, json_response, require_auth, timing, translate_errors
from nexsplit.api.v1.auth import clear_refresh_cookie
from nexsplit.core.container import get_auth_service
from nexsplit.schemas import (
    AvailabilitySchema,
    ChangePasswordSchema,
    EmailQuerySchema,
    LogoutResponseSchema,
    PasswordCheckSchema,
    PasswordStrengthSchema,
    ProfileSchema,
    ProfileUpdateSchema,
    UsernameQuerySchema,
)
from nexsplit.services._shared.ports import AccessTokenClaims
from nexsplit.services.auth.dto import ChangePasswordIn, DeactivateIn, UpdateProfileIn

bp = Blueprint("users", __name__)

profile_schema = ProfileSchema()
profile_update_schema = ProfileUpdateSchema()
change_password_schema = ChangePasswordSchema()
email_query_schema = EmailQuerySchema()
username_query_schema = UsernameQuerySchema()
availability_schema = AvailabilitySchema()
revoked_schema = LogoutResponseSchema()
password_check_schema = PasswordCheckSchema()
strength_schema = PasswordStrengthSchema()


@bp.get("/profile")
@timing
@require_auth
@translate_errors
def get_profile(claims: AccessTokenClaims):
    user = get_auth_service().current_user(claims)
    return json_response({"data": profile_schema.dump(user)})


@bp.put("/profile")
@timing
@require_auth
@translate_errors
def update_profile(claims: AccessTokenClaims):
    """Change the caller's username and/or display name."""

    data = profile_update_schema.load(request.get_json(silent=True) or {})
    ip_address, user_agent = client_meta()
    user = get_auth_service().update_profile(
        UpdateProfileIn(subject=claims.subject, ip_address=ip_address, user_agent=user_agent, **data)
    )
    return json_response({"data": profile_schema.dump(user)})


@bp.post("/change-password")
@timing
@require_auth
@translate_errors
def change_password(claims: AccessTokenClaims):
    """Change the password and sign the user out of every session."""

    data = change_password_schema.load(request.get_json(silent=True) or {})
    ip_address, user_agent = client_meta()
    result = get_auth_service().change_password(
        ChangePasswordIn(
            subject=claims.subject,
            old_password=data["current_password"],
            new_password=data["new_password"],
            ip_address=ip_address,
            user_agent=user_agent,
        )
    )
    response = json_response({"data": revoked_schema.dump(result)})
    clear_refresh_cookie(response)
    return response


@bp.delete("/deactivate")
@timing
@require_auth
@translate_errors
def deactivate(claims: AccessTokenClaims):
    """Soft-delete the caller's account; every session is revoked."""

    ip_address, user_agent = client_meta()
    result = get_auth_service().deactivate_account(
        DeactivateIn(subject=claims.subject, ip_address=ip_address, user_agent=user_agent)
    )
    response = json_response({"data": revoked_schema.dump(result)})
    clear_refresh_cookie(response)
    return response


@bp.get("/validate/email")
@timing
@translate_errors
def validate_email():
    data = email_query_schema.load(request.args)
    available = get_auth_service().is_email_available(data["email"])
    return json_response({"data": availability_schema.dump({"available": available})})


@bp.get("/validate/username")
@timing
@translate_errors
def validate_username():
    data = username_query_schema.load(request.args)
    available = get_auth_service().is_username_available(data["username"])
    return json_response({"data": availability_schema.dump({"available": available})})


@bp.post("/validate/password")
@timing
def validate_password():
    data = password_check_schema.load(request.get_json(silent=True) or {})
    result = get_auth_service().password_strength(data["password"])
    return json_response({"data": strength_schema.dump(result)})
