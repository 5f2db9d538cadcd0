"""Authentication endpoints using the service layer."""

from __future__ import annotations

from datetime import timedelta
from typing import Any

from flask import Blueprint, Response, current_app, request

from nexsplit.api.deps import (
    client_meta,
    current_claims,
    json_response,
    require_auth,
    timing,
    translate_errors,
)
from nexsplit.core.container import get_auth_service
from nexsplit.core.errors import APIError
from nexsplit.schemas import (
    LoginSchema,
    LogoutResponseSchema,
    LogoutSchema,
    PasswordCheckSchema,
    PasswordStrengthSchema,
    RefreshSchema,
    RegisterSchema,
    TokenResponseSchema,
    WhoAmISchema,
)
from nexsplit.services._shared.ports import AccessTokenClaims
from nexsplit.services.auth.dto import LoginIn, LogoutIn, RefreshIn, RegisterIn, TokenPairOut

bp = Blueprint("auth", __name__)

register_schema = RegisterSchema()
login_schema = LoginSchema()
refresh_schema = RefreshSchema()
logout_schema = LogoutSchema()
password_check_schema = PasswordCheckSchema()
token_schema = TokenResponseSchema()
whoami_schema = WhoAmISchema()
logout_out_schema = LogoutResponseSchema()
strength_schema = PasswordStrengthSchema()

REFRESH_COOKIE_MAX_AGE = timedelta(days=7)


def _json_body() -> dict[str, Any]:
    return request.get_json(silent=True) or {}


def _cookie_name() -> str:
    return str(current_app.config.get("REFRESH_COOKIE_NAME", "refresh_token"))


def _set_refresh_cookie(response: Response, token: str) -> None:
    cfg = current_app.config
    response.set_cookie(
        _cookie_name(),
        token,
        max_age=int(REFRESH_COOKIE_MAX_AGE.total_seconds()),
        httponly=True,
        secure=bool(cfg.get("REFRESH_COOKIE_SECURE", True)),
        samesite=cfg.get("REFRESH_COOKIE_SAMESITE", "Strict"),
        path=cfg.get("REFRESH_COOKIE_PATH", "/"),
    )


def clear_refresh_cookie(response: Response) -> None:
    cfg = current_app.config
    response.delete_cookie(
        _cookie_name(),
        path=cfg.get("REFRESH_COOKIE_PATH", "/"),
        httponly=True,
        secure=bool(cfg.get("REFRESH_COOKIE_SECURE", True)),
        samesite=cfg.get("REFRESH_COOKIE_SAMESITE", "Strict"),
    )


def _token_response(pair: TokenPairOut, *, status: int = 200, include_refresh: bool = True) -> Response:
    body = token_schema.dump(pair)
    if not include_refresh:
        body.pop("refresh_token", None)
    response = json_response({"data": body}, status=status)
    _set_refresh_cookie(response, pair.refresh_token)
    return response


@bp.post("/register")
@timing
@translate_errors
def register():
    """Create an account and return its first token pair."""

    data = register_schema.load(_json_body())
    ip_address, user_agent = client_meta()
    pair = get_auth_service().register(
        RegisterIn(**data, ip_address=ip_address, user_agent=user_agent)
    )
    return _token_response(pair, status=201)


@bp.post("/login")
@timing
@translate_errors
def login():
    """Authenticate credentials and start a new session."""

    data = login_schema.load(_json_body())
    ip_address, user_agent = client_meta()
    pair = get_auth_service().login(LoginIn(**data, ip_address=ip_address, user_agent=user_agent))
    return _token_response(pair)


@bp.post("/refresh")
@timing
@translate_errors
def refresh():
    """Rotate the refresh token from the JSON body or, failing that, the cookie.

    The rotated refresh token is echoed in the body only when the caller sent
    it in the body.
    """

    data = refresh_schema.load(_json_body())
    from_body = data["refresh_token"] is not None
    presented = data["refresh_token"] if from_body else request.cookies.get(_cookie_name())
    if not presented:
        raise APIError("Refresh token is required", status_code=400, code="bad_request")

    ip_address, user_agent = client_meta()
    pair = get_auth_service().refresh(
        RefreshIn(refresh_token=presented, ip_address=ip_address, user_agent=user_agent)
    )
    return _token_response(pair, include_refresh=from_body)


@bp.post("/logout")
@timing
@translate_errors
def logout():
    """Revoke the current session, an explicit family, or every session.

    ``all_sessions`` and ``family_id`` require a bearer access token.
    """

    data = logout_schema.load(_json_body())
    claims = current_claims(optional=not (data["all_sessions"] or data["family_id"]))
    ip_address, user_agent = client_meta()
    result = get_auth_service().logout(
        LogoutIn(
            refresh_token=data["refresh_token"] or request.cookies.get(_cookie_name()),
            family_id=data["family_id"],
            all_sessions=data["all_sessions"],
            subject=claims.subject if claims else None,
            ip_address=ip_address,
            user_agent=user_agent,
        )
    )
    response = json_response({"data": logout_out_schema.dump(result)})
    clear_refresh_cookie(response)
    return response


@bp.get("/me")
@timing
@require_auth
@translate_errors
def me(claims: AccessTokenClaims):
    """Return the profile of the access token's subject."""

    user = get_auth_service().current_user(claims)
    return json_response({"data": whoami_schema.dump(user)})


@bp.post("/validate-password")
@timing
def validate_password():
    """Report whether a candidate password satisfies the strength policy."""

    data = password_check_schema.load(_json_body())
    result = get_auth_service().password_strength(data["password"])
    return json_response({"data": strength_schema.dump(result)})
