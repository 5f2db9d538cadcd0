"""
AuthService
===========

Caller-facing authentication API: sign-up, login, refresh, logout and access
token validation. Orchestrates :class:`IdentityService`, the
:class:`RefreshRotationEngine` and the audit trail; holds no state itself.
"""

from __future__ import annotations

import logging

from nexsplit.core.logger import mask_email
from nexsplit.models.audit_event import EventCategory, Severity
from nexsplit.services._shared.base import BaseService
from nexsplit.services._shared.errors import (
    InvalidCredentialsError,
    NotFoundError,
    ServiceError,
    TokenReuseDetectedError,
    TokenTheftError,
)
from nexsplit.services._shared.policies.password import is_strong, strength_message
from nexsplit.services._shared.ports import AccessTokenClaims, TokenCodec
from nexsplit.services.audit.service import AuditService
from nexsplit.services.auth.dto import (
    ChangePasswordIn,
    DeactivateIn,
    LoginIn,
    LogoutIn,
    LogoutOut,
    PasswordStrengthOut,
    RefreshIn,
    RegisterIn,
    TokenPairOut,
    UpdateProfileIn,
)
from nexsplit.services.identity.dto import (
    UserAuthIn,
    UserPasswordChangeIn,
    UserPublicOut,
    UserRegisterIn,
    UserUpdateIn,
)
from nexsplit.services.identity.service import IdentityService
from nexsplit.services.rotation.dto import IssuedTokens, Principal
from nexsplit.services.rotation.engine import RefreshRotationEngine

log = logging.getLogger(__name__)


class AuthService(BaseService):
    """
    Authentication lifecycle service.

    :param identity: User aggregate service (credentials, principals).
    :param engine: Refresh-token rotation engine.
    :param codec: Access-token codec (shared with the engine).
    :param audit: Audit trail.
    """

    def __init__(
        self,
        *,
        identity: IdentityService,
        engine: RefreshRotationEngine,
        codec: TokenCodec,
        audit: AuditService,
    ) -> None:
        self.identity = identity
        self.engine = engine
        self.codec = codec
        self.audit = audit

    # ------------------------------------------------------------------ #
    # Sign-up / login
    # ------------------------------------------------------------------ #

    def register(self, dto: RegisterIn) -> TokenPairOut:
        """Create the account and start its first token family."""
        user = self.identity.register_user(
            UserRegisterIn(
                email=dto.email,
                password=dto.password,
                username=dto.username,
                full_name=dto.full_name,
            )
        )
        self.audit.record(
            "USER_REGISTERED",
            EventCategory.USER_ACTION,
            Severity.LOW,
            user_id=user.id,
            ip_address=dto.ip_address,
            user_agent=dto.user_agent,
        )
        principal = Principal(user_id=user.id, email=user.email, role=user.role)
        issued = self.engine.issue_initial_family(principal, dto.ip_address, dto.user_agent)
        return self._pair(issued)

    def login(self, dto: LoginIn) -> TokenPairOut:
        """
        Authenticate credentials and start a new token family.

        :raises InvalidCredentialsError: If credentials are invalid.
        """
        try:
            principal = self.identity.authenticate(UserAuthIn(email=dto.email, password=dto.password))
        except InvalidCredentialsError:
            self.audit.record(
                "LOGIN_FAILED",
                EventCategory.AUTHENTICATION,
                Severity.MEDIUM,
                details=f"email={mask_email(dto.email)}",
                ip_address=dto.ip_address,
                user_agent=dto.user_agent,
            )
            raise

        issued = self.engine.issue_initial_family(principal, dto.ip_address, dto.user_agent)
        self.audit.record(
            "LOGIN_SUCCESS",
            EventCategory.AUTHENTICATION,
            Severity.LOW,
            user_id=principal.user_id,
            ip_address=dto.ip_address,
            user_agent=dto.user_agent,
        )
        return self._pair(issued)

    # ------------------------------------------------------------------ #
    # Refresh
    # ------------------------------------------------------------------ #

    def refresh(self, dto: RefreshIn) -> TokenPairOut:
        """
        Rotate the presented refresh token.

        Theft signals are audited before being re-raised; the engine has
        already revoked the family at that point.
        """
        try:
            issued = self.engine.rotate(dto.refresh_token, dto.ip_address, dto.user_agent)
        except TokenTheftError as exc:
            severity = (
                Severity.CRITICAL if isinstance(exc, TokenReuseDetectedError) else Severity.HIGH
            )
            self.audit.record(
                exc.event_type,
                EventCategory.SECURITY,
                severity,
                user_id=int(exc.user_id),
                details=f"family_id={exc.family_id}",
                ip_address=dto.ip_address,
                user_agent=dto.user_agent,
            )
            raise
        return self._pair(issued)

    # ------------------------------------------------------------------ #
    # Logout
    # ------------------------------------------------------------------ #

    def logout(self, dto: LogoutIn) -> LogoutOut:
        """
        Revoke the family of the presented refresh token, an explicit family,
        or (``all_sessions``) every family of the user.

        Unknown refresh tokens are ignored so logout stays idempotent.

        :raises NotFoundError: ``family_id`` belongs to another user.
        :raises ServiceError: Nothing identifies what to revoke.
        """
        user_id: int | None = None
        if dto.subject:
            user_id = self.identity.get_by_email(dto.subject).id

        families: set[str] = set()
        if dto.refresh_token:
            record = self.engine.lookup(dto.refresh_token)
            if record is not None:
                families.add(record.family_id)
                user_id = user_id if user_id is not None else record.user_id

        if dto.family_id:
            members = self.engine.family_members(dto.family_id)
            if members and user_id is not None and members[0].user_id != user_id:
                raise NotFoundError("TokenFamily", dto.family_id)
            families.add(dto.family_id)

        if dto.all_sessions:
            if user_id is None:
                raise ServiceError("Logging out of all sessions requires an authenticated user.")
            revoked = self.engine.revoke_all_for_user(user_id)
        elif families:
            revoked = sum(self.engine.revoke_family(family_id) for family_id in sorted(families))
        elif dto.refresh_token:
            revoked = 0
        else:
            raise ServiceError("Logout requires a refresh token or a family id.")

        self.audit.record(
            "LOGOUT_ALL" if dto.all_sessions else "LOGOUT",
            EventCategory.AUTHENTICATION,
            Severity.LOW,
            user_id=user_id,
            details=f"revoked={revoked}",
            ip_address=dto.ip_address,
            user_agent=dto.user_agent,
        )
        return LogoutOut(revoked=revoked)

    # ------------------------------------------------------------------ #
    # Access tokens & account
    # ------------------------------------------------------------------ #

    def validate_access(self, token: str) -> AccessTokenClaims:
        """
        :raises AccessTokenError: Bad signature, malformed or expired token.
        """
        return self.codec.parse_and_verify(token)

    def current_user(self, claims: AccessTokenClaims) -> UserPublicOut:
        return self._active_user(claims.subject)

    def update_profile(self, dto: UpdateProfileIn) -> UserPublicOut:
        user = self._active_user(dto.subject)
        updated = self.identity.update_profile(
            user.id, UserUpdateIn(username=dto.username, full_name=dto.full_name)
        )
        self.audit.record(
            "PROFILE_UPDATED",
            EventCategory.USER_ACTION,
            Severity.LOW,
            user_id=user.id,
            ip_address=dto.ip_address,
            user_agent=dto.user_agent,
        )
        return updated

    def deactivate_account(self, dto: DeactivateIn) -> LogoutOut:
        """Deactivate the caller's account and revoke every one of its sessions."""
        user = self._active_user(dto.subject)
        self.identity.deactivate(user.id)
        revoked = self.engine.revoke_all_for_user(user.id)
        log.info(
            "Account deactivated for %s",
            mask_email(user.email),
            extra={"event": "ACCOUNT_DEACTIVATED", "user_id": user.id},
        )
        self.audit.record(
            "ACCOUNT_DEACTIVATED",
            EventCategory.USER_ACTION,
            Severity.MEDIUM,
            user_id=user.id,
            details=f"revoked={revoked}",
            ip_address=dto.ip_address,
            user_agent=dto.user_agent,
        )
        return LogoutOut(revoked=revoked)

    def is_email_available(self, email: str) -> bool:
        return self.identity.is_email_available(email)

    def is_username_available(self, username: str) -> bool:
        return self.identity.is_username_available(username)

    def change_password(self, dto: ChangePasswordIn) -> LogoutOut:
        """Change the password, then revoke every session of the user."""
        user = self._active_user(dto.subject)
        self.identity.change_password(
            UserPasswordChangeIn(
                user_id=user.id,
                old_password=dto.old_password,
                new_password=dto.new_password,
            )
        )
        revoked = self.engine.revoke_all_for_user(user.id)
        self.audit.record(
            "PASSWORD_CHANGED",
            EventCategory.USER_ACTION,
            Severity.MEDIUM,
            user_id=user.id,
            details=f"revoked={revoked}",
            ip_address=dto.ip_address,
            user_agent=dto.user_agent,
        )
        return LogoutOut(revoked=revoked)

    @staticmethod
    def password_strength(password: str | None) -> PasswordStrengthOut:
        return PasswordStrengthOut(valid=is_strong(password), message=strength_message(password))

    def sweep_expired(self) -> int:
        return self.engine.sweep()

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    def _active_user(self, subject: str) -> UserPublicOut:
        user = self.identity.get_by_email(subject)
        if not user.is_active:
            raise NotFoundError("User", subject)
        return user

    def _pair(self, issued: IssuedTokens) -> TokenPairOut:
        access_ttl = getattr(self.codec, "access_ttl", None)
        return TokenPairOut(
            access_token=issued.access_token,
            refresh_token=issued.refresh_token,
            expires_in=int(access_ttl.total_seconds()) if access_ttl else 0,
            refresh_expires_at=issued.refresh_expires_at,
            family_id=issued.family_id,
        )
