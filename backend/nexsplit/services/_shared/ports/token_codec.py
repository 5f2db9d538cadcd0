from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol


@dataclass(frozen=True)
class AccessTokenClaims:
    """
    Verified claim set of an access token.

    :ivar subject: Principal e-mail (``sub`` claim).
    :ivar role: Authorization role (``role`` claim).
    :ivar issued_at: ``iat`` as an aware UTC datetime.
    :ivar expires_at: ``exp`` as an aware UTC datetime.
    """

    subject: str
    role: str
    issued_at: datetime
    expires_at: datetime


class TokenCodec(Protocol):
    """Port for minting and verifying short-lived access tokens."""

    def issue_access_token(self, subject: str, role: str) -> str: ...

    def parse_and_verify(self, token: str) -> AccessTokenClaims:
        """
        Verify signature and expiry of ``token``.

        :raises InvalidSignatureError: Signature does not match.
        :raises MalformedTokenError: Not a well-formed access token.
        :raises ExpiredTokenError: ``exp`` is not after the codec clock's "now".
        """
        ...

    def is_valid(self, token: str) -> bool: ...
