from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta


@dataclass(frozen=True, slots=True)
class Principal:
    """
    Identity the access token is minted for.

    :param user_id: Owner of the refresh-token family.
    :type user_id: int
    :param email: Subject of the access token.
    :type email: str
    :param role: Authorization role claim.
    :type role: str
    """

    user_id: int
    email: str
    role: str


@dataclass(frozen=True, slots=True)
class RotationPolicy:
    """
    Tunable thresholds of the rotation engine.

    :param refresh_ttl: Lifetime of each refresh token.
    :param burst_threshold: Tokens a family may mint inside ``burst_window``
        before the family is revoked.
    :param burst_window: Sliding window of the burst heuristic.
    :param max_user_agents: Distinct user agents tolerated among active tokens.
    :param max_active_tokens: Active tokens tolerated in one family.
    """

    refresh_ttl: timedelta = timedelta(days=7)
    burst_threshold: int = 5
    burst_window: timedelta = timedelta(seconds=60)
    max_user_agents: int = 1
    max_active_tokens: int = 1


@dataclass(frozen=True, slots=True)
class IssuedTokens:
    """
    Token pair handed to the caller.

    :param access_token: Signed access JWT.
    :param refresh_token: Opaque refresh token (only its hash is stored).
    :param family_id: Family the refresh token belongs to.
    :param user_id: Owner of the family.
    :param refresh_expires_at: Expiry of the refresh token.
    """

    access_token: str
    refresh_token: str
    family_id: str
    user_id: int
    refresh_expires_at: datetime
