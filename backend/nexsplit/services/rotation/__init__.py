from .dto import IssuedTokens, Principal, RotationPolicy
from .engine import PrincipalLookup, RefreshRotationEngine

__all__ = [
    "IssuedTokens",
    "Principal",
    "PrincipalLookup",
    "RefreshRotationEngine",
    "RotationPolicy",
]
