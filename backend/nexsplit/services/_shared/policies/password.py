"""Password strength policy.

A password is *strong* when it has at least :data:`MIN_LENGTH` characters and
satisfies at least :data:`REQUIRED_CRITERIA` of the four character classes
(uppercase, lowercase, digit, special).
"""

from __future__ import annotations

import re

MIN_LENGTH = 8
REQUIRED_CRITERIA = 3
SPECIAL_CHARACTERS = "!@#$%^&*()_+-=[]{};':\"\\|,.<>/?"

TOO_SHORT_MESSAGE = f"Password must be at least {MIN_LENGTH} characters long"
STRONG_MESSAGE = "Strong password"

# (pattern, hint) in the order hints are reported; letter and digit classes are ASCII only
_CRITERIA = (
    (re.compile(r"[A-Z]"), "Include uppercase letters."),
    (re.compile(r"[a-z]"), "Include lowercase letters."),
    (re.compile(r"[0-9]"), "Include numbers."),
    (re.compile("[" + re.escape(SPECIAL_CHARACTERS) + "]"), "Include special characters."),
)


def _unmet_hints(password: str) -> list[str]:
    return [hint for pattern, hint in _CRITERIA if not pattern.search(password)]


def is_strong(password: str | None) -> bool:
    """
    Return ``True`` when ``password`` satisfies the strength policy.

    :param password: Candidate password; ``None`` is never strong.
    :type password: str | None
    :rtype: bool
    """
    if not password or len(password) < MIN_LENGTH:
        return False
    met = len(_CRITERIA) - len(_unmet_hints(password))
    return met >= REQUIRED_CRITERIA


def strength_message(password: str | None) -> str:
    """
    Describe how ``password`` measures against the policy.

    Short or missing input yields :data:`TOO_SHORT_MESSAGE`. Otherwise the
    hints for every unmet class are joined by spaces, or
    :data:`STRONG_MESSAGE` when all four are met.

    .. note::
       A password meeting three classes is strong yet still receives the hint
       for the fourth.
    """
    if not password or len(password) < MIN_LENGTH:
        return TOO_SHORT_MESSAGE
    hints = _unmet_hints(password)
    return " ".join(hints) if hints else STRONG_MESSAGE
