"""Tests for the password strength policy."""

from __future__ import annotations

import pytest
from nexsplit.services._shared.policies.password import (
    STRONG_MESSAGE,
    TOO_SHORT_MESSAGE,
    is_strong,
    strength_message,
)


class TestIsStrong:
    @pytest.mark.parametrize(
        "password",
        ["Ab1!aaaa", "Abcdefg1", "abcdef1!", "ABCDEF1!", "Abcdefg!", "Aa1!" * 10],
    )
    def test_three_or_more_classes_are_strong(self, password):
        assert is_strong(password) is True

    @pytest.mark.parametrize(
        "password",
        [None, "", "Ab1!", "Ab1!aaa", "aaaaaaaa", "abcdefg1", "ABCDEFGH", "12345678!"],
    )
    def test_short_or_two_classes_are_weak(self, password):
        assert is_strong(password) is False

    @pytest.mark.parametrize("password", ["Éclair12", "ÄÖÜ1111a", "ÀÉÎõü!!!"])
    def test_non_ascii_letters_do_not_count(self, password):
        assert is_strong(password) is False

    def test_non_ascii_digits_do_not_count(self):
        # Arabic-Indic digits
        assert strength_message("Abcdefg\u0661") == "Include numbers. Include special characters."


class TestStrengthMessage:
    def test_short_password_reports_length(self):
        assert strength_message("Ab1!") == TOO_SHORT_MESSAGE
        assert strength_message(None) == TOO_SHORT_MESSAGE
        assert TOO_SHORT_MESSAGE == "Password must be at least 8 characters long"

    def test_all_classes_met(self):
        assert strength_message("Ab1!aaaa") == STRONG_MESSAGE == "Strong password"

    def test_hints_follow_fixed_order(self):
        assert strength_message("aaaaaaaa") == (
            "Include uppercase letters. Include numbers. Include special characters."
        )

    def test_strong_password_still_gets_fourth_hint(self):
        assert is_strong("Abcdefg1") is True
        assert strength_message("Abcdefg1") == "Include special characters."
