"""Tests for the User model."""

from __future__ import annotations

import pytest
from nexsplit.models.user import User
from sqlalchemy.exc import IntegrityError


class TestUser:
    def test_password_hashing(self, session):
        u = User(email="Test@Example.com", username="tester")
        u.password = "secret123"
        session.add(u)
        session.flush()
        assert u.verify_password("secret123") is True
        assert u.verify_password("wrong") is False

    def test_password_is_write_only(self):
        u = User(email="a@example.com", username="u1")
        u.password = "x"
        with pytest.raises(AttributeError):
            _ = u.password

    def test_empty_password_rejected(self):
        u = User(email="a@example.com", username="u1")
        with pytest.raises(ValueError):
            u.password = ""

    def test_defaults(self, session):
        u = User(email="d@example.com", username="defaults")
        u.password = "pw"
        session.add(u)
        session.flush()
        assert u.role == "USER"
        assert u.is_active is True

    def test_email_normalized_and_unique(self, session):
        u1 = User(email=" Alice@Example.com ", username="alice")
        u1.password = "pw"
        session.add(u1)
        session.flush()
        assert u1.email == "alice@example.com"

        u2 = User(email="alice@example.com", username="alice2")
        u2.password = "pw"
        session.add(u2)
        with pytest.raises(IntegrityError):
            session.flush()

    def test_malformed_email_rejected(self):
        with pytest.raises(ValueError):
            User(email="not-an-email", username="x")
