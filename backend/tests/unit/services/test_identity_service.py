import pytest
from nexsplit.repositories.user import UserRepository
from nexsplit.services._shared.errors import (
    ConflictError,
    InvalidCredentialsError,
    NotFoundError,
    WeakPasswordError,
)
from nexsplit.services.identity.dto import (
    UserAuthIn,
    UserPasswordChangeIn,
    UserRegisterIn,
    UserUpdateIn,
)
from nexsplit.services.identity.service import IdentityService

from tests.factories.user import DEFAULT_PASSWORD, UserFactory

STRONG = "Str0ng!pass"


class TestIdentityService:
    """Validate IdentityService behaviours for the User aggregate."""

    @pytest.fixture()
    def service(self, session) -> IdentityService:
        return IdentityService()

    @pytest.fixture()
    def repo(self, session) -> UserRepository:
        return UserRepository(session=session)

    # --------------------------------------------------------------------- #
    # Registration
    # --------------------------------------------------------------------- #

    def test_register_user_creates_new_user(self, service, repo):
        dto = UserRegisterIn(
            email="New@Example.com",
            password=STRONG,
            username="newuser",
            full_name="John Doe",
        )

        result = service.register_user(dto)

        assert result.email == "new@example.com"
        assert result.username == "newuser"
        assert result.role == "USER"
        stored = repo.get_by_email("new@example.com")
        assert stored is not None
        assert stored.verify_password(STRONG)

    def test_register_rejects_weak_password_with_hints(self, service, repo):
        dto = UserRegisterIn(email="weak@example.com", password="aaaaaaaa", username="weak")

        with pytest.raises(WeakPasswordError) as excinfo:
            service.register_user(dto)

        assert excinfo.value.reason == (
            "Include uppercase letters. Include numbers. Include special characters."
        )
        assert repo.get_by_email("weak@example.com") is None

    def test_register_user_raises_conflict_when_email_exists(self, service):
        UserFactory(email="dup@example.com")
        dto = UserRegisterIn(email="dup@example.com", password=STRONG, username="another")

        with pytest.raises(ConflictError):
            service.register_user(dto)

    def test_register_user_raises_conflict_when_username_exists(self, service):
        UserFactory(username="taken")
        dto = UserRegisterIn(email="fresh@example.com", password=STRONG, username="taken")

        with pytest.raises(ConflictError):
            service.register_user(dto)

    # --------------------------------------------------------------------- #
    # Authentication & lookup
    # --------------------------------------------------------------------- #

    def test_authenticate_returns_principal(self, service):
        user = UserFactory(email="alice@example.com", role="ADMIN")

        principal = service.authenticate(UserAuthIn(email="ALICE@example.com", password=DEFAULT_PASSWORD))

        assert principal.user_id == user.id
        assert principal.email == "alice@example.com"
        assert principal.role == "ADMIN"

    @pytest.mark.parametrize(
        ("email", "password"),
        [("alice@example.com", "wrong"), ("nobody@example.com", DEFAULT_PASSWORD)],
    )
    def test_authenticate_rejects_bad_credentials(self, service, email, password):
        UserFactory(email="alice@example.com")

        with pytest.raises(InvalidCredentialsError):
            service.authenticate(UserAuthIn(email=email, password=password))

    def test_inactive_user_cannot_authenticate(self, service):
        user = UserFactory(is_active=False)

        with pytest.raises(InvalidCredentialsError):
            service.authenticate(UserAuthIn(email=user.email, password=DEFAULT_PASSWORD))
        assert service.find_principal(user.id) is None

    def test_get_user_and_get_by_email(self, service):
        user = UserFactory()

        assert service.get_user(user.id).email == user.email
        assert service.get_by_email(user.email).id == user.id
        with pytest.raises(NotFoundError):
            service.get_user(999_999)
        with pytest.raises(NotFoundError):
            service.get_by_email("ghost@example.com")

    # --------------------------------------------------------------------- #
    # Password management
    # --------------------------------------------------------------------- #

    def test_change_password(self, service, repo):
        user = UserFactory()

        service.change_password(
            UserPasswordChangeIn(user_id=user.id, old_password=DEFAULT_PASSWORD, new_password=STRONG)
        )

        stored = repo.get(user.id)
        assert stored.verify_password(STRONG)
        assert not stored.verify_password(DEFAULT_PASSWORD)

    def test_change_password_requires_current_password(self, service):
        user = UserFactory()

        with pytest.raises(InvalidCredentialsError):
            service.change_password(
                UserPasswordChangeIn(user_id=user.id, old_password="nope", new_password=STRONG)
            )

    def test_change_password_enforces_strength(self, service):
        user = UserFactory()

        with pytest.raises(WeakPasswordError):
            service.change_password(
                UserPasswordChangeIn(
                    user_id=user.id, old_password=DEFAULT_PASSWORD, new_password="short"
                )
            )

    # --------------------------------------------------------------------- #
    # Profile & account
    # --------------------------------------------------------------------- #

    def test_update_profile_only_touches_given_fields(self, service):
        user = UserFactory(username="orig", full_name="Original")

        out = service.update_profile(user.id, UserUpdateIn(full_name="Renamed"))

        assert (out.username, out.full_name) == ("orig", "Renamed")

    def test_update_profile_username_conflict(self, service):
        UserFactory(username="taken")
        user = UserFactory()

        with pytest.raises(ConflictError):
            service.update_profile(user.id, UserUpdateIn(username="taken"))

    def test_update_profile_unknown_user(self, service):
        with pytest.raises(NotFoundError):
            service.update_profile(424242, UserUpdateIn(full_name="x"))

    def test_deactivate_is_a_soft_delete(self, service, repo):
        user = UserFactory(email="gone@example.com")

        service.deactivate(user.id)

        assert repo.get(user.id).is_active is False
        assert service.find_principal(user.id) is None
        assert service.is_email_available("gone@example.com") is False
        with pytest.raises(NotFoundError):
            service.deactivate(user.id)
