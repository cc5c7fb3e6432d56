"""Tests for password hashing, bearer tokens and staff accounts."""

import time

import jwt
import pytest

from school_library.config import get_config
from school_library.database import (
    AuthenticationError,
    BusinessRuleError,
    DuplicateError,
    NotFoundError,
    ValidationError,
)
from school_library.database.loan_repository import LoanCreateSchema
from school_library.database.repository import generate_id
from school_library.database.user_repository import UserSearchParams, UserUpdateSchema
from school_library.models.user import UserRole
from school_library.services.security import (
    decode_access_token,
    hash_password,
    validate_password_strength,
    verify_password,
)
from school_library.services.user_service import ChangePasswordSchema, UserService


def make_token(sub: str | None, expires_in: int = 3600, secret: str | None = None) -> str:
    now = int(time.time())
    payload = {"iat": now, "exp": now + expires_in}
    if sub is not None:
        payload["sub"] = sub
    return jwt.encode(payload, secret or get_config().jwt_secret, algorithm="HS256")


class TestPasswords:
    def test_hash_and_verify(self):
        hashed = hash_password("Secret123")

        assert hashed != "Secret123"
        assert hashed.startswith("$pbkdf2-sha256$")
        assert verify_password("Secret123", hashed) is True
        assert verify_password("secret123", hashed) is False

    def test_unknown_hash_never_matches(self):
        assert verify_password("Secret123", "") is False
        assert verify_password("Secret123", "plain-text") is False

    @pytest.mark.parametrize("password", ["short1", "onlyletters", "12345678"])
    def test_weak_passwords(self, password):
        with pytest.raises(ValidationError):
            validate_password_strength(password)

    def test_strong_password(self):
        assert validate_password_strength("Biblioteca2024") == "Biblioteca2024"


class TestTokens:
    def test_decode(self):
        token = decode_access_token(make_token("user_0123456789abcdef"))
        assert token.sub == "user_0123456789abcdef"
        assert token.exp is not None

    def test_expired(self):
        with pytest.raises(AuthenticationError, match="expired"):
            decode_access_token(make_token("user_0123456789abcdef", expires_in=-60))

    def test_wrong_secret(self):
        with pytest.raises(AuthenticationError, match="Invalid token"):
            decode_access_token(
                make_token("user_0123456789abcdef", secret="another-secret-of-enough-length-xx")
            )

    def test_missing_subject(self):
        with pytest.raises(AuthenticationError):
            decode_access_token(make_token(None))

    def test_garbage(self):
        with pytest.raises(AuthenticationError):
            decode_access_token("not.a.token")


class TestUserService:
    def test_create_user(self, make_user):
        user = make_user(email="Maria.Lopez@School.edu", username="mlopez")

        assert user.id.startswith("user_")
        assert user.email == "maria.lopez@school.edu"
        assert user.role == UserRole.LIBRARIAN
        assert user.active is True
        assert not hasattr(user, "password_hash")

    def test_duplicates(self, make_user):
        make_user(email="dup@school.edu", username="dup_one")

        with pytest.raises(DuplicateError):
            make_user(email="DUP@school.edu", username="dup_two")
        with pytest.raises(DuplicateError):
            make_user(email="other@school.edu", username="dup_one")

    def test_weak_password_rejected(self, make_user):
        with pytest.raises(ValidationError):
            make_user(password="abcdefgh")

    def test_authenticate(self, session, make_user):
        user = make_user(email="auth@school.edu", password="Secret123")
        service = UserService(session)

        authenticated = service.authenticate("AUTH@school.edu", "Secret123")

        assert authenticated.id == user.id
        assert authenticated.last_login is not None
        with pytest.raises(AuthenticationError):
            service.authenticate("auth@school.edu", "Wrong1234")
        with pytest.raises(AuthenticationError):
            service.authenticate("nobody@school.edu", "Secret123")

    def test_inactive_user_cannot_authenticate(self, session, make_user):
        user = make_user(email="gone@school.edu")
        service = UserService(session)
        service.deactivate(user.id)

        with pytest.raises(AuthenticationError):
            service.authenticate("gone@school.edu", "Secret123")
        with pytest.raises(AuthenticationError):
            service.get_active_user(user.id)

    def test_get_active_user(self, session, make_user):
        user = make_user()
        service = UserService(session)

        assert service.get_active_user(user.id).id == user.id
        with pytest.raises(AuthenticationError):
            service.get_active_user(generate_id("user"))
        with pytest.raises(AuthenticationError):
            service.get_active_user("not-a-user-id")

    def test_change_password(self, session, make_user):
        user = make_user(email="pw@school.edu")
        service = UserService(session)

        with pytest.raises(ValidationError, match="Current password is incorrect"):
            service.change_password(
                user.id,
                ChangePasswordSchema(current_password="Wrong1234", new_password="NewSecret9"),
                require_current=True,
            )

        service.change_password(
            user.id,
            ChangePasswordSchema(current_password="Secret123", new_password="NewSecret9"),
            require_current=True,
        )
        assert service.authenticate("pw@school.edu", "NewSecret9").id == user.id

    def test_admin_reset_skips_current_password(self, session, make_user):
        user = make_user(email="reset@school.edu")
        service = UserService(session)

        service.change_password(user.id, ChangePasswordSchema(new_password="Reset2024"))

        assert service.authenticate("reset@school.edu", "Reset2024").id == user.id

    def test_update_and_search(self, session, make_user):
        ana = make_user(first_name="Ana", last_name="Zapata")
        make_user(first_name="Beto", last_name="Alzate", role=UserRole.ADMIN)
        service = UserService(session)

        promoted = service.update(ana.id, UserUpdateSchema(role=UserRole.ADMIN))
        assert promoted.role == UserRole.ADMIN

        admins = service.list_users(UserSearchParams(role=UserRole.ADMIN))
        assert [u.last_name for u in admins.items] == ["Alzate", "Zapata"]
        assert service.list_users(UserSearchParams(query="zapa")).total == 1

    def test_has_admin_user(self, session, make_user):
        service = UserService(session)
        assert service.has_admin_user() is False

        admin = make_user(role=UserRole.ADMIN)
        assert service.has_admin_user() is True

        service.deactivate(admin.id)
        assert service.has_admin_user() is False

    def test_delete(self, session, make_user):
        user = make_user()
        service = UserService(session)

        service.delete(user.id)

        with pytest.raises(NotFoundError):
            service.get(user.id)
        with pytest.raises(NotFoundError):
            service.delete(user.id)

    def test_delete_refused_with_loan_history(
        self, session, librarian_user, loan_service, person, resource
    ):
        loan_service.create(
            LoanCreateSchema(person_id=person.id, resource_id=resource.id),
            loaned_by=librarian_user.id,
        )
        service = UserService(session)

        with pytest.raises(BusinessRuleError, match="deactivate the user instead"):
            service.delete(librarian_user.id)

        assert service.get(librarian_user.id).active is True
        assert service.deactivate(librarian_user.id).active is False

    def test_delete_refused_for_returning_user(
        self, session, make_user, librarian_user, loan_service, person, resource
    ):
        other = make_user()
        loan = loan_service.create(
            LoanCreateSchema(person_id=person.id, resource_id=resource.id),
            loaned_by=librarian_user.id,
        )
        loan_service.return_loan(loan.id, returned_by=other.id)

        with pytest.raises(BusinessRuleError):
            UserService(session).delete(other.id)
