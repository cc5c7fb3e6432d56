"""User management and credential checks."""

import logging

from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ..database.errors import (
    AuthenticationError,
    BusinessRuleError,
    NotFoundError,
    ValidationError,
)
from ..database.loan_repository import LoanRepository
from ..database.repository import PaginatedResponse, PaginationParams
from ..database.user_repository import (
    UserCreateSchema,
    UserRepository,
    UserSearchParams,
    UserUpdateSchema,
)
from ..models.user import User
from ..observability import traced
from .security import hash_password, validate_password_strength, verify_password

logger = logging.getLogger(__name__)


class ChangePasswordSchema(BaseModel):
    current_password: str | None = None
    new_password: str = Field(..., min_length=8, max_length=128)


class UserService:
    """Staff accounts: CRUD, activation and password handling."""

    def __init__(self, session: Session):
        self.session = session
        self.users = UserRepository(session)

    @traced("users.create")
    def create(self, data: UserCreateSchema) -> User:
        """
        Create a staff account.

        Raises:
            ValidationError: If the password is too weak
            DuplicateError: If the email or username is taken
        """
        validate_password_strength(data.password)
        user = self.users.create(data, password_hash=hash_password(data.password))
        logger.info("User %s created with role %s", user.id, user.role)
        return user

    def get(self, user_id: str) -> User:
        return self.users.get_or_raise(user_id)

    def list_users(
        self, search_params: UserSearchParams, pagination: PaginationParams | None = None
    ) -> PaginatedResponse[User]:
        return self.users.search(search_params, pagination)

    def update(self, user_id: str, data: UserUpdateSchema) -> User:
        user = self.users.update(user_id, data)
        if user is None:
            raise NotFoundError(f"User {user_id} not found")
        return user

    @traced("users.change_password")
    def change_password(
        self, user_id: str, data: ChangePasswordSchema, require_current: bool = False
    ) -> None:
        """
        Replace a user's password.

        Args:
            require_current: Check ``current_password`` first (self-service changes)

        Raises:
            ValidationError: If the current password does not match
        """
        db_user = self.users.get_db_object_or_raise(user_id)
        if require_current and not verify_password(
            data.current_password or "", db_user.password_hash
        ):
            raise ValidationError("Current password is incorrect")
        validate_password_strength(data.new_password)
        self.users.set_password_hash(user_id, hash_password(data.new_password))
        logger.info("Password changed for user %s", user_id)

    def deactivate(self, user_id: str) -> User:
        user = self.users.set_active(user_id, False)
        logger.info("User %s deactivated", user_id)
        return user

    def activate(self, user_id: str) -> User:
        user = self.users.set_active(user_id, True)
        logger.info("User %s activated", user_id)
        return user

    def delete(self, user_id: str) -> None:
        """
        Remove a staff account that never handled a loan.

        Raises:
            NotFoundError: If the user does not exist
            BusinessRuleError: If loans reference the user
        """
        user = self.users.get_or_raise(user_id)
        handled = LoanRepository(self.session).count_handled_by(user_id)
        if handled:
            raise BusinessRuleError(
                f"{user.email} has loan history ({handled} loan(s)); deactivate the user instead"
            )
        if not self.users.delete(user_id):
            raise NotFoundError(f"User {user_id} not found")
        logger.info("User %s deleted", user_id)

    def has_admin_user(self) -> bool:
        return self.users.has_admin_user()

    def get_active_user(self, user_id: str) -> User:
        """
        Resolve a token subject to an active user.

        Raises:
            AuthenticationError: If the user does not exist or is inactive
        """
        try:
            db_user = self.users.get_db_object(user_id)
        except ValidationError as e:
            raise AuthenticationError("Invalid token subject") from e
        if db_user is None or not db_user.active:
            raise AuthenticationError("User not found or inactive")
        return self.users._to_response_model(db_user)

    @traced("users.authenticate")
    def authenticate(self, email: str, password: str) -> User:
        """
        Check credentials and record the login.

        Raises:
            AuthenticationError: On unknown email, inactive account or wrong password
        """
        db_user = self.users.find_db_by_email(email)
        if db_user is None or not db_user.active:
            raise AuthenticationError("Invalid credentials")
        if not verify_password(password, db_user.password_hash):
            logger.warning("Failed login attempt for %s", email)
            raise AuthenticationError("Invalid credentials")

        self.users.touch_last_login(db_user.id)
        self.session.refresh(db_user)
        return self.users._to_response_model(db_user)
