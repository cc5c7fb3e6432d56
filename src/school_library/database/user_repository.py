"""
User repository implementation for the School Library backend.

Manages staff accounts:

1. **Account Management**: CRUD with unique email and username
2. **Credentials**: Stores password hashes produced by the auth service
3. **Roles**: Lookup of administrators for the bootstrap seed
"""

from datetime import datetime

from pydantic import BaseModel, EmailStr, Field
from sqlalchemy import and_, func, or_, select

from ..database.schema import User as UserDB
from ..database.schema import UserRoleEnum
from ..database.session import safe_commit, safe_query
from ..models.user import User as UserModel
from ..models.user import UserRole
from .repository import (
    BaseRepository,
    DuplicateError,
    PaginatedResponse,
    PaginationParams,
)


class UserCreateSchema(BaseModel):
    """Schema for creating a user."""

    email: EmailStr
    username: str = Field(..., min_length=3, max_length=50, pattern=r"^[A-Za-z0-9_.-]+$")
    password: str = Field(..., min_length=8, max_length=128)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    role: UserRole = UserRole.LIBRARIAN


class UserUpdateSchema(BaseModel):
    """Schema for updating a user - all fields optional."""

    email: EmailStr | None = None
    username: str | None = Field(None, min_length=3, max_length=50, pattern=r"^[A-Za-z0-9_.-]+$")
    first_name: str | None = Field(None, min_length=1, max_length=100)
    last_name: str | None = Field(None, min_length=1, max_length=100)
    role: UserRole | None = None
    active: bool | None = None


class UserSearchParams(BaseModel):
    query: str | None = None  # Name, email or username contains
    role: UserRole | None = None
    active: bool | None = None


class UserRepository(BaseRepository[UserDB, UserCreateSchema, UserUpdateSchema, UserModel]):
    """Repository for staff accounts."""

    id_prefix = "user"

    @property
    def model_class(self):
        return UserDB

    @property
    def response_schema(self):
        return UserModel

    def _to_response_model(self, db_obj: UserDB) -> UserModel:
        """Convert database user to Pydantic model (the hash stays behind)."""
        return UserModel(
            id=db_obj.id,
            email=db_obj.email,
            username=db_obj.username,
            first_name=db_obj.first_name,
            last_name=db_obj.last_name,
            role=UserRole(db_obj.role.value),
            active=db_obj.active,
            last_login=db_obj.last_login,
            created_at=db_obj.created_at,
            updated_at=db_obj.updated_at,
        )

    def create(self, data: UserCreateSchema, password_hash: str) -> UserModel:  # type: ignore[override]
        """
        Create a user with an already hashed password.

        Raises:
            DuplicateError: If the email or username is taken
        """
        email = str(data.email).lower()
        if self.find_db_by_email(email) is not None:
            raise DuplicateError(f"User with email {email} already exists")
        if self.find_db_by_username(data.username) is not None:
            raise DuplicateError(f"User with username {data.username} already exists")

        db_user = UserDB(
            id=self._generate_id(),
            email=email,
            username=data.username,
            password_hash=password_hash,
            first_name=data.first_name,
            last_name=data.last_name,
            role=UserRoleEnum(UserRole(data.role).value),
            active=True,
        )
        self.session.add(db_user)
        safe_commit(self.session, "create user")
        self.session.refresh(db_user)
        return self._to_response_model(db_user)

    def update(self, id: str, data: UserUpdateSchema) -> UserModel | None:
        """Update a user, keeping email and username unique."""
        db_user = self.get_db_object(id)
        if db_user is None:
            return None

        changes = data.model_dump(exclude_unset=True)
        if changes.get("email"):
            changes["email"] = str(changes["email"]).lower()
            other = self.find_db_by_email(changes["email"])
            if other is not None and other.id != db_user.id:
                raise DuplicateError(f"User with email {changes['email']} already exists")
        if changes.get("username"):
            other = self.find_db_by_username(changes["username"])
            if other is not None and other.id != db_user.id:
                raise DuplicateError(f"User with username {changes['username']} already exists")
        if changes.get("role") is not None:
            changes["role"] = UserRoleEnum(UserRole(changes["role"]).value)

        for field, value in changes.items():
            if value is not None:
                setattr(db_user, field, value)

        safe_commit(self.session, "update user")
        self.session.refresh(db_user)
        return self._to_response_model(db_user)

    def find_db_by_email(self, email: str) -> UserDB | None:
        return safe_query(
            self.session,
            lambda s: s.execute(
                select(UserDB).where(func.lower(UserDB.email) == email.strip().lower())
            ).scalar_one_or_none(),
            "Failed to get user by email",
        )

    def find_db_by_username(self, username: str) -> UserDB | None:
        return safe_query(
            self.session,
            lambda s: s.execute(
                select(UserDB).where(UserDB.username == username)
            ).scalar_one_or_none(),
            "Failed to get user by username",
        )

    def find_by_email(self, email: str) -> UserModel | None:
        db_user = self.find_db_by_email(email)
        return self._to_response_model(db_user) if db_user else None

    def search(
        self,
        search_params: UserSearchParams,
        pagination: PaginationParams | None = None,
    ) -> PaginatedResponse[UserModel]:
        """Search users by free text, role and active flag."""
        filters = []

        if search_params.query:
            term = f"%{search_params.query}%"
            filters.append(
                or_(
                    UserDB.first_name.ilike(term),
                    UserDB.last_name.ilike(term),
                    UserDB.email.ilike(term),
                    UserDB.username.ilike(term),
                )
            )
        if search_params.role:
            filters.append(UserDB.role == UserRoleEnum(UserRole(search_params.role).value))
        if search_params.active is not None:
            filters.append(UserDB.active.is_(search_params.active))

        query = select(UserDB)
        if filters:
            query = query.where(and_(*filters))
        query = query.order_by(UserDB.last_name, UserDB.first_name)

        return self._paginate(query, pagination)

    def has_admin_user(self) -> bool:
        """Check whether at least one active administrator exists."""
        count = safe_query(
            self.session,
            lambda s: s.execute(
                select(func.count())
                .select_from(UserDB)
                .where(and_(UserDB.role == UserRoleEnum.ADMIN, UserDB.active.is_(True)))
            ).scalar(),
            "Failed to count administrators",
        )
        return (count or 0) > 0

    def set_password_hash(self, id: str, password_hash: str) -> None:
        db_user = self.get_db_object_or_raise(id)
        db_user.password_hash = password_hash
        safe_commit(self.session, "change user password")

    def set_active(self, id: str, active: bool) -> UserModel:
        db_user = self.get_db_object_or_raise(id)
        db_user.active = active
        safe_commit(self.session, "activate user" if active else "deactivate user")
        self.session.refresh(db_user)
        return self._to_response_model(db_user)

    def touch_last_login(self, id: str) -> None:
        db_user = self.get_db_object_or_raise(id)
        db_user.last_login = datetime.now()
        safe_commit(self.session, "record user login")
