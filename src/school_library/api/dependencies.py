"""
FastAPI dependencies: database sessions and bearer token guards.
"""

from collections.abc import Callable, Generator

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from ..database.errors import AuthenticationError, PermissionDeniedError
from ..database.session import get_db_manager
from ..models.user import User, UserRole
from ..services.security import decode_access_token
from ..services.user_service import UserService

bearer_scheme = HTTPBearer(auto_error=False)


def get_db() -> Generator[Session, None, None]:
    """
    Provide one database session per request.

    Yields:
        Session: SQLAlchemy session, closed after the response is sent
    """
    session = get_db_manager().create_session()
    try:
        yield session
    finally:
        session.close()


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> User:
    """
    Resolve the bearer token to an active user.

    Raises:
        AuthenticationError: If the token is missing, invalid or expired, or
            the user does not exist or is inactive
    """
    if credentials is None:
        raise AuthenticationError("Not authenticated")
    token = decode_access_token(credentials.credentials)
    return UserService(db).get_active_user(token.sub)


def require_roles(*roles: UserRole) -> Callable[..., User]:
    """
    Build a dependency that only lets users with one of ``roles`` through.

    ```python
    @router.delete("/{id}", dependencies=[Depends(require_roles(UserRole.ADMIN))])
    ```
    """
    allowed = {UserRole(r) for r in roles}

    def guard(user: User = Depends(get_current_user)) -> User:
        if UserRole(user.role) not in allowed:
            raise PermissionDeniedError(
                f"Role '{UserRole(user.role).value}' cannot perform this action"
            )
        return user

    return guard


require_admin = require_roles(UserRole.ADMIN)
require_staff = require_roles(UserRole.ADMIN, UserRole.LIBRARIAN)
