"""Staff account routes (administrators only)."""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ...database.repository import PaginatedResponse, PaginationParams
from ...database.user_repository import UserCreateSchema, UserSearchParams, UserUpdateSchema
from ...models.user import User, UserRole
from ...services.user_service import ChangePasswordSchema, UserService
from ..dependencies import get_db, require_admin

router = APIRouter(prefix="/users", tags=["Users"], dependencies=[Depends(require_admin)])


@router.post("", response_model=User, status_code=status.HTTP_201_CREATED)
def create_user(request: UserCreateSchema, db: Session = Depends(get_db)):
    return UserService(db).create(request)


@router.get("", response_model=PaginatedResponse[User])
def list_users(
    search: str | None = None,
    role: UserRole | None = None,
    active: bool | None = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
):
    """Paginated users filtered by name/email/username, role and active flag."""
    return UserService(db).list_users(
        UserSearchParams(query=search, role=role, active=active),
        PaginationParams(page=page, page_size=page_size),
    )


@router.get("/has-admin")
def has_admin_user(db: Session = Depends(get_db)) -> dict[str, bool]:
    return {"has_admin": UserService(db).has_admin_user()}


@router.get("/{user_id}", response_model=User)
def get_user(user_id: str, db: Session = Depends(get_db)):
    return UserService(db).get(user_id)


@router.put("/{user_id}", response_model=User)
def update_user(user_id: str, request: UserUpdateSchema, db: Session = Depends(get_db)):
    return UserService(db).update(user_id, request)


@router.put("/{user_id}/password", status_code=status.HTTP_204_NO_CONTENT)
def change_user_password(
    user_id: str, request: ChangePasswordSchema, db: Session = Depends(get_db)
):
    """Reset another user's password; the current password is not checked."""
    UserService(db).change_password(user_id, request)


@router.put("/{user_id}/deactivate", response_model=User)
def deactivate_user(user_id: str, db: Session = Depends(get_db)):
    return UserService(db).deactivate(user_id)


@router.put("/{user_id}/activate", response_model=User)
def activate_user(user_id: str, db: Session = Depends(get_db)):
    return UserService(db).activate(user_id)


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_user(user_id: str, db: Session = Depends(get_db)):
    UserService(db).delete(user_id)
