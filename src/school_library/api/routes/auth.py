"""Routes for the authenticated user's own account."""

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ...models.user import User
from ...services.user_service import ChangePasswordSchema, UserService
from ..dependencies import get_current_user, get_db

router = APIRouter(prefix="/auth", tags=["Auth"])


@router.get("/me", response_model=User)
def read_current_user(user: User = Depends(get_current_user)):
    """The user the bearer token belongs to."""
    return user


@router.post("/change-password", status_code=status.HTTP_204_NO_CONTENT)
def change_own_password(
    request: ChangePasswordSchema,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Change the current user's password; the current password is required."""
    UserService(db).change_password(user.id, request, require_current=True)
