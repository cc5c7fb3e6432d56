"""Pre-flight lending checks used by the loan form."""

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ...models.loan import (
    CanBorrowResult,
    LoanResourceAvailability,
    LoanValidationResult,
    MaxQuantityResult,
)
from ...services.loan_service import LoanService
from ..dependencies import get_db, require_staff

router = APIRouter(prefix="/can-borrow", tags=["Loans"], dependencies=[Depends(require_staff)])


class LoanValidationRequest(BaseModel):
    person_id: str
    resource_id: str
    quantity: int = 1


@router.get("/person/{person_id}", response_model=CanBorrowResult)
def can_person_borrow(person_id: str, db: Session = Depends(get_db)):
    return LoanService(db).can_person_borrow(person_id)


@router.get("/resource/{resource_id}", response_model=LoanResourceAvailability)
def resource_availability(resource_id: str, db: Session = Depends(get_db)):
    return LoanService(db).resource_availability(resource_id)


@router.get("/max-quantity", response_model=MaxQuantityResult)
def max_quantity(person_id: str, resource_id: str, db: Session = Depends(get_db)):
    return LoanService(db).max_quantity(person_id, resource_id)


@router.get("/limits")
def loan_limits(db: Session = Depends(get_db)) -> dict[str, int]:
    return LoanService(db).loan_limits()


@router.post("/validate", response_model=LoanValidationResult)
def validate_loan(request: LoanValidationRequest, db: Session = Depends(get_db)):
    """Collect every error and warning a loan with these values would hit."""
    return LoanService(db).validate(request.person_id, request.resource_id, request.quantity)
