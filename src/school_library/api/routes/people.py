"""People routes: students and teachers who borrow resources."""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ...database.person_repository import (
    PersonCreateSchema,
    PersonSearchParams,
    PersonUpdateSchema,
)
from ...database.repository import PaginatedResponse, PaginationParams
from ...models.person import GradeCount, Person, PersonStatistics, PersonType, PersonTypeName
from ...services.person_service import PersonService
from ..dependencies import get_db, require_staff

router = APIRouter(prefix="/people", tags=["People"], dependencies=[Depends(require_staff)])


@router.post("", response_model=Person, status_code=status.HTTP_201_CREATED)
def create_person(request: PersonCreateSchema, db: Session = Depends(get_db)):
    return PersonService(db).create(request)


@router.get("", response_model=PaginatedResponse[Person])
def search_people(
    search: str | None = None,
    person_type: PersonTypeName | None = None,
    grade: str | None = None,
    document_number: str | None = None,
    active: bool | None = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
):
    return PersonService(db).search(
        PersonSearchParams(
            query=search,
            person_type=person_type,
            grade=grade,
            document_number=document_number,
            active=active,
        ),
        PaginationParams(page=page, page_size=page_size),
    )


@router.get("/active", response_model=list[Person])
def list_active_people(db: Session = Depends(get_db)):
    return PersonService(db).find_active()


@router.get("/types", response_model=list[PersonType])
def list_person_types(db: Session = Depends(get_db)):
    return PersonService(db).person_types_list()


@router.get("/statistics", response_model=PersonStatistics)
def people_statistics(db: Session = Depends(get_db)):
    return PersonService(db).statistics()


@router.get("/statistics/grades", response_model=list[GradeCount])
def count_people_by_grade(db: Session = Depends(get_db)):
    return PersonService(db).count_by_grade()


@router.get("/statistics/types/{person_type}")
def count_people_by_type(person_type: str, db: Session = Depends(get_db)) -> dict[str, int]:
    return {"count": PersonService(db).count_by_type(person_type)}


@router.get("/document/{document_number}", response_model=Person)
def find_person_by_document(document_number: str, db: Session = Depends(get_db)):
    return PersonService(db).find_by_document_number(document_number)


@router.get("/type/{person_type}", response_model=list[Person])
def find_people_by_type(person_type: str, db: Session = Depends(get_db)):
    return PersonService(db).find_by_type(person_type)


@router.get("/grade/{grade}", response_model=list[Person])
def find_people_by_grade(grade: str, db: Session = Depends(get_db)):
    return PersonService(db).find_by_grade(grade)


@router.get("/{person_id}", response_model=Person)
def get_person(person_id: str, db: Session = Depends(get_db)):
    return PersonService(db).get(person_id)


@router.put("/{person_id}", response_model=Person)
def update_person(person_id: str, request: PersonUpdateSchema, db: Session = Depends(get_db)):
    return PersonService(db).update(person_id, request)


@router.put("/{person_id}/deactivate", response_model=Person)
def deactivate_person(person_id: str, db: Session = Depends(get_db)):
    return PersonService(db).deactivate(person_id)


@router.put("/{person_id}/activate", response_model=Person)
def activate_person(person_id: str, db: Session = Depends(get_db)):
    return PersonService(db).activate(person_id)


@router.delete("/{person_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_person(person_id: str, db: Session = Depends(get_db)):
    PersonService(db).delete(person_id)
