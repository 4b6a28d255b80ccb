from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api.deps import get_current_person, get_db, require_permission
from app.models.person import Person
from app.schemas.common import ListResponse
from app.schemas.custody import ArchiveLocationCreate, ArchiveLocationRead
from app.services.archive_location import archive_locations

router = APIRouter(prefix="/custody/archive-locations", tags=["custody-archive"])


@router.post(
    "",
    response_model=ArchiveLocationRead,
    status_code=status.HTTP_201_CREATED,
)
def create_archive_location(
    payload: ArchiveLocationCreate,
    person: Person = Depends(require_permission("create")),
    db: Session = Depends(get_db),
):
    return archive_locations.create(db, payload)


@router.get("", response_model=ListResponse[ArchiveLocationRead])
def list_archive_locations(
    is_active: bool | None = None,
    order_by: str = Query(default="code"),
    order_dir: str = Query(default="asc", pattern="^(asc|desc)$"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    person: Person = Depends(get_current_person),
    db: Session = Depends(get_db),
):
    return archive_locations.list_response(
        db, is_active, order_by, order_dir, limit, offset
    )


@router.get("/{location_id}", response_model=ArchiveLocationRead)
def get_archive_location(
    location_id: str,
    person: Person = Depends(get_current_person),
    db: Session = Depends(get_db),
):
    return archive_locations.get(db, location_id)
