from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api.deps import get_current_person, get_db, require_permission
from app.models.custody import ListCategory
from app.models.person import Person
from app.schemas.common import ListResponse
from app.schemas.custody import (
    ArchiveRequest,
    CategoryCounts,
    ForwardRequest,
    MovementRead,
    ReturnRequest,
    TrackedItemCreate,
    TrackedItemRead,
    TrackedItemUpdate,
)
from app.services import custody as custody_service
from app.services.custody_state import custody_views

router = APIRouter(prefix="/custody", tags=["custody"])


# ------------------------------------------------------------------
# Tracked items
# ------------------------------------------------------------------


@router.post(
    "/items",
    response_model=TrackedItemRead,
    status_code=status.HTTP_201_CREATED,
)
def create_item(
    payload: TrackedItemCreate,
    person: Person = Depends(require_permission("create")),
    db: Session = Depends(get_db),
):
    return custody_service.custody_transfers.create_item(db, payload, person.id)


@router.get("/items", response_model=ListResponse[TrackedItemRead])
def list_items(
    status: str | None = Query(default=None, pattern="^(active|archived)$"),
    priority: str | None = Query(
        default=None, pattern="^(normal|urgent|top_priority)$"
    ),
    created_by: str | None = None,
    holder_id: str | None = None,
    order_by: str = Query(default="creation_date"),
    order_dir: str = Query(default="desc", pattern="^(asc|desc)$"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    person: Person = Depends(get_current_person),
    db: Session = Depends(get_db),
):
    return custody_service.tracked_items.list_response(
        db, status, priority, created_by, holder_id, order_by, order_dir, limit, offset
    )


@router.get("/items/by-reference/{reference_number}", response_model=TrackedItemRead)
def get_item_by_reference(
    reference_number: str,
    person: Person = Depends(get_current_person),
    db: Session = Depends(get_db),
):
    return custody_service.tracked_items.get_by_reference(db, reference_number)


@router.get("/items/{item_id}", response_model=TrackedItemRead)
def get_item(
    item_id: str,
    person: Person = Depends(get_current_person),
    db: Session = Depends(get_db),
):
    return custody_service.tracked_items.get(db, item_id)


@router.patch("/items/{item_id}", response_model=TrackedItemRead)
def update_item(
    item_id: str,
    payload: TrackedItemUpdate,
    person: Person = Depends(require_permission("update")),
    db: Session = Depends(get_db),
):
    return custody_service.custody_transfers.update_item(
        db, item_id, person.id, payload
    )


@router.get("/items/{item_id}/history", response_model=list[MovementRead])
def item_history(
    item_id: str,
    person: Person = Depends(get_current_person),
    db: Session = Depends(get_db),
):
    return custody_service.tracked_items.history(db, item_id)


# ------------------------------------------------------------------
# Transfers
# ------------------------------------------------------------------


@router.post("/items/{item_id}/receive", response_model=MovementRead)
def receive_item(
    item_id: str,
    person: Person = Depends(require_permission("update")),
    db: Session = Depends(get_db),
):
    return custody_service.custody_transfers.receive(db, item_id, person.id)


@router.post("/items/{item_id}/forward", response_model=MovementRead)
def forward_item(
    item_id: str,
    payload: ForwardRequest,
    person: Person = Depends(require_permission("update")),
    db: Session = Depends(get_db),
):
    return custody_service.custody_transfers.forward(
        db, item_id, person.id, payload.target_id, payload.notes
    )


@router.post("/items/{item_id}/return", response_model=MovementRead)
def return_item(
    item_id: str,
    payload: ReturnRequest,
    person: Person = Depends(require_permission("update")),
    db: Session = Depends(get_db),
):
    return custody_service.custody_transfers.return_item(
        db, item_id, person.id, payload.reason
    )


@router.post("/items/{item_id}/archive", response_model=TrackedItemRead)
def archive_item(
    item_id: str,
    payload: ArchiveRequest,
    person: Person = Depends(require_permission("update")),
    db: Session = Depends(get_db),
):
    return custody_service.custody_transfers.archive(
        db,
        item_id,
        person.id,
        payload.location_id,
        physical_note=payload.physical_note,
        attachment_ref=payload.attachment_ref,
        notes=payload.notes,
    )


@router.post("/movements/{movement_id}/acknowledge", response_model=MovementRead)
def acknowledge_movement(
    movement_id: str,
    person: Person = Depends(get_current_person),
    db: Session = Depends(get_db),
):
    return custody_service.custody_transfers.acknowledge(db, movement_id, person.id)


# ------------------------------------------------------------------
# Per-person views
# ------------------------------------------------------------------


@router.get("/views/counts", response_model=CategoryCounts)
def view_counts(
    person: Person = Depends(get_current_person),
    db: Session = Depends(get_db),
):
    return custody_views.counts_for(db, person.id)


@router.get("/views/{category}", response_model=ListResponse[TrackedItemRead])
def view_items(
    category: ListCategory,
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    person: Person = Depends(get_current_person),
    db: Session = Depends(get_db),
):
    items = custody_views.list_for(db, person.id, category, limit, offset)
    return {"items": items, "count": len(items), "limit": limit, "offset": offset}
