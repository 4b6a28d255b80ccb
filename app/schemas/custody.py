from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.models.custody import ItemPriority, ItemStatus, MovementAction


# ---------------------------------------------------------------------------
# TrackedItem
# ---------------------------------------------------------------------------


class TrackedItemCreate(BaseModel):
    subject: str | None = None
    description: str | None = None
    type_id: str | None = None
    project_id: str | None = None
    priority: str | None = None
    attachment_ref: str | None = None


class TrackedItemUpdate(BaseModel):
    subject: str | None = None
    description: str | None = None
    type_id: str | None = None
    project_id: str | None = None
    priority: str | None = None


class TrackedItemRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    reference_number: str
    subject: str
    description: str | None = None
    type_id: str | None = None
    project_id: str | None = None
    priority: ItemPriority
    status: ItemStatus
    created_by: UUID
    creation_date: datetime
    current_holder_id: UUID
    archive_location_id: UUID | None = None
    physical_location_note: str | None = None
    archived_at: datetime | None = None
    attachment_ref: str | None = None
    updated_at: datetime


# ---------------------------------------------------------------------------
# Movement
# ---------------------------------------------------------------------------


class MovementRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    item_id: UUID
    sequence: int
    date: datetime
    from_user_id: UUID
    to_user_id: UUID
    action: MovementAction
    notes: str | None = None
    is_read: bool
    read_at: datetime | None = None


# ---------------------------------------------------------------------------
# Transfer requests
# ---------------------------------------------------------------------------


class ForwardRequest(BaseModel):
    target_id: UUID | None = None
    notes: str | None = None


class ReturnRequest(BaseModel):
    reason: str | None = None


class ArchiveRequest(BaseModel):
    location_id: UUID | None = None
    physical_note: str | None = None
    attachment_ref: str | None = None
    notes: str | None = None


class CategoryCounts(BaseModel):
    inbox: int = 0
    processing: int = 0
    outbox: int = 0
    archived: int = 0


# ---------------------------------------------------------------------------
# ArchiveLocation
# ---------------------------------------------------------------------------


class ArchiveLocationBase(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    code: str = Field(min_length=1, max_length=40)
    location: str | None = None
    shelves_count: int = Field(default=0, ge=0)


class ArchiveLocationCreate(ArchiveLocationBase):
    pass


class ArchiveLocationRead(ArchiveLocationBase):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    is_active: bool
    created_at: datetime
