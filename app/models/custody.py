import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
    Text,
    UniqueConstraint,
    event,
    inspect,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db import Base
from app.errors import InvalidSequence


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class ItemPriority(enum.Enum):
    normal = "normal"
    urgent = "urgent"
    top_priority = "top_priority"


class ItemStatus(enum.Enum):
    active = "active"
    archived = "archived"


class MovementAction(enum.Enum):
    created = "created"
    received = "received"
    forwarded = "forwarded"
    returned = "returned"
    archived = "archived"


class ViewCategory(enum.Enum):
    inbox = "inbox"
    processing = "processing"
    outbox = "outbox"
    archived = "archived"
    hidden = "hidden"


class ListCategory(enum.Enum):
    inbox = "inbox"
    processing = "processing"
    outbox = "outbox"
    archived = "archived"
    all = "all"


# ---------------------------------------------------------------------------
# Archive locations
# ---------------------------------------------------------------------------


class ArchiveLocation(Base):
    __tablename__ = "archive_locations"
    __table_args__ = (UniqueConstraint("code", name="uq_archive_locations_code"),)

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    code: Mapped[str] = mapped_column(String(40), nullable=False)
    location: Mapped[str | None] = mapped_column(Text)
    shelves_count: Mapped[int] = mapped_column(Integer, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )


# ---------------------------------------------------------------------------
# Tracked items
# ---------------------------------------------------------------------------


class ReferenceCounter(Base):
    __tablename__ = "reference_counters"
    __table_args__ = (
        UniqueConstraint("prefix", "year", name="uq_reference_counters_prefix_year"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    prefix: Mapped[str] = mapped_column(String(20), nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    last_seq: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class TrackedItem(Base):
    __tablename__ = "tracked_items"
    __table_args__ = (
        UniqueConstraint("reference_number", name="uq_tracked_items_reference"),
        Index("ix_tracked_items_current_holder_id", "current_holder_id"),
        Index("ix_tracked_items_created_by", "created_by"),
        Index("ix_tracked_items_status", "status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    reference_number: Mapped[str] = mapped_column(String(40), nullable=False)
    subject: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    type_id: Mapped[str | None] = mapped_column(String(64))
    project_id: Mapped[str | None] = mapped_column(String(64))
    priority: Mapped[ItemPriority] = mapped_column(
        Enum(ItemPriority), default=ItemPriority.normal
    )
    status: Mapped[ItemStatus] = mapped_column(
        Enum(ItemStatus), default=ItemStatus.active
    )

    created_by: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("people.id"), nullable=False
    )
    creation_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    current_holder_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("people.id"), nullable=False
    )

    # Set once by archiving
    archive_location_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("archive_locations.id")
    )
    physical_location_note: Mapped[str | None] = mapped_column(Text)
    archived_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    attachment_ref: Mapped[str | None] = mapped_column(String(1024))

    version: Mapped[int] = mapped_column(Integer, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __mapper_args__ = {"version_id_col": version}

    creator = relationship("Person", foreign_keys=[created_by])
    holder = relationship("Person", foreign_keys=[current_holder_id])
    archive_location = relationship("ArchiveLocation")
    movements = relationship(
        "Movement",
        order_by="Movement.sequence",
        viewonly=True,
    )

    @property
    def is_archived(self) -> bool:
        return self.status == ItemStatus.archived


# ---------------------------------------------------------------------------
# Movement ledger (append-only; only the acknowledgement columns change)
# ---------------------------------------------------------------------------


class Movement(Base):
    __tablename__ = "custody_movements"
    __table_args__ = (
        UniqueConstraint("item_id", "sequence", name="uq_custody_movements_sequence"),
        Index("ix_custody_movements_item_date", "item_id", "date"),
        Index("ix_custody_movements_from_user_id", "from_user_id"),
        Index("ix_custody_movements_to_user_id", "to_user_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    item_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("tracked_items.id"), nullable=False
    )
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    from_user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("people.id"), nullable=False
    )
    to_user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("people.id"), nullable=False
    )
    action: Mapped[MovementAction] = mapped_column(
        Enum(MovementAction), nullable=False
    )
    notes: Mapped[str | None] = mapped_column(Text)
    is_read: Mapped[bool] = mapped_column(Boolean, default=False)
    read_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    item = relationship("TrackedItem")
    sender = relationship("Person", foreign_keys=[from_user_id])
    recipient = relationship("Person", foreign_keys=[to_user_id])


ACKNOWLEDGEMENT_COLUMNS = frozenset({"is_read", "read_at"})


@event.listens_for(Movement, "before_update")
def _reject_movement_rewrite(mapper, connection, target: Movement) -> None:
    state = inspect(target)
    for attr in mapper.column_attrs:
        if attr.key in ACKNOWLEDGEMENT_COLUMNS:
            continue
        if state.attrs[attr.key].history.has_changes():
            raise InvalidSequence(
                f"Ledger entries are immutable; cannot change '{attr.key}'",
                item_id=target.item_id,
                action="rewrite",
            )


@event.listens_for(Movement, "before_delete")
def _reject_movement_delete(mapper, connection, target: Movement) -> None:
    raise InvalidSequence(
        "Ledger entries cannot be deleted",
        item_id=target.item_id,
        action="delete",
    )


# ---------------------------------------------------------------------------
# Activity log (audit sink)
# ---------------------------------------------------------------------------


class ActivityLog(Base):
    __tablename__ = "activity_logs"
    __table_args__ = (
        Index("ix_activity_logs_entity_name", "entity_name"),
        Index("ix_activity_logs_created_at", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    action_type: Mapped[str] = mapped_column(String(20), nullable=False)
    event_type: Mapped[str] = mapped_column(String(100), nullable=False)
    entity_type: Mapped[str] = mapped_column(String(80), nullable=False)
    entity_id: Mapped[str] = mapped_column(String(36), nullable=False)
    entity_name: Mapped[str | None] = mapped_column(String(255))
    actor_id: Mapped[str | None] = mapped_column(String(36))
    actor_name: Mapped[str | None] = mapped_column(String(255))
    payload: Mapped[dict | None] = mapped_column(JSON)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
