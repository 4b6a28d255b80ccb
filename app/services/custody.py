"""Tracked item store and custody transfer operations.

Every mutator runs as one transaction scoped to a single item: the item row
is locked, the holder is re-read from it, the ledger entry is appended and
the holder updated, then the transaction commits. Audit events go out after
the commit and never affect the outcome.
"""

import functools
import logging
import uuid
from datetime import datetime, timezone

from prometheus_client import Counter
from sqlalchemy import select, text
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from app.config import settings
from app.errors import (
    AlreadyArchived,
    ConcurrentUpdate,
    CustodyError,
    NoReturnTarget,
    NotAuthorized,
    NotFound,
    ValidationError,
)
from app.models.custody import (
    ItemPriority,
    ItemStatus,
    Movement,
    MovementAction,
    ReferenceCounter,
    TrackedItem,
)
from app.models.person import Person
from app.schemas.custody import TrackedItemCreate, TrackedItemUpdate
from app.services.archive_location import archive_locations
from app.services.common import apply_ordering, apply_pagination, coerce_uuid
from app.services.custody_ledger import movement_ledger
from app.services.directory import user_directory
from app.services.event import EventType, publish_event
from app.services.response import ListResponseMixin

logger = logging.getLogger(__name__)

CUSTODY_OPERATIONS = Counter(
    "custody_operations_total",
    "Custody operations by outcome",
    ["operation", "outcome"],
)

_VALID_PRIORITIES = {e.value for e in ItemPriority}
_EDITABLE_FIELDS = ("subject", "description", "type_id", "project_id", "priority")


def _observed(operation: str):
    """Count outcomes and release the item lock when an operation is refused."""

    def decorator(func):
        @functools.wraps(func)
        def wrapper(db: Session, *args, **kwargs):
            try:
                result = func(db, *args, **kwargs)
            except CustodyError as exc:
                db.rollback()
                CUSTODY_OPERATIONS.labels(operation, exc.code).inc()
                logger.info("Custody %s refused: %s %s", operation, exc.code, exc)
                raise
            CUSTODY_OPERATIONS.labels(operation, "ok").inc()
            return result

        return wrapper

    return decorator


def _parse_priority(
    value, item_id=None, actor_id=None, action="create"
) -> ItemPriority:
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationError(
            "Priority is required", item_id=item_id, actor_id=actor_id, action=action
        )
    if isinstance(value, ItemPriority):
        return value
    if value not in _VALID_PRIORITIES:
        raise ValidationError(
            f"Invalid priority. Allowed: {sorted(_VALID_PRIORITIES)}",
            item_id=item_id,
            actor_id=actor_id,
            action=action,
        )
    return ItemPriority(value)


def _require_subject(value, item_id=None, actor_id=None, action="create") -> str:
    if value is None or not str(value).strip():
        raise ValidationError(
            "Subject is required", item_id=item_id, actor_id=actor_id, action=action
        )
    return str(value).strip()


def _next_reference_number(db: Session, prefix: str, year: int) -> str:
    stmt = (
        select(ReferenceCounter)
        .where(ReferenceCounter.prefix == prefix, ReferenceCounter.year == year)
        .with_for_update()
    )
    counter = db.scalars(stmt).first()
    if counter is None:
        counter = ReferenceCounter(prefix=prefix, year=year, last_seq=0)
        db.add(counter)
    counter.last_seq += 1
    db.flush()
    return f"{prefix}-{year}-{counter.last_seq:04d}"


def _parse_id(value, what: str, item_id=None, actor_id=None, action=None) -> uuid.UUID:
    """Parse an id inside a custody operation; an unparseable id is an unknown id."""
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError as exc:
        raise NotFound(
            f"{what} not found", item_id=item_id, actor_id=actor_id, action=action
        ) from exc


def _lock_item(db: Session, item_id, actor_id, action: str) -> TrackedItem:
    item_uuid = _parse_id(item_id, "Tracked item", actor_id=actor_id, action=action)
    bind = db.get_bind()
    try:
        if bind.dialect.name == "postgresql":
            db.execute(
                text(f"SET LOCAL lock_timeout = {int(settings.lock_timeout_ms)}")
            )
        stmt = (
            select(TrackedItem)
            .where(TrackedItem.id == item_uuid)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        item = db.scalars(stmt).first()
    except OperationalError as exc:
        db.rollback()
        raise ConcurrentUpdate(
            "Item is locked by another operation; retry",
            item_id=item_uuid,
            actor_id=actor_id,
            action=action,
        ) from exc
    if not item:
        raise NotFound(
            "Tracked item not found",
            item_id=item_uuid,
            actor_id=actor_id,
            action=action,
        )
    return item


def _require_holder(item: TrackedItem, actor_id, action: str) -> None:
    if item.is_archived:
        raise AlreadyArchived(
            f"Item {item.reference_number} is archived",
            item_id=item.id,
            actor_id=actor_id,
            action=action,
        )
    if str(item.current_holder_id) != str(coerce_uuid(actor_id)):
        raise NotAuthorized(
            f"Only the current holder may {action} item {item.reference_number}",
            item_id=item.id,
            actor_id=actor_id,
            action=action,
        )


def _commit(db: Session, item_id, actor_id, action: str) -> None:
    try:
        db.commit()
    except (StaleDataError, IntegrityError) as exc:
        db.rollback()
        raise ConcurrentUpdate(
            "Item was changed by a concurrent operation; retry",
            item_id=item_id,
            actor_id=actor_id,
            action=action,
        ) from exc


def _publish(
    db: Session,
    event_type: EventType,
    item: TrackedItem,
    actor_id,
    **extra,
) -> None:
    payload = {
        "reference_number": item.reference_number,
        "actor_name": user_directory.resolve_user(db, actor_id),
    }
    payload.update({k: str(v) if v is not None else None for k, v in extra.items()})
    publish_event(
        event_type,
        entity_type="tracked_item",
        entity_id=item.id,
        actor_id=actor_id,
        item_id=item.id,
        payload=payload,
    )


# ---------------------------------------------------------------------------
# Tracked item store
# ---------------------------------------------------------------------------


class TrackedItems(ListResponseMixin):
    @staticmethod
    def get(db: Session, item_id: str) -> TrackedItem:
        item = db.get(TrackedItem, coerce_uuid(item_id))
        if not item:
            raise NotFound("Tracked item not found", item_id=item_id)
        return item

    @staticmethod
    def get_by_reference(db: Session, reference_number: str) -> TrackedItem:
        item = db.scalars(
            select(TrackedItem).where(TrackedItem.reference_number == reference_number)
        ).first()
        if not item:
            raise NotFound(f"No tracked item with reference {reference_number}")
        return item

    @staticmethod
    def history(db: Session, item_id: str) -> list[Movement]:
        item = TrackedItems.get(db, item_id)
        return list(movement_ledger.entries_for(db, item.id))

    @staticmethod
    def list(
        db: Session,
        status: str | None,
        priority: str | None,
        created_by: str | None,
        holder_id: str | None,
        order_by: str,
        order_dir: str,
        limit: int,
        offset: int,
    ) -> list[TrackedItem]:
        stmt = select(TrackedItem)
        if status is not None:
            stmt = stmt.where(TrackedItem.status == ItemStatus(status))
        if priority is not None:
            stmt = stmt.where(TrackedItem.priority == ItemPriority(priority))
        if created_by is not None:
            stmt = stmt.where(TrackedItem.created_by == coerce_uuid(created_by))
        if holder_id is not None:
            stmt = stmt.where(TrackedItem.current_holder_id == coerce_uuid(holder_id))
        stmt = apply_ordering(
            stmt,
            order_by,
            order_dir,
            {
                "creation_date": TrackedItem.creation_date,
                "reference_number": TrackedItem.reference_number,
                "updated_at": TrackedItem.updated_at,
                "subject": TrackedItem.subject,
            },
        )
        return db.scalars(apply_pagination(stmt, limit, offset)).all()


# ---------------------------------------------------------------------------
# Transfer operations
# ---------------------------------------------------------------------------


class CustodyTransfers:
    @staticmethod
    @_observed("create")
    def create_item(
        db: Session, payload: TrackedItemCreate, creator_id
    ) -> TrackedItem:
        subject = _require_subject(payload.subject, actor_id=creator_id)
        priority = _parse_priority(payload.priority, actor_id=creator_id)
        creator_uuid = _parse_id(
            creator_id, "Creator", actor_id=creator_id, action="create"
        )
        if not db.get(Person, creator_uuid):
            raise NotFound("Creator not found", actor_id=creator_id, action="create")

        now = datetime.now(timezone.utc)
        item = TrackedItem(
            reference_number=_next_reference_number(
                db, settings.reference_prefix, now.year
            ),
            subject=subject,
            description=payload.description,
            type_id=payload.type_id,
            project_id=payload.project_id,
            priority=priority,
            status=ItemStatus.active,
            created_by=creator_uuid,
            creation_date=now,
            current_holder_id=creator_uuid,
            attachment_ref=payload.attachment_ref,
        )
        db.add(item)
        db.flush()
        movement_ledger.append(
            db,
            item,
            MovementAction.created,
            creator_uuid,
            creator_uuid,
            notes="Initial creation",
            date=now,
        )
        _commit(db, item.id, creator_id, "create")
        db.refresh(item)
        logger.info("Created tracked item %s (%s)", item.reference_number, item.id)
        _publish(db, EventType.item_created, item, creator_uuid)
        return item

    @staticmethod
    @_observed("receive")
    def receive(db: Session, item_id: str, actor_id: str) -> Movement:
        item = _lock_item(db, item_id, actor_id, "receive")
        _require_holder(item, actor_id, "receive")
        movement = movement_ledger.append(
            db,
            item,
            MovementAction.received,
            actor_id,
            actor_id,
            notes="Custody accepted",
        )
        # Touching the row bumps ``version`` so a concurrent hand-off fails the commit
        item.updated_at = datetime.now(timezone.utc)
        _commit(db, item.id, actor_id, "receive")
        db.refresh(movement)
        logger.debug("Item %s received by %s", item_id, actor_id)
        return movement

    @staticmethod
    @_observed("forward")
    def forward(
        db: Session,
        item_id: str,
        actor_id: str,
        target_id: str | None,
        notes: str | None = None,
    ) -> Movement:
        item = _lock_item(db, item_id, actor_id, "forward")
        _require_holder(item, actor_id, "forward")
        if target_id is None or not str(target_id).strip():
            raise ValidationError(
                "A forward target is required",
                item_id=item.id,
                actor_id=actor_id,
                action="forward",
            )
        target_uuid = _parse_id(
            target_id, "Forward target", item.id, actor_id, "forward"
        )
        if str(target_uuid) == str(item.current_holder_id):
            raise ValidationError(
                "Cannot forward an item to its current holder",
                item_id=item.id,
                actor_id=actor_id,
                action="forward",
            )
        target = db.get(Person, target_uuid)
        if not target or not target.is_active:
            raise NotFound(
                "Forward target not found",
                item_id=item.id,
                actor_id=actor_id,
                action="forward",
            )

        movement = movement_ledger.append(
            db,
            item,
            MovementAction.forwarded,
            actor_id,
            target_uuid,
            notes=notes,
        )
        item.current_holder_id = target_uuid
        _commit(db, item.id, actor_id, "forward")
        db.refresh(movement)
        logger.info(
            "Forwarded item %s from %s to %s",
            item.reference_number,
            actor_id,
            target_id,
        )
        _publish(
            db,
            EventType.item_forwarded,
            item,
            actor_id,
            to_user_id=target_uuid,
            to_user_name=user_directory.resolve_user(db, target_uuid),
        )
        return movement

    @staticmethod
    @_observed("return")
    def return_item(
        db: Session,
        item_id: str,
        actor_id: str,
        reason: str | None = None,
    ) -> Movement:
        item = _lock_item(db, item_id, actor_id, "return")
        _require_holder(item, actor_id, "return")
        inbound = movement_ledger.latest_inbound_from_other(db, item.id, actor_id)
        if inbound is None:
            raise NoReturnTarget(
                "Cannot return: no one handed this item to you",
                item_id=item.id,
                actor_id=actor_id,
                action="return",
            )
        sender_id = inbound.from_user_id

        movement = movement_ledger.append(
            db,
            item,
            MovementAction.returned,
            actor_id,
            sender_id,
            notes=reason,
        )
        item.current_holder_id = sender_id
        _commit(db, item.id, actor_id, "return")
        db.refresh(movement)
        logger.info(
            "Returned item %s from %s to %s", item.reference_number, actor_id, sender_id
        )
        _publish(
            db,
            EventType.item_returned,
            item,
            actor_id,
            to_user_id=sender_id,
            reason=reason,
        )
        return movement

    @staticmethod
    @_observed("archive")
    def archive(
        db: Session,
        item_id: str,
        actor_id: str,
        location_id: str | None,
        physical_note: str | None = None,
        attachment_ref: str | None = None,
        notes: str | None = None,
    ) -> TrackedItem:
        item = _lock_item(db, item_id, actor_id, "archive")
        _require_holder(item, actor_id, "archive")
        if location_id is None or not str(location_id).strip():
            raise ValidationError(
                "An archive location is required",
                item_id=item.id,
                actor_id=actor_id,
                action="archive",
            )
        location_uuid = _parse_id(
            location_id, "Archive location", item.id, actor_id, "archive"
        )
        if not archive_locations.location_exists(db, location_uuid):
            raise NotFound(
                "Archive location not found",
                item_id=item.id,
                actor_id=actor_id,
                action="archive",
            )

        # Terminal entry goes in before the status flips; the ledger refuses
        # archived items.
        movement_ledger.append(
            db,
            item,
            MovementAction.archived,
            actor_id,
            actor_id,
            notes=notes,
        )
        item.status = ItemStatus.archived
        item.archive_location_id = location_uuid
        item.physical_location_note = physical_note
        item.archived_at = datetime.now(timezone.utc)
        if attachment_ref is not None:
            item.attachment_ref = attachment_ref
        _commit(db, item.id, actor_id, "archive")
        db.refresh(item)
        logger.info(
            "Archived item %s at location %s", item.reference_number, location_id
        )
        _publish(
            db,
            EventType.item_archived,
            item,
            actor_id,
            archive_location_id=item.archive_location_id,
        )
        return item

    @staticmethod
    @_observed("update")
    def update_item(
        db: Session, item_id: str, actor_id: str, payload: TrackedItemUpdate
    ) -> TrackedItem:
        item = _lock_item(db, item_id, actor_id, "update")
        _require_holder(item, actor_id, "update")
        data = payload.model_dump(exclude_unset=True)
        changes = {k: v for k, v in data.items() if k in _EDITABLE_FIELDS}
        if "subject" in changes:
            changes["subject"] = _require_subject(
                changes["subject"], item.id, actor_id, "update"
            )
        if "priority" in changes:
            changes["priority"] = _parse_priority(
                changes["priority"], item.id, actor_id, "update"
            )
        for key, value in changes.items():
            setattr(item, key, value)
        _commit(db, item.id, actor_id, "update")
        db.refresh(item)
        logger.info("Updated tracked item %s", item.reference_number)
        if changes:
            _publish(
                db,
                EventType.item_updated,
                item,
                actor_id,
                fields=",".join(sorted(changes)),
            )
        return item

    @staticmethod
    @_observed("acknowledge")
    def acknowledge(db: Session, movement_id: str, actor_id: str) -> Movement:
        movement = db.get(
            Movement,
            _parse_id(movement_id, "Movement", actor_id=actor_id, action="acknowledge"),
        )
        if not movement:
            raise NotFound(
                "Movement not found", actor_id=actor_id, action="acknowledge"
            )
        if str(movement.to_user_id) != str(coerce_uuid(actor_id)):
            raise NotAuthorized(
                "Only the recipient may acknowledge a movement",
                item_id=movement.item_id,
                actor_id=actor_id,
                action="acknowledge",
            )
        if not movement.is_read:
            movement.is_read = True
            movement.read_at = datetime.now(timezone.utc)
            db.commit()
            db.refresh(movement)
        logger.debug("Movement %s acknowledged by %s", movement_id, actor_id)
        return movement


tracked_items = TrackedItems()
custody_transfers = CustodyTransfers()
