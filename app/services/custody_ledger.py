"""Append-only custody ledger.

Every hand-off of a tracked item is one ``Movement`` row. Rows are ordered by
``date`` with the per-item ``sequence`` as tie-breaker, and are never rewritten
or removed (see the guards on the model). Appending is the only write.
"""

import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.errors import InvalidSequence
from app.models.custody import Movement, MovementAction, TrackedItem
from app.services.common import as_utc, coerce_uuid

logger = logging.getLogger(__name__)

# Acknowledgement state a fresh movement starts in
_UNREAD_ON_APPEND = frozenset({MovementAction.forwarded, MovementAction.returned})


def _ordered(stmt):
    return stmt.order_by(Movement.date.asc(), Movement.sequence.asc())


class LedgerEntries:
    """Lazy, restartable view over one item's movements, oldest first.

    Each iteration runs a fresh query, so entries appended since the last pass
    are picked up.
    """

    def __init__(self, db: Session, item_id: uuid.UUID):
        self._db = db
        self.item_id = item_id

    def __iter__(self):
        stmt = _ordered(select(Movement).where(Movement.item_id == self.item_id))
        yield from self._db.scalars(stmt.execution_options(yield_per=100))

    def __repr__(self) -> str:
        return f"LedgerEntries(item_id={self.item_id})"


class MovementLedger:
    @staticmethod
    def entries_for(db: Session, item_id) -> LedgerEntries:
        return LedgerEntries(db, coerce_uuid(item_id))

    @staticmethod
    def latest_for(db: Session, item_id) -> Movement | None:
        stmt = (
            select(Movement)
            .where(Movement.item_id == coerce_uuid(item_id))
            .order_by(Movement.date.desc(), Movement.sequence.desc())
            .limit(1)
        )
        return db.scalars(stmt).first()

    @staticmethod
    def latest_inbound_from_other(db: Session, item_id, actor_id) -> Movement | None:
        """Most recent movement handed to ``actor_id`` by someone else."""
        actor_uuid = coerce_uuid(actor_id)
        stmt = (
            select(Movement)
            .where(
                Movement.item_id == coerce_uuid(item_id),
                Movement.to_user_id == actor_uuid,
                Movement.from_user_id != actor_uuid,
            )
            .order_by(Movement.date.desc(), Movement.sequence.desc())
            .limit(1)
        )
        return db.scalars(stmt).first()

    @staticmethod
    def append(
        db: Session,
        item: TrackedItem,
        action: MovementAction,
        from_user_id,
        to_user_id,
        notes: str | None = None,
        date: datetime | None = None,
    ) -> Movement:
        """Append one movement for ``item``; the caller owns the transaction.

        The caller must hold the item's row lock so that ``sequence`` and the
        holder update stay consistent.
        """
        if item.is_archived:
            raise InvalidSequence(
                "Cannot append to the ledger of an archived item",
                item_id=item.id,
                actor_id=from_user_id,
                action=action.value,
            )

        tail = MovementLedger.latest_for(db, item.id)
        if tail is None and action != MovementAction.created:
            raise InvalidSequence(
                "The first ledger entry must be a creation",
                item_id=item.id,
                actor_id=from_user_id,
                action=action.value,
            )
        if tail is not None and action == MovementAction.created:
            raise InvalidSequence(
                "Item already has a creation entry",
                item_id=item.id,
                actor_id=from_user_id,
                action=action.value,
            )

        tail_date = as_utc(tail.date) if tail is not None else None
        if date is not None:
            date = as_utc(date)
            if tail_date is not None and date < tail_date:
                raise InvalidSequence(
                    "Movement date precedes the latest ledger entry",
                    item_id=item.id,
                    actor_id=from_user_id,
                    action=action.value,
                )
        else:
            date = datetime.now(timezone.utc)
            # Clock skew between app servers must not reorder the ledger
            if tail_date is not None and date < tail_date:
                date = tail_date

        movement = Movement(
            item_id=item.id,
            sequence=(tail.sequence + 1) if tail is not None else 1,
            date=date,
            from_user_id=coerce_uuid(from_user_id),
            to_user_id=coerce_uuid(to_user_id),
            action=action,
            notes=notes,
            is_read=action not in _UNREAD_ON_APPEND,
        )
        db.add(movement)
        db.flush()
        logger.debug(
            "Appended %s movement #%d for item %s",
            action.value,
            movement.sequence,
            item.id,
        )
        return movement


movement_ledger = MovementLedger()
