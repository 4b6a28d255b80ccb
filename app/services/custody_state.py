"""Per-viewer custody categories derived from an item and its ledger.

``categorize`` is a pure function over a ledger snapshot. Views are
recomputed on every read; nothing derived here is stored.
"""

from collections.abc import Sequence

from sqlalchemy import or_, select
from sqlalchemy.orm import Session, selectinload

from app.models.custody import (
    ItemStatus,
    ListCategory,
    Movement,
    MovementAction,
    TrackedItem,
    ViewCategory,
)
from app.services.common import as_utc, coerce_uuid

# Custody has been offered to the recipient but not yet accepted
OFFER_ACTIONS = frozenset({MovementAction.forwarded, MovementAction.returned})
# The holder is working the item
SETTLED_ACTIONS = frozenset(
    {MovementAction.created, MovementAction.received, MovementAction.archived}
)


def _same(a, b) -> bool:
    return str(a) == str(b)


def _latest(history: Sequence[Movement]) -> Movement | None:
    if not history:
        return None
    return max(history, key=lambda m: (as_utc(m.date), m.sequence))


def categorize(
    item: TrackedItem, history: Sequence[Movement], viewer_id
) -> ViewCategory:
    if item.is_archived:
        return ViewCategory.archived

    if not _same(item.current_holder_id, viewer_id):
        handled = _same(item.created_by, viewer_id) or any(
            _same(m.from_user_id, viewer_id) for m in history
        )
        return ViewCategory.outbox if handled else ViewCategory.hidden

    last = _latest(history)
    if last is None or last.action in SETTLED_ACTIONS:
        return ViewCategory.processing
    if last.action in OFFER_ACTIONS:
        if _same(last.to_user_id, viewer_id):
            return ViewCategory.inbox
        return ViewCategory.processing
    raise ValueError(f"Unhandled movement action: {last.action}")


class CustodyViews:
    @staticmethod
    def _candidates(db: Session, actor_uuid) -> list[TrackedItem]:
        involved = select(Movement.item_id).where(
            or_(Movement.from_user_id == actor_uuid, Movement.to_user_id == actor_uuid)
        )
        stmt = (
            select(TrackedItem)
            .where(
                or_(
                    TrackedItem.current_holder_id == actor_uuid,
                    TrackedItem.created_by == actor_uuid,
                    TrackedItem.id.in_(involved),
                    # Archived reads the same for every viewer
                    TrackedItem.status == ItemStatus.archived,
                )
            )
            .options(selectinload(TrackedItem.movements))
            .execution_options(populate_existing=True)
            .order_by(
                TrackedItem.creation_date.desc(), TrackedItem.reference_number.desc()
            )
        )
        return db.scalars(stmt).all()

    @staticmethod
    def categorized_for(
        db: Session, actor_id
    ) -> list[tuple[TrackedItem, ViewCategory]]:
        actor_uuid = coerce_uuid(actor_id)
        return [
            (item, categorize(item, list(item.movements), actor_uuid))
            for item in CustodyViews._candidates(db, actor_uuid)
        ]

    @staticmethod
    def list_for(
        db: Session,
        actor_id,
        category: ListCategory | str,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[TrackedItem]:
        category = ListCategory(category)
        pairs = CustodyViews.categorized_for(db, actor_id)
        if category == ListCategory.all:
            items = [item for item, view in pairs if view != ViewCategory.hidden]
        else:
            wanted = ViewCategory(category.value)
            items = [item for item, view in pairs if view == wanted]
        end = None if limit is None else offset + limit
        return items[offset:end]

    @staticmethod
    def counts_for(db: Session, actor_id) -> dict[str, int]:
        counts = {
            ViewCategory.inbox.value: 0,
            ViewCategory.processing.value: 0,
            ViewCategory.outbox.value: 0,
            ViewCategory.archived.value: 0,
        }
        for _, view in CustodyViews.categorized_for(db, actor_id):
            if view.value in counts:
                counts[view.value] += 1
        return counts


custody_views = CustodyViews()
