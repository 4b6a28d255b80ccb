import uuid
from datetime import datetime, timedelta, timezone

import pytest

from app.models.custody import (
    ItemStatus,
    ListCategory,
    Movement,
    MovementAction,
    TrackedItem,
    ViewCategory,
)
from app.schemas.custody import TrackedItemCreate
from app.services.custody import custody_transfers
from app.services.custody_state import (
    OFFER_ACTIONS,
    SETTLED_ACTIONS,
    categorize,
    custody_views,
)

A, B, C, D = (uuid.uuid4() for _ in range(4))
_T0 = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)


def _item(holder, creator=A, status=ItemStatus.active):
    return TrackedItem(
        id=uuid.uuid4(),
        reference_number="TR-2026-0001",
        subject="Contract review",
        created_by=creator,
        current_holder_id=holder,
        status=status,
    )


def _history(*steps):
    """Build a ledger from ``(action, from, to)`` steps, one minute apart."""
    return [
        Movement(
            sequence=i + 1,
            date=_T0 + timedelta(minutes=i),
            from_user_id=from_id,
            to_user_id=to_id,
            action=action,
        )
        for i, (action, from_id, to_id) in enumerate(steps)
    ]


CREATED = (MovementAction.created, A, A)


class TestActionPartition:
    def test_every_action_is_classified_once(self):
        assert OFFER_ACTIONS | SETTLED_ACTIONS == set(MovementAction)
        assert not OFFER_ACTIONS & SETTLED_ACTIONS


class TestCategorize:
    def test_fresh_item_is_processing_for_creator(self):
        assert categorize(_item(A), _history(CREATED), A) == ViewCategory.processing

    def test_forwarded_item(self):
        item = _item(B)
        history = _history(CREATED, (MovementAction.forwarded, A, B))
        assert categorize(item, history, B) == ViewCategory.inbox
        assert categorize(item, history, A) == ViewCategory.outbox
        assert categorize(item, history, D) == ViewCategory.hidden

    def test_received_item(self):
        item = _item(B)
        history = _history(
            CREATED,
            (MovementAction.forwarded, A, B),
            (MovementAction.received, B, B),
        )
        assert categorize(item, history, B) == ViewCategory.processing
        assert categorize(item, history, A) == ViewCategory.outbox

    def test_intermediate_sender_sees_outbox(self):
        item = _item(C)
        history = _history(
            CREATED,
            (MovementAction.forwarded, A, B),
            (MovementAction.received, B, B),
            (MovementAction.forwarded, B, C),
        )
        assert categorize(item, history, C) == ViewCategory.inbox
        assert categorize(item, history, B) == ViewCategory.outbox
        assert categorize(item, history, A) == ViewCategory.outbox

    def test_returned_item_lands_in_inbox(self):
        item = _item(B)
        history = _history(
            CREATED,
            (MovementAction.forwarded, A, B),
            (MovementAction.forwarded, B, C),
            (MovementAction.returned, C, B),
        )
        assert categorize(item, history, B) == ViewCategory.inbox
        assert categorize(item, history, C) == ViewCategory.outbox

    def test_creator_regaining_custody_sees_inbox(self):
        item = _item(A)
        history = _history(
            CREATED,
            (MovementAction.forwarded, A, B),
            (MovementAction.returned, B, A),
        )
        assert categorize(item, history, A) == ViewCategory.inbox

    def test_archived_wins_for_everyone(self):
        item = _item(B, status=ItemStatus.archived)
        history = _history(
            CREATED,
            (MovementAction.forwarded, A, B),
            (MovementAction.archived, B, B),
        )
        for viewer in (A, B, D):
            assert categorize(item, history, viewer) == ViewCategory.archived

    def test_sequence_breaks_date_ties(self):
        item = _item(B)
        history = _history(
            CREATED,
            (MovementAction.forwarded, A, B),
            (MovementAction.received, B, B),
        )
        for m in history:
            m.date = _T0
        assert categorize(item, list(reversed(history)), B) == ViewCategory.processing

    def test_viewer_id_may_be_a_string(self):
        item = _item(B)
        history = _history(CREATED, (MovementAction.forwarded, A, B))
        assert categorize(item, history, str(B)) == ViewCategory.inbox

    def test_exactly_one_category_per_state(self):
        item = _item(B)
        history = _history(CREATED, (MovementAction.forwarded, A, B))
        results = {v: categorize(item, history, v) for v in (A, B, C)}
        assert results == {
            A: ViewCategory.outbox,
            B: ViewCategory.inbox,
            C: ViewCategory.hidden,
        }


@pytest.fixture()
def trio(make_person):
    return (
        make_person(first_name="Alice"),
        make_person(first_name="Bob"),
        make_person(first_name="Carol"),
    )


def _create(db_session, creator, subject="Purchase order"):
    return custody_transfers.create_item(
        db_session,
        TrackedItemCreate(subject=subject, priority="normal"),
        creator.id,
    )


class TestCustodyViews:
    def test_list_for_each_category(self, db_session, trio):
        alice, bob, carol = trio
        kept = _create(db_session, alice, "Kept")
        sent = _create(db_session, alice, "Sent")
        custody_transfers.forward(db_session, str(sent.id), alice.id, bob.id)

        def ids(actor, category):
            return {
                i.id for i in custody_views.list_for(db_session, actor.id, category)
            }

        assert ids(alice, ListCategory.processing) == {kept.id}
        assert ids(alice, ListCategory.outbox) == {sent.id}
        assert ids(alice, ListCategory.inbox) == set()
        assert ids(bob, ListCategory.inbox) == {sent.id}
        assert ids(bob, ListCategory.all) == {sent.id}
        assert ids(carol, ListCategory.all) == set()
        assert ids(alice, "all") == {kept.id, sent.id}

    def test_archived_visible_to_every_viewer(
        self, db_session, trio, archive_location, make_person
    ):
        alice, bob, carol = trio
        item = _create(db_session, alice)
        custody_transfers.forward(db_session, str(item.id), alice.id, bob.id)
        custody_transfers.archive(
            db_session, str(item.id), bob.id, archive_location.id
        )

        outsider = make_person(first_name="Dave")

        for actor in (alice, bob, carol, outsider):
            archived = custody_views.list_for(
                db_session, actor.id, ListCategory.archived
            )
            assert [i.id for i in archived] == [item.id]
            assert custody_views.counts_for(db_session, actor.id)["archived"] == 1
            every = custody_views.list_for(db_session, actor.id, ListCategory.all)
            assert [i.id for i in every] == [item.id]

    def test_list_for_pagination_newest_first(self, db_session, trio):
        alice = trio[0]
        first = _create(db_session, alice, "First")
        second = _create(db_session, alice, "Second")
        third = _create(db_session, alice, "Third")

        page = custody_views.list_for(
            db_session, alice.id, ListCategory.processing, limit=2, offset=0
        )
        assert [i.id for i in page] == [third.id, second.id]
        rest = custody_views.list_for(
            db_session, alice.id, ListCategory.processing, limit=2, offset=2
        )
        assert [i.id for i in rest] == [first.id]

    def test_counts_for(self, db_session, trio):
        alice, bob, _ = trio
        _create(db_session, alice)
        sent = _create(db_session, alice)
        custody_transfers.forward(db_session, str(sent.id), alice.id, bob.id)

        assert custody_views.counts_for(db_session, alice.id) == {
            "inbox": 0,
            "processing": 1,
            "outbox": 1,
            "archived": 0,
        }
        assert custody_views.counts_for(db_session, bob.id) == {
            "inbox": 1,
            "processing": 0,
            "outbox": 0,
            "archived": 0,
        }

    def test_views_follow_latest_ledger_state(self, db_session, trio):
        alice, bob, _ = trio
        item = _create(db_session, alice)
        custody_transfers.forward(db_session, str(item.id), alice.id, bob.id)
        assert custody_views.counts_for(db_session, bob.id)["inbox"] == 1
        custody_transfers.receive(db_session, str(item.id), bob.id)
        counts = custody_views.counts_for(db_session, bob.id)
        assert counts["inbox"] == 0
        assert counts["processing"] == 1
