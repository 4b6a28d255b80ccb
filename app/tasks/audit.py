import logging

from sqlalchemy.orm import Session

from app.celery_app import celery_app

logger = logging.getLogger(__name__)

# create/update split used by the activity log screens
_ACTION_TYPES = {
    "custody.item_created": "create",
}


@celery_app.task(name="app.tasks.audit.record_activity", ignore_result=True)
def record_activity(
    event_type: str,
    entity_type: str,
    entity_id: str,
    actor_id: str | None = None,
    item_id: str | None = None,
    payload: dict | None = None,
) -> None:
    """Write one ActivityLog row for a custody event."""
    from app.db import SessionLocal

    db = SessionLocal()
    try:
        _record(db, event_type, entity_type, entity_id, actor_id, payload or {})
    except Exception as e:
        db.rollback()
        logger.exception("Failed to record activity for %s: %s", event_type, e)
    finally:
        db.close()


def _record(
    db: Session,
    event_type: str,
    entity_type: str,
    entity_id: str,
    actor_id: str | None,
    payload: dict,
) -> None:
    from app.models.custody import ActivityLog

    entry = ActivityLog(
        action_type=_ACTION_TYPES.get(event_type, "update"),
        event_type=event_type,
        entity_type=entity_type,
        entity_id=str(entity_id),
        entity_name=payload.get("reference_number"),
        actor_id=actor_id,
        actor_name=payload.get("actor_name"),
        payload=payload,
    )
    db.add(entry)
    db.commit()
    logger.info(
        "Recorded activity %s on %s %s", event_type, entity_type, entry.entity_name
    )
