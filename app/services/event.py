import enum
import logging
import uuid

logger = logging.getLogger(__name__)


class EventType(enum.Enum):
    item_created = "custody.item_created"
    item_updated = "custody.item_updated"
    item_forwarded = "custody.item_forwarded"
    item_returned = "custody.item_returned"
    item_archived = "custody.item_archived"


def publish_event(
    event_type: EventType,
    entity_type: str,
    entity_id: str | uuid.UUID,
    actor_id: str | uuid.UUID | None = None,
    item_id: str | uuid.UUID | None = None,
    payload: dict | None = None,
) -> None:
    """Fire-and-forget event publishing.

    Queues a Celery task that writes the audit record. Never raises: a lost
    or delayed event is logged as a warning and the caller carries on.
    """
    try:
        from app.tasks.events import process_event

        process_event.delay(
            event_type=event_type.value,
            entity_type=entity_type,
            entity_id=str(entity_id),
            actor_id=str(actor_id) if actor_id else None,
            item_id=str(item_id) if item_id else None,
            payload=payload or {},
        )
        logger.debug(
            "Published event %s for %s/%s", event_type.value, entity_type, entity_id
        )
    except Exception as e:
        logger.warning("Failed to publish event %s: %s", event_type.value, e)
