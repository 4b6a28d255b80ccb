from app.models.person import ActorRole, Person  # noqa: F401
from app.models.custody import (  # noqa: F401
    ActivityLog,
    ArchiveLocation,
    ItemPriority,
    ItemStatus,
    ListCategory,
    Movement,
    MovementAction,
    ReferenceCounter,
    TrackedItem,
    ViewCategory,
)
