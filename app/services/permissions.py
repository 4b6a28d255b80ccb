from app.config import settings
from app.models.person import ActorRole

DEFAULT_ROLE_PERMISSIONS: dict[str, frozenset[str]] = {
    ActorRole.admin.value: frozenset({"create", "update", "delete"}),
    ActorRole.manager.value: frozenset({"create", "update", "delete"}),
    ActorRole.clerk.value: frozenset({"create", "update"}),
    ActorRole.viewer.value: frozenset(),
}


def parse_role_permissions(raw: str) -> dict[str, frozenset[str]]:
    """Parse ``"admin:create,update,delete;clerk:create"`` into a matrix."""
    matrix: dict[str, frozenset[str]] = {}
    for chunk in raw.split(";"):
        if ":" not in chunk:
            continue
        role, _, actions = chunk.partition(":")
        role = role.strip().lower()
        if not role:
            continue
        matrix[role] = frozenset(
            a.strip().lower() for a in actions.split(",") if a.strip()
        )
    return matrix


class PermissionGate:
    """Role-based create/update/delete checks, applied by callers of the engine."""

    def __init__(self, matrix: dict[str, frozenset[str]] | None = None):
        self.matrix = dict(DEFAULT_ROLE_PERMISSIONS)
        if matrix:
            self.matrix.update(matrix)

    def allows(self, role, action: str) -> bool:
        key = role.value if isinstance(role, ActorRole) else str(role).lower()
        return action in self.matrix.get(key, frozenset())

    def can_create(self, role) -> bool:
        return self.allows(role, "create")

    def can_update(self, role) -> bool:
        return self.allows(role, "update")

    def can_delete(self, role) -> bool:
        return self.allows(role, "delete")


permission_gate = PermissionGate(parse_role_permissions(settings.role_permissions))
