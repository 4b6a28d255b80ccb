from app.models.person import ActorRole
from app.services.permissions import (
    DEFAULT_ROLE_PERMISSIONS,
    PermissionGate,
    parse_role_permissions,
)


class TestParseRolePermissions:
    def test_parse(self):
        matrix = parse_role_permissions("Admin: create, update ;viewer:")
        assert matrix == {
            "admin": frozenset({"create", "update"}),
            "viewer": frozenset(),
        }

    def test_ignores_malformed_chunks(self):
        assert parse_role_permissions("nonsense;;:create") == {}


class TestPermissionGate:
    def test_defaults(self):
        gate = PermissionGate()
        assert gate.matrix == DEFAULT_ROLE_PERMISSIONS
        assert gate.can_create(ActorRole.clerk)
        assert gate.can_update(ActorRole.clerk)
        assert not gate.can_delete(ActorRole.clerk)
        assert gate.can_delete(ActorRole.admin)
        assert not gate.can_create(ActorRole.viewer)

    def test_string_roles(self):
        gate = PermissionGate()
        assert gate.allows("MANAGER", "delete")
        assert not gate.allows("unknown", "create")

    def test_overrides(self):
        gate = PermissionGate(parse_role_permissions("viewer:update"))
        assert gate.can_update(ActorRole.viewer)
        assert not gate.can_create(ActorRole.viewer)
        assert gate.can_create(ActorRole.clerk)
