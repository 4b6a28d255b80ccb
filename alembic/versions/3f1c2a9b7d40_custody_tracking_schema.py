"""custody tracking schema

Revision ID: 3f1c2a9b7d40
Revises:
Create Date: 2026-10-18 09:12:40.000000

"""

from alembic import op
import sqlalchemy as sa

revision = "3f1c2a9b7d40"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # --- Enums ---
    actorrole = sa.Enum("admin", "manager", "clerk", "viewer", name="actorrole")
    itempriority = sa.Enum("normal", "urgent", "top_priority", name="itempriority")
    itemstatus = sa.Enum("active", "archived", name="itemstatus")
    movementaction = sa.Enum(
        "created",
        "received",
        "forwarded",
        "returned",
        "archived",
        name="movementaction",
    )
    for enum_type in (actorrole, itempriority, itemstatus, movementaction):
        enum_type.create(op.get_bind(), checkfirst=True)

    # --- People (user directory) ---
    op.create_table(
        "people",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("first_name", sa.String(length=120), nullable=False),
        sa.Column("last_name", sa.String(length=120), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column(
            "role",
            sa.Enum(
                "admin",
                "manager",
                "clerk",
                "viewer",
                name="actorrole",
                create_type=False,
            ),
            nullable=True,
        ),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email"),
    )

    # --- Archive locations ---
    op.create_table(
        "archive_locations",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("code", sa.String(length=40), nullable=False),
        sa.Column("location", sa.Text(), nullable=True),
        sa.Column("shelves_count", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("code", name="uq_archive_locations_code"),
    )

    # --- Reference counters ---
    op.create_table(
        "reference_counters",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("prefix", sa.String(length=20), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("last_seq", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "prefix", "year", name="uq_reference_counters_prefix_year"
        ),
    )

    # --- Tracked items ---
    op.create_table(
        "tracked_items",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("reference_number", sa.String(length=40), nullable=False),
        sa.Column("subject", sa.String(length=500), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("type_id", sa.String(length=64), nullable=True),
        sa.Column("project_id", sa.String(length=64), nullable=True),
        sa.Column(
            "priority",
            sa.Enum(
                "normal",
                "urgent",
                "top_priority",
                name="itempriority",
                create_type=False,
            ),
            nullable=False,
        ),
        sa.Column(
            "status",
            sa.Enum("active", "archived", name="itemstatus", create_type=False),
            nullable=False,
        ),
        sa.Column("created_by", sa.UUID(), nullable=False),
        sa.Column("creation_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("current_holder_id", sa.UUID(), nullable=False),
        sa.Column("archive_location_id", sa.UUID(), nullable=True),
        sa.Column("physical_location_note", sa.Text(), nullable=True),
        sa.Column("archived_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("attachment_ref", sa.String(length=1024), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["created_by"], ["people.id"]),
        sa.ForeignKeyConstraint(["current_holder_id"], ["people.id"]),
        sa.ForeignKeyConstraint(["archive_location_id"], ["archive_locations.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("reference_number", name="uq_tracked_items_reference"),
    )
    op.create_index(
        "ix_tracked_items_current_holder_id", "tracked_items", ["current_holder_id"]
    )
    op.create_index("ix_tracked_items_created_by", "tracked_items", ["created_by"])
    op.create_index("ix_tracked_items_status", "tracked_items", ["status"])

    # --- Custody movements (append-only) ---
    op.create_table(
        "custody_movements",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("item_id", sa.UUID(), nullable=False),
        sa.Column("sequence", sa.Integer(), nullable=False),
        sa.Column("date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("from_user_id", sa.UUID(), nullable=False),
        sa.Column("to_user_id", sa.UUID(), nullable=False),
        sa.Column(
            "action",
            sa.Enum(
                "created",
                "received",
                "forwarded",
                "returned",
                "archived",
                name="movementaction",
                create_type=False,
            ),
            nullable=False,
        ),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("is_read", sa.Boolean(), nullable=False),
        sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["item_id"], ["tracked_items.id"]),
        sa.ForeignKeyConstraint(["from_user_id"], ["people.id"]),
        sa.ForeignKeyConstraint(["to_user_id"], ["people.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "item_id", "sequence", name="uq_custody_movements_sequence"
        ),
    )
    op.create_index(
        "ix_custody_movements_item_date", "custody_movements", ["item_id", "date"]
    )
    op.create_index(
        "ix_custody_movements_from_user_id", "custody_movements", ["from_user_id"]
    )
    op.create_index(
        "ix_custody_movements_to_user_id", "custody_movements", ["to_user_id"]
    )

    # --- Activity log (audit sink) ---
    op.create_table(
        "activity_logs",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("action_type", sa.String(length=20), nullable=False),
        sa.Column("event_type", sa.String(length=100), nullable=False),
        sa.Column("entity_type", sa.String(length=80), nullable=False),
        sa.Column("entity_id", sa.String(length=36), nullable=False),
        sa.Column("entity_name", sa.String(length=255), nullable=True),
        sa.Column("actor_id", sa.String(length=36), nullable=True),
        sa.Column("actor_name", sa.String(length=255), nullable=True),
        sa.Column("payload", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_activity_logs_entity_name", "activity_logs", ["entity_name"])
    op.create_index("ix_activity_logs_created_at", "activity_logs", ["created_at"])


def downgrade() -> None:
    op.drop_index("ix_activity_logs_created_at", table_name="activity_logs")
    op.drop_index("ix_activity_logs_entity_name", table_name="activity_logs")
    op.drop_table("activity_logs")

    op.drop_index("ix_custody_movements_to_user_id", table_name="custody_movements")
    op.drop_index("ix_custody_movements_from_user_id", table_name="custody_movements")
    op.drop_index("ix_custody_movements_item_date", table_name="custody_movements")
    op.drop_table("custody_movements")

    op.drop_index("ix_tracked_items_status", table_name="tracked_items")
    op.drop_index("ix_tracked_items_created_by", table_name="tracked_items")
    op.drop_index("ix_tracked_items_current_holder_id", table_name="tracked_items")
    op.drop_table("tracked_items")

    op.drop_table("reference_counters")
    op.drop_table("archive_locations")
    op.drop_table("people")

    for name in ("movementaction", "itemstatus", "itempriority", "actorrole"):
        sa.Enum(name=name).drop(op.get_bind(), checkfirst=True)
