from alembic import op
import sqlalchemy as sa

revision = "0001_scan_ledger"
down_revision = None
branch_labels = None
depends_on = None

SCAN_RESULTS = ("VALID", "WRONG_EVENT", "ALREADY_SCANNED", "EXPIRED")


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("email", sa.String(), nullable=False, unique=True),
        sa.Column("name", sa.String()),
        sa.Column("role", sa.String(), nullable=False, server_default="user"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_users_email", "users", ["email"])
    op.create_table(
        "events",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("start_date_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_date_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_table(
        "orders",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("event_id", sa.Uuid(), sa.ForeignKey("events.id", ondelete="CASCADE"), nullable=False),
        sa.Column("buyer_id", sa.Uuid(), sa.ForeignKey("users.id")),
        sa.Column("quantity", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_orders_event_id", "orders", ["event_id"])
    op.create_table(
        "ticket_scans",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("order_id", sa.Uuid(), sa.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False),
        sa.Column("event_id", sa.Uuid(), sa.ForeignKey("events.id", ondelete="CASCADE"), nullable=False),
        sa.Column("scanner_id", sa.Uuid(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("is_valid", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column(
            "scan_result",
            sa.Enum(*SCAN_RESULTS, name="scan_result", native_enum=False, length=20),
            nullable=False,
        ),
        sa.Column("notes", sa.Text()),
        sa.Column("scanned_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    # Como máximo una admisión válida por (ticket, evento)
    op.create_index(
        "uq_ticket_scans_valid_admission",
        "ticket_scans",
        ["order_id", "event_id"],
        unique=True,
        postgresql_where=sa.text("is_valid"),
        sqlite_where=sa.text("is_valid"),
    )
    op.create_index("ix_ticket_scans_event_scanned_at", "ticket_scans", ["event_id", "scanned_at"])
    op.create_index("ix_ticket_scans_order_id", "ticket_scans", ["order_id"])


def downgrade() -> None:
    op.drop_table("ticket_scans")
    op.drop_index("ix_orders_event_id", table_name="orders")
    op.drop_table("orders")
    op.drop_table("events")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")
