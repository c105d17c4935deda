"""Initial schema: carrier_profiles, carrier_vehicles (and users when absent)"""
from alembic import op
import sqlalchemy as sa

revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # `users` is owned by the accounts service; only stand-alone databases lack it.
    if not sa.inspect(op.get_bind()).has_table("users"):
        op.create_table(
            "users",
            sa.Column("id", sa.String, primary_key=True),
            sa.Column("name", sa.String(255), nullable=True),
            sa.Column("email", sa.String(255), unique=True, nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        )

    op.create_table(
        "carrier_profiles",
        sa.Column("id", sa.String, primary_key=True),
        sa.Column("user_id", sa.String, nullable=False),
        sa.Column("phone", sa.String(30), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="OFFLINE"),
        sa.Column("plan_tier", sa.String(20), nullable=False, server_default="BASIC"),
        sa.Column("verification_status", sa.String(20), nullable=False, server_default="PENDING"),
        sa.Column("station_lat", sa.Float, nullable=True),
        sa.Column("station_lng", sa.Float, nullable=True),
        sa.Column("station_label", sa.String(140), nullable=True),
        sa.Column("doc_photo_key", sa.String(240), nullable=True),
        sa.Column("last_seen_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_seen_lat", sa.Float, nullable=True),
        sa.Column("last_seen_lng", sa.Float, nullable=True),
        sa.Column("banned_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("banned_reason", sa.Text, nullable=True),
        sa.Column("suspended_until", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("user_id", name="uq_carrier_profiles_user_id"),
    )
    op.create_index("idx_carrier_profiles_status", "carrier_profiles", ["status"])
    op.create_index("idx_carrier_profiles_plan_tier", "carrier_profiles", ["plan_tier"])
    op.create_index("idx_carrier_profiles_banned_at", "carrier_profiles", ["banned_at"])
    op.create_index("idx_carrier_profiles_suspended_until", "carrier_profiles", ["suspended_until"])
    op.create_index("idx_carrier_profiles_last_seen_at", "carrier_profiles", ["last_seen_at"])
    op.create_index("idx_carrier_profiles_last_seen_pos", "carrier_profiles", ["last_seen_lat", "last_seen_lng"])
    op.create_index("idx_carrier_profiles_station", "carrier_profiles", ["station_lat", "station_lng"])

    op.create_table(
        "carrier_vehicles",
        sa.Column("id", sa.String, primary_key=True),
        sa.Column(
            "carrier_id", sa.String,
            sa.ForeignKey("carrier_profiles.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("type", sa.String(20), nullable=False),
        sa.Column("registration", sa.String(32), nullable=True),
        sa.Column("photo_keys", sa.JSON, nullable=False, server_default="[]"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("idx_carrier_vehicles_carrier", "carrier_vehicles", ["carrier_id", "created_at"])
    op.create_index("idx_carrier_vehicles_type", "carrier_vehicles", ["type"])


def downgrade() -> None:
    op.drop_table("carrier_vehicles")
    op.drop_table("carrier_profiles")
