"""Initial schema: identities, rides, ride history and matches.

Revision ID: 001
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


revision = "001"
down_revision = None
branch_labels = None
depends_on = None

RIDE_KIND = sa.Enum("HOST", "RIDER", name="ridekind")
RIDE_STATUS = sa.Enum(
    "AVAILABLE", "MATCHED", "STARTED", "COMPLETED", "CANCELLED", name="ridestatus"
)
MATCH_STATUS = sa.Enum(
    "PENDING", "ACCEPTED", "REJECTED", "STARTED", name="matchstatus"
)


def upgrade() -> None:
    # ── identities ────────────────────────────────────────────────────
    op.create_table(
        "identities",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("otp", sa.String(6), nullable=False),
        sa.Column("verified", sa.Boolean, nullable=False, default=False),
        sa.Column("name", sa.String(120), nullable=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )

    # ── rides ─────────────────────────────────────────────────────────
    op.create_table(
        "rides",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "owner_id", sa.String(64), sa.ForeignKey("identities.id"), nullable=False
        ),
        sa.Column("kind", RIDE_KIND, nullable=False),
        sa.Column("origin_lat", sa.Float, nullable=False),
        sa.Column("origin_lng", sa.Float, nullable=False),
        sa.Column("origin_address", sa.String(255), nullable=True),
        sa.Column("origin_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("origin_cell", sa.String(20), nullable=True),
        sa.Column("destination_lat", sa.Float, nullable=False),
        sa.Column("destination_lng", sa.Float, nullable=False),
        sa.Column("destination_address", sa.String(255), nullable=True),
        sa.Column("destination_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("route", sa.JSON, nullable=False),
        sa.Column("seats_available", sa.Integer, nullable=True),
        sa.Column("price_per_seat", sa.Numeric(10, 2), nullable=True),
        sa.Column("status", RIDE_STATUS, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("idx_rides_kind_status", "rides", ["kind", "status"])
    op.create_index("idx_rides_owner", "rides", ["owner_id"])
    op.create_index("idx_rides_origin_cell", "rides", ["origin_cell"])
    op.create_index("idx_rides_created", "rides", ["created_at"])

    # ── identity_rides (rides-by-identity) ────────────────────────────
    op.create_table(
        "identity_rides",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "identity_id",
            sa.String(64),
            sa.ForeignKey("identities.id"),
            nullable=False,
        ),
        sa.Column("ride_id", sa.String(36), sa.ForeignKey("rides.id"), nullable=False),
        sa.Column("kind", RIDE_KIND, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        "idx_identity_rides_identity", "identity_rides", ["identity_id"]
    )

    # ── matches ───────────────────────────────────────────────────────
    op.create_table(
        "matches",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "rider_id", sa.String(64), sa.ForeignKey("identities.id"), nullable=False
        ),
        sa.Column(
            "host_id", sa.String(64), sa.ForeignKey("identities.id"), nullable=False
        ),
        sa.Column("ride_id", sa.String(36), sa.ForeignKey("rides.id"), nullable=False),
        sa.Column(
            "rider_ride_id", sa.String(36), sa.ForeignKey("rides.id"), nullable=True
        ),
        sa.Column("rider_origin_lat", sa.Float, nullable=True),
        sa.Column("rider_origin_lng", sa.Float, nullable=True),
        sa.Column("rider_destination_lat", sa.Float, nullable=True),
        sa.Column("rider_destination_lng", sa.Float, nullable=True),
        sa.Column("host_origin_lat", sa.Float, nullable=False),
        sa.Column("host_origin_lng", sa.Float, nullable=False),
        sa.Column("host_destination_lat", sa.Float, nullable=False),
        sa.Column("host_destination_lng", sa.Float, nullable=False),
        sa.Column("score", sa.Float, nullable=True),
        sa.Column("status", MATCH_STATUS, nullable=False),
        sa.Column("active_key", sa.String(110), unique=True, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("idx_matches_rider", "matches", ["rider_id"])
    op.create_index("idx_matches_host", "matches", ["host_id"])
    op.create_index("idx_matches_ride", "matches", ["ride_id"])
    op.create_index("idx_matches_status", "matches", ["status"])


def downgrade() -> None:
    op.drop_table("matches")
    op.drop_table("identity_rides")
    op.drop_table("rides")
    op.drop_table("identities")
    op.execute("DROP TYPE IF EXISTS matchstatus")
    op.execute("DROP TYPE IF EXISTS ridestatus")
    op.execute("DROP TYPE IF EXISTS ridekind")
