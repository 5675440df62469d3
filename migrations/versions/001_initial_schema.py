"""Initial schema: users, rides, ride memberships and loyalty records.

Revision ID: 001
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa


revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # ── users ─────────────────────────────────────────────────────────
    op.create_table(
        "users",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("email", sa.String(255), unique=True, nullable=False),
        sa.Column(
            "role",
            sa.Enum("DRIVER", "PASSENGER", "ADMIN", name="role"),
            nullable=False,
        ),
        sa.Column(
            "verification_status",
            sa.Enum("UNVERIFIED", "PENDING", "APPROVED", name="verificationstatus"),
            nullable=False,
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )

    # ── rides ─────────────────────────────────────────────────────────
    op.create_table(
        "rides",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "driver_id", sa.Integer, sa.ForeignKey("users.id"), nullable=False
        ),
        sa.Column("origin_name", sa.String(255), nullable=False),
        sa.Column("origin_lat", sa.Float, nullable=False),
        sa.Column("origin_lng", sa.Float, nullable=False),
        sa.Column("origin_cell", sa.String(20), nullable=True),
        sa.Column("destination_name", sa.String(255), nullable=False),
        sa.Column("destination_lat", sa.Float, nullable=False),
        sa.Column("destination_lng", sa.Float, nullable=False),
        sa.Column("departure_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "vehicle_category",
            sa.Enum(
                "CAR",
                "SEDAN",
                "HATCHBACK",
                "SUV",
                "EV",
                "BIKE",
                "SCOOTER",
                "OTHER",
                name="vehiclecategory",
            ),
            nullable=False,
        ),
        sa.Column("total_seats", sa.Integer, nullable=False),
        sa.Column("max_passengers", sa.Integer, nullable=False),
        sa.Column("available_seats", sa.Integer, nullable=False),
        sa.Column("estimated_fare", sa.Float, nullable=False),
        sa.Column(
            "status",
            sa.Enum(
                "UPCOMING",
                "ONGOING",
                "COMPLETED",
                "CLOSED",
                "CANCELLED",
                name="ridestatus",
            ),
            nullable=False,
        ),
        sa.Column("distance_km", sa.Float, nullable=True),
        sa.Column("duration_seconds", sa.Float, nullable=True),
        sa.Column("co2_emitted_kg", sa.Float, nullable=True),
        sa.Column("co2_saved_kg", sa.Float, nullable=True),
        sa.Column("points_awarded", sa.Boolean, nullable=False),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.CheckConstraint("available_seats >= 0", name="ck_rides_seats_nonneg"),
        sa.CheckConstraint(
            "max_passengers >= 1 AND max_passengers <= total_seats - 1",
            name="ck_rides_max_passengers",
        ),
    )
    op.create_index(
        "idx_rides_status_departure", "rides", ["status", "departure_time"]
    )
    op.create_index("idx_rides_origin_cell", "rides", ["origin_cell"])
    op.create_index("idx_rides_driver", "rides", ["driver_id"])

    # ── ride_memberships ──────────────────────────────────────────────
    op.create_table(
        "ride_memberships",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("ride_id", sa.Integer, sa.ForeignKey("rides.id"), nullable=False),
        sa.Column(
            "passenger_id", sa.Integer, sa.ForeignKey("users.id"), nullable=False
        ),
        sa.Column("pickup_name", sa.String(255), nullable=False),
        sa.Column("pickup_lat", sa.Float, nullable=False),
        sa.Column("pickup_lng", sa.Float, nullable=False),
        sa.Column("drop_name", sa.String(255), nullable=False),
        sa.Column("drop_lat", sa.Float, nullable=False),
        sa.Column("drop_lng", sa.Float, nullable=False),
        sa.Column("distance_km", sa.Float, nullable=False),
        sa.Column("fare_share", sa.Float, nullable=False),
        sa.Column(
            "status",
            sa.Enum(
                "REQUESTED",
                "ACCEPTED",
                "REJECTED",
                "COMPLETED",
                name="membershipstatus",
            ),
            nullable=False,
        ),
        sa.Column("verification_code", sa.String(12), nullable=True),
        sa.Column("code_expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("verified", sa.Boolean, nullable=False),
        sa.Column(
            "payment_status",
            sa.Enum(
                "PENDING",
                "SPLIT_PENDING",
                "PAID",
                "PAID_FULL",
                "CONFIRMED",
                name="paymentstatus",
            ),
            nullable=False,
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.UniqueConstraint(
            "ride_id", "passenger_id", name="uq_membership_passenger"
        ),
    )
    op.create_index("idx_memberships_ride", "ride_memberships", ["ride_id"])
    op.create_index(
        "idx_memberships_passenger", "ride_memberships", ["passenger_id"]
    )

    # ── loyalty_records ───────────────────────────────────────────────
    op.create_table(
        "loyalty_records",
        sa.Column(
            "user_id", sa.Integer, sa.ForeignKey("users.id"), primary_key=True
        ),
        sa.Column("points", sa.Integer, nullable=False),
        sa.Column("total_distance_km", sa.Float, nullable=False),
        sa.Column("total_co2_saved_kg", sa.Float, nullable=False),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.CheckConstraint("points >= 0", name="ck_loyalty_points_nonneg"),
    )


def downgrade() -> None:
    op.drop_table("loyalty_records")
    op.drop_table("ride_memberships")
    op.drop_table("rides")
    op.drop_table("users")
    op.execute("DROP TYPE IF EXISTS paymentstatus")
    op.execute("DROP TYPE IF EXISTS membershipstatus")
    op.execute("DROP TYPE IF EXISTS ridestatus")
    op.execute("DROP TYPE IF EXISTS vehiclecategory")
    op.execute("DROP TYPE IF EXISTS verificationstatus")
    op.execute("DROP TYPE IF EXISTS role")
