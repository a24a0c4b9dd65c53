"""Initial schema for trip patterns and stop times

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001_initial_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # ==========================================================================
    # TRIP PATTERNS (itinerary templates)
    # ==========================================================================
    op.execute("""
        CREATE TABLE trip_patterns (
            id SERIAL PRIMARY KEY,
            name VARCHAR(255),
            route_id VARCHAR(64)
        )
    """)

    # ==========================================================================
    # PATTERN STOPS
    # stop_sequence is user-edited: neither contiguous nor unique
    # ==========================================================================
    op.execute("""
        CREATE TABLE pattern_stops (
            id SERIAL PRIMARY KEY,
            pattern_id INTEGER NOT NULL REFERENCES trip_patterns(id),
            stop_id VARCHAR(64),
            stop_sequence INTEGER NOT NULL,
            default_travel_time INTEGER CHECK (default_travel_time >= 0),
            default_dwell_time INTEGER CHECK (default_dwell_time >= 0)
        )
    """)
    op.execute("CREATE INDEX ix_pattern_stops_pattern_id ON pattern_stops(pattern_id)")

    # ==========================================================================
    # TRIPS
    # ==========================================================================
    op.execute("""
        CREATE TABLE trips (
            id SERIAL PRIMARY KEY,
            pattern_id INTEGER NOT NULL REFERENCES trip_patterns(id),
            headsign VARCHAR(255)
        )
    """)
    op.execute("CREATE INDEX ix_trips_pattern_id ON trips(pattern_id)")

    # ==========================================================================
    # STOP TIMES (visit records)
    # No cascade: the reconciler deletes stop times explicitly
    # ==========================================================================
    op.execute("""
        CREATE TABLE stop_times (
            id SERIAL PRIMARY KEY,
            trip_id INTEGER NOT NULL REFERENCES trips(id),
            pattern_stop_id INTEGER NOT NULL REFERENCES pattern_stops(id),
            stop_sequence INTEGER NOT NULL CHECK (stop_sequence >= 0),
            arrival_time INTEGER CHECK (arrival_time >= 0),
            departure_time INTEGER CHECK (departure_time >= 0),
            stop_id VARCHAR(64)
        )
    """)
    op.execute("CREATE INDEX ix_stop_times_trip_id ON stop_times(trip_id)")
    op.execute("CREATE INDEX ix_stop_times_pattern_stop_id ON stop_times(pattern_stop_id)")


def downgrade() -> None:
    # Drop tables (reverse order of creation due to FK constraints)
    op.execute("DROP TABLE IF EXISTS stop_times")
    op.execute("DROP TABLE IF EXISTS trips")
    op.execute("DROP TABLE IF EXISTS pattern_stops")
    op.execute("DROP TABLE IF EXISTS trip_patterns")
