"""
SQLAlchemy ORM models for trip patterns and stop times.

Mirrors alembic/versions/001_initial_schema.py. Foreign keys carry no
cascade rules: stop times are deleted explicitly by the reconciler.
"""

from sqlalchemy import Column, ForeignKey, Integer, String
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class PatternORM(Base):
    """An itinerary template (trip pattern)."""

    __tablename__ = "trip_patterns"

    id = Column(Integer, primary_key=True)
    name = Column(String(255))
    route_id = Column(String(64))


class PatternStopORM(Base):
    """One point of a trip pattern."""

    __tablename__ = "pattern_stops"

    id = Column(Integer, primary_key=True)
    pattern_id = Column(Integer, ForeignKey("trip_patterns.id"), nullable=False, index=True)
    stop_id = Column(String(64))
    stop_sequence = Column(Integer, nullable=False)
    default_travel_time = Column(Integer)
    default_dwell_time = Column(Integer)


class TripORM(Base):
    """A trip following a pattern."""

    __tablename__ = "trips"

    id = Column(Integer, primary_key=True)
    pattern_id = Column(Integer, ForeignKey("trip_patterns.id"), nullable=False, index=True)
    headsign = Column(String(255))


class StopTimeORM(Base):
    """A trip's recorded visit at one pattern stop."""

    __tablename__ = "stop_times"

    id = Column(Integer, primary_key=True)
    trip_id = Column(Integer, ForeignKey("trips.id"), nullable=False, index=True)
    pattern_stop_id = Column(Integer, ForeignKey("pattern_stops.id"), nullable=False)
    stop_sequence = Column(Integer, nullable=False)
    arrival_time = Column(Integer)
    departure_time = Column(Integer)
    stop_id = Column(String(64))
