# backend/tourbook/models/tables.py
"""
Tables.

JSON-valued columns (weekday lists, slot templates, date lists, option ids)
are stored as TEXT and decoded by the services layer.
"""

from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()
metadata = Base.metadata

BOOKING_STATUSES = ("Pending", "Confirmed", "Cancelled")
STOP_SALE_LOG_STATUSES = ("active", "removed")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Tours(Base):
    __tablename__ = 'tours'

    id = Column(Integer, primary_key=True)
    title = Column(Text, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True, server_default=text('1'))

    availability_type = Column(
        Enum('daily', 'date_range', 'specific_dates', name='availability_type'),
        nullable=False,
        default='daily',
        server_default=text("'daily'"),
    )
    available_days = Column(Text, nullable=False, default='[0, 1, 2, 3, 4, 5, 6]')
    slots = Column(Text, nullable=False, default='[{"time": "10:00", "capacity": 10}]')
    start_date = Column(Date)
    end_date = Column(Date)
    specific_dates = Column(Text, nullable=False, default='[]')
    blocked_dates = Column(Text, nullable=False, default='[]')

    created_at = Column(DateTime, nullable=False, default=_utcnow)
    updated_at = Column(DateTime, nullable=False, default=_utcnow, onupdate=_utcnow)

    options = relationship('TourOptions', back_populates='tour')
    bookings = relationship('Bookings', back_populates='tour')


class TourOptions(Base):
    __tablename__ = 'tour_options'

    id = Column(Integer, primary_key=True)
    tour_id = Column(ForeignKey('tours.id', ondelete='CASCADE'), nullable=False, index=True)
    label = Column(Text, nullable=False)
    price = Column(Float, nullable=False, default=0.0)

    tour = relationship('Tours', back_populates='options')


class Bookings(Base):
    __tablename__ = 'bookings'
    __table_args__ = (
        CheckConstraint('guests >= 0', name='ck_bookings_guests'),
        Index('ix_bookings_tour_date', 'tour_id', 'date'),
    )

    id = Column(Integer, primary_key=True)
    tour_id = Column(ForeignKey('tours.id'), nullable=False)
    option_id = Column(ForeignKey('tour_options.id'))

    date = Column(Date, nullable=False)
    time = Column(Text, nullable=False)

    adult_guests = Column(Integer, nullable=False, default=1)
    child_guests = Column(Integer, nullable=False, default=0)
    infant_guests = Column(Integer, nullable=False, default=0)
    guests = Column(Integer, nullable=False)

    status = Column(
        Enum(*BOOKING_STATUSES, name='booking_status'),
        nullable=False,
        default='Confirmed',
    )
    total_price = Column(Float)
    customer_email = Column(Text)
    cancel_reason = Column(Text)

    created_at = Column(DateTime, nullable=False, default=_utcnow)
    updated_at = Column(DateTime, nullable=False, default=_utcnow, onupdate=_utcnow)

    tour = relationship('Tours', back_populates='bookings')


class AvailabilityDays(Base):
    __tablename__ = 'availability_days'
    __table_args__ = (
        UniqueConstraint('tour_id', 'date', name='uq_availability_days_tour_date'),
    )

    id = Column(Integer, primary_key=True)
    tour_id = Column(ForeignKey('tours.id', ondelete='CASCADE'), nullable=False, index=True)
    date = Column(Date, nullable=False, index=True)
    stop_sale = Column(Boolean, nullable=False, default=False)
    stop_sale_reason = Column(Text)
    notes = Column(Text)

    created_at = Column(DateTime, nullable=False, default=_utcnow)
    updated_at = Column(DateTime, nullable=False, default=_utcnow, onupdate=_utcnow)

    slots = relationship(
        'AvailabilitySlots',
        back_populates='day',
        order_by='AvailabilitySlots.position',
        cascade='all, delete-orphan',
    )


class AvailabilitySlots(Base):
    __tablename__ = 'availability_slots'
    __table_args__ = (
        UniqueConstraint('day_id', 'time', name='uq_availability_slots_day_time'),
        CheckConstraint('booked >= 0', name='ck_availability_slots_booked'),
        CheckConstraint('capacity >= 0', name='ck_availability_slots_capacity'),
    )

    id = Column(Integer, primary_key=True)
    day_id = Column(ForeignKey('availability_days.id', ondelete='CASCADE'), nullable=False)
    position = Column(Integer, nullable=False, default=0)
    time = Column(Text, nullable=False)
    capacity = Column(Integer, nullable=False, default=10)
    booked = Column(Integer, nullable=False, default=0)
    blocked = Column(Boolean, nullable=False, default=False)
    block_reason = Column(Text)
    extra_capacity = Column(Integer, nullable=False, default=0)
    price = Column(Float)

    day = relationship('AvailabilityDays', back_populates='slots')


class StopSales(Base):
    __tablename__ = 'stop_sales'
    __table_args__ = (
        UniqueConstraint(
            'tour_id', 'start_date', 'end_date', 'option_ids',
            name='uq_stop_sales_tour_range_options',
        ),
        CheckConstraint('start_date <= end_date', name='ck_stop_sales_range'),
    )

    id = Column(Integer, primary_key=True)
    tour_id = Column(ForeignKey('tours.id', ondelete='CASCADE'), nullable=False, index=True)
    # Canonical JSON: sorted list of option id strings, '[]' = all options
    option_ids = Column(Text, nullable=False, default='[]')
    start_date = Column(Date, nullable=False, index=True)
    end_date = Column(Date, nullable=False, index=True)
    reason = Column(Text)

    created_at = Column(DateTime, nullable=False, default=_utcnow)
    updated_at = Column(DateTime, nullable=False, default=_utcnow, onupdate=_utcnow)


class StopSaleLogs(Base):
    __tablename__ = 'stop_sale_logs'

    id = Column(Integer, primary_key=True)
    tour_id = Column(ForeignKey('tours.id', ondelete='CASCADE'), nullable=False, index=True)
    stop_sale_id = Column(Integer, index=True)
    option_id = Column(Text)
    date_from = Column(Date, nullable=False)
    date_to = Column(Date, nullable=False)
    reason = Column(Text, nullable=False, default='')
    applied_by = Column(Text, nullable=False)
    applied_at = Column(DateTime, nullable=False, default=_utcnow)
    removed_by = Column(Text)
    removed_at = Column(DateTime)
    status = Column(
        Enum(*STOP_SALE_LOG_STATUSES, name='stop_sale_log_status'),
        nullable=False,
        default='active',
        index=True,
    )
