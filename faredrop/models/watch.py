import uuid

from sqlalchemy import (Boolean, Column, Date, Float, Index, Integer,
                        String)

from faredrop.core.config import settings
from faredrop.core.constants import DEFAULT_CURRENCY, SNAPSHOT_SOURCE
from faredrop.core.db import Base, UTCDateTime, utcnow


class Watch(Base):
    __tablename__ = settings.watches_table
    __table_args__ = (
        Index('ix_watch_active_updated', 'is_active', 'updated_at'),
    )

    user_id = Column(String(255), primary_key=True)
    watch_id = Column(
        String(36),
        primary_key=True,
        unique=True,
        default=lambda: str(uuid.uuid4()),
    )
    origin = Column(String(3), nullable=False)
    destination = Column(String(3), nullable=False)
    departure_date = Column(Date, nullable=False)
    return_date = Column(Date, nullable=True)
    price_threshold = Column(Float, nullable=False)
    currency = Column(String(3), nullable=False, default=DEFAULT_CURRENCY)
    is_active = Column(Boolean, nullable=False, default=True)

    last_price = Column(Float, nullable=True)
    last_checked_at = Column(UTCDateTime, nullable=True)
    last_alert_sent = Column(UTCDateTime, nullable=True)

    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime, nullable=False, default=utcnow)

    def __repr__(self):
        return (
            f'<Watch {self.watch_id} {self.origin}->{self.destination} '
            f'{self.departure_date} <= {self.price_threshold}>'
        )


class PriceSnapshot(Base):
    __tablename__ = settings.snapshots_table

    watch_id = Column(String(36), primary_key=True)
    timestamp = Column(UTCDateTime, primary_key=True, default=utcnow)
    price = Column(Float, nullable=False)
    currency = Column(String(3), nullable=False)
    source = Column(String(32), nullable=False, default=SNAPSHOT_SOURCE)
    airline = Column(String(16), nullable=True)
    flight_number = Column(String(16), nullable=True)
    duration = Column(String(32), nullable=True)
    stops = Column(Integer, nullable=True)
    expires_at = Column(UTCDateTime, nullable=False, index=True)

    @property
    def flight_details(self) -> dict:
        return {
            'airline': self.airline,
            'flight_number': self.flight_number,
            'duration': self.duration,
            'stops': self.stops,
        }
