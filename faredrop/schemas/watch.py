from datetime import date, datetime
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, StrictFloat, StrictInt
from pydantic.alias_generators import to_camel

# JSON numbers only, booleans and numeric strings are rejected
Threshold = Union[StrictFloat, StrictInt]


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class WatchCreate(CamelModel):
    """
    Body of ``POST /watches``.

    Everything is optional here so that missing fields are reported
    together by the repository with a ``required`` list.
    """

    origin: Optional[str] = None
    destination: Optional[str] = None
    departure_date: Optional[date] = None
    return_date: Optional[date] = None
    price_threshold: Optional[Threshold] = None
    currency: Optional[str] = None


class WatchUpdate(CamelModel):
    price_threshold: Optional[Threshold] = None
    departure_date: Optional[date] = None
    return_date: Optional[date] = None
    is_active: Optional[bool] = None


class WatchOut(CamelModel):
    watch_id: str
    user_id: str
    origin: str
    destination: str
    departure_date: date
    return_date: Optional[date] = None
    price_threshold: float
    currency: str
    is_active: bool
    last_price: Optional[float] = None
    last_checked_at: Optional[datetime] = None
    last_alert_sent: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class WatchList(CamelModel):
    watches: list[WatchOut]


class FlightDetails(CamelModel):
    airline: Optional[str] = None
    flight_number: Optional[str] = None
    duration: Optional[str] = None
    stops: Optional[int] = None


class PriceSnapshotOut(CamelModel):
    watch_id: str
    timestamp: datetime
    price: float
    currency: str
    source: str
    flight_details: FlightDetails


class PriceHistory(CamelModel):
    snapshots: list[PriceSnapshotOut]
    count: int
