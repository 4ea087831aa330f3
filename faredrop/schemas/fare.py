from typing import Optional

from pydantic import BaseModel


class PriceResult(BaseModel):
    """Normalized cheapest offer returned by the quote provider."""

    price: float
    currency: str
    airline: Optional[str] = None
    flight_number: Optional[str] = None
    duration: Optional[str] = None
    stops: Optional[int] = None
