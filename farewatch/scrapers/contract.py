"""
Data shapes exchanged between page extractors and the orchestrator.

An extractor gets an open page and a URL and either returns an
ExtractionSuccess or raises one of the ExtractionError signals from
farewatch.exceptions (NoResultsFound, StaleDateError,
TransientExtractionFault). It never opens or closes browser sessions itself.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Protocol

from playwright.async_api import Page


@dataclass
class StopDetail:
    """A layover of a quote."""
    airport: str
    airport_name: str
    duration: str

    def to_dict(self) -> dict:
        return {
            "airport": self.airport,
            "airport_name": self.airport_name,
            "duration": self.duration,
        }


@dataclass
class Quote:
    """A single flight option as displayed on the results page."""
    departure_time: str
    arrival_time: str
    duration: str
    airline: str
    stops: str
    price: int
    emissions: str = "N/A"
    stop_details: List[StopDetail] = field(default_factory=list)

    def __post_init__(self):
        if self.price < 0:
            raise ValueError(f"Quote price must be >= 0, got {self.price}")


@dataclass
class ExtractionSuccess:
    """Quotes plus the search the page echoed back."""
    quotes: List[Quote]
    origin: str = "N/A"
    destination: str = "N/A"
    date: str = "N/A"

    @property
    def prices(self) -> List[int]:
        return [q.price for q in self.quotes]

    @property
    def lowest_price(self) -> Optional[int]:
        return min(self.prices) if self.quotes else None


@dataclass
class CarQuote:
    """Cheapest car-rental offer of a Kayak search."""
    title: str
    price: float
    url: str


class FlightExtractor(Protocol):
    async def extract(self, page: Page, url: str) -> ExtractionSuccess:
        ...


class CarExtractor(Protocol):
    async def extract(self, page: Page, url: str) -> CarQuote:
        ...
