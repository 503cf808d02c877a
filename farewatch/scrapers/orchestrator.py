"""
Resilient quote fetching on top of the page extractors.

Google Flights is picky about the filler-run length inside the tfs token and
occasionally renders rows before their prices have loaded. The orchestrator
hides both: it tries the filler-count variants in a fixed order, retries once
when the price spread looks implausible, bounds every attempt with a hard
timeout, and always hands the page back to the pool.
"""

import asyncio
import logging
from dataclasses import dataclass, field, replace
from typing import Any, List, Optional, Sequence, Tuple

from farewatch.config import get_settings
from farewatch.exceptions import (
    InfrastructureFault,
    NoResultsFound,
    StaleDateError,
    TransientExtractionFault,
)
from farewatch.scrapers.browser import ArtifactStore, BrowserPool
from farewatch.scrapers.contract import CarQuote, ExtractionSuccess, Quote
from farewatch.scrapers.google_flights import GoogleFlightsExtractor
from farewatch.scrapers.kayak_cars import KayakCarExtractor, build_kayak_url
from farewatch.utils import search_url

logger = logging.getLogger(__name__)
settings = get_settings()


@dataclass
class ScrapeOutcome:
    """Result of one orchestrated fetch for a search URL."""
    quotes: List[Quote] = field(default_factory=list)
    url: str = ""  # The variant that produced the quotes
    origin: str = "N/A"
    destination: str = "N/A"
    date: str = "N/A"
    stale: bool = False
    rechecked: bool = False

    @property
    def lowest_price(self) -> Optional[int]:
        return min(q.price for q in self.quotes) if self.quotes else None


def is_implausible(prices: Sequence[int], floor: float, ratio: float) -> bool:
    """
    True when a price set looks like it was read before the page finished loading.

    Needs at least two prices. The cheapest is implausible when it is below
    `floor` outright, or below `ratio` times the most expensive one.
    """
    if len(prices) < 2:
        return False
    lowest, highest = min(prices), max(prices)
    return lowest < floor or lowest < ratio * highest


def plan_variants(url: str) -> Tuple[str, str, int]:
    """
    Filler-count variants to try for `url`, in order.

    Returns (first, second, reported) where `reported` is the index of the
    attempt whose error is raised when both fail.
    """
    count = search_url.filler_count(url)
    if count < 11:
        return search_url.normalize(url, 11), search_url.normalize(url, 12), 1
    if count == 11:
        return url, search_url.normalize(url, 12), 0
    return url, search_url.normalize(url, 11), 0


def _with_positive_prices(success: ExtractionSuccess) -> ExtractionSuccess:
    return replace(success, quotes=[q for q in success.quotes if q.price > 0])


class ScrapeOrchestrator:
    def __init__(
        self,
        pool: BrowserPool,
        extractor: Optional[Any] = None,
        car_extractor: Optional[Any] = None,
        artifacts: Optional[ArtifactStore] = None,
        aggregator: Optional[Any] = None,
        attempt_timeout: Optional[float] = None,
        price_floor: Optional[float] = None,
        price_ratio: Optional[float] = None,
        retry_delay: Optional[float] = None,
    ):
        self.pool = pool
        self.extractor = extractor or GoogleFlightsExtractor()
        self.car_extractor = car_extractor or KayakCarExtractor()
        self.artifacts = artifacts or ArtifactStore()
        self.aggregator = aggregator
        self.attempt_timeout = attempt_timeout or settings.attempt_timeout_seconds
        self.price_floor = settings.implausible_price_floor if price_floor is None else price_floor
        self.price_ratio = settings.implausible_price_ratio if price_ratio is None else price_ratio
        self.retry_delay = settings.plausibility_retry_delay_seconds if retry_delay is None else retry_delay

    async def _attempt(self, extractor: Any, url: str, label: str):
        """
        One extraction on a fresh page, bounded by the attempt timeout.

        Failed pages are captured as artifacts, except a stale date. Unknown
        faults surface as TransientExtractionFault. InfrastructureFault from
        the pool propagates untouched.
        """
        async with self.pool.page() as page:
            try:
                return await asyncio.wait_for(extractor.extract(page, url), timeout=self.attempt_timeout)
            except StaleDateError:
                raise
            except NoResultsFound:
                await self.artifacts.capture(page, f"{label}_no_results")
                raise
            except asyncio.TimeoutError as e:
                await self.artifacts.capture(page, f"{label}_timeout")
                raise TransientExtractionFault(
                    f"Extraction exceeded {self.attempt_timeout:.0f}s", url
                ) from e
            except TransientExtractionFault:
                await self.artifacts.capture(page, label)
                raise
            except Exception as e:
                await self.artifacts.capture(page, f"{label}_unknown")
                raise TransientExtractionFault(f"Unexpected extraction error: {e}", url) from e

    async def _extract_checked(self, url: str, label: str) -> Tuple[ExtractionSuccess, bool]:
        """Extract, and re-extract once after a delay if the prices look half-loaded."""
        first = await self._attempt(self.extractor, url, label)
        if not is_implausible(first.prices, self.price_floor, self.price_ratio):
            return self._require_quotes(_with_positive_prices(first), url), False

        logger.info(
            f"Implausible prices {first.prices} for {label}, "
            f"re-checking in {self.retry_delay:.0f}s"
        )
        first = _with_positive_prices(first)
        await asyncio.sleep(self.retry_delay)

        try:
            second = _with_positive_prices(await self._attempt(self.extractor, url, f"{label}_recheck"))
        except (StaleDateError, InfrastructureFault):
            raise
        except Exception as e:
            logger.warning(f"Re-check failed for {label}, keeping first result: {e}")
            return self._require_quotes(first, url), True

        if second.quotes:
            logger.info(f"Re-check for {label} returned prices {second.prices}")
            return second, True
        return self._require_quotes(first, url), True

    @staticmethod
    def _require_quotes(success: ExtractionSuccess, url: str) -> ExtractionSuccess:
        if not success.quotes:
            raise TransientExtractionFault("No quote carried a price", url)
        return success

    async def fetch_quotes(self, url: str, trip_id: Optional[int] = None) -> ScrapeOutcome:
        """
        Fetch quotes for a search URL, trying filler-count variants in order.

        Raises InvalidQueryFormat before any browser work for malformed URLs.
        A stale date deletes the trip (when `trip_id` and an aggregator are
        given) and yields an empty, stale outcome instead of an error.
        """
        search_url.validate(url)
        first, second, reported = plan_variants(url)
        label = f"trip{trip_id}" if trip_id is not None else "search"

        errors: List[Exception] = []
        for index, variant in enumerate((first, second)):
            count = search_url.filler_count(variant)
            try:
                success, rechecked = await self._extract_checked(variant, f"{label}_f{count}")
            except StaleDateError as e:
                logger.info(f"Stale date for {label}: {e}")
                if trip_id is not None and self.aggregator is not None:
                    self.aggregator.delete_trip(trip_id)
                return ScrapeOutcome(url=url, stale=True)
            except InfrastructureFault:
                raise
            except Exception as e:
                logger.warning(f"Attempt with {count} filler chars failed for {label}: {e}")
                errors.append(e)
                continue

            if index > 0:
                logger.info(f"Alternate variant ({count} filler chars) succeeded for {label}")
            return ScrapeOutcome(
                quotes=success.quotes,
                url=variant,
                origin=success.origin,
                destination=success.destination,
                date=success.date,
                rechecked=rechecked,
            )

        raise errors[reported]

    async def fetch_car_quote(self, airport_code: str, start_date: str, end_date: str,
                              rental_id: Optional[int] = None) -> CarQuote:
        """Cheapest car offer for the search, in a single bounded attempt."""
        url = build_kayak_url(airport_code, start_date, end_date)
        label = f"car{rental_id}" if rental_id is not None else "car_search"
        return await self._attempt(self.car_extractor, url, label)
