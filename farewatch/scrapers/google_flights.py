import logging
import re
from typing import List, Optional

from playwright.async_api import Page, TimeoutError as PlaywrightTimeout

from farewatch.config import get_settings
from farewatch.exceptions import NoResultsFound, StaleDateError, TransientExtractionFault
from farewatch.scrapers.contract import ExtractionSuccess, Quote, StopDetail
from farewatch.utils.search_url import with_currency

logger = logging.getLogger(__name__)
settings = get_settings()


# Runs in the page. Returns raw labels/texts only; parsing happens in Python.
EXTRACT_ROWS_JS = """
([selector, limit]) => Array.from(document.querySelectorAll(selector)).slice(0, limit).map(row => {
    const first = (selectors) => {
        for (const sel of selectors) {
            const el = row.querySelector(sel);
            if (el) return el;
        }
        return null;
    };
    const text = (selectors) => first(selectors)?.textContent?.trim() || null;
    const label = (selectors) => first(selectors)?.getAttribute('aria-label') || null;
    return {
        departure: label(['.mv1WYe span[aria-label*="partida"]', '.mv1WYe span[aria-label*="Departure"]']),
        arrival: label(['.mv1WYe span[aria-label*="chegada"]', '.mv1WYe span[aria-label*="Arrival"]']),
        duration: text(['.gvkrdb', '[aria-label*="Duração total"]', '[aria-label*="Total duration"]']),
        airline: text(['.sSHqwe.tPgKwe span', '.Ir0Voe .sSHqwe']),
        stops: text(['.EfT7Ae span', '.EfT7Ae']),
        price: label(['.YMlIz.FpEdX span', '[aria-label*="Reais"]', '[aria-label*="reais"]'])
            || text(['.YMlIz.FpEdX span', '.YMlIz']),
        emissions: text(['.AdWm1c.lc3qH', '.AdWm1c']),
        stopLabel: label(['.sSHqwe.tPgKwe.ogfYpf[aria-label*="Parada"]', '.sSHqwe.tPgKwe.ogfYpf[aria-label*="Layover"]']),
        stopAirport: text(['.sSHqwe.tPgKwe.ogfYpf span[aria-label]']),
    };
})
"""

EXTRACT_SEARCH_JS = """
() => {
    const value = (selectors) => {
        for (const sel of selectors) {
            const el = document.querySelector(sel);
            if (el) return el.value || 'N/A';
        }
        return null;
    };
    const origin = value(['input[aria-label="De onde?"]', 'input[aria-label="Where from?"]']);
    const destination = value(['input[aria-label="Para onde?"]', 'input[aria-label="Where to?"]']);
    const date = value(['input.TP4Lpb.eoY5cb.j0Ppje[aria-label="Partida"]', 'input[aria-label="Partida"]', 'input[aria-label="Departure"]']);
    if (origin === null || destination === null || date === null) return null;
    return {origin, destination, date};
}
"""

_TIME_RE = re.compile(r"\d{1,2}:\d{2}")
_PRICE_RE = re.compile(r"\d[\d.,]*")
_STOP_PATTERNS = [
    re.compile(r"Parada \(\d+ de \d+\) de (.*?) no aeroporto (.*?), em"),
    re.compile(r"Layover \(\d+ of \d+\) is a (.*?) layover at (.*?) in"),
]


def parse_time(label: Optional[str]) -> str:
    if not label:
        return "N/A"
    match = _TIME_RE.search(label)
    return match.group(0) if match else "N/A"


def parse_price(label: Optional[str]) -> int:
    """Whole-currency price from an aria-label or text like "1.234 Reais brasileiros". 0 if none."""
    if not label:
        return 0
    match = _PRICE_RE.search(label)
    if not match:
        return 0
    digits = re.sub(r"[.,]", "", match.group(0))
    return int(digits) if digits else 0


def parse_stop_details(label: Optional[str], airport: Optional[str]) -> List[StopDetail]:
    if not label:
        return []
    for pattern in _STOP_PATTERNS:
        matches = pattern.findall(label)
        if matches:
            return [
                StopDetail(
                    airport=(airport or "N/A") if i == 0 else "N/A",
                    airport_name=name or "N/A",
                    duration=duration or "N/A",
                )
                for i, (duration, name) in enumerate(matches)
            ]
    return []


def parse_row(raw: dict) -> Quote:
    """Build a Quote from the raw values EXTRACT_ROWS_JS returns for one row."""
    return Quote(
        departure_time=parse_time(raw.get("departure")),
        arrival_time=parse_time(raw.get("arrival")),
        duration=raw.get("duration") or "N/A",
        airline=raw.get("airline") or "N/A",
        stops=raw.get("stops") or "N/A",
        price=parse_price(raw.get("price")),
        emissions=raw.get("emissions") or "N/A",
        stop_details=parse_stop_details(raw.get("stopLabel"), raw.get("stopAirport")),
    )


class GoogleFlightsExtractor:
    """
    Reads the top quotes of a Google Flights results page.

    Implements the extraction contract: returns ExtractionSuccess or raises
    NoResultsFound / StaleDateError / TransientExtractionFault. Page lifetime
    is owned by the caller.
    """

    # Result row selectors - multiple fallbacks for resilience against layout changes
    ROW_SELECTORS = [
        ".OgQvJf.nKlB3b",          # Primary: result row container
        "li.pIav2d",               # Fallback: result list item
        "li[class*='pIav2d']",     # Fallback: partial class match
        "[role='listitem']",       # ARIA-based
    ]

    CAPTCHA_SELECTORS = [
        "iframe[src*='recaptcha']",
        "#captcha",
        ".g-recaptcha",
    ]

    BLOCKED_PATTERNS = [
        "unusual traffic",
        "tráfego incomum",
        "automated requests",
        "verify you're not a robot",
    ]

    NO_RESULTS_PATTERNS = [
        "nenhum voo encontrado",
        "nenhum resultado",
        "no flights found",
        "no matching flights",
        "we couldn't find",
    ]

    # The page states explicitly that the searched date is over
    STALE_DATE_PATTERNS = [
        "a data já passou",
        "data de partida já passou",
        "datas no passado",
        "date has passed",
        "dates in the past",
    ]

    def __init__(
        self,
        currency: Optional[str] = None,
        max_quotes: Optional[int] = None,
        page_timeout_ms: Optional[int] = None,
        row_timeout_ms: int = 10000,
    ):
        self.currency = currency or settings.currency
        self.max_quotes = max_quotes or settings.max_quotes
        self.page_timeout_ms = page_timeout_ms or settings.page_timeout_ms
        self.row_timeout_ms = row_timeout_ms

    @staticmethod
    def _contains_any(content: str, patterns: List[str]) -> bool:
        return any(pattern in content for pattern in patterns)

    async def _detect_captcha(self, page: Page) -> bool:
        for selector in self.CAPTCHA_SELECTORS:
            try:
                if await page.query_selector(selector):
                    return True
            except Exception:
                continue
        return False

    async def _wait_for_rows(self, page: Page) -> Optional[str]:
        """Return the first row selector that shows up, or None."""
        for i, selector in enumerate(self.ROW_SELECTORS):
            # Primary selector gets the full wait, fallbacks a short one
            timeout = self.row_timeout_ms if i == 0 else 3000
            try:
                await page.wait_for_selector(selector, timeout=timeout)
                if i > 0:
                    logger.info(f"Result rows found via fallback selector {selector!r}")
                return selector
            except PlaywrightTimeout:
                continue
        return None

    async def extract(self, page: Page, url: str) -> ExtractionSuccess:
        target = with_currency(url, self.currency)

        try:
            await page.goto(target, wait_until="networkidle", timeout=self.page_timeout_ms)
        except PlaywrightTimeout as e:
            raise TransientExtractionFault(
                f"Page load timed out after {self.page_timeout_ms / 1000:.0f} seconds", url
            ) from e

        content = (await page.content()).lower()
        if self._contains_any(content, self.STALE_DATE_PATTERNS):
            raise StaleDateError("The searched date has already passed", url)

        if await self._detect_captcha(page) or self._contains_any(content, self.BLOCKED_PATTERNS):
            raise TransientExtractionFault("Captcha or rate limiting detected", url)

        row_selector = await self._wait_for_rows(page)
        if row_selector is None:
            content = (await page.content()).lower()
            if self._contains_any(content, self.STALE_DATE_PATTERNS):
                raise StaleDateError("The searched date has already passed", url)
            if self._contains_any(content, self.NO_RESULTS_PATTERNS):
                raise NoResultsFound("No flights found for this search", url)
            raise TransientExtractionFault(f"No flight results found for {url}", url)

        raw_rows = await page.evaluate(EXTRACT_ROWS_JS, [row_selector, self.max_quotes])
        if not raw_rows:
            raise TransientExtractionFault(f"Failed to extract flight information for {url}", url)

        quotes = [parse_row(raw) for raw in raw_rows]

        search = await page.evaluate(EXTRACT_SEARCH_JS)
        if not search:
            raise TransientExtractionFault(f"Failed to extract flight details for {url}", url)

        logger.info(
            f"Extracted {len(quotes)} quotes for {search['origin']} -> {search['destination']} "
            f"({search['date']}), prices: {[q.price for q in quotes]}"
        )

        return ExtractionSuccess(
            quotes=quotes,
            origin=search["origin"],
            destination=search["destination"],
            date=search["date"],
        )
