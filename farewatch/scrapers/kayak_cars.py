import logging
import re
from typing import Optional

from playwright.async_api import Page, TimeoutError as PlaywrightTimeout

from farewatch.exceptions import NoResultsFound, TransientExtractionFault
from farewatch.scrapers.contract import CarQuote

logger = logging.getLogger(__name__)

KAYAK_CARS_URL = "https://www.kayak.com.br/cars"

EXTRACT_CHEAPEST_JS = """
(selector) => {
    const el = document.querySelector(selector);
    if (!el) return null;
    const img = el.querySelector('img.js-image, img[alt]');
    return {alt: img?.getAttribute('alt') || '', text: el.textContent || ''};
}
"""

_BRL_RE = re.compile(r"R\$\s?([0-9.,]+)")
_TITLE_PREFIX_RE = re.compile(r"^(Vehicle type:|Tipo de veículo:)\s*", re.IGNORECASE)


def build_kayak_url(airport_code: str, start_date: str, end_date: str) -> str:
    """Kayak car search sorted by price, cheapest first. Dates are YYYY-MM-DD."""
    return f"{KAYAK_CARS_URL}/{airport_code.upper()}/{start_date}/{end_date}?sort=price_a"


def parse_brl_price(text: str) -> Optional[float]:
    """Parse "R$ 1.234,56" as 1234.56; None when no price is present."""
    match = _BRL_RE.search(text or "")
    if not match:
        return None
    number = match.group(1).rstrip(".,").replace(".", "").replace(",", ".")
    try:
        return float(number)
    except ValueError:
        return None


def clean_vehicle_title(alt: str) -> str:
    return _TITLE_PREFIX_RE.sub("", alt or "").strip()


class KayakCarExtractor:
    """Cheapest offer of a Kayak car search (results sorted by price)."""

    RESULT_SELECTORS = [".QYm5", "[data-resultid]"]

    def __init__(self, page_timeout_ms: int = 60000, result_timeout_ms: int = 30000):
        self.page_timeout_ms = page_timeout_ms
        self.result_timeout_ms = result_timeout_ms

    async def extract(self, page: Page, url: str) -> CarQuote:
        try:
            await page.goto(url, wait_until="networkidle", timeout=self.page_timeout_ms)
        except PlaywrightTimeout as e:
            raise TransientExtractionFault("Kayak page load timed out", url) from e

        selector = None
        for candidate in self.RESULT_SELECTORS:
            try:
                await page.wait_for_selector(candidate, timeout=self.result_timeout_ms)
                selector = candidate
                break
            except PlaywrightTimeout:
                continue

        if selector is None:
            raise NoResultsFound("No car rental results found", url)

        raw = await page.evaluate(EXTRACT_CHEAPEST_JS, selector)
        if not raw:
            raise NoResultsFound("No car rental results found", url)

        price = parse_brl_price(raw.get("text", ""))
        if not price:
            raise TransientExtractionFault("Could not parse car rental price", url)

        title = clean_vehicle_title(raw.get("alt", ""))
        logger.info(f"Cheapest car for {url}: {title or 'unknown'} R${price:.2f}")
        return CarQuote(title=title, price=price, url=url)
