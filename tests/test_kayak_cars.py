"""
Tests for the Kayak car-rental extractor.
"""
from unittest.mock import AsyncMock, MagicMock

import pytest
from playwright.async_api import TimeoutError as PlaywrightTimeout

from farewatch.exceptions import NoResultsFound, TransientExtractionFault
from farewatch.scrapers.kayak_cars import (
    KayakCarExtractor,
    build_kayak_url,
    clean_vehicle_title,
    parse_brl_price,
)

URL = "https://www.kayak.com.br/cars/GRU/2025-09-26/2025-09-30?sort=price_a"


def make_page(raw=None, selector_ok=True):
    page = MagicMock()
    page.goto = AsyncMock()
    if selector_ok:
        page.wait_for_selector = AsyncMock()
    else:
        page.wait_for_selector = AsyncMock(side_effect=PlaywrightTimeout("no results"))
    page.evaluate = AsyncMock(return_value=raw)
    return page


class TestHelpers:
    def test_build_kayak_url(self):
        assert build_kayak_url("gru", "2025-09-26", "2025-09-30") == URL

    def test_parse_brl_price(self):
        assert parse_brl_price("Total R$ 1.234,56 por 4 dias") == 1234.56
        assert parse_brl_price("R$512") == 512.0

    def test_parse_brl_price_missing(self):
        assert parse_brl_price("Preço indisponível") is None
        assert parse_brl_price("") is None

    def test_clean_vehicle_title(self):
        assert clean_vehicle_title("Tipo de veículo: Fiat Mobi ou similar") == "Fiat Mobi ou similar"
        assert clean_vehicle_title("Vehicle type: Compact") == "Compact"
        assert clean_vehicle_title("") == ""


class TestExtract:
    @pytest.mark.asyncio
    async def test_cheapest_offer(self):
        page = make_page(raw={"alt": "Tipo de veículo: Renault Kwid", "text": "Renault Kwid R$ 489,90 total"})
        quote = await KayakCarExtractor(result_timeout_ms=10).extract(page, URL)

        assert quote.title == "Renault Kwid"
        assert quote.price == 489.90
        assert quote.url == URL

    @pytest.mark.asyncio
    async def test_load_timeout_is_transient(self):
        page = make_page()
        page.goto = AsyncMock(side_effect=PlaywrightTimeout("slow"))
        with pytest.raises(TransientExtractionFault):
            await KayakCarExtractor().extract(page, URL)

    @pytest.mark.asyncio
    async def test_no_result_cards(self):
        page = make_page(selector_ok=False)
        with pytest.raises(NoResultsFound):
            await KayakCarExtractor(result_timeout_ms=10).extract(page, URL)

    @pytest.mark.asyncio
    async def test_unparseable_price_is_transient(self):
        page = make_page(raw={"alt": "Renault Kwid", "text": "Carregando..."})
        with pytest.raises(TransientExtractionFault):
            await KayakCarExtractor(result_timeout_ms=10).extract(page, URL)
