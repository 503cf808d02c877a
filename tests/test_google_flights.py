"""
Tests for the Google Flights page extractor and its parsing helpers.
"""
from unittest.mock import AsyncMock, MagicMock

import pytest
from playwright.async_api import TimeoutError as PlaywrightTimeout

from farewatch.exceptions import NoResultsFound, StaleDateError, TransientExtractionFault
from farewatch.scrapers.google_flights import (
    GoogleFlightsExtractor,
    parse_price,
    parse_row,
    parse_stop_details,
    parse_time,
)

URL = "https://www.google.com/travel/flights/search?tfs=abc___________Def"

RAW_ROW = {
    "departure": "Horário de partida: 08:15.",
    "arrival": "Horário de chegada: 22:40.",
    "duration": "14 h 25 min",
    "airline": "TAP Air Portugal",
    "stops": "1 parada",
    "price": "1.834 Reais brasileiros",
    "emissions": "612 kg CO2e",
    "stopLabel": "Parada (1 de 1) de 2 h 10 min no aeroporto Aeroporto de Lisboa, em Lisboa.",
    "stopAirport": "LIS",
}

SEARCH = {"origin": "São Paulo", "destination": "Paris", "date": "sex., 26 de set."}


def make_page(content="<html>resultados</html>", rows=None, search=SEARCH, row_selector_ok=True):
    page = MagicMock()
    page.goto = AsyncMock()
    page.content = AsyncMock(return_value=content)
    page.query_selector = AsyncMock(return_value=None)
    if row_selector_ok:
        page.wait_for_selector = AsyncMock()
    else:
        page.wait_for_selector = AsyncMock(side_effect=PlaywrightTimeout("no rows"))
    page.evaluate = AsyncMock(side_effect=[rows if rows is not None else [RAW_ROW], search])
    return page


def make_extractor():
    return GoogleFlightsExtractor(currency="BRL", max_quotes=4, page_timeout_ms=1000, row_timeout_ms=10)


class TestParsing:
    def test_parse_time(self):
        assert parse_time("Horário de partida: 08:15.") == "08:15"
        assert parse_time(None) == "N/A"
        assert parse_time("sem horário") == "N/A"

    def test_parse_price_with_thousands_separator(self):
        assert parse_price("1.834 Reais brasileiros") == 1834
        assert parse_price("R$ 2,450") == 2450

    def test_parse_price_missing(self):
        assert parse_price(None) == 0
        assert parse_price("Preço indisponível") == 0

    def test_parse_stop_details_portuguese(self):
        details = parse_stop_details(RAW_ROW["stopLabel"], "LIS")
        assert len(details) == 1
        assert details[0].airport == "LIS"
        assert details[0].airport_name == "Aeroporto de Lisboa"
        assert details[0].duration == "2 h 10 min"

    def test_parse_stop_details_english(self):
        label = "Layover (1 of 1) is a 1 hr 5 min layover at Lisbon Airport in Lisbon."
        details = parse_stop_details(label, None)
        assert details[0].airport == "N/A"
        assert details[0].airport_name == "Lisbon Airport"
        assert details[0].duration == "1 hr 5 min"

    def test_parse_stop_details_direct(self):
        assert parse_stop_details(None, None) == []

    def test_parse_row(self):
        quote = parse_row(RAW_ROW)
        assert quote.departure_time == "08:15"
        assert quote.arrival_time == "22:40"
        assert quote.airline == "TAP Air Portugal"
        assert quote.price == 1834
        assert quote.stop_details[0].to_dict() == {
            "airport": "LIS",
            "airport_name": "Aeroporto de Lisboa",
            "duration": "2 h 10 min",
        }

    def test_parse_row_defaults(self):
        quote = parse_row({})
        assert quote.price == 0
        assert quote.airline == "N/A"
        assert quote.emissions == "N/A"


class TestExtract:
    @pytest.mark.asyncio
    async def test_successful_extraction(self):
        page = make_page()
        result = await make_extractor().extract(page, URL)

        assert result.origin == "São Paulo"
        assert result.destination == "Paris"
        assert result.date == "sex., 26 de set."
        assert result.prices == [1834]
        page.goto.assert_awaited_once()
        assert page.goto.await_args.args[0] == URL + "&curr=BRL"

    @pytest.mark.asyncio
    async def test_row_limit_passed_to_page(self):
        page = make_page()
        await make_extractor().extract(page, URL)
        selector, limit = page.evaluate.await_args_list[0].args[1]
        assert selector == GoogleFlightsExtractor.ROW_SELECTORS[0]
        assert limit == 4

    @pytest.mark.asyncio
    async def test_load_timeout_is_transient(self):
        page = make_page()
        page.goto = AsyncMock(side_effect=PlaywrightTimeout("slow"))
        with pytest.raises(TransientExtractionFault):
            await make_extractor().extract(page, URL)

    @pytest.mark.asyncio
    async def test_stale_date(self):
        page = make_page(content="<div>A data já passou</div>")
        with pytest.raises(StaleDateError):
            await make_extractor().extract(page, URL)

    @pytest.mark.asyncio
    async def test_captcha_is_transient(self):
        page = make_page()
        page.query_selector = AsyncMock(return_value=MagicMock())
        with pytest.raises(TransientExtractionFault):
            await make_extractor().extract(page, URL)

    @pytest.mark.asyncio
    async def test_no_results_message(self):
        page = make_page(content="<p>Nenhum voo encontrado</p>", row_selector_ok=False)
        with pytest.raises(NoResultsFound):
            await make_extractor().extract(page, URL)

    @pytest.mark.asyncio
    async def test_missing_rows_without_message_is_transient(self):
        page = make_page(row_selector_ok=False)
        with pytest.raises(TransientExtractionFault):
            await make_extractor().extract(page, URL)

    @pytest.mark.asyncio
    async def test_empty_rows_is_transient(self):
        page = make_page(rows=[])
        with pytest.raises(TransientExtractionFault):
            await make_extractor().extract(page, URL)

    @pytest.mark.asyncio
    async def test_missing_search_inputs_is_transient(self):
        page = make_page(search=None)
        with pytest.raises(TransientExtractionFault):
            await make_extractor().extract(page, URL)
