"""
Tests for Google Flights search URL helpers.
"""
from datetime import date

import pytest

from farewatch.exceptions import InvalidQueryFormat
from farewatch.utils import search_url

SAMPLE_URL = (
    "https://www.google.com/travel/flights/search?"
    "tfs=CBwQAhopEgoyMDI1LTA5LTI2ag0IAxIJL20vMDFweTg3cgwIAxIIL20vMDZnbXJAAUgBcAGCAQsI____________AZgBAg"
    "&tfu=EgoIABAAGAAgAigB"
)


class TestValidation:
    def test_sample_url_is_valid(self):
        assert search_url.is_valid(SAMPLE_URL)
        assert search_url.validate(SAMPLE_URL) == SAMPLE_URL

    @pytest.mark.parametrize("url", [
        "",
        "https://www.kayak.com.br/cars/GRU/2025-09-26/2025-09-30",
        "https://www.google.com/travel/flights/search?hl=pt-BR",
        "https://www.google.com/search?tfs=abc",
        "https://www.google.com/travel/flights/search?tfs=&x=1",
        "https://www.google.com/travel/flights/search?tfs",
        "not a url",
    ])
    def test_rejects_non_search_urls(self, url):
        assert not search_url.is_valid(url)
        with pytest.raises(InvalidQueryFormat):
            search_url.validate(url)

    def test_invalid_query_format_is_value_error(self):
        with pytest.raises(ValueError):
            search_url.validate("https://example.com")


class TestFillerNormalization:
    def test_sample_filler_count(self):
        assert search_url.filler_count(SAMPLE_URL) == 12

    @pytest.mark.parametrize("count", [11, 12])
    def test_normalize_sets_count(self, count):
        normalized = search_url.normalize(SAMPLE_URL, count)
        assert search_url.filler_count(normalized) == count

    @pytest.mark.parametrize("count", [11, 12])
    def test_normalize_is_idempotent(self, count):
        once = search_url.normalize(SAMPLE_URL, count)
        assert search_url.normalize(once, count) == once

    def test_normalize_default_is_eleven(self):
        assert search_url.filler_count(search_url.normalize(SAMPLE_URL)) == 11

    def test_normalize_short_run(self):
        short = SAMPLE_URL.replace("_" * 12, "_" * 10)
        assert search_url.filler_count(short) == 10
        assert search_url.filler_count(search_url.normalize(short, 12)) == 12

    def test_normalize_only_touches_token(self):
        normalized = search_url.normalize(SAMPLE_URL, 11)
        assert normalized.endswith("&tfu=EgoIABAAGAAgAigB")
        assert normalized.startswith("https://www.google.com/travel/flights/search?tfs=")

    def test_url_without_token(self):
        url = "https://www.google.com/travel/flights"
        assert search_url.normalize(url, 11) == url
        assert search_url.filler_count(url) == 0


class TestDateSubstitution:
    def test_token_contains_date(self):
        assert b"2025-09-26" in search_url.decoded_token(SAMPLE_URL)

    def test_substitute_changes_date(self):
        moved = search_url.substitute_date(SAMPLE_URL, "2025-09-26", "2025-10-03")
        assert moved != SAMPLE_URL
        decoded = search_url.decoded_token(moved)
        assert b"2025-10-03" in decoded
        assert b"2025-09-26" not in decoded

    def test_substitute_round_trip(self):
        moved = search_url.substitute_date(SAMPLE_URL, "2025-09-26", "2025-10-03")
        assert search_url.substitute_date(moved, "2025-10-03", "2025-09-26") == SAMPLE_URL

    def test_substitute_keeps_filler_run(self):
        moved = search_url.substitute_date(SAMPLE_URL, "2025-09-26", "2025-10-03")
        assert search_url.filler_count(moved) == 12

    def test_substitute_keeps_other_parameters(self):
        moved = search_url.substitute_date(SAMPLE_URL, "2025-09-26", "2025-10-03")
        assert moved.endswith("&tfu=EgoIABAAGAAgAigB")

    def test_missing_date_returns_url_unchanged(self):
        assert search_url.substitute_date(SAMPLE_URL, "2024-01-01", "2024-01-02") == SAMPLE_URL

    def test_no_token_returns_url_unchanged(self):
        url = "https://www.google.com/travel/flights?hl=pt-BR"
        assert search_url.substitute_date(url, "2025-09-26", "2025-10-03") == url


class TestCurrency:
    def test_appends_currency(self):
        assert search_url.with_currency(SAMPLE_URL, "BRL").endswith("&curr=BRL")

    def test_keeps_existing_currency(self):
        url = SAMPLE_URL + "&curr=USD"
        assert search_url.with_currency(url, "BRL") == url


class TestDisplayDate:
    def test_portuguese_date(self):
        assert search_url.parse_display_date("sex., 26 de set.", today=date(2025, 9, 1)) == date(2025, 9, 26)

    def test_english_date(self):
        assert search_url.parse_display_date("Fri, Sep 26", today=date(2025, 9, 1)) == date(2025, 9, 26)

    def test_past_day_rolls_to_next_year(self):
        assert search_url.parse_display_date("qua., 7 de jan.", today=date(2025, 12, 20)) == date(2026, 1, 7)

    def test_invalid_date(self):
        with pytest.raises(ValueError):
            search_url.parse_display_date("N/A")

    def test_date_window(self):
        window = search_url.date_window(date(2025, 9, 26), 2)
        assert window == [
            date(2025, 9, 24),
            date(2025, 9, 25),
            date(2025, 9, 26),
            date(2025, 9, 27),
            date(2025, 9, 28),
        ]

    def test_date_window_zero(self):
        assert search_url.date_window(date(2025, 9, 26), 0) == [date(2025, 9, 26)]

    def test_token_date(self):
        assert search_url.token_date(SAMPLE_URL) == date(2025, 9, 26)
        moved = search_url.substitute_date(SAMPLE_URL, "2025-09-26", "2030-01-15")
        assert search_url.token_date(moved) == date(2030, 1, 15)
        assert search_url.token_date("https://www.google.com/travel/flights") is None
