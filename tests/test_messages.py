"""
Tests for localized alert texts.
"""
from types import SimpleNamespace

from farewatch.services.messages import (
    Language,
    MessageKey,
    format_car_alert,
    format_trip_alert,
    translate,
)
from farewatch.services.price_history import Extremum, decide

TRIP = SimpleNamespace(
    origin="São Paulo",
    destination="Lisboa",
    date="sex., 26 de set.",
    url="https://www.google.com/travel/flights/search?tfs=abc",
)

RENTAL = SimpleNamespace(
    airport_code="GRU",
    start_date="2025-09-26",
    end_date="2025-09-30",
    title="Renault Kwid",
    url="https://www.kayak.com.br/cars/GRU/2025-09-26/2025-09-30?sort=price_a",
)


def flight(price, airline="LATAM"):
    return SimpleNamespace(
        price=price,
        airline=airline,
        departure_time="08:00",
        arrival_time="11:30",
        duration="3 h 30 min",
        stops="Direto",
    )


class TestLanguage:
    def test_from_code(self):
        assert Language.from_code("pt-BR") == Language.PT
        assert Language.from_code("pt_br") == Language.PT
        assert Language.from_code("EN") == Language.EN

    def test_unknown_code_falls_back_to_english(self):
        assert Language.from_code("de") == Language.EN
        assert Language.from_code(None) == Language.EN

    def test_every_key_has_english_text(self):
        for key in MessageKey:
            assert translate(key, Language.EN)

    def test_translate(self):
        assert translate(MessageKey.DECREASED, Language.PT) == "caiu"
        assert translate(MessageKey.DECREASED, Language.EN) == "decreased"


class TestTripAlert:
    def test_decrease_in_english(self):
        change = decide(200, 190, [], 5.0, recorded=True)
        text = format_trip_alert(TRIP, change, [flight(195), flight(190, "GOL")], Language.EN)

        assert text.startswith("📉")
        assert "decreased by R$ 10.00 (5.0%)" in text
        assert "New lowest price: R$ 190.00" in text
        assert "Previous price: R$ 200.00" in text
        assert "Cheapest: GOL" in text
        assert f"[View flights on Google]({TRIP.url})" in text

    def test_increase_in_portuguese(self):
        change = decide(190, 230, [190], 5.0, recorded=True)
        text = format_trip_alert(TRIP, change, [], Language.PT)

        assert text.startswith("📈")
        assert "subiu R$ 40.00 (21.1%)" in text
        assert "Maior preço já registrado" in text
        assert "Ver voos no Google" in text

    def test_new_lowest_line(self):
        change = decide(90, 80, [100, 120, 90], 5.0, recorded=True)
        assert change.extremum == Extremum.NEW_LOWEST
        assert "🏆 New lowest price ever!" in format_trip_alert(TRIP, change)


class TestCarAlert:
    def test_car_alert(self):
        change = decide(500.0, 450.0, [], 5.0, recorded=True)
        text = format_car_alert(RENTAL, change, Language.EN)

        assert "GRU · 2025-09-26 → 2025-09-30" in text
        assert "Renault Kwid" in text
        assert "decreased by R$ 50.00 (10.0%)" in text
        assert "[View cars on Kayak]" in text
