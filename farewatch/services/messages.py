"""
Localized alert texts.

Texts are keyed by MessageKey and Language enums; a missing language or key
falls back to English.
"""

import enum
from typing import Dict, Optional, Sequence

from farewatch.services.price_history import Direction, Extremum, PriceChange


class Language(str, enum.Enum):
    EN = "en"
    PT = "pt"

    @classmethod
    def from_code(cls, code: Optional[str]) -> "Language":
        """Map a code such as "pt-BR" to a Language, DEFAULT_LANGUAGE when unknown."""
        if code:
            prefix = code.split("-")[0].split("_")[0].lower()
            for language in cls:
                if language.value == prefix:
                    return language
        return DEFAULT_LANGUAGE


DEFAULT_LANGUAGE = Language.EN


class MessageKey(enum.Enum):
    INCREASED = "increased"
    DECREASED = "decreased"
    NEW_LOWEST_EVER = "new_lowest_ever"
    NEW_HIGHEST_EVER = "new_highest_ever"
    TRIP_ALERT = "trip_alert"
    CHEAPEST_FLIGHT = "cheapest_flight"
    CAR_ALERT = "car_alert"
    VIEW_FLIGHTS = "view_flights"
    VIEW_CARS = "view_cars"
    SETUP_FAILED = "setup_failed"
    CAR_SETUP_FAILED = "car_setup_failed"
    NOT_FOUND = "not_found"


CATALOG: Dict[Language, Dict[MessageKey, str]] = {
    Language.EN: {
        MessageKey.INCREASED: "increased",
        MessageKey.DECREASED: "decreased",
        MessageKey.NEW_LOWEST_EVER: "🏆 New lowest price ever!",
        MessageKey.NEW_HIGHEST_EVER: "⚠️ New highest price ever!",
        MessageKey.TRIP_ALERT: (
            "{symbol} Price update for your monitored trip!\n\n"
            "{origin} → {destination}\n"
            "Date: {date}\n\n"
            "The lowest price has {direction} by R$ {delta:.2f} ({percent:.1f}%)\n"
            "New lowest price: R$ {new_price:.2f}\n"
            "Previous price: R$ {baseline:.2f}"
        ),
        MessageKey.CHEAPEST_FLIGHT: "Cheapest: {airline}, {departure} - {arrival} ({duration}, {stops})",
        MessageKey.CAR_ALERT: (
            "{symbol} Car rental price update!\n\n"
            "{airport} · {start_date} → {end_date}\n"
            "{title}\n\n"
            "The price has {direction} by R$ {delta:.2f} ({percent:.1f}%)\n"
            "New price: R$ {new_price:.2f}\n"
            "Previous price: R$ {baseline:.2f}"
        ),
        MessageKey.VIEW_FLIGHTS: "[View flights on Google]({url})",
        MessageKey.VIEW_CARS: "[View cars on Kayak]({url})",
        MessageKey.SETUP_FAILED: (
            "Sorry, there was an error processing the URL. "
            "Please make sure it's a valid Google Flights URL and try again."
        ),
        MessageKey.CAR_SETUP_FAILED: (
            "Sorry, we could not find car rentals for that search. "
            "Please check the airport code and dates (YYYY-MM-DD) and try again."
        ),
        MessageKey.NOT_FOUND: "Monitor not found.",
    },
    Language.PT: {
        MessageKey.INCREASED: "subiu",
        MessageKey.DECREASED: "caiu",
        MessageKey.NEW_LOWEST_EVER: "🏆 Menor preço já registrado!",
        MessageKey.NEW_HIGHEST_EVER: "⚠️ Maior preço já registrado!",
        MessageKey.TRIP_ALERT: (
            "{symbol} Atualização de preço da sua viagem monitorada!\n\n"
            "{origin} → {destination}\n"
            "Data: {date}\n\n"
            "O menor preço {direction} R$ {delta:.2f} ({percent:.1f}%)\n"
            "Novo menor preço: R$ {new_price:.2f}\n"
            "Preço anterior: R$ {baseline:.2f}"
        ),
        MessageKey.CHEAPEST_FLIGHT: "Mais barato: {airline}, {departure} - {arrival} ({duration}, {stops})",
        MessageKey.CAR_ALERT: (
            "{symbol} Atualização de preço do aluguel de carro!\n\n"
            "{airport} · {start_date} → {end_date}\n"
            "{title}\n\n"
            "O preço {direction} R$ {delta:.2f} ({percent:.1f}%)\n"
            "Novo preço: R$ {new_price:.2f}\n"
            "Preço anterior: R$ {baseline:.2f}"
        ),
        MessageKey.VIEW_FLIGHTS: "[Ver voos no Google]({url})",
        MessageKey.VIEW_CARS: "[Ver carros no Kayak]({url})",
        MessageKey.SETUP_FAILED: (
            "Desculpe, houve um erro ao processar a URL. "
            "Verifique se é uma URL válida do Google Flights e tente novamente."
        ),
        MessageKey.CAR_SETUP_FAILED: (
            "Desculpe, não encontramos aluguéis de carro para essa busca. "
            "Verifique o código do aeroporto e as datas (AAAA-MM-DD) e tente novamente."
        ),
        MessageKey.NOT_FOUND: "Monitoramento não encontrado.",
    },
}


def translate(key: MessageKey, language: Language = DEFAULT_LANGUAGE, **params) -> str:
    template = CATALOG.get(language, {}).get(key) or CATALOG[DEFAULT_LANGUAGE][key]
    return template.format(**params) if params else template


def _change_params(change: PriceChange, language: Language) -> dict:
    increased = change.direction == Direction.INCREASED
    return {
        "symbol": "📈" if increased else "📉",
        "direction": translate(MessageKey.INCREASED if increased else MessageKey.DECREASED, language),
        "delta": change.delta,
        "percent": change.percent,
        "new_price": change.new_price,
        "baseline": change.baseline,
    }


def _extremum_line(change: PriceChange, language: Language) -> Optional[str]:
    if change.extremum == Extremum.NEW_LOWEST:
        return translate(MessageKey.NEW_LOWEST_EVER, language)
    if change.extremum == Extremum.NEW_HIGHEST:
        return translate(MessageKey.NEW_HIGHEST_EVER, language)
    return None


def format_trip_alert(trip, change: PriceChange, flights: Sequence = (),
                      language: Language = DEFAULT_LANGUAGE) -> str:
    lines = [translate(
        MessageKey.TRIP_ALERT, language,
        origin=trip.origin or "?",
        destination=trip.destination or "?",
        date=trip.date,
        **_change_params(change, language),
    )]

    cheapest = min(flights, key=lambda f: f.price, default=None)
    if cheapest is not None:
        lines.append(translate(
            MessageKey.CHEAPEST_FLIGHT, language,
            airline=cheapest.airline,
            departure=cheapest.departure_time,
            arrival=cheapest.arrival_time,
            duration=cheapest.duration,
            stops=cheapest.stops,
        ))

    extremum = _extremum_line(change, language)
    if extremum:
        lines.append(extremum)

    lines.append(translate(MessageKey.VIEW_FLIGHTS, language, url=trip.url))
    return "\n".join(lines)


def format_car_alert(rental, change: PriceChange, language: Language = DEFAULT_LANGUAGE) -> str:
    lines = [translate(
        MessageKey.CAR_ALERT, language,
        airport=rental.airport_code,
        start_date=rental.start_date,
        end_date=rental.end_date,
        title=rental.title or "",
        **_change_params(change, language),
    )]

    extremum = _extremum_line(change, language)
    if extremum:
        lines.append(extremum)

    if rental.url:
        lines.append(translate(MessageKey.VIEW_CARS, language, url=rental.url))
    return "\n".join(lines)
