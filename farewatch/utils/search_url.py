"""
Helpers for Google Flights search URLs and their `tfs` token.

The `tfs` query parameter is a URL-safe base64 encoding of a binary search
descriptor (route, date, passengers). Google renders `/` bytes groups as runs
of `_` ("filler"), and the page only behaves when such a run is exactly 11 or
12 characters long. Everything here is pure string/bytes work; no network.
"""

import base64
import binascii
import logging
import re
from datetime import date, timedelta
from typing import List, Optional
from urllib.parse import urlparse, parse_qs

from farewatch.exceptions import InvalidQueryFormat

logger = logging.getLogger(__name__)

GOOGLE_FLIGHTS_HOST = "www.google.com"
GOOGLE_FLIGHTS_PATH = "/travel/flights"

FILLER = "_"
VALID_FILLER_COUNTS = (11, 12)

_TOKEN_RE = re.compile(r"tfs=([^&#]*)")
_FILLER_RUN_RE = re.compile(f"{FILLER}+")
_ILLEGAL_TOKEN_CHARS_RE = re.compile(r"[^A-Za-z0-9\-_]")
_TOKEN_DATE_RE = re.compile(rb"(\d{4})-(\d{2})-(\d{2})")

# Month abbreviations as echoed by the page's date input
_MONTHS = {
    # pt-BR
    "jan": 1, "fev": 2, "mar": 3, "abr": 4, "mai": 5, "jun": 6,
    "jul": 7, "ago": 8, "set": 9, "out": 10, "nov": 11, "dez": 12,
    # en
    "feb": 2, "apr": 4, "may": 5, "aug": 8, "sep": 9, "oct": 10, "dec": 12,
}


def _find_token(url: str) -> Optional[re.Match]:
    return _TOKEN_RE.search(url)


def _replace_token(url: str, match: re.Match, new_token: str) -> str:
    start, end = match.span(1)
    return url[:start] + new_token + url[end:]


def is_valid(url: str) -> bool:
    """True if `url` is a Google Flights search URL carrying a non-empty tfs token."""
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    return (
        parsed.hostname == GOOGLE_FLIGHTS_HOST
        and GOOGLE_FLIGHTS_PATH in parsed.path
        and bool(parse_qs(parsed.query).get("tfs"))
    )


def validate(url: str) -> str:
    """Return `url` unchanged or raise InvalidQueryFormat."""
    if not url or not is_valid(url):
        raise InvalidQueryFormat(f"Not a Google Flights search URL: {url!r}")
    return url


def normalize(url: str, filler_count: int = 11) -> str:
    """
    Collapse every filler run in the tfs token to exactly `filler_count`.

    Idempotent for a given count. URLs without a token are returned as is.
    """
    match = _find_token(url)
    if not match:
        return url
    token = match.group(1)
    cleaned = _FILLER_RUN_RE.sub(FILLER * filler_count, token)
    if cleaned == token:
        return url
    return _replace_token(url, match, cleaned)


def filler_count(url: str) -> int:
    """Length of the filler run in the tfs token (longest run), 0 without a token."""
    match = _find_token(url)
    if not match:
        return 0
    runs = _FILLER_RUN_RE.findall(match.group(1))
    return max((len(run) for run in runs), default=0)


def _decode_token(token: str) -> bytes:
    remainder = len(token) % 4
    if remainder == 1:
        # A lone trailing character carries no full byte
        token = token[:-1]
    elif remainder:
        token += "=" * (4 - remainder)
    return base64.urlsafe_b64decode(token)


def _encode_token(raw: bytes) -> str:
    encoded = base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")
    return _ILLEGAL_TOKEN_CHARS_RE.sub(FILLER, encoded)


def _date_pattern(old_date: str) -> re.Pattern:
    parts = [re.escape(part.encode("ascii")) for part in old_date.split("-")]
    return re.compile(b"-?".join(parts))


def substitute_date(url: str, old_date: str, new_date: str) -> str:
    """
    Swap `old_date` for `new_date` inside the binary tfs descriptor.

    `old_date` is matched with optional hyphens, so "2025-09-26" also finds
    "20250926". When there is no token, the token does not decode or the date
    is not present, the URL is returned unchanged; callers compare the result
    with the input to detect that case.
    """
    match = _find_token(url)
    if not match:
        return url

    token = match.group(1)
    try:
        decoded = _decode_token(token)
    except (binascii.Error, ValueError) as e:
        logger.warning(f"Could not decode tfs token: {e}")
        return url

    date_match = _date_pattern(old_date).search(decoded)
    if not date_match:
        logger.info(f"Date {old_date} not found in tfs token")
        return url

    replaced = decoded[:date_match.start()] + new_date.encode("ascii") + decoded[date_match.end():]
    return _replace_token(url, match, _encode_token(replaced))


def decoded_token(url: str) -> Optional[bytes]:
    """The raw descriptor bytes of the tfs token, or None."""
    match = _find_token(url)
    if not match:
        return None
    try:
        return _decode_token(match.group(1))
    except (binascii.Error, ValueError):
        return None


def token_date(url: str) -> Optional[date]:
    """First YYYY-MM-DD date inside the tfs descriptor, or None."""
    decoded = decoded_token(url)
    if not decoded:
        return None
    match = _TOKEN_DATE_RE.search(decoded)
    if not match:
        return None
    try:
        return date(*(int(part) for part in match.groups()))
    except ValueError:
        return None


def with_currency(url: str, currency: str) -> str:
    """Force the page currency so prices are comparable between checks."""
    if "curr=" in url:
        return url
    separator = "&" if "?" in url else "?"
    return f"{url}{separator}curr={currency}"


def parse_display_date(text: str, today: Optional[date] = None) -> date:
    """
    Parse the departure date echoed by the page, e.g. "sex., 6 de jun.".

    The page omits the year: a day/month already behind `today` means next
    year's date.
    """
    today = today or date.today()
    match = re.search(r"(\d{1,2})\s+de\s+([A-Za-zç]+)", text)
    if match:
        day, month_text = int(match.group(1)), match.group(2)
    else:
        match = re.search(r"([A-Za-z]{3})[a-z]*\.?\s+(\d{1,2})", text)
        if not match:
            raise ValueError(f"Invalid date format: {text}")
        month_text, day = match.group(1), int(match.group(2))

    month = _MONTHS.get(month_text.lower()[:3])
    if month is None:
        raise ValueError(f"Invalid month: {month_text}")

    parsed = date(today.year, month, day)
    if parsed < today:
        parsed = date(today.year + 1, month, day)
    return parsed


def date_window(base: date, days: int) -> List[date]:
    """`base` plus/minus up to `days` days, sorted."""
    dates = [base]
    for offset in range(1, days + 1):
        dates.append(base + timedelta(days=offset))
        dates.append(base - timedelta(days=offset))
    return sorted(dates)
