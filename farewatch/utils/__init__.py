"""Utility modules for FareWatch."""

from farewatch.utils.search_url import normalize, filler_count, substitute_date, validate

__all__ = ["normalize", "filler_count", "substitute_date", "validate"]
