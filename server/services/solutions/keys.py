"""Fingerprint derivation for cached solutions."""

import re
from typing import Any

from models.solution import SolutionRequest

KEY_SEPARATOR = "-"

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def _normalize_part(value: Any) -> str:
    text = "" if value is None else str(value)
    return _NON_ALNUM.sub(KEY_SEPARATOR, text.strip().lower()).strip(KEY_SEPARATOR)


def generate_cache_key(fault_code: Any, brand: Any, model: Any, year: Any) -> str:
    """Build the cache key for a (fault code, vehicle) pair.

    Case, surrounding whitespace and punctuation runs do not change the
    result, so ``("P0300", " honda ", "CIVIC", 2020)`` and
    ``("p0300", "Honda", "Civic", 2020)`` share one key. Never raises.

    Example:
        >>> generate_cache_key("P0171", "VW", "Golf", 2019)
        'p0171-vw-golf-2019'
    """
    parts = (fault_code, brand, model, year)
    return KEY_SEPARATOR.join(_normalize_part(part) for part in parts)


def cache_key_for(request: SolutionRequest) -> str:
    return generate_cache_key(
        request.dtc_code,
        request.vehicle_brand,
        request.vehicle_model,
        request.vehicle_year,
    )
