"""
URL helpers for referrer attribution and report query strings.
"""
from urllib.parse import urlencode, urlparse
from typing import Dict, Iterable, Optional


def referrer_hostname(url: Optional[str]) -> Optional[str]:
    """
    Hostname of a referrer URL.

    Falls back to the raw value when it does not parse as an absolute URL
    (e.g. "google" or "not a url"). Returns None for empty input.
    """
    if not url:
        return None
    try:
        parsed = urlparse(url)
        host = parsed.hostname
    except ValueError:
        return url
    if not parsed.scheme or not host:
        return url
    return host


def encode_params(values: Dict[str, str], keys: Iterable[str]) -> str:
    """Encode the non-empty values of `keys` (in that order) as a query string."""
    pairs = []
    for key in keys:
        value = values.get(key)
        if value:
            pairs.append((key, value))
    return urlencode(pairs)
