"""
Input validation utilities for the Storefront order API.

Provides the request-locale resolution used to render status labels.
"""
from typing import Optional

from fastapi import Header, Query

from config import settings
from domain.enums import Locale
from domain.status_labels import resolve_locale


def parse_accept_language(header: Optional[str]) -> list[str]:
    """
    Primary language tags from an Accept-Language header, best first.

    "ja-JP,ja;q=0.9,en;q=0.5" -> ["ja", "ja", "en"]. Malformed q-values
    sort last instead of failing.
    """
    if not header:
        return []

    weighted: list[tuple[float, int, str]] = []
    for index, part in enumerate(header.split(",")):
        piece = part.strip()
        if not piece:
            continue
        tag, _, params = piece.partition(";")
        q = 1.0
        params = params.strip()
        if params.startswith("q="):
            try:
                q = float(params[2:])
            except ValueError:
                q = 0.0
        primary = tag.strip().split("-")[0].lower()
        if primary and primary != "*":
            weighted.append((-q, index, primary))

    weighted.sort()
    return [tag for _, _, tag in weighted]


def select_locale(explicit: Optional[str], accept_language: Optional[str]) -> str:
    """
    Resolve the locale for a request.

    Order: explicit `locale` value if served, then the best served
    Accept-Language tag, then the configured default locale. A tag is served
    when it is listed in SUPPORTED_LOCALES and has a label table.
    """
    known = {loc.value for loc in Locale}
    supported = [loc for loc in settings.supported_locales_list if loc in known]
    if explicit and explicit.strip().lower() in supported:
        return explicit.strip().lower()
    for tag in parse_accept_language(accept_language):
        if tag in supported:
            return tag
    return resolve_locale(None).value


def request_locale(
    locale: Optional[str] = Query(None, description="Label locale (en, ja, vi)"),
    accept_language: Optional[str] = Header(None, alias="Accept-Language"),
) -> str:
    """FastAPI dependency resolving the label locale for this request."""
    return select_locale(locale, accept_language)
