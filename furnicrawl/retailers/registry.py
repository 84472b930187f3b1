"""Map retailer identifiers to adapter factories."""

from __future__ import annotations

from typing import Any, Callable, Mapping

from furnicrawl.errors import UnsupportedRetailerError
from furnicrawl.retailers.article import ArticleAdapter
from furnicrawl.retailers.base import RetailerAdapter
from furnicrawl.retailers.firstdibs import FirstDibsAdapter
from furnicrawl.retailers.ikea import IkeaAdapter
from furnicrawl.retailers.wayfair import WayfairAdapter

AdapterFactory = Callable[..., RetailerAdapter]

_REGISTRY: dict[str, tuple[str, AdapterFactory]] = {
    "ikea": ("IKEA", IkeaAdapter),
    "wayfair": ("Wayfair", WayfairAdapter),
    "article": ("Article", ArticleAdapter),
    "1stdibs": ("1stDibs", FirstDibsAdapter),
}

_OPTION_KEYS = ("country", "language", "navigation_timeout_ms")


def supported_retailers() -> list[str]:
    """Display names of every retailer with a registered adapter."""

    return [display for display, _ in _REGISTRY.values()]


def resolve(retailer_id: str, options: Mapping[str, Any] | None = None) -> RetailerAdapter:
    """Construct the adapter for *retailer_id* (case-insensitive).

    Raises :class:`UnsupportedRetailerError` for unknown identifiers.
    """

    key = (retailer_id or "").strip().lower()
    entry = _REGISTRY.get(key)
    if entry is None:
        raise UnsupportedRetailerError(retailer_id, supported_retailers())

    _, factory = entry
    kwargs = {
        name: (options or {})[name]
        for name in _OPTION_KEYS
        if (options or {}).get(name) is not None
    }
    return factory(**kwargs)


__all__ = ["resolve", "supported_retailers"]
