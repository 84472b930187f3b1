"""Utility helpers for normalising scraped text values and product URLs."""

from __future__ import annotations

import re
from typing import Any
from urllib.parse import urljoin, urlparse, urlunparse

_WHITESPACE = re.compile(r"\s+")


def clean_text(value: Any) -> str | None:
    """Collapse whitespace and return ``None`` for blank values."""

    if value is None:
        return None
    text = _WHITESPACE.sub(" ", str(value)).strip()
    return text or None


def absolute_url(href: str | None, base_url: str) -> str | None:
    """Resolve *href* against *base_url*, dropping fragments."""

    if not href:
        return None
    href = href.strip()
    if not href or href.startswith(("javascript:", "mailto:", "#")):
        return None
    if href.startswith("//"):
        href = f"https:{href}"
    resolved = urlparse(urljoin(base_url, href))
    if resolved.scheme not in {"http", "https"}:
        return None
    return urlunparse(resolved._replace(fragment=""))


def path_segments(url: str) -> list[str]:
    return [segment for segment in urlparse(url).path.split("/") if segment]


def slug_from_url(url: str, *, strip_suffix: str | None = None) -> str:
    """Return the last non-empty path segment of *url*."""

    segments = path_segments(url)
    if not segments:
        return ""
    slug = segments[-1]
    if strip_suffix and slug.endswith(strip_suffix):
        slug = slug[: -len(strip_suffix)]
    return slug


def normalize_image_url(value: Any, base_url: str) -> str | None:
    """Pick the first usable image URL from a JSON-LD ``image`` value."""

    if isinstance(value, list):
        for entry in value:
            normalized = normalize_image_url(entry, base_url)
            if normalized:
                return normalized
        return None

    if isinstance(value, dict):
        return normalize_image_url(value.get("url") or value.get("contentUrl"), base_url)

    if not isinstance(value, str) or not value:
        return None

    return absolute_url(value, base_url)


def coerce_identifier(value: Any) -> str | None:
    """Return a trimmed string identifier, or ``None`` when nothing usable remains."""

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        value = str(value)
    if not isinstance(value, str):
        return None
    trimmed = value.strip()
    return trimmed or None


__all__ = [
    "absolute_url",
    "clean_text",
    "coerce_identifier",
    "normalize_image_url",
    "path_segments",
    "slug_from_url",
]
