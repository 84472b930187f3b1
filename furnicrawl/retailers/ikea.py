"""IKEA storefront adapter (JSON-LD product pages)."""

from __future__ import annotations

import re
from typing import Any

from playwright.async_api import Page

import furnicrawl.selectors as selectors
from furnicrawl.extractors.dom_utils import click_next, collect_hrefs, first_product_json_ld, jitter_mouse
from furnicrawl.extractors.schemas import StandardProductRecord
from furnicrawl.logging_config import get_logger
from furnicrawl.normalizers import coerce_identifier, normalize_image_url, slug_from_url
from furnicrawl.retailers.base import CategoryDescriptor, RawProductRecord, RetailerAdapter

LOGGER = get_logger(__name__)

_ARTICLE_NUMBER = re.compile(r"-([a-z]?\d{5,})$", re.I)

_CATEGORY_PATHS = (
    ("Beds", "/cat/beds-bm003/"),
    ("Sofas", "/cat/sofas-fu003/"),
    ("Chairs", "/cat/chairs-fu002/"),
    ("Tables", "/cat/tables-desks-fu004/"),
    ("Storage", "/cat/storage-furniture-st001/"),
)


def product_id_from_url(url: str | None) -> str | None:
    """Return the article number embedded in an IKEA ``/p/`` URL."""

    if not url or selectors.IKEA_PRODUCT_PATH not in url:
        return None
    tail = url.split(selectors.IKEA_PRODUCT_PATH, 1)[1]
    segment = next((part for part in tail.split("/") if part), "")
    segment = segment.split("?", 1)[0]
    if not segment:
        return None
    match = _ARTICLE_NUMBER.search(segment)
    return match.group(1) if match else segment


class IkeaAdapter(RetailerAdapter):
    def __init__(self, country: str = "ca", language: str = "en", **kwargs: Any) -> None:
        super().__init__(country, language, **kwargs)
        self.base_url = f"https://www.ikea.com/{self.country}/{self.language}"

    def get_retailer_name(self) -> str:
        return "IKEA"

    def get_categories(self) -> list[CategoryDescriptor]:
        return [CategoryDescriptor(name, f"{self.base_url}{path}") for name, path in _CATEGORY_PATHS]

    async def extract_product_links_from_category(self, page: Page, url: str) -> list[str]:
        await self._ensure_at(page, url)
        await jitter_mouse(page)
        hrefs = await collect_hrefs(page, selectors.ikea_product_link(self.country, self.language))
        return self._absolute_links(hrefs)

    async def go_to_next_page(self, page: Page) -> bool:
        return await click_next(page, selectors.IKEA_NEXT_BTN)

    async def extract_product_data(self, page: Page, url: str) -> RawProductRecord | None:
        await self._goto(page, url)
        json_ld = await first_product_json_ld(page)
        if json_ld is None:
            LOGGER.warning("No JSON-LD product block on %s", url, extra={"retailer": "IKEA"})
            return None
        return {
            "json_ld": json_ld,
            "url": url,
            "slug": slug_from_url(url),
            "product_id": product_id_from_url(url) or coerce_identifier(json_ld.get("sku")),
        }

    def transform_product_data(self, raw: RawProductRecord | None) -> StandardProductRecord | None:
        if not raw or not isinstance(raw.get("json_ld"), dict):
            return None
        json_ld = raw["json_ld"]
        url = raw.get("url")
        product_id = (
            coerce_identifier(raw.get("product_id"))
            or product_id_from_url(url)
            or coerce_identifier(json_ld.get("sku"))
        )
        return self._build_record(
            product_id=product_id,
            name=json_ld.get("name"),
            slug=raw.get("slug") or (slug_from_url(url) if url else None),
            url=url,
            price=json_ld.get("offers"),
            raw_data=dict(json_ld),
            description=json_ld.get("description"),
            image_url=normalize_image_url(json_ld.get("image"), self.base_url),
        )
