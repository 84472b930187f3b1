"""Wayfair storefront adapter (JSON-LD with a manual selector fallback)."""

from __future__ import annotations

import re
from typing import Any

from playwright.async_api import Page

import furnicrawl.selectors as selectors
from furnicrawl.errors import SelectorChangedError
from furnicrawl.extractors.dom_utils import (
    click_next,
    collect_hrefs,
    first_product_json_ld,
    first_text,
    jitter_mouse,
    locator_or_none,
    safe_get_attribute,
)
from furnicrawl.extractors.schemas import StandardProductRecord
from furnicrawl.logging_config import get_logger
from furnicrawl.normalizers import coerce_identifier, normalize_image_url, slug_from_url
from furnicrawl.retailers.base import CategoryDescriptor, RawProductRecord, RetailerAdapter

LOGGER = get_logger(__name__)

_PDP_ID = re.compile(r"/pdp/.*?-([A-Z0-9]+)\.html")

_CATEGORY_PATHS = (
    ("Sofas", "/furniture/pdp/sofas-c1870557.html"),
    ("Beds", "/furniture/pdp/beds-c1870737.html"),
    ("Dining Tables", "/furniture/pdp/kitchen-dining-tables-c46129.html"),
    ("TV Stands", "/furniture/pdp/tv-stands-c45583.html"),
)


def product_id_from_url(url: str | None) -> str | None:
    if not url:
        return None
    match = _PDP_ID.search(url)
    return match.group(1) if match else None


def wayfair_slug(url: str) -> str:
    return slug_from_url(url, strip_suffix=".html")


class WayfairAdapter(RetailerAdapter):
    def __init__(self, country: str = "ca", language: str = "en", **kwargs: Any) -> None:
        super().__init__(country, language, **kwargs)
        tld = "com" if self.country == "us" else self.country
        self.base_url = f"https://www.wayfair.{tld}"

    def get_retailer_name(self) -> str:
        return "Wayfair"

    def get_categories(self) -> list[CategoryDescriptor]:
        return [CategoryDescriptor(name, f"{self.base_url}{path}") for name, path in _CATEGORY_PATHS]

    async def extract_product_links_from_category(self, page: Page, url: str) -> list[str]:
        await self._ensure_at(page, url)
        await jitter_mouse(page)
        hrefs = await collect_hrefs(page, selectors.WAYFAIR_PRODUCT_CARD)
        return self._absolute_links(hrefs, must_contain=(selectors.WAYFAIR_PRODUCT_PATH,))

    async def go_to_next_page(self, page: Page) -> bool:
        return await click_next(page, selectors.WAYFAIR_NEXT_BTN)

    async def extract_product_data(self, page: Page, url: str) -> RawProductRecord | None:
        await self._goto(page, url)
        slug = wayfair_slug(url)

        json_ld = await first_product_json_ld(page)
        if json_ld is not None:
            product_id = product_id_from_url(url) or coerce_identifier(json_ld.get("sku"))
            if not product_id:
                product_id = await safe_get_attribute(
                    await locator_or_none(page, selectors.WAYFAIR_SKU),
                    selectors.WAYFAIR_SKU_ATTR,
                )
            return {"json_ld": json_ld, "url": url, "slug": slug, "product_id": product_id}

        LOGGER.info("No JSON-LD on %s; falling back to page selectors", url, extra={"retailer": "Wayfair"})
        name = await first_text(page, (selectors.WAYFAIR_TITLE,))
        price = await first_text(page, (selectors.WAYFAIR_PRICE,))
        if not name:
            raise SelectorChangedError(
                f"No JSON-LD and no match for {selectors.WAYFAIR_TITLE}",
                url=url,
                retailer="Wayfair",
            )
        product_id = product_id_from_url(url)
        if not product_id:
            return None
        return {
            "manual_extraction": True,
            "url": url,
            "slug": slug,
            "product_id": product_id,
            "name": name,
            "price": price,
        }

    def transform_product_data(self, raw: RawProductRecord | None) -> StandardProductRecord | None:
        if not raw:
            return None
        url = raw.get("url")
        slug = raw.get("slug") or (wayfair_slug(url) if url else None)

        json_ld = raw.get("json_ld")
        if isinstance(json_ld, dict):
            return self._build_record(
                product_id=(
                    coerce_identifier(raw.get("product_id"))
                    or product_id_from_url(url)
                    or coerce_identifier(json_ld.get("sku"))
                ),
                name=json_ld.get("name"),
                slug=slug,
                url=url,
                price=json_ld.get("offers"),
                raw_data=dict(json_ld),
                description=json_ld.get("description"),
                image_url=normalize_image_url(json_ld.get("image"), self.base_url),
            )

        if raw.get("manual_extraction"):
            price = raw.get("price")
            return self._build_record(
                product_id=raw.get("product_id") or product_id_from_url(url),
                name=raw.get("name"),
                slug=slug,
                url=url,
                price={"price": price},
                raw_data={
                    "name": raw.get("name"),
                    "price": price,
                    "url": url,
                    "extractionMethod": "manual",
                },
            )

        return None
