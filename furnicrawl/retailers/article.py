"""Article storefront adapter (JSON-LD, manual fallback, load-more grid)."""

from __future__ import annotations

from typing import Any

from playwright.async_api import Page

import furnicrawl.selectors as selectors
from furnicrawl.errors import SelectorChangedError
from furnicrawl.extractors.dom_utils import (
    click_load_more,
    click_next,
    collect_hrefs,
    first_product_json_ld,
    first_text,
    jitter_mouse,
)
from furnicrawl.extractors.schemas import StandardProductRecord
from furnicrawl.logging_config import get_logger
from furnicrawl.normalizers import coerce_identifier, normalize_image_url, slug_from_url
from furnicrawl.retailers.base import CategoryDescriptor, RawProductRecord, RetailerAdapter

LOGGER = get_logger(__name__)

_CATEGORY_PATHS = (
    ("Sofas", "/browse/sofas"),
    ("Chairs", "/browse/chairs"),
    ("Beds", "/browse/beds"),
    ("Tables", "/browse/tables"),
)


class ArticleAdapter(RetailerAdapter):
    base_url = "https://www.article.com"

    def __init__(self, country: str = "ca", language: str = "en", **kwargs: Any) -> None:
        super().__init__(country, language, **kwargs)

    def get_retailer_name(self) -> str:
        return "Article"

    def get_categories(self) -> list[CategoryDescriptor]:
        return [CategoryDescriptor(name, f"{self.base_url}{path}") for name, path in _CATEGORY_PATHS]

    async def extract_product_links_from_category(self, page: Page, url: str) -> list[str]:
        await self._ensure_at(page, url)
        await jitter_mouse(page)
        links = self._absolute_links(await collect_hrefs(page, selectors.ARTICLE_PRODUCT_LINK))
        if links:
            return links
        LOGGER.debug("No /product/ anchors on %s; trying product-card links", url)
        return self._absolute_links(await collect_hrefs(page, selectors.ARTICLE_PRODUCT_CARD))

    async def go_to_next_page(self, page: Page) -> bool:
        # Load-more grows the grid in place; the pager is the older layout.
        if await click_load_more(page, selectors.ARTICLE_LOAD_MORE, selectors.ARTICLE_PRODUCT_CARD):
            return True
        return await click_next(page, selectors.ARTICLE_NEXT_BTN)

    async def extract_product_data(self, page: Page, url: str) -> RawProductRecord | None:
        await self._goto(page, url)
        slug = slug_from_url(url)

        json_ld = await first_product_json_ld(page)
        if json_ld is not None:
            product_id = coerce_identifier(json_ld.get("sku")) or slug
            if not product_id:
                product_id = await first_text(page, (selectors.ARTICLE_SKU,))
            return {"json_ld": json_ld, "url": url, "slug": slug, "product_id": product_id}

        LOGGER.info("No JSON-LD on %s; falling back to page selectors", url, extra={"retailer": "Article"})
        name = await first_text(page, (selectors.ARTICLE_TITLE,))
        if not name:
            raise SelectorChangedError(
                f"No JSON-LD and no match for {selectors.ARTICLE_TITLE}",
                url=url,
                retailer="Article",
            )
        return {
            "manual_extraction": True,
            "url": url,
            "slug": slug,
            "product_id": await first_text(page, (selectors.ARTICLE_SKU,)) or slug,
            "name": name,
            "price": await first_text(page, (selectors.ARTICLE_PRICE,)),
            "description": await first_text(page, (selectors.ARTICLE_DESCRIPTION,)),
        }

    def transform_product_data(self, raw: RawProductRecord | None) -> StandardProductRecord | None:
        if not raw:
            return None
        url = raw.get("url")
        slug = raw.get("slug") or (slug_from_url(url) if url else None)

        json_ld = raw.get("json_ld")
        if isinstance(json_ld, dict):
            return self._build_record(
                product_id=coerce_identifier(raw.get("product_id")) or coerce_identifier(json_ld.get("sku")),
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
            description = raw.get("description")
            return self._build_record(
                product_id=raw.get("product_id"),
                name=raw.get("name"),
                slug=slug,
                url=url,
                price={"price": price},
                raw_data={
                    "name": raw.get("name"),
                    "price": price,
                    "description": description,
                    "url": url,
                    "extractionMethod": "manual",
                },
                description=description,
            )

        return None
