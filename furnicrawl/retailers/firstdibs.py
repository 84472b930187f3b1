"""1stDibs marketplace adapter.

Listings on 1stDibs are one-off antiques, so most of the useful data lives in
the item-details block rather than in JSON-LD. Extraction reads the hero
image, price, description and a structured ``specifications`` dict
(dimensions, style, materials, origin, period, manufacture date, condition,
seller location, reference number) plus the raw spec HTML/text so nothing is
lost when the markup drifts.
"""

from __future__ import annotations

import re
from typing import Any

from playwright.async_api import Page

import furnicrawl.selectors as selectors
from furnicrawl.extractors.dom_utils import (
    click_load_more,
    click_next,
    collect_hrefs,
    eval_all,
    eval_first,
    first_product_json_ld,
    first_text,
    human_wait,
    jitter_mouse,
    locator_or_none,
)
from furnicrawl.extractors.schemas import StandardProductRecord
from furnicrawl.logging_config import get_logger
from furnicrawl.normalizers import clean_text, path_segments
from furnicrawl.retailers.base import CategoryDescriptor, RawProductRecord, RetailerAdapter

LOGGER = get_logger(__name__)

_ITEM_ID = re.compile(r"/id-([^/?#]+)")

UNKNOWN_NAME = "Unknown Product"
PRICE_UNAVAILABLE = "Price not available"


def product_id_from_url(url: str | None) -> str | None:
    if not url:
        return None
    match = _ITEM_ID.search(url)
    if match:
        return match.group(1)
    segments = path_segments(url)
    return segments[-1] if segments else None


class FirstDibsAdapter(RetailerAdapter):
    base_url = "https://www.1stdibs.com"

    def __init__(self, country: str = "us", language: str = "en", **kwargs: Any) -> None:
        super().__init__(country, language, **kwargs)

    def get_retailer_name(self) -> str:
        return "1stDibs"

    def get_categories(self) -> list[CategoryDescriptor]:
        return [CategoryDescriptor("Seating", f"{self.base_url}/furniture/seating/")]

    async def extract_product_links_from_category(self, page: Page, url: str) -> list[str]:
        await self._ensure_at(page, url)
        await jitter_mouse(page)

        for selector in (selectors.FIRSTDIBS_CARD_LINK, selectors.FIRSTDIBS_ID_LINK):
            links = self._absolute_links(await collect_hrefs(page, selector))
            if links:
                return links

        links = self._absolute_links(
            await collect_hrefs(page, "a"),
            must_contain=("/id-", "/furniture/"),
        )
        if not links:
            LOGGER.warning("No product links found on %s", url, extra={"retailer": "1stDibs"})
        return links

    async def go_to_next_page(self, page: Page) -> bool:
        if await click_next(page, selectors.FIRSTDIBS_NEXT_BTN):
            return True
        return await click_load_more(page, selectors.FIRSTDIBS_LOAD_MORE, selectors.FIRSTDIBS_ANY_ID_LINK)

    async def extract_product_data(self, page: Page, url: str) -> RawProductRecord | None:
        await self._goto(page, url)
        await human_wait(1500, 2500)

        product_id = product_id_from_url(url)
        if not product_id:
            return None
        segments = path_segments(url)
        slug = segments[-1] if segments else product_id

        image_url = await eval_first(page, selectors.FIRSTDIBS_IMAGES, "(img) => img.currentSrc || img.src")
        name = await first_text(page, (selectors.PAGE_H1,)) or UNKNOWN_NAME
        price = await first_text(page, (selectors.FIRSTDIBS_PRICE,)) or PRICE_UNAVAILABLE

        await self._expand_details(page)
        specifications = await self._read_specifications(page)
        description = await first_text(page, selectors.FIRSTDIBS_DESCRIPTION) or ""

        return {
            "product_id": product_id,
            "slug": slug,
            "url": url,
            "name": name,
            "price": price,
            "image_url": image_url,
            "description": description,
            "specifications": specifications,
            "json_ld": await first_product_json_ld(page),
        }

    async def _expand_details(self, page: Page) -> None:
        locator = await locator_or_none(page, selectors.FIRSTDIBS_READ_MORE)
        if locator is None:
            return
        try:
            if await locator.count() == 0:
                return
            await locator.click()
        except Exception as exc:
            LOGGER.debug("Read-more toggle failed: %s", exc)
            return
        await human_wait(800, 1200, obey_policy=False)

    async def _read_specifications(self, page: Page) -> dict[str, Any]:
        specifications: dict[str, Any] = {}

        dimensions: dict[str, str] = {}
        for key, container in selectors.FIRSTDIBS_DIMENSIONS.items():
            value = await first_text(page, (f"{container} {selectors.FIRSTDIBS_SPEC_VALUE}",))
            if value:
                dimensions[key] = value
        if dimensions:
            specifications["dimensions"] = dimensions

        materials = [
            material
            for material in (
                (clean_text(value) or "").rstrip(",").strip()
                for value in await eval_all(page, selectors.FIRSTDIBS_MATERIALS, "(nodes) => nodes.map((n) => n.textContent)")
            )
            if material
        ]
        if materials:
            specifications["materials"] = materials

        for key, selector in selectors.FIRSTDIBS_SPEC_FIELDS.items():
            value = await first_text(page, (selector,))
            if value:
                specifications[key] = value

        condition = await first_text(page, (selectors.FIRSTDIBS_CONDITION,))
        condition_details = await first_text(page, (selectors.FIRSTDIBS_CONDITION_DETAILS,))
        if condition or condition_details:
            specifications["condition"] = {"rating": condition, "details": condition_details}

        raw_html = await eval_first(page, (selectors.FIRSTDIBS_EXPANDING_AREA,), "(el) => el.outerHTML")
        if raw_html:
            specifications["rawSpecificationsHTML"] = raw_html
        raw_text = await eval_first(page, (selectors.FIRSTDIBS_EXPANDING_AREA,), "(el) => el.textContent.trim()")
        if raw_text:
            specifications["rawSpecificationsText"] = raw_text

        return specifications

    def transform_product_data(self, raw: RawProductRecord | None) -> StandardProductRecord | None:
        if not raw:
            return None
        url = raw.get("url")
        product_id = raw.get("product_id") or product_id_from_url(url)
        raw_data = {key: value for key, value in raw.items()}
        raw_data["extractionMethod"] = "manual"
        return self._build_record(
            product_id=product_id,
            name=raw.get("name"),
            slug=raw.get("slug"),
            url=url,
            price=raw.get("price") or PRICE_UNAVAILABLE,
            raw_data=raw_data,
            description=raw.get("description"),
            image_url=raw.get("image_url"),
            specifications=dict(raw.get("specifications") or {}),
        )
