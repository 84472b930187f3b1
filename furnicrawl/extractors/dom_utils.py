"""Helper utilities for safely interacting with retailer DOM content."""

from __future__ import annotations

import asyncio
import json
import random
from typing import Any

from playwright.async_api import Error as PlaywrightError

from furnicrawl.logging_config import get_logger
from furnicrawl.playwright_env import apply_wait_policy, mouse_jitter_enabled

LOGGER = get_logger(__name__)

_HANDLEABLE_ERRORS: tuple[type[BaseException], ...] = (PlaywrightError, Exception)

JSON_LD_SELECTOR = "script[type='application/ld+json']"


async def human_wait(
    min_ms: int = 350,
    max_ms: int = 900,
    *,
    obey_policy: bool = True,
) -> None:
    """Sleep for a random, human-like interval between the provided bounds."""

    if min_ms < 0:
        min_ms = 0
    if max_ms < min_ms:
        max_ms = min_ms

    if obey_policy:
        min_ms, max_ms = apply_wait_policy(min_ms, max_ms)

    delay = random.uniform(min_ms / 1000, max_ms / 1000)
    await asyncio.sleep(delay)


async def inner_text_safe(locator: Any, timeout: int = 3000) -> str | None:
    """Return the stripped inner text for *locator* while ignoring DOM failures."""

    if locator is None:
        return None

    try:
        result = await locator.inner_text(timeout=timeout)
    except _HANDLEABLE_ERRORS:
        return None

    if result is None:
        return None

    return result.strip() or None


async def first_text(page: Any, selectors: tuple[str, ...], timeout: int = 3000) -> str | None:
    """Return the text of the first selector that resolves to a non-empty node."""

    for selector in selectors:
        locator = await locator_or_none(page, selector)
        if locator is None:
            continue
        try:
            if await locator.count() == 0:
                continue
        except _HANDLEABLE_ERRORS:
            continue
        text = await inner_text_safe(locator, timeout=timeout)
        if text:
            return text
    return None


async def safe_get_attribute(locator: Any, attribute: str) -> str | None:
    if locator is None:
        return None
    try:
        value = await locator.get_attribute(attribute)
    except _HANDLEABLE_ERRORS:
        return None
    if value is None:
        return None
    trimmed = value.strip()
    return trimmed or None


async def locator_or_none(root: Any, selector: str | None) -> Any | None:
    if not selector:
        return None
    try:
        return root.locator(selector).first
    except _HANDLEABLE_ERRORS:
        return None


async def count_safe(page: Any, selector: str) -> int:
    try:
        return await page.locator(selector).count()
    except _HANDLEABLE_ERRORS:
        return 0


async def collect_hrefs(page: Any, selector: str) -> list[str]:
    """Return every ``href`` matched by *selector*, in document order."""

    try:
        values = await page.eval_on_selector_all(
            selector,
            "(nodes) => nodes.map((node) => node.href || node.getAttribute('href'))",
        )
    except _HANDLEABLE_ERRORS:
        return []
    return [value for value in values or [] if isinstance(value, str) and value]


async def eval_first(page: Any, selectors: tuple[str, ...], script: str) -> Any:
    """Evaluate *script* against the first selector that matches an element."""

    for selector in selectors:
        try:
            value = await page.eval_on_selector(selector, script)
        except _HANDLEABLE_ERRORS:
            continue
        if value:
            return value
    return None


async def eval_all(page: Any, selector: str, script: str) -> list[Any]:
    try:
        values = await page.eval_on_selector_all(selector, script)
    except _HANDLEABLE_ERRORS:
        return []
    return list(values or [])


async def safe_wait_for_load(page: Any, state: str, timeout: int | None = None) -> None:
    try:
        if timeout is None:
            await page.wait_for_load_state(state)
        else:
            await page.wait_for_load_state(state, timeout=timeout)
    except _HANDLEABLE_ERRORS:
        return


async def read_json_ld(page: Any) -> list[Any]:
    """Parse every JSON-LD script on the page, skipping blocks that fail to decode."""

    script_locator = page.locator(JSON_LD_SELECTOR)
    try:
        count = await script_locator.count()
    except _HANDLEABLE_ERRORS:
        count = 0

    payloads: list[Any] = []
    for index in range(count):
        try:
            raw = await script_locator.nth(index).inner_text()
        except _HANDLEABLE_ERRORS:
            continue
        if not raw:
            continue
        try:
            payloads.append(json.loads(raw))
        except json.JSONDecodeError:
            continue
    return payloads


def collect_product_dicts(obj: Any) -> list[dict[str, Any]]:
    results: list[dict[str, Any]] = []

    def _walk(value: Any) -> None:
        if isinstance(value, dict):
            kind = value.get("@type") or ""
            kinds = kind if isinstance(kind, list) else [kind]
            if any(isinstance(entry, str) and entry.lower() == "product" for entry in kinds):
                results.append(value)
            else:
                for nested in value.values():
                    _walk(nested)
        elif isinstance(value, list):
            for entry in value:
                _walk(entry)

    _walk(obj)
    return results


async def first_product_json_ld(page: Any) -> dict[str, Any] | None:
    """Return the first schema.org ``Product`` blob on the page, if any."""

    for payload in await read_json_ld(page):
        products = collect_product_dicts(payload)
        if products:
            return products[0]
    return None


async def click_next(page: Any, selector: str) -> bool:
    """Click a pager control and wait for the next listing page.

    Returns ``False`` when the control is missing, disabled or the click fails.
    """

    locator = await locator_or_none(page, selector)
    if locator is None:
        return False

    try:
        if await locator.count() == 0:
            return False
        if not (await locator.is_visible() and await locator.is_enabled()):
            return False
    except _HANDLEABLE_ERRORS:
        return False

    try:
        await locator.scroll_into_view_if_needed()
    except _HANDLEABLE_ERRORS:
        pass

    await human_wait(400, 900)

    try:
        await locator.click()
    except _HANDLEABLE_ERRORS as exc:
        LOGGER.debug("Pager click failed for %s: %s", selector, exc)
        return False

    await safe_wait_for_load(page, "networkidle", timeout=15000)
    await human_wait()
    return True


async def click_load_more(
    page: Any,
    button_selector: str,
    item_selector: str,
    *,
    settle_ms: int = 3000,
) -> bool:
    """Press a "load more" control and report whether new items appeared."""

    locator = await locator_or_none(page, button_selector)
    if locator is None:
        return False

    try:
        if await locator.count() == 0 or not await locator.is_visible():
            return False
    except _HANDLEABLE_ERRORS:
        return False

    before = await count_safe(page, item_selector)
    try:
        await locator.scroll_into_view_if_needed()
        await locator.click()
    except _HANDLEABLE_ERRORS as exc:
        LOGGER.debug("Load-more click failed for %s: %s", button_selector, exc)
        return False

    await human_wait(settle_ms, settle_ms, obey_policy=False)
    after = await count_safe(page, item_selector)
    return after > before


async def jitter_mouse(page: Any) -> None:
    """Randomise cursor movement to mimic human browsing."""

    if not mouse_jitter_enabled():
        return

    try:
        width = await page.evaluate("() => window.innerWidth || 1280")
        height = await page.evaluate("() => window.innerHeight || 720")
    except _HANDLEABLE_ERRORS:
        width, height = 1280, 720

    try:
        for _ in range(random.randint(1, 3)):
            target_x = random.randint(0, int(max(width, 1)))
            target_y = random.randint(0, int(max(height, 1)))
            await page.mouse.move(target_x, target_y, steps=random.randint(3, 7))
            await human_wait(120, 320, obey_policy=False)
    except _HANDLEABLE_ERRORS:
        # Non-fatal; skip cursor jitter if Playwright rejects the move.
        return
