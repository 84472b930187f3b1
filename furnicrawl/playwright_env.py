"""Centralised helpers for Playwright launch, isolated sessions and pacing."""

from __future__ import annotations

import os
import shlex
from contextlib import asynccontextmanager
from functools import lru_cache
from typing import Any, AsyncIterator

from playwright.async_api import Browser, Page, Playwright

from furnicrawl.logging_config import get_logger

LOGGER = get_logger(__name__)

_FALSE_VALUES = {"0", "false", "no", "off"}

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/96.0.4664.110 Safari/537.36"
)
DEFAULT_VIEWPORT = {"width": 1280, "height": 720}
REQUEST_JITTER_MS = 500


def _as_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() not in _FALSE_VALUES


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw.strip())
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw.strip())
    except ValueError:
        return default


def headless_enabled(default: bool = True) -> bool:
    """Return True if Playwright should run in headless mode."""

    return _as_bool(os.getenv("FURNICRAWL_HEADLESS"), default)


def stealth_enabled() -> bool:
    """Return True when stealth evasion scripts should be applied."""

    return _as_bool(os.getenv("FURNICRAWL_STEALTH"), True)


@lru_cache(maxsize=1)
def _stealth_instance():
    if not stealth_enabled():
        return None
    try:
        from playwright_stealth import Stealth
    except ImportError:
        LOGGER.debug("playwright-stealth not installed; continuing without evasions")
        return None

    lang_env = os.getenv("FURNICRAWL_LANGS") or "en-US,en"
    langs = tuple(
        entry.strip()
        for entry in lang_env.split(",")
        if entry.strip()
    ) or ("en-US", "en")

    return Stealth(
        navigator_languages_override=langs[:2],
        navigator_platform_override=os.getenv("FURNICRAWL_PLATFORM", "MacIntel"),
        navigator_user_agent_override=os.getenv("FURNICRAWL_USER_AGENT") or DEFAULT_USER_AGENT,
    )


def apply_stealth(playwright: Playwright) -> None:
    """Hook the provided Playwright object with stealth evasions when available."""

    instance = _stealth_instance()
    if instance is None:
        return
    try:
        instance.hook_playwright_context(playwright)
    except Exception as exc:
        LOGGER.warning("Unable to apply stealth evasions: %s", exc)


def _proxy_config() -> dict[str, str] | None:
    raw = os.getenv("FURNICRAWL_PROXY")
    if not raw:
        return None
    if "://" not in raw:
        return {"server": f"http://{raw}"}
    return {"server": raw}


def launch_kwargs(*, headless: bool = True) -> dict[str, Any]:
    """Return kwargs passed to chromium.launch."""

    args = [
        "--disable-blink-features=AutomationControlled",
        "--disable-dev-shm-usage",
        "--disable-infobars",
        "--no-default-browser-check",
        "--no-sandbox",
        "--disable-setuid-sandbox",
    ]
    extra_args = os.getenv("FURNICRAWL_CHROMIUM_ARGS")
    if extra_args:
        args.extend(shlex.split(extra_args))

    kwargs: dict[str, Any] = {
        "headless": headless_enabled(headless),
        "args": args,
    }

    channel = os.getenv("FURNICRAWL_BROWSER_CHANNEL")
    if channel:
        kwargs["channel"] = channel

    proxy = _proxy_config()
    if proxy:
        kwargs["proxy"] = proxy

    slow_mo = _env_int("FURNICRAWL_SLOW_MO_MS", 0)
    if slow_mo > 0:
        kwargs["slow_mo"] = slow_mo

    return kwargs


def context_kwargs(
    *,
    user_agent: str | None = None,
    locale: str | None = None,
) -> dict[str, Any]:
    """Return kwargs for a fresh, cookie-isolated browser context."""

    kwargs: dict[str, Any] = {
        "user_agent": user_agent or os.getenv("FURNICRAWL_USER_AGENT") or DEFAULT_USER_AGENT,
        "viewport": dict(DEFAULT_VIEWPORT),
        "java_script_enabled": True,
        "storage_state": None,
    }
    if locale:
        kwargs["locale"] = locale
    if _as_bool(os.getenv("FURNICRAWL_IGNORE_HTTPS_ERRORS"), False):
        kwargs["ignore_https_errors"] = True
    return kwargs


async def launch_browser(playwright: Playwright, *, headless: bool = True) -> Browser:
    """Launch the shared Chromium instance for one run."""

    return await playwright.chromium.launch(**launch_kwargs(headless=headless))


async def close_browser(browser: Browser | None) -> None:
    """Close the shared browser, logging rather than raising on failure."""

    if browser is None:
        return
    try:
        await browser.close()
    except Exception as exc:
        LOGGER.warning("Failed to close browser: %s", exc)


class BrowserSessionFactory:
    """Open isolated browsing sessions (one context + page) on a shared browser."""

    def __init__(
        self,
        browser: Browser,
        *,
        user_agent: str | None = None,
        locale: str | None = None,
        navigation_timeout_ms: int = 45000,
    ) -> None:
        self._browser = browser
        self._context_kwargs = context_kwargs(user_agent=user_agent, locale=locale)
        self._timeout_ms = navigation_timeout_ms

    @asynccontextmanager
    async def session(self) -> AsyncIterator[Page]:
        context = await self._browser.new_context(**self._context_kwargs)
        try:
            page = await context.new_page()
            page.set_default_timeout(self._timeout_ms)
            page.set_default_navigation_timeout(self._timeout_ms)
            yield page
        finally:
            try:
                await context.close()
            except Exception as exc:
                LOGGER.warning("Failed to close browser context: %s", exc)

    def __call__(self):
        return self.session()


def apply_wait_policy(min_ms: int, max_ms: int) -> tuple[int, int]:
    """Apply global wait overrides + multiplier for human_wait() calls."""

    min_override = _env_int("FURNICRAWL_WAIT_MIN_MS", min_ms)
    max_override = _env_int("FURNICRAWL_WAIT_MAX_MS", max_ms)
    multiplier = max(_env_float("FURNICRAWL_WAIT_MULTIPLIER", 1.0), 0.0)

    scaled_min = int(min_override * multiplier)
    scaled_max = int(max_override * multiplier)
    if scaled_max < scaled_min:
        scaled_max = scaled_min
    return scaled_min, scaled_max


def request_delay_bounds(base_ms: int) -> tuple[int, int]:
    """Delay before each product request: the base delay plus bounded jitter."""

    base = max(int(base_ms), 0)
    jitter = max(_env_int("FURNICRAWL_REQUEST_JITTER_MS", REQUEST_JITTER_MS), 0)
    return base, base + jitter


def mouse_jitter_enabled() -> bool:
    """Return True when synthetic mouse movements should be emitted."""

    return _as_bool(os.getenv("FURNICRAWL_MOUSE_JITTER"), True)


def debug_screenshots_enabled() -> bool:
    """Return True when category pages should be captured into the run directory."""

    return _as_bool(os.getenv("FURNICRAWL_DEBUG"), False)
