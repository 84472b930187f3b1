"""Custom exception types for FurniCrawl."""

from __future__ import annotations

from typing import Optional


class _ContextError(Exception):
    """Base for errors that carry crawl context in their message."""

    default_message = "Crawl failure."

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        url: Optional[str] = None,
        retailer: Optional[str] = None,
        category: Optional[str] = None,
    ) -> None:
        self.message = message or self.default_message
        self.url = url
        self.retailer = retailer
        self.category = category
        super().__init__(self.message)

    def __str__(self) -> str:
        context_parts: list[str] = []
        if self.retailer:
            context_parts.append(f"retailer={self.retailer}")
        if self.category:
            context_parts.append(f"category={self.category}")
        if self.url:
            context_parts.append(f"url={self.url}")
        context = ", ".join(context_parts)
        return f"{self.message} ({context})" if context else self.message


class ConfigurationError(_ContextError):
    """Raised when a run cannot start because of invalid configuration."""

    default_message = "Invalid crawl configuration."


class UnsupportedRetailerError(ConfigurationError):
    """Raised when no adapter is registered for a retailer identifier."""

    def __init__(self, retailer: str, supported: list[str]) -> None:
        self.supported = list(supported)
        super().__init__(
            f"Unsupported retailer: {retailer}. Supported: {', '.join(self.supported)}",
            retailer=retailer,
        )

    def __str__(self) -> str:
        return self.message


class BrowserLaunchError(_ContextError):
    """Raised when the shared Chromium instance cannot be started."""

    default_message = "Unable to launch the browser."


class PageLoadError(_ContextError):
    """Raised when a page fails to load or render correctly."""

    default_message = "Failed to load page."


class SelectorChangedError(_ContextError):
    """Raised when expected DOM selectors change and scraping fails."""

    default_message = "Selectors appear to have changed."


class ExtractionError(_ContextError):
    """Raised when a product page yields no usable data."""

    default_message = "Product extraction failed."


class StorageError(_ContextError):
    """Raised when the datastore rejects or cannot accept a record."""

    default_message = "Storage write failed."
