from __future__ import annotations

import pytest

from furnicrawl.errors import ConfigurationError, UnsupportedRetailerError
from furnicrawl.retailers import registry
from furnicrawl.retailers.article import ArticleAdapter
from furnicrawl.retailers.base import RetailerAdapter
from furnicrawl.retailers.firstdibs import FirstDibsAdapter
from furnicrawl.retailers.firstdibs import product_id_from_url as firstdibs_id
from furnicrawl.retailers.ikea import IkeaAdapter
from furnicrawl.retailers.ikea import product_id_from_url as ikea_id
from furnicrawl.retailers.wayfair import WayfairAdapter
from furnicrawl.retailers.wayfair import product_id_from_url as wayfair_id

IKEA_URL = "https://www.ikea.com/ca/en/p/malm-bed-frame-high-white-s69009475/"
WAYFAIR_URL = "https://www.wayfair.com/furniture/pdp/mercury-row-sofa-W001234567.html"
ARTICLE_URL = "https://www.article.com/product/1234/sven-charme-tan-sofa"
FIRSTDIBS_URL = "https://www.1stdibs.com/furniture/seating/lounge-chairs/pair-of-chairs/id-f_12345678/"

ALL_ADAPTERS = [IkeaAdapter, WayfairAdapter, ArticleAdapter, FirstDibsAdapter]


@pytest.mark.parametrize("retailer_id", ["ikea", "IKEA", " Ikea "])
def test_resolve_is_case_insensitive(retailer_id: str) -> None:
    adapter = registry.resolve(retailer_id)
    assert isinstance(adapter, IkeaAdapter)
    assert adapter.get_retailer_name() == "IKEA"


def test_resolve_every_registered_retailer() -> None:
    assert isinstance(registry.resolve("wayfair"), WayfairAdapter)
    assert isinstance(registry.resolve("article"), ArticleAdapter)
    assert isinstance(registry.resolve("1stdibs"), FirstDibsAdapter)


def test_unknown_retailer_lists_supported_names() -> None:
    with pytest.raises(UnsupportedRetailerError) as excinfo:
        registry.resolve("target")

    message = str(excinfo.value)
    assert "target" in message
    for name in ("IKEA", "Wayfair", "Article", "1stDibs"):
        assert name in message
    assert excinfo.value.supported == registry.supported_retailers()
    assert isinstance(excinfo.value, ConfigurationError)


def test_resolve_passes_locale_options() -> None:
    adapter = registry.resolve("ikea", {"country": "US", "language": "EN", "navigation_timeout_ms": 1000})

    assert adapter.base_url == "https://www.ikea.com/us/en"
    assert adapter.navigation_timeout_ms == 1000


def test_wayfair_country_maps_to_domain() -> None:
    assert WayfairAdapter(country="us").base_url == "https://www.wayfair.com"
    assert WayfairAdapter(country="ca").base_url == "https://www.wayfair.ca"


def test_adapter_contract_cannot_be_instantiated() -> None:
    with pytest.raises(TypeError):
        RetailerAdapter()  # type: ignore[abstract]


@pytest.mark.parametrize("adapter_cls", ALL_ADAPTERS)
def test_default_categories_are_absolute(adapter_cls) -> None:
    adapter = adapter_cls()
    categories = adapter.get_categories()

    assert categories
    for category in categories:
        assert category.name
        assert category.url.startswith(adapter.base_url)


@pytest.mark.parametrize("adapter_cls", ALL_ADAPTERS)
def test_transform_rejects_missing_input(adapter_cls) -> None:
    adapter = adapter_cls()
    assert adapter.transform_product_data(None) is None
    assert adapter.transform_product_data({}) is None


@pytest.mark.parametrize("adapter_cls", ALL_ADAPTERS)
def test_transform_rejects_record_without_identifier(adapter_cls) -> None:
    assert adapter_cls().transform_product_data({"name": "Chair"}) is None


def test_product_ids_from_urls() -> None:
    assert ikea_id(IKEA_URL) == "s69009475"
    assert ikea_id("https://www.ikea.com/ca/en/p/poang-armchair-90240897/?q=1") == "90240897"
    assert ikea_id("https://www.ikea.com/ca/en/cat/beds-bm003/") is None
    assert wayfair_id(WAYFAIR_URL) == "W001234567"
    assert wayfair_id("https://www.wayfair.com/furniture/sb0/sofas-c413892.html") is None
    assert firstdibs_id(FIRSTDIBS_URL) == "f_12345678"
    assert firstdibs_id("https://www.1stdibs.com/furniture/seating/chair-slug/") == "chair-slug"


def test_ikea_json_ld_record() -> None:
    json_ld = {
        "@type": "Product",
        "name": "MALM Bed frame, high",
        "description": "A clean design",
        "image": ["https://www.ikea.com/ca/en/images/products/malm.jpg"],
        "offers": {"@type": "Offer", "price": "299.00", "priceCurrency": "CAD"},
    }
    raw = {"json_ld": json_ld, "url": IKEA_URL, "slug": "malm-bed-frame-high-white-s69009475", "product_id": None}

    record = IkeaAdapter().transform_product_data(raw)

    assert record is not None
    assert record.retailer == "IKEA"
    assert record.product_id == "s69009475"
    assert record.name == "MALM Bed frame, high"
    assert record.slug == "malm-bed-frame-high-white-s69009475"
    assert record.price == {"@type": "Offer", "price": "299.00", "priceCurrency": "CAD"}
    assert record.raw_data == json_ld
    assert record.image_url == "https://www.ikea.com/ca/en/images/products/malm.jpg"
    assert record.extraction_method == "json-ld"


def test_ikea_requires_json_ld() -> None:
    assert IkeaAdapter().transform_product_data({"url": IKEA_URL, "name": "MALM"}) is None


def test_wayfair_json_ld_record_uses_url_identifier() -> None:
    raw = {
        "json_ld": {"name": "Mercury Row Sofa", "offers": [{"price": 899.99}], "sku": "OTHER"},
        "url": WAYFAIR_URL,
        "slug": None,
        "product_id": None,
    }

    record = WayfairAdapter(country="us").transform_product_data(raw)

    assert record is not None
    assert record.product_id == "W001234567"
    assert record.slug == "mercury-row-sofa-W001234567"
    assert record.price == [{"price": 899.99}]


def test_wayfair_manual_record_is_marked() -> None:
    raw = {
        "manual_extraction": True,
        "name": "Mercury Row Sofa",
        "price": "$899.99",
        "url": WAYFAIR_URL,
        "product_id": "W001234567",
        "slug": "mercury-row-sofa-W001234567",
    }

    record = WayfairAdapter(country="us").transform_product_data(raw)

    assert record is not None
    assert record.price == {"price": "$899.99"}
    assert record.raw_data == {
        "name": "Mercury Row Sofa",
        "price": "$899.99",
        "url": WAYFAIR_URL,
        "extractionMethod": "manual",
    }
    assert record.extraction_method == "manual"


def test_article_manual_record_keeps_description() -> None:
    raw = {
        "manual_extraction": True,
        "name": "Sven Charme Tan Sofa",
        "price": "$1,999",
        "description": "  Full-grain   leather  ",
        "url": ARTICLE_URL,
        "product_id": "1234",
    }

    record = ArticleAdapter().transform_product_data(raw)

    assert record is not None
    assert record.retailer == "Article"
    assert record.product_id == "1234"
    assert record.slug == "sven-charme-tan-sofa"
    assert record.description == "Full-grain leather"
    assert record.raw_data["extractionMethod"] == "manual"
    assert record.raw_data["description"] == "  Full-grain   leather  "


def test_article_json_ld_falls_back_to_sku() -> None:
    raw = {"json_ld": {"name": "Sven Sofa", "sku": "SKU-77"}, "url": ARTICLE_URL, "product_id": None}

    record = ArticleAdapter().transform_product_data(raw)

    assert record is not None
    assert record.product_id == "SKU-77"


def test_firstdibs_record_carries_specifications() -> None:
    specifications = {
        "dimensions": {"height": "30 in", "width": "24 in"},
        "materials": "Walnut",
        "condition": {"rating": "Good", "details": "Minor wear"},
    }
    raw = {
        "url": FIRSTDIBS_URL,
        "product_id": None,
        "slug": "pair-of-chairs",
        "name": "Pair of Lounge Chairs",
        "price": "$4,200",
        "image_url": "https://a.1stdibscdn.com/chair.jpg",
        "specifications": specifications,
    }

    record = FirstDibsAdapter().transform_product_data(raw)

    assert record is not None
    assert record.retailer == "1stDibs"
    assert record.product_id == "f_12345678"
    assert record.specifications == specifications
    assert record.raw_data["extractionMethod"] == "manual"
    assert record.raw_data["name"] == "Pair of Lounge Chairs"
    assert "extractionMethod" not in raw


def test_firstdibs_price_placeholder() -> None:
    raw = {"url": FIRSTDIBS_URL, "name": "Chair", "price": None}

    record = FirstDibsAdapter().transform_product_data(raw)

    assert record is not None
    assert record.price == "Price not available"
