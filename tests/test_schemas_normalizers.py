from __future__ import annotations

import pytest
from pydantic import ValidationError

from furnicrawl.extractors.schemas import StandardProductRecord
from furnicrawl.normalizers import (
    absolute_url,
    clean_text,
    coerce_identifier,
    normalize_image_url,
    slug_from_url,
)


def test_record_strips_and_coerces_identifier() -> None:
    record = StandardProductRecord(
        retailer="IKEA",
        product_id=12345,
        name="  POÄNG  ",
        slug="poang",
        url="https://www.ikea.com/ca/en/p/poang-12345/",
        unexpected="ignored",
    )

    assert record.product_id == "12345"
    assert record.name == "POÄNG"
    assert record.key == ("IKEA", "12345")
    assert not hasattr(record, "unexpected")


def test_record_rejects_blank_identifier() -> None:
    with pytest.raises(ValidationError):
        StandardProductRecord(retailer="IKEA", product_id="   ", name="x", slug="x", url="https://x.test")


def test_clean_text() -> None:
    assert clean_text("  Walnut \n\t frame ") == "Walnut frame"
    assert clean_text("   ") is None
    assert clean_text(None) is None


def test_absolute_url() -> None:
    base = "https://www.wayfair.com"
    assert absolute_url("/furniture/pdp/x-W1.html#reviews", base) == "https://www.wayfair.com/furniture/pdp/x-W1.html"
    assert absolute_url("//cdn.test/img.jpg", base) == "https://cdn.test/img.jpg"
    assert absolute_url("javascript:void(0)", base) is None
    assert absolute_url("", base) is None


def test_slug_from_url() -> None:
    assert slug_from_url("https://www.ikea.com/ca/en/p/malm-s69009475/") == "malm-s69009475"
    assert slug_from_url("https://www.wayfair.com/pdp/sofa-W1.html", strip_suffix=".html") == "sofa-W1"
    assert slug_from_url("https://www.article.com/") == ""


def test_normalize_image_url_picks_first_usable() -> None:
    base = "https://www.ikea.com"
    assert normalize_image_url(["", {"url": "/images/a.jpg"}], base) == "https://www.ikea.com/images/a.jpg"
    assert normalize_image_url({"contentUrl": "https://cdn.test/b.jpg"}, base) == "https://cdn.test/b.jpg"
    assert normalize_image_url(42, base) is None


def test_coerce_identifier() -> None:
    assert coerce_identifier("  W0012 ") == "W0012"
    assert coerce_identifier(7) == "7"
    assert coerce_identifier(True) is None
    assert coerce_identifier("") is None
