"""Data validation schemas for extracted product records."""

from __future__ import annotations

from typing import Any, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

PriceValue = Union[str, dict[str, Any], list[Any], None]


class StandardProductRecord(BaseModel):
    """Canonical, storage-ready representation of one retailer product."""

    model_config = ConfigDict(extra="ignore")

    retailer: str
    product_id: str = Field(min_length=1)
    name: str
    slug: str
    price: PriceValue = None
    raw_data: dict[str, Any] = Field(default_factory=dict)
    url: str
    description: str | None = None
    image_url: str | None = None
    specifications: dict[str, Any] | None = None

    @field_validator("product_id", "name", mode="before")
    @classmethod
    def _strip_required(cls, value: Any) -> Any:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            value = str(value)
        if isinstance(value, str):
            return value.strip()
        return value

    @property
    def key(self) -> tuple[str, str]:
        return self.retailer, self.product_id

    @property
    def extraction_method(self) -> str:
        return str(self.raw_data.get("extractionMethod") or "json-ld")
