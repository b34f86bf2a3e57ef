from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any

from storefront.core.errors import ValidationError
from storefront.core.money import Money
from storefront.domain.catalog.records import slugify

DEFAULT_CATEGORY = "uncategorized"


@dataclass
class ProductDraft:
    """Normalized product input. ``provided`` lists the fields the caller sent."""

    name: str | None = None
    description: str | None = None
    price: Money | None = None
    sale_price: Money | None = None
    stock: int | None = None
    categories: list[str] | None = None
    image: str | None = None
    images: list[dict[str, Any]] | None = None
    slug: str | None = None
    is_featured: bool | None = None
    is_active: bool | None = None
    provided: set[str] = field(default_factory=set)

    def has(self, name: str) -> bool:
        return name in self.provided


def _optional_string(body: dict, key: str, errors: list[str]) -> str | None:
    value = body.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        errors.append(f"{key} must be a string")
        return None
    return value.strip()


def _optional_bool(body: dict, key: str, errors: list[str]) -> bool | None:
    value = body.get(key)
    if value is None:
        return None
    if not isinstance(value, bool):
        errors.append(f"{key} must be a boolean")
        return None
    return value


def _stock(value: Any, errors: list[str]) -> int | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        errors.append("stock must be a number")
        return None
    if int(value) != value or value < 0:
        errors.append("stock must be a non-negative integer")
        return None
    return int(value)


def _categories(value: Any, errors: list[str]) -> list[str] | None:
    if value is None:
        return None
    raw = [value] if isinstance(value, str) else value
    if not isinstance(raw, list) or not all(isinstance(c, str) for c in raw):
        errors.append("category must be a string or a list of strings")
        return None
    names: list[str] = []
    for item in raw:
        name = item.strip()
        if name and name not in names:
            names.append(name)
    return names


def _images(value: Any, errors: list[str]) -> list[dict[str, Any]] | None:
    if value is None:
        return None
    if not isinstance(value, list):
        errors.append("images must be a list")
        return None
    images: list[dict[str, Any]] = []
    for idx, item in enumerate(value):
        if isinstance(item, str) and item.strip():
            images.append({"url": item.strip()})
        elif isinstance(item, dict) and isinstance(item.get("url"), str) and item["url"].strip():
            image = {"url": item["url"].strip()}
            if isinstance(item.get("alt"), str):
                image["alt"] = item["alt"]
            images.append(image)
        else:
            errors.append(f"images[{idx}] must be a URL string or an object with a url")
    return images


def validate_product_payload(body: Any, default_currency: str, partial: bool = False) -> ProductDraft:
    """Check an untrusted product payload, collecting every problem found.

    With ``partial=True`` (updates) required fields may be omitted, but any
    field that is present must still be valid.
    """
    if not isinstance(body, dict):
        raise ValidationError("Invalid JSON payload", errors=["Invalid JSON payload"])

    errors: list[str] = []
    draft = ProductDraft()

    name = body.get("name")
    if name is None and partial:
        pass
    elif not isinstance(name, str) or not name.strip():
        errors.append("name is required and must be a non-empty string")
    else:
        draft.name = name.strip()
        draft.provided.add("name")

    price = body.get("price")
    if price is None and partial:
        pass
    elif price is None:
        errors.append("price is required and must be a number")
    else:
        try:
            draft.price, draft.sale_price = Money.parse(price, default_currency)
            draft.provided.update({"price", "sale_price"})
        except ValidationError as exc:
            errors.append(f"price is required and must be a number ({exc.message})")

    for key, attr in (("description", "description"), ("image", "image")):
        if key in body:
            setattr(draft, attr, _optional_string(body, key, errors))
            draft.provided.add(attr)

    if "stock" in body:
        draft.stock = _stock(body["stock"], errors)
        draft.provided.add("stock")

    if "category" in body:
        draft.categories = _categories(body["category"], errors)
        draft.provided.add("categories")

    if "images" in body:
        draft.images = _images(body["images"], errors)
        draft.provided.add("images")

    for key, attr in (("isFeatured", "is_featured"), ("isActive", "is_active")):
        if key in body:
            setattr(draft, attr, _optional_bool(body, key, errors))
            draft.provided.add(attr)

    raw_slug = body.get("slug")
    if raw_slug is not None:
        if not isinstance(raw_slug, str) or not slugify(raw_slug):
            errors.append("slug must be a string containing letters or digits")
        else:
            draft.slug = slugify(raw_slug)
            draft.provided.add("slug")

    if errors:
        raise ValidationError(errors[0], errors=errors)

    if not partial:
        if not draft.categories:
            draft.categories = [DEFAULT_CATEGORY]
            draft.provided.add("categories")
        if draft.slug is None and draft.name:
            draft.slug = slugify(draft.name) or None
            draft.provided.add("slug")
    return draft
