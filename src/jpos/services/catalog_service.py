from __future__ import annotations

import math
from typing import Optional

from jpos.domain.errors import NotFoundError, ValidationError
from jpos.domain.models import METAL_TYPES, Product, new_id, utc_now_iso

_EDITABLE = ("name", "price", "category", "inStock", "weight", "metal", "storeLocation", "description", "supplier", "costPrice")


def _number(value, label: str) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"{label} must be a number.") from e
    if not math.isfinite(number):
        raise ValidationError(f"{label} must be a number.")
    return number


def _validate_fields(data: dict) -> dict:
    out = dict(data)
    if "name" in out:
        out["name"] = str(out["name"] or "").strip()
        if not out["name"]:
            raise ValidationError("Name is required.")
    if "price" in out:
        out["price"] = _number(out["price"], "Price")
        if out["price"] < 0:
            raise ValidationError("Price must be >= 0.")
    if "inStock" in out:
        stock = _number(out["inStock"], "Stock")
        if stock < 0 or stock != int(stock):
            raise ValidationError("Stock must be a whole number >= 0.")
        out["inStock"] = int(stock)
    if out.get("weight") is not None:
        out["weight"] = _number(out["weight"], "Weight")
        if out["weight"] < 0:
            raise ValidationError("Weight must be >= 0.")
    if out.get("metal"):
        metal = str(out["metal"]).strip().lower()
        if metal not in METAL_TYPES:
            raise ValidationError(f"Unknown metal type: {out['metal']!r}.")
        out["metal"] = metal
    if out.get("costPrice") is not None:
        out["costPrice"] = _number(out["costPrice"], "Cost price")
        if out["costPrice"] < 0:
            raise ValidationError("Cost price must be >= 0.")
    return out


class CatalogService:
    def __init__(self, repo):
        self.repo = repo

    def list_products(self) -> list[Product]:
        products = [Product.from_dict(p) for p in self.repo.get_by_prefix("product:")]
        return sorted(products, key=lambda p: p.name.lower())

    def search_products(self, term: str = "", category: Optional[str] = None, metal: Optional[str] = None) -> list[Product]:
        needle = (term or "").strip().lower()
        out = []
        for p in self.list_products():
            if needle and needle not in p.name.lower() and needle not in p.id.lower():
                continue
            if category and p.category != category:
                continue
            if metal and p.metal != metal:
                continue
            out.append(p)
        return out

    def categories(self) -> list[str]:
        return sorted({p.category for p in self.list_products() if p.category})

    def get_product(self, product_id: str) -> Product:
        raw = self.repo.get(f"product:{product_id}")
        if raw is None:
            raise NotFoundError("Product not found.")
        return Product.from_dict(raw)

    def create_product(self, data: dict, actor_user_id: Optional[str] = None) -> Product:
        fields = _validate_fields({k: data.get(k) for k in _EDITABLE if k in data})
        if "name" not in fields:
            raise ValidationError("Name is required.")
        if "price" not in fields:
            raise ValidationError("Price is required.")

        product_id = str(data.get("id") or "").strip() or new_id("prod")
        if self.repo.get(f"product:{product_id}") is not None:
            raise ValidationError(f"Product id already exists: {product_id}")

        fields.setdefault("inStock", 0)
        fields.setdefault("category", "")
        product = Product.from_dict(
            {**fields, "id": product_id, "createdAt": utc_now_iso(), "createdBy": actor_user_id}
        )
        self.repo.set(f"product:{product_id}", product.to_dict())
        return product

    def update_product(self, product_id: str, updates: dict) -> Product:
        existing = self.repo.get(f"product:{product_id}")
        if existing is None:
            raise NotFoundError("Product not found.")
        fields = _validate_fields({k: updates[k] for k in _EDITABLE if k in updates})
        product = Product.from_dict({**existing, **fields, "id": product_id, "updatedAt": utc_now_iso()})
        self.repo.set(f"product:{product_id}", product.to_dict())
        return product

    def delete_product(self, product_id: str) -> None:
        removed = self.repo.delete(f"product:{product_id}")
        if not removed:
            raise NotFoundError("Product not found.")
