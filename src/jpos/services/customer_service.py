from __future__ import annotations

import math

from jpos.domain.errors import NotFoundError, ValidationError
from jpos.domain.models import Customer, new_id, utc_now_iso


def _discount(value) -> float:
    try:
        pct = float(value)
    except (TypeError, ValueError) as e:
        raise ValidationError("Discount must be a number.") from e
    if math.isnan(pct) or pct < 0 or pct > 100:
        raise ValidationError("Discount must be between 0 and 100.")
    return pct


class CustomerService:
    def __init__(self, repo):
        self.repo = repo

    def list_customers(self) -> list[Customer]:
        customers = [Customer.from_dict(c) for c in self.repo.get_by_prefix("customer:")]
        return sorted(customers, key=lambda c: c.name.lower())

    def search_customers(self, term: str = "") -> list[Customer]:
        needle = (term or "").strip()
        if not needle:
            return self.list_customers()
        return [c for c in self.list_customers() if needle.lower() in c.name.lower() or needle in c.phone]

    def get_customer(self, customer_id: str) -> Customer:
        raw = self.repo.get(f"customer:{customer_id}")
        if raw is None:
            raise NotFoundError("Customer not found.")
        return Customer.from_dict(raw)

    def create_customer(self, name: str, phone: str, discount: float = 0.0) -> Customer:
        name = (name or "").strip()
        phone = (phone or "").strip()
        if not name or not phone:
            raise ValidationError("Name and phone are required.")

        customer = Customer(
            id=new_id("cust"),
            name=name,
            phone=phone,
            discount=_discount(discount),
            total_purchases=0.0,
            created_at=utc_now_iso(),
        )
        self.repo.set(f"customer:{customer.id}", customer.to_dict())
        return customer

    def update_customer(self, customer_id: str, updates: dict) -> Customer:
        if "totalPurchases" in updates:
            raise ValidationError("totalPurchases is maintained by sales and cannot be edited.")

        existing = self.repo.get(f"customer:{customer_id}")
        if existing is None:
            raise NotFoundError("Customer not found.")

        merged = dict(existing)
        for key in ("name", "phone"):
            if key in updates:
                value = str(updates[key] or "").strip()
                if not value:
                    raise ValidationError(f"{key.capitalize()} is required.")
                merged[key] = value
        if "discount" in updates:
            merged["discount"] = _discount(updates["discount"])
        merged["updatedAt"] = utc_now_iso()

        self.repo.set(f"customer:{customer_id}", merged)
        return Customer.from_dict(merged)
