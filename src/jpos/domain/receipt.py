from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional

from jpos.domain.errors import ValidationError
from jpos.domain.models import Customer, Product, SaleItem


def clamp_percent(value: object) -> float:
    try:
        pct = float(value)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"Discount must be a number. Received: {value!r}") from e
    if math.isnan(pct):
        raise ValidationError("Discount must be a number. Received: NaN")
    return max(0.0, min(100.0, pct))


def whole_quantity(value: object) -> int:
    try:
        number = float(value)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"Quantity must be a whole number. Received: {value!r}") from e
    if not math.isfinite(number) or number != int(number):
        raise ValidationError(f"Quantity must be a whole number. Received: {value!r}")
    return int(number)


@dataclass
class ReceiptLine:
    product: Product
    quantity: int
    price: float
    discount: float = 0.0

    @property
    def product_id(self) -> str:
        return self.product.id

    def gross(self) -> float:
        return self.price * self.quantity

    def line_total(self) -> float:
        return self.gross() * (1 - self.discount / 100)


class Receipt:
    """In-progress cart for one transaction.

    Totals are never cached: every read recomputes from the current lines, so
    the sequence of mutations cannot make them drift.

    Discounts are layered in a fixed order, each taken off the running amount:
    line discounts, then the receipt discount, then the customer discount.
    """

    def __init__(self) -> None:
        self.lines: list[ReceiptLine] = []
        self.customer: Optional[Customer] = None
        self.receipt_discount: float = 0.0

    def _find(self, product_id: str) -> Optional[ReceiptLine]:
        for line in self.lines:
            if line.product_id == product_id:
                return line
        return None

    def add_line(self, product: Product, quantity: int = 1) -> ReceiptLine:
        qty = max(1, whole_quantity(quantity))
        line = self._find(product.id)
        if line:
            line.quantity += qty
            return line
        line = ReceiptLine(product=product, quantity=qty, price=float(product.price))
        self.lines.append(line)
        return line

    def update_quantity(self, product_id: str, new_quantity: int) -> None:
        line = self._find(product_id)
        if not line:
            return
        qty = whole_quantity(new_quantity)
        if qty <= 0:
            self.lines.remove(line)
        else:
            line.quantity = qty

    def update_line_discount(self, product_id: str, discount_pct: float) -> None:
        pct = clamp_percent(discount_pct)
        line = self._find(product_id)
        if line:
            line.discount = pct

    def set_receipt_discount(self, pct: float) -> None:
        self.receipt_discount = clamp_percent(pct)

    def set_customer(self, customer: Optional[Customer]) -> None:
        self.customer = customer

    def clear(self) -> None:
        self.lines = []
        self.customer = None
        self.receipt_discount = 0.0

    @property
    def customer_discount(self) -> float:
        return clamp_percent(self.customer.discount) if self.customer else 0.0

    def is_empty(self) -> bool:
        return not self.lines

    def item_count(self) -> int:
        return sum(line.quantity for line in self.lines)

    def subtotal(self) -> float:
        return sum(line.line_total() for line in self.lines)

    def after_receipt_discount(self) -> float:
        return self.subtotal() * (1 - self.receipt_discount / 100)

    def total(self) -> float:
        return self.after_receipt_discount() * (1 - self.customer_discount / 100)

    def receipt_discount_amount(self) -> float:
        return self.subtotal() - self.after_receipt_discount()

    def customer_discount_amount(self) -> float:
        return self.after_receipt_discount() - self.total()

    def can_checkout(self) -> bool:
        return not self.is_empty()

    def sale_items(self) -> tuple[SaleItem, ...]:
        return tuple(
            SaleItem(
                product_id=line.product_id,
                product_name=line.product.name,
                quantity=line.quantity,
                price=line.price,
                discount=line.discount,
            )
            for line in self.lines
        )
