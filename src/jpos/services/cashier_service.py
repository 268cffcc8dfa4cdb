from __future__ import annotations

import logging
import math
from typing import Optional

from jpos.domain.errors import StoreUnavailableError, ValidationError
from jpos.domain.models import Customer, Product, User, new_id, utc_now_iso
from jpos.domain.payment import PaymentResolver
from jpos.domain.receipt import Receipt
from jpos.services.sales_service import CommitOutcome

log = logging.getLogger(__name__)


class CashierSession:
    """Checkout workflow for one logged-in cashier.

    Each session owns its own Receipt; nothing is shared between sessions.
    """

    def __init__(self, catalog, customers, sales, fx, settings, user: Optional[User] = None):
        self.catalog = catalog
        self.customers = customers
        self.sales = sales
        self.fx = fx
        self.settings = settings
        self.user = user
        self.receipt = Receipt()
        self.payment: Optional[PaymentResolver] = None

    def search_products(self, term: str = "", category: Optional[str] = None, metal: Optional[str] = None) -> list[Product]:
        return self.catalog.search_products(term, category, metal)

    def add_product(self, product_id: str, quantity: int = 1) -> None:
        product = self.catalog.get_product(product_id)
        self.receipt.add_line(product, quantity)
        self.payment = None

    def update_quantity(self, product_id: str, quantity: int) -> None:
        self.receipt.update_quantity(product_id, quantity)
        self.payment = None

    def update_line_discount(self, product_id: str, pct: float) -> None:
        self.receipt.update_line_discount(product_id, pct)
        self.payment = None

    def set_receipt_discount(self, pct: float) -> None:
        self.receipt.set_receipt_discount(pct)
        self.payment = None

    def search_customers(self, term: str = "") -> list[Customer]:
        return self.customers.search_customers(term)

    def select_customer(self, customer_id: Optional[str]) -> Optional[Customer]:
        customer = self.customers.get_customer(customer_id) if customer_id else None
        self.receipt.set_customer(customer)
        self.payment = None
        return customer

    def create_customer(self, name: str, phone: str, discount: float = 0.0, select: bool = True) -> Customer:
        try:
            customer = self.customers.create_customer(name, phone, discount)
        except StoreUnavailableError as e:
            # keeps the checkout moving; the sale will carry the name only
            customer = Customer(
                id=new_id("local-cust"),
                name=(name or "").strip(),
                phone=(phone or "").strip(),
                discount=max(0.0, min(100.0, float(discount or 0))),
                total_purchases=0.0,
                created_at=utc_now_iso(),
                local=True,
            )
            log.warning("customer_local_fallback id=%s error=%s", customer.id, e)
        if select:
            self.receipt.set_customer(customer)
            self.payment = None
        return customer

    def can_checkout(self) -> bool:
        return self.receipt.can_checkout()

    def open_payment(self, currency: Optional[str] = None) -> PaymentResolver:
        if not self.can_checkout():
            raise ValidationError("Receipt is empty.")
        base = self.settings.base_currency()
        cur = (currency or base).strip().upper()
        rate = self.fx.get_rate(cur)
        total = round(self.receipt.total(), 2)
        # cash defaults to the exact total in the chosen currency, rounded up to the cent
        cash = math.ceil(round(total / rate * 100, 6)) / 100
        self.payment = PaymentResolver(total=total, cash_amount=cash, currency=cur, exchange_rate=rate)
        return self.payment

    def complete_payment(self, payment: Optional[PaymentResolver] = None) -> CommitOutcome:
        payment = payment or self.payment
        if payment is None:
            raise ValidationError("Open a payment before completing it.")
        outcome = self.sales.commit(self.receipt, payment, self.user.id if self.user else None)
        self.receipt.clear()
        self.payment = None
        return outcome
