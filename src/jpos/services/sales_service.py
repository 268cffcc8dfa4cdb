from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Callable, Optional

from jpos.domain.errors import (
    NotFoundError,
    PaymentInsufficientError,
    StoreUnavailableError,
    ValidationError,
)
from jpos.domain.models import (
    PAYMENT_METHODS,
    MetalTransaction,
    Sale,
    SaleItem,
    new_id,
    utc_now_iso,
)
from jpos.domain.payment import PaymentResolver
from jpos.domain.receipt import Receipt
from jpos.repositories.unit_of_work import RepositoryUnitOfWork, UnitOfWork

log = logging.getLogger("jpos.sales")

COMMITTED = "committed"
PENDING_RETRY = "pending_retry"


@dataclass(frozen=True)
class CommitOutcome:
    status: str
    sale: Sale
    error: Optional[str] = None

    @property
    def committed(self) -> bool:
        return self.status == COMMITTED


def _metal_transactions(sale: Sale, processed_by: Optional[str]) -> list[MetalTransaction]:
    lots = sale.payment_details.metal or ()
    return [
        MetalTransaction(
            id=new_id("metal"),
            metal_type=lot.metal_type,
            weight=lot.weight,
            purity=lot.purity,
            price_per_gram=lot.price_per_gram,
            total_value=lot.value,
            transaction_type="purchase",
            timestamp=sale.timestamp,
            processed_by=processed_by,
            related_sale_id=sale.id,
        )
        for lot in lots
    ]


def _number(payload: dict, key: str, default=None) -> float:
    value = payload.get(key, default)
    try:
        number = float(value)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"'{key}' must be a number.") from e
    if not math.isfinite(number) or number < 0:
        raise ValidationError(f"'{key}' must be >= 0.")
    return number


class SalesService:
    def __init__(
        self,
        repo,
        outbox=None,
        fallback: str = "outbox",
        uow_factory: Callable[[], UnitOfWork] | None = None,
    ):
        self.repo = repo
        self.outbox = outbox
        self.fallback = fallback
        self.uow_factory = uow_factory or (lambda: RepositoryUnitOfWork(repo))

    def commit(self, receipt: Receipt, payment: PaymentResolver, cashier_id: Optional[str] = None) -> CommitOutcome:
        if receipt.is_empty():
            raise ValidationError("Receipt is empty.")
        total = receipt.total()
        if round(payment.total, 2) != round(total, 2):
            raise ValidationError("Payment was opened for a different total; reopen payment.")
        if not payment.can_complete():
            raise PaymentInsufficientError(
                f"Amount tendered {payment.amount_tendered():.2f} is less than total {total:.2f}."
            )

        customer = receipt.customer
        if customer and customer.local:
            log.warning("sale_customer_local_only customer=%s", customer.id)

        sale = Sale(
            id=new_id("sale"),
            timestamp=utc_now_iso(),
            items=receipt.sale_items(),
            subtotal=receipt.subtotal(),
            total=total,
            payment_method=payment.method,
            payment_details=payment.payment_details(),
            change=payment.change(),
            customer_id=customer.id if customer and not customer.local else None,
            customer_name=customer.name if customer else None,
            cashier_id=cashier_id,
        )
        return self._commit_or_queue(sale, _metal_transactions(sale, cashier_id))

    def _persist(self, sale: Sale, metal: list[MetalTransaction]) -> bool:
        with self.uow_factory() as uow:
            _stored, applied = uow.commit_sale(sale, metal)
        return applied

    def _commit_or_queue(self, sale: Sale, metal: list[MetalTransaction]) -> CommitOutcome:
        try:
            self._persist(sale, metal)
        except StoreUnavailableError as e:
            if self.fallback != "outbox" or self.outbox is None:
                log.error("sale_commit_failed sale_id=%s error=%s", sale.id, e)
                raise
            self.outbox.enqueue(
                sale.id,
                {"sale": sale.to_dict(), "metal": [m.to_dict() for m in metal]},
                str(e),
            )
            log.warning("sale_queued_for_retry sale_id=%s total=%.2f error=%s", sale.id, sale.total, e)
            return CommitOutcome(status=PENDING_RETRY, sale=sale, error=str(e))

        log.info(
            "sale_committed sale_id=%s items=%s total=%.2f method=%s cashier=%s",
            sale.id, len(sale.items), sale.total, sale.payment_method, sale.cashier_id,
        )
        return CommitOutcome(status=COMMITTED, sale=sale)

    def flush_outbox(self) -> int:
        """Retry queued sales in order. Returns how many reached the store.

        Stops at the first store failure; a sale rejected for a missing product
        or customer stays queued with its error for manual review.
        """
        if self.outbox is None:
            return 0
        flushed = 0
        for entry in self.outbox.pending():
            sale = Sale.from_dict(entry.payload["sale"])
            metal = [MetalTransaction.from_dict(m) for m in entry.payload.get("metal", [])]
            try:
                applied = self._persist(sale, metal)
            except StoreUnavailableError as e:
                self.outbox.record_failure(entry.sale_id, str(e))
                log.warning("outbox_flush_stopped sale_id=%s error=%s", entry.sale_id, e)
                break
            except (NotFoundError, ValidationError) as e:
                self.outbox.record_failure(entry.sale_id, str(e))
                log.error("outbox_sale_rejected sale_id=%s error=%s", entry.sale_id, e)
                continue
            self.outbox.remove(entry.sale_id)
            flushed += 1
            log.info("outbox_sale_flushed sale_id=%s applied=%s", entry.sale_id, applied)
        return flushed

    def pending_count(self) -> int:
        return self.outbox.count() if self.outbox is not None else 0

    def create_sale_from_payload(self, payload: dict, cashier_id: Optional[str] = None) -> Sale:
        """Validate a sale submitted over the API and commit it.

        Store failures propagate: the caller decides whether to retry.
        """
        raw_items = payload.get("items")
        if not isinstance(raw_items, list) or not raw_items:
            raise ValidationError("'items' must be a non-empty list.")

        items: list[SaleItem] = []
        for raw in raw_items:
            if not isinstance(raw, dict) or not str(raw.get("productId") or "").strip():
                raise ValidationError("Each item needs a 'productId'.")
            qty = _number(raw, "quantity")
            if qty < 1 or qty != int(qty):
                raise ValidationError("Item quantity must be a whole number >= 1.")
            discount = _number(raw, "discount", 0)
            if discount > 100:
                raise ValidationError("Item discount must be between 0 and 100.")
            items.append(
                SaleItem(
                    product_id=str(raw["productId"]).strip(),
                    product_name=str(raw.get("productName") or ""),
                    quantity=int(qty),
                    price=_number(raw, "price"),
                    discount=discount,
                )
            )

        subtotal = _number(payload, "subtotal")
        total = _number(payload, "total")
        computed = sum(it.line_total for it in items)
        if abs(computed - subtotal) > 0.01:
            raise ValidationError(f"Subtotal {subtotal:.2f} does not match items ({computed:.2f}).")
        if total > subtotal + 0.01:
            raise ValidationError("Total cannot exceed subtotal.")

        method = payload.get("paymentMethod")
        if method not in PAYMENT_METHODS:
            raise ValidationError(f"'paymentMethod' must be one of {', '.join(PAYMENT_METHODS)}.")
        details = payload.get("paymentDetails") or {}
        if not isinstance(details, dict):
            raise ValidationError("'paymentDetails' must be an object.")

        payment = PaymentResolver(
            total=total,
            method=method,
            cash_amount=_number(details, "cash", 0),
            card_amount=_number(details, "card", 0),
            currency=str(details.get("currency") or ""),
            exchange_rate=_number(details, "exchangeRate", 1),
        )
        if method == "metal":
            lots = details.get("metal")
            if not isinstance(lots, list) or not lots:
                raise ValidationError("Metal payment needs at least one lot in 'paymentDetails.metal'.")
            for raw in lots:
                if not isinstance(raw, dict):
                    raise ValidationError("Each metal lot must be an object.")
                payment.add_metal_lot(raw.get("type", ""), raw.get("purity"), _number(raw, "weight"))
                if raw.get("pricePerGram") is not None:
                    payment.update_metal_lot(len(payment.metal_lots) - 1, price_per_gram=_number(raw, "pricePerGram"))
        if not payment.can_complete():
            raise PaymentInsufficientError(
                f"Amount tendered {payment.amount_tendered():.2f} is less than total {total:.2f}."
            )

        customer_id = str(payload.get("customerId") or "").strip() or None
        sale = Sale(
            id=new_id("sale"),
            timestamp=utc_now_iso(),
            items=tuple(items),
            subtotal=subtotal,
            total=total,
            payment_method=method,
            payment_details=payment.payment_details(),
            change=payment.change(),
            customer_id=customer_id,
            customer_name=payload.get("customerName"),
            cashier_id=cashier_id,
        )
        metal = _metal_transactions(sale, cashier_id)
        self._persist(sale, metal)
        log.info("sale_committed sale_id=%s items=%s total=%.2f method=%s cashier=%s source=api",
                 sale.id, len(items), total, method, cashier_id)
        return sale

    def list_sales(self) -> list[Sale]:
        sales = [Sale.from_dict(s) for s in self.repo.get_by_prefix("sale:")]
        return sorted(sales, key=lambda s: s.timestamp, reverse=True)

    def get_sale(self, sale_id: str) -> Sale:
        raw = self.repo.get(f"sale:{sale_id}")
        if raw is None:
            raise NotFoundError("Sale not found.")
        return Sale.from_dict(raw)
