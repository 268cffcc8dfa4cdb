from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional

from jpos.domain.errors import ValidationError
from jpos.domain.models import METAL_TYPES, PAYMENT_METHODS, MetalLotRecord, PaymentDetails


# Price per gram by metal type and fineness (parts per thousand).
METAL_PRICES: dict[str, dict[int, float]] = {
    "gold": {585: 1850.0, 750: 2100.0, 999: 2300.0},
    "silver": {925: 28.0, 999: 35.0},
    "platinum": {950: 1200.0, 999: 1400.0},
}


def lookup_price_per_gram(metal_type: str, purity: int) -> tuple[float, bool]:
    """Return (price, found). A pair missing from the table prices at 0."""
    price = METAL_PRICES.get(metal_type, {}).get(int(purity))
    if price is None:
        return 0.0, False
    return price, True


def validate_metal_type(metal_type: str) -> str:
    if not isinstance(metal_type, str):
        raise ValidationError(f"Metal type must be a string. Received: {metal_type!r}")
    value = metal_type.strip().lower()
    if value not in METAL_TYPES:
        raise ValidationError(f"Unknown metal type: {metal_type!r}. Expected one of {', '.join(METAL_TYPES)}.")
    return value


def _non_negative(value: object, label: str) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"{label} must be a number.") from e
    if math.isnan(number) or number < 0:
        raise ValidationError(f"{label} must be >= 0.")
    return number


def validate_purity(value: object) -> int:
    try:
        number = float(value)
    except (TypeError, ValueError) as e:
        raise ValidationError("Purity must be a whole number.") from e
    if not math.isfinite(number) or number != int(number) or number <= 0:
        raise ValidationError("Purity must be a whole number > 0.")
    return int(number)


# float noise allowance when comparing tendered against the cent-rounded total
_EPSILON = 1e-9


@dataclass
class MetalLot:
    metal_type: str = "gold"
    purity: int = 585
    weight: float = 0.0
    price_per_gram: float = 0.0
    price_overridden: bool = False
    price_found: bool = True

    def reprice(self) -> None:
        self.price_per_gram, self.price_found = lookup_price_per_gram(self.metal_type, self.purity)

    def value(self) -> float:
        return self.weight * self.price_per_gram

    def snapshot(self) -> MetalLotRecord:
        return MetalLotRecord(
            metal_type=self.metal_type,
            purity=int(self.purity),
            weight=float(self.weight),
            price_per_gram=float(self.price_per_gram),
        )


class PaymentResolver:
    """Tender calculation for one receipt total.

    Cash and card amounts are entered in `currency` and converted with
    `exchange_rate`; metal lots are valued in the base currency already.
    The total is rounded to cents once, here, and tender must reach it.
    """

    def __init__(
        self,
        total: float,
        method: str = "cash",
        cash_amount: Optional[float] = None,
        card_amount: float = 0.0,
        currency: str = "UAH",
        exchange_rate: float = 1.0,
    ):
        self.total = round(_non_negative(total, "Total"), 2)
        self.method = "cash"
        self.set_method(method)
        self.cash_amount = _non_negative(self.total if cash_amount is None else cash_amount, "Cash amount")
        self.card_amount = _non_negative(card_amount, "Card amount")
        self.currency = currency
        self.exchange_rate = 1.0
        self.set_exchange_rate(exchange_rate)
        self.metal_lots: list[MetalLot] = []

    def set_method(self, method: str) -> None:
        if method not in PAYMENT_METHODS:
            raise ValidationError(f"Unknown payment method: {method!r}.")
        self.method = method

    def set_cash_amount(self, amount: float) -> None:
        self.cash_amount = _non_negative(amount, "Cash amount")

    def set_card_amount(self, amount: float) -> None:
        self.card_amount = _non_negative(amount, "Card amount")

    def set_currency(self, currency: str, exchange_rate: float) -> None:
        self.set_exchange_rate(exchange_rate)
        self.currency = currency

    def set_exchange_rate(self, rate: float) -> None:
        value = _non_negative(rate, "Exchange rate")
        if value == 0:
            raise ValidationError("Exchange rate must be > 0.")
        self.exchange_rate = value

    # ---------- Metal lots ----------
    def add_metal_lot(self, metal_type: str = "gold", purity: int = 585, weight: float = 0.0) -> MetalLot:
        lot = MetalLot(metal_type=validate_metal_type(metal_type), purity=validate_purity(purity), weight=_non_negative(weight, "Weight"))
        lot.reprice()
        self.metal_lots.append(lot)
        return lot

    def _lot(self, index: int) -> MetalLot:
        if not 0 <= index < len(self.metal_lots):
            raise ValidationError(f"No metal lot at position {index}.")
        return self.metal_lots[index]

    def update_metal_lot(self, index: int, **patch) -> MetalLot:
        lot = self._lot(index)
        unknown = set(patch) - {"metal_type", "purity", "weight", "price_per_gram"}
        if unknown:
            raise ValidationError(f"Unknown metal lot fields: {', '.join(sorted(unknown))}.")

        if "weight" in patch:
            lot.weight = _non_negative(patch["weight"], "Weight")

        grade_changed = False
        if "metal_type" in patch:
            lot.metal_type = validate_metal_type(patch["metal_type"])
            grade_changed = True
        if "purity" in patch:
            lot.purity = validate_purity(patch["purity"])
            grade_changed = True

        if "price_per_gram" in patch:
            lot.price_per_gram = _non_negative(patch["price_per_gram"], "Price per gram")
            lot.price_overridden = True
            lot.price_found = True
        elif grade_changed and not lot.price_overridden:
            lot.reprice()
        return lot

    def remove_metal_lot(self, index: int) -> None:
        self._lot(index)
        del self.metal_lots[index]

    def metal_total(self) -> float:
        return sum(lot.value() for lot in self.metal_lots)

    # ---------- Tender ----------
    def amount_tendered(self) -> float:
        if self.method == "cash":
            return self.cash_amount * self.exchange_rate
        if self.method == "card":
            return self.card_amount * self.exchange_rate
        if self.method == "mixed":
            return (self.cash_amount + self.card_amount) * self.exchange_rate
        return self.metal_total()

    def change(self) -> float:
        return max(0.0, self.amount_tendered() - self.total)

    def can_complete(self) -> bool:
        return self.amount_tendered() >= self.total - _EPSILON

    def payment_details(self) -> PaymentDetails:
        return PaymentDetails(
            cash=self.cash_amount if self.method in ("cash", "mixed") else 0.0,
            card=self.card_amount if self.method in ("card", "mixed") else 0.0,
            currency=self.currency,
            exchange_rate=self.exchange_rate,
            metal=tuple(lot.snapshot() for lot in self.metal_lots) if self.method == "metal" else None,
        )
