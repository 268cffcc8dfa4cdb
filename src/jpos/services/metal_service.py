from __future__ import annotations

import logging
import math
from typing import Optional

from jpos.domain.errors import ValidationError
from jpos.domain.metal import summarize_metal
from jpos.domain.models import METAL_TRANSACTION_TYPES, MetalSummary, MetalTransaction, new_id, utc_now_iso
from jpos.domain.payment import METAL_PRICES, lookup_price_per_gram, validate_metal_type, validate_purity

log = logging.getLogger(__name__)


def _non_negative(data: dict, key: str) -> float:
    try:
        value = float(data.get(key))
    except (TypeError, ValueError) as e:
        raise ValidationError(f"'{key}' must be a number.") from e
    if math.isnan(value) or value < 0:
        raise ValidationError(f"'{key}' must be >= 0.")
    return value


class MetalService:
    def __init__(self, repo):
        self.repo = repo

    def record_transaction(self, data: dict, processed_by: Optional[str] = None) -> MetalTransaction:
        metal_type = validate_metal_type(str(data.get("metalType") or ""))
        purity = validate_purity(data.get("purity"))
        if purity not in METAL_PRICES[metal_type]:
            allowed = ", ".join(str(p) for p in METAL_PRICES[metal_type])
            raise ValidationError(f"Purity {purity} is not valid for {metal_type} (allowed: {allowed}).")

        weight = _non_negative(data, "weight")
        if data.get("pricePerGram") is None:
            price, _found = lookup_price_per_gram(metal_type, purity)
        else:
            price = _non_negative(data, "pricePerGram")

        tx_type = str(data.get("transactionType") or "purchase")
        if tx_type not in METAL_TRANSACTION_TYPES:
            raise ValidationError(f"'transactionType' must be one of {', '.join(METAL_TRANSACTION_TYPES)}.")

        tx = MetalTransaction(
            id=new_id("metal"),
            metal_type=metal_type,
            weight=weight,
            purity=purity,
            price_per_gram=price,
            total_value=weight * price,
            transaction_type=tx_type,
            timestamp=utc_now_iso(),
            processed_by=processed_by,
            related_sale_id=(str(data["relatedSaleId"]) if data.get("relatedSaleId") else None),
        )
        self.repo.set(f"metal:{tx.id}", tx.to_dict())
        log.info("metal_recorded id=%s type=%s purity=%s weight=%.3f ppg=%.2f", tx.id, metal_type, purity, weight, price)
        return tx

    def list_transactions(self) -> list[MetalTransaction]:
        txs = [MetalTransaction.from_dict(m) for m in self.repo.get_by_prefix("metal:")]
        return sorted(txs, key=lambda t: t.timestamp, reverse=True)

    def summary(self) -> dict[str, MetalSummary]:
        return summarize_metal(self.list_transactions())
