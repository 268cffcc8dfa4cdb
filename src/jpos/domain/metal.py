from __future__ import annotations

from typing import Iterable

from jpos.domain.models import METAL_TYPES, MetalSummary, MetalTransaction


def summarize_metal(transactions: Iterable[MetalTransaction]) -> dict[str, MetalSummary]:
    """Weighted-average price per gram, grouped by metal type.

    Every known metal type is present; a type without weight averages to 0.
    """
    weights: dict[str, float] = {m: 0.0 for m in METAL_TYPES}
    values: dict[str, float] = {m: 0.0 for m in METAL_TYPES}
    for tx in transactions:
        weights[tx.metal_type] = weights.get(tx.metal_type, 0.0) + tx.weight
        values[tx.metal_type] = values.get(tx.metal_type, 0.0) + tx.weight * tx.price_per_gram

    return {
        metal: MetalSummary(
            total_weight=weights[metal],
            total_value=values[metal],
            avg_price=values[metal] / weights[metal] if weights[metal] > 0 else 0.0,
        )
        for metal in weights
    }
