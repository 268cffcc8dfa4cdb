from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Iterable, Optional, Protocol

from jpos.domain.errors import InvalidTransitionError, NotFoundError, ValidationError
from jpos.domain.models import MetalTransaction, Sale, StockMovement, utc_now_iso
from jpos.repositories.contracts import KeyValueStore


class UnitOfWork(Protocol):
    def __enter__(self) -> "UnitOfWork": ...
    def __exit__(self, exc_type, exc, tb) -> None: ...
    def commit_sale(self, sale: Sale, metal_transactions: Iterable[MetalTransaction] = ()) -> tuple[Sale, bool]: ...
    def transition_movement(self, movement_id: str, status: str) -> StockMovement: ...


@dataclass
class RepositoryUnitOfWork:
    """Unit of Work over one store transaction.

    Every write made between __enter__ and __exit__ lands together or not at
    all; an exception inside the block rolls the whole transaction back.
    """

    repo: KeyValueStore
    _cm: Any = field(default=None, init=False, repr=False)
    tx: Any = field(default=None, init=False, repr=False)

    def __enter__(self) -> "RepositoryUnitOfWork":
        self._cm = self.repo.transaction()
        self.tx = self._cm.__enter__()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        cm, self._cm, self.tx = self._cm, None, None
        cm.__exit__(exc_type, exc, tb)

    def commit_sale(self, sale: Sale, metal_transactions: Iterable[MetalTransaction] = ()) -> tuple[Sale, bool]:
        """Store the sale with its stock, customer and metal effects.

        Returns (sale, applied). A sale id already in the store is returned
        as stored with applied=False and nothing is written again.
        """
        existing = self.tx.get(f"sale:{sale.id}")
        if existing is not None:
            return Sale.from_dict(existing), False

        products: dict[str, dict] = {}
        for it in sale.items:
            if it.product_id in products:
                continue
            prod = self.tx.get(f"product:{it.product_id}")
            if prod is None:
                raise NotFoundError(f"Product not found: {it.product_id}")
            products[it.product_id] = prod

        customer: Optional[dict] = None
        if sale.customer_id:
            customer = self.tx.get(f"customer:{sale.customer_id}")
            if customer is None:
                raise NotFoundError(f"Customer not found: {sale.customer_id}")

        now = utc_now_iso()
        for it in sale.items:
            prod = products[it.product_id]
            prod["inStock"] = max(0, int(prod.get("inStock") or 0) - int(it.quantity))
            prod["updatedAt"] = now
        for pid, prod in products.items():
            self.tx.set(f"product:{pid}", prod)

        if customer is not None:
            customer["totalPurchases"] = float(customer.get("totalPurchases") or 0) + float(sale.total)
            customer["updatedAt"] = now
            self.tx.set(f"customer:{sale.customer_id}", customer)

        self.tx.set(f"sale:{sale.id}", sale.to_dict())
        for mt in metal_transactions:
            self.tx.set(f"metal:{mt.id}", mt.to_dict())
        return sale, True

    def transition_movement(self, movement_id: str, status: str) -> StockMovement:
        if status not in ("completed", "cancelled"):
            raise ValidationError("Status must be 'completed' or 'cancelled'.")

        raw = self.tx.get(f"movement:{movement_id}")
        if raw is None:
            raise NotFoundError(f"Movement not found: {movement_id}")
        movement = StockMovement.from_dict(raw)
        if movement.is_terminal:
            raise InvalidTransitionError(
                f"Movement {movement_id} is already {movement.status}; only pending movements can change."
            )

        now = utc_now_iso()
        if status == "completed":
            prod = self.tx.get(f"product:{movement.product_id}")
            if prod is None:
                raise NotFoundError(f"Product not found: {movement.product_id}")
            prod["storeLocation"] = movement.to_location
            prod["updatedAt"] = now
            self.tx.set(f"product:{movement.product_id}", prod)

        updated = replace(movement, status=status, updated_at=now)
        self.tx.set(f"movement:{movement_id}", updated.to_dict())
        return updated
