from __future__ import annotations

import logging
from typing import Callable, Optional

from jpos.domain.errors import NotFoundError, ValidationError
from jpos.domain.models import MOVEMENT_STATUSES, StockMovement, new_id, utc_now_iso
from jpos.domain.receipt import whole_quantity
from jpos.repositories.unit_of_work import RepositoryUnitOfWork, UnitOfWork

log = logging.getLogger(__name__)


class StockMovementService:
    def __init__(self, repo, uow_factory: Callable[[], UnitOfWork] | None = None):
        self.repo = repo
        self.uow_factory = uow_factory or (lambda: RepositoryUnitOfWork(repo))

    def create_movement(self, data: dict, performed_by: Optional[str] = None) -> StockMovement:
        product_id = str(data.get("productId") or "").strip()
        from_location = str(data.get("fromLocation") or "").strip()
        to_location = str(data.get("toLocation") or "").strip()
        if not product_id:
            raise ValidationError("productId is required.")
        if not from_location or not to_location:
            raise ValidationError("Both fromLocation and toLocation are required.")
        if from_location == to_location:
            raise ValidationError("fromLocation and toLocation must differ.")
        qty = whole_quantity(data.get("quantity", 1))
        if qty < 1:
            raise ValidationError("Quantity must be >= 1.")

        product = self.repo.get(f"product:{product_id}")
        if product is None:
            raise NotFoundError("Product not found.")

        movement = StockMovement(
            id=new_id("mov"),
            product_id=product_id,
            product_name=str(data.get("productName") or product.get("name") or ""),
            from_location=from_location,
            to_location=to_location,
            quantity=qty,
            reason=str(data.get("reason") or "").strip(),
            timestamp=utc_now_iso(),
            performed_by=performed_by,
            status="pending",
        )
        self.repo.set(f"movement:{movement.id}", movement.to_dict())
        log.info("movement_created id=%s product=%s %s->%s qty=%s", movement.id, product_id, from_location, to_location, qty)
        return movement

    def list_movements(self, status: Optional[str] = None) -> list[StockMovement]:
        if status and status not in MOVEMENT_STATUSES:
            raise ValidationError(f"Unknown status filter: {status!r}.")
        movements = [StockMovement.from_dict(m) for m in self.repo.get_by_prefix("movement:")]
        if status:
            movements = [m for m in movements if m.status == status]
        return sorted(movements, key=lambda m: m.timestamp, reverse=True)

    def get_movement(self, movement_id: str) -> StockMovement:
        raw = self.repo.get(f"movement:{movement_id}")
        if raw is None:
            raise NotFoundError("Movement not found.")
        return StockMovement.from_dict(raw)

    def transition(self, movement_id: str, status: str, actor_user_id: Optional[str] = None) -> StockMovement:
        """Move a pending movement to completed or cancelled.

        Completing relocates the product in the same store transaction.
        """
        with self.uow_factory() as uow:
            movement = uow.transition_movement(movement_id, status)
        log.info("movement_transition id=%s status=%s actor=%s", movement_id, status, actor_user_id)
        return movement

    def complete(self, movement_id: str, actor_user_id: Optional[str] = None) -> StockMovement:
        return self.transition(movement_id, "completed", actor_user_id)

    def cancel(self, movement_id: str, actor_user_id: Optional[str] = None) -> StockMovement:
        return self.transition(movement_id, "cancelled", actor_user_id)
