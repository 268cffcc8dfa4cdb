from pathlib import Path

import pytest

from conftest import add_product, make_repo

from jpos.domain.errors import InvalidTransitionError, NotFoundError, ValidationError
from jpos.services.stock_movement_service import StockMovementService


def _movement(svc, **overrides):
    data = {"productId": "ring-1", "fromLocation": "warehouse", "toLocation": "showcase-2", "quantity": 1, "reason": "display"}
    data.update(overrides)
    return svc.create_movement(data, performed_by="user-1")


def test_movement_starts_pending_and_completion_moves_product(tmp_path: Path):
    repo = make_repo(tmp_path)
    add_product(repo, "ring-1", storeLocation="warehouse", name="Gold ring")
    svc = StockMovementService(repo)

    mv = _movement(svc)
    assert mv.status == "pending"
    assert mv.product_name == "Gold ring"
    assert repo.get("product:ring-1")["storeLocation"] == "warehouse"

    done = svc.complete(mv.id, actor_user_id="user-2")
    assert done.status == "completed"
    assert done.updated_at is not None
    assert repo.get("product:ring-1")["storeLocation"] == "showcase-2"


def test_cancel_has_no_side_effect(tmp_path: Path):
    repo = make_repo(tmp_path)
    add_product(repo, "ring-1", storeLocation="warehouse")
    svc = StockMovementService(repo)

    mv = _movement(svc)
    svc.cancel(mv.id)
    assert repo.get("product:ring-1")["storeLocation"] == "warehouse"
    assert svc.get_movement(mv.id).status == "cancelled"


@pytest.mark.parametrize("first", ["completed", "cancelled"])
def test_terminal_movements_cannot_transition(tmp_path: Path, first: str):
    repo = make_repo(tmp_path)
    add_product(repo, "ring-1", storeLocation="warehouse")
    svc = StockMovementService(repo)

    mv = _movement(svc)
    svc.transition(mv.id, first)
    with pytest.raises(InvalidTransitionError):
        svc.transition(mv.id, "completed")
    with pytest.raises(InvalidTransitionError):
        svc.transition(mv.id, "cancelled")
    assert svc.get_movement(mv.id).status == first


def test_movement_validation(tmp_path: Path):
    repo = make_repo(tmp_path)
    add_product(repo, "ring-1")
    svc = StockMovementService(repo)

    with pytest.raises(ValidationError):
        _movement(svc, toLocation="warehouse")
    with pytest.raises(ValidationError):
        _movement(svc, quantity=0)
    with pytest.raises(ValidationError):
        _movement(svc, fromLocation="")
    with pytest.raises(NotFoundError):
        _movement(svc, productId="missing")
    with pytest.raises(NotFoundError):
        svc.transition("mov-missing", "completed")

    mv = _movement(svc)
    with pytest.raises(ValidationError):
        svc.transition(mv.id, "pending")


def test_list_filters_by_status(tmp_path: Path):
    repo = make_repo(tmp_path)
    add_product(repo, "ring-1")
    svc = StockMovementService(repo)

    a = _movement(svc)
    _movement(svc)
    svc.complete(a.id)

    assert [m.id for m in svc.list_movements("completed")] == [a.id]
    assert len(svc.list_movements("pending")) == 1
    assert len(svc.list_movements()) == 2


@pytest.mark.parametrize("quantity", [1.5, "two", None, float("nan")])
def test_movement_rejects_non_whole_quantities(tmp_path: Path, quantity):
    repo = make_repo(tmp_path)
    add_product(repo, "ring-1")
    svc = StockMovementService(repo)

    with pytest.raises(ValidationError, match="whole number"):
        _movement(svc, quantity=quantity)
    assert repo.get_by_prefix("movement:") == []
