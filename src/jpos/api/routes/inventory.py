from flask import Blueprint, g, request

from jpos.domain.errors import ValidationError

from ..decorators import get_container, json_body, require_auth, require_permission

inventory_bp = Blueprint("inventory", __name__)


@inventory_bp.post("/stock-movements")
@require_auth
@require_permission("manage_movements")
def create_movement():
    movement = get_container().movements.create_movement(json_body(), performed_by=g.current_user.id)
    return {"movement": movement.to_dict()}, 201


@inventory_bp.get("/stock-movements")
@require_auth
@require_permission("manage_movements")
def list_movements():
    movements = get_container().movements.list_movements(request.args.get("status") or None)
    return {"movements": [m.to_dict() for m in movements]}


@inventory_bp.put("/stock-movements/<movement_id>")
@require_auth
@require_permission("manage_movements")
def update_movement(movement_id: str):
    status = json_body().get("status")
    if not status:
        raise ValidationError("'status' is required.")
    movement = get_container().movements.transition(movement_id, str(status), actor_user_id=g.current_user.id)
    return {"movement": movement.to_dict()}
