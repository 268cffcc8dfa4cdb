from flask import Blueprint, g

from ..decorators import get_container, json_body, require_auth, require_permission

sales_bp = Blueprint("sales", __name__)


@sales_bp.post("/sales")
@require_auth
@require_permission("sell")
def create_sale():
    sale = get_container().sales.create_sale_from_payload(json_body(), cashier_id=g.current_user.id)
    return {"sale": sale.to_dict()}, 201


@sales_bp.get("/sales")
@require_auth
@require_permission("view_sales")
def list_sales():
    return {"sales": [s.to_dict() for s in get_container().sales.list_sales()]}


@sales_bp.get("/sales/<sale_id>")
@require_auth
@require_permission("view_sales")
def get_sale(sale_id: str):
    return {"sale": get_container().sales.get_sale(sale_id).to_dict()}


@sales_bp.post("/metal-transactions")
@require_auth
@require_permission("record_metal")
def record_metal_transaction():
    tx = get_container().metal.record_transaction(json_body(), processed_by=g.current_user.id)
    return {"transaction": tx.to_dict()}, 201


@sales_bp.get("/metal-transactions")
@require_auth
@require_permission("record_metal")
def list_metal_transactions():
    return {"transactions": [t.to_dict() for t in get_container().metal.list_transactions()]}


@sales_bp.get("/metal-summary")
@require_auth
@require_permission("view_reports")
def metal_summary():
    summary = get_container().metal.summary()
    return {"metalSummary": {metal: s.to_dict() for metal, s in summary.items()}}
