"""Products and customers."""
from flask import Blueprint, g, request

from ..decorators import get_container, json_body, require_auth, require_permission

catalog_bp = Blueprint("catalog", __name__)


@catalog_bp.get("/products")
def list_products():
    products = get_container().catalog.search_products(
        request.args.get("q", ""),
        category=request.args.get("category") or None,
        metal=request.args.get("metal") or None,
    )
    return {"products": [p.to_dict() for p in products]}


@catalog_bp.post("/products")
@require_auth
@require_permission("manage_products")
def create_product():
    product = get_container().catalog.create_product(json_body(), actor_user_id=g.current_user.id)
    return {"product": product.to_dict()}, 201


@catalog_bp.put("/products/<product_id>")
@require_auth
@require_permission("manage_products")
def update_product(product_id: str):
    product = get_container().catalog.update_product(product_id, json_body())
    return {"product": product.to_dict()}


@catalog_bp.delete("/products/<product_id>")
@require_auth
@require_permission("manage_products")
def delete_product(product_id: str):
    get_container().catalog.delete_product(product_id)
    return {"success": True}


@catalog_bp.get("/customers")
def list_customers():
    customers = get_container().customers.search_customers(request.args.get("q", ""))
    return {"customers": [c.to_dict() for c in customers]}


@catalog_bp.post("/customers")
def create_customer():
    data = json_body()
    customer = get_container().customers.create_customer(
        data.get("name", ""), data.get("phone", ""), data.get("discount", 0)
    )
    return {"customer": customer.to_dict()}, 201


@catalog_bp.put("/customers/<customer_id>")
def update_customer(customer_id: str):
    customer = get_container().customers.update_customer(customer_id, json_body())
    return {"customer": customer.to_dict()}
