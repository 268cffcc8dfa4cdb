from flask import Blueprint, g

from ..decorators import get_container, json_body, require_auth, require_permission

auth_bp = Blueprint("auth", __name__)


@auth_bp.post("/signup")
def signup():
    data = json_body()
    user = get_container().auth.signup(
        data.get("email", ""),
        data.get("password", ""),
        name=data.get("name", ""),
        role=data.get("role", "cashier"),
    )
    return {"user": user.to_dict()}, 201


@auth_bp.post("/login")
def login():
    data = json_body()
    token, user = get_container().auth.login(data.get("email", ""), data.get("password", ""))
    return {"token": token, "user": user.to_dict()}


@auth_bp.post("/logout")
@require_auth
def logout():
    get_container().auth.logout(g.token)
    return {"success": True}


@auth_bp.post("/users")
@require_auth
@require_permission("manage_users")
def create_user():
    data = json_body()
    user = get_container().auth.create_user(
        g.current_user,
        data.get("email", ""),
        data.get("password", ""),
        name=data.get("name", ""),
        role=data.get("role", "cashier"),
    )
    return {"user": user.to_dict()}, 201


@auth_bp.get("/users")
@require_auth
@require_permission("manage_users")
def list_users():
    return {"users": [u.to_dict() for u in get_container().auth.list_users()]}
