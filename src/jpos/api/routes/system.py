from flask import Blueprint

from ..decorators import get_container, json_body, require_auth, require_permission

system_bp = Blueprint("system", __name__)


@system_bp.get("/health")
def health():
    report = get_container().operations.run_health_check()
    return report.to_dict(), (200 if report.status == "ok" else 503)


@system_bp.get("/settings")
@require_auth
@require_permission("view_settings")
def get_settings():
    return {"settings": get_container().settings.get()}


@system_bp.put("/settings")
@require_auth
@require_permission("manage_settings")
def put_settings():
    return {"settings": get_container().settings.put(json_body())}
