import io
from datetime import datetime

from flask import Blueprint, request, send_file

from ..decorators import get_container, require_auth, require_permission

reports_bp = Blueprint("reports", __name__, url_prefix="/reports")


@reports_bp.get("/sales-summary")
@require_auth
@require_permission("view_reports")
def sales_summary():
    summary = get_container().reporting.sales_summary(request.args.get("from"), request.args.get("to"))
    return {"summary": summary.to_dict()}


@reports_bp.get("/sales-export")
@require_auth
@require_permission("view_reports")
def sales_export():
    buf = io.BytesIO()
    get_container().reporting.export_sales_report_excel(buf, request.args.get("from"), request.args.get("to"))
    buf.seek(0)
    name = f"sales_report_{datetime.now().strftime('%Y%m%d_%H%M%S')}.xlsx"
    return send_file(
        buf,
        mimetype="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        as_attachment=True,
        download_name=name,
    )
