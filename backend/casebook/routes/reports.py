from flask import Blueprint, Response, jsonify, request

from ..decorators import require_auth, require_permission
from ..permissions import Permission
from ..services import reporting_service
from casebook.time_utils import local_today


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/summary")
@require_auth
@require_permission(Permission.REPORT_ACCESS)
def summary_report():
    return jsonify(reporting_service.summary_stats()), 200


@reports_bp.get("/monthly-trends")
@require_auth
@require_permission(Permission.REPORT_ACCESS)
def monthly_trends_report():
    months = request.args.get("months", 12, type=int)
    if months < 1 or months > 120:
        return jsonify({"error": "months must be between 1 and 120"}), 400

    trends = reporting_service.monthly_trends(months=months)
    return jsonify({"items": trends, "months": months}), 200


@reports_bp.get("/money-visits.csv")
@require_auth
@require_permission(Permission.REPORT_ACCESS)
def money_visits_export():
    filename = f"money_visits_{local_today().isoformat()}.csv"
    return Response(
        reporting_service.export_money_visits_csv(),
        mimetype="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
