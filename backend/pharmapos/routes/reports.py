from flask import Blueprint, Response, current_app, jsonify, request

from pharmapos.decorators import require_auth, require_resource
from pharmapos.permissions import Resource
from pharmapos.services import export_service, reporting_service
from pharmapos.time_utils import utcnow


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


def _monthly_days() -> int:
    return current_app.config["REPORT_MONTHLY_LOOKBACK_DAYS"]


@reports_bp.get("/summary")
@require_auth
@require_resource(Resource.REPORTS)
def summary_report():
    try:
        period = reporting_service.parse_period(request.args.get("period"))
    except reporting_service.ReportError as exc:
        return jsonify({"error": str(exc)}), 400

    snapshot = reporting_service.load_report_snapshot()
    summary = reporting_service.summarize(
        snapshot.records,
        period,
        utcnow(),
        snapshot.products,
        monthly_lookback_days=_monthly_days(),
    )
    return jsonify(summary.to_dict()), 200


@reports_bp.get("/export")
@require_auth
@require_resource(Resource.REPORTS)
def export_report():
    fmt = (request.args.get("format") or "pdf").lower()
    if fmt not in export_service.EXPORT_FORMATS:
        return jsonify({"error": "format must be csv or pdf"}), 400

    try:
        period = reporting_service.parse_period(request.args.get("period"))
    except reporting_service.ReportError as exc:
        return jsonify({"error": str(exc)}), 400

    now = utcnow()
    snapshot = reporting_service.load_report_snapshot()
    summary = reporting_service.summarize(
        snapshot.records,
        period,
        now,
        snapshot.products,
        monthly_lookback_days=_monthly_days(),
    )
    in_period = reporting_service.filter_period(
        snapshot.records, period, now, monthly_lookback_days=_monthly_days()
    )
    export_input = export_service.build_export_input(
        period,
        in_period,
        snapshot.products,
        summary.total_units,
        summary.total_revenue_cents,
        company_name=current_app.config["COMPANY_NAME"],
        currency_label=current_app.config["CURRENCY_LABEL"],
    )

    try:
        body = export_service.render(export_input, fmt, now)
    except Exception:
        current_app.logger.exception("Failed to render %s report", fmt)
        return jsonify({"error": "Internal server error"}), 500

    filename = export_service.export_filename(period, fmt, now)
    return Response(
        body,
        mimetype=export_service.EXPORT_FORMATS[fmt],
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
