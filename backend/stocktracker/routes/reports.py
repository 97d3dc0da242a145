from flask import Blueprint, jsonify, request, current_app, Response

from ..decorators import require_auth
from ..services import reporting_service
from ..validation import StorageError


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/summary")
@require_auth
def summary_report():
    """Dashboard figures: totals, this month's sales, stock lists and the 7-day chart."""
    try:
        return jsonify(reporting_service.dashboard_summary()), 200
    except reporting_service.ReportError as exc:
        return jsonify({"error": str(exc)}), 400
    except StorageError:
        current_app.logger.exception("Failed to build summary report")
        return jsonify({"error": "Internal server error"}), 500


@reports_bp.get("/low-stock")
@require_auth
def low_stock_report():
    threshold = request.args.get("threshold", type=int)

    try:
        products = reporting_service.low_stock(threshold)
        return jsonify([p.to_dict() for p in products]), 200
    except reporting_service.ReportError as exc:
        return jsonify({"error": str(exc)}), 400
    except StorageError:
        current_app.logger.exception("Failed to build low stock report")
        return jsonify({"error": "Internal server error"}), 500


@reports_bp.get("/out-of-stock")
@require_auth
def out_of_stock_report():
    try:
        products = reporting_service.out_of_stock()
        return jsonify([p.to_dict() for p in products]), 200
    except StorageError:
        current_app.logger.exception("Failed to build out of stock report")
        return jsonify({"error": "Internal server error"}), 500


@reports_bp.get("/daily-sales")
@require_auth
def daily_sales_report():
    days = request.args.get("days", 7, type=int)

    try:
        return jsonify(reporting_service.daily_sales(days)), 200
    except reporting_service.ReportError as exc:
        return jsonify({"error": str(exc)}), 400
    except StorageError:
        current_app.logger.exception("Failed to build daily sales report")
        return jsonify({"error": "Internal server error"}), 500


@reports_bp.get("/stock-report")
@require_auth
def stock_report():
    start = request.args.get("start")
    end = request.args.get("end")
    product = request.args.get("product")

    try:
        report = reporting_service.stock_report(start=start, end=end, product=product)
        return jsonify(report), 200
    except reporting_service.ReportError as exc:
        return jsonify({"error": str(exc)}), 400
    except StorageError:
        current_app.logger.exception("Failed to build stock report")
        return jsonify({"error": "Internal server error"}), 500


@reports_bp.get("/stock-report.csv")
@require_auth
def stock_report_csv():
    start = request.args.get("start")
    end = request.args.get("end")
    product = request.args.get("product")

    try:
        body = reporting_service.stock_report_csv(start=start, end=end, product=product)
    except reporting_service.ReportError as exc:
        return jsonify({"error": str(exc)}), 400
    except StorageError:
        current_app.logger.exception("Failed to export stock report")
        return jsonify({"error": "Internal server error"}), 500

    return Response(
        body,
        mimetype="text/csv",
        headers={"Content-Disposition": "attachment; filename=stock-report.csv"},
    )
