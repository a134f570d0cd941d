from datetime import datetime

from flask import jsonify, request

from prodqueue.auth.utils import get_current_user_id, login_required
from prodqueue.exceptions import (
    ConfigurationError,
    InvalidTransitionError,
    OrderNotFoundError,
    OrderOperationInProgress,
    StoreError,
    ValidationError,
)
from prodqueue.logging_config import get_logger
from prodqueue.queue import queue_bp
from prodqueue.queue.reports import build_calendar_summary, build_dashboard_summary
from prodqueue.queue.service import OrderQueueService, ProductionSettingsService
from prodqueue.scheduling.calculator import format_duration

logger = get_logger(__name__)


def _error_response(exc, message):
    """Map service exceptions onto HTTP status codes."""
    if isinstance(exc, (ValidationError, ConfigurationError)):
        return jsonify({"error": str(exc)}), 400
    if isinstance(exc, OrderNotFoundError):
        return jsonify({"error": str(exc)}), 404
    if isinstance(exc, (InvalidTransitionError, OrderOperationInProgress)):
        return jsonify({"error": str(exc)}), 409
    if isinstance(exc, StoreError):
        logger.error(message, error=str(exc))
        return jsonify({"error": message, "details": str(exc)}), 500

    logger.error(message, error=str(exc), exc_info=True)
    return jsonify({"error": message, "details": str(exc)}), 500


def _parse_date_arg(name):
    value = request.args.get(name)
    if not value:
        return None
    try:
        return datetime.strptime(value, '%Y-%m-%d').date()
    except ValueError:
        raise ValidationError(f"{name} must be in YYYY-MM-DD format")


@queue_bp.route("/settings", methods=["GET"])
@login_required
def get_settings():
    """Return the owner's working calendar (defaults if never saved)"""
    try:
        calendar = ProductionSettingsService.get_working_calendar(get_current_user_id())
        return jsonify({"settings": calendar.to_dict()}), 200
    except Exception as exc:
        return _error_response(exc, "Failed to get production settings")


@queue_bp.route("/settings", methods=["PUT"])
@login_required
def update_settings():
    """Validate and store the owner's working calendar"""
    try:
        data = request.get_json(silent=True)
        if not data:
            return jsonify({"error": "No JSON data provided"}), 400

        calendar = ProductionSettingsService.upsert_settings(get_current_user_id(), data)
        return jsonify({"success": True, "settings": calendar.to_dict()}), 200
    except Exception as exc:
        return _error_response(exc, "Failed to update production settings")


@queue_bp.route("/orders", methods=["GET"])
@login_required
def list_orders():
    """Return the owner's orders ordered by queue position"""
    try:
        now = datetime.now()
        orders = OrderQueueService.list_orders(get_current_user_id())
        return jsonify({"orders": [order.to_dict(now) for order in orders]}), 200
    except Exception as exc:
        return _error_response(exc, "Failed to get orders")


@queue_bp.route("/orders/quote", methods=["POST"])
@login_required
def quote_order():
    """Calculate production time and estimated completion without saving"""
    try:
        data = request.get_json(silent=True) or {}
        estimate = OrderQueueService.quote_order(get_current_user_id(), data.get('quantities'))
        return jsonify({
            "total_production_time": estimate['total_production_time'],
            "total_production_time_display": format_duration(estimate['total_production_time']),
            "estimated_completion_date": estimate['estimated_completion_date'].isoformat(),
            "queued_minutes_ahead": estimate['queued_minutes_ahead'],
        }), 200
    except Exception as exc:
        return _error_response(exc, "Failed to calculate order")


@queue_bp.route("/orders", methods=["POST"])
@login_required
def create_order():
    """Create a pending order at the end of the queue"""
    try:
        data = request.get_json(silent=True)
        if not data:
            return jsonify({"error": "No JSON data provided"}), 400

        order = OrderQueueService.create_order(
            get_current_user_id(),
            data.get('customer_name'),
            data.get('customer_email'),
            data.get('quantities'),
        )
        return jsonify({"success": True, "order": order.to_dict()}), 201
    except Exception as exc:
        return _error_response(exc, "Failed to create order")


@queue_bp.route("/orders/<int:order_id>", methods=["GET"])
@login_required
def get_order(order_id):
    try:
        order = OrderQueueService.get_order(get_current_user_id(), order_id)
        return jsonify({"order": order.to_dict()}), 200
    except Exception as exc:
        return _error_response(exc, "Failed to get order")


@queue_bp.route("/orders/<int:order_id>/status", methods=["PUT"])
@login_required
def update_order_status(order_id):
    """Move an order through its lifecycle"""
    try:
        data = request.get_json(silent=True) or {}
        status = data.get('status')
        if not status:
            return jsonify({"error": "status is required"}), 400

        order = OrderQueueService.update_status(get_current_user_id(), order_id, status)
        return jsonify({"success": True, "order": order.to_dict()}), 200
    except Exception as exc:
        return _error_response(exc, "Failed to update order status")


@queue_bp.route("/orders/start-next", methods=["POST"])
@login_required
def start_next_order():
    """Start production on the first pending order"""
    try:
        order = OrderQueueService.start_next_order(get_current_user_id())
        return jsonify({"success": True, "order": order.to_dict()}), 200
    except Exception as exc:
        return _error_response(exc, "Failed to start the next order")


@queue_bp.route("/orders/<int:order_id>/position", methods=["PUT"])
@login_required
def update_order_position(order_id):
    """Move an active order to a new queue position"""
    try:
        data = request.get_json(silent=True) or {}
        position = data.get('queue_position')
        if position is None:
            return jsonify({"error": "queue_position is required"}), 400
        if not isinstance(position, int) or isinstance(position, bool):
            return jsonify({"error": "queue_position must be an integer"}), 400

        order = OrderQueueService.update_position(get_current_user_id(), order_id, position)
        return jsonify({
            "success": True,
            "order_id": order_id,
            "queue_position": order.queue_position
        }), 200
    except Exception as exc:
        return _error_response(exc, "Failed to update order position")


@queue_bp.route("/orders/<int:order_id>", methods=["DELETE"])
@login_required
def delete_order(order_id):
    try:
        OrderQueueService.delete_order(get_current_user_id(), order_id)
        return jsonify({"success": True, "order_id": order_id}), 200
    except Exception as exc:
        return _error_response(exc, "Failed to delete order")


@queue_bp.route("/orders/summary", methods=["GET"])
@login_required
def orders_summary():
    """Dashboard metrics for the owner's orders"""
    try:
        orders = OrderQueueService.get_orders(get_current_user_id())
        return jsonify(build_dashboard_summary(orders)), 200
    except Exception as exc:
        return _error_response(exc, "Failed to build order summary")


@queue_bp.route("/orders/calendar", methods=["GET"])
@login_required
def orders_calendar():
    """Orders grouped by estimated completion date (optional ?start=&end=)"""
    try:
        start = _parse_date_arg('start')
        end = _parse_date_arg('end')
        user_id = get_current_user_id()
        calendar = ProductionSettingsService.get_working_calendar(user_id)
        orders = OrderQueueService.get_orders(user_id)
        return jsonify({"days": build_calendar_summary(orders, calendar, start, end)}), 200
    except Exception as exc:
        return _error_response(exc, "Failed to build production calendar")
