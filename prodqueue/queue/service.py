"""
Service layer for the production queue.
Coordinates the pure engines (calculator, queue positions, lifecycle) with the
database. Every mutation runs under the per-order guard and is written in a
single transaction; on any failure the session is rolled back so nothing is
half-applied.
"""
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, List, Optional

from flask import current_app, has_app_context
from sqlalchemy.exc import SQLAlchemyError

from prodqueue.config import DEFAULT_PRODUCTION_SETTINGS
from prodqueue.exceptions import (
    OrderNotFoundError,
    OrderOperationInProgress,
    StoreError,
    ValidationError,
)
from prodqueue.logging_config import OperationContext, get_logger
from prodqueue.models import Order, OrderItem, ProductionSettings, ProductionSettingItem, db
from prodqueue.order_lock import order_lock_manager
from prodqueue.queue.engine import ACTIVE_STATUSES, QueuePositionEngine
from prodqueue.queue.lifecycle import IN_PROGRESS, PENDING, apply_transition
from prodqueue.scheduling.calculator import calculate_order_estimate, get_total_queued_minutes
from prodqueue.scheduling.config import WorkingCalendar

logger = get_logger(__name__)


def _commit(operation: str) -> None:
    """Commit the session, translating store failures into StoreError."""
    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.error("Store commit failed", operation=operation, error=str(exc))
        raise StoreError(f"Failed to save changes ({operation})") from exc


def _queue_lock_key(user_id) -> str:
    # Appends and renumbering rewrite positions across the whole queue
    return f"queue:{user_id}"


def _settings_lock_key(user_id) -> str:
    return f"settings:{user_id}"


@contextmanager
def _order_mutation_guard(user_id, order_id, operation: str):
    """
    Hold the order's guard and the owner's queue guard for one mutation.

    Order first, then queue; create_order takes only the queue guard.

    Raises:
        OrderOperationInProgress: If either guard is held by another operation
    """
    with order_lock_manager.acquire_order_lock(order_id, operation):
        with order_lock_manager.acquire_order_lock(_queue_lock_key(user_id), operation):
            yield


class ProductionSettingsService:
    """Read and write the working calendar for an owner."""

    @staticmethod
    def get_default_settings() -> Dict[str, Any]:
        if has_app_context():
            return current_app.config.get("DEFAULT_PRODUCTION_SETTINGS", DEFAULT_PRODUCTION_SETTINGS)
        return DEFAULT_PRODUCTION_SETTINGS

    @staticmethod
    def get_settings_row(user_id) -> Optional[ProductionSettings]:
        return ProductionSettings.query.filter_by(user_id=user_id).first()

    @staticmethod
    def get_working_calendar(user_id) -> WorkingCalendar:
        """
        Calendar for an owner, falling back to the default settings.

        Raises:
            ConfigurationError: If stored settings are no longer valid
        """
        row = ProductionSettingsService.get_settings_row(user_id)
        if row is None:
            return WorkingCalendar.from_dict(ProductionSettingsService.get_default_settings())
        return WorkingCalendar.from_dict(row.to_dict())

    @staticmethod
    def upsert_settings(user_id, payload: Dict[str, Any]) -> WorkingCalendar:
        """
        Validate and store an owner's settings.

        Existing orders are unaffected; they keep the per-unit rates captured
        when they were created.

        Raises:
            ConfigurationError: If the payload is not a runnable calendar
            OrderOperationInProgress: If another settings update for this owner is in flight
            StoreError: If the write fails
        """
        calendar = WorkingCalendar.from_dict(payload)
        settings_dict = calendar.to_dict()

        with order_lock_manager.acquire_order_lock(_settings_lock_key(user_id), "upsert_settings"):
            with OperationContext("upsert_settings", user_id=user_id):
                try:
                    row = ProductionSettingsService.get_settings_row(user_id)
                    if row is None:
                        row = ProductionSettings(user_id=user_id)
                        db.session.add(row)

                    row.working_hours_per_day = calendar.working_hours_per_day
                    row.start_time = settings_dict['start_time']
                    row.end_time = settings_dict['end_time']
                    row.working_days = settings_dict['working_days']
                    row.items = [
                        ProductionSettingItem(
                            item_ref=item.id,
                            name=item.name,
                            production_time_per_unit=item.production_time_per_unit,
                            sort_index=index,
                        )
                        for index, item in enumerate(calendar.items)
                    ]
                    row.updated_at = datetime.now()
                    _commit("upsert_settings")
                except StoreError:
                    raise
                except Exception:
                    db.session.rollback()
                    raise

        logger.info("Production settings updated", user_id=user_id, settings=settings_dict)
        return calendar


class OrderQueueService:
    """Order creation, status changes, reordering and deletion."""

    @staticmethod
    def validate_customer(customer_name, customer_email) -> None:
        if not customer_name or not str(customer_name).strip():
            raise ValidationError("customer_name is required")
        if not customer_email or not str(customer_email).strip():
            raise ValidationError("customer_email is required")

    @staticmethod
    def validate_quantities(quantities, calendar: WorkingCalendar) -> Dict[str, int]:
        """
        Normalize a quantities payload to {item_id: quantity}.

        Raises:
            ValidationError: For unknown item ids or quantities that are not
                non-negative integers
        """
        if quantities is None:
            quantities = {}
        if not isinstance(quantities, dict):
            raise ValidationError("quantities must be an object of item id -> quantity")

        normalized = {}
        for item_id, quantity in quantities.items():
            item_id = str(item_id)
            if calendar.get_item(item_id) is None:
                raise ValidationError(f"Unknown item id: {item_id}")
            if quantity is None:
                quantity = 0
            if not isinstance(quantity, int) or isinstance(quantity, bool):
                raise ValidationError(f"Quantity for item {item_id} must be an integer")
            if quantity < 0:
                raise ValidationError(f"Quantity for item {item_id} cannot be negative")
            normalized[item_id] = quantity
        return normalized

    @staticmethod
    def get_orders(user_id) -> List[Order]:
        """All orders for an owner, ordered by queue_position ascending."""
        return Order.query.filter_by(user_id=user_id).order_by(
            Order.queue_position.asc(),
            Order.id.asc()
        ).all()

    @staticmethod
    def get_order(user_id, order_id) -> Order:
        """
        Raises:
            OrderNotFoundError: If the owner has no order with this id
        """
        order = Order.query.filter_by(id=order_id, user_id=user_id).first()
        if order is None:
            raise OrderNotFoundError(f"Order {order_id} not found")
        return order

    @staticmethod
    def _apply_positions(orders: List[Order], updates, now: datetime) -> int:
        by_id = {o.id: o for o in orders}
        changed = QueuePositionEngine.changed_only([o.to_position_dict() for o in orders], updates)
        for order_id, position in changed:
            order = by_id[order_id]
            order.queue_position = position
            order.updated_at = now
        return len(changed)

    @staticmethod
    def renumber_queue(user_id, now: Optional[datetime] = None) -> int:
        """
        Rewrite active positions as 1..N in their current relative order.
        Does not commit.

        Returns:
            int: Number of orders whose position changed
        """
        now = now or datetime.now()
        db.session.flush()
        orders = OrderQueueService.get_orders(user_id)
        updates = QueuePositionEngine.renumber([o.to_position_dict() for o in orders])
        return OrderQueueService._apply_positions(orders, updates, now)

    @staticmethod
    def ensure_queue_integrity(user_id) -> bool:
        """
        Repair gapped or duplicated active positions with a full renumbering pass.

        Returns:
            bool: True if a repair was committed
        """
        orders = OrderQueueService.get_orders(user_id)
        if not QueuePositionEngine.has_invariant_violation([o.to_position_dict() for o in orders]):
            return False

        logger.warning("Queue position invariant violated; renumbering", user_id=user_id)
        with order_lock_manager.acquire_order_lock(_queue_lock_key(user_id), "ensure_queue_integrity"):
            try:
                changed = OrderQueueService.renumber_queue(user_id)
                _commit("ensure_queue_integrity")
            except StoreError:
                raise
            except Exception:
                db.session.rollback()
                raise
        logger.info("Queue renumbered", user_id=user_id, orders_updated=changed)
        return True

    @staticmethod
    def list_orders(user_id) -> List[Order]:
        """Orders for display, after repairing the queue if needed."""
        try:
            OrderQueueService.ensure_queue_integrity(user_id)
        except OrderOperationInProgress:
            # The in-flight mutation renumbers the queue when it commits
            logger.warning("Queue repair skipped; a queue mutation is in flight", user_id=user_id)
        return OrderQueueService.get_orders(user_id)

    @staticmethod
    def quote_order(user_id, quantities, now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Production minutes and estimated completion for a prospective order,
        given the current backlog. Nothing is written.
        """
        calendar = ProductionSettingsService.get_working_calendar(user_id)
        normalized = OrderQueueService.validate_quantities(quantities, calendar)
        queued = get_total_queued_minutes(OrderQueueService.get_orders(user_id))
        estimate = calculate_order_estimate(normalized, calendar, queued, now)
        estimate['queued_minutes_ahead'] = queued
        return estimate

    @staticmethod
    def create_order(
        user_id,
        customer_name: str,
        customer_email: str,
        quantities,
        now: Optional[datetime] = None
    ) -> Order:
        """
        Create a pending order at the tail of the active queue.

        total_production_time and estimated_completion_date are computed once
        here and never re-derived; per-unit rates are copied into the order.

        Raises:
            ValidationError: Missing customer fields, bad or all-zero quantities
            StoreError: If the write fails
        """
        now = now or datetime.now()
        OrderQueueService.validate_customer(customer_name, customer_email)
        calendar = ProductionSettingsService.get_working_calendar(user_id)
        normalized = OrderQueueService.validate_quantities(quantities, calendar)
        if not any(normalized.values()):
            raise ValidationError("An order needs at least one item with a quantity above 0")

        with order_lock_manager.acquire_order_lock(_queue_lock_key(user_id), "create_order"):
            with OperationContext("create_order", user_id=user_id):
                try:
                    orders = OrderQueueService.get_orders(user_id)
                    position_dicts = [o.to_position_dict() for o in orders]
                    if QueuePositionEngine.has_invariant_violation(position_dicts):
                        OrderQueueService.renumber_queue(user_id, now)

                    queued = get_total_queued_minutes(orders)
                    estimate = calculate_order_estimate(normalized, calendar, queued, now)

                    order = Order(
                        user_id=user_id,
                        customer_name=str(customer_name).strip(),
                        customer_email=str(customer_email).strip(),
                        status=PENDING,
                        total_production_time=estimate['total_production_time'],
                        estimated_completion_date=estimate['estimated_completion_date'],
                        queue_position=QueuePositionEngine.next_position(position_dicts),
                        production_time_accumulated=0,
                        created_at=now,
                        updated_at=now,
                    )
                    order.items = [
                        OrderItem(
                            item_ref=item.id,
                            name=item.name,
                            quantity=normalized[item.id],
                            production_time_per_unit=item.production_time_per_unit,
                        )
                        for item in calendar.items
                        if normalized.get(item.id, 0) > 0
                    ]
                    db.session.add(order)
                    _commit("create_order")
                except StoreError:
                    raise
                except Exception:
                    db.session.rollback()
                    raise

        logger.info(
            "Order created",
            order_id=order.id,
            user_id=user_id,
            queue_position=order.queue_position,
            total_production_time=order.total_production_time,
        )
        return order

    @staticmethod
    def update_status(user_id, order_id, status: str, now: Optional[datetime] = None) -> Order:
        """
        Apply a lifecycle transition and renumber the active queue.

        Raises:
            OrderNotFoundError: Unknown order for this owner
            InvalidTransitionError: Transition not allowed
            OrderOperationInProgress: Another mutation on this order or its queue is in flight
            StoreError: If the write fails
        """
        now = now or datetime.now()
        with _order_mutation_guard(user_id, order_id, "update_status"):
            with OperationContext("update_status", order_id=order_id, user_id=user_id, target_status=status):
                try:
                    order = OrderQueueService.get_order(user_id, order_id)
                    previous = order.status
                    added = apply_transition(order, status, now)
                    OrderQueueService.renumber_queue(user_id, now)
                    _commit("update_status")
                except StoreError:
                    raise
                except Exception:
                    db.session.rollback()
                    raise

        logger.info(
            "Order status updated",
            order_id=order_id,
            user_id=user_id,
            from_status=previous,
            to_status=status,
            minutes_added=added,
            production_time_accumulated=order.production_time_accumulated,
        )
        return order

    @staticmethod
    def start_next_order(user_id, now: Optional[datetime] = None) -> Order:
        """
        Put the first pending order in the queue into production.

        Raises:
            OrderNotFoundError: If no order is pending
        """
        pending = [o for o in OrderQueueService.get_orders(user_id) if o.status == PENDING]
        if not pending:
            raise OrderNotFoundError("No pending orders in queue")
        return OrderQueueService.update_status(user_id, pending[0].id, IN_PROGRESS, now)

    @staticmethod
    def update_position(user_id, order_id, position, now: Optional[datetime] = None) -> Order:
        """
        Move an active order to a new queue position (clamped to 1..N).

        Raises:
            OrderNotFoundError: Unknown order, or the order is not active
            OrderOperationInProgress: Another mutation on this order or its queue is in flight
            StoreError: If the write fails
        """
        now = now or datetime.now()
        with _order_mutation_guard(user_id, order_id, "update_position"):
            with OperationContext("update_position", order_id=order_id, user_id=user_id, requested_position=position):
                try:
                    order = OrderQueueService.get_order(user_id, order_id)
                    if order.status not in ACTIVE_STATUSES:
                        raise OrderNotFoundError(f"Order {order_id} is not in the active queue")

                    orders = OrderQueueService.get_orders(user_id)
                    updates = QueuePositionEngine.reorder(
                        [o.to_position_dict() for o in orders],
                        order.id,
                        position
                    )
                    OrderQueueService._apply_positions(orders, updates, now)
                    order.updated_at = now
                    _commit("update_position")
                except StoreError:
                    raise
                except Exception:
                    db.session.rollback()
                    raise

        logger.info(
            "Order position updated",
            order_id=order_id,
            user_id=user_id,
            requested_position=position,
            queue_position=order.queue_position,
        )
        return order

    @staticmethod
    def delete_order(user_id, order_id, now: Optional[datetime] = None) -> None:
        """
        Remove an order entirely and renumber the remaining active orders.

        Raises:
            OrderNotFoundError: Unknown order for this owner
            OrderOperationInProgress: Another mutation on this order or its queue is in flight
            StoreError: If the write fails
        """
        now = now or datetime.now()
        with _order_mutation_guard(user_id, order_id, "delete_order"):
            with OperationContext("delete_order", order_id=order_id, user_id=user_id):
                try:
                    order = OrderQueueService.get_order(user_id, order_id)
                    db.session.delete(order)
                    OrderQueueService.renumber_queue(user_id, now)
                    _commit("delete_order")
                except StoreError:
                    raise
                except Exception:
                    db.session.rollback()
                    raise

        logger.info("Order deleted", order_id=order_id, user_id=user_id)

    @staticmethod
    def scan_all_queues() -> Dict[str, int]:
        """
        Integrity scan over every owner with active orders.

        Returns:
            dict: owners_scanned and owners_repaired counts
        """
        user_ids = [
            row[0]
            for row in db.session.query(Order.user_id)
            .filter(Order.status.in_(ACTIVE_STATUSES))
            .distinct()
            .all()
        ]

        repaired = 0
        for user_id in user_ids:
            try:
                if OrderQueueService.ensure_queue_integrity(user_id):
                    repaired += 1
            except OrderOperationInProgress:
                logger.info("Queue busy; repair left to the next scan", user_id=user_id)
            except StoreError as exc:
                logger.error("Queue integrity repair failed", user_id=user_id, error=str(exc))

        return {'owners_scanned': len(user_ids), 'owners_repaired': repaired}
