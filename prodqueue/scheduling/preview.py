"""
Preview of queue estimates against the current queue order.

Stored estimated_completion_date values are fixed when an order is created.
This module re-walks the active queue in its current order and reports how far
each stored estimate has drifted, without writing anything.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from prodqueue.logging_config import get_logger
from prodqueue.queue.engine import QueuePositionEngine
from prodqueue.scheduling.calculator import estimate_completion, format_duration
from prodqueue.scheduling.config import WorkingCalendar

logger = get_logger(__name__)


def rewalk_queue(
    orders,
    calendar: WorkingCalendar,
    now: Optional[datetime] = None
) -> List[Dict[str, Any]]:
    """
    Recompute completion estimates for active orders in queue order.

    Each order's backlog is the total_production_time of the active orders
    ahead of it.

    Args:
        orders: Order models (any status; inactive ones are skipped)
        calendar: Owner's working calendar
        now: Reference instant (defaults to datetime.now())

    Returns:
        List of dicts with order_id, queue_position, stored and recomputed
        estimates and drift_minutes (recomputed - stored)
    """
    if now is None:
        now = datetime.now()

    by_id = {order.id: order for order in orders}
    active = QueuePositionEngine.active_orders([order.to_position_dict() for order in orders])

    rows = []
    minutes_ahead = 0
    for position_dict in active:
        order = by_id[position_dict['id']]
        recomputed = estimate_completion(order.total_production_time, minutes_ahead, calendar, now)
        stored = order.estimated_completion_date
        drift = int((recomputed - stored).total_seconds() // 60) if stored else None

        rows.append({
            'order_id': order.id,
            'queue_position': order.queue_position,
            'status': order.status,
            'total_production_time': order.total_production_time,
            'minutes_ahead': minutes_ahead,
            'stored_estimate': stored,
            'recomputed_estimate': recomputed,
            'drift_minutes': drift,
        })
        minutes_ahead += order.total_production_time

    return rows


def print_preview(rows: List[Dict[str, Any]]) -> None:
    """Print a rewalk result as a table."""
    if not rows:
        print("No active orders in queue.")
        return

    print(f"{'Pos':>4}  {'Order':>6}  {'Status':<12} {'Duration':<26} {'Stored':<17} {'Recomputed':<17} Drift")
    print("-" * 100)
    for row in rows:
        stored = row['stored_estimate'].strftime('%Y-%m-%d %H:%M') if row['stored_estimate'] else 'None'
        recomputed = row['recomputed_estimate'].strftime('%Y-%m-%d %H:%M')
        drift = row['drift_minutes']
        drift_display = 'n/a' if drift is None else f"{drift:+d} min"
        print(
            f"{row['queue_position']:>4}  {row['order_id']:>6}  {row['status']:<12} "
            f"{format_duration(row['total_production_time']):<26} {stored:<17} {recomputed:<17} {drift_display}"
        )

    drifted = sum(1 for row in rows if row['drift_minutes'])
    print("-" * 100)
    print(f"{len(rows)} active orders, {drifted} with a drifted estimate")
    logger.info("Queue preview generated", active_orders=len(rows), drifted=drifted)
