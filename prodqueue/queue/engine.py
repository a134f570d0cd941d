"""
Pure business logic engine for production queue positions.
Contains no database dependencies - works with plain data structures.

Every function takes a list of dicts with 'id', 'status' and 'queue_position'
keys (plus an optional 'created_at' used as a tie-breaker) and returns the
list of (order_id, new_position) updates needed to keep the active queue a
dense 1..N sequence.
"""
from typing import Any, Dict, List, Optional, Tuple
import logging

from prodqueue.exceptions import OrderNotFoundError

logger = logging.getLogger(__name__)


ACTIVE_STATUSES = ('pending', 'in-progress')

PositionUpdate = Tuple[Any, int]


class QueuePositionEngine:
    """Pure business logic for queue position calculations."""

    @staticmethod
    def is_active(status: Optional[str]) -> bool:
        """True for statuses that hold a place in the production queue."""
        return status in ACTIVE_STATUSES

    @staticmethod
    def _sort_key(order: Dict):
        position = order.get('queue_position')
        # Orders without a position sort to the back, oldest first
        return (
            position is None,
            position if position is not None else 0,
            order.get('created_at') or '',
        )

    @staticmethod
    def active_orders(orders: List[Dict]) -> List[Dict]:
        """
        Active orders in their current queue order.

        Args:
            orders: List of dicts with 'id', 'status', 'queue_position'

        Returns:
            Active orders sorted by queue_position
        """
        active = [o for o in orders if QueuePositionEngine.is_active(o.get('status'))]
        active.sort(key=QueuePositionEngine._sort_key)
        return active

    @staticmethod
    def count_active(orders: List[Dict]) -> int:
        return sum(1 for o in orders if QueuePositionEngine.is_active(o.get('status')))

    @staticmethod
    def next_position(orders: List[Dict]) -> int:
        """Position for a newly appended order: count of active orders + 1."""
        return QueuePositionEngine.count_active(orders) + 1

    @staticmethod
    def clamp_position(requested_position: Any, count_active: int) -> int:
        """
        Clamp a requested position into [1, count_active].

        Non-numeric input is treated as a request for the last slot.
        """
        try:
            requested = int(requested_position)
        except (TypeError, ValueError):
            requested = count_active
        return max(1, min(requested, max(count_active, 1)))

    @staticmethod
    def _numbered(ordered: List[Dict]) -> List[PositionUpdate]:
        return [(order.get('id'), index) for index, order in enumerate(ordered, start=1)]

    @staticmethod
    def renumber(orders: List[Dict]) -> List[PositionUpdate]:
        """
        Recompute 1..N positions over the active subset.

        Relative order of the active orders is preserved; inactive orders are
        not included in the result.

        Returns: List of (order_id, new_position) tuples for every active order
        """
        return QueuePositionEngine._numbered(QueuePositionEngine.active_orders(orders))

    @staticmethod
    def reorder(orders: List[Dict], order_id: Any, requested_position: Any) -> List[PositionUpdate]:
        """
        Move one active order to a new slot and renumber the rest.

        The requested position is clamped to [1, count_active]; the order is
        removed from its slot, reinserted at the clamped index, and every
        active order is renumbered.

        Raises:
            OrderNotFoundError: If order_id is not an active order

        Returns: List of (order_id, new_position) tuples for every active order
        """
        active = QueuePositionEngine.active_orders(orders)

        target = next((o for o in active if o.get('id') == order_id), None)
        if target is None:
            raise OrderNotFoundError(f"Order {order_id} is not in the active queue")

        remaining = [o for o in active if o.get('id') != order_id]
        position = QueuePositionEngine.clamp_position(requested_position, len(active))

        reordered = remaining[:position - 1] + [target] + remaining[position - 1:]
        return QueuePositionEngine._numbered(reordered)

    @staticmethod
    def has_invariant_violation(orders: List[Dict]) -> bool:
        """
        True when active positions are not exactly {1..N}.

        Catches gaps, duplicates, missing (None) positions and values out of range.
        """
        positions = [o.get('queue_position') for o in orders if QueuePositionEngine.is_active(o.get('status'))]
        expected = list(range(1, len(positions) + 1))
        if any(p is None for p in positions):
            return True
        return sorted(positions) != expected

    @staticmethod
    def changed_only(orders: List[Dict], updates: List[PositionUpdate]) -> List[PositionUpdate]:
        """Drop updates that would write a position an order already has."""
        current = {o.get('id'): o.get('queue_position') for o in orders}
        return [(order_id, pos) for order_id, pos in updates if current.get(order_id) != pos]
