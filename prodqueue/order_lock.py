import threading
from contextlib import contextmanager
from typing import Any, Dict, Optional
from datetime import datetime

from prodqueue.exceptions import OrderOperationInProgress
from prodqueue.logging_config import get_logger

logger = get_logger(__name__)


class OrderLockManager:
    """
    Pending-operation guard keyed by order id.

    At most one mutation per order id is in flight. A second request for the
    same id is rejected instead of queued, so the caller can tell the user to
    retry once the first operation finishes.
    """

    def __init__(self, timeout_seconds: int = 5):
        self._lock = threading.RLock()
        self._held: Dict[Any, Dict[str, Any]] = {}
        self._timeout_seconds = timeout_seconds

    def configure(self, timeout_seconds: Optional[int] = None):
        if timeout_seconds is not None:
            self._timeout_seconds = timeout_seconds

    def is_locked(self, order_id) -> bool:
        """Check if a mutation on order_id is in flight"""
        with self._lock:
            return order_id in self._held

    def get_current_operation(self, order_id) -> Optional[str]:
        """Name of the operation holding order_id, if any"""
        with self._lock:
            holder = self._held.get(order_id)
            return holder["operation"] if holder else None

    @contextmanager
    def acquire_order_lock(self, order_id, operation_name: str, timeout_seconds: Optional[int] = None):
        """
        Context manager to guard a mutation of one order

        Args:
            order_id: Order being mutated
            operation_name: Name of the operation acquiring the guard

        Raises:
            OrderOperationInProgress: If another operation holds the guard, or
                the manager mutex could not be acquired in time
        """
        acquired = False
        timeout = timeout_seconds or self._timeout_seconds
        try:
            if not self._lock.acquire(timeout=timeout):
                raise OrderOperationInProgress(
                    f"Lock acquisition timed out after {timeout}s for '{operation_name}' on order {order_id}"
                )
            try:
                current_thread_id = threading.get_ident()
                holder = self._held.get(order_id)
                if holder is not None:
                    # Same thread re-entering is allowed (e.g. delete -> renumber)
                    if holder["thread_id"] == current_thread_id:
                        holder["depth"] += 1
                        logger.debug("Re-entrant order lock", order_id=order_id, operation=operation_name)
                    else:
                        logger.warning(
                            "Order lock already held",
                            order_id=order_id,
                            held_by=holder["operation"],
                            requested_by=operation_name,
                        )
                        raise OrderOperationInProgress(
                            f"Another operation is already in progress for order {order_id}: {holder['operation']}"
                        )
                else:
                    self._held[order_id] = {
                        "operation": operation_name,
                        "thread_id": current_thread_id,
                        "acquired_at": datetime.now(),
                        "depth": 1,
                    }
                acquired = True
            finally:
                # Release the manager mutex so work can happen while the order is busy
                self._lock.release()

            yield

        finally:
            if acquired:
                with self._lock:
                    holder = self._held.get(order_id)
                    if holder is not None:
                        holder["depth"] -= 1
                        if holder["depth"] <= 0:
                            del self._held[order_id]
                            logger.debug("Order lock released", order_id=order_id, operation=operation_name)

    def get_status(self) -> dict:
        """Get current status of the lock manager"""
        now = datetime.now()
        with self._lock:
            return {
                "locked_orders": {
                    str(order_id): {
                        "operation": holder["operation"],
                        "held_for_seconds": (now - holder["acquired_at"]).total_seconds(),
                    }
                    for order_id, holder in self._held.items()
                },
                "timestamp": now.isoformat(),
                "timeout_seconds": self._timeout_seconds,
            }


# Global instance - create once and reuse
order_lock_manager = OrderLockManager()
