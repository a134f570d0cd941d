"""
Read-only aggregations over an owner's orders for dashboard and calendar views.
"""
from datetime import date, datetime
from typing import Any, Dict, List, Optional

import pandas as pd

from prodqueue.queue.lifecycle import (
    CANCELLED,
    COMPLETED,
    IN_PROGRESS,
    ORDER_STATUSES,
    PENDING,
    actual_production_minutes,
)
from prodqueue.scheduling.config import WorkingCalendar


CALENDAR_STATUSES = (PENDING, IN_PROGRESS, COMPLETED)


def _orders_frame(orders, now: datetime) -> pd.DataFrame:
    rows = []
    for order in orders:
        rows.append({
            'id': order.id,
            'status': order.status,
            'created_at': order.created_at,
            'estimated_completion_date': order.estimated_completion_date,
            'total_production_time': order.total_production_time or 0,
            'production_time_accumulated': order.production_time_accumulated or 0,
            'actual_production_time': actual_production_minutes(order, now),
            'item_quantity': sum(item.quantity for item in order.items),
        })
    return pd.DataFrame(
        rows,
        columns=[
            'id', 'status', 'created_at', 'estimated_completion_date',
            'total_production_time', 'production_time_accumulated',
            'actual_production_time', 'item_quantity',
        ],
    )


def build_dashboard_summary(orders, now: Optional[datetime] = None, days: int = 7) -> Dict[str, Any]:
    """
    Dashboard metrics for a set of orders.

    Returns:
        dict with total_orders, status_counts, completed_items,
        average_actual_production_time (minutes over completed and in-progress
        orders) and orders_by_day for the last `days` days, oldest first
    """
    now = now or datetime.now()
    df = _orders_frame(orders, now)

    counts = df['status'].value_counts()
    status_counts = {status: int(counts.get(status, 0)) for status in ORDER_STATUSES}

    completed = df[df['status'] == COMPLETED]
    worked = df[df['status'].isin([COMPLETED, IN_PROGRESS])]
    average_actual = int(round(worked['actual_production_time'].mean())) if not worked.empty else 0

    day_range = pd.date_range(end=pd.Timestamp(now.date()), periods=days, freq='D')
    if df.empty:
        per_day = pd.Series(dtype='int64')
    else:
        per_day = pd.to_datetime(df['created_at']).dt.normalize().value_counts()

    return {
        'total_orders': int(len(df)),
        'status_counts': status_counts,
        'active_orders': status_counts[PENDING] + status_counts[IN_PROGRESS],
        'cancelled_orders': status_counts[CANCELLED],
        'completed_items': int(completed['item_quantity'].sum()) if not completed.empty else 0,
        'average_actual_production_time': average_actual,
        'queued_production_time': int(df[df['status'].isin([PENDING, IN_PROGRESS])]['total_production_time'].sum()),
        'orders_by_day': [
            {'date': day.date().isoformat(), 'orders': int(per_day.get(day, 0))}
            for day in day_range
        ],
    }


def build_calendar_summary(
    orders,
    calendar: WorkingCalendar,
    start: Optional[date] = None,
    end: Optional[date] = None,
    now: Optional[datetime] = None,
) -> List[Dict[str, Any]]:
    """
    Orders grouped by the date of their estimated completion.

    Pending, in-progress and completed orders are included; cancelled are not.
    start/end (inclusive) restrict the dates returned.

    Returns:
        List of per-date dicts sorted by date
    """
    now = now or datetime.now()
    df = _orders_frame(orders, now)
    df = df[df['status'].isin(CALENDAR_STATUSES)].copy()
    if df.empty:
        return []

    df['date'] = pd.to_datetime(df['estimated_completion_date']).dt.date
    if start is not None:
        df = df[df['date'] >= start]
    if end is not None:
        df = df[df['date'] <= end]

    summary = []
    for day, group in df.groupby('date', sort=True):
        worked = group[group['status'].isin([COMPLETED, IN_PROGRESS])]
        summary.append({
            'date': day.isoformat(),
            'is_working_day': calendar.is_working_day(day),
            'order_ids': [int(order_id) for order_id in group['id']],
            'order_count': int(len(group)),
            'completed_count': int((group['status'] == COMPLETED).sum()),
            'total_estimated_time': int(group['total_production_time'].sum()),
            'total_actual_time': int(worked['production_time_accumulated'].sum()),
        })
    return summary
