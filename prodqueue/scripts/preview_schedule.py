#!/usr/bin/env python3
"""
Command-line script to preview production estimates.

Usage:
    python -m prodqueue.scripts.preview_schedule --user-id 1 [--now "YYYY-MM-DD HH:MM"]
    python -m prodqueue.scripts.preview_schedule --user-id 1 --item 1=2 --item 2=1

Options:
    --user-id ID          Owner whose settings and queue are used
    --now TIMESTAMP       Reference instant (defaults to the current time)
    --item ID=QTY         Quote a prospective order (repeatable); without it the
                          active queue is re-walked and estimate drift is shown
"""

import argparse
import sys
from datetime import datetime

from prodqueue import create_app
from prodqueue.datetime_utils import parse_datetime
from prodqueue.queue.service import OrderQueueService, ProductionSettingsService
from prodqueue.scheduling.calculator import format_duration
from prodqueue.scheduling.preview import print_preview, rewalk_queue


def parse_items(values):
    quantities = {}
    for value in values or []:
        item_id, sep, quantity = value.partition('=')
        if not sep or not quantity.strip().lstrip('-').isdigit():
            raise argparse.ArgumentTypeError(f"--item must look like ID=QTY. Got: {value}")
        quantities[item_id.strip()] = int(quantity)
    return quantities


def main():
    parser = argparse.ArgumentParser(
        description='Preview production estimates without updating the database'
    )
    parser.add_argument('--user-id', type=int, required=True, help='Owner id')
    parser.add_argument('--now', type=str, help='Reference instant (ISO format, defaults to now)')
    parser.add_argument('--item', action='append', help='Prospective order line as ID=QTY (repeatable)')

    args = parser.parse_args()

    try:
        quantities = parse_items(args.item)
        now = parse_datetime(args.now.replace(' ', 'T')) if args.now else datetime.now()
    except (argparse.ArgumentTypeError, ValueError) as e:
        parser.error(str(e))

    app = create_app()

    with app.app_context():
        try:
            if quantities:
                estimate = OrderQueueService.quote_order(args.user_id, quantities, now)
                print(f"Production time:      {format_duration(estimate['total_production_time'])}")
                print(f"Queued ahead:         {format_duration(estimate['queued_minutes_ahead'])}")
                print(f"Estimated completion: {estimate['estimated_completion_date']:%Y-%m-%d %H:%M}")
            else:
                calendar = ProductionSettingsService.get_working_calendar(args.user_id)
                orders = OrderQueueService.get_orders(args.user_id)
                print_preview(rewalk_queue(orders, calendar, now))
        except Exception as e:
            print(f"\nFatal error: {e}", file=sys.stderr)
            sys.exit(1)


if __name__ == '__main__':
    main()
