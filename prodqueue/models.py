from flask_sqlalchemy import SQLAlchemy
from datetime import datetime

from prodqueue.datetime_utils import format_datetime

db = SQLAlchemy()


class User(db.Model):
    """Account that owns orders and production settings."""
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(80), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(256), nullable=False)
    is_admin = db.Column(db.Boolean, default=False, nullable=False)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.now)
    last_login = db.Column(db.DateTime, nullable=True)

    def __repr__(self):
        return f"<User {self.username}>"


class ProductionSettings(db.Model):
    """Working calendar for one owner."""
    __tablename__ = "production_settings"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, unique=True, index=True)
    working_hours_per_day = db.Column(db.Float, nullable=False, default=8)
    start_time = db.Column(db.String(5), nullable=False, default="09:00")  # HH:MM
    end_time = db.Column(db.String(5), nullable=False, default="17:00")  # HH:MM
    working_days = db.Column(db.JSON, nullable=False, default=lambda: [1, 2, 3, 4, 5])  # 0=Sunday
    created_at = db.Column(db.DateTime, default=datetime.now)
    updated_at = db.Column(db.DateTime, default=datetime.now, onupdate=datetime.now)

    items = db.relationship(
        "ProductionSettingItem",
        order_by="ProductionSettingItem.sort_index",
        cascade="all, delete-orphan",
        backref="settings",
    )

    def __repr__(self):
        return f"<ProductionSettings user={self.user_id} {self.start_time}-{self.end_time}>"

    def to_dict(self):
        return {
            'items': [item.to_dict() for item in self.items],
            'working_hours_per_day': self.working_hours_per_day,
            'start_time': self.start_time,
            'end_time': self.end_time,
            'working_days': list(self.working_days or []),
        }


class ProductionSettingItem(db.Model):
    """One configured unit type and its per-unit production minutes."""
    __tablename__ = "production_setting_items"

    id = db.Column(db.Integer, primary_key=True)
    settings_id = db.Column(db.Integer, db.ForeignKey("production_settings.id"), nullable=False, index=True)
    item_ref = db.Column(db.String(64), nullable=False)
    name = db.Column(db.String(128), nullable=False)
    production_time_per_unit = db.Column(db.Integer, nullable=False)
    sort_index = db.Column(db.Integer, nullable=False, default=0)

    def to_dict(self):
        return {
            'id': self.item_ref,
            'name': self.name,
            'production_time_per_unit': self.production_time_per_unit,
        }


class Order(db.Model):
    __tablename__ = "orders"
    __table_args__ = (
        db.Index("ix_orders_user_queue_position", "user_id", "queue_position"),
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    customer_name = db.Column(db.String(256), nullable=False)
    customer_email = db.Column(db.String(256), nullable=False)
    status = db.Column(db.String(20), nullable=False, default="pending", index=True)

    # Scheduling estimate, fixed at creation
    total_production_time = db.Column(db.Integer, nullable=False)  # minutes
    estimated_completion_date = db.Column(db.DateTime, nullable=False)

    # Dense 1..N over pending/in-progress orders; stale for completed/cancelled
    queue_position = db.Column(db.Integer, nullable=False)

    # Production-time tracking
    production_start_time = db.Column(db.DateTime, nullable=True)
    production_time_accumulated = db.Column(db.Integer, nullable=False, default=0)  # minutes

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.now)
    updated_at = db.Column(db.DateTime, nullable=False, default=datetime.now)

    items = db.relationship(
        "OrderItem",
        order_by="OrderItem.id",
        cascade="all, delete-orphan",
        backref="order",
    )

    def __repr__(self):
        return f"<Order {self.id} - {self.status} - #{self.queue_position}>"

    def to_position_dict(self):
        """Minimal shape consumed by QueuePositionEngine."""
        return {
            'id': self.id,
            'status': self.status,
            'queue_position': self.queue_position,
            'created_at': format_datetime(self.created_at),
        }

    def to_dict(self, now=None):
        from prodqueue.queue.lifecycle import actual_production_minutes
        return {
            'id': self.id,
            'user_id': self.user_id,
            'customer_name': self.customer_name,
            'customer_email': self.customer_email,
            'items': [item.to_dict() for item in self.items],
            'status': self.status,
            'total_production_time': self.total_production_time,
            'estimated_completion_date': format_datetime(self.estimated_completion_date),
            'queue_position': self.queue_position,
            'created_at': format_datetime(self.created_at),
            'updated_at': format_datetime(self.updated_at),
            'production_start_time': format_datetime(self.production_start_time),
            'production_time_accumulated': self.production_time_accumulated or 0,
            'actual_production_time': actual_production_minutes(self, now),
        }


class OrderItem(db.Model):
    """Quantity of one unit type in an order, with the per-unit rate captured at creation."""
    __tablename__ = "order_items"

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    item_ref = db.Column(db.String(64), nullable=False)
    name = db.Column(db.String(128), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    production_time_per_unit = db.Column(db.Integer, nullable=False)  # snapshot, not a live link

    def to_dict(self):
        return {
            'id': self.item_ref,
            'name': self.name,
            'quantity': self.quantity,
            'production_time_per_unit': self.production_time_per_unit,
        }
