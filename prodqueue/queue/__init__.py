"""
Production Queue Module
Flask Blueprint for orders, queue positions and production settings.

Pure logic lives in engine.py (queue positions) and lifecycle.py (status
transitions and production-time accounting); service.py binds them to the
database and routes.py exposes them as JSON endpoints.
"""
from flask import Blueprint

queue_bp = Blueprint("queue", __name__)

from prodqueue.queue import routes  # noqa: E402,F401
