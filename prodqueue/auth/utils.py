"""Authentication utilities for password hashing and user management."""
from functools import wraps
from werkzeug.security import generate_password_hash, check_password_hash
from flask import session, jsonify
from prodqueue.models import User, db
from prodqueue.logging_config import get_logger

logger = get_logger(__name__)


def hash_password(password: str) -> str:
    """Hash a password using werkzeug's security utilities."""
    return generate_password_hash(password, method='pbkdf2:sha256')


def verify_password(password_hash: str, password: str) -> bool:
    """Verify a password against a hash."""
    return check_password_hash(password_hash, password)


def get_current_user():
    """
    Get the current logged-in user from the session.

    Returns:
        User object if logged in, None otherwise
    """
    from flask import has_request_context

    # If we're not in a request context (e.g., background thread), return None
    if not has_request_context():
        return None

    user_id = session.get('user_id')
    if not user_id:
        return None

    user = db.session.get(User, user_id)
    if user and user.is_active:
        return user
    return None


def get_current_user_id():
    """Owner id used to scope orders and settings, or None."""
    user = get_current_user()
    return user.id if user else None


def login_required(f):
    """
    Decorator to require user login for a route.

    Returns 401 Unauthorized if user is not logged in.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        user = get_current_user()
        if not user:
            return jsonify({'error': 'Authentication required'}), 401
        return f(*args, **kwargs)
    return decorated_function
