import os
import atexit

from flask import Flask, jsonify
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

# scheduler imports
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.executors.pool import ThreadPoolExecutor

from prodqueue.logging_config import configure_logging, get_logger
from prodqueue.models import db
from prodqueue.order_lock import order_lock_manager

logger = get_logger(__name__)


def init_scheduler(app):
    """Initialize the background scheduler (heartbeat and queue integrity scan)."""

    # --- Prevent scheduler duplication in multi-worker environments ---
    # Only run the scheduler on one instance
    if os.environ.get("WERKZEUG_RUN_MAIN") != "true" and not os.environ.get("IS_SCHEDULER_WORKER"):
        logger.info("Skipping scheduler startup on this worker")
        return None

    executors = {"default": ThreadPoolExecutor(2)}
    scheduler = BackgroundScheduler(executors=executors)

    scheduler.add_job(
        func=lambda: logger.info("Scheduler heartbeat: alive"),
        trigger="interval",
        minutes=30,
        id="heartbeat",
        replace_existing=True,
    )

    def scan_queues():
        from prodqueue.queue.service import OrderQueueService
        with app.app_context():
            result = OrderQueueService.scan_all_queues()
            logger.info("Queue integrity scan finished", **result)

    scheduler.add_job(
        func=scan_queues,
        trigger="interval",
        minutes=app.config.get("QUEUE_INTEGRITY_SCAN_MINUTES", 15),
        id="queue_integrity_scan",
        replace_existing=True,
    )

    scheduler.start()
    atexit.register(lambda: scheduler.shutdown(wait=False))

    logger.info("Scheduler started")
    return scheduler


def create_app(config_class=None):
    # Import config after dotenv is loaded
    from prodqueue.config import get_config
    from prodqueue.db_config import configure_database

    if config_class is None:
        config_class = get_config()

    app = Flask(__name__)
    app.config.from_object(config_class)

    configure_logging(
        log_level=app.config.get("LOG_LEVEL", "INFO"),
        log_file=app.config.get("LOG_FILE"),
    )

    configure_database(app)
    order_lock_manager.configure(timeout_seconds=app.config.get("ORDER_LOCK_TIMEOUT_SECONDS"))

    logger.info(f"Starting application in {config_class.ENV} environment")
    logger.info(f"Database URI: {app.config.get('SQLALCHEMY_DATABASE_URI', 'Not set')[:50]}...")

    allowed_origins = app.config.get("CORS_ORIGINS", "*")
    if allowed_origins != "*":
        # Parse comma-separated list if provided
        allowed_origins = [origin.strip() for origin in allowed_origins.split(",")]

    CORS(app,
         resources={r"/*": {"origins": allowed_origins}},
         supports_credentials=True,
         allow_headers=["Content-Type", "Authorization"],
         methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"])

    db.init_app(app)

    if app.config.get("AUTO_CREATE_TABLES"):
        with app.app_context():
            db.create_all()

    from prodqueue.auth.routes import auth_bp
    from prodqueue.queue import queue_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(queue_bp, url_prefix="/api")

    @app.route("/health")
    def health():
        return jsonify({"status": "ok", "locks": order_lock_manager.get_status()}), 200

    # Global error handler so every failure is returned as JSON
    @app.errorhandler(Exception)
    def handle_exception(e):
        if isinstance(e, HTTPException):
            return jsonify({"error": e.name, "message": e.description}), e.code

        logger.error("Unhandled exception", error=str(e), exc_info=True)
        return jsonify({
            "error": str(e),
            "message": "An error occurred processing your request"
        }), 500

    if not app.config.get("TESTING"):
        try:
            init_scheduler(app)
        except Exception as e:
            logger.error("Failed to start scheduler", error=str(e))

    return app
