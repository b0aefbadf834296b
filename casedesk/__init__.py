"""
Casedesk Flask Application

Client intake, attorney client management and Cal.com booking reconciliation
for a law firm, backed by Cloud Firestore and Firebase Auth.
"""

from flask import Flask

from casedesk.config.settings import Config
from casedesk.utils.logging_config import get_logger, setup_flask_logging
from casedesk.utils.security import apply_security_headers


def create_app(config_class=Config, services=None):
    """Application factory pattern for creating Flask app instances"""
    app = Flask(__name__)

    # Load configuration
    try:
        config_class.validate_config()
        app.config.from_object(config_class)
        app.secret_key = config_class.SECRET_KEY
    except ValueError as e:
        # Set up basic logging first for error reporting
        setup_flask_logging(app)
        logger = get_logger("app.config")
        logger.error("Configuration validation failed", extra={"error": str(e), "config_class": config_class.__name__})
        raise

    # Set up structured logging
    setup_flask_logging(app)
    logger = get_logger("app.init")

    # Initialize store, identity verification and workflows
    from casedesk.services.container import EXTENSION_KEY, build_services

    if services is None:
        try:
            services = build_services(config_class)
        except Exception as e:
            logger.error(
                "Failed to initialize services",
                extra={
                    "event": "services_init_failed",
                    "error": str(e),
                    "error_type": type(e).__name__,
                    "store_backend": config_class.STORE_BACKEND,
                    "emulator": config_class.USE_EMULATOR,
                },
                exc_info=True,
            )
            raise
    app.extensions[EXTENSION_KEY] = services

    # Register blueprints
    from casedesk.views.api import api_bp
    from casedesk.views.main import main_bp
    from casedesk.views.webhooks import webhooks_bp

    app.register_blueprint(main_bp)
    app.register_blueprint(api_bp, url_prefix="/api")
    app.register_blueprint(webhooks_bp, url_prefix="/api/webhooks")

    # Register error handlers
    from casedesk.views.errors import register_error_handlers

    register_error_handlers(app)

    app.after_request(apply_security_headers)

    logger.info(
        "Application created",
        extra={"event": "app_created", "config_class": config_class.__name__},
    )
    return app
