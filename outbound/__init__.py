"""
Flask application factory.

Creates and configures the Flask app, registers all blueprints and maps
pipeline errors onto JSON responses.
"""
import logging

from flask import Flask, jsonify

logger = logging.getLogger('outbound')


def create_app():
    """Create and configure the Flask application."""
    from outbound.logging_config import configure_logging
    from outbound.pipeline.errors import PipelineError

    app = Flask(__name__)

    configure_logging(app)

    # Register blueprints
    from outbound.routes.health import bp as health_bp
    from outbound.routes.leads import bp as leads_bp
    from outbound.routes.sequences import bp as sequences_bp
    from outbound.routes.account import bp as account_bp
    from outbound.routes.settings import bp as settings_bp

    app.register_blueprint(health_bp)
    app.register_blueprint(leads_bp)
    app.register_blueprint(sequences_bp)
    app.register_blueprint(account_bp)
    app.register_blueprint(settings_bp)

    @app.errorhandler(PipelineError)
    def handle_pipeline_error(error):
        if error.status_code >= 500:
            logger.error("%s: %s", type(error).__name__, error.message, exc_info=error)
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(Exception)
    def handle_unexpected_error(error):
        from werkzeug.exceptions import HTTPException
        if isinstance(error, HTTPException):
            return jsonify({'error': error.description}), error.code
        logger.error("Unhandled error: %s", error, exc_info=error)
        return jsonify({'error': 'Internal server error'}), 500

    # Import models so Base.metadata knows about them (required for SQLAlchemy).
    # Schema is managed by Alembic — no init_db() call.
    import importlib
    importlib.import_module('outbound.models.tenant')
    importlib.import_module('outbound.models.lead')
    importlib.import_module('outbound.models.research_record')
    importlib.import_module('outbound.models.email_sequence')
    importlib.import_module('outbound.models.lead_memory')

    return app
