"""Flask application factory."""
import os
import traceback

from flask import Flask, jsonify, request
from flask_wtf.csrf import CSRFProtect, CSRFError
from werkzeug.exceptions import HTTPException

from marketplace.database import init_db


def create_app(config_object='config.Config'):
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.config.from_object(config_object)
    
    # CSRF protection; API clients send the token in X-CSRFToken
    CSRFProtect(app)

    @app.errorhandler(CSRFError)
    def handle_csrf_error(e):
        app.logger.warning(f"CSRF Error: {e.description}")
        return jsonify({'status': 'error', 'code': 'csrf_error', 'message': e.description}), 400
    
    # Error tracking in production
    if app.config.get('SENTRY_DSN') and app.config.get('ENV') == 'production':
        import sentry_sdk
        from sentry_sdk.integrations.flask import FlaskIntegration
        
        sentry_sdk.init(
            dsn=app.config['SENTRY_DSN'],
            integrations=[FlaskIntegration()],
            traces_sample_rate=0.1,
            environment=app.config.get('ENV', 'production'),
            release=os.getenv('GIT_COMMIT', 'unknown')
        )
    
    # Real-time event relay (Redis pub/sub)
    from marketplace.services.event_service import init_events
    init_events(app)
    
    # Prometheus metrics instrumentation
    from marketplace.blueprints.metrics import setup_metrics_instrumentation
    setup_metrics_instrumentation(app)
    
    # Production: trust the reverse proxy headers
    if app.config.get('ENV') == 'production':
        from werkzeug.middleware.proxy_fix import ProxyFix
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1, x_prefix=0)
    
    init_db(app)
    
    from marketplace.middleware import load_actor

    @app.before_request
    def before_request_handler():
        """Load the acting user for each request."""
        load_actor()

    # Error Handlers
    from marketplace.exceptions import MarketplaceError

    @app.errorhandler(MarketplaceError)
    def handle_marketplace_error(error):
        """Handle domain exceptions as JSON."""
        if error.status_code >= 500:
            app.logger.error(f"MarketplaceError [{error.status_code}]: {error.message}")
        else:
            app.logger.info(f"MarketplaceError [{error.status_code}] {request.method} {request.path}: {error.message}")
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(404)
    def not_found_error(error):
        return jsonify({'status': 'error', 'code': 'not_found', 'message': 'Not Found'}), 404

    @app.errorhandler(Exception)
    def internal_error(error):
        if isinstance(error, HTTPException):
            return jsonify({'status': 'error', 'message': error.description}), error.code
        app.logger.error(f"Unhandled Exception: {error}")
        app.logger.error(f"Traceback: {traceback.format_exc()}")
        return jsonify({'status': 'error', 'code': 'internal_error', 'message': 'Internal Server Error'}), 500

    # Register blueprints
    from marketplace.blueprints.main import main_bp
    from marketplace.blueprints.auth import auth_bp
    from marketplace.blueprints.catalog import catalog_bp
    from marketplace.blueprints.suppliers import suppliers_bp
    from marketplace.blueprints.categories import categories_bp
    from marketplace.blueprints.prices import prices_bp
    from marketplace.blueprints.quotes import quotes_bp
    from marketplace.blueprints.admin import admin_bp
    from marketplace.blueprints.tenant_admin import tenant_admin_bp
    from marketplace.blueprints.metrics import metrics_bp

    app.register_blueprint(main_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(catalog_bp)
    app.register_blueprint(suppliers_bp)
    app.register_blueprint(categories_bp)
    app.register_blueprint(prices_bp)
    app.register_blueprint(quotes_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(tenant_admin_bp)
    app.register_blueprint(metrics_bp)
    
    from marketplace.cli_commands import init_cli_commands
    init_cli_commands(app)
    
    return app
