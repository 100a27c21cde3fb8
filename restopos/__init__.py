"""Flask application factory."""
from flask import Flask, request, jsonify
from flask_wtf.csrf import CSRFProtect, CSRFError
from werkzeug.exceptions import HTTPException
from restopos.database import init_db
import os


def _check_required_settings(app):
    """Fail fast when the store or Stripe credentials are missing."""
    required = app.config.get('REQUIRED_SETTINGS', ())
    missing = [key for key in required if not app.config.get(key)]
    if missing:
        raise RuntimeError(f"Missing required configuration: {', '.join(missing)}")


def create_app(config_object='config.Config'):
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.config.from_object(config_object)

    _check_required_settings(app)

    # Initialize CSRF protection (dashboards send X-CSRFToken)
    csrf = CSRFProtect(app)

    @app.errorhandler(CSRFError)
    def handle_csrf_error(e):
        app.logger.warning(f"CSRF Error: {e.description}")
        return jsonify({'status': 'error', 'error': e.description, 'message': e.description}), 400

    # Initialize Sentry for error tracking in production
    if app.config.get('SENTRY_DSN') and app.config.get('ENV') == 'production':
        import sentry_sdk
        from sentry_sdk.integrations.flask import FlaskIntegration

        sentry_sdk.init(
            dsn=app.config['SENTRY_DSN'],
            integrations=[FlaskIntegration()],
            traces_sample_rate=0.1,  # 10% of transactions for performance monitoring
            environment=app.config.get('ENV'),
            release=os.getenv('GIT_COMMIT', 'unknown')
        )

    # Setup Prometheus metrics instrumentation
    from restopos.blueprints.metrics import setup_metrics_instrumentation
    setup_metrics_instrumentation(app)

    # Production: Enable ProxyFix for HTTPS behind Nginx reverse proxy
    if app.config.get('ENV') == 'production':
        from werkzeug.middleware.proxy_fix import ProxyFix
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1, x_prefix=0)

    # Initialize database
    init_db(app)

    # Stripe gateway, replaceable in tests through app.extensions
    from restopos.services.stripe_gateway import StripeGateway
    app.extensions['stripe_gateway'] = StripeGateway(
        secret_key=app.config['STRIPE_SECRET_KEY'],
        webhook_secret=app.config['STRIPE_WEBHOOK_SECRET'],
        payment_method_types=app.config.get('CHECKOUT_PAYMENT_METHODS')
    )

    # Error Handlers
    from restopos.exceptions import PosError

    @app.errorhandler(PosError)
    def handle_pos_error(error):
        """Handle custom application exceptions."""
        if error.status_code >= 500:
            app.logger.error(f"PosError [{error.status_code}]: {error.message}")
        else:
            app.logger.warning(f"PosError [{error.status_code}]: {error.message}")
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(HTTPException)
    def http_error(error):
        return jsonify({'status': 'error', 'error': error.name, 'message': error.description}), error.code

    @app.errorhandler(Exception)
    def internal_error(error):
        app.logger.exception(f"Unhandled Exception on {request.method} {request.path}: {error}")
        return jsonify({'status': 'error', 'error': 'Internal Server Error', 'message': 'Internal Server Error'}), 500

    # Register blueprints
    from restopos.blueprints.main import main_bp
    from restopos.blueprints.orders import orders_bp
    from restopos.blueprints.checkout import checkout_bp
    from restopos.blueprints.payments import payments_bp
    from restopos.blueprints.coupons import coupons_bp
    from restopos.blueprints.metrics import metrics_bp
    from restopos.blueprints.webhooks import webhooks_bp

    app.register_blueprint(main_bp)
    app.register_blueprint(orders_bp)
    app.register_blueprint(checkout_bp)
    app.register_blueprint(payments_bp)
    app.register_blueprint(coupons_bp)
    app.register_blueprint(metrics_bp)

    # Webhooks must be exempt from CSRF (authenticated by Stripe signature)
    csrf.exempt(webhooks_bp)
    app.register_blueprint(webhooks_bp)

    # Register CLI commands
    from restopos.cli_commands import init_cli_commands
    init_cli_commands(app)

    app.logger.info(f"Stripe checkout currency={app.config.get('DEFAULT_CURRENCY')}, "
                    f"strict transitions={app.config.get('STRICT_ORDER_TRANSITIONS')}")

    return app
