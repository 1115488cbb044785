import os
import logging
from flask import Flask, jsonify
from dotenv import load_dotenv

from mrrboard.config import DashboardConfig
from mrrboard.currency import CURRENCY_LABELS, get_supported_currencies
from mrrboard.registry import registry
from mrrboard.views.integration_list import InFlight

logger = logging.getLogger(__name__)


def create_app(config=None):
    """Create and configure an instance of the Flask application."""
    load_dotenv()
    if config is None:
        config = DashboardConfig.from_env()

    # Configure logging
    logging.basicConfig(level=logging.DEBUG if config.debug_mode else logging.INFO)

    app = Flask(__name__)
    app.secret_key = config.secret_key
    app.config["MRRBOARD"] = config
    # sync requests in flight, shared by every request of this process
    app.extensions["mrrboard_in_flight"] = InFlight()

    if config.secret_key == "dev":
        logger.warning("SECRET_KEY environment variable not set. Session cookies use a development key.")

    registry.discover()

    with app.app_context():
        # Import and register blueprints from each resource
        from mrrboard.resources.auth.endpoints import auth_bp
        from mrrboard.resources.integrations.endpoints import integrations_bp, get_manifest as get_integrations_manifest

        app.register_blueprint(auth_bp)
        app.register_blueprint(integrations_bp)

        logger.info("Registered auth blueprint.")
        logger.info("Registered integrations blueprint.")

    @app.route('/', methods=['GET'])
    def health_check():
        """Health check endpoint for startup probes."""
        return jsonify({
            "status": "healthy",
            "service": "mrrboard",
            "app_name": config.app_name,
            **registry.status(),
        })

    @app.route('/manifest', methods=['GET'])
    def manifest():
        return jsonify({
            "name": config.app_name,
            "company": config.company_name,
            "currencies": [{"code": code, **CURRENCY_LABELS[code]} for code in get_supported_currencies()],
            "integrations": get_integrations_manifest(),
        })

    return app


if __name__ == '__main__':
    app = create_app()
    port = int(os.environ.get("PORT", 8080))
    app.run(debug=False, host='0.0.0.0', port=port)
