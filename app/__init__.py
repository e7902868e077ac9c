"""
Creates and returns main flask app
"""

from flask import Flask, jsonify
from flask_cors import CORS

from .flash_liquidator.routes import init_liquidator, liquidation


def create_app(chain_id: int = 1, liquidator=None):
    """Create Flask app serving the liquidator for ``chain_id``"""
    app = Flask(__name__)
    CORS(app)

    @app.route("/health", methods=["GET"])
    def health_check():
        return jsonify({"status": "healthy"}), 200

    init_liquidator(chain_id, liquidator)

    app.register_blueprint(liquidation, url_prefix="/liquidation")

    return app
