"""Module for handling API routes"""

from flask import Blueprint, jsonify, request

from .config_loader import load_chain_config
from .exceptions import LiquidationError
from .logging_config import setup_logger
from .venues.chain_venue import ChainLiquidator

logger = setup_logger()

liquidation = Blueprint("liquidation", __name__)


def init_liquidator(chain_id: int = 1, liquidator: ChainLiquidator = None) -> ChainLiquidator:
    """Create the chain liquidator once and keep it for the routes."""
    if liquidator is None:
        liquidator = ChainLiquidator(load_chain_config(chain_id))

    # Store on module level for route access before app context is available
    init_liquidator._liquidator = liquidator
    return liquidator


def _get_liquidator():
    """Get the chain liquidator instance."""
    return getattr(init_liquidator, "_liquidator", None)


@liquidation.errorhandler(LiquidationError)
def handle_liquidation_error(ex: LiquidationError):
    return jsonify({"error": type(ex).__name__, "message": str(ex)}), 409


@liquidation.route("/plan", methods=["GET"])
def get_plan():
    liquidator = _get_liquidator()
    if not liquidator:
        return jsonify({"error": "Liquidator not initialized"}), 500

    user = request.args.get("user")
    logger.info("API: planning liquidation for %s", user or "configured target")
    plan = liquidator.plan(user)
    return jsonify(plan.to_dict())


@liquidation.route("/operate", methods=["POST"])
def operate():
    liquidator = _get_liquidator()
    if not liquidator:
        return jsonify({"error": "Liquidator not initialized"}), 500

    user = (request.get_json(silent=True) or {}).get("user")
    logger.info("API: operating liquidation for %s", user or "configured target")
    plan, tx_hash = liquidator.operate(user)
    return jsonify({**plan.to_dict(), "tx_hash": tx_hash})
