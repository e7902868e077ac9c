"""
Standalone script to plan, and optionally submit, a flash liquidation.

Usage:
    python dry_run_liquidation.py [<borrower_address>]
"""

import logging
import sys

from dotenv import load_dotenv
load_dotenv()

from app.flash_liquidator.config_loader import load_chain_config
from app.flash_liquidator.exceptions import LiquidationError
from app.flash_liquidator.venues.chain_venue import ChainLiquidator

logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(name)s] %(levelname)s: %(message)s")
logger = logging.getLogger("dry_run_liquidation")

MAINNET_CHAIN_ID = 1


def main():
    user = sys.argv[1] if len(sys.argv) > 1 else None
    config = load_chain_config(MAINNET_CHAIN_ID)
    liquidator = ChainLiquidator(config)

    logger.info("Route: %s", config.strategy.route().describe())
    try:
        plan = liquidator.plan(user)
    except LiquidationError as ex:
        logger.info("Position cannot be liquidated: %s: %s", type(ex).__name__, ex)
        return

    logger.info("Max repayable: %s", plan.max_repayable)
    logger.info("Chosen amount: %s", plan.amount)
    logger.info("Expected profit: %s", plan.expected_profit)
    if plan.simulation:
        logger.info("Simulation: %s", plan.simulation)

    if plan.amount == 0:
        logger.info("No profitable repayment size. Exiting.")
        return

    tx = liquidator.build_transaction(plan)
    logger.info("Transaction built successfully:")
    logger.info("  to: %s", tx.get("to"))
    logger.info("  gas: %s", tx.get("gas"))

    answer = input("EXECUTE TX? (y/n)")
    if answer != "y":
        logger.info("Exiting.")
        return

    tx_hash, tx_receipt = liquidator.execute_liquidation(tx)
    logger.info("Liquidation succeeded! TX hash: %s", tx_hash)
    logger.info("Gas used: %s", tx_receipt.get("gasUsed"))
    logger.info("Explorer: %s/tx/%s", config.EXPLORER_URL, tx_hash)


if __name__ == "__main__":
    main()
