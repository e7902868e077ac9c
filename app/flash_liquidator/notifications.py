"""
Operator notifications through Apprise.

Messages use Slack-style markup. Without ``NOTIFICATION_URL`` the Apprise
object has no services, so posting only logs the message.
"""

import time
from typing import Optional

from apprise import Apprise
from web3 import Web3

from .config_loader import ChainConfig
from .logging_config import setup_logger
from .models import LiquidationPlan

logger = setup_logger()


def setup_apprise_notification_object(config: Optional[ChainConfig]) -> Apprise:
    """Build an Apprise object targeting the configured URL, if any."""
    apprise = Apprise()
    url = config.NOTIFICATION_URL if config is not None else ""
    if url:
        apprise.add(url)
    return apprise


def _send(title: str, body: str, config: Optional[ChainConfig]) -> bool:
    logger.info("%s notification:\n%s", title, body)
    return setup_apprise_notification_object(config).notify(body=body, title=title)


def _timestamp() -> str:
    return time.strftime("%Y-%m-%d %H:%M:%S")


def post_liquidation_result_notification(
    plan: LiquidationPlan, forwarded: Optional[int], liq_tx_hash: Optional[str], config: ChainConfig
) -> bool:
    """
    Report a settled liquidation with its size, expected profit and forwarded surplus.

    ``forwarded`` is the realized amount; None when the settlement did not report it.
    """
    realized = f"{Web3.from_wei(forwarded, 'ether')} ETH" if forwarded is not None else "not reported"
    lines = [
        ":moneybag: *Flash Liquidation Settled* :moneybag:",
        "",
        f"*Borrower*: `{plan.user}`",
        f"• Repaid (borrow asset units): `{plan.amount}` of max `{plan.max_repayable}`",
        f"• Expected profit: {Web3.from_wei(plan.expected_profit, 'ether')} ETH",
        f"• Forwarded to operator: {realized}",
    ]
    if liq_tx_hash:
        lines.append(f"• Transaction: <{config.EXPLORER_URL}/tx/{liq_tx_hash}|{liq_tx_hash}>")
    lines += ["", f"Settled at {_timestamp()} on `{config.CHAIN_NAME}`"]
    return _send("Flash Liquidation Settled", "\n".join(lines), config)


def post_error_notification(message: str, config: Optional[ChainConfig] = None) -> bool:
    """Report a failed or aborted liquidation attempt."""
    lines = [":rotating_light: *Flash Liquidation Failed* :rotating_light:", "", message, "", f"Time: {_timestamp()}"]
    if config is not None:
        lines.append(f"Network: `{config.CHAIN_NAME}`")
    return _send("Flash Liquidation Failed", "\n".join(lines), config)
