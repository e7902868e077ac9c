"""
Web3-backed venue readers and on-chain submission of a planned liquidation.

Planning reads live chain state through the reader interfaces; execution is
delegated to the deployed liquidator contract, whose transaction is the
atomic unit on chain.
"""

import time
from typing import Any, Dict, Optional, Tuple

from web3 import Web3
from web3.contract import Contract
from web3.logs import DISCARD

from app.flash_liquidator.config_loader import ChainConfig
from app.flash_liquidator.contracts import create_contract_instance
from app.flash_liquidator.decorators import retry_request
from app.flash_liquidator.exceptions import TransferFailure, UnprofitableRoute
from app.flash_liquidator.liquidator import plan_liquidation
from app.flash_liquidator.logging_config import setup_logger
from app.flash_liquidator.models import LiquidationPlan, Position, RiskParameters
from app.flash_liquidator.notifications import post_error_notification, post_liquidation_result_notification
from app.flash_liquidator.venues.base_venue import (
    LedgerReader,
    PoolReader,
    PriceOracle,
    RiskRegistry,
    StableswapQuoter,
    Venues,
)

logger = setup_logger()


class ChainLedger(LedgerReader):
    """Lending pool account data plus per-reserve balances from the data provider."""

    def __init__(self, lending_pool: Contract, data_provider: Contract):
        self.lending_pool = lending_pool
        self.data_provider = data_provider

    @retry_request(logger)
    def get_account_data(self, user: str) -> Position:
        user = Web3.to_checksum_address(user)
        (
            collateral_value,
            debt_value,
            borrow_headroom,
            liquidation_threshold,
            ltv,
            health_factor,
        ) = self.lending_pool.functions.getUserAccountData(user).call()
        return Position(
            user=user,
            collateral_value=collateral_value,
            debt_value=debt_value,
            borrow_headroom=borrow_headroom,
            liquidation_threshold=liquidation_threshold,
            ltv=ltv,
            health_factor=health_factor,
        )

    @retry_request(logger)
    def get_collateral_balance(self, user: str, asset: str) -> int:
        reserve_data = self.data_provider.functions.getUserReserveData(
            Web3.to_checksum_address(asset), Web3.to_checksum_address(user)
        ).call()
        return reserve_data[0]


class ChainPool(PoolReader):
    def __init__(self, contract: Contract):
        self.contract = contract
        self.address = contract.address
        self.token0, self.token1 = self._get_tokens()

    @retry_request(logger)
    def _get_tokens(self) -> Tuple[str, str]:
        return self.contract.functions.token0().call(), self.contract.functions.token1().call()

    @retry_request(logger)
    def get_reserves(self) -> Tuple[int, int, int]:
        reserve0, reserve1, timestamp = self.contract.functions.getReserves().call()
        return reserve0, reserve1, timestamp


class ChainStableswap(StableswapQuoter):
    def __init__(self, contract: Contract):
        self.contract = contract
        self.address = contract.address

    @retry_request(logger)
    def quote(self, idx_in: int, idx_out: int, amount_in: int) -> int:
        return self.contract.functions.get_dy(idx_in, idx_out, amount_in).call()


class ChainOracle(PriceOracle):
    def __init__(self, contract: Contract):
        self.contract = contract

    @retry_request(logger)
    def get_price(self, asset: str) -> int:
        return self.contract.functions.getAssetPrice(Web3.to_checksum_address(asset)).call()


class ChainRiskRegistry(RiskRegistry):
    def __init__(self, data_provider: Contract):
        self.data_provider = data_provider
        self._cache: Dict[str, RiskParameters] = {}

    @retry_request(logger)
    def get_config(self, asset: str) -> RiskParameters:
        # Reserve configuration only changes through governance, once per process is enough
        if asset not in self._cache:
            (
                decimals,
                ltv,
                liquidation_threshold,
                liquidation_bonus,
                _reserve_factor,
                collateral_enabled,
                borrow_enabled,
                _stable_rate_enabled,
                active,
                frozen,
            ) = self.data_provider.functions.getReserveConfigurationData(Web3.to_checksum_address(asset)).call()
            self._cache[asset] = RiskParameters(
                decimals=decimals,
                ltv=ltv,
                liquidation_threshold=liquidation_threshold,
                liquidation_bonus=liquidation_bonus,
                collateral_enabled=collateral_enabled,
                borrow_enabled=borrow_enabled,
                active=active,
                frozen=frozen,
            )
        return self._cache[asset]


def build_chain_venues(config: ChainConfig) -> Venues:
    """Create the reader set for the configured route."""
    strategy = config.strategy
    data_provider = create_contract_instance(config.DATA_PROVIDER, "DATA_PROVIDER_ABI_PATH", config)
    return Venues(
        ledger=ChainLedger(
            create_contract_instance(config.LENDING_POOL, "LENDING_POOL_ABI_PATH", config), data_provider
        ),
        primary_pool=ChainPool(create_contract_instance(strategy.primary_pool, "PAIR_ABI_PATH", config)),
        secondary_pool=ChainPool(create_contract_instance(strategy.secondary_pool, "PAIR_ABI_PATH", config)),
        stableswap=ChainStableswap(create_contract_instance(strategy.stableswap_pool, "STABLESWAP_ABI_PATH", config)),
        oracle=ChainOracle(create_contract_instance(config.PRICE_ORACLE, "PRICE_ORACLE_ABI_PATH", config)),
        registry=ChainRiskRegistry(data_provider),
    )


class ChainLiquidator:
    """Plans against live chain state and submits the chosen size to the liquidator contract."""

    def __init__(self, config: ChainConfig, venues: Optional[Venues] = None, contract: Optional[Contract] = None):
        self.config = config
        self.venues = venues or build_chain_venues(config)
        self.contract = contract or create_contract_instance(
            config.LIQUIDATOR_CONTRACT, "LIQUIDATOR_ABI_PATH", config
        )

    def plan(self, user: str = None) -> LiquidationPlan:
        return plan_liquidation(self.venues, self.config.strategy, user)

    def build_transaction(self, plan: LiquidationPlan) -> Dict[str, Any]:
        config = self.config
        tx = self.contract.functions.operate(
            Web3.to_checksum_address(plan.user), plan.amount, config.strategy.min_surplus
        ).build_transaction({
            "chainId": config.CHAIN_ID,
            "gasPrice": config.w3.eth.gas_price,
            "from": config.LIQUIDATOR_EOA,
            "nonce": config.w3.eth.get_transaction_count(config.LIQUIDATOR_EOA),
        })
        # A revert during estimation means the guards already fail against current state
        tx["gas"] = int(config.w3.eth.estimate_gas(tx) * 2)
        return tx

    def execute_liquidation(self, tx: Dict[str, Any]) -> Tuple[str, Any]:
        """
        Sign, send and wait for the liquidation transaction.

        Raises:
            TransferFailure: the transaction reverted on chain.
        """
        config = self.config
        logger.info("ChainLiquidator: executing liquidation transaction %s...", tx)
        signed_tx = config.w3.eth.account.sign_transaction(tx, config.LIQUIDATOR_EOA_PRIVATE_KEY)
        tx_hash = config.w3.eth.send_raw_transaction(signed_tx.raw_transaction)
        logger.info("ChainLiquidator: transaction hash: %s", tx_hash.hex())
        tx_receipt = config.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=config.RECEIPT_TIMEOUT_SECONDS)
        if tx_receipt["status"] != 1:
            raise TransferFailure(f"Liquidation transaction {tx_hash.hex()} reverted")
        logger.info("ChainLiquidator: liquidation transaction executed successfully.")
        return tx_hash.hex(), tx_receipt

    def realized_surplus(self, tx_receipt: Any) -> Optional[int]:
        """Surplus forwarded to the operator, from the contract's ``Settled`` event; None if it emitted none."""
        events = self.contract.events.Settled().process_receipt(tx_receipt, errors=DISCARD)
        if not events:
            logger.warning("ChainLiquidator: no Settled event in transaction receipt")
            return None
        return sum(event["args"]["surplus"] for event in events)

    def operate(self, user: str = None) -> Tuple[LiquidationPlan, str]:
        """
        Plan and submit one liquidation. Failures are reported and re-raised.

        Raises:
            UnprofitableRoute: no profitable size was found.
        """
        started = time.time()
        try:
            plan = self.plan(user)
            if plan.amount == 0:
                raise UnprofitableRoute(f"No profitable repayment size for {plan.user} up to {plan.max_repayable}")
            tx_hash, tx_receipt = self.execute_liquidation(self.build_transaction(plan))
        except Exception as ex:
            message = f"Liquidation of {user or self.config.strategy.target_user} failed: {type(ex).__name__}: {ex}"
            logger.error(message, exc_info=True)
            post_error_notification(message, self.config)
            raise

        logger.info("ChainLiquidator: liquidation settled in %.1fs", time.time() - started)
        forwarded = self.realized_surplus(tx_receipt)
        post_liquidation_result_notification(plan, forwarded, tx_hash, self.config)
        return plan, tx_hash
