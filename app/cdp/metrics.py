"""
MetricsAggregator - combines chain reads into dashboard views.

Every query fans its independent reads out on a thread pool and joins them
before returning. Reads are dashboard-only, so a failed read degrades the
whole view to its documented default instead of raising; each failure is
logged where it happens.
"""

import math
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, List, Optional

from .chain_reader import ChainReader
from .config_loader import ChainConfig
from .exceptions import ConfigError, ReadFailure
from .fixed_point import normalize_health_factor
from .logging_config import setup_logger
from .models import (
    DEFAULT_PROTOCOL_STATS,
    CollateralBalance,
    CollateralToken,
    Position,
    ProtocolStats,
    TokenPrice,
    WalletBalances,
)

logger = setup_logger()


def compute_max_mintable(collateral_value_usd: int, liquidation_threshold: int, current_debt: int) -> int:
    """
    Additional debt the engine would accept for a position.

    Mirrors the contract's solvency check with integer floor division, so the
    result never exceeds what a mint can actually take.
    """
    return max(0, collateral_value_usd * liquidation_threshold // 100 - current_debt)


def project_debt(current_debt: int, change: int, minting: bool) -> int:
    """Debt after minting or burning ``change``; burns never go below zero."""
    if minting:
        return current_debt + change
    return max(0, current_debt - change)


class MetricsAggregator:
    """
    Read-and-combine queries for a presentation layer.

    Safe to call repeatedly and concurrently: no state is kept between calls.
    """

    def __init__(self, config: ChainConfig, reader: Optional[ChainReader] = None,
                 executor: Optional[ThreadPoolExecutor] = None):
        self.config = config
        self.reader = reader or ChainReader(config)
        self.executor = executor or ThreadPoolExecutor(max_workers=int(config.READ_WORKERS))

    def _resolve_user(self, user: Optional[str]) -> str:
        user = user or self.config.DEFAULT_ACCOUNT
        if not user:
            raise ConfigError("No user address given and no DEFAULT_ACCOUNT configured")
        return user

    def _gather(self, label: str, calls: Dict[str, Callable[[], Any]]) -> Dict[str, Any]:
        """
        Run independent reads concurrently and join them.

        Every failed read is logged; the first failure is re-raised once all
        reads have finished so no read is left running after we return.
        """
        futures = {name: self.executor.submit(call) for name, call in calls.items()}
        results = {}
        first_failure = None
        for name, future in futures.items():
            try:
                results[name] = future.result()
            except ReadFailure as ex:
                logger.error("MetricsAggregator: %s read '%s' failed: %s", label, name, ex, exc_info=ex.cause)
                first_failure = first_failure or ex
        if first_failure is not None:
            raise first_failure
        return results

    def _collateral_balance(self, user: str, token: CollateralToken) -> CollateralBalance:
        balance = self.reader.get_collateral_balance(user, token.address)
        value_usd = self.reader.get_usd_value(token.address, balance) if balance > 0 else 0
        return CollateralBalance(token=token.address, symbol=token.symbol, balance=balance, value_usd=value_usd)

    def _default_position(self) -> Position:
        return Position(
            total_debt=0,
            collateral_value_usd=0,
            health_factor=math.inf,
            collateral_balances=tuple(
                CollateralBalance(token=token.address, symbol=token.symbol, balance=0, value_usd=0)
                for token in self.config.COLLATERAL_TOKENS
            ),
        )

    def get_position(self, user: Optional[str] = None) -> Position:
        user = self._resolve_user(user)
        calls = {
            "account": lambda: self.reader.get_account_information(user),
            "health_factor": lambda: self.reader.get_health_factor(user),
        }
        for token in self.config.COLLATERAL_TOKENS:
            calls[f"collateral:{token.symbol}"] = lambda token=token: self._collateral_balance(user, token)

        try:
            results = self._gather("position", calls)
        except ReadFailure:
            logger.warning("MetricsAggregator: returning default position for %s", user)
            return self._default_position()

        total_debt, collateral_value_usd = results["account"]
        return Position(
            total_debt=total_debt,
            collateral_value_usd=collateral_value_usd,
            health_factor=normalize_health_factor(results["health_factor"], total_debt),
            collateral_balances=tuple(
                results[f"collateral:{token.symbol}"] for token in self.config.COLLATERAL_TOKENS
            ),
        )

    def get_protocol_stats(self) -> ProtocolStats:
        calls = {
            "total_supply": lambda: self.reader.total_supply(self.config.STABLE_COIN),
            "liquidation_threshold": self.reader.get_liquidation_threshold,
            "liquidation_bonus": self.reader.get_liquidation_bonus,
            "stability_fee_bps": self.reader.get_stability_fee_bps,
            "protocol_reserve": self.reader.get_protocol_reserve,
            "protocol_bad_debt": self.reader.get_protocol_bad_debt,
        }
        try:
            results = self._gather("protocol stats", calls)
        except ReadFailure:
            logger.warning("MetricsAggregator: returning default protocol stats")
            return DEFAULT_PROTOCOL_STATS
        return ProtocolStats(**results)

    def _feed_decimals(self) -> int:
        return int(self.config.PRICE_FEED_DECIMALS)

    def _default_prices(self) -> List[TokenPrice]:
        return [
            TokenPrice(symbol=feed.symbol, price=feed.default_price, token=feed.token,
                       display_decimals=feed.display_decimals, feed_decimals=self._feed_decimals())
            for feed in self.config.PRICE_FEEDS
        ]

    def get_token_prices(self) -> List[TokenPrice]:
        calls = {feed.symbol: lambda feed=feed: self.reader.latest_round_data(feed.feed)
                 for feed in self.config.PRICE_FEEDS}
        try:
            results = self._gather("token prices", calls)
        except ReadFailure:
            logger.warning("MetricsAggregator: returning default token prices")
            return self._default_prices()

        now = time.time()
        feed_decimals = self._feed_decimals()
        staleness = int(self.config.PRICE_STALENESS_SECONDS)
        prices = []
        for feed in self.config.PRICE_FEEDS:
            round_data = results[feed.symbol]
            stale = round_data.updated_at == 0 or now - round_data.updated_at > staleness
            if round_data.answer <= 0:
                logger.warning("MetricsAggregator: %s feed %s returned non-positive answer %s",
                               feed.symbol, feed.feed, round_data.answer)
            elif stale:
                logger.warning("MetricsAggregator: %s feed %s is stale (updated at %s)",
                               feed.symbol, feed.feed, round_data.updated_at)
            prices.append(
                TokenPrice(
                    symbol=feed.symbol,
                    price=round_data.answer,
                    token=feed.token,
                    display_decimals=feed.display_decimals,
                    updated_at=round_data.updated_at,
                    stale=stale,
                    feed_decimals=feed_decimals,
                )
            )
        return prices

    def get_wallet_balances(self, user: Optional[str] = None) -> WalletBalances:
        user = self._resolve_user(user)
        calls = {"native": lambda: self.reader.native_balance(user)}
        for token in self.config.WALLET_TOKENS:
            calls[token.symbol] = lambda token=token: self.reader.balance_of(token.address, user)

        try:
            results = self._gather("wallet balances", calls)
        except ReadFailure:
            logger.warning("MetricsAggregator: returning zero wallet balances for %s", user)
            results = {name: 0 for name in calls}

        native = results.pop("native")
        return WalletBalances(native_symbol=self.config.NATIVE_SYMBOL, native=native, tokens=results)

    def get_max_mintable(self, user: Optional[str] = None) -> int:
        user = self._resolve_user(user)
        calls = {
            "account": lambda: self.reader.get_account_information(user),
            "liquidation_threshold": self.reader.get_liquidation_threshold,
            "current_debt": lambda: self.reader.get_stablecoin_minted(user),
        }
        try:
            results = self._gather("max mintable", calls)
        except ReadFailure:
            logger.warning("MetricsAggregator: returning zero max mintable for %s", user)
            return 0

        _, collateral_value_usd = results["account"]
        return compute_max_mintable(collateral_value_usd, results["liquidation_threshold"], results["current_debt"])
