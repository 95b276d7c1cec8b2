"""
Data classes for the values returned by the CDP client.

Every model is an immutable snapshot holding raw integer amounts; ``to_dict``
renders display strings for a presentation layer.
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Union

from .fixed_point import (
    PRICE_FEED_DECIMALS,
    WAD,
    HealthFactor,
    bps_to_percent,
    format_price,
    is_infinite,
    to_display,
)


@dataclass(frozen=True)
class CollateralToken:
    """A token accepted as collateral by the engine."""

    symbol: str
    name: str
    address: str
    price_feed: str
    decimals: int = 18


@dataclass(frozen=True)
class PriceFeed:
    """A configured price feed and the fallback price shown when it cannot be read."""

    symbol: str
    feed: str
    token: str
    display_decimals: int
    default_price: int


@dataclass(frozen=True)
class WalletToken:
    symbol: str
    address: str


@dataclass(frozen=True)
class RoundData:
    """Raw ``latestRoundData`` result of a price feed."""

    round_id: int
    answer: int
    started_at: int
    updated_at: int
    answered_in_round: int


@dataclass(frozen=True)
class CollateralBalance:
    token: str
    symbol: str
    balance: int
    value_usd: int

    def to_dict(self) -> Dict[str, str]:
        return {
            "token": self.token,
            "symbol": self.symbol,
            "balance": to_display(self.balance),
            "valueUsd": to_display(self.value_usd),
        }


class HealthStatus(str, Enum):
    LIQUIDATABLE = "LIQUIDATABLE"
    CRITICAL = "CRITICAL"
    AT_RISK = "AT RISK"
    MODERATE = "MODERATE"
    SAFE = "SAFE"


# Upper bounds (exclusive) of each status band, in 18-decimal health factor units
HEALTH_STATUS_BANDS = (
    (WAD, HealthStatus.LIQUIDATABLE),
    (WAD * 3 // 2, HealthStatus.CRITICAL),
    (WAD * 2, HealthStatus.AT_RISK),
    (WAD * 3, HealthStatus.MODERATE),
)


@dataclass(frozen=True)
class Position:
    """A user's debt, collateral and health factor at one point in time."""

    total_debt: int
    collateral_value_usd: int
    health_factor: HealthFactor
    collateral_balances: Tuple[CollateralBalance, ...] = ()

    @property
    def collateral_ratio(self) -> HealthFactor:
        """Collateral value over debt as an 18-decimal percentage; infinite without debt."""
        if self.total_debt == 0:
            return math.inf
        return self.collateral_value_usd * 100 * WAD // self.total_debt

    def collateral_share(self, symbol: str) -> int:
        """Share of total collateral value held in ``symbol``, as an 18-decimal percentage."""
        if self.collateral_value_usd == 0:
            return 0
        for balance in self.collateral_balances:
            if balance.symbol == symbol:
                return balance.value_usd * 100 * WAD // self.collateral_value_usd
        raise KeyError(symbol)

    @property
    def health_status(self) -> HealthStatus:
        if is_infinite(self.health_factor):
            return HealthStatus.SAFE
        for upper_bound, status in HEALTH_STATUS_BANDS:
            if self.health_factor < upper_bound:
                return status
        return HealthStatus.SAFE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalDebt": to_display(self.total_debt),
            "collateralValueUsd": to_display(self.collateral_value_usd),
            "healthFactor": to_display(self.health_factor),
            "healthStatus": self.health_status.value,
            "collateralRatio": to_display(self.collateral_ratio, 2),
            "collateralBalances": [
                dict(balance.to_dict(), share=to_display(self.collateral_share(balance.symbol), 2))
                for balance in self.collateral_balances
            ],
        }


@dataclass(frozen=True)
class ProtocolStats:
    """Global protocol parameters; threshold and bonus are whole percents, the fee is in bps."""

    total_supply: int
    liquidation_threshold: int
    liquidation_bonus: int
    stability_fee_bps: int
    protocol_reserve: int
    protocol_bad_debt: int

    def to_dict(self) -> Dict[str, str]:
        return {
            "totalSupply": to_display(self.total_supply),
            "liquidationThreshold": str(self.liquidation_threshold),
            "liquidationBonus": str(self.liquidation_bonus),
            "stabilityFee": bps_to_percent(self.stability_fee_bps),
            "protocolReserve": to_display(self.protocol_reserve),
            "protocolBadDebt": to_display(self.protocol_bad_debt),
        }


DEFAULT_PROTOCOL_STATS = ProtocolStats(
    total_supply=0,
    liquidation_threshold=50,
    liquidation_bonus=10,
    stability_fee_bps=200,
    protocol_reserve=0,
    protocol_bad_debt=0,
)


@dataclass(frozen=True)
class TokenPrice:
    symbol: str
    price: int
    token: str
    display_decimals: int = 2
    updated_at: Optional[int] = None
    stale: bool = False
    feed_decimals: int = PRICE_FEED_DECIMALS

    @property
    def is_healthy(self) -> bool:
        return self.price > 0 and not self.stale

    def to_dict(self) -> Dict[str, Any]:
        return {
            "symbol": self.symbol,
            "price": format_price(self.price, self.display_decimals, self.feed_decimals),
            "address": self.token,
            "healthy": self.is_healthy,
        }


@dataclass(frozen=True)
class WalletBalances:
    """Native and ERC-20 balances of the acting address."""

    native_symbol: str
    native: int
    tokens: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, str]:
        rendered = {self.native_symbol.lower(): to_display(self.native)}
        for symbol, balance in self.tokens.items():
            rendered[symbol.lower()] = to_display(balance)
        return rendered


class TxState(str, Enum):
    """Lifecycle of an orchestrated write."""

    PENDING = "pending"
    APPROVING = "approving"
    APPROVED = "approved"
    SUBMITTING = "submitting"
    CONFIRMING = "confirming"
    CONFIRMED = "confirmed"
    FAILED = "failed"


@dataclass(frozen=True)
class Success:
    handle: str
    approval_handle: Optional[str] = None

    success = True

    def to_dict(self) -> Dict[str, Any]:
        result = {"success": True, "hash": self.handle}
        if self.approval_handle:
            result["approvalHash"] = self.approval_handle
        return result


@dataclass(frozen=True)
class Failure:
    diagnosis: str
    approval_handle: Optional[str] = None

    success = False

    @property
    def approval_granted(self) -> bool:
        """True when an approval finalized before the dependent action failed."""
        return self.approval_handle is not None

    def to_dict(self) -> Dict[str, Any]:
        result = {"success": False, "error": self.diagnosis}
        if self.approval_handle:
            result["approvalHash"] = self.approval_handle
        return result


TransactionOutcome = Union[Success, Failure]
