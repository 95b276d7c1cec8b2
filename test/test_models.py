"""
Tests for the models module.
"""

import math

import pytest

from app.cdp.fixed_point import INFINITY_SYMBOL, WAD
from app.cdp.models import (
    DEFAULT_PROTOCOL_STATS,
    CollateralBalance,
    Failure,
    HealthStatus,
    Position,
    Success,
    TokenPrice,
    WalletBalances,
)

WETH = "0xe7f1725E7734CE288F8367e1Bb143E90bb3F0512"
WBTC = "0xCf7Ed3AccA5a467e9e704C703E8D87F634fB0Fc9"


def _position(health_factor, total_debt=100 * WAD, collateral_value_usd=300 * WAD):
    return Position(total_debt=total_debt, collateral_value_usd=collateral_value_usd, health_factor=health_factor)


@pytest.mark.parametrize(
    "health_factor,status",
    [
        (WAD - 1, HealthStatus.LIQUIDATABLE),
        (WAD, HealthStatus.CRITICAL),
        (WAD * 3 // 2, HealthStatus.AT_RISK),
        (2 * WAD, HealthStatus.MODERATE),
        (3 * WAD, HealthStatus.SAFE),
        (math.inf, HealthStatus.SAFE),
    ],
)
def test_health_status_bands(health_factor, status):
    assert _position(health_factor).health_status == status


def test_collateral_ratio():
    assert _position(2 * WAD).collateral_ratio == 300 * WAD
    assert _position(math.inf, total_debt=0).collateral_ratio == math.inf


def test_collateral_share():
    position = Position(
        total_debt=0,
        collateral_value_usd=400 * WAD,
        health_factor=math.inf,
        collateral_balances=(
            CollateralBalance(token=WETH, symbol="WETH", balance=WAD, value_usd=300 * WAD),
            CollateralBalance(token=WBTC, symbol="WBTC", balance=WAD, value_usd=100 * WAD),
        ),
    )
    assert position.collateral_share("WETH") == 75 * WAD
    assert position.collateral_share("WBTC") == 25 * WAD
    assert [balance["share"] for balance in position.to_dict()["collateralBalances"]] == ["75.00", "25.00"]
    with pytest.raises(KeyError):
        position.collateral_share("DAI")


def test_collateral_share_without_collateral():
    assert _position(math.inf, total_debt=0, collateral_value_usd=0).collateral_share("WETH") == 0


def test_position_to_dict_without_debt():
    rendered = _position(math.inf, total_debt=0, collateral_value_usd=0).to_dict()
    assert rendered["healthFactor"] == INFINITY_SYMBOL
    assert rendered["collateralRatio"] == INFINITY_SYMBOL
    assert rendered["totalDebt"] == "0"
    assert rendered["healthStatus"] == "SAFE"


def test_token_price_uses_feed_decimals():
    price = TokenPrice(symbol="ETH", price=2500 * 10**6, token=WETH, feed_decimals=6)
    assert price.to_dict()["price"] == "2500.00"


def test_protocol_stats_defaults_render():
    assert DEFAULT_PROTOCOL_STATS.to_dict() == {
        "totalSupply": "0",
        "liquidationThreshold": "50",
        "liquidationBonus": "10",
        "stabilityFee": "2.00",
        "protocolReserve": "0",
        "protocolBadDebt": "0",
    }


def test_token_price_health():
    assert TokenPrice(symbol="ETH", price=2000 * 10**8, token=WETH).is_healthy
    assert not TokenPrice(symbol="ETH", price=0, token=WETH).is_healthy
    assert not TokenPrice(symbol="ETH", price=2000 * 10**8, token=WETH, stale=True).is_healthy
    assert TokenPrice(symbol="ETH", price=2000 * 10**8, token=WETH).to_dict()["price"] == "2000.00"


def test_wallet_balances_to_dict():
    balances = WalletBalances(native_symbol="ETH", native=WAD, tokens={"WETH": 2 * WAD, "SC": 0})
    assert balances.to_dict() == {"eth": "1", "weth": "2", "sc": "0"}


def test_outcome_to_dict():
    assert Success(handle="0xabc").to_dict() == {"success": True, "hash": "0xabc"}
    failure = Failure(diagnosis="nope", approval_handle="0xdef")
    assert failure.approval_granted
    assert failure.to_dict() == {"success": False, "error": "nope", "approvalHash": "0xdef"}
    assert not Failure(diagnosis="nope").approval_granted
