"""
Typed read-only accessors for engine, ERC-20 and price feed state.

Each method returns the raw on-chain value without unit conversion or
rounding. Any RPC failure or revert is raised as ReadFailure.
"""

from typing import Callable, List, Tuple, TypeVar

from requests import RequestException
from web3 import Web3
from web3.exceptions import Web3Exception

from .config_loader import ChainConfig
from .contracts import engine_contract, erc20_contract, price_feed_contract
from .exceptions import ReadFailure
from .logging_config import setup_logger
from .models import RoundData

logger = setup_logger()

T = TypeVar("T")

READ_ERRORS = (Web3Exception, RequestException, OSError, ValueError)


def _checksum(address: str) -> str:
    return Web3.to_checksum_address(address)


class ChainReader:
    """Side-effect free reads against the configured protocol contracts."""

    def __init__(self, config: ChainConfig):
        self.config = config
        self.w3 = config.w3
        self.engine = engine_contract(config)

    def _call(self, operation: str, fn: Callable[[], T]) -> T:
        try:
            return fn()
        except READ_ERRORS as ex:
            logger.debug("ChainReader: %s failed: %s", operation, ex)
            raise ReadFailure(operation, ex) from ex

    # Engine

    def get_account_information(self, user: str) -> Tuple[int, int]:
        """Return ``(total_stablecoin_minted, collateral_value_in_usd)``."""
        total_minted, collateral_value = self._call(
            "getAccountInformation",
            lambda: self.engine.functions.getAccountInformation(_checksum(user)).call(),
        )
        return total_minted, collateral_value

    def get_health_factor(self, user: str) -> int:
        return self._call("getHealthFactor", lambda: self.engine.functions.getHealthFactor(_checksum(user)).call())

    def get_collateral_balance(self, user: str, token: str) -> int:
        return self._call(
            "getCollateralBalanceOfUser",
            lambda: self.engine.functions.getCollateralBalanceOfUser(_checksum(user), _checksum(token)).call(),
        )

    def get_usd_value(self, token: str, amount: int) -> int:
        return self._call("getUsdValue", lambda: self.engine.functions.getUsdValue(_checksum(token), amount).call())

    def get_token_amount_from_usd(self, token: str, usd_amount: int) -> int:
        return self._call(
            "getTokenAmountFromUsd",
            lambda: self.engine.functions.getTokenAmountFromUsd(_checksum(token), usd_amount).call(),
        )

    def get_stablecoin_minted(self, user: str) -> int:
        return self._call(
            "getStableCoinMinted", lambda: self.engine.functions.getStableCoinMinted(_checksum(user)).call()
        )

    def get_account_collateral_value(self, user: str) -> int:
        return self._call(
            "getAccountCollateralValueInUsd",
            lambda: self.engine.functions.getAccountCollateralValueInUsd(_checksum(user)).call(),
        )

    def get_collateral_tokens(self) -> List[str]:
        return self._call("getCollateralTokens", lambda: self.engine.functions.getCollateralTokens().call())

    def get_liquidation_threshold(self) -> int:
        return self._call("getLiquidationThreshold", lambda: self.engine.functions.getLiquidationThreshold().call())

    def get_liquidation_bonus(self) -> int:
        return self._call("getLiquidationBonus", lambda: self.engine.functions.getLiquidationBonus().call())

    def get_min_health_factor(self) -> int:
        return self._call("getMinHealthFactor", lambda: self.engine.functions.getMinHealthFactor().call())

    def get_stability_fee_bps(self) -> int:
        return self._call(
            "getCurrentStabilityFeeBps", lambda: self.engine.functions.getCurrentStabilityFeeBps().call()
        )

    def get_protocol_reserve(self) -> int:
        return self._call("getProtocolReserve", lambda: self.engine.functions.getProtocolReserve().call())

    def get_protocol_bad_debt(self) -> int:
        return self._call("getProtocolBadDebt", lambda: self.engine.functions.getProtocolBadDebt().call())

    # ERC-20 and native

    def balance_of(self, token: str, owner: str) -> int:
        contract = erc20_contract(token, self.config)
        return self._call("balanceOf", lambda: contract.functions.balanceOf(_checksum(owner)).call())

    def allowance(self, token: str, owner: str, spender: str) -> int:
        contract = erc20_contract(token, self.config)
        return self._call(
            "allowance", lambda: contract.functions.allowance(_checksum(owner), _checksum(spender)).call()
        )

    def total_supply(self, token: str) -> int:
        contract = erc20_contract(token, self.config)
        return self._call("totalSupply", lambda: contract.functions.totalSupply().call())

    def native_balance(self, owner: str) -> int:
        return self._call("getBalance", lambda: self.w3.eth.get_balance(_checksum(owner)))

    # Price feeds

    def latest_round_data(self, feed: str) -> RoundData:
        contract = price_feed_contract(feed, self.config)
        round_id, answer, started_at, updated_at, answered_in_round = self._call(
            "latestRoundData", lambda: contract.functions.latestRoundData().call()
        )
        return RoundData(
            round_id=round_id,
            answer=answer,
            started_at=started_at,
            updated_at=updated_at,
            answered_in_round=answered_in_round,
        )
