"""
Translate contract reverts into operator-facing diagnoses.

Known revert conditions form a closed enum; each has either a dedicated
sentence or falls back to a spaced version of its name. Revert payloads are
decoded against the configured ABIs by 4-byte selector.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from eth_abi import decode as abi_decode
from web3 import Web3

from .exceptions import ParseError, ValidationError
from .fixed_point import to_display
from .logging_config import setup_logger

logger = setup_logger()

MAX_DIAGNOSIS_LENGTH = 300
DEFAULT_ERROR_PREFIX = "StableCoinEngine__"

# Solidity's builtin Error(string) and Panic(uint256)
ERROR_STRING_SELECTOR = bytes.fromhex("08c379a0")
PANIC_SELECTOR = bytes.fromhex("4e487b71")


class ProtocolErrorKind(Enum):
    """Every named revert condition of the engine and its ERC-20 tokens."""

    BREAKS_HEALTH_FACTOR = "StableCoinEngine__BreaksHealthFactor"
    BURN_AMOUNT_EXCEEDS_MINTED = "StableCoinEngine__BurnAmountExceedsMinted"
    INSUFFICIENT_COLLATERAL = "StableCoinEngine__InsufficientCollateral"
    HEALTH_FACTOR_OK = "StableCoinEngine__HealthFactorOk"
    HEALTH_FACTOR_NOT_IMPROVED = "StableCoinEngine__HealthFactorNotImproved"
    AMOUNT_MUST_BE_MORE_THAN_ZERO = "StableCoinEngine__AmountMustBeMoreThanZero"
    TRANSFER_FAILED = "StableCoinEngine__TransferFailed"
    MINT_FAILED = "StableCoinEngine__MintFailed"
    TOKEN_NOT_ALLOWED = "StableCoinEngine__TokenNotAllowed"
    ZERO_ADDRESS = "StableCoinEngine__ZeroAddress"
    ARRAY_LENGTH_MISMATCH = "StableCoinEngine__ArrayLengthMismatch"
    INVALID_PRICE = "StableCoinEngine__InvalidPrice"
    UNAUTHORIZED = "StableCoinEngine__Unauthorized"
    LIQUIDATION_AUCTION_NOT_CONFIGURED = "StableCoinEngine__LiquidationAuctionNotConfigured"
    LIQUIDATION_AUCTION_ALREADY_CONFIGURED = "StableCoinEngine__LiquidationAuctionAlreadyConfigured"
    ONLY_LIQUIDATION_AUCTION = "StableCoinEngine__OnlyLiquidationAuction"
    ACTIVE_LIQUIDATION_AUCTION_EXISTS = "StableCoinEngine__ActiveLiquidationAuctionExists"
    DEBT_RESERVED_FOR_AUCTION = "StableCoinEngine__DebtReservedForAuction"
    DEBT_NOT_AVAILABLE_FOR_LIQUIDATION = "StableCoinEngine__DebtNotAvailableForLiquidation"
    AUCTION_NOT_ACTIVE = "StableCoinEngine__AuctionNotActive"
    INVALID_AUCTION_SETTLEMENT = "StableCoinEngine__InvalidAuctionSettlement"
    AUCTION_BURN_EXCEEDS_DEBT = "StableCoinEngine__AuctionBurnExceedsDebt"
    ERC20_INSUFFICIENT_BALANCE = "ERC20InsufficientBalance"
    ERC20_INSUFFICIENT_ALLOWANCE = "ERC20InsufficientAllowance"
    ERC20_INVALID_APPROVER = "ERC20InvalidApprover"
    ERC20_INVALID_SPENDER = "ERC20InvalidSpender"
    ERC20_INVALID_SENDER = "ERC20InvalidSender"
    ERC20_INVALID_RECEIVER = "ERC20InvalidReceiver"
    UNKNOWN = ""

    @classmethod
    def from_name(cls, name: str) -> "ProtocolErrorKind":
        try:
            return cls(name)
        except ValueError:
            return cls.UNKNOWN


@dataclass(frozen=True)
class ProtocolRevert:
    """A decoded custom error: its name and positional arguments."""

    name: str
    args: Tuple[Any, ...] = ()

    @property
    def kind(self) -> ProtocolErrorKind:
        return ProtocolErrorKind.from_name(self.name)


def _amount(value: Any) -> str:
    return to_display(int(value), 4)


def _breaks_health_factor(args: Sequence[Any]) -> str:
    detail = f" (would be {_amount(args[0])})" if args else ""
    return f"Health factor too low{detail} - reduce mint amount or add more collateral"


def _burn_exceeds_minted(args: Sequence[Any]) -> str:
    detail = f" (burning {_amount(args[0])}, minted {_amount(args[1])})" if len(args) >= 2 else ""
    return f"Burn amount exceeds your debt{detail}"


def _token_not_allowed(args: Sequence[Any]) -> str:
    return f"Token not accepted as collateral: {args[0] if args else ''}".rstrip()


def _debt_reserved_for_auction(args: Sequence[Any]) -> str:
    detail = f" (reserved {_amount(args[0])}, burning {_amount(args[1])})" if len(args) >= 2 else ""
    return f"Debt is reserved for an active liquidation auction{detail}"


def _debt_not_available(args: Sequence[Any]) -> str:
    detail = f" (available {_amount(args[0])}, requested {_amount(args[1])})" if len(args) >= 2 else ""
    return f"Debt is not available for liquidation{detail} - reduce the debt to cover"


def _auction_burn_exceeds_debt(args: Sequence[Any]) -> str:
    detail = f" (burning {_amount(args[0])}, minted {_amount(args[1])})" if len(args) >= 2 else ""
    return f"Auction settlement burns more than the position's debt{detail}"


def _active_auction_exists(args: Sequence[Any]) -> str:
    detail = f" for {args[0]} on {args[1]}" if len(args) >= 2 else ""
    return f"A liquidation auction is already active{detail}"


def _erc20_insufficient_balance(args: Sequence[Any]) -> str:
    detail = f" (balance {_amount(args[1])}, needed {_amount(args[2])})" if len(args) >= 3 else ""
    return f"Insufficient token balance{detail}"


def _erc20_insufficient_allowance(args: Sequence[Any]) -> str:
    detail = f" (allowance {_amount(args[1])}, needed {_amount(args[2])})" if len(args) >= 3 else ""
    return f"Insufficient token allowance{detail} - approve the engine first"


Formatter = Callable[[Sequence[Any]], str]

ERROR_MESSAGES: Dict[ProtocolErrorKind, Formatter] = {
    ProtocolErrorKind.BREAKS_HEALTH_FACTOR: _breaks_health_factor,
    ProtocolErrorKind.BURN_AMOUNT_EXCEEDS_MINTED: _burn_exceeds_minted,
    ProtocolErrorKind.INSUFFICIENT_COLLATERAL: lambda args: "Insufficient collateral deposited",
    ProtocolErrorKind.HEALTH_FACTOR_OK: lambda args: "Position is healthy - cannot be liquidated",
    ProtocolErrorKind.HEALTH_FACTOR_NOT_IMPROVED: lambda args: "Liquidation did not improve the health factor",
    ProtocolErrorKind.AMOUNT_MUST_BE_MORE_THAN_ZERO: lambda args: "Amount must be greater than zero",
    ProtocolErrorKind.TRANSFER_FAILED: lambda args: "Token transfer failed - check your balance and allowance",
    ProtocolErrorKind.MINT_FAILED: lambda args: "Stablecoin mint failed",
    ProtocolErrorKind.TOKEN_NOT_ALLOWED: _token_not_allowed,
    ProtocolErrorKind.INVALID_PRICE: lambda args: "Price feed returned an invalid price",
    ProtocolErrorKind.DEBT_RESERVED_FOR_AUCTION: _debt_reserved_for_auction,
    ProtocolErrorKind.DEBT_NOT_AVAILABLE_FOR_LIQUIDATION: _debt_not_available,
    ProtocolErrorKind.AUCTION_NOT_ACTIVE: lambda args: f"Auction {args[0] if args else ''} is not active",
    ProtocolErrorKind.AUCTION_BURN_EXCEEDS_DEBT: _auction_burn_exceeds_debt,
    ProtocolErrorKind.ACTIVE_LIQUIDATION_AUCTION_EXISTS: _active_auction_exists,
    ProtocolErrorKind.ERC20_INSUFFICIENT_BALANCE: _erc20_insufficient_balance,
    ProtocolErrorKind.ERC20_INSUFFICIENT_ALLOWANCE: _erc20_insufficient_allowance,
}

# Kinds deliberately rendered from their name alone
GENERIC_KINDS = frozenset(
    {
        ProtocolErrorKind.ZERO_ADDRESS,
        ProtocolErrorKind.ARRAY_LENGTH_MISMATCH,
        ProtocolErrorKind.UNAUTHORIZED,
        ProtocolErrorKind.LIQUIDATION_AUCTION_NOT_CONFIGURED,
        ProtocolErrorKind.LIQUIDATION_AUCTION_ALREADY_CONFIGURED,
        ProtocolErrorKind.ONLY_LIQUIDATION_AUCTION,
        ProtocolErrorKind.INVALID_AUCTION_SETTLEMENT,
        ProtocolErrorKind.ERC20_INVALID_APPROVER,
        ProtocolErrorKind.ERC20_INVALID_SPENDER,
        ProtocolErrorKind.ERC20_INVALID_SENDER,
        ProtocolErrorKind.ERC20_INVALID_RECEIVER,
        ProtocolErrorKind.UNKNOWN,
    }
)


def _error_signature(entry: Dict[str, Any]) -> Tuple[str, List[str]]:
    types = [param["type"] for param in entry.get("inputs", [])]
    return f"{entry['name']}({','.join(types)})", types


def build_selector_table(abis: Iterable[List[Dict[str, Any]]]) -> Dict[bytes, Tuple[str, List[str]]]:
    """Map 4-byte selectors to ``(error_name, argument_types)`` for every ABI error entry."""
    table = {}
    for abi in abis:
        for entry in abi:
            if entry.get("type") != "error":
                continue
            signature, types = _error_signature(entry)
            table[bytes(Web3.keccak(text=signature)[:4])] = (entry["name"], types)
    return table


def _truncate(message: str) -> str:
    message = message.strip()
    if len(message) <= MAX_DIAGNOSIS_LENGTH:
        return message
    return message[: MAX_DIAGNOSIS_LENGTH - 3].rstrip() + "..."


def _fallback_text(raw_error: Any) -> str:
    try:
        text = str(raw_error)
    except Exception:
        text = ""
    return text or type(raw_error).__name__


def _revert_data(error: BaseException) -> Optional[bytes]:
    """Pull raw revert bytes off a web3 exception, if it carries any."""
    candidates = [getattr(error, "data", None)]
    if error.args:
        candidates.append(error.args[0])
    for candidate in candidates:
        if isinstance(candidate, (bytes, bytearray)) and len(candidate) >= 4:
            return bytes(candidate)
        if isinstance(candidate, str) and candidate.startswith("0x") and len(candidate) >= 10:
            try:
                return bytes.fromhex(candidate[2:])
            except ValueError:
                continue
    return None


class ErrorDecoder:
    """
    Decode raw write-path errors into short human sentences.

    ``decode`` never raises and always returns a string.
    """

    def __init__(self, abis: Iterable[List[Dict[str, Any]]] = (), prefix: str = DEFAULT_ERROR_PREFIX):
        self.prefix = prefix
        self.selectors = build_selector_table(abis)

    @classmethod
    def from_config(cls, config) -> "ErrorDecoder":
        return cls(abis=config.error_abis(), prefix=config.ERROR_NAME_PREFIX)

    def parse_revert(self, error: BaseException) -> Optional[ProtocolRevert]:
        """Decode a custom error, Error(string) or Panic(uint256) payload; None when there is none."""
        data = _revert_data(error)
        if data is None:
            return None

        selector, payload = data[:4], data[4:]
        if selector == ERROR_STRING_SELECTOR:
            (reason,) = abi_decode(["string"], payload)
            return ProtocolRevert(name="Error", args=(reason,))
        if selector == PANIC_SELECTOR:
            (code,) = abi_decode(["uint256"], payload)
            return ProtocolRevert(name="Panic", args=(code,))
        if selector not in self.selectors:
            return None

        name, types = self.selectors[selector]
        return ProtocolRevert(name=name, args=tuple(abi_decode(types, payload)))

    def spaced_name(self, name: str) -> str:
        if name.startswith(self.prefix):
            name = name[len(self.prefix):]
        return re.sub(r"(?<=[a-z0-9])(?=[A-Z])", " ", name).strip()

    def describe(self, revert: ProtocolRevert) -> str:
        if revert.name == "Error":
            return f"Contract reverted: {revert.args[0]}" if revert.args else "Contract reverted"
        if revert.name == "Panic":
            return f"Contract panicked with code {hex(revert.args[0])}" if revert.args else "Contract panicked"

        formatter = ERROR_MESSAGES.get(revert.kind)
        if formatter is not None:
            return formatter(revert.args)
        return f"Contract error: {self.spaced_name(revert.name)}"

    def decode(self, raw_error: Any) -> str:
        try:
            return _truncate(self._decode(raw_error))
        except Exception as ex:
            logger.error("ErrorDecoder: failed to decode %s: %s", type(raw_error).__name__, ex, exc_info=True)
            return _truncate(_fallback_text(raw_error))

    def _decode(self, raw_error: Any) -> str:
        if isinstance(raw_error, ProtocolRevert):
            return self.describe(raw_error)
        if isinstance(raw_error, (ParseError, ValidationError)):
            return str(raw_error)
        if not isinstance(raw_error, BaseException):
            return str(raw_error)

        revert = self.parse_revert(raw_error)
        if revert is not None:
            return self.describe(revert)

        short_message = getattr(raw_error, "message", None) or str(raw_error)
        if isinstance(short_message, str) and short_message.strip():
            return short_message.strip().splitlines()[0]
        return str(raw_error) or type(raw_error).__name__
