"""
Tests for the error_decoder module.
"""

import pytest
from eth_abi import encode as abi_encode
from web3 import Web3
from web3.exceptions import ContractLogicError

from app.cdp.error_decoder import (
    ERROR_MESSAGES,
    GENERIC_KINDS,
    MAX_DIAGNOSIS_LENGTH,
    ErrorDecoder,
    ProtocolErrorKind,
    ProtocolRevert,
)
from app.cdp.exceptions import ParseError, ValidationError
from app.cdp.fixed_point import WAD


def _revert(signature, types=(), values=()):
    selector = Web3.keccak(text=signature)[:4]
    return ContractLogicError("execution reverted", data=Web3.to_hex(selector + abi_encode(list(types), list(values))))


@pytest.fixture()
def decoder(config) -> ErrorDecoder:
    return ErrorDecoder.from_config(config)


def test_breaks_health_factor(decoder):
    error = _revert("StableCoinEngine__BreaksHealthFactor(uint256)", ["uint256"], [87 * WAD // 100])

    diagnosis = decoder.decode(error)

    assert "0.8700" in diagnosis
    assert "reduce mint amount" in diagnosis


def test_burn_amount_exceeds_minted(decoder):
    error = _revert(
        "StableCoinEngine__BurnAmountExceedsMinted(uint256,uint256)", ["uint256", "uint256"], [500 * WAD, 300 * WAD]
    )

    diagnosis = decoder.decode(error)

    assert "500.0000" in diagnosis
    assert "300.0000" in diagnosis


def test_erc20_insufficient_allowance(decoder):
    spender = "0x0165878A594ca255338adfa4d48449f69242Eb8F"
    error = _revert(
        "ERC20InsufficientAllowance(address,uint256,uint256)",
        ["address", "uint256", "uint256"],
        [spender, 0, 5 * WAD],
    )

    assert decoder.decode(error).startswith("Insufficient token allowance (allowance 0.0000, needed 5.0000)")


def test_generic_error_uses_spaced_name(decoder):
    error = _revert("StableCoinEngine__LiquidationAuctionNotConfigured()")

    assert decoder.decode(error) == "Contract error: Liquidation Auction Not Configured"


def test_error_string_and_panic(decoder):
    reason = _revert("Error(string)", ["string"], ["Ownable: caller is not the owner"])
    panic = _revert("Panic(uint256)", ["uint256"], [0x11])

    assert decoder.decode(reason) == "Contract reverted: Ownable: caller is not the owner"
    assert decoder.decode(panic) == "Contract panicked with code 0x11"


def test_unknown_selector_falls_back_to_message(decoder):
    error = ContractLogicError("execution reverted: something odd\nmore detail", data="0xdeadbeef")

    assert decoder.decode(error) == "execution reverted: something odd"


def test_validation_errors_pass_through(decoder):
    assert decoder.decode(ValidationError("Amount must be greater than zero")) == "Amount must be greater than zero"
    assert decoder.decode(ParseError("Amount is not a valid number: 'x'")) == "Amount is not a valid number: 'x'"


def test_decoded_revert_objects(decoder):
    revert = ProtocolRevert(name="StableCoinEngine__HealthFactorOk")

    assert revert.kind == ProtocolErrorKind.HEALTH_FACTOR_OK
    assert decoder.decode(revert) == "Position is healthy - cannot be liquidated"


def test_long_messages_are_truncated(decoder):
    diagnosis = decoder.decode(RuntimeError("x" * 1000))

    assert len(diagnosis) <= MAX_DIAGNOSIS_LENGTH
    assert diagnosis.endswith("...")


class _Unprintable(Exception):
    def __str__(self):
        raise RuntimeError("cannot render")


@pytest.mark.parametrize("raw", [None, 42, "plain text", {"code": -32000}, _Unprintable(), b"\x00\x01"])
def test_decode_never_raises(decoder, raw):
    assert isinstance(decoder.decode(raw), str)
    assert decoder.decode(raw)


def test_malformed_payload_does_not_raise(decoder):
    selector = Web3.keccak(text="StableCoinEngine__BreaksHealthFactor(uint256)")[:4]
    error = ContractLogicError("execution reverted", data=Web3.to_hex(selector + b"\x01"))

    assert isinstance(decoder.decode(error), str)


def test_every_kind_has_a_rendering():
    assert set(ERROR_MESSAGES) | GENERIC_KINDS == set(ProtocolErrorKind)
    assert not set(ERROR_MESSAGES) & GENERIC_KINDS


def test_every_abi_error_is_a_known_kind(config):
    for abi in config.error_abis():
        for entry in abi:
            if entry.get("type") == "error":
                assert ProtocolErrorKind.from_name(entry["name"]) != ProtocolErrorKind.UNKNOWN, entry["name"]


def test_unknown_names_map_to_unknown():
    assert ProtocolErrorKind.from_name("SomethingElse") == ProtocolErrorKind.UNKNOWN
