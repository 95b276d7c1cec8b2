"""
Tests for the chain_reader module.
"""

from unittest.mock import MagicMock, patch

import pytest
from requests.exceptions import ConnectionError as RequestsConnectionError
from web3 import Web3
from web3.exceptions import ContractLogicError

from app.cdp.chain_reader import ChainReader
from app.cdp.exceptions import ReadFailure
from app.cdp.fixed_point import WAD
from app.cdp.models import RoundData


@pytest.fixture()
def chain_reader(config) -> ChainReader:
    chain_reader = ChainReader(config)
    chain_reader.engine = MagicMock()
    return chain_reader


def test_account_information(chain_reader, user):
    chain_reader.engine.functions.getAccountInformation.return_value.call.return_value = [10 * WAD, 30 * WAD]

    assert chain_reader.get_account_information(user.lower()) == (10 * WAD, 30 * WAD)
    chain_reader.engine.functions.getAccountInformation.assert_called_once_with(user)


def test_revert_becomes_read_failure(chain_reader, user):
    cause = ContractLogicError("execution reverted")
    chain_reader.engine.functions.getHealthFactor.return_value.call.side_effect = cause

    with pytest.raises(ReadFailure) as excinfo:
        chain_reader.get_health_factor(user)

    assert excinfo.value.operation == "getHealthFactor"
    assert excinfo.value.cause is cause


def test_network_error_becomes_read_failure(chain_reader):
    chain_reader.engine.functions.getLiquidationThreshold.return_value.call.side_effect = RequestsConnectionError()

    with pytest.raises(ReadFailure):
        chain_reader.get_liquidation_threshold()


@patch("app.cdp.chain_reader.erc20_contract")
def test_balance_of(erc20_contract, chain_reader, config, user):
    erc20_contract.return_value.functions.balanceOf.return_value.call.return_value = 5 * WAD

    assert chain_reader.balance_of(config.STABLE_COIN, user) == 5 * WAD
    erc20_contract.assert_called_once_with(config.STABLE_COIN, config)


@patch("app.cdp.chain_reader.price_feed_contract")
def test_latest_round_data(price_feed_contract, chain_reader, config):
    price_feed_contract.return_value.functions.latestRoundData.return_value.call.return_value = (
        7, 2000 * 10**8, 1_700_000_000, 1_700_000_100, 7
    )

    round_data = chain_reader.latest_round_data(config.PRICE_FEEDS[0].feed)

    assert round_data == RoundData(
        round_id=7, answer=2000 * 10**8, started_at=1_700_000_000, updated_at=1_700_000_100, answered_in_round=7
    )


@pytest.mark.parametrize(
    "method,args,function_name",
    [
        ("get_token_amount_from_usd", ("0xe7f1725e7734ce288f8367e1bb143e90bb3f0512", 100 * WAD), "getTokenAmountFromUsd"),
        ("get_account_collateral_value", ("0xf39fd6e51aad88f6f4ce6ab8827279cfffb92266",),
         "getAccountCollateralValueInUsd"),
        ("get_collateral_tokens", (), "getCollateralTokens"),
        ("get_min_health_factor", (), "getMinHealthFactor"),
    ],
)
def test_engine_reads_call_through(chain_reader, method, args, function_name):
    expected_args = tuple(Web3.to_checksum_address(arg) if isinstance(arg, str) else arg for arg in args)
    engine_function = getattr(chain_reader.engine.functions, function_name)
    engine_function.return_value.call.return_value = 42

    assert getattr(chain_reader, method)(*args) == 42
    engine_function.assert_called_once_with(*expected_args)


@pytest.mark.parametrize(
    "method,args,function_name",
    [
        ("get_token_amount_from_usd", ("0xe7f1725E7734CE288F8367e1Bb143E90bb3F0512", WAD), "getTokenAmountFromUsd"),
        ("get_account_collateral_value", ("0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266",),
         "getAccountCollateralValueInUsd"),
        ("get_collateral_tokens", (), "getCollateralTokens"),
        ("get_min_health_factor", (), "getMinHealthFactor"),
    ],
)
def test_engine_read_errors_become_read_failures(chain_reader, method, args, function_name):
    getattr(chain_reader.engine.functions, function_name).return_value.call.side_effect = ContractLogicError(
        "execution reverted"
    )

    with pytest.raises(ReadFailure) as excinfo:
        getattr(chain_reader, method)(*args)

    assert excinfo.value.operation == function_name
