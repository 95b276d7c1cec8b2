"""
Contract instance creation utilities.
"""

from typing import Any, Dict, List

from web3 import Web3
from web3.contract import Contract

from .config_loader import ChainConfig


def create_contract_instance(address: str, abi: List[Dict[str, Any]], config: ChainConfig) -> Contract:
    """
    Create and return a Web3 contract instance bound to the chain's provider.

    Args:
        address: The address of the contract.
        abi: ABI entries, as loaded by the config.
        config: Chain configuration containing the Web3 instance.

    Returns:
        Web3 contract instance.
    """
    return config.w3.eth.contract(address=Web3.to_checksum_address(address), abi=abi)


def engine_contract(config: ChainConfig) -> Contract:
    return create_contract_instance(config.STABLE_COIN_ENGINE, config.ENGINE_ABI, config)


def erc20_contract(address: str, config: ChainConfig) -> Contract:
    return create_contract_instance(address, config.ERC20_ABI, config)


def price_feed_contract(address: str, config: ChainConfig) -> Contract:
    return create_contract_instance(address, config.PRICE_FEED_ABI, config)
