"""
Config loader: builds the immutable protocol configuration for one chain.
"""

import json
import os
from typing import Any, Dict, List, Optional, Tuple

import yaml
from web3 import Web3

from .exceptions import ConfigError
from .fixed_point import from_display
from .models import CollateralToken, PriceFeed, WalletToken

APP_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
DEFAULT_CONFIG_PATH = os.path.join(APP_DIR, "config.yaml")


class Web3Singleton:
    """
    Singleton class to manage w3 object creation per RPC URL
    """

    _instances: Dict[str, Web3] = {}

    @staticmethod
    def get_instance(rpc_url: str) -> Web3:
        """
        Return the Web3 instance for ``rpc_url``, creating it on first use.
        """
        if rpc_url not in Web3Singleton._instances:
            Web3Singleton._instances[rpc_url] = Web3(Web3.HTTPProvider(rpc_url))

        return Web3Singleton._instances[rpc_url]


def setup_w3(rpc_url: str) -> Web3:
    """
    Get the Web3 instance from the singleton class

    Args:
        rpc_url (str): JSON-RPC endpoint URL

    Returns:
        Web3: Web3 instance.
    """
    return Web3Singleton.get_instance(rpc_url)


def load_abi(path: str) -> List[Dict[str, Any]]:
    """Load the ``abi`` list from a compiler-artifact style JSON file."""
    if not os.path.isabs(path):
        path = os.path.join(APP_DIR, path)
    with open(path, "r", encoding="utf-8") as file:
        interface = json.load(file)
    return interface["abi"]


class ChainConfig:
    """
    Protocol configuration for a single chain.

    Values are resolved once at construction and the object is read-only
    afterwards. Unknown attribute lookups fall through to the chain section,
    then the global section of the YAML file.
    """

    def __init__(self, chain_id: int, global_config: Dict[str, Any], chain_config: Dict[str, Any]):
        self.CHAIN_ID = chain_id
        self.CHAIN_NAME = chain_config["name"]
        self._global = global_config
        self._chain = chain_config

        rpc_name = chain_config.get("RPC_NAME", "RPC_URL")
        self.RPC_URL = os.environ.get(rpc_name, "")
        if not self.RPC_URL:
            raise ConfigError(f"Missing RPC URL for {self.CHAIN_NAME}. Env var {rpc_name} not set")

        self.w3 = setup_w3(self.RPC_URL)

        self.CONTRACTS = self._resolve_contracts(chain_config.get("contracts", {}))
        self.STABLE_COIN = self.CONTRACTS["STABLE_COIN"]
        self.STABLE_COIN_ENGINE = self.CONTRACTS["STABLE_COIN_ENGINE"]

        self.COLLATERAL_TOKENS = tuple(
            CollateralToken(
                symbol=entry["symbol"],
                name=entry.get("name", entry["symbol"]),
                address=self.CONTRACTS[entry["contract"]],
                price_feed=self.CONTRACTS[entry["price_feed"]],
                decimals=int(entry.get("decimals", 18)),
            )
            for entry in chain_config.get("collateral_tokens", [])
        )
        if not self.COLLATERAL_TOKENS:
            raise ConfigError(f"No collateral tokens configured for {self.CHAIN_NAME}")

        feed_decimals = int(global_config.get("PRICE_FEED_DECIMALS", 8))
        self.PRICE_FEEDS = tuple(
            PriceFeed(
                symbol=entry["symbol"],
                feed=self.CONTRACTS[entry["feed"]],
                token=self.CONTRACTS[entry["token"]],
                display_decimals=int(entry.get("display_decimals", 2)),
                default_price=from_display(str(entry.get("default_price", "0")), feed_decimals),
            )
            for entry in chain_config.get("price_feeds", [])
        )

        self.WALLET_TOKENS = tuple(
            WalletToken(symbol=entry["symbol"], address=self.CONTRACTS[entry["contract"]])
            for entry in chain_config.get("wallet_tokens", [])
        )

        self.ENGINE_ABI = load_abi(global_config["ENGINE_ABI_PATH"])
        self.ERC20_ABI = load_abi(global_config["ERC20_ABI_PATH"])
        self.PRICE_FEED_ABI = load_abi(global_config["PRICE_FEED_ABI_PATH"])

        self.SIGNER_PRIVATE_KEY = os.environ.get("SIGNER_PRIVATE_KEY", "")
        self.SIGNER_ADDRESS = self._resolve_signer_address()
        self.DEFAULT_ACCOUNT = self._resolve_default_account()
        self.NOTIFICATION_URL = os.environ.get("NOTIFICATION_URL", "")

        self._frozen = True

    def __setattr__(self, name: str, value: Any) -> None:
        if self.__dict__.get("_frozen"):
            raise ConfigError(f"ChainConfig is read-only; cannot set '{name}'")
        super().__setattr__(name, value)

    def __getattr__(self, name: str) -> Any:
        """Look up config values in chain-specific, then global config."""
        if name.startswith("_"):
            raise AttributeError(name)
        if name in self._chain:
            return self._chain[name]
        if name in self._global:
            return self._global[name]
        raise AttributeError(f"Config has no attribute '{name}'")

    def _resolve_contracts(self, contracts: Dict[str, str]) -> Dict[str, str]:
        """Checksum every contract address, letting CONTRACT_<NAME> env vars override the file."""
        resolved = {}
        for name, address in contracts.items():
            address = os.environ.get(f"CONTRACT_{name}", address)
            if not Web3.is_address(address):
                raise ConfigError(f"Invalid address for contract {name}: {address}")
            resolved[name] = Web3.to_checksum_address(address)

        missing = [name for name in ("STABLE_COIN", "STABLE_COIN_ENGINE") if name not in resolved]
        if missing:
            raise ConfigError(f"Missing required contracts: {', '.join(missing)}")
        return resolved

    def _resolve_signer_address(self) -> Optional[str]:
        if not self.SIGNER_PRIVATE_KEY:
            return None
        try:
            account = self.w3.eth.account.from_key(self.SIGNER_PRIVATE_KEY)
        except ValueError as ex:
            raise ConfigError("SIGNER_PRIVATE_KEY is not a valid private key") from ex
        return account.address

    def _resolve_default_account(self) -> Optional[str]:
        address = os.environ.get("DEFAULT_ACCOUNT") or self.SIGNER_ADDRESS or self._chain.get("DEFAULT_ACCOUNT")
        if not address:
            return None
        if not Web3.is_address(address):
            raise ConfigError(f"Invalid default account: {address}")
        return Web3.to_checksum_address(address)

    @property
    def can_sign(self) -> bool:
        return bool(self.SIGNER_PRIVATE_KEY)

    def collateral_token(self, token: str) -> CollateralToken:
        """
        Find a configured collateral token by symbol or address.

        Raises:
            ConfigError: If the token is not part of the collateral set.
        """
        for candidate in self.COLLATERAL_TOKENS:
            if token.upper() == candidate.symbol.upper() or token.lower() == candidate.address.lower():
                return candidate
        raise ConfigError(f"Token not accepted as collateral: {token}")

    def error_abis(self) -> Tuple[List[Dict[str, Any]], ...]:
        """ABIs whose custom errors the client knows how to decode."""
        return (self.ENGINE_ABI, self.ERC20_ABI)


def load_chain_config(chain_id: int, config_path: Optional[str] = None) -> ChainConfig:
    config_path = config_path or DEFAULT_CONFIG_PATH

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            config = yaml.safe_load(f)
    except FileNotFoundError as exc:
        raise FileNotFoundError(f"Config file not found at {config_path}") from exc
    except yaml.YAMLError as e:
        raise ConfigError(f"Error parsing YAML file: {e}") from e

    if chain_id not in config.get("chains", {}):
        raise ConfigError(f"No configuration found for chain ID {chain_id}")

    return ChainConfig(chain_id=chain_id, global_config=config["global"], chain_config=config["chains"][chain_id])
