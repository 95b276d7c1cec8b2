from unittest.mock import MagicMock

import pytest
from dotenv import load_dotenv

from app.cdp.config_loader import ChainConfig, load_chain_config

TEST_CHAIN_ID = 31337
TEST_RPC_URL = "http://127.0.0.1:8545"
# First default anvil account
TEST_PRIVATE_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
TEST_SIGNER_ADDRESS = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"
TEST_USER = "0x70997970C51812dc3A010C7d01b50e0d17dc79C8"


@pytest.fixture()
def config(monkeypatch) -> ChainConfig:
    load_dotenv(dotenv_path=".env.example")
    monkeypatch.setenv("RPC_URL", TEST_RPC_URL)
    monkeypatch.setenv("SIGNER_PRIVATE_KEY", TEST_PRIVATE_KEY)
    monkeypatch.delenv("DEFAULT_ACCOUNT", raising=False)
    monkeypatch.delenv("NOTIFICATION_URL", raising=False)
    return load_chain_config(TEST_CHAIN_ID)


@pytest.fixture()
def read_only_config(monkeypatch) -> ChainConfig:
    monkeypatch.setenv("RPC_URL", TEST_RPC_URL)
    monkeypatch.setenv("SIGNER_PRIVATE_KEY", "")
    monkeypatch.delenv("DEFAULT_ACCOUNT", raising=False)
    monkeypatch.delenv("NOTIFICATION_URL", raising=False)
    return load_chain_config(TEST_CHAIN_ID)


@pytest.fixture()
def reader() -> MagicMock:
    return MagicMock()


@pytest.fixture()
def user() -> str:
    return TEST_USER
