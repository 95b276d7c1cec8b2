"""
Tests for the notifications module.
"""

from unittest.mock import patch

import pytest

from app.cdp.config_loader import load_chain_config
from app.cdp.models import Failure, Success
from app.cdp.notifications import explorer_link, post_error_notification, post_transaction_outcome_notification

TX_HASH = "0x" + "ab" * 32


@pytest.fixture()
def notifying_config(monkeypatch):
    monkeypatch.setenv("RPC_URL", "http://127.0.0.1:8545")
    monkeypatch.setenv("NOTIFICATION_URL", "json://localhost/notify")
    return load_chain_config(31337)


def test_no_notification_url(config):
    assert not post_error_notification("Test error message", config)
    assert not post_transaction_outcome_notification("mint", Success(handle=TX_HASH), config)


@patch("app.cdp.notifications.Apprise")
def test_post_success_notification(apprise, notifying_config):
    apprise.return_value.notify.return_value = True

    assert post_transaction_outcome_notification("mint", Success(handle=TX_HASH), notifying_config)

    apprise.return_value.add.assert_called_once_with("json://localhost/notify")
    kwargs = apprise.return_value.notify.call_args.kwargs
    assert kwargs["title"] == "Mint Confirmed"
    assert TX_HASH in kwargs["body"]


@patch("app.cdp.notifications.Apprise")
def test_post_failure_notification_mentions_approval(apprise, notifying_config):
    apprise.return_value.notify.return_value = True
    outcome = Failure(diagnosis="Burn amount exceeds your debt", approval_handle=TX_HASH)

    assert post_transaction_outcome_notification("burn", outcome, notifying_config)

    body = apprise.return_value.notify.call_args.kwargs["body"]
    assert "Burn amount exceeds your debt" in body
    assert "Approval left in place" in body


@patch("app.cdp.notifications.Apprise")
def test_post_error_notification(apprise, notifying_config):
    apprise.return_value.notify.return_value = True

    assert post_error_notification("Test error message", notifying_config)
    assert "Test error message" in apprise.return_value.notify.call_args.kwargs["body"]


def test_explorer_link_without_explorer(config):
    assert explorer_link(TX_HASH, config) == f"`{TX_HASH}`"
