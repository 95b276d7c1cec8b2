"""
Apprise notifications for write outcomes.
"""

import time

from apprise import Apprise

from .config_loader import ChainConfig
from .logging_config import setup_logger
from .models import Failure, TransactionOutcome

logger = setup_logger()


def setup_apprise_notification_object(config: ChainConfig) -> Apprise:
    """Set up the Apprise notification engine."""
    apprise = Apprise()
    apprise.add(config.NOTIFICATION_URL)
    return apprise


def explorer_link(tx_hash: str, config: ChainConfig) -> str:
    if not config.EXPLORER_URL:
        return f"`{tx_hash}`"
    return f"<{config.EXPLORER_URL}/tx/{tx_hash}|{tx_hash}>"


def post_transaction_outcome_notification(operation: str, outcome: TransactionOutcome, config: ChainConfig) -> bool:
    """
    Post the result of an orchestrated write.

    Returns:
        False when no notification URL is configured or delivery failed.
    """
    if not config.NOTIFICATION_URL:
        return False

    if isinstance(outcome, Failure):
        title = f"{operation.capitalize()} Failed"
        message = f":x: *{title}*\n\n*Reason*: {outcome.diagnosis}\n"
        if outcome.approval_granted:
            message += f"*Approval left in place*: {explorer_link(outcome.approval_handle, config)}\n"
    else:
        title = f"{operation.capitalize()} Confirmed"
        message = f":white_check_mark: *{title}*\n\n*Transaction*: {explorer_link(outcome.handle, config)}\n"

    message += f"Time: {time.strftime('%Y-%m-%d %H:%M:%S')}\n"
    message += f"Network: `{config.CHAIN_NAME}`"
    logger.info("Transaction outcome notification:\n%s", message)

    apprise = setup_apprise_notification_object(config)
    return apprise.notify(body=message, title=title)


def post_error_notification(message: str, config: ChainConfig) -> bool:
    """Post an error notification."""
    if not config.NOTIFICATION_URL:
        return False

    error_message = f":rotating_light: *Error Notification* :rotating_light:\n\n{message}\n\n"
    error_message += f"Time: {time.strftime('%Y-%m-%d %H:%M:%S')}\n"
    error_message += f"Network: `{config.CHAIN_NAME}`"

    logger.info("Error notification:\n%s", error_message)

    apprise = setup_apprise_notification_object(config)
    return apprise.notify(body=error_message, title="Error Notification")
