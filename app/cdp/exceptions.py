"""
Custom exceptions for the CDP client.
"""


class CdpClientError(Exception):
    """Base exception for all CDP client errors."""


class ConfigError(CdpClientError):
    """Raised for configuration-related errors."""


class ReadFailure(CdpClientError):
    """Raised when an on-chain read fails (RPC error, network error or revert)."""

    def __init__(self, operation: str, cause: BaseException):
        super().__init__(f"{operation} failed: {cause}")
        self.operation = operation
        self.cause = cause


class ParseError(CdpClientError, ValueError):
    """Raised when a user-supplied amount cannot be parsed."""


class ValidationError(CdpClientError, ValueError):
    """Raised when user input is well-formed but not acceptable."""


class TransactionRevertedError(CdpClientError):
    """Raised when a mined transaction reports a failed status."""

    def __init__(self, tx_hash: str, reason: str = ""):
        message = f"Transaction {tx_hash} reverted"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.tx_hash = tx_hash
