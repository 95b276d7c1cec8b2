"""
TransactionOrchestrator - sequences protocol writes and reports one outcome.

Each write walks PENDING -> (APPROVING -> APPROVED) -> SUBMITTING ->
CONFIRMING -> CONFIRMED, or stops at FAILED. An approval is always awaited to
finality before its dependent action is submitted. Nothing is retried and no
error escapes: every call returns a Success or a Failure.
"""

from typing import Callable, Optional

from web3 import Web3
from web3.contract.contract import ContractFunction

from .chain_reader import ChainReader
from .config_loader import ChainConfig
from .contracts import engine_contract, erc20_contract
from .error_decoder import ErrorDecoder
from .exceptions import ConfigError, ParseError, ValidationError
from .fixed_point import from_display, to_display
from .logging_config import setup_logger
from .models import CollateralToken, Failure, Success, TransactionOutcome, TxState
from .notifications import post_transaction_outcome_notification
from .transaction_sender import TransactionSender

logger = setup_logger()

ActionBuilder = Callable[[int], ContractFunction]


class TransactionOrchestrator:
    """Deposit, withdraw, mint, burn and liquidate for the configured signer."""

    def __init__(
        self,
        config: ChainConfig,
        reader: Optional[ChainReader] = None,
        sender: Optional[TransactionSender] = None,
        decoder: Optional[ErrorDecoder] = None,
        notify: bool = False,
    ):
        self.config = config
        self.reader = reader or ChainReader(config)
        self.sender = sender or TransactionSender(config)
        self.decoder = decoder or ErrorDecoder.from_config(config)
        self.engine = engine_contract(config)
        self.notify = notify

    # Public operations

    def deposit(self, token: str, amount: str) -> TransactionOutcome:
        """Approve the engine to pull ``amount`` of ``token``, then deposit it as collateral."""
        try:
            collateral = self._collateral(token)
        except ValidationError as ex:
            return self._finish("deposit", self._failure("deposit", ex))

        return self._execute(
            "deposit",
            amount,
            lambda wei: self.engine.functions.depositCollateral(collateral.address, wei),
            approve_token=collateral.address,
            approve_symbol=collateral.symbol,
        )

    def withdraw(self, token: str, amount: str) -> TransactionOutcome:
        try:
            collateral = self._collateral(token)
        except ValidationError as ex:
            return self._finish("withdraw", self._failure("withdraw", ex))

        return self._execute(
            "withdraw",
            amount,
            lambda wei: self.engine.functions.redeemCollateral(collateral.address, wei),
        )

    def mint(self, amount: str) -> TransactionOutcome:
        return self._execute("mint", amount, lambda wei: self.engine.functions.mintStableCoin(wei))

    def burn(self, amount: str) -> TransactionOutcome:
        """Approve the engine to pull ``amount`` of stablecoin, then burn it against the signer's debt."""
        return self._execute(
            "burn",
            amount,
            lambda wei: self.engine.functions.burnStableCoin(wei),
            approve_token=self.config.STABLE_COIN,
            approve_symbol=self._stablecoin_symbol(),
        )

    def liquidate(self, token: str, user: str, debt_to_cover: str) -> TransactionOutcome:
        try:
            collateral = self._collateral(token)
            if not Web3.is_address(user):
                raise ValidationError(f"Invalid user address: {user}")
        except ValidationError as ex:
            return self._finish("liquidate", self._failure("liquidate", ex))

        user = Web3.to_checksum_address(user)
        return self._execute(
            "liquidate",
            debt_to_cover,
            lambda wei: self.engine.functions.liquidate(collateral.address, user, wei),
        )

    # Sequencing

    def _execute(
        self,
        operation: str,
        amount: str,
        build_action: ActionBuilder,
        approve_token: Optional[str] = None,
        approve_symbol: str = "",
    ) -> TransactionOutcome:
        self._log_state(operation, TxState.PENDING, "amount=%s", amount)
        try:
            amount_wei = self._parse_amount(amount)
        except (ParseError, ValidationError) as ex:
            return self._finish(operation, self._failure(operation, ex))

        approval_handle = None
        if approve_token:
            try:
                approval_handle = self._approve(operation, approve_token, approve_symbol, amount_wei)
            except Exception as ex:
                return self._finish(operation, self._failure(operation, ex))

        try:
            handle = self._submit_and_confirm(operation, build_action(amount_wei))
        except Exception as ex:
            return self._finish(operation, self._failure(operation, ex, approval_handle))

        self._log_state(operation, TxState.CONFIRMED, "hash=%s", handle)
        return self._finish(operation, Success(handle=handle, approval_handle=approval_handle))

    def _approve(self, operation: str, token: str, symbol: str, amount_wei: int) -> Optional[str]:
        """
        Grant the engine an allowance of ``amount_wei`` and wait for it to finalize.

        Returns the approval hash, or None when an existing allowance is reused.
        """
        self._log_state(operation, TxState.APPROVING, "token=%s", symbol or token)
        owner = self.sender.address

        balance = self.reader.balance_of(token, owner)
        if balance < amount_wei:
            raise ValidationError(
                f"Insufficient {symbol or 'token'} balance (have {to_display(balance, 4)}, "
                f"need {to_display(amount_wei, 4)})"
            )

        if self.config.SKIP_SUFFICIENT_ALLOWANCE:
            allowance = self.reader.allowance(token, owner, self.config.STABLE_COIN_ENGINE)
            if allowance >= amount_wei:
                self._log_state(operation, TxState.APPROVED, "existing allowance %s reused", allowance)
                return None

        approve_call = erc20_contract(token, self.config).functions.approve(
            self.config.STABLE_COIN_ENGINE, amount_wei
        )
        approval_handle = self._submit_and_confirm(f"{operation} approval", approve_call)
        self._log_state(operation, TxState.APPROVED, "hash=%s", approval_handle)
        return approval_handle

    def _submit_and_confirm(self, label: str, contract_function: ContractFunction) -> str:
        self._log_state(label, TxState.SUBMITTING, "function=%s", contract_function.fn_name)
        tx_hash = self.sender.submit(contract_function)
        self._log_state(label, TxState.CONFIRMING, "hash=%s", tx_hash)
        self.sender.wait_for_finalization(tx_hash)
        return tx_hash

    # Helpers

    def _parse_amount(self, amount: str) -> int:
        amount_wei = from_display(amount)
        if amount_wei <= 0:
            raise ValidationError("Amount must be greater than zero")
        return amount_wei

    def _collateral(self, token: str) -> CollateralToken:
        try:
            return self.config.collateral_token(token)
        except ConfigError as ex:
            raise ValidationError(str(ex)) from ex

    def _stablecoin_symbol(self) -> str:
        for token in self.config.WALLET_TOKENS:
            if token.address == self.config.STABLE_COIN:
                return token.symbol
        return "stablecoin"

    def _failure(self, operation: str, error: Exception, approval_handle: Optional[str] = None) -> Failure:
        diagnosis = self.decoder.decode(error)
        if isinstance(error, (ParseError, ValidationError)):
            logger.warning("Orchestrator: %s rejected: %s", operation, diagnosis)
        else:
            logger.error("Orchestrator: %s failed: %s", operation, diagnosis, exc_info=error)
        if approval_handle:
            logger.warning("Orchestrator: %s approval %s remains in effect", operation, approval_handle)
        self._log_state(operation, TxState.FAILED, "%s", diagnosis)
        return Failure(diagnosis=diagnosis, approval_handle=approval_handle)

    def _finish(self, operation: str, outcome: TransactionOutcome) -> TransactionOutcome:
        if self.notify:
            try:
                post_transaction_outcome_notification(operation, outcome, self.config)
            except Exception as ex:
                logger.error("Orchestrator: failed to post %s notification: %s", operation, ex, exc_info=True)
        return outcome

    @staticmethod
    def _log_state(operation: str, state: TxState, detail: str = "", *args) -> None:
        logger.info("Orchestrator: %s -> %s " + detail, operation, state.name, *args)
