"""
Signs, submits and awaits protocol write transactions.
"""

from typing import Any, Dict

from web3 import Web3
from web3.contract.contract import ContractFunction
from web3.exceptions import ContractLogicError

from .config_loader import ChainConfig
from .exceptions import ConfigError, TransactionRevertedError
from .logging_config import setup_logger

logger = setup_logger()


class TransactionSender:
    """
    Write/submit side of the chain connection for the configured signing key.

    ``submit`` builds the transaction (gas estimation surfaces most reverts
    before anything is broadcast), signs it and sends it. ``wait_for_finalization``
    blocks the calling thread until the receipt arrives.
    """

    def __init__(self, config: ChainConfig):
        if not config.can_sign:
            raise ConfigError("SIGNER_PRIVATE_KEY is required to submit transactions")
        self.config = config
        self.w3 = config.w3
        self.address = config.SIGNER_ADDRESS
        self.timeout = int(config.RECEIPT_TIMEOUT_SECONDS)

    def submit(self, contract_function: ContractFunction) -> str:
        """
        Build, sign and broadcast a contract call.

        Returns:
            The transaction hash as a 0x-prefixed hex string.
        """
        nonce = self.w3.eth.get_transaction_count(self.address, "pending")
        transaction = contract_function.build_transaction(
            {
                "chainId": self.config.CHAIN_ID,
                "from": self.address,
                "nonce": nonce,
            }
        )
        logger.debug("TransactionSender: built %s with nonce %s", contract_function.fn_name, nonce)

        signed_tx = self.w3.eth.account.sign_transaction(transaction, self.config.SIGNER_PRIVATE_KEY)
        tx_hash = Web3.to_hex(self.w3.eth.send_raw_transaction(signed_tx.raw_transaction))
        logger.info("TransactionSender: %s sent, hash: %s", contract_function.fn_name, tx_hash)
        return tx_hash

    def wait_for_finalization(self, tx_hash: str) -> Dict[str, Any]:
        """
        Block until ``tx_hash`` is mined.

        Raises:
            TransactionRevertedError: The receipt reports failure and no revert
                payload could be recovered.
            ContractLogicError: The receipt reports failure and replaying the
                call recovered the revert payload.
        """
        receipt = self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=self.timeout)
        if receipt["status"] == 1:
            logger.info("TransactionSender: %s confirmed in block %s", tx_hash, receipt["blockNumber"])
            return receipt

        logger.warning("TransactionSender: %s reverted in block %s", tx_hash, receipt["blockNumber"])
        self._replay_reverted(tx_hash, receipt)
        raise TransactionRevertedError(tx_hash)

    def _replay_reverted(self, tx_hash: str, receipt: Dict[str, Any]) -> None:
        """Re-run a reverted transaction as eth_call so its revert data can be decoded."""
        transaction = self.w3.eth.get_transaction(tx_hash)
        call = {
            "from": transaction["from"],
            "to": transaction["to"],
            "data": transaction["input"],
            "value": transaction.get("value", 0),
        }
        try:
            self.w3.eth.call(call, block_identifier=max(receipt["blockNumber"] - 1, 0))
        except ContractLogicError:
            logger.info("TransactionSender: recovered revert reason for %s", tx_hash)
            raise
