"""LedgerClient: Sign and submit quote batches to the relay contract."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from eth_account.signers.local import LocalAccount
from web3 import Web3
from web3.exceptions import TimeExhausted, Web3Exception

from .errors import ContractRejectedError, SubmissionError, UnsupportedRateError
from .QuoteBatch import QuoteBatch, SubmissionResult

logger = logging.getLogger(__name__)


class LedgerClient(ABC):
    """Abstract base class for ledger submission.

    Implementations own the signing credential and the connection.
    """

    @abstractmethod
    def submit(
        self,
        contract_id: str,
        method_name: str,
        batch: QuoteBatch,
        compute_budget: int,
        attached_value: int,
    ) -> SubmissionResult:
        """Submit a quote batch as a contract call and wait for the outcome.

        :param contract_id: Address of the relay contract.
        :param method_name: Contract method receiving the batch.
        :param batch: Quote batch to submit.
        :param compute_budget: Gas limit of the transaction.
        :param attached_value: Value sent with the call, in wei.
        :returns: Result of the mined transaction.
        :raises SubmissionError: If signing, sending or execution fails.
        """
        pass


class Web3LedgerClient(LedgerClient):
    """Ledger client signing locally and sending raw transactions via Web3.

    :ivar w3: Web3 instance for the target network.
    :ivar account: Account used to sign transactions.
    :ivar abi: ABI of the relay contract.
    :ivar receipt_timeout: Seconds to wait for the transaction receipt.
    """

    def __init__(
        self,
        w3: Web3,
        account: LocalAccount,
        abi: list,
        receipt_timeout: float = 60.0,
    ) -> None:
        self.w3 = w3
        self.account = account
        self.abi = abi
        self.receipt_timeout = receipt_timeout

    def _build_call(self, contract_id: str, method_name: str, batch: QuoteBatch):
        for symbol, rate in zip(batch.symbols, batch.rates):
            if not isinstance(rate, int):
                raise UnsupportedRateError(
                    f"{symbol}: rate {rate} is not an integer, the contract "
                    "only accepts fixed-point rates"
                )
        contract = self.w3.eth.contract(
            address=Web3.to_checksum_address(contract_id), abi=self.abi
        )
        return contract.get_function_by_name(method_name)(*batch.as_args())

    def submit(
        self,
        contract_id: str,
        method_name: str,
        batch: QuoteBatch,
        compute_budget: int,
        attached_value: int,
    ) -> SubmissionResult:
        try:
            call = self._build_call(contract_id, method_name, batch)
            tx_params = call.build_transaction(
                {
                    "from": self.account.address,
                    "nonce": self.w3.eth.get_transaction_count(self.account.address),
                    "gas": compute_budget,
                    "gasPrice": self.w3.eth.gas_price,
                    "value": attached_value,
                }
            )
            signed = self.account.sign_transaction(tx_params)
            tx_hash = self.w3.eth.send_raw_transaction(signed.raw_transaction)
            logger.debug(f"Sent {method_name} transaction {Web3.to_hex(tx_hash)}")
            tx_receipt = self.w3.eth.wait_for_transaction_receipt(
                tx_hash, timeout=self.receipt_timeout
            )
        except SubmissionError:
            raise
        except TimeExhausted as e:
            raise SubmissionError(f"No receipt within {self.receipt_timeout}s: {e}") from e
        except (Web3Exception, ValueError, TypeError, OSError) as e:
            raise SubmissionError(f"{method_name} submission failed: {e}") from e

        transaction_ref = Web3.to_hex(tx_hash)
        if tx_receipt["status"] != 1:
            raise ContractRejectedError(transaction_ref, f"{method_name} reverted")

        return SubmissionResult(
            status="success",
            transaction_ref=transaction_ref,
            block_number=tx_receipt.get("blockNumber"),
            gas_used=tx_receipt.get("gasUsed"),
        )
