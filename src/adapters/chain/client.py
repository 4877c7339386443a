"""
Chain client - shared web3 wiring for the credential and group adapters.

Wraps a Web3 HTTP connection and the service's signing account. Write
operations follow build -> sign -> send -> wait for receipt. Nonces are
allocated under a lock so concurrent registrations sharing one signer do
not reuse a nonce; the receipt wait happens outside the lock.

No retries happen here. Failures surface as ChainError; a mined but
reverted transaction is a ChainOutcome with succeeded=False.
"""

import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from eth_account import Account
from eth_account.signers.local import LocalAccount
from web3 import Web3
from web3.contract.contract import Contract, ContractFunction
from web3.exceptions import Web3Exception

from src.config.settings import Settings
from src.domain.exceptions import ChainError
from src.domain.ports import ChainOutcome

logger = logging.getLogger(__name__)


@contextmanager
def _chain_errors(operation: str, reference: str = "") -> Iterator[None]:
    """Translate web3 and transport failures into ChainError."""
    try:
        yield
    # RPC errors, HTTP transport errors (OSError) and legacy ValueError RPC errors
    except (Web3Exception, OSError, ValueError) as e:
        logger.error("Chain operation %s failed: %s", operation, e)
        raise ChainError(f"Chain operation failed: {operation}", reference=reference) from e


class ChainClient:
    """Signs and submits contract calls for a single service account."""

    def __init__(
        self,
        w3: Web3,
        account: LocalAccount,
        receipt_timeout: float = 120.0,
        chain_id: int | None = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            w3: Connected Web3 instance
            account: Local signing account paying for the writes
            receipt_timeout: Seconds to wait for a transaction receipt
            chain_id: Chain ID (read from the node on first use if None)
        """
        self._w3 = w3
        self._account = account
        self._receipt_timeout = receipt_timeout
        self._chain_id = chain_id
        self._nonce_lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings: Settings) -> "ChainClient":
        """Build a client from RPC URL, signer key and timeouts in settings."""
        private_key = settings.signer_private_key.get_secret_value()
        if not private_key:
            raise ValueError("SIGNER_PRIVATE_KEY must be set to submit chain writes")

        w3 = Web3(
            Web3.HTTPProvider(
                settings.rpc_url,
                request_kwargs={"timeout": settings.chain_timeout_seconds},
            )
        )
        return cls(
            w3=w3,
            account=Account.from_key(private_key),
            receipt_timeout=settings.chain_timeout_seconds,
            chain_id=settings.chain_id,
        )

    @property
    def address(self) -> str:
        """Address of the signing account."""
        return self._account.address

    @property
    def chain_id(self) -> int:
        if self._chain_id is None:
            with _chain_errors("chain_id"):
                self._chain_id = self._w3.eth.chain_id
        return self._chain_id

    def is_connected(self) -> bool:
        return self._w3.is_connected()

    def contract(self, address: str, abi: list[dict[str, Any]]) -> Contract:
        return self._w3.eth.contract(address=Web3.to_checksum_address(address), abi=abi)

    def simulate(self, call: ContractFunction, operation: str) -> Any:
        """
        Run call as a read-only eth_call from the signer.

        Raises:
            ChainError: The call would revert or the node is unreachable
        """
        with _chain_errors(f"{operation} preflight"):
            return call.call({"from": self.address})

    def transact(self, call: ContractFunction, operation: str) -> ChainOutcome:
        """
        Sign, send and wait for call; report the receipt status.

        Raises:
            ChainError: Gas estimation revert, RPC failure or receipt timeout
        """
        with _chain_errors(operation):
            chain_id = self.chain_id
            with self._nonce_lock:
                tx = call.build_transaction(
                    {
                        "from": self.address,
                        "chainId": chain_id,
                        "nonce": self._w3.eth.get_transaction_count(self.address, "pending"),
                    }
                )
                signed = self._account.sign_transaction(tx)
                tx_hash = self._w3.eth.send_raw_transaction(signed.raw_transaction)

        reference = Web3.to_hex(tx_hash)
        logger.info("Submitted %s: %s", operation, reference)

        with _chain_errors(operation, reference=reference):
            receipt = self._w3.eth.wait_for_transaction_receipt(
                tx_hash, timeout=self._receipt_timeout
            )

        if receipt["status"] != 1:
            logger.warning("Transaction %s for %s reverted", reference, operation)
            return ChainOutcome(succeeded=False, reference=reference)
        return ChainOutcome(succeeded=True, reference=reference)
