"""
Semaphore group adapter - Implements GroupAdmission and GateDataEncoder protocols.

gateAndAddMember checks that the caller-supplied data proves possession of
the gating hat, then inserts the identity commitment into the group. The
adapter simulates the call first so a revert is caught before any gas is
spent, then submits the real transaction.
"""

import logging

from eth_abi import encode

from src.domain.ports import ChainOutcome, parse_identity_commitment

from .client import ChainClient

logger = logging.getLogger(__name__)

SEMAPHORE_ABI = [
    {
        "type": "function",
        "name": "gateAndAddMember",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "identityCommitment", "type": "uint256"},
            {"name": "data", "type": "bytes"},
        ],
        "outputs": [],
    },
]


class AbiGateDataEncoder:
    """Implements GateDataEncoder: the hat id as a single ABI uint256."""

    def encode(self, role_id: int) -> bytes:
        return encode(["uint256"], [role_id])


class SemaphoreGroupAdmission:
    """
    Implements GroupAdmission protocol via the Semaphore contract.

    Uses structural subtyping - no explicit inheritance from Protocol.
    """

    def __init__(self, client: ChainClient, semaphore_address: str) -> None:
        self._client = client
        self._contract = client.contract(semaphore_address, SEMAPHORE_ABI)

    def admit(self, identity_commitment: str, data: bytes) -> ChainOutcome:
        """
        Preflight gateAndAddMember, then submit it.

        Raises:
            ChainError: Preflight revert or transport failure
            ValueError: Commitment is not a uint256
        """
        call = self._contract.functions.gateAndAddMember(
            parse_identity_commitment(identity_commitment), data
        )
        self._client.simulate(call, "gateAndAddMember")
        logger.debug("gateAndAddMember preflight passed for %s", identity_commitment)
        return self._client.transact(call, "gateAndAddMember")
