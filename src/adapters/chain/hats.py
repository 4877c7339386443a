"""
Hats credential adapter - Implements CredentialIssuer protocol.

Mints a hat (role credential) to a wearer address through the Hats
Protocol contract. Only the mintHat fragment of the ABI is needed.
"""

from web3 import Web3

from src.domain.ports import ChainOutcome

from .client import ChainClient

HATS_ABI = [
    {
        "type": "function",
        "name": "mintHat",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "_hatId", "type": "uint256"},
            {"name": "_wearer", "type": "address"},
        ],
        "outputs": [{"name": "success", "type": "bool"}],
    },
]


class HatsCredentialIssuer:
    """
    Implements CredentialIssuer protocol via the Hats contract.

    Uses structural subtyping - no explicit inheritance from Protocol.
    """

    def __init__(self, client: ChainClient, hats_address: str) -> None:
        self._client = client
        self._contract = client.contract(hats_address, HATS_ABI)

    def mint(self, address: str, role_id: int) -> ChainOutcome:
        """
        Mint hat role_id to address and wait for the receipt.

        A reverted receipt comes back as succeeded=False rather than an
        exception; the caller must check it.
        """
        call = self._contract.functions.mintHat(role_id, Web3.to_checksum_address(address))
        return self._client.transact(call, "mintHat")
