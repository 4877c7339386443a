"""Chain adapters - web3 implementations of the credential and group ports."""

from .client import ChainClient
from .hats import HatsCredentialIssuer
from .semaphore import AbiGateDataEncoder, SemaphoreGroupAdmission

__all__ = [
    "AbiGateDataEncoder",
    "ChainClient",
    "HatsCredentialIssuer",
    "SemaphoreGroupAdmission",
]
