"""Kora fee-abstraction co-signer integration."""

from .client import KoraClient
from .signer import FeeAbstractionSigner, FeeEstimate

__all__ = ["FeeAbstractionSigner", "FeeEstimate", "KoraClient"]
