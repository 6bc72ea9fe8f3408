"""Signer protocol for the fee-abstraction co-signing service."""

from dataclasses import dataclass
from typing import Protocol

from ..mechanisms.svm.split.types import FeeAbstractionInstruction


@dataclass
class FeeEstimate:
    """Fee quote for a transaction, in lamports and in the fee token."""

    fee_in_lamports: int
    fee_in_token: int
    signer_address: str = ""
    payment_address: str = ""


class FeeAbstractionSigner(Protocol):
    """Protocol for a co-signer that fronts network fees.

    The payer funds fees in a non-native token through an injected payment
    instruction; the co-signer becomes the transaction's fee payer and signs
    (and optionally broadcasts) on the payer's behalf. Implementations never
    fall back to native fees: every failure is raised.
    """

    async def get_supported_tokens(self) -> list[str]:
        """Mint addresses accepted as fee tokens."""
        ...

    async def estimate_fee(self, transaction: str, fee_token: str) -> FeeEstimate:
        """Quote the fee of a base64 transaction without broadcasting it.

        Fails for transactions the co-signer would refuse to sign.
        """
        ...

    async def get_payment_instruction(
        self,
        transaction: str,
        fee_token: str,
        source_wallet: str,
    ) -> FeeAbstractionInstruction:
        """Build the instruction that repays the co-signer from ``source_wallet``."""
        ...

    async def sign(self, transaction: str) -> str:
        """Co-sign a base64 transaction and return it, without broadcasting."""
        ...

    async def sign_and_send(self, transaction: str) -> str:
        """Co-sign and broadcast a base64 transaction; returns the signed transaction."""
        ...

    async def get_signer_address(self) -> str:
        """Public key the co-signer pays fees from."""
        ...
