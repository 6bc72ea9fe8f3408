"""Solana (SVM) client implementation for the Split payment scheme.

Builds the multi-recipient transfer transaction for a payment requirement
and prepares it for fee abstraction.
"""

from solders.hash import Hash  # type: ignore
from solders.pubkey import Pubkey  # type: ignore
from solders.transaction import Transaction  # type: ignore

from ....errors import MalformedTransaction, UnexpectedResponse
from ..constants import LAMPORTS_PER_SIGNATURE
from ..signers import ClientSvmSigner
from ..utils import TransactionEnvelope, decode_instruction, validate_svm_address
from .composer import add_payment_splits, create_transaction, inject_instruction, set_fee_payer
from .constants import SCHEME_SPLIT
from .types import PaymentRequirement, calculate_split_amounts


def _check_fee_payer(signer_address: str) -> None:
    # The fee payer address comes from the facilitator
    if not validate_svm_address(signer_address):
        raise UnexpectedResponse(f"Invalid fee payer address: {signer_address}")


class SplitSvmClient:
    """Solana client for the Split payment scheme."""

    scheme = SCHEME_SPLIT

    def __init__(self, signer: ClientSvmSigner):
        self._signer = signer

    @property
    def address(self) -> str:
        return self._signer.address

    def calculate_transfers(self, requirement: PaymentRequirement) -> list[tuple[str, int]]:
        return calculate_split_amounts(requirement.required_amount, requirement.splits)

    async def build_payment_transaction(
        self,
        requirement: PaymentRequirement,
        blockhash: Hash,
    ) -> Transaction:
        """Build an unsigned transaction paying every split of ``requirement``.

        Args:
            requirement: PaymentRequirement from the resource server.
            blockhash: Fresh recent blockhash for the transaction header.

        Returns:
            Unsigned transaction with one transfer per split, fee payer = wallet.
        """
        payer = await self._signer.get_public_key()
        transfers = self.calculate_transfers(requirement)
        tx = create_transaction([], payer, blockhash)
        return add_payment_splits(tx, transfers, payer)

    def use_fee_payer(self, tx: Transaction, signer_address: str) -> Transaction:
        """Make the co-signer the fee payer, ahead of requesting its fee instruction."""
        _check_fee_payer(signer_address)
        return set_fee_payer(tx, Pubkey.from_string(signer_address))

    def prepare_with_fee(
        self,
        tx: Transaction,
        payment_instruction: str,
        signer_address: str,
    ) -> Transaction:
        """Inject the co-signer's fee instruction and hand it the fee-payer role.

        Must run before the wallet signs.

        Args:
            tx: The unsigned payment transaction.
            payment_instruction: Base64 encoded instruction from the facilitator.
            signer_address: Co-signer address that becomes the fee payer.
        """
        _check_fee_payer(signer_address)
        try:
            instruction = decode_instruction(payment_instruction)
        except MalformedTransaction as e:
            raise UnexpectedResponse(f"Fee payment instruction is malformed: {e.message}") from e
        return inject_instruction(tx, instruction, Pubkey.from_string(signer_address))

    async def sign(self, tx: Transaction) -> Transaction:
        return await self._signer.sign_transaction(tx)

    @staticmethod
    def estimate_transaction_cost(tx: Transaction) -> dict[str, int]:
        """Rough size and fee estimate: base fee per required signature."""
        envelope = TransactionEnvelope(tx)
        num_signatures = tx.message.header.num_required_signatures
        return {
            "size": envelope.size,
            "estimated_fees": LAMPORTS_PER_SIGNATURE * num_signatures,
        }
