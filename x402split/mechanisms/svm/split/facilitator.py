"""Solana (SVM) facilitator implementation for the Split payment scheme.

Verifies split transactions from their instruction bytes and settles them
through a fee-abstraction co-signer. The facilitator is stateless and never
holds key material: all signing is delegated to the co-signer.
"""

import base64
import logging
from typing import TYPE_CHECKING, Any

from solders.pubkey import Pubkey  # type: ignore

from ....errors import EmptyTransaction, InvalidRequest, MalformedTransaction, SigningFailure
from ..constants import USDC_DEVNET_ADDRESS
from ..utils import (
    TransactionEnvelope,
    decode_transaction,
    encode_transaction,
    is_empty_signature,
    validate_svm_address,
)
from .composer import add_payment_splits
from .constants import API_ENDPOINTS, PAYMENT_METHODS, PROTOCOL_VERSION, SCHEME_SPLIT
from .parser import missing_transfers, parse_payments
from .types import SettlementResult, SplitAmount, VerificationResult

if TYPE_CHECKING:
    from ....kora.signer import FeeAbstractionSigner

logger = logging.getLogger(__name__)


class SplitSvmFacilitator:
    """Solana facilitator for the Split payment scheme.

    Args:
        signer: Fee-abstraction co-signer, e.g. ``KoraClient``.
        fee_token: Token used when probing transactions with a fee estimate.
    """

    scheme = SCHEME_SPLIT

    def __init__(self, signer: "FeeAbstractionSigner", fee_token: str = USDC_DEVNET_ADDRESS):
        self._signer = signer
        self._fee_token = fee_token

    async def supported(self) -> dict[str, Any]:
        """Capabilities of this facilitator, with the co-signer's fee tokens."""
        tokens = await self._signer.get_supported_tokens()
        return {
            "version": PROTOCOL_VERSION,
            "supported_tokens": tokens,
            "payment_methods": list(PAYMENT_METHODS),
            "capabilities": {
                "fee_abstraction": True,
                "payment_splitting": True,
                "token_payments": True,
            },
            "api_endpoints": list(API_ENDPOINTS),
        }

    async def verify(self, transaction: str) -> VerificationResult:
        """Verify a split transaction without broadcasting it.

        The co-signer's fee estimate serves as a read-only validity check;
        payment splits are reconstructed from the System transfer bytes.

        Args:
            transaction: Base64 wire transaction.

        Returns:
            VerificationResult with the recovered splits.

        Raises:
            MalformedTransaction: If the bytes cannot be decoded.
            EmptyTransaction: If the transaction has no instructions.
            SignerRejected: If the co-signer refuses the transaction.
            UpstreamSignerUnavailable: If the co-signer cannot be reached.
        """
        envelope = TransactionEnvelope.from_base64(transaction)
        if envelope.instruction_count == 0:
            raise EmptyTransaction("Transaction must contain at least one instruction")

        estimate = await self._signer.estimate_fee(transaction, self._fee_token)

        payments = parse_payments(envelope.transaction)
        logger.info(
            "Verified transaction: %d instructions, %d split transfers totalling %d",
            envelope.instruction_count,
            len(payments.transfers),
            payments.total_amount,
        )
        return VerificationResult(
            valid=True,
            fee_estimate=estimate.fee_in_lamports,
            recovered_splits=payments.splits,
            total_recovered=payments.total_amount,
            transaction_size=envelope.size,
            message="Transaction verified successfully",
        )

    async def settle(
        self,
        transaction: str,
        payment_splits: list[SplitAmount],
        payer: str,
    ) -> SettlementResult:
        """Settle a split transaction through the co-signer.

        Declared splits that are not yet encoded in the transaction are
        appended (paid by ``payer``) before the co-signer signs and
        broadcasts. Settlement is not idempotent: a retry needs a new
        transaction with a fresh blockhash.

        Args:
            transaction: Base64 wire transaction.
            payment_splits: Declared (recipient, amount) splits.
            payer: Address paying the split transfers.

        Returns:
            SettlementResult carrying the base58 network signature.

        Raises:
            InvalidRequest: On a bad payer or split list.
            SigningFailure: If the signed transaction carries no signature.
        """
        if not validate_svm_address(payer):
            raise InvalidRequest(f"Invalid payer address: {payer}")
        if not payment_splits:
            raise InvalidRequest("payment_splits must contain at least one split")
        for split in payment_splits:
            if not validate_svm_address(split.recipient):
                raise InvalidRequest(f"Invalid split recipient: {split.recipient}")
            if split.amount < 0:
                raise InvalidRequest(f"Invalid split amount {split.amount} for {split.recipient}")

        envelope = TransactionEnvelope.from_base64(transaction)
        if envelope.instruction_count == 0:
            raise EmptyTransaction("Transaction must contain at least one instruction")

        declared = [s.as_tuple() for s in payment_splits]
        to_append = missing_transfers(declared, parse_payments(envelope.transaction))
        tx = add_payment_splits(envelope.transaction, to_append, Pubkey.from_string(payer))
        if to_append:
            logger.info("Appended %d split transfers for payer %s", len(to_append), payer)

        settled_total = parse_payments(tx).total_amount
        declared_total = sum(amount for _, amount in declared)
        if settled_total != declared_total:
            raise InvalidRequest(
                f"Transaction transfers {settled_total}, declared splits total {declared_total}"
            )

        logger.info(
            "Submitting transaction with %d instructions for co-signing",
            len(tx.message.instructions),
        )
        signed = await self._signer.sign_and_send(encode_transaction(tx))
        signature = first_signature(signed)

        logger.info("Transaction settled with signature %s", signature)
        return SettlementResult(
            success=True,
            signature=signature,
            message="Transaction settled successfully with payment splits",
        )

    async def get_payment_instruction(
        self,
        transaction: str,
        fee_token: str,
        source_wallet: str,
    ) -> dict[str, str]:
        """Fee-repayment instruction for a client-built transaction."""
        decode_transaction(transaction)
        instruction = await self._signer.get_payment_instruction(transaction, fee_token, source_wallet)
        return {
            "payment_instruction": base64.b64encode(instruction.encoded_instruction).decode(),
            "signer_address": instruction.signer_address,
        }

    async def get_signer_address(self) -> str:
        return await self._signer.get_signer_address()


def first_signature(signed_transaction: str) -> str:
    """Base58 of the first non-empty signature of a signed transaction.

    Raises:
        SigningFailure: If the transaction cannot be decoded or carries no
            signature. An empty or synthetic signature is never returned.
    """
    try:
        signed = decode_transaction(signed_transaction, sanitize=False)
    except MalformedTransaction as e:
        logger.error("Co-signer returned an undecodable transaction: %s", e)
        raise SigningFailure("Signer returned an undecodable transaction") from e

    signature = next((sig for sig in signed.signatures if not is_empty_signature(sig)), None)
    if signature is None:
        logger.error("Co-signer returned a transaction without signatures")
        raise SigningFailure("No signature found in the signed transaction")
    return str(signature)
