"""Solana (SVM) split payment scheme.

Enables multi-recipient payments where one payment is distributed to
several recipients by percentage or fixed amount (e.g. 70% data
provider, 20% developer, 10% DAO), with network fees fronted by a
fee-abstraction co-signer.
"""

from .client import SplitSvmClient
from .composer import add_payment_splits, inject_instruction, set_recent_blockhash
from .facilitator import SplitSvmFacilitator
from .parser import decode_transfer_instruction, parse_payments
from .server import SplitSvmServer
from .types import (
    FeeAbstractionInstruction,
    PaymentRequirement,
    PaymentSplit,
    SettlementResult,
    SplitAmount,
    VerificationResult,
    calculate_split_amounts,
)

__all__ = [
    # Types
    "FeeAbstractionInstruction",
    "PaymentRequirement",
    "PaymentSplit",
    "SettlementResult",
    "SplitAmount",
    "VerificationResult",
    "calculate_split_amounts",
    # Transaction bytes
    "add_payment_splits",
    "inject_instruction",
    "set_recent_blockhash",
    "decode_transfer_instruction",
    "parse_payments",
    # Schemes
    "SplitSvmClient",
    "SplitSvmServer",
    "SplitSvmFacilitator",
]
