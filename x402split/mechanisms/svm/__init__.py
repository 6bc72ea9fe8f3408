"""Solana (SVM) mechanism: address/transaction helpers and wallet signers."""

from .constants import (
    SOLANA_DEVNET_CAIP2,
    SOLANA_MAINNET_CAIP2,
    USDC_DEVNET_ADDRESS,
    USDC_MAINNET_ADDRESS,
)
from .signers import ClientSvmSigner, KeypairSigner
from .utils import (
    TransactionEnvelope,
    decode_instruction,
    decode_transaction,
    encode_instruction,
    encode_transaction,
    validate_svm_address,
)

__all__ = [
    "SOLANA_DEVNET_CAIP2",
    "SOLANA_MAINNET_CAIP2",
    "USDC_DEVNET_ADDRESS",
    "USDC_MAINNET_ADDRESS",
    "ClientSvmSigner",
    "KeypairSigner",
    "TransactionEnvelope",
    "decode_instruction",
    "decode_transaction",
    "encode_instruction",
    "encode_transaction",
    "validate_svm_address",
]
