"""Utility functions for Solana (SVM) mechanisms."""

import base64
import binascii
from dataclasses import dataclass

from solders.hash import Hash  # type: ignore
from solders.instruction import Instruction  # type: ignore
from solders.pubkey import Pubkey  # type: ignore
from solders.signature import Signature  # type: ignore
from solders.transaction import Transaction  # type: ignore
from spl.token.instructions import get_associated_token_address  # type: ignore

from ...errors import MalformedTransaction
from .constants import NETWORK_CONFIGS, SOLANA_DEVNET_CAIP2, SOLANA_MAINNET_CAIP2

_NETWORK_ALIASES = {
    "solana": SOLANA_MAINNET_CAIP2,
    "solana-mainnet": SOLANA_MAINNET_CAIP2,
    "mainnet": SOLANA_MAINNET_CAIP2,
    "solana-devnet": SOLANA_DEVNET_CAIP2,
    "devnet": SOLANA_DEVNET_CAIP2,
}


def validate_svm_address(address: str | None) -> bool:
    """Check that an address is base58 and decodes to a 32-byte public key."""
    if not address or not isinstance(address, str):
        return False
    try:
        Pubkey.from_string(address)
    except ValueError:
        return False
    return True


def normalize_network(network: str) -> str:
    """Normalize a network name or CAIP-2 identifier to CAIP-2."""
    if network in NETWORK_CONFIGS:
        return network
    caip2 = _NETWORK_ALIASES.get(network)
    if caip2 is None:
        raise ValueError(f"Unknown Solana network: {network}")
    return caip2


def get_network_config(network: str) -> dict[str, str]:
    return NETWORK_CONFIGS[normalize_network(network)]


def derive_ata(owner: str, mint: str) -> str:
    """Derive the associated token account of ``owner`` for ``mint``."""
    return str(get_associated_token_address(Pubkey.from_string(owner), Pubkey.from_string(mint)))


def is_empty_signature(signature: Signature) -> bool:
    return signature == Signature.default()


def decode_transaction(data: str, sanitize: bool = True) -> Transaction:
    """Decode a base64 wire transaction.

    With ``sanitize`` the message structure (account indices, signature
    count) is checked as well.

    Raises:
        MalformedTransaction: If the payload is not base64 or not a
            legacy Solana transaction.
    """
    if not data or not isinstance(data, str):
        raise MalformedTransaction("Transaction is empty")
    try:
        raw = base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError) as e:
        raise MalformedTransaction(f"Transaction is not valid base64: {e}") from e
    return decode_transaction_bytes(raw, sanitize)


def decode_transaction_bytes(raw: bytes, sanitize: bool = True) -> Transaction:
    if not raw:
        raise MalformedTransaction("Transaction is empty")
    try:
        tx = Transaction.from_bytes(raw)
        if sanitize:
            tx.sanitize()
    except Exception as e:  # solders surfaces bincode/sanitize errors with its own types
        raise MalformedTransaction(f"Invalid transaction format: {e}") from e
    return tx


def encode_transaction(tx: Transaction) -> str:
    """Serialize a transaction to base64 wire format."""
    return base64.b64encode(bytes(tx)).decode()


@dataclass
class TransactionEnvelope:
    """A decoded transaction together with its derived metadata."""

    transaction: Transaction

    @classmethod
    def from_base64(cls, data: str) -> "TransactionEnvelope":
        return cls(transaction=decode_transaction(data))

    @property
    def instruction_count(self) -> int:
        return len(self.transaction.message.instructions)

    @property
    def fee_payer(self) -> str | None:
        keys = self.transaction.message.account_keys
        return str(keys[0]) if keys else None

    @property
    def recent_blockhash(self) -> Hash:
        return self.transaction.message.recent_blockhash

    @property
    def has_signatures(self) -> bool:
        return any(not is_empty_signature(sig) for sig in self.transaction.signatures)

    @property
    def is_fully_signed(self) -> bool:
        signatures = self.transaction.signatures
        return bool(signatures) and all(not is_empty_signature(sig) for sig in signatures)

    @property
    def size(self) -> int:
        return len(bytes(self.transaction))

    def to_base64(self) -> str:
        return encode_transaction(self.transaction)


def encode_instruction(instruction: Instruction) -> str:
    """Serialize an instruction (bincode) to base64."""
    return base64.b64encode(bytes(instruction)).decode()


def decode_instruction(data: str | bytes) -> Instruction:
    """Inverse of ``encode_instruction``; accepts base64 text or raw bytes.

    Raises:
        MalformedTransaction: If the payload is not an encoded instruction.
    """
    try:
        raw = base64.b64decode(data, validate=True) if isinstance(data, str) else data
    except (binascii.Error, ValueError) as e:
        raise MalformedTransaction(f"Instruction is not valid base64: {e}") from e
    if not raw:
        raise MalformedTransaction("Instruction is empty")
    try:
        return Instruction.from_bytes(raw)
    except Exception as e:  # solders surfaces bincode errors with its own types
        raise MalformedTransaction(f"Invalid instruction format: {e}") from e
