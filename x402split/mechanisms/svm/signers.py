"""Client-side signers for Solana (SVM) mechanisms."""

from typing import Protocol

from solders.keypair import Keypair  # type: ignore
from solders.pubkey import Pubkey  # type: ignore
from solders.transaction import Transaction  # type: ignore


class ClientSvmSigner(Protocol):
    """Protocol for client-side wallet signing."""

    @property
    def address(self) -> str:
        """The wallet's base58 public key."""
        ...

    async def get_public_key(self) -> Pubkey:
        ...

    async def sign_transaction(self, tx: Transaction) -> Transaction:
        """Add the wallet's signature to ``tx`` without touching other slots."""
        ...


class KeypairSigner:
    """Client signer backed by an in-memory keypair."""

    def __init__(self, keypair: Keypair):
        self._keypair = keypair

    @classmethod
    def from_base58(cls, secret: str) -> "KeypairSigner":
        return cls(Keypair.from_base58_string(secret))

    @classmethod
    def from_bytes(cls, secret: bytes) -> "KeypairSigner":
        return cls(Keypair.from_bytes(secret))

    @classmethod
    def from_json_array(cls, secret: str) -> "KeypairSigner":
        """Load a keypair from the ``[12, 34, ...]`` format of the Solana CLI."""
        return cls(Keypair.from_json(secret))

    @property
    def keypair(self) -> Keypair:
        return self._keypair

    @property
    def address(self) -> str:
        return str(self._keypair.pubkey())

    async def get_public_key(self) -> Pubkey:
        return self._keypair.pubkey()

    async def sign_transaction(self, tx: Transaction) -> Transaction:
        tx.partial_sign([self._keypair], tx.message.recent_blockhash)
        return tx
