"""Shared fixtures: wallets, recipients and an in-memory fee-abstraction signer."""

import asyncio
from types import SimpleNamespace

import pytest
from solders.hash import Hash
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.transaction import Transaction
from spl.token.constants import TOKEN_PROGRAM_ID
from spl.token.instructions import TransferParams, transfer

from x402split.kora.signer import FeeEstimate
from x402split.mechanisms.svm.constants import USDC_DEVNET_ADDRESS
from x402split.mechanisms.svm.signers import KeypairSigner
from x402split.mechanisms.svm.split.types import FeeAbstractionInstruction
from x402split.mechanisms.svm.utils import decode_transaction, derive_ata, encode_transaction


class FakeFeeSigner:
    """In-memory ``FeeAbstractionSigner`` that co-signs with its own keypair.

    Args:
        keypair: The co-signer key; it becomes the fee payer.
        empty_signatures: Return signed transactions without any signature.
        estimate_error: Raised by ``estimate_fee`` when set.
        tokens_error: Raised by ``get_supported_tokens`` when set.
        advertised_address: Reported by ``get_signer_address`` instead of
            the real co-signer address.
    """

    def __init__(
        self,
        keypair=None,
        empty_signatures=False,
        estimate_error=None,
        tokens_error=None,
        advertised_address=None,
    ):
        self.keypair = keypair or Keypair()
        self.empty_signatures = empty_signatures
        self.estimate_error = estimate_error
        self.tokens_error = tokens_error
        self.advertised_address = advertised_address
        self.fee_in_token = 10
        self.estimated = []
        self.sent = []
        self.signed = []
        # Optional gates to hold a call until the test releases it
        self.estimate_gate = None
        self.estimate_started = asyncio.Event()
        self.send_gate = None
        self.send_started = asyncio.Event()

    @property
    def address(self) -> str:
        return str(self.keypair.pubkey())

    async def get_supported_tokens(self):
        if self.tokens_error is not None:
            raise self.tokens_error
        return [USDC_DEVNET_ADDRESS]

    async def estimate_fee(self, transaction, fee_token):
        self.estimated.append(transaction)
        self.estimate_started.set()
        if self.estimate_gate is not None:
            await self.estimate_gate.wait()
        if self.estimate_error is not None:
            raise self.estimate_error
        return FeeEstimate(
            fee_in_lamports=5000,
            fee_in_token=self.fee_in_token,
            signer_address=self.address,
            payment_address=self.address,
        )

    async def get_payment_instruction(self, transaction, fee_token, source_wallet):
        estimate = await self.estimate_fee(transaction, fee_token)
        instruction = transfer(
            TransferParams(
                program_id=TOKEN_PROGRAM_ID,
                source=Pubkey.from_string(derive_ata(source_wallet, fee_token)),
                dest=Pubkey.from_string(derive_ata(estimate.payment_address, fee_token)),
                owner=Pubkey.from_string(source_wallet),
                amount=estimate.fee_in_token,
            )
        )
        return FeeAbstractionInstruction(
            encoded_instruction=bytes(instruction),
            signer_address=self.address,
            payment_amount=estimate.fee_in_token,
            payment_token=fee_token,
        )

    def _co_sign(self, transaction):
        tx = decode_transaction(transaction, sanitize=False)
        if self.empty_signatures:
            return encode_transaction(Transaction.populate(tx.message, []))
        num_signers = tx.message.header.num_required_signatures
        if self.keypair.pubkey() in tx.message.account_keys[:num_signers]:
            tx.partial_sign([self.keypair], tx.message.recent_blockhash)
        return encode_transaction(tx)

    async def sign(self, transaction):
        self.signed.append(transaction)
        return self._co_sign(transaction)

    async def sign_and_send(self, transaction):
        self.send_started.set()
        if self.send_gate is not None:
            await self.send_gate.wait()
        self.sent.append(transaction)
        return self._co_sign(transaction)

    async def get_signer_address(self):
        return self.advertised_address or self.address


class FakeRpc:
    """Stands in for ``solana.rpc.async_api.AsyncClient``."""

    def __init__(self, blockhash=None):
        self.blockhash = blockhash or Hash.default()
        self.calls = 0

    async def get_latest_blockhash(self, *args, **kwargs):
        self.calls += 1
        return SimpleNamespace(value=SimpleNamespace(blockhash=self.blockhash))


@pytest.fixture
def wallet():
    return KeypairSigner(Keypair())


@pytest.fixture
def recipients():
    """Three distinct recipient addresses."""
    return [str(Keypair().pubkey()) for _ in range(3)]


@pytest.fixture
def fee_signer():
    return FakeFeeSigner()


@pytest.fixture
def fake_rpc():
    return FakeRpc()


@pytest.fixture
def make_fee_signer():
    """Factory for ``FakeFeeSigner`` variants."""
    return FakeFeeSigner
