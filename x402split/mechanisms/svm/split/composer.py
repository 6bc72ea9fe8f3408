"""Transaction composition for the Solana split scheme.

Appends split transfers (and the fee-abstraction instruction) to an
existing transaction. Composition always rebuilds the message from its
decompiled instructions so the original instruction order, fee payer and
blockhash survive, and carries existing signatures over by signer key.
Compose first, sign last: a fully signed transaction is never mutated.
"""

from solders.hash import Hash  # type: ignore
from solders.instruction import AccountMeta, Instruction  # type: ignore
from solders.message import Message  # type: ignore
from solders.pubkey import Pubkey  # type: ignore
from solders.signature import Signature  # type: ignore
from solders.system_program import TransferParams, transfer  # type: ignore
from solders.transaction import Transaction  # type: ignore

from ....errors import InvalidRequest
from ..constants import U64_MAX
from ..utils import TransactionEnvelope, validate_svm_address


def decompile_instructions(message: Message) -> list[Instruction]:
    """Rebuild full instructions (with account roles) from a compiled message."""
    header = message.header
    keys = message.account_keys
    num_signers = header.num_required_signatures
    writable_signers = num_signers - header.num_readonly_signed_accounts
    writable_total = len(keys) - header.num_readonly_unsigned_accounts

    def meta(index: int) -> AccountMeta:
        is_signer = index < num_signers
        if is_signer:
            is_writable = index < writable_signers
        else:
            is_writable = index < writable_total
        return AccountMeta(keys[index], is_signer, is_writable)

    return [
        Instruction(
            keys[compiled.program_id_index],
            bytes(compiled.data),
            [meta(i) for i in compiled.accounts],
        )
        for compiled in message.instructions
    ]


def create_transaction(
    instructions: list[Instruction],
    fee_payer: Pubkey,
    blockhash: Hash,
) -> Transaction:
    """Create an unsigned transaction."""
    message = Message.new_with_blockhash(instructions, fee_payer, blockhash)
    return Transaction.new_unsigned(message)


def rebuild_transaction(
    tx: Transaction,
    instructions: list[Instruction],
    fee_payer: Pubkey | None = None,
    blockhash: Hash | None = None,
) -> Transaction:
    """Recompile ``tx`` with new instructions, keeping known signatures."""
    old_message = tx.message
    if fee_payer is None:
        keys = old_message.account_keys
        fee_payer = keys[0] if keys else None
    if blockhash is None:
        blockhash = old_message.recent_blockhash

    message = Message.new_with_blockhash(instructions, fee_payer, blockhash)

    existing = {
        old_message.account_keys[i]: sig
        for i, sig in enumerate(tx.signatures)
        if i < len(old_message.account_keys)
    }
    num_signers = message.header.num_required_signatures
    signatures = [
        existing.get(key, Signature.default()) for key in message.account_keys[:num_signers]
    ]
    return Transaction.populate(message, signatures)


def _ensure_mutable(tx: Transaction) -> None:
    if TransactionEnvelope(tx).is_fully_signed:
        raise InvalidRequest("Cannot append instructions to a fully signed transaction")


def build_transfer_instructions(
    transfers: list[tuple[str, int]],
    payer: Pubkey,
) -> list[Instruction]:
    """One System program transfer per (recipient, amount)."""
    instructions = []
    for recipient, amount in transfers:
        if not validate_svm_address(recipient):
            raise InvalidRequest(f"Invalid recipient address: {recipient}")
        if not 0 <= amount <= U64_MAX:
            raise InvalidRequest(f"Transfer amount must be within 0..2^64-1, got {amount} for {recipient}")
        instructions.append(
            transfer(
                TransferParams(
                    from_pubkey=payer,
                    to_pubkey=Pubkey.from_string(recipient),
                    lamports=amount,
                )
            )
        )
    return instructions


def add_payment_splits(
    tx: Transaction,
    transfers: list[tuple[str, int]],
    payer: Pubkey,
) -> Transaction:
    """Append split transfers paid by ``payer`` to ``tx``.

    The original instructions keep their order, the fee payer and blockhash
    are preserved, and existing signatures are carried over untouched. The
    appended content is unsigned.

    Args:
        tx: The transaction to extend (possibly unsigned).
        transfers: (recipient, amount) pairs, appended in order.
        payer: Source account of the appended transfers.

    Returns:
        A new transaction; ``tx`` is left unchanged.

    Raises:
        InvalidRequest: On a bad recipient/amount, or if ``tx`` is fully signed.
    """
    if not transfers:
        return tx
    _ensure_mutable(tx)
    instructions = decompile_instructions(tx.message)
    instructions.extend(build_transfer_instructions(transfers, payer))
    return rebuild_transaction(tx, instructions, fee_payer=None if tx.message.account_keys else payer)


def inject_instruction(
    tx: Transaction,
    instruction: Instruction,
    fee_payer: Pubkey,
) -> Transaction:
    """Append ``instruction`` and hand the fee-payer role to ``fee_payer``."""
    _ensure_mutable(tx)
    instructions = decompile_instructions(tx.message)
    instructions.append(instruction)
    return rebuild_transaction(tx, instructions, fee_payer=fee_payer)


def set_fee_payer(tx: Transaction, fee_payer: Pubkey) -> Transaction:
    return rebuild_transaction(tx, decompile_instructions(tx.message), fee_payer=fee_payer)


def set_recent_blockhash(tx: Transaction, blockhash: Hash) -> Transaction:
    """Attach a fresh header; signatures over the old message are dropped."""
    instructions = decompile_instructions(tx.message)
    keys = tx.message.account_keys
    if not keys:
        raise InvalidRequest("Transaction has no fee payer")
    return create_transaction(instructions, keys[0], blockhash)
