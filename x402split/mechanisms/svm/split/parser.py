"""Byte-level parsing of split transfers.

Payment shape is always recovered from the compiled instruction bytes of
the transaction, never from metadata supplied alongside it.
"""

from dataclasses import dataclass, field

from solders.system_program import ID as SYSTEM_PROGRAM_ID  # type: ignore
from solders.transaction import Transaction  # type: ignore

from ..constants import (
    SYSTEM_TRANSFER_AMOUNT_OFFSET,
    SYSTEM_TRANSFER_DATA_LENGTH,
    SYSTEM_TRANSFER_DISCRIMINATOR,
)
from .types import SplitAmount


@dataclass
class ParsedTransfer:
    source: str
    recipient: str
    amount: int


@dataclass
class ParsedPayments:
    transfers: list[ParsedTransfer] = field(default_factory=list)

    @property
    def total_amount(self) -> int:
        return sum(t.amount for t in self.transfers)

    @property
    def splits(self) -> list[SplitAmount]:
        return [SplitAmount(t.recipient, t.amount) for t in self.transfers]

    def as_tuples(self) -> list[tuple[str, int]]:
        return [(t.recipient, t.amount) for t in self.transfers]


def decode_transfer_instruction(data: bytes) -> int | None:
    """Decode the lamports of a System program Transfer instruction.

    Layout (12 bytes): u32 LE discriminator (2), then u64 LE lamports at
    offset 4.

    Returns:
        The amount, or None if ``data`` is not a Transfer payload.
    """
    if len(data) != SYSTEM_TRANSFER_DATA_LENGTH:
        return None
    discriminator = int.from_bytes(data[:SYSTEM_TRANSFER_AMOUNT_OFFSET], "little")
    if discriminator != SYSTEM_TRANSFER_DISCRIMINATOR:
        return None
    return int.from_bytes(
        data[SYSTEM_TRANSFER_AMOUNT_OFFSET:SYSTEM_TRANSFER_DATA_LENGTH], "little"
    )


def parse_payments(tx: Transaction) -> ParsedPayments:
    """Recover (source, recipient, amount) of every System transfer, in order."""
    message = tx.message
    keys = message.account_keys
    parsed = ParsedPayments()

    for compiled in message.instructions:
        if keys[compiled.program_id_index] != SYSTEM_PROGRAM_ID:
            continue
        amount = decode_transfer_instruction(bytes(compiled.data))
        if amount is None:
            continue
        accounts = bytes(compiled.accounts)
        if len(accounts) < 2:
            continue
        parsed.transfers.append(
            ParsedTransfer(
                source=str(keys[accounts[0]]),
                recipient=str(keys[accounts[1]]),
                amount=amount,
            )
        )

    return parsed


def missing_transfers(
    declared: list[tuple[str, int]],
    parsed: ParsedPayments,
) -> list[tuple[str, int]]:
    """Declared transfers not yet encoded in the transaction (multiset difference)."""
    remaining = parsed.as_tuples()
    missing = []
    for transfer in declared:
        if transfer in remaining:
            remaining.remove(transfer)
        else:
            missing.append(transfer)
    return missing
