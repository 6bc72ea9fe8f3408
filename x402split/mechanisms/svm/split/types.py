"""Types for Solana (SVM) split scheme."""

from dataclasses import dataclass, field
from decimal import ROUND_FLOOR, Decimal
from typing import Any

from ....errors import InvalidSplitConfig
from ..utils import validate_svm_address
from .constants import MAX_TOTAL_PERCENTAGE, PROTOCOL_VERSION


@dataclass
class PaymentSplit:
    """A recipient in a split payment.

    Exactly one of ``percentage`` (0-100) or ``fixed_amount`` (minor units)
    is set.
    """

    recipient: str  # Solana address (base58)
    percentage: float | None = None
    fixed_amount: int | None = None

    @property
    def is_fixed(self) -> bool:
        return self.fixed_amount is not None

    def validate(self) -> None:
        if not self.recipient:
            raise InvalidSplitConfig("Split recipient cannot be empty")
        if not validate_svm_address(self.recipient):
            raise InvalidSplitConfig(f"Invalid recipient address: {self.recipient}")
        if (self.percentage is None) == (self.fixed_amount is None):
            raise InvalidSplitConfig(
                f"Split for {self.recipient} must set exactly one of percentage or fixed_amount"
            )
        if self.percentage is not None and not 0 <= self.percentage <= MAX_TOTAL_PERCENTAGE:
            raise InvalidSplitConfig(f"percentage must be 0-100, got {self.percentage}")
        if self.fixed_amount is not None and self.fixed_amount < 0:
            raise InvalidSplitConfig(f"fixed_amount must be >= 0, got {self.fixed_amount}")

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"recipient": self.recipient}
        if self.percentage is not None:
            d["percentage"] = self.percentage
        if self.fixed_amount is not None:
            d["fixed_amount"] = self.fixed_amount
        return d

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PaymentSplit":
        fixed = data.get("fixed_amount", data.get("fixedAmount"))
        percentage = data.get("percentage")
        return cls(
            recipient=data.get("recipient", ""),
            percentage=percentage,
            fixed_amount=int(fixed) if fixed is not None else None,
        )


@dataclass
class SplitAmount:
    """A resolved split: recipient and amount in minor units."""

    recipient: str
    amount: int

    def to_dict(self) -> dict[str, Any]:
        return {"recipient": self.recipient, "amount": self.amount}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SplitAmount":
        return cls(recipient=data["recipient"], amount=int(data["amount"]))

    def as_tuple(self) -> tuple[str, int]:
        return (self.recipient, self.amount)


@dataclass
class PaymentRequirement:
    """Payment requirement returned by a protected resource (HTTP 422)."""

    required_amount: int
    supported_tokens: list[str]
    splits: list[PaymentSplit]
    protocol_version: str = PROTOCOL_VERSION
    message: str = "Payment required for this resource"
    payment_methods: list[str] = field(default_factory=list)
    capabilities: dict[str, bool] = field(default_factory=dict)
    api_endpoints: list[str] = field(default_factory=list)

    @property
    def fee_abstraction(self) -> bool:
        return bool(self.capabilities.get("fee_abstraction"))

    def to_x402_dict(self) -> dict[str, Any]:
        return {
            "version": self.protocol_version,
            "supported_tokens": list(self.supported_tokens),
            "payment_methods": list(self.payment_methods),
            "capabilities": dict(self.capabilities),
            "api_endpoints": list(self.api_endpoints),
            "message": self.message,
            "required_amount": self.required_amount,
            "payment_splits": [s.to_dict() for s in self.splits],
        }

    @classmethod
    def from_x402_dict(cls, data: dict[str, Any]) -> "PaymentRequirement":
        return cls(
            required_amount=int(data["required_amount"]),
            supported_tokens=list(data.get("supported_tokens") or []),
            splits=[PaymentSplit.from_dict(s) for s in data.get("payment_splits") or []],
            protocol_version=str(data.get("version") or PROTOCOL_VERSION),
            message=data.get("message", ""),
            payment_methods=list(data.get("payment_methods") or []),
            capabilities=dict(data.get("capabilities") or {}),
            api_endpoints=list(data.get("api_endpoints") or []),
        )


@dataclass
class VerificationResult:
    """Outcome of verifying a transaction against the fee-abstraction signer."""

    valid: bool
    fee_estimate: int = 0
    recovered_splits: list[SplitAmount] = field(default_factory=list)
    total_recovered: int = 0
    transaction_size: int = 0
    message: str = ""

    def covers(self, expected: list[tuple[str, int]]) -> bool:
        """Check that every expected (recipient, amount) transfer was recovered."""
        remaining = [s.as_tuple() for s in self.recovered_splits]
        for transfer in expected:
            if transfer not in remaining:
                return False
            remaining.remove(transfer)
        return True

    def to_response(self) -> dict[str, Any]:
        return {
            "success": self.valid,
            "transaction_valid": self.valid,
            "fee_estimate": self.fee_estimate,
            "transaction_size": self.transaction_size,
            "payment_info": {
                "paymentSplits": [s.to_dict() for s in self.recovered_splits],
                "totalAmount": self.total_recovered,
            },
            "message": self.message,
        }

    @classmethod
    def from_response(cls, data: dict[str, Any]) -> "VerificationResult":
        info = data.get("payment_info") or {}
        return cls(
            valid=bool(data.get("success")) and bool(data.get("transaction_valid", True)),
            fee_estimate=int(data.get("fee_estimate") or 0),
            recovered_splits=[SplitAmount.from_dict(s) for s in info.get("paymentSplits") or []],
            total_recovered=int(info.get("totalAmount") or 0),
            transaction_size=int(data.get("transaction_size") or 0),
            message=data.get("message", ""),
        )


@dataclass
class SettlementResult:
    """Outcome of a settlement: the network signature of the broadcast."""

    success: bool
    signature: str
    message: str = ""

    def to_response(self) -> dict[str, Any]:
        return {"success": self.success, "signature": self.signature, "message": self.message}

    @classmethod
    def from_response(cls, data: dict[str, Any]) -> "SettlementResult":
        return cls(
            success=bool(data.get("success")),
            signature=data.get("signature", ""),
            message=data.get("message", ""),
        )


@dataclass
class FeeAbstractionInstruction:
    """Instruction that repays the co-signer plus the new fee payer address."""

    encoded_instruction: bytes
    signer_address: str
    payment_amount: int = 0
    payment_token: str = ""


def _percentage_share(pool: int, percentage: float) -> int:
    share = Decimal(pool) * Decimal(str(percentage)) / Decimal(MAX_TOTAL_PERCENTAGE)
    return int(share.to_integral_value(rounding=ROUND_FLOOR))


def calculate_split_amounts(
    total_amount: int,
    splits: list[PaymentSplit],
) -> list[tuple[str, int]]:
    """Calculate per-recipient amounts for a total.

    Fixed-amount entries are resolved first and taken out of the total.
    Every percentage entry but the last gets ``floor(pool * pct / 100)`` of
    the remaining pool; the last percentage entry receives whatever is left,
    so the result always sums to ``total_amount``.

    Args:
        total_amount: Total amount in minor units (e.g. 1 USDC = 1_000_000).
        splits: Split entries, in the order recipients should appear.

    Returns:
        List of (address, amount) tuples: fixed entries first, then
        percentage entries, each in list order.

    Raises:
        InvalidSplitConfig: If the split list is inconsistent.
    """
    if total_amount < 0:
        raise InvalidSplitConfig(f"Total amount must be >= 0, got {total_amount}")
    if not splits:
        raise InvalidSplitConfig("At least one split is required")

    for split in splits:
        split.validate()

    fixed = [s for s in splits if s.is_fixed]
    percentage = [s for s in splits if not s.is_fixed]

    total_percentage = sum(Decimal(str(s.percentage)) for s in percentage)
    if total_percentage > MAX_TOTAL_PERCENTAGE:
        raise InvalidSplitConfig(f"Total percentage exceeds 100%: {total_percentage}")

    result: list[tuple[str, int]] = []
    fixed_total = 0
    for split in fixed:
        result.append((split.recipient, split.fixed_amount))
        fixed_total += split.fixed_amount

    if fixed_total > total_amount:
        raise InvalidSplitConfig(
            f"Fixed amounts ({fixed_total}) exceed the total amount ({total_amount})"
        )

    pool = total_amount - fixed_total
    if not percentage:
        if pool != 0:
            raise InvalidSplitConfig(
                f"Fixed amounts sum to {fixed_total}, expected {total_amount}"
            )
        return result

    allocated = 0
    for i, split in enumerate(percentage):
        # Last percentage entry absorbs the rounding remainder
        if i == len(percentage) - 1:
            amount = pool - allocated
        else:
            amount = _percentage_share(pool, split.percentage)
            allocated += amount
        result.append((split.recipient, amount))

    return result
