"""Tests for the split scheme types and the split calculation."""

import pytest
from solders.keypair import Keypair

from x402split.errors import InvalidSplitConfig
from x402split.mechanisms.svm.split.types import (
    PaymentRequirement,
    PaymentSplit,
    SplitAmount,
    VerificationResult,
    calculate_split_amounts,
)


def _address() -> str:
    return str(Keypair().pubkey())


class TestSplitCalculations:
    """Test split amount calculations."""

    def test_50_30_20_split(self):
        """1,000,000 split 50/30/20."""
        a, b, c = _address(), _address(), _address()
        splits = calculate_split_amounts(
            1_000_000,
            [PaymentSplit(a, 50), PaymentSplit(b, 30), PaymentSplit(c, 20)],
        )

        assert splits == [(a, 500_000), (b, 300_000), (c, 200_000)]
        assert sum(amt for _, amt in splits) == 1_000_000

    def test_dust_goes_to_last_recipient(self):
        """100 split 33/33/34: floor per entry, remainder to the last."""
        a, b, c = _address(), _address(), _address()
        splits = calculate_split_amounts(
            100,
            [PaymentSplit(a, 33), PaymentSplit(b, 33), PaymentSplit(c, 34)],
        )

        assert splits == [(a, 33), (b, 33), (c, 34)]

    def test_remainder_when_percentages_do_not_divide(self):
        """Odd totals still sum exactly."""
        a, b, c = _address(), _address(), _address()
        splits = calculate_split_amounts(
            1_000_001,
            [PaymentSplit(a, 70), PaymentSplit(b, 20), PaymentSplit(c, 10)],
        )

        # 70%: floor(700000.7) = 700000, 20%: floor(200000.2) = 200000
        assert splits[0] == (a, 700_000)
        assert splits[1] == (b, 200_000)
        assert splits[2] == (c, 100_001)
        assert sum(amt for _, amt in splits) == 1_000_001

    def test_fractional_percentages(self):
        """Fractional percentages floor per entry."""
        a, b = _address(), _address()
        splits = calculate_split_amounts(1000, [PaymentSplit(a, 33.3), PaymentSplit(b, 66.7)])

        assert splits == [(a, 333), (b, 667)]

    def test_sum_is_exact_for_many_totals(self):
        """Amounts always sum to the total."""
        entries = [PaymentSplit(_address(), p) for p in (12.5, 37.5, 17, 33)]
        for total in (0, 1, 7, 99, 101, 12345, 999_999_999):
            splits = calculate_split_amounts(total, entries)
            assert sum(amt for _, amt in splits) == total
            for (_, amt), entry in zip(splits[:-1], entries[:-1]):
                assert amt == total * entry.percentage // 100

    def test_fixed_amounts_resolved_first(self):
        """Fixed entries come first and are taken out of the pool."""
        a, b, c = _address(), _address(), _address()
        splits = calculate_split_amounts(
            1000,
            [PaymentSplit(a, 50), PaymentSplit(b, fixed_amount=200), PaymentSplit(c, 50)],
        )

        assert splits == [(b, 200), (a, 400), (c, 400)]

    def test_fixed_only_must_sum_to_total(self):
        """A list of fixed amounts must cover the total exactly."""
        a, b = _address(), _address()
        splits = calculate_split_amounts(
            300, [PaymentSplit(a, fixed_amount=100), PaymentSplit(b, fixed_amount=200)]
        )
        assert splits == [(a, 100), (b, 200)]

        with pytest.raises(InvalidSplitConfig, match="expected 500"):
            calculate_split_amounts(
                500, [PaymentSplit(a, fixed_amount=100), PaymentSplit(b, fixed_amount=200)]
            )

    def test_fixed_exceeding_total(self):
        """Fixed amounts larger than the total are rejected."""
        with pytest.raises(InvalidSplitConfig, match="exceed the total"):
            calculate_split_amounts(
                100, [PaymentSplit(_address(), fixed_amount=150), PaymentSplit(_address(), 100)]
            )

    def test_percentages_over_100(self):
        """Percentages summing over 100 are rejected."""
        with pytest.raises(InvalidSplitConfig, match="exceeds 100%"):
            calculate_split_amounts(100, [PaymentSplit(_address(), 60), PaymentSplit(_address(), 50)])

    def test_empty_splits(self):
        """At least one split is required."""
        with pytest.raises(InvalidSplitConfig, match="At least one split"):
            calculate_split_amounts(100, [])

    def test_negative_total(self):
        with pytest.raises(InvalidSplitConfig):
            calculate_split_amounts(-1, [PaymentSplit(_address(), 100)])


class TestPaymentSplit:
    """Test split entry validation."""

    def test_valid_split(self):
        """Test valid split creation."""
        PaymentSplit(_address(), 70).validate()  # Should not raise

    def test_invalid_address(self):
        """Recipients must be base58 Solana addresses."""
        with pytest.raises(InvalidSplitConfig, match="Invalid recipient address"):
            PaymentSplit("not-an-address", 70).validate()

    def test_empty_address(self):
        with pytest.raises(InvalidSplitConfig, match="cannot be empty"):
            PaymentSplit("", 70).validate()

    def test_both_percentage_and_fixed(self):
        with pytest.raises(InvalidSplitConfig, match="exactly one"):
            PaymentSplit(_address(), 50, fixed_amount=10).validate()

    def test_neither_percentage_nor_fixed(self):
        with pytest.raises(InvalidSplitConfig, match="exactly one"):
            PaymentSplit(_address()).validate()

    def test_percentage_out_of_range(self):
        with pytest.raises(InvalidSplitConfig, match="percentage must be 0-100"):
            PaymentSplit(_address(), 101).validate()

    def test_negative_fixed_amount(self):
        with pytest.raises(InvalidSplitConfig, match="fixed_amount must be >= 0"):
            PaymentSplit(_address(), fixed_amount=-5).validate()

    def test_from_dict_accepts_camel_case_fixed_amount(self):
        address = _address()
        split = PaymentSplit.from_dict({"recipient": address, "fixedAmount": "250"})

        assert split.fixed_amount == 250
        assert split.percentage is None
        assert split.to_dict() == {"recipient": address, "fixed_amount": 250}


class TestPaymentRequirement:
    """Test the 422 requirement body."""

    def test_x402_dict_round_trip(self):
        address = _address()
        requirement = PaymentRequirement(
            required_amount=1_000_000,
            supported_tokens=["mint"],
            splits=[PaymentSplit(address, 100)],
            capabilities={"fee_abstraction": True},
            payment_methods=["split"],
        )

        body = requirement.to_x402_dict()
        assert body["required_amount"] == 1_000_000
        assert body["payment_splits"] == [{"recipient": address, "percentage": 100}]

        parsed = PaymentRequirement.from_x402_dict(body)
        assert parsed == requirement
        assert parsed.fee_abstraction is True

    def test_fee_abstraction_defaults_off(self):
        requirement = PaymentRequirement.from_x402_dict({"required_amount": 5, "payment_splits": []})
        assert requirement.fee_abstraction is False


class TestVerificationResult:
    """Test recovered-split coverage and the /verify response shape."""

    def test_covers_expected_transfers(self):
        a, b = _address(), _address()
        result = VerificationResult(
            valid=True,
            recovered_splits=[SplitAmount(a, 70), SplitAmount(b, 30), SplitAmount(a, 5)],
        )

        assert result.covers([(a, 70), (b, 30)])
        assert not result.covers([(a, 70), (b, 31)])

    def test_covers_counts_duplicates(self):
        a = _address()
        result = VerificationResult(valid=True, recovered_splits=[SplitAmount(a, 10)])

        assert not result.covers([(a, 10), (a, 10)])

    def test_response_round_trip(self):
        a = _address()
        result = VerificationResult(
            valid=True,
            fee_estimate=5000,
            recovered_splits=[SplitAmount(a, 100)],
            total_recovered=100,
            transaction_size=250,
            message="ok",
        )

        body = result.to_response()
        assert body["payment_info"] == {
            "paymentSplits": [{"recipient": a, "amount": 100}],
            "totalAmount": 100,
        }
        assert VerificationResult.from_response(body) == result
