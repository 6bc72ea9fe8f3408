"""Tests for the facilitator HTTP surface."""

import pytest
from fastapi.testclient import TestClient
from solders.hash import Hash
from solders.keypair import Keypair
from solders.message import Message
from solders.transaction import Transaction

from x402split.errors import UpstreamSignerUnavailable
from x402split.http import create_facilitator_app
from x402split.mechanisms.svm.split import SplitSvmFacilitator
from x402split.mechanisms.svm.split.composer import add_payment_splits, create_transaction
from x402split.mechanisms.svm.utils import decode_instruction, encode_transaction


@pytest.fixture
def client(fee_signer):
    return TestClient(create_facilitator_app(SplitSvmFacilitator(fee_signer)))


def _split_tx_b64(payer, transfers, fee_payer=None):
    tx = create_transaction([], fee_payer or payer, Hash.default())
    return encode_transaction(add_payment_splits(tx, transfers, payer))


class TestServiceEndpoints:
    def test_root_and_health(self, client):
        assert client.get("/").json()["scheme"] == "split"
        assert client.get("/health").json() == {"status": "healthy"}

    def test_supported(self, client):
        body = client.get("/supported").json()

        assert body["version"] == "0.1.0"
        assert body["payment_methods"] == ["split"]
        assert body["capabilities"]["fee_abstraction"] is True
        assert body["supported_tokens"]

    def test_kora_signer(self, client, fee_signer):
        assert client.get("/get-kora-signer").json() == {"signer_address": fee_signer.address}


class TestVerifyEndpoint:
    def test_verify_returns_payment_info(self, client, recipients):
        payer = Keypair().pubkey()
        transfers = list(zip(recipients, [700_000, 200_000, 100_000]))

        response = client.post("/verify", json={"transaction": _split_tx_b64(payer, transfers)})

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["transaction_valid"] is True
        assert body["fee_estimate"] == 5000
        assert body["payment_info"]["totalAmount"] == 1_000_000
        assert body["payment_info"]["paymentSplits"] == [
            {"recipient": r, "amount": a} for r, a in transfers
        ]

    def test_verify_empty_transaction(self, client):
        """A zero-instruction transaction is a 400 empty_transaction."""
        payer = Keypair().pubkey()
        tx = Transaction.new_unsigned(Message.new_with_blockhash([], payer, Hash.default()))

        response = client.post("/verify", json={"transaction": encode_transaction(tx)})

        assert response.status_code == 400
        assert response.json()["error"] == "empty_transaction"

    def test_verify_malformed_transaction(self, client):
        response = client.post("/verify", json={"transaction": "bm90IGEgdHJhbnNhY3Rpb24="})

        assert response.status_code == 400
        assert response.json()["error"] == "malformed_transaction"

    def test_verify_missing_field(self, client):
        response = client.post("/verify", json={})

        assert response.status_code == 400
        assert response.json()["error"] == "invalid_request"

    def test_verify_unknown_field(self, client):
        response = client.post("/verify", json={"transaction": "AAAA", "extra": 1})

        assert response.status_code == 400
        assert response.json()["error"] == "invalid_request"

    def test_upstream_failure_is_generic_500(self, make_fee_signer, recipients):
        signer = make_fee_signer(estimate_error=UpstreamSignerUnavailable("http://10.1.2.3:8080 timed out"))
        client = TestClient(create_facilitator_app(SplitSvmFacilitator(signer)))
        payer = Keypair().pubkey()

        response = client.post("/verify", json={"transaction": _split_tx_b64(payer, [(recipients[0], 1)])})

        assert response.status_code == 500
        assert response.json() == {
            "error": "upstream_signer_unavailable",
            "message": "Fee abstraction service unavailable",
        }


class TestSettleEndpoint:
    def test_settle(self, client, fee_signer, recipients):
        payer = Keypair().pubkey()
        transfers = list(zip(recipients, [700, 200, 100]))

        response = client.post(
            "/settle",
            json={
                "transaction": _split_tx_b64(payer, transfers, fee_payer=fee_signer.keypair.pubkey()),
                "payment_splits": [{"recipient": r, "amount": a} for r, a in transfers],
                "payer": str(payer),
            },
        )

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["signature"]
        assert len(fee_signer.sent) == 1

    def test_settle_negative_amount(self, client, recipients):
        payer = Keypair().pubkey()

        response = client.post(
            "/settle",
            json={
                "transaction": _split_tx_b64(payer, [(recipients[0], 1)]),
                "payment_splits": [{"recipient": recipients[0], "amount": -1}],
                "payer": str(payer),
            },
        )

        assert response.status_code == 400
        assert response.json()["error"] == "invalid_request"

    def test_settle_amount_beyond_u64(self, client, recipients):
        payer = Keypair().pubkey()

        response = client.post(
            "/settle",
            json={
                "transaction": _split_tx_b64(payer, [(recipients[0], 1)]),
                "payment_splits": [{"recipient": recipients[0], "amount": 2**64}],
                "payer": str(payer),
            },
        )

        assert response.status_code == 400
        assert response.json()["error"] == "invalid_request"

    def test_settle_empty_split_list(self, client, recipients):
        payer = Keypair().pubkey()

        response = client.post(
            "/settle",
            json={
                "transaction": _split_tx_b64(payer, [(recipients[0], 1)]),
                "payment_splits": [],
                "payer": str(payer),
            },
        )

        assert response.status_code == 400
        assert response.json()["error"] == "invalid_request"

    def test_settle_signing_failure(self, make_fee_signer, recipients):
        signer = make_fee_signer(empty_signatures=True)
        client = TestClient(create_facilitator_app(SplitSvmFacilitator(signer)))
        payer = Keypair().pubkey()

        response = client.post(
            "/settle",
            json={
                "transaction": _split_tx_b64(payer, [(recipients[0], 1)]),
                "payment_splits": [{"recipient": recipients[0], "amount": 1}],
                "payer": str(payer),
            },
        )

        assert response.status_code == 500
        assert response.json()["error"] == "signing_failure"


class TestPaymentInstructionEndpoint:
    def test_returns_decodable_instruction(self, client, fee_signer, recipients):
        payer = Keypair().pubkey()

        response = client.post(
            "/get-payment-instruction",
            json={
                "transaction": _split_tx_b64(payer, [(recipients[0], 1)]),
                "source_wallet": str(payer),
            },
        )

        assert response.status_code == 200
        body = response.json()
        assert body["signer_address"] == fee_signer.address
        instruction = decode_instruction(body["payment_instruction"])
        assert any(meta.pubkey == payer and meta.is_signer for meta in instruction.accounts)
