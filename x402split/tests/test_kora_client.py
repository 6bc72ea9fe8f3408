"""Tests for the Kora JSON-RPC client."""

import json

import httpx
import pytest
from solders.instruction import Instruction
from solders.keypair import Keypair
from spl.token.constants import TOKEN_PROGRAM_ID

from x402split.config import KoraConfig
from x402split.errors import InvalidRequest, SignerRejected, UpstreamSignerUnavailable
from x402split.kora import KoraClient
from x402split.mechanisms.svm.constants import USDC_DEVNET_ADDRESS
from x402split.mechanisms.svm.utils import derive_ata

KORA_URL = "http://kora.test/"


def _kora(handler, **config) -> KoraClient:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return KoraClient(KoraConfig(rpc_url=KORA_URL, **config), http_client=http_client)


def _result(request: httpx.Request, result) -> httpx.Response:
    payload = json.loads(request.content)
    return httpx.Response(200, json={"jsonrpc": "2.0", "id": payload["id"], "result": result})


class TestKoraRpc:
    """JSON-RPC envelope and error mapping."""

    async def test_sends_json_rpc_with_api_key(self):
        seen = []

        def handler(request):
            seen.append(request)
            return _result(request, {"tokens": [USDC_DEVNET_ADDRESS]})

        async with _kora(handler, api_key="secret") as kora:
            tokens = await kora.get_supported_tokens()

        assert tokens == [USDC_DEVNET_ADDRESS]
        payload = json.loads(seen[0].content)
        assert payload["jsonrpc"] == "2.0"
        assert payload["method"] == "getSupportedTokens"
        assert seen[0].headers["x-api-key"] == "secret"

    async def test_no_api_key_header_without_key(self):
        seen = []

        def handler(request):
            seen.append(request)
            return _result(request, {"tokens": []})

        async with _kora(handler) as kora:
            await kora.get_supported_tokens()

        assert "x-api-key" not in seen[0].headers

    async def test_json_rpc_error_is_rejection(self):
        def handler(request):
            return httpx.Response(
                200, json={"jsonrpc": "2.0", "id": 1, "error": {"code": -32000, "message": "bad tx"}}
            )

        async with _kora(handler) as kora:
            with pytest.raises(SignerRejected, match="bad tx"):
                await kora.sign_and_send("AAAA")

    async def test_transport_error_is_unavailable(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        async with _kora(handler) as kora:
            with pytest.raises(UpstreamSignerUnavailable):
                await kora.get_supported_tokens()

    async def test_http_error_status_is_unavailable(self):
        def handler(request):
            return httpx.Response(502, text="bad gateway")

        async with _kora(handler) as kora:
            with pytest.raises(UpstreamSignerUnavailable):
                await kora.estimate_fee("AAAA", USDC_DEVNET_ADDRESS)

    async def test_non_json_body_is_unavailable(self):
        def handler(request):
            return httpx.Response(200, text="<html>")

        async with _kora(handler) as kora:
            with pytest.raises(UpstreamSignerUnavailable):
                await kora.get_supported_tokens()

    def test_unavailable_error_hides_detail(self):
        body = UpstreamSignerUnavailable("Kora signTransaction request to http://10.0.0.1 failed").to_dict()
        assert body == {
            "error": "upstream_signer_unavailable",
            "message": "Fee abstraction service unavailable",
        }


class TestKoraMethods:
    """Method parameters and result mapping."""

    async def test_estimate_fee(self):
        signer = str(Keypair().pubkey())

        def handler(request):
            payload = json.loads(request.content)
            assert payload["method"] == "estimateTransactionFee"
            assert payload["params"] == {"transaction": "AAAA", "fee_token": USDC_DEVNET_ADDRESS}
            return _result(
                request,
                {
                    "fee_in_lamports": 5000,
                    "fee_in_token": 12,
                    "signer_pubkey": signer,
                    "payment_address": signer,
                },
            )

        async with _kora(handler) as kora:
            estimate = await kora.estimate_fee("AAAA", USDC_DEVNET_ADDRESS)

        assert estimate.fee_in_lamports == 5000
        assert estimate.fee_in_token == 12
        assert estimate.signer_address == signer

    async def test_sign_and_sign_and_send(self):
        def handler(request):
            payload = json.loads(request.content)
            return _result(request, {"signed_transaction": f"signed:{payload['method']}"})

        async with _kora(handler) as kora:
            assert await kora.sign("AAAA") == "signed:signTransaction"
            assert await kora.sign_and_send("AAAA") == "signed:signAndSendTransaction"

    async def test_missing_signed_transaction(self):
        def handler(request):
            return _result(request, {})

        async with _kora(handler) as kora:
            with pytest.raises(UpstreamSignerUnavailable, match="no signed transaction"):
                await kora.sign_and_send("AAAA")

    async def test_signer_address_from_config(self):
        def handler(request):
            raise AssertionError("Kora should not be called")

        address = str(Keypair().pubkey())
        async with _kora(handler, signer_address=address) as kora:
            assert await kora.get_signer_address() == address

    async def test_signer_address_from_kora(self):
        address = str(Keypair().pubkey())

        def handler(request):
            assert json.loads(request.content)["method"] == "getPayerSigner"
            return _result(request, {"signer_address": address})

        async with _kora(handler) as kora:
            assert await kora.get_signer_address() == address

    async def test_payment_instruction_is_token_transfer(self):
        """The fee is repaid by an SPL transfer between associated token accounts."""
        wallet = str(Keypair().pubkey())
        kora_signer = str(Keypair().pubkey())
        payment_address = str(Keypair().pubkey())

        def handler(request):
            return _result(
                request,
                {
                    "fee_in_lamports": 5000,
                    "fee_in_token": 25,
                    "signer_pubkey": kora_signer,
                    "payment_address": payment_address,
                },
            )

        async with _kora(handler) as kora:
            fee_ix = await kora.get_payment_instruction("AAAA", USDC_DEVNET_ADDRESS, wallet)

        assert fee_ix.signer_address == kora_signer
        assert fee_ix.payment_amount == 25
        instruction = Instruction.from_bytes(fee_ix.encoded_instruction)
        assert instruction.program_id == TOKEN_PROGRAM_ID
        accounts = [str(meta.pubkey) for meta in instruction.accounts]
        assert accounts[0] == derive_ata(wallet, USDC_DEVNET_ADDRESS)
        assert accounts[1] == derive_ata(payment_address, USDC_DEVNET_ADDRESS)
        assert accounts[2] == wallet
        assert instruction.accounts[2].is_signer

    async def test_payment_instruction_rejects_bad_wallet(self):
        def handler(request):
            raise AssertionError("Kora should not be called")

        async with _kora(handler) as kora:
            with pytest.raises(InvalidRequest, match="Invalid source wallet"):
                await kora.get_payment_instruction("AAAA", USDC_DEVNET_ADDRESS, "bogus")
