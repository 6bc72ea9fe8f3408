"""Kora JSON-RPC client.

Kora is a paymaster node: it becomes the fee payer of a transaction and is
repaid in an SPL token through an instruction the payer adds to the
transaction before signing.
"""

from __future__ import annotations

import itertools
import logging
from typing import Any

import httpx
from solders.pubkey import Pubkey  # type: ignore
from spl.token.constants import TOKEN_PROGRAM_ID  # type: ignore
from spl.token.instructions import TransferParams, transfer  # type: ignore

from ..config import KoraConfig
from ..errors import InvalidRequest, SignerRejected, UpstreamSignerUnavailable
from ..mechanisms.svm.split.types import FeeAbstractionInstruction
from ..mechanisms.svm.utils import derive_ata, validate_svm_address
from .signer import FeeEstimate

logger = logging.getLogger(__name__)

__all__ = ["KoraClient"]


class KoraClient:
    """``FeeAbstractionSigner`` backed by a Kora RPC server.

    Args:
        config: Kora endpoint, API key and timeout.
        http_client: Optional pre-built ``httpx.AsyncClient`` (e.g. with a mock
            transport). When omitted the client owns its own connection pool.
    """

    def __init__(self, config: KoraConfig, http_client: httpx.AsyncClient | None = None):
        self._config = config
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=config.timeout)
        self._ids = itertools.count(1)

    async def __aenter__(self) -> "KoraClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _rpc(self, method: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params or {},
        }
        headers = {"Content-Type": "application/json"}
        if self._config.api_key:
            headers["x-api-key"] = self._config.api_key

        try:
            response = await self._client.post(self._config.rpc_url, json=payload, headers=headers)
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPError as e:
            logger.error("Kora %s request to %s failed: %s", method, self._config.rpc_url, e)
            raise UpstreamSignerUnavailable(f"Kora {method} request failed") from e
        except ValueError as e:
            logger.error("Kora %s returned a non-JSON body: %s", method, e)
            raise UpstreamSignerUnavailable(f"Kora {method} returned an invalid response") from e
        if not isinstance(body, dict):
            raise UpstreamSignerUnavailable(f"Kora {method} returned an invalid response")

        error = body.get("error")
        if error:
            message = error.get("message", str(error)) if isinstance(error, dict) else str(error)
            logger.warning("Kora %s rejected: %s", method, message)
            raise SignerRejected(f"Kora {method} rejected: {message}")

        result = body.get("result")
        if not isinstance(result, dict):
            raise UpstreamSignerUnavailable(f"Kora {method} returned no result")
        return result

    async def get_supported_tokens(self) -> list[str]:
        result = await self._rpc("getSupportedTokens")
        return list(result.get("tokens", []))

    async def estimate_fee(self, transaction: str, fee_token: str) -> FeeEstimate:
        result = await self._rpc(
            "estimateTransactionFee",
            {"transaction": transaction, "fee_token": fee_token},
        )
        return FeeEstimate(
            fee_in_lamports=int(result.get("fee_in_lamports", 0)),
            fee_in_token=int(result.get("fee_in_token", 0)),
            signer_address=result.get("signer_pubkey", ""),
            payment_address=result.get("payment_address", ""),
        )

    async def get_payment_instruction(
        self,
        transaction: str,
        fee_token: str,
        source_wallet: str,
    ) -> FeeAbstractionInstruction:
        """Build the SPL transfer that repays Kora for fronting the fee.

        Quotes the fee in ``fee_token`` and transfers it from the source
        wallet's token account to Kora's payment address token account.
        """
        if not validate_svm_address(fee_token):
            raise InvalidRequest(f"Invalid fee token mint: {fee_token}")
        if not validate_svm_address(source_wallet):
            raise InvalidRequest(f"Invalid source wallet: {source_wallet}")

        estimate = await self.estimate_fee(transaction, fee_token)
        signer_address = estimate.signer_address or await self.get_signer_address()
        payment_address = estimate.payment_address or signer_address

        instruction = transfer(
            TransferParams(
                program_id=TOKEN_PROGRAM_ID,
                source=Pubkey.from_string(derive_ata(source_wallet, fee_token)),
                dest=Pubkey.from_string(derive_ata(payment_address, fee_token)),
                owner=Pubkey.from_string(source_wallet),
                amount=estimate.fee_in_token,
            )
        )
        logger.debug(
            "Kora payment instruction: %s %s from %s to %s",
            estimate.fee_in_token,
            fee_token,
            source_wallet,
            payment_address,
        )
        return FeeAbstractionInstruction(
            encoded_instruction=bytes(instruction),
            signer_address=signer_address,
            payment_amount=estimate.fee_in_token,
            payment_token=fee_token,
        )

    async def sign(self, transaction: str) -> str:
        result = await self._rpc("signTransaction", {"transaction": transaction})
        return self._signed_transaction(result, "signTransaction")

    async def sign_and_send(self, transaction: str) -> str:
        result = await self._rpc("signAndSendTransaction", {"transaction": transaction})
        return self._signed_transaction(result, "signAndSendTransaction")

    async def get_signer_address(self) -> str:
        if self._config.signer_address:
            return self._config.signer_address
        result = await self._rpc("getPayerSigner")
        address = result.get("signer_address", "")
        if not address:
            raise UpstreamSignerUnavailable("Kora getPayerSigner returned no signer address")
        return address

    @staticmethod
    def _signed_transaction(result: dict[str, Any], method: str) -> str:
        signed = result.get("signed_transaction")
        if not signed:
            raise UpstreamSignerUnavailable(f"Kora {method} returned no signed transaction")
        return signed
