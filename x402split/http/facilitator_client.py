"""httpx client for the facilitator HTTP surface.

Used by the resource gateway (``/supported``, ``/verify``) and by paying
clients (everything else). Error bodies are turned back into the typed
errors of :mod:`x402split.errors`.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from ..config import FacilitatorConfig
from ..errors import FacilitatorUnavailable, UnexpectedResponse, error_from_body
from ..mechanisms.svm.split.types import SettlementResult, SplitAmount, VerificationResult

logger = logging.getLogger(__name__)

__all__ = ["FacilitatorClient"]


class FacilitatorClient:
    """Async client for a split-payment facilitator.

    Args:
        config: Facilitator URL and timeout.
        http_client: Optional pre-built ``httpx.AsyncClient``. When omitted the
            client owns its own connection pool.
    """

    def __init__(self, config: FacilitatorConfig, http_client: httpx.AsyncClient | None = None):
        self._config = config
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=config.timeout)

    @property
    def url(self) -> str:
        return self._config.url.rstrip("/")

    async def __aenter__(self) -> FacilitatorClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _request(self, method: str, path: str, json: dict[str, Any] | None = None) -> dict[str, Any]:
        url = f"{self.url}{path}"
        try:
            response = await self._client.request(method, url, json=json)
        except httpx.HTTPError as e:
            logger.warning("Facilitator %s %s unreachable: %s", method, url, e)
            raise FacilitatorUnavailable(f"Facilitator unreachable at {self.url}") from e

        try:
            body = response.json()
        except ValueError:
            body = None

        if response.is_success:
            if not isinstance(body, dict):
                raise UnexpectedResponse(
                    f"Facilitator {path} returned a non-JSON body", status=response.status_code
                )
            return body

        if isinstance(body, dict) and "error" in body:
            raise error_from_body(body, response.status_code)
        if response.status_code in (502, 503, 504):
            raise FacilitatorUnavailable(f"Facilitator {path} returned HTTP {response.status_code}")
        raise UnexpectedResponse(
            f"Facilitator {path} returned HTTP {response.status_code}", status=response.status_code
        )

    async def health(self) -> bool:
        """True if the facilitator answers its liveness endpoint."""
        try:
            await self._request("GET", "/health")
        except (FacilitatorUnavailable, UnexpectedResponse):
            return False
        return True

    async def supported(self) -> dict[str, Any]:
        return await self._request("GET", "/supported")

    async def get_supported_tokens(self) -> list[str]:
        supported = await self.supported()
        return list(supported.get("supported_tokens") or [])

    async def verify(self, transaction: str) -> VerificationResult:
        body = await self._request("POST", "/verify", {"transaction": transaction})
        return VerificationResult.from_response(body)

    async def settle(
        self,
        transaction: str,
        payment_splits: list[SplitAmount],
        payer: str,
    ) -> SettlementResult:
        body = await self._request(
            "POST",
            "/settle",
            {
                "transaction": transaction,
                "payment_splits": [s.to_dict() for s in payment_splits],
                "payer": payer,
            },
        )
        return SettlementResult.from_response(body)

    async def get_payment_instruction(
        self,
        transaction: str,
        fee_token: str,
        source_wallet: str,
    ) -> dict[str, str]:
        """Fee-repayment instruction; ``{payment_instruction, signer_address}``."""
        body = await self._request(
            "POST",
            "/get-payment-instruction",
            {"transaction": transaction, "fee_token": fee_token, "source_wallet": source_wallet},
        )
        if not body.get("payment_instruction") or not body.get("signer_address"):
            raise UnexpectedResponse("Facilitator returned an incomplete payment instruction")
        return {
            "payment_instruction": body["payment_instruction"],
            "signer_address": body["signer_address"],
        }

    async def get_signer_address(self) -> str:
        body = await self._request("GET", "/get-kora-signer")
        address = body.get("signer_address")
        if not address:
            raise UnexpectedResponse("Facilitator returned no signer address")
        return address
