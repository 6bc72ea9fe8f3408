"""Client-side payment flow.

Drives one request to a protected resource through the x402 split
handshake: discover the requirement, build and verify the payment
transaction, settle it through the facilitator and re-request the resource
with proof of payment.

Example:
    ```python
    async with PaymentFlow(signer, facilitator, rpc_client, ClientConfig.from_env()) as flow:
        result = await flow.run("/api/wallet/overview", params={"wallet_address": owner})
        print(result.data, result.signature)
    ```
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Protocol

import httpx
from solana.exceptions import SolanaRpcException  # type: ignore
from solders.hash import Hash  # type: ignore
from solders.transaction import Transaction  # type: ignore

from ..config import ClientConfig
from ..errors import PaymentFlowError, UnexpectedResponse, X402SplitError
from ..http.facilitator_client import FacilitatorClient
from ..mechanisms.svm.constants import USDC_DEVNET_ADDRESS
from ..mechanisms.svm.signers import ClientSvmSigner
from ..mechanisms.svm.split.client import SplitSvmClient
from ..mechanisms.svm.split.constants import (
    PAYMENT_TOKEN_HEADER,
    PAYMENT_TX_HEADER,
    STATUS_PAYMENT_REQUIRED,
)
from ..mechanisms.svm.split.types import (
    PaymentRequirement,
    SettlementResult,
    SplitAmount,
    VerificationResult,
)
from ..mechanisms.svm.utils import encode_transaction

logger = logging.getLogger(__name__)

__all__ = ["FlowResult", "FlowState", "FlowStatus", "PaymentFlow"]


class FlowState(str, Enum):
    IDLE = "idle"
    DISCOVERING = "discovering"
    NO_PAYMENT_NEEDED = "no_payment_needed"
    ACCESSING_DIRECT = "accessing_direct"
    PAYMENT_REQUIRED = "payment_required"
    BUILDING = "building"
    VERIFYING = "verifying"
    SETTLING = "settling"
    ACCESSING_WITH_PROOF = "accessing_with_proof"
    DONE = "done"
    FAILED = "failed"


@dataclass
class FlowStatus:
    """One state transition, as reported to the status callback."""

    state: FlowState
    message: str
    reason: str | None = None


@dataclass
class FlowResult:
    """Outcome of a completed flow.

    Attributes:
        state: Always ``FlowState.DONE``.
        data: JSON body of the protected resource.
        payment_made: Whether a payment was settled.
        signature: Network signature of the settlement, if any.
        transaction: Base64 transaction that was settled, if any.
        requirement: The discovered payment requirement, if any.
        verification: Facilitator verification of the transaction, if any.
        estimated_cost: Size and naive fee estimate of the transaction.
    """

    state: FlowState
    data: Any = None
    payment_made: bool = False
    signature: str | None = None
    transaction: str | None = None
    requirement: PaymentRequirement | None = None
    verification: VerificationResult | None = None
    estimated_cost: dict[str, int] | None = None


class BlockhashSource(Protocol):
    """The part of ``solana.rpc.async_api.AsyncClient`` the flow relies on."""

    async def get_latest_blockhash(self, *args: Any, **kwargs: Any) -> Any:
        ...


StatusCallback = Callable[[FlowStatus], None]


class PaymentFlow:
    """Orchestrates one payment-gated request at a time.

    Args:
        signer: The paying wallet.
        facilitator: Client of the facilitator service.
        rpc_client: Solana RPC client used for fresh blockhashes.
        config: Resource API endpoint and fee-abstraction preference.
        api_client: Optional ``httpx.AsyncClient`` for the resource API.
        on_status: Called synchronously on every state transition.

    Cancelling ``run`` is honoured until settlement starts. Once the
    transaction has been handed to the facilitator, cancellation is
    ignored and the flow runs to completion: a broadcast transaction
    cannot be recalled.
    """

    def __init__(
        self,
        signer: ClientSvmSigner,
        facilitator: FacilitatorClient,
        rpc_client: BlockhashSource,
        config: ClientConfig,
        api_client: httpx.AsyncClient | None = None,
        on_status: StatusCallback | None = None,
    ):
        self._scheme = SplitSvmClient(signer)
        self._facilitator = facilitator
        self._rpc = rpc_client
        self._config = config
        self._owns_api_client = api_client is None
        self._api = api_client or httpx.AsyncClient(base_url=config.api_endpoint, timeout=30.0)
        self._on_status = on_status
        self._state = FlowState.IDLE

    @property
    def state(self) -> FlowState:
        return self._state

    async def __aenter__(self) -> PaymentFlow:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def close(self) -> None:
        if self._owns_api_client:
            await self._api.aclose()

    def _transition(self, state: FlowState, message: str, reason: str | None = None) -> None:
        self._state = state
        logger.info("[%s] %s", state.value, message)
        if self._on_status is not None:
            self._on_status(FlowStatus(state=state, message=message, reason=reason))

    async def run(self, endpoint: str, params: dict[str, str] | None = None) -> FlowResult:
        """Access ``endpoint``, paying for it if the gateway requires it.

        Raises:
            PaymentFlowError: The flow ended in ``FlowState.FAILED``; ``state``
                holds the state in which it failed and ``reason`` the error code.
            asyncio.CancelledError: Cancelled before settlement started.
        """
        self._state = FlowState.IDLE
        try:
            return await self._run(endpoint, params)
        except asyncio.CancelledError:
            self._transition(FlowState.FAILED, "Payment flow cancelled", reason="cancelled")
            raise
        except X402SplitError as e:
            failed_in = self._state
            self._transition(FlowState.FAILED, f"Payment failed: {e.message}", reason=e.error_code)
            raise PaymentFlowError(e.message, state=failed_in, reason=e.error_code) from e
        except Exception as e:
            failed_in = self._state
            logger.exception("Payment flow failed unexpectedly in %s", failed_in.value)
            self._transition(FlowState.FAILED, f"Payment failed: {e}", reason=X402SplitError.error_code)
            raise PaymentFlowError(str(e), state=failed_in, reason=X402SplitError.error_code) from e

    async def _run(self, endpoint: str, params: dict[str, str] | None) -> FlowResult:
        self._transition(FlowState.DISCOVERING, "Discovering payment requirements")
        response = await self._get(endpoint, params)

        if response.status_code == 200:
            self._transition(FlowState.NO_PAYMENT_NEEDED, "No payment required")
            self._transition(FlowState.ACCESSING_DIRECT, "Accessing resource directly")
            data = self._json(response)
            self._transition(FlowState.DONE, "Resource accessed without payment")
            return FlowResult(state=FlowState.DONE, data=data)

        requirement = self._requirement_from(response)
        self._transition(
            FlowState.PAYMENT_REQUIRED,
            f"Payment of {requirement.required_amount} across {len(requirement.splits)} recipients required",
        )

        self._transition(FlowState.BUILDING, "Building payment transaction")
        tx = await self._build(requirement)
        estimated_cost = self._scheme.estimate_transaction_cost(tx)

        self._transition(FlowState.VERIFYING, "Verifying transaction with facilitator")
        verification = await self._facilitator.verify(encode_transaction(tx))
        transfers = self._scheme.calculate_transfers(requirement)
        if not verification.valid or not verification.covers(transfers):
            raise UnexpectedResponse(
                f"Facilitator did not confirm the payment splits: {verification.message}"
            )

        signed = await self._scheme.sign(tx)
        signed_b64 = encode_transaction(signed)

        # Point of no return: the transaction may be broadcast from here on
        self._transition(FlowState.SETTLING, "Submitting payment to facilitator")
        settlement = asyncio.ensure_future(
            self._settle_and_access(endpoint, params, signed_b64, transfers)
        )
        while True:
            try:
                settled, data = await asyncio.shield(settlement)
                break
            except asyncio.CancelledError:
                if settlement.cancelled():
                    raise
                current = asyncio.current_task()
                if current is not None:
                    current.uncancel()
                logger.warning("Cancellation ignored: settlement already in flight")

        self._transition(FlowState.DONE, "Payment flow completed")
        return FlowResult(
            state=FlowState.DONE,
            data=data,
            payment_made=True,
            signature=settled.signature,
            transaction=signed_b64,
            requirement=requirement,
            verification=verification,
            estimated_cost=estimated_cost,
        )

    async def _build(self, requirement: PaymentRequirement) -> Transaction:
        blockhash = await self._latest_blockhash()
        tx = await self._scheme.build_payment_transaction(requirement, blockhash)

        if not (self._config.use_fee_abstraction and requirement.fee_abstraction):
            return tx

        fee_token = requirement.supported_tokens[0] if requirement.supported_tokens else USDC_DEVNET_ADDRESS
        signer_address = await self._facilitator.get_signer_address()
        tx = self._scheme.use_fee_payer(tx, signer_address)
        instruction = await self._facilitator.get_payment_instruction(
            encode_transaction(tx),
            fee_token,
            self._scheme.address,
        )
        logger.debug("Fee abstraction via %s paying in %s", instruction["signer_address"], fee_token)
        return self._scheme.prepare_with_fee(
            tx,
            instruction["payment_instruction"],
            instruction["signer_address"],
        )

    async def _settle_and_access(
        self,
        endpoint: str,
        params: dict[str, str] | None,
        transaction: str,
        transfers: list[tuple[str, int]],
    ) -> tuple[SettlementResult, Any]:
        settled = await self._facilitator.settle(
            transaction,
            [SplitAmount(recipient, amount) for recipient, amount in transfers],
            self._scheme.address,
        )
        if not settled.success or not settled.signature:
            raise UnexpectedResponse(f"Settlement was not confirmed: {settled.message}")

        self._transition(
            FlowState.ACCESSING_WITH_PROOF,
            f"Payment settled ({settled.signature}), accessing resource",
        )
        response = await self._get(
            endpoint,
            params,
            headers={PAYMENT_TX_HEADER: transaction, PAYMENT_TOKEN_HEADER: settled.signature},
        )
        if response.status_code != 200:
            raise UnexpectedResponse(
                f"Resource rejected the payment proof with HTTP {response.status_code}",
                status=response.status_code,
            )
        return settled, self._json(response)

    async def _latest_blockhash(self) -> Hash:
        try:
            response = await self._rpc.get_latest_blockhash()
        except (SolanaRpcException, httpx.HTTPError, OSError) as e:
            raise UnexpectedResponse(f"Could not fetch a recent blockhash: {e}") from e
        return response.value.blockhash

    async def _get(
        self,
        endpoint: str,
        params: dict[str, str] | None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        try:
            return await self._api.get(endpoint, params=params, headers=headers)
        except httpx.HTTPError as e:
            raise UnexpectedResponse(f"Resource API unreachable: {e}") from e

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError:
            return response.text

    @staticmethod
    def _requirement_from(response: httpx.Response) -> PaymentRequirement:
        if response.status_code != STATUS_PAYMENT_REQUIRED:
            raise UnexpectedResponse(
                f"Unexpected HTTP {response.status_code} while discovering payment requirements",
                status=response.status_code,
            )
        try:
            body = response.json()
            return PaymentRequirement.from_x402_dict(body["x402"])
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            raise UnexpectedResponse(
                "Payment required response carries no x402 requirement",
                status=response.status_code,
            ) from e

    async def check_infrastructure(self) -> dict[str, bool]:
        """Reachability of the resource API, the facilitator and the RPC node."""
        try:
            await self._api.get("/")
            api_available = True
        except httpx.HTTPError as e:
            logger.warning("Resource API not available: %s", e)
            api_available = False

        facilitator_available = await self._facilitator.health()

        try:
            await self._rpc.get_latest_blockhash()
            rpc_available = True
        except (SolanaRpcException, httpx.HTTPError, OSError) as e:
            logger.warning("RPC endpoint not available: %s", e)
            rpc_available = False

        return {
            "api_available": api_available,
            "facilitator_available": facilitator_available,
            "rpc_available": rpc_available,
        }
