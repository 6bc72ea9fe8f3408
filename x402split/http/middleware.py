"""Resource gateway: x402 "payment required" middleware for Starlette/FastAPI.

Protected requests without proof get a 422 carrying the payment
requirement; requests with proof are verified against the facilitator
before they reach the route handler.
"""

import logging
from typing import Callable

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from ..config import GatewayConfig
from ..errors import FacilitatorUnavailable, X402SplitError
from ..mechanisms.svm.split.constants import (
    PAYMENT_TOKEN_HEADER,
    PAYMENT_TX_HEADER,
    STATUS_FACILITATOR_UNAVAILABLE,
    STATUS_PAYMENT_REQUIRED,
    WALLET_ADDRESS_HEADER,
    WALLET_ADDRESS_QUERY,
)
from ..mechanisms.svm.split.server import SplitSvmServer
from ..mechanisms.svm.split.types import VerificationResult
from .facilitator_client import FacilitatorClient

logger = logging.getLogger(__name__)

STATUS_PAYMENT_REJECTED = 402


def _service_unavailable() -> JSONResponse:
    return JSONResponse(
        status_code=STATUS_FACILITATOR_UNAVAILABLE,
        content={
            "error": FacilitatorUnavailable.error_code,
            "message": "Payment verification service unavailable",
        },
    )


class PaymentGatewayMiddleware(BaseHTTPMiddleware):
    """Gate path prefixes behind a verified split payment.

    Args:
        app: The ASGI application.
        server: Builds the per-request payment requirement.
        facilitator: Client of the facilitator service.
        protected_paths: Path prefixes that require payment. Defaults to the
            server configuration.

    Example:
        ```python
        app.add_middleware(
            PaymentGatewayMiddleware,
            server=SplitSvmServer(GatewayConfig.from_env()),
            facilitator=FacilitatorClient(FacilitatorConfig.from_env()),
        )
        ```

    On success the ``VerificationResult`` is available to handlers as
    ``request.state.payment``.
    """

    def __init__(
        self,
        app,
        server: SplitSvmServer,
        facilitator: FacilitatorClient,
        protected_paths: list[str] | None = None,
    ):
        super().__init__(app)
        self.server = server
        self.facilitator = facilitator
        self.protected_paths = protected_paths or list(server.config.protected_paths)

    def _is_protected(self, request: Request) -> bool:
        path = request.url.path
        return any(path.startswith(prefix) for prefix in self.protected_paths)

    async def dispatch(self, request: Request, call_next: Callable):
        if not self._is_protected(request):
            return await call_next(request)

        primary_recipient = (
            request.query_params.get(WALLET_ADDRESS_QUERY)
            or request.headers.get(WALLET_ADDRESS_HEADER)
            or None
        )
        payment_tx = request.headers.get(PAYMENT_TX_HEADER)
        payment_token = request.headers.get(PAYMENT_TOKEN_HEADER)

        try:
            if not payment_tx or not payment_token:
                return await self._payment_required(primary_recipient)
            verdict = await self._verify(primary_recipient, payment_tx, payment_token)
        except X402SplitError as e:
            if e.status_code >= 500:
                logger.error(
                    "Payment service unavailable for %s: %s (%s)",
                    request.url.path,
                    e.message,
                    e.error_code,
                )
                return _service_unavailable()
            return JSONResponse(status_code=e.status_code, content=e.to_dict())

        if isinstance(verdict, JSONResponse):
            return verdict

        logger.info("Payment %s verified for %s", payment_token, request.url.path)
        request.state.payment = verdict
        request.state.payment_signature = payment_token
        return await call_next(request)

    async def _payment_required(self, primary_recipient: str | None) -> JSONResponse:
        supported = await self.facilitator.supported()
        requirement = self.server.create_payment_requirement(supported, primary_recipient)
        return JSONResponse(
            status_code=STATUS_PAYMENT_REQUIRED,
            content={"error": "Payment required", "x402": requirement.to_x402_dict()},
        )

    async def _verify(
        self,
        primary_recipient: str | None,
        payment_tx: str,
        payment_token: str,
    ) -> VerificationResult | JSONResponse:
        """The verified payment, or the 402 response rejecting it."""
        expected = self.server.expected_transfers(primary_recipient)
        try:
            result = await self.facilitator.verify(payment_tx)
        except X402SplitError as e:
            # Upstream outages are not a verdict on the payment
            if e.status_code >= 500:
                raise
            logger.warning("Payment %s rejected by facilitator: %s", payment_token, e.message)
            return self._payment_rejected("Could not verify payment with facilitator")

        if not result.valid:
            logger.warning("Payment %s failed verification: %s", payment_token, result.message)
            return self._payment_rejected("Payment verification failed")
        if not result.covers(expected):
            logger.warning(
                "Payment %s does not cover the required splits (recovered %d of %d)",
                payment_token,
                result.total_recovered,
                self.server.required_amount,
            )
            return self._payment_rejected("Payment does not cover the required splits")
        return result

    def _payment_rejected(self, message: str) -> JSONResponse:
        return JSONResponse(
            status_code=STATUS_PAYMENT_REJECTED,
            content={
                "error": "Payment verification failed",
                "x402": {"message": message, "required_amount": self.server.required_amount},
            },
        )


def build_gateway(app, config: GatewayConfig, facilitator: FacilitatorClient) -> SplitSvmServer:
    """Install the payment gateway on ``app`` and return its split server."""
    server = SplitSvmServer(config)
    app.add_middleware(
        PaymentGatewayMiddleware,
        server=server,
        facilitator=facilitator,
        protected_paths=list(config.protected_paths),
    )
    return server
