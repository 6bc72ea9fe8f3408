"""FastAPI surface of the split-payment facilitator.

Endpoints:
    GET  /                          service banner
    GET  /health                    liveness
    GET  /supported                 capabilities and fee tokens
    POST /verify                    verify a transaction without broadcasting
    POST /settle                    append missing splits, co-sign, broadcast
    POST /get-payment-instruction   fee-repayment instruction for a transaction
    GET  /get-kora-signer           co-signer (fee payer) address
"""

import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from ..errors import InvalidRequest, UpstreamSignerUnavailable, X402SplitError
from ..mechanisms.svm.split.constants import PROTOCOL_VERSION
from ..mechanisms.svm.split.facilitator import SplitSvmFacilitator
from .schemas import PaymentInstructionRequest, SettleRequest, VerifyRequest

logger = logging.getLogger(__name__)


def _validation_message(exc: RequestValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(p) for p in error.get("loc", ()) if p != "body")
        parts.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    return "; ".join(parts) or "Invalid request body"


async def _handle_split_error(request: Request, exc: X402SplitError) -> JSONResponse:
    if isinstance(exc, UpstreamSignerUnavailable):
        logger.error("%s %s failed upstream: %s", request.method, request.url.path, exc.message)
    elif exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    else:
        logger.warning("%s %s rejected: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def _handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    error = InvalidRequest(_validation_message(exc))
    logger.warning("%s %s invalid body: %s", request.method, request.url.path, error.message)
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


def create_facilitator_app(
    facilitator: SplitSvmFacilitator,
    title: str = "x402 Split Facilitator",
    lifespan: Any = None,
) -> FastAPI:
    """Build the facilitator application around ``facilitator``.

    The app holds no per-request state; every handler delegates to the
    facilitator instance stored on ``app.state.facilitator``. ``lifespan`` is
    passed through to FastAPI, e.g. to close the co-signer client on shutdown.
    """
    app = FastAPI(title=title, version=PROTOCOL_VERSION, lifespan=lifespan)
    app.state.facilitator = facilitator

    app.add_exception_handler(X402SplitError, _handle_split_error)
    app.add_exception_handler(RequestValidationError, _handle_validation_error)

    @app.get("/")
    async def root() -> dict[str, Any]:
        return {
            "service": title,
            "version": PROTOCOL_VERSION,
            "scheme": facilitator.scheme,
        }

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "healthy"}

    @app.get("/supported")
    async def supported() -> dict[str, Any]:
        return await facilitator.supported()

    @app.post("/verify")
    async def verify(body: VerifyRequest) -> dict[str, Any]:
        result = await facilitator.verify(body.transaction)
        return result.to_response()

    @app.post("/settle")
    async def settle(body: SettleRequest) -> dict[str, Any]:
        result = await facilitator.settle(body.transaction, body.splits(), body.payer)
        return result.to_response()

    @app.post("/get-payment-instruction")
    async def get_payment_instruction(body: PaymentInstructionRequest) -> dict[str, str]:
        return await facilitator.get_payment_instruction(
            body.transaction,
            body.fee_token,
            body.source_wallet,
        )

    @app.get("/get-kora-signer")
    async def get_kora_signer() -> dict[str, str]:
        return {"signer_address": await facilitator.get_signer_address()}

    return app
