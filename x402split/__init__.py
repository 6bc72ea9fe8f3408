"""x402 split-payment facilitator for Solana.

Splits a single resource payment across several recipients, settles it
through a fee-abstraction co-signer (Kora) and gates HTTP resources behind
the x402 "payment required" handshake.

Typical facilitator setup:
    ```python
    from x402split import KoraConfig
    from x402split.http import create_facilitator_app
    from x402split.kora import KoraClient
    from x402split.mechanisms.svm.split import SplitSvmFacilitator

    facilitator = SplitSvmFacilitator(KoraClient(KoraConfig.from_env()))
    app = create_facilitator_app(facilitator)
    ```
"""

from .config import ClientConfig, FacilitatorConfig, GatewayConfig, KoraConfig
from .errors import (
    EmptyTransaction,
    FacilitatorUnavailable,
    InvalidRequest,
    InvalidSplitConfig,
    MalformedTransaction,
    PaymentFlowError,
    SignerRejected,
    SigningFailure,
    UnexpectedResponse,
    UpstreamSignerUnavailable,
    X402SplitError,
)

__version__ = "0.1.0"

__all__ = [
    # Config
    "ClientConfig",
    "FacilitatorConfig",
    "GatewayConfig",
    "KoraConfig",
    # Errors
    "X402SplitError",
    "InvalidRequest",
    "MalformedTransaction",
    "EmptyTransaction",
    "InvalidSplitConfig",
    "SignerRejected",
    "UpstreamSignerUnavailable",
    "SigningFailure",
    "UnexpectedResponse",
    "FacilitatorUnavailable",
    "PaymentFlowError",
]
