"""HTTP surfaces: facilitator app and client, resource gateway middleware."""

from .facilitator_app import create_facilitator_app
from .facilitator_client import FacilitatorClient
from .middleware import PaymentGatewayMiddleware, build_gateway

__all__ = [
    "FacilitatorClient",
    "PaymentGatewayMiddleware",
    "build_gateway",
    "create_facilitator_app",
]
