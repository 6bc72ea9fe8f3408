"""Solana (SVM) server implementation for the Split payment scheme."""

from typing import Any

from ....config import GatewayConfig
from ....errors import InvalidRequest
from ..utils import validate_svm_address
from .constants import PROTOCOL_VERSION
from .types import PaymentRequirement, PaymentSplit, calculate_split_amounts


class SplitSvmServer:
    """Solana server for the Split payment scheme.

    Builds per-request payment requirements: the primary (data provider)
    recipient is resolved per request, the developer and DAO shares come
    from configuration.
    """

    def __init__(self, config: GatewayConfig):
        self._config = config

    @property
    def config(self) -> GatewayConfig:
        return self._config

    @property
    def required_amount(self) -> int:
        return self._config.required_amount

    def build_splits(self, primary_recipient: str | None = None) -> list[PaymentSplit]:
        """Split template for one request.

        Raises:
            InvalidRequest: If ``primary_recipient`` is not a Solana address.
        """
        if primary_recipient is not None and not validate_svm_address(primary_recipient):
            raise InvalidRequest(f"Invalid wallet address: {primary_recipient}")

        config = self._config
        return [
            PaymentSplit(
                recipient=primary_recipient or config.data_provider_recipient,
                percentage=config.data_provider_percentage,
            ),
            PaymentSplit(recipient=config.developer_recipient, percentage=config.developer_percentage),
            PaymentSplit(recipient=config.dao_recipient, percentage=config.dao_percentage),
        ]

    def expected_transfers(self, primary_recipient: str | None = None) -> list[tuple[str, int]]:
        """The (recipient, amount) transfers a valid payment must contain."""
        return calculate_split_amounts(self._config.required_amount, self.build_splits(primary_recipient))

    def create_payment_requirement(
        self,
        supported: dict[str, Any],
        primary_recipient: str | None = None,
        message: str = "Payment required for this resource",
    ) -> PaymentRequirement:
        """Create the PaymentRequirement advertised with a 422 response.

        Args:
            supported: The facilitator's ``/supported`` document.
            primary_recipient: Per-request primary recipient, if any.
            message: Human-readable reason.

        Returns:
            PaymentRequirement for this request.
        """
        splits = self.build_splits(primary_recipient)
        # Fails early if the template itself is inconsistent
        calculate_split_amounts(self._config.required_amount, splits)

        return PaymentRequirement(
            required_amount=self._config.required_amount,
            supported_tokens=list(supported.get("supported_tokens") or self._config.supported_tokens),
            splits=splits,
            protocol_version=str(supported.get("version") or PROTOCOL_VERSION),
            message=message,
            payment_methods=list(supported.get("payment_methods") or []),
            capabilities=dict(supported.get("capabilities") or {}),
            api_endpoints=list(supported.get("api_endpoints") or []),
        )
