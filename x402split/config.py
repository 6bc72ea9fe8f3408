"""Configuration objects.

Each service receives its configuration explicitly at construction time.
``from_env()`` builds a config from environment variables (and a ``.env``
file, if present).
"""

import os
from dataclasses import dataclass, field

from dotenv import find_dotenv, load_dotenv

from .mechanisms.svm.constants import DEFAULT_RPC_URL, USDC_DEVNET_ADDRESS
from .mechanisms.svm.utils import get_network_config

DEFAULT_KORA_RPC_URL = "http://localhost:8080"
DEFAULT_FACILITATOR_URL = "http://localhost:3000"
DEFAULT_API_ENDPOINT = "http://localhost:3001"
DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_REQUIRED_PAYMENT = 1_000_000

# Example recipients of the default split template
DEFAULT_DATA_PROVIDER_RECIPIENT = "5oo5EhwdroKz5Jgrm2ezKsXrWrAVC2guejze8rGc1Kvo"
DEFAULT_DEVELOPER_RECIPIENT = "2jririfhBQ6qkcyiS1G4hjxgoz2zVUhEC3dv38LukgTa"
DEFAULT_DAO_RECIPIENT = "3njbEQNmCTh3omVFrkLcq92MZkQ9Dfrvn6LN6SKHpVmr"


def _load_env() -> None:
    # Resolve .env from the working directory of the running service
    load_dotenv(find_dotenv(usecwd=True))


def _split_list(value: str | None) -> list[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


@dataclass
class KoraConfig:
    """Connection settings for the Kora co-signing service."""

    rpc_url: str = DEFAULT_KORA_RPC_URL
    api_key: str = ""
    fee_token: str = USDC_DEVNET_ADDRESS
    signer_address: str = ""
    timeout: float = DEFAULT_TIMEOUT_SECONDS

    @classmethod
    def from_env(cls) -> "KoraConfig":
        _load_env()
        return cls(
            rpc_url=os.getenv("KORA_RPC_URL", DEFAULT_KORA_RPC_URL),
            api_key=os.getenv("KORA_API_KEY", ""),
            fee_token=os.getenv("KORA_FEE_TOKEN", USDC_DEVNET_ADDRESS),
            signer_address=os.getenv("KORA_SIGNER_ADDRESS", ""),
            timeout=float(os.getenv("KORA_TIMEOUT", str(DEFAULT_TIMEOUT_SECONDS))),
        )


@dataclass
class FacilitatorConfig:
    """Where clients and gateways reach the facilitator."""

    url: str = DEFAULT_FACILITATOR_URL
    timeout: float = DEFAULT_TIMEOUT_SECONDS

    @classmethod
    def from_env(cls) -> "FacilitatorConfig":
        _load_env()
        return cls(
            url=os.getenv("FACILITATOR_URL", DEFAULT_FACILITATOR_URL),
            timeout=float(os.getenv("FACILITATOR_TIMEOUT", str(DEFAULT_TIMEOUT_SECONDS))),
        )


@dataclass
class GatewayConfig:
    """Pricing and split template of a protected resource server.

    Attributes:
        required_amount: Price per request in minor units of the fee token.
        supported_tokens: Tokens advertised when the facilitator lists none.
        data_provider_recipient: Fallback for the per-request primary recipient.
        developer_recipient: Developer share recipient.
        dao_recipient: DAO share recipient.
        data_provider_percentage / developer_percentage / dao_percentage:
            Split percentages, in that order.
        protected_paths: Path prefixes that require payment.
    """

    required_amount: int = DEFAULT_REQUIRED_PAYMENT
    supported_tokens: list[str] = field(default_factory=lambda: [USDC_DEVNET_ADDRESS])
    data_provider_recipient: str = DEFAULT_DATA_PROVIDER_RECIPIENT
    developer_recipient: str = DEFAULT_DEVELOPER_RECIPIENT
    dao_recipient: str = DEFAULT_DAO_RECIPIENT
    data_provider_percentage: float = 70
    developer_percentage: float = 20
    dao_percentage: float = 10
    protected_paths: list[str] = field(default_factory=lambda: ["/api/"])

    @classmethod
    def from_env(cls) -> "GatewayConfig":
        _load_env()
        return cls(
            required_amount=int(os.getenv("REQUIRED_PAYMENT", str(DEFAULT_REQUIRED_PAYMENT))),
            supported_tokens=_split_list(os.getenv("SUPPORTED_TOKENS")) or [USDC_DEVNET_ADDRESS],
            data_provider_recipient=os.getenv(
                "DATA_PROVIDER_FEE_RECIPIENT", DEFAULT_DATA_PROVIDER_RECIPIENT
            ),
            developer_recipient=os.getenv("DEVELOPER_FEE_RECIPIENT", DEFAULT_DEVELOPER_RECIPIENT),
            dao_recipient=os.getenv("DAO_FEE_RECIPIENT", DEFAULT_DAO_RECIPIENT),
            protected_paths=_split_list(os.getenv("PROTECTED_PATHS")) or ["/api/"],
        )


@dataclass
class ClientConfig:
    """Settings of the paying client.

    ``SOLANA_RPC_URL`` wins over the public endpoint of ``SOLANA_NETWORK``.
    """

    api_endpoint: str = DEFAULT_API_ENDPOINT
    rpc_url: str = DEFAULT_RPC_URL
    use_fee_abstraction: bool = True

    @classmethod
    def from_env(cls) -> "ClientConfig":
        _load_env()
        return cls(
            api_endpoint=os.getenv("API_ENDPOINT", DEFAULT_API_ENDPOINT),
            rpc_url=os.getenv("SOLANA_RPC_URL")
            or get_network_config(os.getenv("SOLANA_NETWORK", "devnet"))["rpc_url"],
            use_fee_abstraction=os.getenv("USE_FEE_ABSTRACTION", "true").lower() != "false",
        )
