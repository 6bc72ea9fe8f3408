"""E2E facilitator server.

Verifies and settles split payments, fronting network fees through a Kora
co-signer configured by the KORA_* environment variables.
"""

import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv

load_dotenv()

PORT = int(os.getenv("PORT", "3000"))


def main() -> None:
    """Start the facilitator in front of the configured Kora node."""
    import uvicorn

    from x402split.config import KoraConfig
    from x402split.http import create_facilitator_app
    from x402split.kora import KoraClient
    from x402split.logging_setup import setup_logging
    from x402split.mechanisms.svm.split import SplitSvmFacilitator

    setup_logging()

    kora_config = KoraConfig.from_env()
    kora = KoraClient(kora_config)

    @asynccontextmanager
    async def lifespan(app):
        yield
        await kora.close()

    app = create_facilitator_app(
        SplitSvmFacilitator(kora, fee_token=kora_config.fee_token),
        lifespan=lifespan,
    )

    print(f"Facilitator listening on port {PORT}")
    print(f"Kora RPC: {kora_config.rpc_url}")

    uvicorn.run(app, host="0.0.0.0", port=PORT, log_level="warning")


if __name__ == "__main__":
    main()
