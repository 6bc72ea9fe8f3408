"""E2E resource server with split-payment protected routes.

Everything under PROTECTED_PATHS (default ``/api/``) needs a settled split
payment; ``/health`` stays free.
"""

import os
import random
from contextlib import asynccontextmanager

from dotenv import load_dotenv

load_dotenv()

PORT = int(os.getenv("PORT", "3001"))


def get_wallet_overview(wallet_address: str | None) -> dict:
    """Simulate a wallet analytics lookup."""
    return {
        "wallet": wallet_address,
        "balance_sol": round(random.uniform(0, 50), 4),
        "token_accounts": random.randint(0, 25),
        "transactions_30d": random.randint(0, 500),
    }


def main() -> None:
    """Start the resource server behind the payment gateway."""
    import uvicorn
    from fastapi import FastAPI, Request

    from x402split.config import FacilitatorConfig, GatewayConfig
    from x402split.http import FacilitatorClient, build_gateway
    from x402split.logging_setup import setup_logging

    setup_logging()

    facilitator = FacilitatorClient(FacilitatorConfig.from_env())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await facilitator.close()

    app = FastAPI(title="x402 Split Resource Server", lifespan=lifespan)
    build_gateway(app, GatewayConfig.from_env(), facilitator)

    @app.get("/health")
    async def health():
        return {"status": "ok", "routes": ["/api/wallet/overview (paid)"]}

    @app.get("/api/wallet/overview")
    async def wallet_overview(request: Request, wallet_address: str | None = None):
        return {
            "overview": get_wallet_overview(wallet_address),
            "payment_signature": request.state.payment_signature,
        }

    print(f"Server listening on port {PORT}")
    print(f"Health: http://localhost:{PORT}/health")

    uvicorn.run(app, host="0.0.0.0", port=PORT, log_level="warning")


if __name__ == "__main__":
    main()
