"""E2E split-payment client.

One-shot client that requests a protected endpoint, pays for it through the
facilitator when asked to, and outputs a structured JSON result for the e2e
test framework to parse.
"""

import asyncio
import json
import os
import sys

from dotenv import load_dotenv

load_dotenv()

# Get environment variables
endpoint_path = os.getenv("ENDPOINT_PATH", "/api/wallet/overview")
wallet_address = os.getenv("WALLET_ADDRESS", "")
svm_private_key = os.getenv("SVM_PRIVATE_KEY", "")

if not svm_private_key:
    result = {
        "success": False,
        "error": "Missing required environment variable: SVM_PRIVATE_KEY",
    }
    print(json.dumps(result))
    sys.exit(1)


async def main() -> dict:
    """Run one payment flow. Returns the e2e result dict."""
    from solana.rpc.async_api import AsyncClient

    from x402split.client import PaymentFlow
    from x402split.config import ClientConfig, FacilitatorConfig
    from x402split.errors import PaymentFlowError
    from x402split.http import FacilitatorClient
    from x402split.logging_setup import setup_logging
    from x402split.mechanisms.svm.signers import KeypairSigner

    setup_logging()

    if svm_private_key.lstrip().startswith("["):
        signer = KeypairSigner.from_json_array(svm_private_key)
    else:
        signer = KeypairSigner.from_base58(svm_private_key)

    config = ClientConfig.from_env()
    params = {"wallet_address": wallet_address} if wallet_address else None

    async with (
        AsyncClient(config.rpc_url) as rpc,
        FacilitatorClient(FacilitatorConfig.from_env()) as facilitator,
        PaymentFlow(signer, facilitator, rpc, config) as flow,
    ):
        try:
            outcome = await flow.run(endpoint_path, params)
        except PaymentFlowError as e:
            return {
                "success": False,
                "error": e.message,
                "reason": e.reason,
                "failed_in": e.state.value if e.state else None,
            }

    return {
        "success": True,
        "data": outcome.data,
        "payment_made": outcome.payment_made,
        "signature": outcome.signature,
        "estimated_cost": outcome.estimated_cost,
    }


if __name__ == "__main__":
    e2e_result = asyncio.run(main())
    print(json.dumps(e2e_result))
    sys.exit(0 if e2e_result.get("success") else 1)
