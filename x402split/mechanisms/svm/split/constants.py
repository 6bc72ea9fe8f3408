"""Constants for Solana (SVM) split scheme."""

# Scheme identifier
SCHEME_SPLIT = "split"

# Protocol version advertised by /supported
PROTOCOL_VERSION = "0.1.0"

PAYMENT_METHODS = ["split"]

API_ENDPOINTS = [
    "/supported",
    "/verify",
    "/settle",
    "/get-payment-instruction",
    "/get-kora-signer",
]

# Percentages are expressed 0-100
MAX_TOTAL_PERCENTAGE = 100

# Proof headers sent back to the resource gateway
PAYMENT_TX_HEADER = "X-Payment-Tx"
PAYMENT_TOKEN_HEADER = "X-Payment-Token"
WALLET_ADDRESS_HEADER = "X-Wallet-Address"
WALLET_ADDRESS_QUERY = "wallet_address"

# Status codes of the gateway surface
STATUS_PAYMENT_REQUIRED = 422
STATUS_FACILITATOR_UNAVAILABLE = 503
