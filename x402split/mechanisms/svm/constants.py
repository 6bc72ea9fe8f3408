"""Constants for Solana (SVM) mechanisms."""

# CAIP-2 network identifiers
SOLANA_MAINNET_CAIP2 = "solana:5eykt4UsFv8P8NJdTREpY1vzqKqZKvdp"
SOLANA_DEVNET_CAIP2 = "solana:EtWTRABZaYq6iMfeYKouRu166VU2xqa1"

NETWORK_CONFIGS = {
    SOLANA_MAINNET_CAIP2: {"rpc_url": "https://api.mainnet-beta.solana.com"},
    SOLANA_DEVNET_CAIP2: {"rpc_url": "https://api.devnet.solana.com"},
}

DEFAULT_RPC_URL = "https://api.devnet.solana.com"

# USDC mints (6 decimals)
USDC_MAINNET_ADDRESS = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"
USDC_DEVNET_ADDRESS = "4zMMC9srt5Ri5X14GAgXhaHii3GnPAEERYPJgZJDncDU"

# System program transfer instruction layout:
#   [0:4]  u32 LE instruction discriminator (2 = Transfer)
#   [4:12] u64 LE lamports
SYSTEM_TRANSFER_DISCRIMINATOR = 2
SYSTEM_TRANSFER_DATA_LENGTH = 12
SYSTEM_TRANSFER_AMOUNT_OFFSET = 4

# Transfer amounts are encoded as u64
U64_MAX = 2**64 - 1

# Base fee charged per required signature
LAMPORTS_PER_SIGNATURE = 5000
