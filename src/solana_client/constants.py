"""Shared endpoints and chain constants for the Solana collaborators."""

DEFAULT_RPC_URL = "https://api.mainnet-beta.solana.com"
JUPITER_API_URL = "https://quote-api.jup.ag/v6"
DEXSCREENER_API_URL = "https://api.dexscreener.com/latest/dex"
COINGECKO_API_URL = "https://api.coingecko.com/api/v3"

NATIVE_MINT = "So11111111111111111111111111111111111111112"
LAMPORTS_PER_SOL = 1_000_000_000
DEFAULT_TOKEN_DECIMALS = 6

# Jupiter "slippage tolerance exceeded" custom program error seen in simulation.
BENIGN_SIMULATION_ERROR_CODE = "0x1771"

# JSON-RPC "Invalid param: could not find account".
RPC_ACCOUNT_NOT_FOUND_CODE = -32602


def default_rpc_url() -> str:
    """Return the default Solana JSON-RPC endpoint."""
    return DEFAULT_RPC_URL
