from solders.pubkey import Pubkey

# ============================================
# PROGRAM IDS
# ============================================
TOKEN_PROGRAM = Pubkey.from_string("TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA")

LAMPORTS_PER_SOL = 1_000_000_000

# ============================================
# ENDPOINTS
# ============================================
PUMPPORTAL_WS_URL = "wss://pumpportal.fun/api/data"
PUMP_TRADE_API_URL = "https://pumpapi.fun/api/trade"
DEFAULT_RPC_URL = "https://api.mainnet-beta.solana.com"
PUMP_FUN_TOKEN_URL = "https://pump.fun/{mint}"

# ============================================
# FEED CHANNELS
# ============================================
NEW_PAIRS_CHANNEL = "new_pairs"
