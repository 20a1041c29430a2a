import json
from pathlib import Path
from typing import Dict

import base58
from solders.keypair import Keypair # type: ignore
from solana.rpc.async_api import AsyncClient
from solana.rpc.types import TokenAccountOpts

from ..constants import LAMPORTS_PER_SOL, TOKEN_PROGRAM
from ..exceptions import WalletException


def load_keypair(wallet_path: str = "", private_key: str = "") -> Keypair:
    """
    Load the trading keypair.

    Accepts a Solana CLI keypair file (JSON array of 64 bytes) or a base58
    private key string, in that order of preference.
    """
    if wallet_path:
        try:
            key_array = json.loads(Path(wallet_path).read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise WalletException("Error reading Solana wallet keypair", path=wallet_path, error=str(e)) from e
        if not isinstance(key_array, list):
            raise WalletException("Invalid keypair format", path=wallet_path)
        try:
            return Keypair.from_bytes(bytes(key_array))
        except ValueError as e:
            raise WalletException("Invalid keypair bytes", path=wallet_path, error=str(e)) from e

    if private_key:
        try:
            return Keypair.from_bytes(base58.b58decode(private_key))
        except ValueError as e:
            raise WalletException("Invalid SOLANA_PRIVATE_KEY", error=str(e)) from e

    raise WalletException("Neither SOLANA_WALLET_PATH nor SOLANA_PRIVATE_KEY is set")


class WalletManager:
    def __init__(self, client: AsyncClient, keypair: Keypair):
        self.client = client
        self.payer = keypair
        self.pubkey = keypair.pubkey()

    @property
    def address(self) -> str:
        return str(self.pubkey)

    @property
    def private_key_b58(self) -> str:
        return base58.b58encode(bytes(self.payer)).decode("ascii")

    async def get_sol_balance(self) -> float:
        """Returns available SOL balance."""
        resp = await self.client.get_balance(self.pubkey)
        return (resp.value or 0) / LAMPORTS_PER_SOL

    async def get_token_holdings(self) -> Dict[str, float]:
        """
        Returns human-readable SPL token balances keyed by mint.

        Uses get_token_accounts_by_owner so that non-standard token accounts
        are counted too; balances of the same mint are summed. Raises
        WalletException if the RPC lookup fails.
        """
        holdings: Dict[str, float] = {}
        try:
            resp = await self.client.get_token_accounts_by_owner_json_parsed(
                self.pubkey,
                TokenAccountOpts(program_id=TOKEN_PROGRAM),
            )
        except Exception as e:
            raise WalletException("Token account lookup failed", owner=self.address, error=str(e)) from e

        for acc in resp.value or []:
            try:
                info = acc.account.data.parsed["info"]
                token_amount = info["tokenAmount"]
                amount = int(token_amount["amount"]) / 10 ** int(token_amount["decimals"])
                holdings[info["mint"]] = holdings.get(info["mint"], 0.0) + amount
            except (KeyError, TypeError, ValueError):
                continue
        return holdings

    async def get_token_balance(self, mint: str) -> float:
        """Returns human-readable balance of one mint (0 if not held)."""
        holdings = await self.get_token_holdings()
        return holdings.get(mint, 0.0)

