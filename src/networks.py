"""
Tickfy Network - Chain configuration, local RPC and balance fetching.

The node exposes two local endpoints once it is running:
- CometBFT RPC on :26657 (/status, /net_info)
- Cosmos REST API on :1317 (bank balances)
"""

import logging
import platform
from dataclasses import dataclass, field
from typing import Optional

import httpx

from errors import TransientIOError

logger = logging.getLogger(__name__)

# Timeout for local RPC/REST queries. Downloads use no timeout at all.
RPC_TIMEOUT = 5.0

MICRO_PER_TOKEN = 1_000_000
LARGE_BALANCE_THRESHOLD = 1_000_000  # whole tokens; above this no decimals are shown


# ============================================
# Network Configuration
# ============================================

@dataclass
class NetworkConfig:
    """Configuration for the Tickfy chain and its tooling."""
    chain_id: str
    daemon_name: str
    account_prefix: str
    denom: str                      # Base (micro) denomination
    display_denom: str
    rpc_url: str
    rest_url: str
    release_url: str                # Daemon binary release directory
    genesis_url: str
    seeds: list[str] = field(default_factory=list)
    cosmovisor_version: str = "v1.5.0"
    fallback_denoms: tuple[str, ...] = ("stake",)


TICKFY_NETWORK = NetworkConfig(
    chain_id="tickfyblockchain",
    daemon_name="tickfy-blockchaind",
    account_prefix="tickfy",
    denom="utkfy",
    display_denom="TKFY",
    rpc_url="http://localhost:26657",
    rest_url="http://localhost:1317",
    release_url="https://github.com/Tickfy/tickfy-blockchain/releases/download/v1.0.0",
    genesis_url="https://raw.githubusercontent.com/Tickfy/tickfy-blockchain/main/network/genesis.json",
    seeds=["seed1.tickfy.io:26656", "seed2.tickfy.io:26656"],
)


# ============================================
# Platform-specific artifacts
# ============================================

def current_platform() -> tuple[str, str]:
    """Return (os, arch) as used in release artifact names."""
    system = platform.system().lower()
    machine = platform.machine().lower()
    os_name = {"darwin": "darwin", "windows": "windows"}.get(system, "linux")
    arch = "arm64" if machine in ("arm64", "aarch64") else "amd64"
    return os_name, arch


def executable_name(name: str) -> str:
    """Append .exe on Windows."""
    os_name, _ = current_platform()
    return f"{name}.exe" if os_name == "windows" else name


def get_binary_url(network: NetworkConfig = TICKFY_NETWORK) -> str:
    """Release URL of the daemon binary for this machine."""
    os_name, arch = current_platform()
    if os_name == "windows":
        return f"{network.release_url}/{network.daemon_name}-windows-amd64.exe"
    if os_name == "darwin":
        return f"{network.release_url}/{network.daemon_name}-darwin-{arch}"
    return f"{network.release_url}/{network.daemon_name}-linux-amd64"


def get_cosmovisor_url(network: NetworkConfig = TICKFY_NETWORK) -> str:
    """Release URL of the cosmovisor tarball for this machine."""
    version = network.cosmovisor_version
    base = f"https://github.com/cosmos/cosmos-sdk/releases/download/cosmovisor%2F{version}"
    os_name, arch = current_platform()
    if os_name == "darwin":
        return f"{base}/cosmovisor-{version}-darwin-{arch}.tar.gz"
    if os_name == "windows":
        return f"{base}/cosmovisor-{version}-windows-amd64.tar.gz"
    return f"{base}/cosmovisor-{version}-linux-amd64.tar.gz"


# ============================================
# Balance Formatting
# ============================================

@dataclass
class Balance:
    """Bank balance of an account in the chain's base denomination."""
    micro: int          # Raw amount (utkfy)
    amount: float       # Whole tokens
    display: str        # e.g. "1,234.50 TKFY"

    @classmethod
    def zero(cls, network: NetworkConfig = TICKFY_NETWORK) -> "Balance":
        return cls.from_micro(0, network)

    @classmethod
    def from_micro(cls, micro: int, network: NetworkConfig = TICKFY_NETWORK) -> "Balance":
        return cls(
            micro=micro,
            amount=micro / MICRO_PER_TOKEN,
            display=format_balance(micro, network.display_denom),
        )

    def to_dict(self) -> dict:
        """Dashboard representation."""
        return {"utkfy": self.micro, "tkfy": self.amount, "display": self.display}


def format_balance(micro: int, symbol: str = "TKFY") -> str:
    """
    Format a micro-denominated amount for display.

    1_500_000 -> "1.50 TKFY", 5_000_000 -> "5 TKFY",
    2_000_000_000_000 -> "2,000,000 TKFY".
    Fractions are truncated to cents and dropped when zero; balances of a
    million tokens or more are shown as integers.
    """
    micro = max(int(micro), 0)
    whole, fraction = divmod(micro, MICRO_PER_TOKEN)
    text = f"{whole:,}"
    if whole < LARGE_BALANCE_THRESHOLD:
        cents = fraction // (MICRO_PER_TOKEN // 100)
        if cents:
            text += f".{cents:02d}"
    return f"{text} {symbol}"


def format_address(address: str, chars: int = 6) -> str:
    """Format address as tickfy1abcdef...uvwxyz"""
    if len(address) <= chars * 2 + 3:
        return address
    return f"{address[:chars + 7]}...{address[-chars:]}"


# ============================================
# Local Endpoints
# ============================================

class BalanceFetcher:
    """Fetches bank balances from the node's REST API."""

    def __init__(self, network: NetworkConfig = TICKFY_NETWORK,
                 client: Optional[httpx.Client] = None):
        self.network = network
        self._client = client or httpx.Client(timeout=RPC_TIMEOUT)

    def get_balance(self, address: str) -> Balance:
        """
        Get the native balance of an address.

        Any connectivity or decoding failure yields a zero balance rather than
        an error: an unreachable node is the normal state before sync.
        """
        url = f"{self.network.rest_url}/cosmos/bank/v1beta1/balances/{address}"
        try:
            response = self._client.get(url)
            response.raise_for_status()
            balances = response.json().get("balances") or []
        except (httpx.HTTPError, ValueError, AttributeError) as e:
            logger.debug(f"Balance query for {address} failed: {e}")
            return Balance.zero(self.network)

        denoms = (self.network.denom,) + tuple(self.network.fallback_denoms)
        for entry in balances:
            if isinstance(entry, dict) and entry.get("denom") in denoms:
                try:
                    return Balance.from_micro(int(entry.get("amount", "0")), self.network)
                except (TypeError, ValueError):
                    return Balance.zero(self.network)
        return Balance.zero(self.network)


class NodeRpcClient:
    """Reads chain height and peer count from the local CometBFT RPC."""

    def __init__(self, network: NetworkConfig = TICKFY_NETWORK,
                 client: Optional[httpx.Client] = None):
        self.network = network
        self._client = client or httpx.Client(timeout=RPC_TIMEOUT)

    def _get_json(self, path: str) -> dict:
        try:
            response = self._client.get(f"{self.network.rpc_url}{path}")
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            raise TransientIOError(f"RPC {path} failed", e.response.status_code) from e
        except (httpx.HTTPError, ValueError) as e:
            raise TransientIOError(f"RPC {path} failed: {e}") from e

    def get_block_height(self) -> int:
        """Latest block height. Raises TransientIOError."""
        data = self._get_json("/status")
        try:
            return int(data["result"]["sync_info"]["latest_block_height"])
        except (KeyError, TypeError, ValueError) as e:
            raise TransientIOError(f"Unexpected /status payload: {e}") from e

    def get_peer_count(self) -> int:
        """Connected peers. Raises TransientIOError."""
        data = self._get_json("/net_info")
        try:
            return int(data["result"]["n_peers"])
        except (KeyError, TypeError, ValueError) as e:
            raise TransientIOError(f"Unexpected /net_info payload: {e}") from e

    def get_node_info(self) -> tuple[int, int]:
        """
        Return (height, peers).

        The height query must succeed; a failed peer query reports 0 peers.
        """
        height = self.get_block_height()
        try:
            peers = self.get_peer_count()
        except TransientIOError as e:
            logger.debug(f"Peer query failed: {e}")
            peers = 0
        return height, peers
