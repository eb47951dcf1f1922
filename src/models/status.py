"""
Status models.

Fixed-shape results for the dashboard's read paths. to_dict() emits the
camelCase keys the web client expects.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass
class AppStatus:
    """One consistent snapshot of wallet, node and validator state."""
    has_wallet: bool = False
    is_node_installed: bool = False
    is_node_initialized: bool = False
    is_node_running: bool = False
    is_validator: bool = False
    is_cosmovisor_installed: bool = False
    wallet_address: Optional[str] = None
    moniker: Optional[str] = None
    current_block: int = 0       # 0 when the node is down or RPC unreachable
    peers: int = 0

    def to_dict(self) -> dict:
        data = {
            "hasWallet": self.has_wallet,
            "isNodeInstalled": self.is_node_installed,
            "isNodeInitialized": self.is_node_initialized,
            "isNodeRunning": self.is_node_running,
            "isValidator": self.is_validator,
            "isCosmovisorInstalled": self.is_cosmovisor_installed,
            "currentBlock": self.current_block,
            "peers": self.peers,
        }
        if self.wallet_address:
            data["walletAddress"] = self.wallet_address
        if self.moniker:
            data["moniker"] = self.moniker
        return data


@dataclass
class DependencyStatus:
    """Which external binaries have been installed."""
    is_node_installed: bool
    is_cosmovisor_installed: bool

    def to_dict(self) -> dict:
        return {
            "isNodeInstalled": self.is_node_installed,
            "isCosmovisorInstalled": self.is_cosmovisor_installed,
        }


@dataclass
class StakingInfo:
    """Staking summary derived from the local validator record."""
    total_staked: str
    self_delegation: str
    delegations: str

    def to_dict(self) -> dict:
        return {
            "totalStaked": self.total_staked,
            "selfDelegation": self.self_delegation,
            "delegations": self.delegations,
        }
