"""
Service Context - Wires the backend services for one data directory.

Built once at startup and passed to every entry point; nothing here is a
module-level singleton.
"""

from pathlib import Path
from typing import Optional

import httpx

from networks import BalanceFetcher, NetworkConfig, NodeRpcClient, RPC_TIMEOUT, TICKFY_NETWORK
from utils import NodePaths
from wallet import WalletVault

from .installer import NodeInstaller
from .logging import DEFAULT_LOG_CAPACITY, LogRingBuffer
from .status import StatusAggregator
from .supervisor import NodeSupervisor
from .validator import ValidatorRegistry


class ServiceContext:
    """
    Owns the paths, log buffer, supervisor, vault and the services built on them.

    Args:
        data_dir: Root of all persisted state
        retention_days: Keep node logs on disk for this many days (0 = memory only)
        network: Chain configuration
        http_client: Client for local RPC/REST queries
        download_client: Client for release downloads
    """

    def __init__(self, data_dir: str | Path, retention_days: int = 0,
                 network: NetworkConfig = TICKFY_NETWORK,
                 http_client: Optional[httpx.Client] = None,
                 download_client: Optional[httpx.Client] = None,
                 log_capacity: int = DEFAULT_LOG_CAPACITY):
        self.network = network
        self.paths = NodePaths(data_dir).ensure()
        self.logs = LogRingBuffer(
            capacity=log_capacity,
            logs_dir=self.paths.logs_dir,
            retention_days=retention_days,
        )

        self._owned_clients: list[httpx.Client] = []
        if http_client is None:
            http_client = httpx.Client(timeout=RPC_TIMEOUT)
            self._owned_clients.append(http_client)
        if download_client is None:
            download_client = httpx.Client(timeout=None, follow_redirects=True)
            self._owned_clients.append(download_client)

        self.supervisor = NodeSupervisor(self.paths, self.logs, network)
        self.vault = WalletVault(self.paths.data_dir, is_node_running=self.supervisor.is_running)
        self.status = StatusAggregator(
            self.paths,
            self.vault,
            self.supervisor,
            rpc=NodeRpcClient(network, http_client),
            balances=BalanceFetcher(network, http_client),
        )
        self.installer = NodeInstaller(self.paths, self.logs, network, download_client)
        self.validator = ValidatorRegistry(self.paths, self.vault, self.logs, network)

    def close(self) -> None:
        """Kill the node if it is running and release HTTP connections."""
        self.supervisor.shutdown()
        for client in self._owned_clients:
            client.close()
        self._owned_clients.clear()

    def __enter__(self) -> "ServiceContext":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
