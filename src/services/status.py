"""
Status Aggregator - One read-only snapshot of the whole setup.

Combines the wallet vault, marker files on disk and, while the node runs,
the local RPC. Lower-level failures never escape: an unreachable RPC reports
height 0 / peers 0 and a failed balance query reports a zero balance, so a
partial outage never blocks the dashboard.
"""

import logging
from typing import Optional

from errors import NotFoundError, TransientIOError, ValidationError
from models import AppStatus, DependencyStatus, NodeConfig
from networks import Balance, BalanceFetcher, NodeRpcClient
from utils import NodePaths
from wallet import WalletVault, is_valid_address

from .supervisor import NodeSupervisor

logger = logging.getLogger(__name__)


class StatusAggregator:
    """Builds status, dependency and balance views. Issues no mutations."""

    def __init__(self, paths: NodePaths, vault: WalletVault, supervisor: NodeSupervisor,
                 rpc: Optional[NodeRpcClient] = None,
                 balances: Optional[BalanceFetcher] = None):
        self.paths = paths
        self.vault = vault
        self.supervisor = supervisor
        self.rpc = rpc or NodeRpcClient()
        self.balances = balances or BalanceFetcher()

    def get_status(self) -> AppStatus:
        status = AppStatus()

        try:
            status.wallet_address, _ = self.vault.get_active_wallet_info()
            status.has_wallet = True
        except NotFoundError:
            pass

        status.is_node_installed = self.paths.binary.exists()
        status.is_node_initialized = self.paths.node_config.exists()
        status.is_validator = self.paths.validator.exists()
        status.is_cosmovisor_installed = self.paths.cosmovisor.exists()

        status.is_node_running = self.supervisor.is_running()
        if status.is_node_running:
            try:
                status.current_block, status.peers = self.rpc.get_node_info()
            except TransientIOError as e:
                logger.debug(f"Node RPC unavailable: {e}")

        if status.is_node_initialized:
            config = NodeConfig.load(self.paths.node_config)
            if config is not None:
                status.moniker = config.moniker or None

        return status

    def get_dependencies_status(self) -> DependencyStatus:
        return DependencyStatus(
            is_node_installed=self.paths.binary.exists(),
            is_cosmovisor_installed=self.paths.cosmovisor.exists(),
        )

    def get_balance(self, address: Optional[str] = None) -> Balance:
        """
        Balance of an address, the active wallet by default.

        Raises:
            NotFoundError: no address given and no wallet configured
            ValidationError: the address is not a chain address
        """
        if address is None:
            address, _ = self.vault.get_active_wallet_info()
        elif not is_valid_address(address):
            raise ValidationError("Invalid address")
        return self.balances.get_balance(address)
