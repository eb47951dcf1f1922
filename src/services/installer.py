"""
Node Installer - Provisions the daemon binary, node home and cosmovisor.

Every step is idempotent: an already installed binary, an initialized home
or an installed cosmovisor makes the step a no-op. Downloads and commands
block the caller for their full duration; there is no timeout.
"""

import logging
import os
import shutil
import tarfile
from pathlib import Path
from typing import Callable, Optional

import httpx

from errors import ExternalToolError, NotFoundError, TransientIOError, ValidationError
from models import CosmovisorConfig, NodeConfig
from networks import (
    NetworkConfig,
    TICKFY_NETWORK,
    current_platform,
    executable_name,
    get_binary_url,
    get_cosmovisor_url,
)
from utils import EXECUTABLE_MODE, NodePaths

from .commands import run_command
from .logging import LogRingBuffer

logger = logging.getLogger(__name__)

DOWNLOAD_CHUNK_SIZE = 32 * 1024

ProgressCallback = Callable[[int], None]


class NodeInstaller:
    """
    Installs and initializes the node.

    Args:
        paths: Data directory layout
        logs: Buffer receiving operator-visible progress messages
        network: Chain configuration
        client: HTTP client for downloads (no timeout by default)
    """

    def __init__(self, paths: NodePaths, logs: LogRingBuffer,
                 network: NetworkConfig = TICKFY_NETWORK,
                 client: Optional[httpx.Client] = None):
        self.paths = paths
        self.logs = logs
        self.network = network
        self._client = client or httpx.Client(timeout=None, follow_redirects=True)

    # ============================================
    # Downloads
    # ============================================

    def _download(self, url: str, destination: Path,
                  progress: Optional[ProgressCallback] = None) -> None:
        """
        Stream a URL to a file, reporting integer percent when the size is known.

        The destination is only replaced once the download completes.

        Raises: TransientIOError on transport errors or a non-200 status.
        """
        destination.parent.mkdir(parents=True, exist_ok=True)
        partial = destination.with_name(destination.name + ".part")
        try:
            with self._client.stream("GET", url) as response:
                if response.status_code != 200:
                    raise TransientIOError(
                        f"Download not found (status {response.status_code}): {url}",
                        response.status_code,
                    )
                total = int(response.headers.get("Content-Length") or 0)
                downloaded = 0
                with open(partial, "wb") as f:
                    for chunk in response.iter_bytes(DOWNLOAD_CHUNK_SIZE):
                        f.write(chunk)
                        downloaded += len(chunk)
                        if progress is not None and total > 0:
                            progress(min(int(downloaded * 100 / total), 100))
        except httpx.HTTPError as e:
            partial.unlink(missing_ok=True)
            raise TransientIOError(f"Download failed: {e}") from e
        except TransientIOError:
            partial.unlink(missing_ok=True)
            raise
        partial.replace(destination)

    def _make_executable(self, path: Path) -> None:
        os_name, _ = current_platform()
        if os_name != "windows":
            os.chmod(path, EXECUTABLE_MODE)

    # ============================================
    # Node binary
    # ============================================

    def install_node(self, progress: Optional[ProgressCallback] = None) -> None:
        """Download the daemon binary into bin/ unless it is already there."""
        binary = self.paths.binary
        if binary.exists():
            return

        url = get_binary_url(self.network)
        self.logs.append(f"Downloading from: {url}")
        self._download(url, binary, progress)
        self._make_executable(binary)
        self.logs.append("Binary installed successfully")

    def init_node(self, moniker: str) -> None:
        """
        Initialize the node home, fetch genesis, configure seeds and record
        node-config.json.

        Raises:
            ValidationError: empty moniker
            NotFoundError: binary not installed
            ExternalToolError: `init` failed
        """
        moniker = (moniker or "").strip()
        if not moniker:
            raise ValidationError("Moniker is required")

        if self.paths.genesis.exists():
            return

        if not self.paths.binary.exists():
            raise NotFoundError("Node binary not found. Install it first.")

        self.logs.append(f"Initializing node with moniker: {moniker}")
        try:
            run_command([
                str(self.paths.binary), "init", moniker,
                "--chain-id", self.network.chain_id,
                "--home", str(self.paths.node_home),
            ])
        except ExternalToolError as e:
            self.logs.append(f"Init error: {e.output.strip()}")
            raise

        self._fetch_genesis()
        self._configure_seeds()

        NodeConfig(
            moniker=moniker,
            chain_id=self.network.chain_id,
            node_home=str(self.paths.node_home),
        ).save(self.paths.node_config)
        self.logs.append("Node initialized successfully")

    def _fetch_genesis(self) -> None:
        """Replace the generated genesis with the network's. Best effort."""
        try:
            self._download(self.network.genesis_url, self.paths.genesis)
        except TransientIOError as e:
            self.logs.append(f"Genesis download skipped: {e}")
            return
        self.logs.append("Genesis downloaded")

    def _configure_seeds(self) -> None:
        """Fill in the empty seeds entry of config.toml. Best effort."""
        config_path = self.paths.node_toml
        try:
            content = config_path.read_text(encoding="utf-8")
        except OSError as e:
            logger.warning(f"Could not read {config_path}: {e}")
            return

        seeds = ",".join(self.network.seeds)
        patched = content.replace('seeds = ""', f'seeds = "{seeds}"', 1)
        if patched != content:
            config_path.write_text(patched, encoding="utf-8")

    # ============================================
    # Cosmovisor
    # ============================================

    def install_cosmovisor(self, progress: Optional[ProgressCallback] = None) -> None:
        """
        Download and unpack cosmovisor into bin/.

        Raises:
            TransientIOError: download failed
            ExternalToolError: the archive could not be extracted
        """
        target = self.paths.cosmovisor
        if target.exists():
            self.logs.append("Cosmovisor already installed")
            return

        url = get_cosmovisor_url(self.network)
        archive = self.paths.bin_dir / "cosmovisor.tar.gz"
        self.logs.append(f"Downloading Cosmovisor from: {url}")
        self._download(url, archive, progress)

        self.logs.append("Extracting Cosmovisor...")
        try:
            with tarfile.open(archive, "r:gz") as tar:
                if hasattr(tarfile, "data_filter"):
                    tar.extractall(self.paths.bin_dir, filter="data")
                else:
                    tar.extractall(self.paths.bin_dir)
        except (tarfile.TarError, OSError) as e:
            self.logs.append(f"Extract error: {e}")
            raise ExternalToolError("Failed to extract cosmovisor", output=str(e)) from e
        finally:
            archive.unlink(missing_ok=True)

        if not target.exists():
            raise ExternalToolError(f"Archive did not contain {target.name}")

        self._make_executable(target)
        self.logs.append("Cosmovisor installed successfully")

    def setup_cosmovisor_dirs(self) -> None:
        """
        Lay out node/cosmovisor for upgrade supervision and write the marker.

            node/cosmovisor/
              genesis/bin/tickfy-blockchaind
              upgrades/
              current -> genesis

        Raises: NotFoundError if the daemon binary is not installed.
        """
        root = self.paths.cosmovisor_root
        genesis_dir = root / "genesis"
        genesis_bin = genesis_dir / "bin"
        genesis_bin.mkdir(parents=True, exist_ok=True)
        (root / "upgrades").mkdir(parents=True, exist_ok=True)

        target_binary = genesis_bin / executable_name(self.network.daemon_name)
        if not target_binary.exists():
            if not self.paths.binary.exists():
                raise NotFoundError("Node binary not found. Install it first.")
            shutil.copy2(self.paths.binary, target_binary)
            self._make_executable(target_binary)
            self.logs.append("Binary copied to cosmovisor/genesis/bin")

        current = root / "current"
        try:
            if current.is_symlink() or current.exists():
                current.unlink()
            current.symlink_to(genesis_dir, target_is_directory=True)
        except OSError as e:
            self.logs.append(f"Symlink warning: {e}")

        CosmovisorConfig(
            installed=True,
            auto_download=True,
            version=self.network.cosmovisor_version,
        ).save(self.paths.cosmovisor_config)
        self.logs.append("Cosmovisor directory structure created")
