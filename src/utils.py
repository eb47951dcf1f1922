"""
Shared utility functions for the validator setup.

Contains path helpers, server configuration and secure JSON persistence.
"""

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from networks import TICKFY_NETWORK, executable_name

logger = logging.getLogger(__name__)

# Secure file permissions (Unix only)
SECURE_FILE_MODE = 0o600  # Owner read/write only
SECURE_DIR_MODE = 0o700
EXECUTABLE_MODE = 0o755

DATA_DIR_ENV = "TICKFY_VALIDATOR_HOME"
PORT_ENV = "PORT"
DEFAULT_PORT = 8080


def get_app_dir() -> Path:
    """Get the application data directory (~/.tickfy-validator unless overridden)."""
    override = os.environ.get(DATA_DIR_ENV)
    app_dir = Path(override).expanduser() if override else Path.home() / ".tickfy-validator"
    app_dir.mkdir(parents=True, exist_ok=True)
    return app_dir


def set_secure_permissions(filepath: Path, mode: int = SECURE_FILE_MODE) -> None:
    """
    Set restrictive file permissions on Unix systems.

    No-op on Windows (NTFS uses ACLs, not Unix permissions).
    """
    if os.name == 'posix':
        try:
            os.chmod(filepath, mode)
        except OSError as e:
            logger.warning(f"Could not restrict permissions on {filepath}: {e}")


def write_json_secure(filepath: Path, data) -> None:
    """Write indented JSON through a temp file, then restrict it to the owner."""
    filepath = Path(filepath)
    filepath.parent.mkdir(parents=True, exist_ok=True)
    temp_path = filepath.with_suffix('.tmp')
    with open(temp_path, 'w', encoding='utf-8') as f:
        json.dump(data, f, indent=2)
    set_secure_permissions(temp_path)
    temp_path.replace(filepath)


def parse_timestamp(value, field: str = "createdAt") -> int:
    """Unix seconds from a stored JSON value; unreadable values become 0."""
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        logger.warning(f"Ignoring invalid {field} value {value!r}")
        return 0


def read_json(filepath: Path) -> Optional[dict]:
    """Read a JSON object, or None if the file is missing or unreadable."""
    try:
        with open(filepath, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except FileNotFoundError:
        return None
    except (json.JSONDecodeError, OSError, UnicodeDecodeError) as e:
        logger.warning(f"Failed to read {filepath}: {e}")
        return None
    return data if isinstance(data, dict) else None


# ============================================
# Data Directory Layout
# ============================================

class NodePaths:
    """Locations of every file the validator setup owns under one data directory."""

    def __init__(self, data_dir: str | Path):
        self.data_dir = Path(data_dir)

    def ensure(self) -> "NodePaths":
        """Create the data directory with owner-only permissions."""
        self.data_dir.mkdir(parents=True, exist_ok=True)
        set_secure_permissions(self.data_dir, SECURE_DIR_MODE)
        return self

    @property
    def bin_dir(self) -> Path:
        return self.data_dir / "bin"

    @property
    def binary(self) -> Path:
        return self.bin_dir / executable_name(TICKFY_NETWORK.daemon_name)

    @property
    def cosmovisor(self) -> Path:
        return self.bin_dir / executable_name("cosmovisor")

    @property
    def node_home(self) -> Path:
        return self.data_dir / "node"

    @property
    def genesis(self) -> Path:
        return self.node_home / "config" / "genesis.json"

    @property
    def node_toml(self) -> Path:
        return self.node_home / "config" / "config.toml"

    @property
    def cosmovisor_root(self) -> Path:
        return self.node_home / "cosmovisor"

    @property
    def wallets(self) -> Path:
        return self.data_dir / "wallets.json"

    @property
    def legacy_wallet(self) -> Path:
        return self.data_dir / "wallet.json"

    @property
    def node_config(self) -> Path:
        return self.data_dir / "node-config.json"

    @property
    def validator(self) -> Path:
        return self.data_dir / "validator.json"

    @property
    def cosmovisor_config(self) -> Path:
        return self.data_dir / "cosmovisor-config.json"

    @property
    def server_config(self) -> Path:
        return self.data_dir / "server-config.json"

    @property
    def logs_dir(self) -> Path:
        return self.data_dir / "logs"


# ============================================
# Server Configuration
# ============================================

@dataclass
class ServerConfig:
    """Dashboard server settings stored in server-config.json."""
    port: int
    data_dir: str

    def to_dict(self) -> dict:
        return {"port": self.port, "dataDir": self.data_dir}


def _env_port(default: int) -> int:
    value = os.environ.get(PORT_ENV)
    if not value:
        return default
    try:
        port = int(value)
    except ValueError:
        logger.warning(f"Ignoring invalid {PORT_ENV}={value!r}")
        return default
    return port if port > 0 else default


def load_server_config(data_dir: Optional[Path] = None) -> ServerConfig:
    """
    Load server-config.json, creating it on first run.

    PORT overrides the default port; a port stored in the file wins over
    both, mirroring how the dashboard has always been configured.
    """
    paths = NodePaths(data_dir or get_app_dir()).ensure()
    config = ServerConfig(port=_env_port(DEFAULT_PORT), data_dir=str(paths.data_dir))

    stored = read_json(paths.server_config)
    if stored is None:
        write_json_secure(paths.server_config, config.to_dict())
        return config

    if isinstance(stored.get("port"), int) and stored["port"] > 0:
        config.port = stored["port"]
    if stored.get("dataDir"):
        config.data_dir = stored["dataDir"]
    return config
