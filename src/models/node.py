"""
Node models.

Small JSON records written under the data directory:
- NodeConfig: written once by init, read-only afterwards
- ValidatorRecord: local claim of validator status (not chain-verified)
- CosmovisorConfig: presence marks upgrade supervision as provisioned
"""

import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from utils import parse_timestamp, read_json, write_json_secure


@dataclass
class NodeConfig:
    """Node identity chosen at initialization."""
    moniker: str
    chain_id: str
    node_home: str

    def to_dict(self) -> dict:
        return {"moniker": self.moniker, "chainId": self.chain_id, "nodeHome": self.node_home}

    @classmethod
    def from_dict(cls, data: dict) -> "NodeConfig":
        return cls(
            moniker=data.get("moniker", ""),
            chain_id=data.get("chainId", ""),
            node_home=data.get("nodeHome", ""),
        )

    @classmethod
    def load(cls, path: Path) -> Optional["NodeConfig"]:
        data = read_json(path)
        return cls.from_dict(data) if data is not None else None

    def save(self, path: Path) -> None:
        write_json_secure(path, self.to_dict())


@dataclass
class ValidatorRecord:
    """A validator created from this machine."""
    moniker: str
    commission: str
    stake: str           # Whole tokens as entered by the operator
    created_at: int      # Unix seconds

    @classmethod
    def create(cls, moniker: str, commission: str, stake: str) -> "ValidatorRecord":
        return cls(moniker=moniker, commission=commission, stake=stake, created_at=int(time.time()))

    def to_dict(self) -> dict:
        return {
            "moniker": self.moniker,
            "commission": self.commission,
            "stake": self.stake,
            "createdAt": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ValidatorRecord":
        return cls(
            moniker=data.get("moniker", ""),
            commission=data.get("commission", ""),
            stake=data.get("stake", ""),
            created_at=parse_timestamp(data.get("createdAt")),
        )

    @classmethod
    def load(cls, path: Path) -> Optional["ValidatorRecord"]:
        data = read_json(path)
        return cls.from_dict(data) if data is not None else None

    def save(self, path: Path) -> None:
        write_json_secure(path, self.to_dict())


@dataclass
class CosmovisorConfig:
    """Upgrade supervisor marker."""
    installed: bool = True
    auto_download: bool = True
    version: str = ""

    def to_dict(self) -> dict:
        return {"installed": self.installed, "autoDownload": self.auto_download, "version": self.version}

    @classmethod
    def from_dict(cls, data: dict) -> "CosmovisorConfig":
        return cls(
            installed=bool(data.get("installed", False)),
            auto_download=bool(data.get("autoDownload", False)),
            version=data.get("version", ""),
        )

    @classmethod
    def load(cls, path: Path) -> Optional["CosmovisorConfig"]:
        data = read_json(path)
        return cls.from_dict(data) if data is not None else None

    def save(self, path: Path) -> None:
        write_json_secure(path, self.to_dict())
