"""
Models package - Data models for the validator setup.

Contains:
- NodeConfig, ValidatorRecord, CosmovisorConfig: JSON records on disk
- AppStatus, DependencyStatus, StakingInfo: status snapshots
"""

from .node import NodeConfig, ValidatorRecord, CosmovisorConfig
from .status import AppStatus, DependencyStatus, StakingInfo

__all__ = [
    "NodeConfig",
    "ValidatorRecord",
    "CosmovisorConfig",
    "AppStatus",
    "DependencyStatus",
    "StakingInfo",
]
