"""
Services package - Backend services for the validator setup.

Contains:
- ServiceContext: wires everything for one data directory
- NodeSupervisor: node process lifecycle
- LogRingBuffer: bounded node log
- StatusAggregator: status, dependency and balance views
- NodeInstaller: binary, node home and cosmovisor provisioning
- ValidatorRegistry: validator creation and rewards
"""

from .context import ServiceContext
from .installer import NodeInstaller
from .logging import LogRingBuffer, configure_logging
from .status import StatusAggregator
from .supervisor import NodeSupervisor, MODE_DIRECT, MODE_WRAPPED
from .validator import ValidatorRegistry

__all__ = [
    "ServiceContext",
    "NodeInstaller",
    "LogRingBuffer",
    "configure_logging",
    "StatusAggregator",
    "NodeSupervisor",
    "MODE_DIRECT",
    "MODE_WRAPPED",
    "ValidatorRegistry",
]
