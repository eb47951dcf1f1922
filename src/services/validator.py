"""
Validator Registry - Validator creation and rewards through the node CLI.

The validator key is imported into the node's "test" keyring under the name
"validator". validator.json records what was submitted from this machine;
it is not verified against the chain.
"""

import logging

from errors import ExternalToolError, NotFoundError
from models import StakingInfo, ValidatorRecord
from networks import NetworkConfig, TICKFY_NETWORK
from utils import NodePaths
from wallet import WalletVault

from .commands import run_command
from .logging import LogRingBuffer

logger = logging.getLogger(__name__)

VALIDATOR_KEY_NAME = "validator"
KEYRING_BACKEND = "test"

# Fixed create-validator parameters
COMMISSION_MAX_RATE = "0.20"
COMMISSION_MAX_CHANGE_RATE = "0.01"
MIN_SELF_DELEGATION = "1"
STAKE_DENOM = "stake"


class ValidatorRegistry:
    """Creates the validator and manages its rewards."""

    def __init__(self, paths: NodePaths, vault: WalletVault, logs: LogRingBuffer,
                 network: NetworkConfig = TICKFY_NETWORK):
        self.paths = paths
        self.vault = vault
        self.logs = logs
        self.network = network

    def _node_args(self) -> list[str]:
        return ["--home", str(self.paths.node_home), "--keyring-backend", KEYRING_BACKEND]

    def _import_key(self, mnemonic: str) -> None:
        """Recover the validator key into the keyring; an existing key is kept."""
        try:
            run_command(
                [str(self.paths.binary), "keys", "add", VALIDATOR_KEY_NAME, "--recover",
                 *self._node_args()],
                stdin_text=mnemonic + "\n",
            )
        except ExternalToolError as e:
            if "already exists" not in e.output:
                self.logs.append(f"Key import error: {e.output.strip()}")

    def _consensus_pubkey(self) -> str:
        """The node's consensus public key as JSON, or "" if it cannot be read."""
        try:
            output = run_command(
                [str(self.paths.binary), "tendermint", "show-validator",
                 "--home", str(self.paths.node_home)],
                combine_output=False,
            )
        except ExternalToolError as e:
            logger.warning(f"Could not read validator pubkey: {e}")
            return ""
        return output.strip()

    def create_validator(self, moniker: str, commission: str, stake_amount: str,
                         password: str) -> ValidatorRecord:
        """
        Submit a create-validator transaction for the active wallet.

        Args:
            moniker: Public validator name
            commission: Commission rate, e.g. "0.10"
            stake_amount: Self-bond amount
            password: Wallet password

        Returns:
            The record written to validator.json

        Raises:
            NotFoundError: no wallet configured
            AuthenticationError: wrong password
            ExternalToolError: the transaction command failed
        """
        mnemonic = self.vault.get_mnemonic(password)

        self._import_key(mnemonic)

        try:
            run_command([
                str(self.paths.binary), "tx", "staking", "create-validator",
                "--amount", f"{stake_amount}{STAKE_DENOM}",
                "--pubkey", self._consensus_pubkey(),
                "--moniker", moniker,
                "--commission-rate", commission,
                "--commission-max-rate", COMMISSION_MAX_RATE,
                "--commission-max-change-rate", COMMISSION_MAX_CHANGE_RATE,
                "--min-self-delegation", MIN_SELF_DELEGATION,
                "--from", VALIDATOR_KEY_NAME,
                "--chain-id", self.network.chain_id,
                *self._node_args(),
                "--yes",
            ])
        except ExternalToolError as e:
            self.logs.append(f"Create validator error: {e.output.strip()}")
            raise

        record = ValidatorRecord.create(moniker, commission, stake_amount)
        record.save(self.paths.validator)
        self.logs.append("Validator created successfully")
        return record

    def get_validator_status(self) -> ValidatorRecord:
        record = ValidatorRecord.load(self.paths.validator)
        if record is None:
            raise NotFoundError("Validator not found")
        return record

    def get_staking_info(self) -> StakingInfo:
        """Staking summary from the local record; zeros when no validator exists."""
        symbol = self.network.display_denom
        zero = f"0 {symbol}"
        record = ValidatorRecord.load(self.paths.validator)
        if record is None:
            return StakingInfo(total_staked=zero, self_delegation=zero, delegations=zero)

        stake = record.stake or "0"
        return StakingInfo(
            total_staked=f"{stake} {symbol}",
            self_delegation=f"{stake} {symbol}",
            delegations=zero,
        )

    def withdraw_rewards(self, password: str) -> None:
        """
        Withdraw all delegation rewards to the validator key.

        Raises:
            NotFoundError: no wallet configured
            AuthenticationError: wrong password
            ExternalToolError: the transaction command failed
        """
        self.vault.get_mnemonic(password)
        address, _ = self.vault.get_active_wallet_info()

        run_command([
            str(self.paths.binary), "tx", "distribution", "withdraw-all-rewards",
            "--from", VALIDATOR_KEY_NAME,
            "--chain-id", self.network.chain_id,
            *self._node_args(),
            "--yes",
        ])
        self.logs.append(f"Rewards withdrawn to {address}")
