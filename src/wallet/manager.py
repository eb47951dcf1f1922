"""
Wallet Manager - Multi-wallet vault.

Manages the wallet store (wallets.json): the ordered list of encrypted
wallets plus the active wallet pointer.

Every operation re-reads the store from disk and writes the whole store back,
so edits made by another process between calls are picked up. There is no
locking: concurrent structural edits to the same store from different callers
can lose one of the writes.
"""

import logging
import secrets
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional

from errors import ConflictError, NotFoundError, PreconditionError, ValidationError
from utils import NodePaths, parse_timestamp, read_json, write_json_secure

from .crypto import (
    decrypt_data,
    derive_address,
    encrypt_data,
    generate_mnemonic,
    generate_salt,
    validate_mnemonic,
)

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6


def generate_wallet_id() -> str:
    """Opaque wallet identifier (8 random bytes, hex)."""
    return secrets.token_hex(8)


@dataclass
class WalletRecord:
    """A stored wallet. The mnemonic is only held encrypted."""
    id: str
    address: str
    name: str
    encrypted_mnemonic: str     # hex(nonce || ciphertext || tag)
    salt: str                   # hex, not secret
    created_at: int             # Unix seconds

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "address": self.address,
            "name": self.name,
            "encryptedMnemonic": self.encrypted_mnemonic,
            "salt": self.salt,
            "createdAt": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "WalletRecord":
        return cls(
            id=data.get("id", ""),
            address=data.get("address", ""),
            name=data.get("name", ""),
            encrypted_mnemonic=data.get("encryptedMnemonic", ""),
            salt=data.get("salt", ""),
            created_at=parse_timestamp(data.get("createdAt")),
        )


@dataclass
class WalletSummary:
    """A wallet as shown in listings (no secret material)."""
    id: str
    name: str
    address: str
    created_at: int

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "address": self.address, "createdAt": self.created_at}


@dataclass
class WalletStore:
    """Ordered wallets (insertion order is display order) plus the active id."""
    wallets: list[WalletRecord] = field(default_factory=list)
    active_wallet_id: str = ""

    def to_dict(self) -> dict:
        return {
            "wallets": [w.to_dict() for w in self.wallets],
            "activeWalletId": self.active_wallet_id,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "WalletStore":
        wallets = [WalletRecord.from_dict(w) for w in data.get("wallets") or [] if isinstance(w, dict)]
        return cls(wallets=wallets, active_wallet_id=data.get("activeWalletId") or "")

    def get_by_id(self, wallet_id: str) -> Optional[WalletRecord]:
        for w in self.wallets:
            if w.id == wallet_id:
                return w
        return None

    def get_by_address(self, address: str) -> Optional[WalletRecord]:
        for w in self.wallets:
            if w.address == address:
                return w
        return None

    def active(self) -> Optional[WalletRecord]:
        """The active wallet, falling back to the first one when the pointer is unset or stale."""
        if not self.wallets:
            return None
        return self.get_by_id(self.active_wallet_id) or self.wallets[0]


class WalletVault:
    """
    CRUD over the persisted wallet store.

    Args:
        data_dir: Data directory holding wallets.json (and legacy wallet.json)
        is_node_running: Callback used to refuse deleting key material while the
            validator is running
    """

    def __init__(self, data_dir: str | Path,
                 is_node_running: Optional[Callable[[], bool]] = None):
        self.paths = NodePaths(data_dir)
        self._is_node_running = is_node_running or (lambda: False)

    # ============================================
    # Persistence
    # ============================================

    def _migrate_legacy(self) -> Optional[WalletStore]:
        """Adopt a single-wallet wallet.json as the sole record, then remove it."""
        legacy = read_json(self.paths.legacy_wallet)
        if legacy is None:
            return None

        record = WalletRecord.from_dict(legacy)
        if not record.address:
            return None

        record.id = generate_wallet_id()
        record.name = record.name or "Wallet 1"
        store = WalletStore(wallets=[record], active_wallet_id=record.id)
        self._save(store)
        try:
            self.paths.legacy_wallet.unlink()
        except OSError as e:
            logger.warning(f"Migrated legacy wallet but could not remove it: {e}")
        logger.info(f"Migrated legacy wallet {record.address} into wallet store")
        return store

    def _load(self) -> WalletStore:
        """Read the store. Missing or unreadable stores read as empty."""
        if not self.paths.wallets.exists():
            return self._migrate_legacy() or WalletStore()

        data = read_json(self.paths.wallets)
        if data is None:
            return WalletStore()
        return WalletStore.from_dict(data)

    def _save(self, store: WalletStore) -> None:
        write_json_secure(self.paths.wallets, store.to_dict())

    # ============================================
    # Wallet lifecycle
    # ============================================

    @staticmethod
    def _check_password(password: str) -> None:
        if not password or len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")

    def _new_record(self, store: WalletStore, name: str, mnemonic: str,
                    address: str, password: str) -> WalletRecord:
        salt = generate_salt()
        return WalletRecord(
            id=generate_wallet_id(),
            address=address,
            name=name.strip() if name and name.strip() else f"Wallet {len(store.wallets) + 1}",
            encrypted_mnemonic=encrypt_data(mnemonic, password, salt),
            salt=salt,
            created_at=int(time.time()),
        )

    def create_wallet(self, name: str, password: str) -> tuple[str, str, str]:
        """
        Create a wallet from a fresh 24-word mnemonic and make it active.

        Returns: (wallet_id, address, mnemonic). The mnemonic is returned only
        here; the caller must show it for backup.
        """
        self._check_password(password)
        mnemonic = generate_mnemonic()
        address = derive_address(mnemonic)

        store = self._load()
        record = self._new_record(store, name, mnemonic, address, password)
        store.wallets.append(record)
        store.active_wallet_id = record.id
        self._save(store)

        logger.info(f"Created wallet {record.id} ({address})")
        return record.id, address, mnemonic

    def import_wallet(self, name: str, mnemonic: str, password: str) -> tuple[str, str]:
        """
        Import a wallet from an existing mnemonic and make it active.

        Raises:
            ValidationError: malformed mnemonic or short password
            ConflictError: a wallet with the same address is already stored
        """
        words = validate_mnemonic(mnemonic)
        self._check_password(password)
        address = derive_address(words)

        store = self._load()
        if store.get_by_address(address) is not None:
            raise ConflictError("This wallet has already been imported")

        record = self._new_record(store, name, words, address, password)
        store.wallets.append(record)
        store.active_wallet_id = record.id
        self._save(store)

        logger.info(f"Imported wallet {record.id} ({address})")
        return record.id, address

    def list_wallets(self) -> tuple[list[WalletSummary], str]:
        """All wallets in display order, without secrets, plus the active id."""
        store = self._load()
        summaries = [
            WalletSummary(id=w.id, name=w.name, address=w.address, created_at=w.created_at)
            for w in store.wallets
        ]
        return summaries, store.active_wallet_id

    def set_active_wallet(self, wallet_id: str) -> None:
        """Raises: NotFoundError if the id is not in the store."""
        store = self._load()
        if store.get_by_id(wallet_id) is None:
            raise NotFoundError("Wallet not found")
        store.active_wallet_id = wallet_id
        self._save(store)

    def get_active_wallet_info(self) -> tuple[str, str]:
        """
        Return (address, name) of the active wallet.

        Falls back to the first wallet when the pointer is unset or stale.
        Raises: NotFoundError when the store is empty.
        """
        active = self._load().active()
        if active is None:
            raise NotFoundError("No wallet found")
        return active.address, active.name

    def has_wallet(self) -> bool:
        return bool(self._load().wallets)

    def delete_wallet(self, wallet_id: str) -> None:
        """
        Remove a wallet.

        Raises:
            PreconditionError: the node is running and may still need the key
            NotFoundError: unknown id
        """
        if self._is_node_running():
            raise PreconditionError("Stop the node before removing a wallet")

        store = self._load()
        if store.get_by_id(wallet_id) is None:
            raise NotFoundError("Wallet not found")

        store.wallets = [w for w in store.wallets if w.id != wallet_id]
        if store.active_wallet_id == wallet_id:
            store.active_wallet_id = store.wallets[0].id if store.wallets else ""
        self._save(store)

        logger.info(f"Deleted wallet {wallet_id}")

    def get_mnemonic(self, password: str, wallet_id: Optional[str] = None) -> str:
        """
        Decrypt the mnemonic of the given wallet (active wallet by default).

        Raises:
            NotFoundError: no such wallet / empty store
            AuthenticationError: wrong password
        """
        store = self._load()
        record = store.get_by_id(wallet_id) if wallet_id else store.active()
        if record is None:
            raise NotFoundError("Wallet not found")
        return decrypt_data(record.encrypted_mnemonic, password, record.salt)
