"""
Wallet package - Key management for the validator.

Contains:
- Envelope crypto: encrypt_data / decrypt_data
- Key derivation: mnemonic -> secp256k1 key -> bech32 address
- WalletVault: multi-wallet store with an active wallet
"""

from .crypto import (
    encrypt_data,
    decrypt_data,
    generate_salt,
    generate_mnemonic,
    validate_mnemonic,
    derive_private_key,
    derive_address,
    is_valid_address,
    COSMOS_DERIVATION_PATH,
)
from .manager import (
    WalletVault,
    WalletStore,
    WalletRecord,
    WalletSummary,
    MIN_PASSWORD_LENGTH,
)

__all__ = [
    # Crypto
    "encrypt_data",
    "decrypt_data",
    "generate_salt",
    "generate_mnemonic",
    "validate_mnemonic",
    "derive_private_key",
    "derive_address",
    "is_valid_address",
    "COSMOS_DERIVATION_PATH",
    # Manager
    "WalletVault",
    "WalletStore",
    "WalletRecord",
    "WalletSummary",
    "MIN_PASSWORD_LENGTH",
]
