"""
Wallet Crypto - Key derivation and mnemonic envelope encryption.

Tickfy accounts follow the Cosmos conventions:
- BIP-39 seed phrases (24 words, 256-bit entropy)
- BIP-32/44 HD derivation along m/44'/118'/0'/0/0
- secp256k1 compressed public keys, bech32 "tickfy" addresses
- SHA-256(password + salt) key, AES-256-GCM authenticated encryption

The mnemonic never exists unencrypted on disk.
"""

import hashlib
import secrets

# Cryptography
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from Crypto.Hash import RIPEMD160

# Key derivation
import bech32
from eth_account.hdaccount import key_from_seed, seed_from_mnemonic
from eth_keys import keys as eth_keys
from mnemonic import Mnemonic

from errors import AuthenticationError, ValidationError
from networks import TICKFY_NETWORK


# ============================================
# Constants
# ============================================

# AES-GCM constants
AES_KEY_SIZE = 32
AES_NONCE_SIZE = 12  # 96 bits (recommended for GCM)

SALT_SIZE = 16
MNEMONIC_STRENGTH = 256  # 24 words

# BIP-44 path for Cosmos SDK chains (coin type 118)
COSMOS_DERIVATION_PATH = "m/44'/118'/0'/0/0"

_MNEMO = Mnemonic("english")


# ============================================
# Envelope Encryption
# ============================================

def generate_salt() -> str:
    """Generate a per-wallet salt (16 random bytes, hex). Not a secret."""
    return secrets.token_bytes(SALT_SIZE).hex()


def derive_key(password: str, salt: str) -> bytes:
    """
    Derive the AES key from a password and salt.

    A single SHA-256 pass over password + salt, kept for compatibility with
    existing wallet stores. There is no work factor.
    """
    return hashlib.sha256((password + salt).encode('utf-8')).digest()


def encrypt_data(plaintext: str, password: str, salt: str) -> str:
    """
    Encrypt a secret string.

    Returns: hex(nonce || ciphertext || tag), with a fresh 96-bit nonce per call.
    """
    key = derive_key(password, salt)
    nonce = secrets.token_bytes(AES_NONCE_SIZE)

    aesgcm = AESGCM(key)
    sealed = aesgcm.encrypt(nonce, plaintext.encode('utf-8'), None)

    return (nonce + sealed).hex()


def decrypt_data(ciphertext_hex: str, password: str, salt: str) -> str:
    """
    Decrypt a secret string produced by encrypt_data.

    Raises: AuthenticationError for a wrong password or damaged data. The two
    cases are indistinguishable to the caller.
    """
    try:
        data = bytes.fromhex(ciphertext_hex)
    except (ValueError, TypeError) as e:
        raise AuthenticationError() from e

    if len(data) < AES_NONCE_SIZE:
        raise AuthenticationError()

    nonce, sealed = data[:AES_NONCE_SIZE], data[AES_NONCE_SIZE:]
    aesgcm = AESGCM(derive_key(password, salt))
    try:
        plaintext = aesgcm.decrypt(nonce, sealed, None)
    except InvalidTag as e:
        raise AuthenticationError() from e

    return plaintext.decode('utf-8')


# ============================================
# Mnemonics
# ============================================

def generate_mnemonic() -> str:
    """Generate a fresh 24-word BIP-39 mnemonic."""
    return _MNEMO.generate(strength=MNEMONIC_STRENGTH)


def normalize_mnemonic(mnemonic: str) -> str:
    """Collapse whitespace and lower-case the words."""
    return " ".join(mnemonic.lower().split())


def validate_mnemonic(mnemonic: str) -> str:
    """
    Check a mnemonic against the English wordlist and its checksum.

    Returns the normalized mnemonic.
    Raises: ValidationError if the phrase is malformed.
    """
    if not mnemonic or not mnemonic.strip():
        raise ValidationError("Invalid mnemonic")

    words = normalize_mnemonic(mnemonic)
    if not _MNEMO.check(words):
        raise ValidationError("Invalid mnemonic")
    return words


# ============================================
# Key Derivation
# ============================================

def derive_private_key(mnemonic: str, path: str = COSMOS_DERIVATION_PATH) -> bytes:
    """Derive the 32-byte secp256k1 private key for a mnemonic (no passphrase)."""
    words = validate_mnemonic(mnemonic)
    seed = seed_from_mnemonic(words, passphrase="")
    return key_from_seed(seed, path)


def public_key_to_address(compressed_pubkey: bytes, prefix: str = None) -> str:
    """Bech32 account address: RIPEMD160(SHA256(pubkey)) under the chain prefix."""
    prefix = prefix or TICKFY_NETWORK.account_prefix
    sha = hashlib.sha256(compressed_pubkey).digest()
    account_bytes = RIPEMD160.new(sha).digest()
    return bech32.bech32_encode(prefix, bech32.convertbits(account_bytes, 8, 5))


def derive_address(mnemonic: str) -> str:
    """
    Derive the chain address for a mnemonic.

    Deterministic: the same mnemonic always yields the same address, which
    is what duplicate-import detection relies on.

    Raises: ValidationError if the mnemonic is malformed.
    """
    private_key = derive_private_key(mnemonic)
    pubkey = eth_keys.PrivateKey(private_key).public_key.to_compressed_bytes()
    return public_key_to_address(pubkey)


def is_valid_address(address: str, prefix: str = None) -> bool:
    """Check that an address is bech32 with the expected prefix and a 20-byte payload."""
    prefix = prefix or TICKFY_NETWORK.account_prefix
    hrp, data = bech32.bech32_decode(address or "")
    if hrp != prefix or data is None:
        return False
    decoded = bech32.convertbits(data, 5, 8, False)
    return decoded is not None and len(decoded) == 20
