"""
crypto.py – Cryptographic operations for the keychain.

This module is the single place responsible for every cryptographic
concern in the application:

  - KeyDerivation turns the session passphrase into a 32-byte AES key using
    PBKDF2-HMAC-SHA256.  The salt and iteration count belong to the vault
    and are stored in its header, so the same passphrase always derives the
    same key for the same vault.
  - FieldCipher encrypts and decrypts one secret field (login, password or
    remark) with AES-256-GCM.  Each call draws a fresh random nonce and the
    result is a self-contained blob:

        nonce (12 bytes) || ciphertext || GCM tag (16 bytes)

  - A key-check blob (a known token encrypted at vault creation) lets the
    session verify the passphrase before any record is shown.

Nothing in this module touches the filesystem.
"""

import logging
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

logger = logging.getLogger("Keychain")

KDF_ALGORITHM = "pbkdf2-sha256"
KEY_SIZE = 32
SALT_SIZE = 16
NONCE_SIZE = 12
TAG_SIZE = 16

DEFAULT_ITERATIONS = 390_000

# Plaintext of the key-check blob stored in the vault header.
KEYCHECK_TOKEN = b"keychain-keycheck"


class CryptoError(Exception):
    """Raised when a field blob cannot be decrypted."""


class WrongPassphraseError(CryptoError):
    """Raised when the passphrase does not open the vault's key check."""


class KeyDerivation:
    """
    PBKDF2-HMAC-SHA256 parameters of one vault.

    Parameters
    ----------
    salt : bytes
        Random per-vault salt.
    iterations : int
        PBKDF2 work factor.
    """

    def __init__(self, salt: bytes, iterations: int = DEFAULT_ITERATIONS) -> None:
        if len(salt) < SALT_SIZE:
            raise ValueError(f"salt must be at least {SALT_SIZE} bytes")
        if iterations < 1:
            raise ValueError("iterations must be positive")
        self.salt = salt
        self.iterations = iterations

    @classmethod
    def generate(cls, iterations: int = DEFAULT_ITERATIONS) -> "KeyDerivation":
        """Return parameters for a new vault with a fresh random salt."""
        return cls(os.urandom(SALT_SIZE), iterations)

    def derive_key(self, passphrase: str) -> bytes:
        """
        Derive the 32-byte AES key for *passphrase*.

        Deterministic for a given salt and iteration count.
        """
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=KEY_SIZE,
            salt=self.salt,
            iterations=self.iterations,
        )
        return kdf.derive(passphrase.encode("utf-8"))

    def __eq__(self, other) -> bool:
        if not isinstance(other, KeyDerivation):
            return NotImplemented
        return self.salt == other.salt and self.iterations == other.iterations

    def __repr__(self) -> str:
        return f"KeyDerivation(iterations={self.iterations})"


class FieldCipher:
    """
    Encrypts and decrypts individual secret fields under one session key.

    Parameters
    ----------
    key : bytes
        32-byte key from KeyDerivation.derive_key().
    """

    def __init__(self, key: bytes) -> None:
        if len(key) != KEY_SIZE:
            raise ValueError(f"key must be {KEY_SIZE} bytes")
        self._aead = AESGCM(key)

    @classmethod
    def from_passphrase(cls, passphrase: str, kdf: KeyDerivation) -> "FieldCipher":
        return cls(kdf.derive_key(passphrase))

    # ------------------------------------------------------------------
    # Raw bytes
    # ------------------------------------------------------------------

    def encrypt(self, plaintext: bytes) -> bytes:
        """
        Encrypt *plaintext* and return ``nonce || ciphertext``.

        A fresh nonce is drawn on every call, so encrypting the same
        plaintext twice never produces the same blob.  Empty input is valid.
        """
        nonce = os.urandom(NONCE_SIZE)
        return nonce + self._aead.encrypt(nonce, plaintext, None)

    def decrypt(self, blob: bytes) -> bytes:
        """
        Split *blob* into nonce and ciphertext and return the plaintext.

        Raises CryptoError if the blob is too short to hold a nonce and tag,
        or if authentication fails (wrong key or tampered data).
        """
        if len(blob) < NONCE_SIZE + TAG_SIZE:
            raise CryptoError(
                f"blob of {len(blob)} bytes is shorter than nonce and tag"
            )
        nonce, ciphertext = blob[:NONCE_SIZE], blob[NONCE_SIZE:]
        try:
            return self._aead.decrypt(nonce, ciphertext, None)
        except InvalidTag as exc:
            raise CryptoError("authentication failed; wrong key or corrupted data") from exc

    # ------------------------------------------------------------------
    # Text helpers
    # ------------------------------------------------------------------

    def encrypt_text(self, text: str) -> bytes:
        return self.encrypt(text.encode("utf-8"))

    def decrypt_text(self, blob: bytes) -> str:
        """Decrypt *blob* and decode it as UTF-8; raises CryptoError on failure."""
        plaintext = self.decrypt(blob)
        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise CryptoError("decrypted field is not valid UTF-8") from exc

    # ------------------------------------------------------------------
    # Key check
    # ------------------------------------------------------------------

    def create_keycheck(self) -> bytes:
        """Encrypt the known key-check token for storage in the vault header."""
        return self.encrypt(KEYCHECK_TOKEN)

    def verify_keycheck(self, blob: bytes) -> bool:
        """
        Return True if *blob* decrypts to the key-check token under this key.

        Returns False for a wrong key or a corrupted blob.
        """
        try:
            return self.decrypt(blob) == KEYCHECK_TOKEN
        except CryptoError:
            logger.debug("Key check did not verify")
            return False
