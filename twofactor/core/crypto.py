from __future__ import annotations

import hashlib
import logging
import os
from collections.abc import Callable

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from twofactor.core.config.settings import get_settings
from twofactor.core.exceptions import ConfigError, SecretDecryptionError

logger = logging.getLogger(__name__)

_IV_BYTES = 16
_BLOCK_BITS = algorithms.AES.block_size
_DELIMITER = ":"

MasterKeySource = Callable[[], str | None]


def settings_master_key() -> str | None:
    key = get_settings().encryption_key
    if key is None:
        return None
    return key.get_secret_value()


class SecretEncryptor:
    """AES-256-CBC encryption for TOTP secrets at rest.

    The cipher key is the SHA-256 digest of the operator's master key, so the
    master key may be any length. Each call to :meth:`encrypt` draws a fresh IV
    and serializes the result as ``"{iv_hex}:{cipher_hex}"``.
    """

    def __init__(self, key_source: MasterKeySource | None = None) -> None:
        self._key_source = key_source or settings_master_key
        self._key: bytes | None = None

    def encrypt(self, secret: str) -> str:
        iv = os.urandom(_IV_BYTES)
        padder = padding.PKCS7(_BLOCK_BITS).padder()
        padded = padder.update(secret.encode("utf-8")) + padder.finalize()
        encryptor = self._cipher(iv).encryptor()
        ciphertext = encryptor.update(padded) + encryptor.finalize()
        return f"{iv.hex()}{_DELIMITER}{ciphertext.hex()}"

    def decrypt(self, encrypted: str) -> str:
        # Resolve the key before parsing so a missing key surfaces as ConfigError.
        self._get_key()
        iv, ciphertext = _split(encrypted)
        decryptor = self._cipher(iv).decryptor()
        padded = decryptor.update(ciphertext) + decryptor.finalize()
        unpadder = padding.PKCS7(_BLOCK_BITS).unpadder()
        try:
            raw = unpadder.update(padded) + unpadder.finalize()
            return raw.decode("utf-8")
        except (ValueError, UnicodeDecodeError) as exc:
            logger.error("Encrypted secret failed integrity checks reason=%s", type(exc).__name__)
            raise SecretDecryptionError() from exc

    def _cipher(self, iv: bytes) -> Cipher[modes.CBC]:
        return Cipher(algorithms.AES(self._get_key()), modes.CBC(iv))

    def _get_key(self) -> bytes:
        if self._key is None:
            master_key = self._key_source()
            if master_key is None or not master_key.strip():
                raise ConfigError()
            self._key = hashlib.sha256(master_key.encode("utf-8")).digest()
        return self._key


def _split(encrypted: str) -> tuple[bytes, bytes]:
    parts = encrypted.split(_DELIMITER)
    if len(parts) != 2:
        logger.error("Encrypted secret is malformed reason=delimiter parts=%s", len(parts))
        raise SecretDecryptionError()
    iv_hex, cipher_hex = parts
    if len(iv_hex) % 2 or len(cipher_hex) % 2:
        logger.error("Encrypted secret is malformed reason=odd_hex_length")
        raise SecretDecryptionError()
    try:
        iv = bytes.fromhex(iv_hex)
        ciphertext = bytes.fromhex(cipher_hex)
    except ValueError as exc:
        logger.error("Encrypted secret is malformed reason=invalid_hex")
        raise SecretDecryptionError() from exc
    if len(iv) != _IV_BYTES:
        logger.error("Encrypted secret is malformed reason=iv_length length=%s", len(iv))
        raise SecretDecryptionError()
    if not ciphertext or len(ciphertext) % (_BLOCK_BITS // 8):
        logger.error("Encrypted secret is malformed reason=ciphertext_length length=%s", len(ciphertext))
        raise SecretDecryptionError()
    return iv, ciphertext
