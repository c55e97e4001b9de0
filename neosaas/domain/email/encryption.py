"""
Credential vault for provider secrets.

AES-256-GCM with a key derived (PBKDF2-HMAC-SHA256, 100 000 iterations) from the
process secret and a per-call random salt. Output layout, base64 encoded:

    salt (16 bytes) || iv (12 bytes) || ciphertext + GCM tag
"""

import base64
import logging
import os

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from ...config import CREDENTIALS_SECRET_ENV_VARS, CREDENTIALS_SECRET_MIN_LENGTH

logger = logging.getLogger(__name__)

KEY_LENGTH = 32  # 256 bits
IV_LENGTH = 12
SALT_LENGTH = 16
PBKDF2_ITERATIONS = 100_000


class EncryptionConfigError(RuntimeError):
    """The process secret is missing or too short"""


def get_encryption_secret() -> str:
    """Read the vault secret from the first configured environment variable"""
    secret = None
    for name in CREDENTIALS_SECRET_ENV_VARS:
        secret = os.getenv(name)
        if secret:
            break

    if not secret:
        raise EncryptionConfigError(
            f"{' or '.join(CREDENTIALS_SECRET_ENV_VARS)} is required to encrypt provider credentials"
        )
    if len(secret) < CREDENTIALS_SECRET_MIN_LENGTH:
        raise EncryptionConfigError(
            f"Credential secret must be at least {CREDENTIALS_SECRET_MIN_LENGTH} characters"
        )
    return secret


def _derive_key(secret: str, salt: bytes) -> bytes:
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=KEY_LENGTH,
        salt=salt,
        iterations=PBKDF2_ITERATIONS,
    )
    return kdf.derive(secret.encode("utf-8"))


def encrypt(plaintext: str) -> str:
    """Encrypt a string; identical inputs give different outputs"""
    secret = get_encryption_secret()

    salt = os.urandom(SALT_LENGTH)
    iv = os.urandom(IV_LENGTH)
    key = _derive_key(secret, salt)

    ciphertext = AESGCM(key).encrypt(iv, plaintext.encode("utf-8"), None)
    return base64.b64encode(salt + iv + ciphertext).decode("ascii")


def decrypt(blob: str) -> str:
    """
    Decrypt a blob produced by :func:`encrypt`.

    Raises:
        EncryptionConfigError: secret missing/too short
        cryptography.exceptions.InvalidTag: wrong secret or tampered blob
        ValueError: blob too short to contain salt and iv
    """
    secret = get_encryption_secret()

    raw = base64.b64decode(blob)
    if len(raw) <= SALT_LENGTH + IV_LENGTH:
        raise ValueError("Encrypted credential blob is truncated")

    salt = raw[:SALT_LENGTH]
    iv = raw[SALT_LENGTH : SALT_LENGTH + IV_LENGTH]
    ciphertext = raw[SALT_LENGTH + IV_LENGTH :]

    key = _derive_key(secret, salt)
    return AESGCM(key).decrypt(iv, ciphertext, None).decode("utf-8")


def mask_sensitive_data(data: str, visible_chars: int = 4) -> str:
    """Mask a secret for display, keeping the first few characters"""
    if not data:
        return ""
    if len(data) <= visible_chars:
        return "*" * len(data)
    return data[:visible_chars] + "*" * (len(data) - visible_chars)
