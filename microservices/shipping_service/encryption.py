"""
Credential encryption for shipping provider accounts

AES-256-GCM with a 16-byte IV and 16-byte tag. Ciphertext is stored as
``ivHex:tagHex:encryptedHex`` so rows written by earlier deployments stay
readable.
"""

import json
import logging
import os
from typing import Any, Dict, Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

logger = logging.getLogger(__name__)

IV_LENGTH = 16
TAG_LENGTH = 16
KEY_LENGTH = 32
KDF_SALT = b"shipping-provider-salt"
KDF_ITERATIONS = 100000


class EncryptionError(Exception):
    """Base exception for encryption errors"""
    pass


class CredentialDecryptionError(EncryptionError):
    """Ciphertext is malformed or failed authentication"""
    pass


def derive_key(secret: str) -> bytes:
    """64 hex chars are used as the raw key; anything else goes through PBKDF2"""
    if len(secret) == KEY_LENGTH * 2:
        try:
            return bytes.fromhex(secret)
        except ValueError:
            pass

    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=KEY_LENGTH,
        salt=KDF_SALT,
        iterations=KDF_ITERATIONS,
    )
    return kdf.derive(secret.encode())


class CredentialCipher:
    """Encrypts provider credentials at rest"""

    def __init__(self, secret: Optional[str] = None):
        secret = secret or os.getenv("ENCRYPTION_KEY")
        if not secret:
            raise EncryptionError("ENCRYPTION_KEY environment variable is not set")
        self._aesgcm = AESGCM(derive_key(secret))

    def encrypt(self, plaintext: str) -> str:
        iv = os.urandom(IV_LENGTH)
        # AESGCM appends the tag to the ciphertext
        sealed = self._aesgcm.encrypt(iv, plaintext.encode("utf-8"), None)
        encrypted, tag = sealed[:-TAG_LENGTH], sealed[-TAG_LENGTH:]
        return f"{iv.hex()}:{tag.hex()}:{encrypted.hex()}"

    def decrypt(self, ciphertext: str) -> str:
        parts = ciphertext.split(":")
        if len(parts) != 3:
            raise CredentialDecryptionError("Invalid ciphertext format")

        try:
            iv, tag, encrypted = (bytes.fromhex(part) for part in parts)
        except ValueError as e:
            raise CredentialDecryptionError("Invalid ciphertext format") from e

        if len(iv) != IV_LENGTH or len(tag) != TAG_LENGTH:
            raise CredentialDecryptionError("Invalid ciphertext format")

        try:
            plaintext = self._aesgcm.decrypt(iv, encrypted + tag, None)
        except InvalidTag as e:
            logger.warning("Credential decryption failed authentication")
            raise CredentialDecryptionError("Credential authentication failed") from e

        return plaintext.decode("utf-8")

    def encrypt_json(self, data: Dict[str, Any]) -> str:
        return self.encrypt(json.dumps(data))

    def decrypt_json(self, ciphertext: str) -> Dict[str, Any]:
        return json.loads(self.decrypt(ciphertext))
