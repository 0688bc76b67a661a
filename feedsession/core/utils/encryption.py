"""
Encryption utilities for securing stored credentials (OAuth tokens, app secrets).
"""

import base64
import json
import logging
import secrets
from typing import Any, Optional

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

logger = logging.getLogger(__name__)

SALT_BYTES = 16
PBKDF2_ITERATIONS = 390_000


def generate_salt() -> str:
    """New random salt, base64 encoded so it can live in JSON storage"""
    return base64.urlsafe_b64encode(secrets.token_bytes(SALT_BYTES)).decode("ascii")


class CredentialEncryption:
    """Handles encryption and decryption of sensitive credential data."""

    def __init__(self, secret_key: str, salt_b64: str):
        """Derive a Fernet key from the app's secret key and the store's salt.

        Args:
            secret_key: application SECRET_KEY
            salt_b64: base64 salt persisted alongside the encrypted data
        """
        if not secret_key:
            raise ValueError("secret_key is required for credential encryption")

        salt = base64.urlsafe_b64decode(salt_b64.encode("ascii"))
        if len(salt) != SALT_BYTES:
            raise ValueError("Invalid encryption salt")

        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=32,
            salt=salt,
            iterations=PBKDF2_ITERATIONS,
        )
        key = base64.urlsafe_b64encode(kdf.derive(secret_key.encode("utf-8")))
        self.cipher = Fernet(key)

    def encrypt(self, data: Any) -> str:
        """Encrypt any JSON-serializable value to a token string"""
        payload = json.dumps({"value": data}, separators=(",", ":"))
        return self.cipher.encrypt(payload.encode("utf-8")).decode("ascii")

    def decrypt(self, token: str) -> Optional[Any]:
        """Decrypt a token produced by encrypt(), or None if it can't be read"""
        try:
            payload = self.cipher.decrypt(token.encode("ascii"))
        except (InvalidToken, ValueError, UnicodeEncodeError):
            logger.warning("Failed to decrypt stored credentials (wrong SECRET_KEY or corrupted data)")
            return None

        try:
            return json.loads(payload.decode("utf-8"))["value"]
        except (json.JSONDecodeError, KeyError, TypeError):
            logger.warning("Decrypted credential payload is malformed")
            return None
