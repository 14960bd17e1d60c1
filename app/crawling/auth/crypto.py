"""
Symmetric encryption for stored credential payloads.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import json
from typing import Any

from cryptography.fernet import Fernet, InvalidToken


class CredentialDecryptionError(ValueError):
    """Raised when a stored credential cannot be decrypted with the configured key."""


def _derive_fernet_key(secret: str) -> bytes:
    # Accept a ready-made Fernet key as-is; derive one from any other passphrase.
    raw = secret.strip().encode("utf-8")
    try:
        if len(base64.urlsafe_b64decode(raw)) == 32:
            return raw
    except (binascii.Error, ValueError):
        pass
    return base64.urlsafe_b64encode(hashlib.sha256(raw).digest())


class CredentialCipher:
    """
    Encrypts credential payloads to opaque tokens keyed by an operator secret.
    """

    def __init__(self, secret: str) -> None:
        if not secret or not secret.strip():
            raise ValueError("Credential encryption secret must not be empty.")
        self._fernet = Fernet(_derive_fernet_key(secret))

    def encrypt(self, payload: dict[str, Any]) -> str:
        serialized = json.dumps(payload, sort_keys=True).encode("utf-8")
        return self._fernet.encrypt(serialized).decode("ascii")

    def decrypt(self, ciphertext: str) -> dict[str, Any]:
        try:
            plaintext = self._fernet.decrypt(ciphertext.encode("ascii"))
        except (InvalidToken, UnicodeEncodeError) as exc:
            raise CredentialDecryptionError(
                "Stored credential could not be decrypted; check CREDENTIAL_ENCRYPTION_KEY."
            ) from exc
        payload = json.loads(plaintext.decode("utf-8"))
        if not isinstance(payload, dict):
            raise CredentialDecryptionError("Stored credential payload is not an object.")
        return payload
