from __future__ import annotations

import pytest
from cryptography.fernet import Fernet

from app.crawling.auth.crypto import CredentialCipher, CredentialDecryptionError


class TestCredentialCipher:
    def test_round_trip_hides_plaintext(self) -> None:
        cipher = CredentialCipher("operator passphrase")
        token = cipher.encrypt({"username": "alice", "password": "hunter2"})

        assert "hunter2" not in token
        assert cipher.decrypt(token) == {"username": "alice", "password": "hunter2"}

    def test_accepts_generated_fernet_key(self) -> None:
        key = Fernet.generate_key().decode("ascii")
        token = CredentialCipher(key).encrypt({"headers": {"X": "1"}})

        assert Fernet(key.encode("ascii")).decrypt(token.encode("ascii")) == b'{"headers": {"X": "1"}}'

    def test_wrong_key_raises_decryption_error(self) -> None:
        token = CredentialCipher("first").encrypt({"password": "p"})

        with pytest.raises(CredentialDecryptionError):
            CredentialCipher("second").decrypt(token)

    def test_garbage_token_raises_decryption_error(self) -> None:
        with pytest.raises(CredentialDecryptionError):
            CredentialCipher("secret").decrypt("not-a-token")

    def test_empty_secret_is_rejected(self) -> None:
        with pytest.raises(ValueError):
            CredentialCipher("  ")
