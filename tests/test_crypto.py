"""Tests for password-based file encryption."""

from __future__ import annotations

import base64
import struct

import pytest

from gitsecrets.crypto import (
    AUTH_TAG_LENGTH,
    BAD_PASSWORD_MESSAGE,
    IV_LENGTH,
    SALT_LENGTH,
    CryptoEngine,
    _pack,
)
from gitsecrets.errors import CryptoError, ErrorKind

from conftest import PASSWORD


@pytest.fixture(scope="module")
def engine() -> CryptoEngine:
    return CryptoEngine(PASSWORD)


def _tamper(encoded: str, index: int = -1) -> str:
    raw = bytearray(base64.b64decode(encoded))
    raw[index] ^= 0x01
    return base64.b64encode(bytes(raw)).decode("ascii")


class TestPassword:
    """Password validation at construction."""

    @pytest.mark.parametrize("password", [None, ""])
    def test_empty_password_rejected(self, password) -> None:
        with pytest.raises(CryptoError, match="must not be empty"):
            CryptoEngine(password)

    def test_short_password_rejected(self) -> None:
        with pytest.raises(CryptoError, match="at least 8 characters"):
            CryptoEngine("short")

    def test_error_kind_is_crypto(self) -> None:
        with pytest.raises(CryptoError) as exc_info:
            CryptoEngine("")
        assert exc_info.value.kind == ErrorKind.CRYPTO

    def test_eight_characters_accepted(self) -> None:
        CryptoEngine("12345678")


class TestRoundTrip:
    """Encrypt/decrypt behavior."""

    def test_hello_secrets(self, engine: CryptoEngine) -> None:
        """Encrypt then decrypt returns the original text."""
        blob = engine.encrypt(b"hello secrets")
        assert engine.decrypt(blob) == b"hello secrets"

    def test_binary_content(self, engine: CryptoEngine) -> None:
        data = bytes(range(256)) * 4
        assert engine.decrypt(engine.encrypt(data)) == data

    def test_empty_plaintext_becomes_single_space(self, engine: CryptoEngine) -> None:
        assert engine.decrypt(engine.encrypt(b"")) == b" "

    def test_decrypt_accepts_bytes(self, engine: CryptoEngine) -> None:
        blob = engine.encrypt(b"payload").encode("ascii")
        assert engine.decrypt(blob) == b"payload"

    def test_output_is_single_line_base64(self, engine: CryptoEngine) -> None:
        blob = engine.encrypt(b"x" * 500)
        assert "\n" not in blob
        base64.b64decode(blob, validate=True)

    def test_encryption_is_not_deterministic(self, engine: CryptoEngine) -> None:
        """Same input twice gives different blobs, both decryptable."""
        first = engine.encrypt(b"same input")
        second = engine.encrypt(b"same input")
        assert first != second
        assert engine.decrypt(first) == engine.decrypt(second) == b"same input"

    def test_blob_layout(self, engine: CryptoEngine) -> None:
        """Length prefixes match the salt, IV and tag sizes."""
        raw = base64.b64decode(engine.encrypt(b"abc"))
        assert struct.unpack(">I", raw[:4])[0] == SALT_LENGTH
        offset = 4 + SALT_LENGTH
        assert struct.unpack(">I", raw[offset:offset + 4])[0] == IV_LENGTH
        offset += 4 + IV_LENGTH
        assert struct.unpack(">I", raw[offset:offset + 4])[0] == AUTH_TAG_LENGTH
        offset += 4 + AUTH_TAG_LENGTH
        assert len(raw[offset:]) == 3


class TestFailures:
    """Wrong password, tampering and malformed input."""

    def test_wrong_password(self, engine: CryptoEngine) -> None:
        blob = engine.encrypt(b"hello secrets")
        with pytest.raises(CryptoError, match=BAD_PASSWORD_MESSAGE):
            CryptoEngine("wrong password 123").decrypt(blob)

    def test_tampered_ciphertext(self, engine: CryptoEngine) -> None:
        blob = engine.encrypt(b"important")
        with pytest.raises(CryptoError, match=BAD_PASSWORD_MESSAGE):
            engine.decrypt(_tamper(blob))

    def test_tampered_tag(self, engine: CryptoEngine) -> None:
        blob = engine.encrypt(b"important")
        tag_index = 4 + SALT_LENGTH + 4 + IV_LENGTH + 4
        with pytest.raises(CryptoError):
            engine.decrypt(_tamper(blob, tag_index))

    def test_every_flipped_byte_is_rejected(self, engine: CryptoEngine) -> None:
        """No single-bit change anywhere in the blob decrypts or verifies."""
        raw = base64.b64decode(engine.encrypt(b"k"))
        for index in range(len(raw)):
            tampered = _tamper(base64.b64encode(raw).decode("ascii"), index)
            with pytest.raises(CryptoError):
                engine.decrypt(tampered)
            assert engine.verify_detailed(tampered).decryption_valid is False, index

    def test_invalid_base64(self, engine: CryptoEngine) -> None:
        with pytest.raises(CryptoError, match="not valid base64"):
            engine.decrypt("this is *not* base64!")

    def test_wrong_salt_length(self, engine: CryptoEngine) -> None:
        packed = _pack(b"s" * 16, b"i" * IV_LENGTH, b"t" * AUTH_TAG_LENGTH, b"ct")
        with pytest.raises(CryptoError, match="invalid salt length"):
            engine.decrypt(base64.b64encode(packed).decode())

    def test_truncated_blob(self, engine: CryptoEngine) -> None:
        with pytest.raises(CryptoError):
            engine.decrypt(base64.b64encode(b"\x00\x00").decode())

    def test_cause_is_preserved(self, engine: CryptoEngine) -> None:
        blob = engine.encrypt(b"data")
        with pytest.raises(CryptoError) as exc_info:
            CryptoEngine("another password").decrypt(blob)
        assert exc_info.value.cause is not None


class TestVerifyStructure:
    """Structural checks that never decrypt."""

    def test_valid_blob(self, engine: CryptoEngine) -> None:
        assert CryptoEngine.verify_structure(engine.encrypt(b"data")) is True

    @pytest.mark.parametrize("value", [None, "", b""])
    def test_empty_input(self, value) -> None:
        assert CryptoEngine.verify_structure(value) is False

    def test_not_base64(self) -> None:
        assert CryptoEngine.verify_structure("%%%not-base64%%%") is False

    def test_too_short(self) -> None:
        assert CryptoEngine.verify_structure(base64.b64encode(b"x" * 20).decode()) is False

    def test_length_mismatch(self) -> None:
        packed = _pack(b"s" * SALT_LENGTH, b"i" * 16, b"t" * AUTH_TAG_LENGTH, b"ct" * 10)
        assert CryptoEngine.verify_structure(base64.b64encode(packed).decode()) is False

    def test_empty_ciphertext(self) -> None:
        packed = _pack(b"s" * SALT_LENGTH, b"i" * IV_LENGTH, b"t" * AUTH_TAG_LENGTH, b"")
        assert CryptoEngine.verify_structure(base64.b64encode(packed).decode()) is False


class TestVerifyDetailed:
    """Structure plus full decrypt."""

    def test_valid(self, engine: CryptoEngine) -> None:
        result = engine.verify_detailed(engine.encrypt(b"ok"))
        assert result.valid and result.structure_valid and result.decryption_valid
        assert result.error is None

    def test_wrong_password_is_not_an_error(self, engine: CryptoEngine) -> None:
        """A wrong password fails decryption without reporting an error."""
        blob = engine.encrypt(b"hello secrets")
        result = CryptoEngine("wrong password 123").verify_detailed(blob)
        assert result.structure_valid is True
        assert result.decryption_valid is False
        assert result.valid is False
        assert result.error is None

    def test_malformed(self, engine: CryptoEngine) -> None:
        result = engine.verify_detailed("garbage")
        assert result.structure_valid is False
        assert result.valid is False
