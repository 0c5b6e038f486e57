"""
Password-based authenticated encryption for secret files.

Each file is encrypted with AES-256-GCM under a key stretched from the
password with PBKDF2-HMAC-SHA256. Salt and nonce are fresh for every
call, so encrypting the same file twice never yields the same output.

Stored format (base64, no line wrapping):

    uint32be(32) | salt[32] | uint32be(12) | iv[12] | uint32be(16) | tag[16] | ciphertext

The length prefixes double as a self-check: a blob whose declared
lengths differ from the constants is rejected before any key is derived.
"""

from __future__ import annotations

import base64
import binascii
import logging
import os
import struct
from typing import Optional, Union

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from .errors import CryptoError
from .models import VerificationResult

logger = logging.getLogger("gitsecrets.crypto")

KEY_LENGTH = 32
SALT_LENGTH = 32
IV_LENGTH = 12
AUTH_TAG_LENGTH = 16
PBKDF2_ITERATIONS = 100_000
MIN_PASSWORD_LENGTH = 8

_LENGTH_FIELD = struct.Struct(">I")
MIN_BLOB_LENGTH = (
    _LENGTH_FIELD.size * 3 + SALT_LENGTH + IV_LENGTH + AUTH_TAG_LENGTH + 1
)

BAD_PASSWORD_MESSAGE = "incorrect password or corrupted data"

Encoded = Union[str, bytes]


def _b64decode(encoded: Encoded) -> bytes:
    if isinstance(encoded, str):
        encoded = encoded.encode("ascii")
    return base64.b64decode(encoded.strip(), validate=True)


def _pack(salt: bytes, iv: bytes, tag: bytes, ciphertext: bytes) -> bytes:
    return b"".join(
        (
            _LENGTH_FIELD.pack(len(salt)), salt,
            _LENGTH_FIELD.pack(len(iv)), iv,
            _LENGTH_FIELD.pack(len(tag)), tag,
            ciphertext,
        )
    )


def _unpack(packed: bytes) -> tuple[bytes, bytes, bytes, bytes]:
    """Split a packed blob into (salt, iv, tag, ciphertext).

    Raises:
        CryptoError: If a declared length differs from its constant or
            the data is too short to hold it.
    """
    offset = 0
    fields = []
    for label, expected in (("salt", SALT_LENGTH), ("IV", IV_LENGTH), ("tag", AUTH_TAG_LENGTH)):
        header = packed[offset:offset + _LENGTH_FIELD.size]
        if len(header) != _LENGTH_FIELD.size:
            raise CryptoError(f"invalid {label} length")
        (declared,) = _LENGTH_FIELD.unpack(header)
        offset += _LENGTH_FIELD.size
        value = packed[offset:offset + declared]
        if declared != expected or len(value) != expected:
            raise CryptoError(f"invalid {label} length")
        offset += declared
        fields.append(value)

    salt, iv, tag = fields
    return salt, iv, tag, packed[offset:]


def _wipe(buffer: bytearray) -> None:
    for i in range(len(buffer)):
        buffer[i] = 0


class CryptoEngine:
    """Encrypts and decrypts single files under one password.

    The password is validated once, here, rather than on every call.

    Args:
        password: Shared secret for the repository. At least 8 characters.

    Raises:
        CryptoError: If the password is empty or too short.
    """

    def __init__(self, password: Optional[str]):
        if password is None or password == "":
            raise CryptoError("password must not be empty")
        if len(password) < MIN_PASSWORD_LENGTH:
            raise CryptoError(
                f"password must be at least {MIN_PASSWORD_LENGTH} characters long"
            )
        self._password = password.encode("utf-8")

    def _derive_key(self, salt: bytes) -> bytearray:
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=KEY_LENGTH,
            salt=salt,
            iterations=PBKDF2_ITERATIONS,
        )
        return bytearray(kdf.derive(self._password))

    def encrypt(self, plaintext: bytes) -> str:
        """Encrypt file content into the base64 storage format.

        Empty content is replaced by a single space before encryption, so
        decrypting such a blob yields ``b" "``.

        Args:
            plaintext: Raw file bytes.

        Returns:
            Base64 text of the packed blob.

        Raises:
            CryptoError: If the cipher operation fails.
        """
        data = bytes(plaintext) if plaintext else b" "
        salt = os.urandom(SALT_LENGTH)
        iv = os.urandom(IV_LENGTH)

        key = self._derive_key(salt)
        try:
            sealed = AESGCM(key).encrypt(iv, data, None)
        except Exception as exc:
            logger.error("Encryption failed: %s", exc)
            raise CryptoError(f"failed to encrypt data: {exc}") from exc
        finally:
            _wipe(key)

        ciphertext, tag = sealed[:-AUTH_TAG_LENGTH], sealed[-AUTH_TAG_LENGTH:]
        logger.debug("Encrypted %d bytes", len(data))
        return base64.b64encode(_pack(salt, iv, tag, ciphertext)).decode("ascii")

    def decrypt(self, encoded: Encoded) -> bytes:
        """Decrypt a blob produced by :meth:`encrypt`.

        A wrong password and a tampered blob fail the same way, after the
        same amount of work.

        Args:
            encoded: Base64 text (str or bytes).

        Returns:
            The original file bytes.

        Raises:
            CryptoError: On malformed input, wrong password, or tampering.
        """
        try:
            packed = _b64decode(encoded)
        except (binascii.Error, ValueError, TypeError) as exc:
            raise CryptoError("encrypted data is not valid base64") from exc

        salt, iv, tag, ciphertext = _unpack(packed)

        key = self._derive_key(salt)
        try:
            plaintext = AESGCM(key).decrypt(iv, ciphertext + tag, None)
        except InvalidTag as exc:
            logger.debug("Decryption failed: authentication tag mismatch")
            raise CryptoError(BAD_PASSWORD_MESSAGE) from exc
        except Exception as exc:
            logger.error("Decryption failed: %s", exc)
            raise CryptoError(f"failed to decrypt data: {exc}") from exc
        finally:
            _wipe(key)

        logger.debug("Decrypted %d bytes", len(plaintext))
        return plaintext

    @staticmethod
    def verify_structure(encoded: Optional[Encoded]) -> bool:
        """Check the blob layout without decrypting.

        Returns:
            False for None, empty, non-base64, truncated, length-mismatched
            or empty-ciphertext input. Never raises.
        """
        if not encoded:
            return False
        try:
            packed = _b64decode(encoded)
        except (binascii.Error, ValueError, TypeError):
            return False
        if len(packed) < MIN_BLOB_LENGTH:
            return False
        try:
            _, _, _, ciphertext = _unpack(packed)
        except CryptoError:
            return False
        return len(ciphertext) > 0

    def verify_detailed(self, encoded: Optional[Encoded]) -> VerificationResult:
        """Structural check followed by a full authenticated decrypt.

        Password failures leave ``error`` empty on purpose; only
        unexpected failures are reported there.
        """
        result = VerificationResult()
        try:
            result.structure_valid = self.verify_structure(encoded)
            if not result.structure_valid:
                return result
            try:
                self.decrypt(encoded)
                result.decryption_valid = True
            except CryptoError:
                result.decryption_valid = False
        except Exception as exc:
            logger.debug("Verification failed unexpectedly: %s", exc)
            result.error = str(exc) or exc.__class__.__name__
        result.valid = result.structure_valid and result.decryption_valid
        return result
