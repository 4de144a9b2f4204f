"""
Symmetric encryption of configuration values.

AES-256-CBC with an HMAC-SHA256 over the header and ciphertext. The
encoded blob is

    base64( header(16) || ciphertext(N*16) || hmac(32) )

The header is random except for the low two bits of its first byte,
which hold the format version. The IV is the header encrypted with the
key, so it never has to be stored.
"""

from __future__ import annotations

import base64
import binascii

from Crypto.Cipher import AES
from Crypto.Hash import HMAC, SHA256
from Crypto.Random import get_random_bytes
from Crypto.Util.Padding import pad, unpad

from .config import (
    BLOCK_SIZE,
    CIPHERTEXT_VERSION,
    HEADER_SIZE,
    HMAC_SIZE,
    KEY_LENGTH,
    VERSION_MASK,
)
from .errors import InvalidCiphertextError, KeyLengthError
from .utils import strip_whitespace


# ---------------------------------------------------------------------------
# Header / HMAC helpers
# ---------------------------------------------------------------------------


def _new_header() -> bytes:
    header = bytearray(get_random_bytes(HEADER_SIZE))
    # Clear the bottom two bits of the first byte for the version.
    header[0] &= 0xFF ^ VERSION_MASK
    header[0] |= CIPHERTEXT_VERSION
    return bytes(header)


def _header_version(header: bytes) -> int:
    return header[0] & VERSION_MASK


def _derive_iv(key: bytes, header: bytes) -> bytes:
    return AES.new(key, AES.MODE_ECB).encrypt(header)


def _add_hmac(msg: bytes, key: bytes) -> bytes:
    mac = HMAC.new(key, msg=msg, digestmod=SHA256)
    return msg + mac.digest()


def _strip_hmac(msg: bytes, key: bytes) -> bytes:
    """Verify the trailing HMAC and return the message without it."""
    if len(msg) < HMAC_SIZE:
        raise InvalidCiphertextError()
    message, tag = msg[:-HMAC_SIZE], msg[-HMAC_SIZE:]
    mac = HMAC.new(key, msg=message, digestmod=SHA256)
    try:
        # constant-time comparison
        mac.verify(tag)
    except ValueError:
        raise InvalidCiphertextError() from None
    return message


# ---------------------------------------------------------------------------
# Key
# ---------------------------------------------------------------------------


class Key:
    """
    A 256-bit encryption key.

    A ``Key`` is immutable and stateless beyond its bytes, so one instance
    can be shared freely. It satisfies both halves of the cipher
    capability used by the transformer: ``encrypt_string`` and
    ``decrypt_string``.
    """

    __slots__ = ("_key",)

    def __init__(self, key: bytes):
        self._key = bytes(key)

    def __len__(self) -> int:
        return len(self._key)

    def __repr__(self) -> str:
        # never print the key material
        return f"Key(<{len(self._key)} bytes>)"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Key):
            return NotImplemented
        return self._key == other._key

    def __hash__(self) -> int:
        return hash(self._key)

    def __bytes__(self) -> bytes:
        return self._key

    @classmethod
    def generate(cls) -> "Key":
        return cls(get_random_bytes(KEY_LENGTH))

    def check_length(self) -> None:
        if len(self._key) != KEY_LENGTH:
            raise KeyLengthError(
                "incorrect key length", got=len(self._key), want=KEY_LENGTH
            )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def encrypt(self, cleartext: bytes) -> str:
        """Encrypt cleartext bytes into a base64 ciphertext string."""
        self.check_length()

        header = _new_header()
        iv = _derive_iv(self._key, header)

        cipher = AES.new(self._key, AES.MODE_CBC, iv=iv)
        payload = cipher.encrypt(pad(bytes(cleartext), BLOCK_SIZE, style="pkcs7"))

        blob = _add_hmac(header + payload, self._key)
        return base64.b64encode(blob).decode("ascii")

    def decrypt(self, ciphertext: str) -> bytes:
        """
        Decrypt a ciphertext string produced by ``encrypt``.

        Whitespace anywhere in the text is ignored, so line-wrapped
        values can be passed as-is.

        Raises:
            KeyLengthError: if the key is not 32 bytes
            InvalidCiphertextError: for any malformed or tampered input
        """
        self.check_length()

        text = strip_whitespace(ciphertext)
        try:
            msg = base64.b64decode(text, validate=True)
        except (binascii.Error, ValueError):
            raise InvalidCiphertextError() from None

        if len(msg) < BLOCK_SIZE:
            raise InvalidCiphertextError()

        # authenticate before looking at anything else
        msg = _strip_hmac(msg, self._key)

        header = msg[:HEADER_SIZE]
        if len(header) < HEADER_SIZE or _header_version(header) != CIPHERTEXT_VERSION:
            raise InvalidCiphertextError()
        iv = _derive_iv(self._key, header)

        payload = msg[HEADER_SIZE:]
        if not payload or len(payload) % BLOCK_SIZE != 0:
            raise InvalidCiphertextError()

        cipher = AES.new(self._key, AES.MODE_CBC, iv=iv)
        try:
            return unpad(cipher.decrypt(payload), BLOCK_SIZE, style="pkcs7")
        except ValueError:
            raise InvalidCiphertextError() from None

    def encrypt_string(self, cleartext: str) -> str:
        """Encrypt a string value."""
        return self.encrypt(cleartext.encode("utf-8"))

    def decrypt_string(self, ciphertext: str) -> str:
        """Decrypt the ciphertext into a string value."""
        cleartext = self.decrypt(ciphertext)
        try:
            return cleartext.decode("utf-8")
        except UnicodeDecodeError:
            raise InvalidCiphertextError() from None


def encrypt(key: bytes, cleartext: bytes) -> str:
    return Key(key).encrypt(cleartext)


def decrypt(key: bytes, ciphertext: str) -> bytes:
    return Key(key).decrypt(ciphertext)
