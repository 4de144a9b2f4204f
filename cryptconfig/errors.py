"""
Error types.

Every error raised by the library is a ``CryptConfigError``. Each one
carries a coarse ``kind`` and an ordered mapping of diagnostic fields
(line, column, location, ...) that is rendered after the message.
"""

from __future__ import annotations

from typing import Any, Dict


class CryptConfigError(Exception):
    kind = "error"

    def __init__(self, message: str, **fields: Any):
        super().__init__(message)
        self.message = message
        self.fields: Dict[str, Any] = dict(fields)

    def with_fields(self, **fields: Any) -> "CryptConfigError":
        """Attach more diagnostic fields and return the same error."""
        for name, value in fields.items():
            # the innermost context wins
            self.fields.setdefault(name, value)
        return self

    def __str__(self) -> str:
        if not self.fields:
            return self.message
        details = ", ".join(f"{k}={v!r}" for k, v in self.fields.items())
        return f"{self.message}: {details}"


class KeyLengthError(CryptConfigError):
    kind = "key-length"


class InvalidCiphertextError(CryptConfigError):
    """Raised for any ciphertext that fails validation.

    Base64, length, HMAC, version and padding failures all look the same
    from the outside.
    """

    kind = "invalid-ciphertext"

    def __init__(self, **fields: Any):
        super().__init__("invalid ciphertext", **fields)


class MissingKeyError(CryptConfigError):
    kind = "missing-key"


class StructuralError(CryptConfigError):
    kind = "structural"


class DownloadError(CryptConfigError):
    kind = "download"
