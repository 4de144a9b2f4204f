"""
Global configuration and environment handling.

This module is responsible for:
- Loading the master key from the environment
- Defining global constants and defaults
- Providing normalized, ready-to-use configuration values

Nothing in this file should depend on:
- the filesystem
- the manifest structure
- document parsing or matching
- CLI arguments

If something here changes, the *entire tool* behavior changes.
"""

from __future__ import annotations

import os
import hashlib
from typing import Final, Optional, Tuple

from .errors import MissingKeyError

# ---------------------------------------------------------------------------
# Tool / format versioning
# ---------------------------------------------------------------------------

SUPPORTED_MANIFEST_VERSION: Final[int] = 1
TOOL_VERSION: Final[str] = "0.1.0"

# Low two bits of the first header byte.
CIPHERTEXT_VERSION: Final[int] = 0
VERSION_MASK: Final[int] = 0x03

# ---------------------------------------------------------------------------
# Cipher parameters (AES-256-CBC + HMAC-SHA256)
# ---------------------------------------------------------------------------

KEY_LENGTH: Final[int] = 32
BLOCK_SIZE: Final[int] = 16
HEADER_SIZE: Final[int] = BLOCK_SIZE
HMAC_SIZE: Final[int] = 32

# ---------------------------------------------------------------------------
# Default behavior
# ---------------------------------------------------------------------------

DEFAULT_KEYWORDS: Final[Tuple[str, ...]] = ("password", "secret", "apikey")
DEFAULT_VALUEWORDS: Final[Tuple[str, ...]] = ("password=",)
DEFAULT_MANIFEST: Final[str] = ".cryptconfig.yml"

# Name of the field inside a secret block and of the in-document
# declaration block.
CIPHERTEXT_FIELD: Final[str] = "ciphertext"
ENCRYPTION_BLOCK: Final[str] = "encryption"
DATAKEY_FIELD: Final[str] = "datakey"

# Indent used for secret blocks written on their own lines.
INDENT: Final[str] = "    "

HTTP_TIMEOUT: Final[float] = 60.0

# ---------------------------------------------------------------------------
# Environment variable names
# ---------------------------------------------------------------------------

ENV_MASTER_KEY: Final[str] = "CRYPTCONFIG_MASTER_KEY"

# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_master_key(env_name: Optional[str] = None) -> bytes:
    """
    Load and normalize the master key from the environment.

    The raw value is hashed to ensure a fixed-length key suitable
    for wrapping data keys.

    Raises:
        MissingKeyError: if the variable is missing or empty

    Returns:
        bytes: 32-byte derived key
    """

    env_name = env_name or ENV_MASTER_KEY
    raw = os.getenv(env_name)
    if not raw:
        raise MissingKeyError(
            "missing required environment variable", variable=env_name
        )

    # Normalize key length using SHA-256
    return hashlib.sha256(raw.encode("utf-8")).digest()
