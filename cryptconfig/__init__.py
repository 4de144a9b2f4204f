"""
cryptconfig

Keeps secrets in HCL configuration files encrypted at rest and decrypts
them transparently when the file is loaded.
"""

__version__ = "0.1.0"

from .cipher import Key
from .config import load_master_key
from .errors import (
    CryptConfigError,
    DownloadError,
    InvalidCiphertextError,
    KeyLengthError,
    MissingKeyError,
    StructuralError,
)
from .keys import EnvelopeKeyProvider, KeyProvider, StaticKeyProvider, generate_data_key
from .loader import ConfigFile, load
from .parser import parse
from .printer import print_node
from .rules import KeywordMatcher, MatchDecision
from .transformer import TreeTransformer, decrypt_document, encrypt_document

__all__ = [
    "Key",
    "load_master_key",
    "CryptConfigError",
    "DownloadError",
    "InvalidCiphertextError",
    "KeyLengthError",
    "MissingKeyError",
    "StructuralError",
    "KeyProvider",
    "EnvelopeKeyProvider",
    "StaticKeyProvider",
    "generate_data_key",
    "ConfigFile",
    "load",
    "parse",
    "print_node",
    "KeywordMatcher",
    "MatchDecision",
    "TreeTransformer",
    "encrypt_document",
    "decrypt_document",
]
