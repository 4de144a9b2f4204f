"""
Data key provisioning.

Values in a document are encrypted with a *data key*. The document
carries that key in wrapped form:

    encryption {
        datakey = "<data key encrypted with the master key>"
    }

The master key never appears in the document; it comes from the
environment (see ``config.load_master_key``).
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Optional, Union

from .cipher import Key
from .config import DATAKEY_FIELD, ENCRYPTION_BLOCK, KEY_LENGTH
from .errors import CryptConfigError, KeyLengthError, StructuralError
from .nodes import File, to_python

logger = logging.getLogger(__name__)


class KeyProvider(ABC):
    """
    Resolves the cipher capability for a document.

    ``resolve`` returns None when the document declares no encryption.
    """

    @abstractmethod
    def resolve(self, document: File) -> Optional[Key]:
        ...


class StaticKeyProvider(KeyProvider):
    """Always returns the same key."""

    def __init__(self, key: Union[Key, bytes, None]):
        if key is not None and not isinstance(key, Key):
            key = Key(key)
        self.key = key

    def resolve(self, document: File) -> Optional[Key]:
        return self.key


class EnvelopeKeyProvider(KeyProvider):
    """Unwraps the document's ``encryption.datakey`` with a master key."""

    def __init__(self, master_key: Union[Key, bytes]):
        if not isinstance(master_key, Key):
            master_key = Key(master_key)
        self.master_key = master_key

    def resolve(self, document: File) -> Optional[Key]:
        wrapped = read_data_key(document)
        if wrapped is None:
            logger.debug("document declares no data key")
            return None

        try:
            data_key = self.master_key.decrypt(wrapped)
        except CryptConfigError as e:
            raise e.with_fields(field=f"{ENCRYPTION_BLOCK}.{DATAKEY_FIELD}")

        if len(data_key) != KEY_LENGTH:
            raise KeyLengthError(
                "incorrect data key length",
                got=len(data_key),
                want=KEY_LENGTH,
                field=f"{ENCRYPTION_BLOCK}.{DATAKEY_FIELD}",
            )
        return Key(data_key)


def read_data_key(document: File) -> Optional[str]:
    """The wrapped data key declared in the document, if any."""
    declaration = to_python(document).get(ENCRYPTION_BLOCK)
    if declaration is None:
        return None
    if not isinstance(declaration, dict):
        raise StructuralError(
            "encryption declaration must be a block", field=ENCRYPTION_BLOCK
        )

    wrapped = declaration.get(DATAKEY_FIELD)
    if wrapped is None:
        return None
    if not isinstance(wrapped, str):
        raise StructuralError(
            "data key must be a string", field=f"{ENCRYPTION_BLOCK}.{DATAKEY_FIELD}"
        )
    return wrapped


def generate_data_key(master_key: Union[Key, bytes]) -> str:
    """Create a fresh data key and return it wrapped with the master key."""
    if not isinstance(master_key, Key):
        master_key = Key(master_key)
    return master_key.encrypt(bytes(Key.generate()))
