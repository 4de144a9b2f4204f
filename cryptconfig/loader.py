"""
Loading configuration documents with their secrets decrypted.

    downloader = Downloader()
    provider = EnvelopeKeyProvider(load_master_key())
    config = load("https://example.com/config/app.hcl", downloader, provider)
    settings = config.decode()
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from .download import Downloader
from .errors import CryptConfigError
from .keys import KeyProvider
from .nodes import File, to_python
from .parser import parse
from .transformer import TreeTransformer

logger = logging.getLogger(__name__)


@dataclass
class ConfigFile:
    """A configuration document loaded from a location."""

    location: str
    etag: str
    last_modified: Optional[datetime]
    contents: File

    def has_changed(self, downloader: Downloader) -> bool:
        """
        Report whether the document at ``location`` has changed since it
        was loaded, without downloading it again.

        ETags are compared when both sides have one, otherwise the
        last-modified times.
        """

        current = downloader.head(self.location)
        if current.etag and self.etag:
            return current.etag != self.etag
        if current.last_modified is None or self.last_modified is None:
            return True
        return current.last_modified > self.last_modified

    def decode(self) -> Dict[str, Any]:
        """The document as plain Python data."""
        return to_python(self.contents)


def load(
    location: str,
    downloader: Optional[Downloader] = None,
    key_provider: Optional[KeyProvider] = None,
) -> ConfigFile:
    """
    Fetch, parse and decrypt the document at ``location``.

    Without a key provider only documents that contain no secret blocks
    can be loaded.
    """

    if downloader is None:
        with Downloader() as owned:
            return load(location, owned, key_provider)

    remote = downloader.get(location)

    try:
        document = parse(remote.body)
        key = key_provider.resolve(document) if key_provider is not None else None
        TreeTransformer(key).decrypt(document)
    except CryptConfigError as e:
        raise e.with_fields(location=location)

    logger.debug("loaded %s", location)
    return ConfigFile(
        location=location,
        etag=remote.etag,
        last_modified=remote.last_modified,
        contents=document,
    )
