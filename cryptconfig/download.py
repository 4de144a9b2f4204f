"""
Fetching configuration documents.

A location is an ``http://`` or ``https://`` URL, a ``file://`` URL or a
plain filesystem path. ``head`` returns the same metadata as ``get``
without the body, for cheap change detection.

This module does NOT:
- parse documents
- resolve keys
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from pathlib import Path
from typing import Optional
from urllib.parse import unquote as url_unquote, urlparse

import requests

from .config import HTTP_TIMEOUT
from .errors import DownloadError

logger = logging.getLogger(__name__)


@dataclass
class RemoteFile:
    location: str
    body: bytes = b""
    etag: str = ""
    last_modified: Optional[datetime] = None
    is_local: bool = False


class Downloader:
    """
    Fetches documents from local paths and HTTP(S) URLs.

    The ``requests.Session`` is owned by this object; create one
    ``Downloader`` and pass it to whatever needs it.
    """

    def __init__(self, session: Optional[requests.Session] = None, timeout: float = HTTP_TIMEOUT):
        self.session = session or requests.Session()
        self.timeout = timeout

    def close(self) -> None:
        self.session.close()

    def __enter__(self) -> "Downloader":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def get(self, location: str) -> RemoteFile:
        """Return the file at location, including its body."""
        return self._fetch(location, include_body=True)

    def head(self, location: str) -> RemoteFile:
        """Return the file at location without its body."""
        return self._fetch(location, include_body=False)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _fetch(self, location: str, include_body: bool) -> RemoteFile:
        if urlparse(location).scheme.lower() in ("http", "https"):
            return self._fetch_http(location, include_body)

        path = local_path(location)
        if path is not None:
            return _fetch_local(location, path, include_body)

        raise DownloadError("cannot open file: unknown scheme", location=location)

    def _fetch_http(self, location: str, include_body: bool) -> RemoteFile:
        method = "GET" if include_body else "HEAD"
        try:
            response = self.session.request(method, location, timeout=self.timeout)
        except requests.RequestException as e:
            raise DownloadError(
                "cannot get file", location=location, method=method
            ) from e

        if response.status_code != 200:
            raise DownloadError(
                "cannot get file",
                location=location,
                method=method,
                status_code=response.status_code,
                status=response.reason,
            )

        logger.debug("%s %s: %d", method, location, response.status_code)
        return RemoteFile(
            location=location,
            body=response.content if include_body else b"",
            etag=response.headers.get("ETag", ""),
            last_modified=_parse_http_date(response.headers.get("Last-Modified")),
        )


def _fetch_local(location: str, path: Path, include_body: bool) -> RemoteFile:
    try:
        stat = path.stat()
        body = path.read_bytes() if include_body else b""
    except OSError as e:
        raise DownloadError("cannot read file", location=location) from e

    return RemoteFile(
        location=location,
        body=body,
        last_modified=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
        is_local=True,
    )


def _parse_http_date(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None


def local_path(location: str) -> Optional[Path]:
    """The filesystem path for a local location, else None."""
    parsed = urlparse(location)
    scheme = parsed.scheme.lower()
    if scheme == "file":
        return Path(url_unquote(parsed.path))
    # a single letter is a Windows drive, not a scheme
    if scheme == "" or len(scheme) == 1:
        return Path(location)
    return None
