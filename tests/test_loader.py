import os
from datetime import datetime, timezone

import pytest
import requests

from cryptconfig.cipher import Key
from cryptconfig.download import Downloader, local_path
from cryptconfig.errors import DownloadError, MissingKeyError, StructuralError
from cryptconfig.keys import EnvelopeKeyProvider, StaticKeyProvider, generate_data_key
from cryptconfig.loader import load
from cryptconfig.parser import parse
from cryptconfig.printer import print_node
from cryptconfig.transformer import TreeTransformer


class FakeResponse:
    def __init__(self, status_code=200, body=b"", headers=None, reason="OK"):
        self.status_code = status_code
        self.content = body
        self.headers = headers or {}
        self.reason = reason


class FakeSession:
    """Serves canned responses and records the requests made."""

    def __init__(self, responses):
        self.responses = responses
        self.requests = []
        self.closed = False

    def request(self, method, url, timeout=None):
        self.requests.append((method, url, timeout))
        response = self.responses[url]
        if isinstance(response, Exception):
            raise response
        return response

    def close(self):
        self.closed = True


def _encrypted_document(key: Key, src: str) -> bytes:
    document = parse(src)
    TreeTransformer(key).encrypt(document, ["password"])
    return print_node(document).encode("utf-8")


# ---------------------------------------------------------------------------
# local files
# ---------------------------------------------------------------------------


def test_load_local_file(tmp_path, key):
    path = tmp_path / "app.hcl"
    path.write_bytes(_encrypted_document(key, 'db { password = "s3cret" }\n'))

    config = load(str(path), key_provider=StaticKeyProvider(key))

    assert config.decode() == {"db": {"password": "s3cret"}}
    assert print_node(config.contents) == 'db { password = "s3cret" }\n'
    assert config.etag == ""
    assert config.last_modified is not None


def test_load_with_envelope_key(tmp_path):
    master = Key(b"m" * 32)
    data_key_block = f'encryption {{ datakey = "{generate_data_key(master)}" }}\n'
    document = parse(data_key_block + 'password = "s3cret"\n')

    data_key = EnvelopeKeyProvider(master).resolve(document)
    TreeTransformer(data_key).encrypt(document, ["password"])
    path = tmp_path / "app.hcl"
    path.write_text(print_node(document))

    config = load(str(path), key_provider=EnvelopeKeyProvider(master))
    assert config.decode()["password"] == "s3cret"


def test_load_file_url(tmp_path):
    path = tmp_path / "app.hcl"
    path.write_text('name = "app"\n')

    config = load(path.as_uri())
    assert config.decode() == {"name": "app"}


def test_missing_key_carries_location(tmp_path, key):
    path = tmp_path / "app.hcl"
    path.write_bytes(_encrypted_document(key, 'password = "s3cret"\n'))

    with pytest.raises(MissingKeyError) as excinfo:
        load(str(path))
    assert excinfo.value.fields["location"] == str(path)
    assert excinfo.value.fields["line"] == 2


def test_parse_error_carries_location(tmp_path):
    path = tmp_path / "broken.hcl"
    path.write_text("a = [1 2]\n")

    with pytest.raises(StructuralError) as excinfo:
        load(str(path))
    assert excinfo.value.fields["location"] == str(path)


def test_missing_local_file(tmp_path):
    with pytest.raises(DownloadError):
        load(str(tmp_path / "none.hcl"))


def test_local_file_has_changed(tmp_path):
    path = tmp_path / "app.hcl"
    path.write_text('name = "app"\n')

    with Downloader() as downloader:
        config = load(str(path), downloader)
        assert not config.has_changed(downloader)

        stat = path.stat()
        os.utime(path, (stat.st_atime, stat.st_mtime + 10))
        assert config.has_changed(downloader)


@pytest.mark.parametrize(
    "location, expected",
    [
        ("app.hcl", "app.hcl"),
        ("/etc/app.hcl", "/etc/app.hcl"),
        ("file:///etc/app%20v2.hcl", "/etc/app v2.hcl"),
        ("https://example.com/app.hcl", None),
        ("s3://bucket/app.hcl", None),
    ],
)
def test_local_path(location, expected):
    path = local_path(location)
    if expected is None:
        assert path is None
    else:
        assert str(path) == expected


def test_unknown_scheme():
    with pytest.raises(DownloadError) as excinfo:
        Downloader(FakeSession({})).get("s3://bucket/app.hcl")
    assert excinfo.value.fields["location"] == "s3://bucket/app.hcl"


# ---------------------------------------------------------------------------
# http
# ---------------------------------------------------------------------------


URL = "https://config.example.com/app.hcl"


def test_load_over_http(key):
    session = FakeSession(
        {
            URL: FakeResponse(
                body=_encrypted_document(key, 'password = "s3cret"\n'),
                headers={"ETag": '"v1"', "Last-Modified": "Wed, 21 Oct 2015 07:28:00 GMT"},
            )
        }
    )

    config = load(URL, Downloader(session, timeout=5), StaticKeyProvider(key))

    assert config.decode() == {"password": "s3cret"}
    assert config.etag == '"v1"'
    assert config.last_modified == datetime(2015, 10, 21, 7, 28, tzinfo=timezone.utc)
    assert session.requests == [("GET", URL, 5)]


def test_http_error_status():
    session = FakeSession({URL: FakeResponse(status_code=404, reason="Not Found")})

    with pytest.raises(DownloadError) as excinfo:
        Downloader(session).get(URL)
    assert excinfo.value.fields["status_code"] == 404
    assert excinfo.value.fields["status"] == "Not Found"


def test_http_transport_error():
    session = FakeSession({URL: requests.ConnectionError("refused")})

    with pytest.raises(DownloadError) as excinfo:
        Downloader(session).get(URL)
    assert isinstance(excinfo.value.__cause__, requests.ConnectionError)


def test_head_has_no_body():
    session = FakeSession({URL: FakeResponse(body=b"ignored", headers={"ETag": "x"})})
    remote = Downloader(session).head(URL)

    assert remote.body == b""
    assert remote.etag == "x"
    assert not remote.is_local
    assert session.requests[0][0] == "HEAD"


@pytest.mark.parametrize(
    "old_etag, new_etag, changed",
    [
        ('"v1"', '"v1"', False),
        ('"v1"', '"v2"', True),
    ],
)
def test_http_has_changed_by_etag(old_etag, new_etag, changed):
    session = FakeSession({URL: FakeResponse(body=b'a = 1\n', headers={"ETag": old_etag})})
    downloader = Downloader(session)
    config = load(URL, downloader)

    session.responses[URL] = FakeResponse(headers={"ETag": new_etag})
    assert config.has_changed(downloader) is changed


def test_http_has_changed_by_date():
    session = FakeSession(
        {URL: FakeResponse(body=b"a = 1\n", headers={"Last-Modified": "Wed, 21 Oct 2015 07:28:00 GMT"})}
    )
    downloader = Downloader(session)
    config = load(URL, downloader)
    assert not config.has_changed(downloader)

    session.responses[URL] = FakeResponse(headers={"Last-Modified": "Thu, 22 Oct 2015 07:28:00 GMT"})
    assert config.has_changed(downloader)


def test_http_without_metadata_always_changed():
    session = FakeSession({URL: FakeResponse(body=b"a = 1\n")})
    downloader = Downloader(session)
    config = load(URL, downloader)
    assert config.has_changed(downloader)


def test_downloader_closes_session():
    session = FakeSession({})
    with Downloader(session):
        pass
    assert session.closed
