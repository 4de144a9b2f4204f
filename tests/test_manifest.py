import pytest

from cryptconfig.config import DEFAULT_KEYWORDS, DEFAULT_VALUEWORDS, ENV_MASTER_KEY
from cryptconfig.errors import StructuralError
from cryptconfig.manifest import Manifest


def test_missing_manifest_gives_defaults(tmp_path):
    manifest = Manifest.load(tmp_path / "none.yml")

    assert manifest.version == 1
    assert manifest.keywords == list(DEFAULT_KEYWORDS)
    assert manifest.values == list(DEFAULT_VALUEWORDS)
    assert manifest.master_key_env == ENV_MASTER_KEY


def test_required_manifest(tmp_path):
    with pytest.raises(StructuralError) as excinfo:
        Manifest.load(tmp_path / "none.yml", required=True)
    assert "path" in excinfo.value.fields


def test_empty_manifest_gives_defaults(tmp_path):
    path = tmp_path / "empty.yml"
    path.write_text("")
    assert Manifest.load(path) == Manifest()


def test_valid_manifest(tmp_path):
    path = tmp_path / ".cryptconfig.yml"
    path.write_text(
        "version: 1\n"
        "keywords: [token, pass]\n"
        'values: ["key="]\n'
        "master_key_env: APP_MASTER_KEY\n"
    )

    manifest = Manifest.load(path)

    assert manifest.keywords == ["token", "pass"]
    assert manifest.values == ["key="]
    assert manifest.master_key_env == "APP_MASTER_KEY"


def test_partial_manifest_keeps_other_defaults(tmp_path):
    path = tmp_path / ".cryptconfig.yml"
    path.write_text("keywords: []\n")

    manifest = Manifest.load(path)

    assert manifest.keywords == []
    assert manifest.values == list(DEFAULT_VALUEWORDS)


@pytest.mark.parametrize(
    "text",
    [
        "version: 2\n",
        "keywords: password\n",
        "values: [1, 2]\n",
        "master_key_env: ''\n",
        "- just\n- a list\n",
        "keywords: [unclosed\n",
    ],
)
def test_invalid_manifest(tmp_path, text):
    path = tmp_path / ".cryptconfig.yml"
    path.write_text(text)

    with pytest.raises(StructuralError) as excinfo:
        Manifest.load(path)
    assert excinfo.value.fields["path"] == str(path)
