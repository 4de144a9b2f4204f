import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]

if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from cryptconfig.cipher import Key  # noqa: E402


class ReversibleCipher:
    """Readable stand-in for a real key: '"x"' <-> "ciphertext('x')"."""

    def encrypt_string(self, cleartext: str) -> str:
        return "ciphertext(" + cleartext.replace('"', "'") + ")"

    def decrypt_string(self, ciphertext: str) -> str:
        cleartext = ciphertext.strip().replace("'", '"')
        cleartext = cleartext.removeprefix("ciphertext(")
        return cleartext.removesuffix(")")


@pytest.fixture
def fake_cipher() -> ReversibleCipher:
    return ReversibleCipher()


@pytest.fixture
def key() -> Key:
    return Key(bytes(range(32)))


@pytest.fixture
def master_env(monkeypatch: pytest.MonkeyPatch) -> str:
    monkeypatch.setenv("CRYPTCONFIG_MASTER_KEY", "unit-test-master-key")
    return "unit-test-master-key"
