import pytest

from cryptconfig.cli import main
from cryptconfig.config import load_master_key
from cryptconfig.keys import EnvelopeKeyProvider
from cryptconfig.parser import parse


ORIGINAL = 'database {\n    username = "scott"\n    password = "s3cret"\n}\n'


@pytest.fixture
def manifest(tmp_path):
    return str(tmp_path / "none.yml")


def _generate(manifest, capsys) -> str:
    assert main(["-m", manifest, "generate"]) == 0
    return capsys.readouterr().out


def test_generate_encrypt_decrypt(tmp_path, manifest, master_env, capsys):
    block = _generate(manifest, capsys)
    assert block.startswith("encryption {\n")

    original = ORIGINAL + "\n" + block
    path = tmp_path / "app.hcl"
    path.write_text(original)

    assert main(["-m", manifest, "encrypt", "--inplace", str(path)]) == 0
    encrypted = path.read_text()
    assert "ciphertext" in encrypted
    assert "s3cret" not in encrypted
    assert 'username = "scott"' in encrypted
    assert "Encrypted 1 value(s)" in capsys.readouterr().err

    assert main(["-m", manifest, "decrypt", str(path)]) == 0
    assert capsys.readouterr().out == original
    # without --inplace the file is left alone
    assert path.read_text() == encrypted


def test_encrypt_to_stdout(tmp_path, manifest, master_env, capsys):
    block = _generate(manifest, capsys)
    path = tmp_path / "app.hcl"
    path.write_text(block + 'apikey = "k"\n')

    assert main(["-m", manifest, "-q", "encrypt", str(path)]) == 0
    captured = capsys.readouterr()
    assert "apikey {\n    ciphertext = " in captured.out
    assert captured.err == ""
    assert path.read_text() == block + 'apikey = "k"\n'


def test_keywords_option(tmp_path, manifest, master_env, capsys):
    block = _generate(manifest, capsys)
    path = tmp_path / "app.hcl"
    path.write_text(block + 'password = "a"\ntoken = "b"\nauth = "c"\n')

    args = ["-m", manifest, "encrypt", "--keywords", "token", "--keywords", "auth,zzz", str(path)]
    assert main(args) == 0
    out = capsys.readouterr().out
    assert 'password = "a"' in out
    assert 'token = "b"' not in out
    assert 'auth = "c"' not in out


def test_manifest_keywords(tmp_path, master_env, capsys):
    manifest = tmp_path / ".cryptconfig.yml"
    manifest.write_text("keywords: [token]\nvalues: []\n")
    block = _generate(str(manifest), capsys)

    path = tmp_path / "app.hcl"
    path.write_text(block + 'password = "a"\napi_token = "b"\n')

    assert main(["-m", str(manifest), "encrypt", str(path)]) == 0
    out = capsys.readouterr().out
    assert 'password = "a"' in out
    assert 'api_token = "b"' not in out


def test_encrypt_without_data_key(tmp_path, manifest, capsys):
    path = tmp_path / "app.hcl"
    path.write_text('password = "x"\n')

    assert main(["-m", manifest, "encrypt", "--inplace", str(path)]) == 1
    assert "no encryption key present" in capsys.readouterr().err
    assert path.read_text() == 'password = "x"\n'


def test_decrypt_without_master_key(tmp_path, manifest, master_env, monkeypatch, capsys):
    block = _generate(manifest, capsys)
    path = tmp_path / "app.hcl"
    path.write_text(block)

    monkeypatch.delenv("CRYPTCONFIG_MASTER_KEY")
    assert main(["-m", manifest, "decrypt", str(path)]) == 1
    assert "missing required environment variable" in capsys.readouterr().err


def test_document_without_secrets_needs_no_key(tmp_path, manifest, monkeypatch, capsys):
    monkeypatch.delenv("CRYPTCONFIG_MASTER_KEY", raising=False)
    path = tmp_path / "app.hcl"
    path.write_text('name = "app"\n')

    assert main(["-m", manifest, "decrypt", str(path)]) == 0
    assert capsys.readouterr().out == 'name = "app"\n'


def test_syntax_error(tmp_path, manifest, capsys):
    path = tmp_path / "app.hcl"
    path.write_text("a = {\n")

    assert main(["-m", manifest, "decrypt", str(path)]) == 1
    err = capsys.readouterr().err
    assert "location=" in err
    assert "line=" in err


def test_explain(tmp_path, manifest, capsys):
    path = tmp_path / "app.hcl"
    path.write_text(
        'password = "x"\n'
        'dsn = "user=a password=b"\n'
        'name = "y"\n'
        't { ciphertext = "abc" }\n'
    )

    assert main(["-m", manifest, "explain", str(path)]) == 0
    out = capsys.readouterr().out
    assert "key contains 'password'" in out
    assert "value contains 'password='" in out
    assert "Would encrypt:     2" in out
    assert "Already encrypted: 1" in out
    assert "Data key declared: no" in out


@pytest.mark.parametrize("argv", [[], ["help"], ["-h"]])
def test_help(argv, capsys):
    assert main(argv) == 0
    assert "USAGE:" in capsys.readouterr().out


def test_encrypt_nothing_to_do(tmp_path, manifest, capsys):
    path = tmp_path / "app.hcl"
    path.write_text('name = "app"\n')

    assert main(["-m", manifest, "encrypt", str(path)]) == 0
    captured = capsys.readouterr()
    assert captured.out == 'name = "app"\n'
    assert "No secrets to encrypt" in captured.err


def test_generate_uses_indented_heredoc(master_env, manifest, capsys):
    block = _generate(manifest, capsys)
    lines = block.splitlines()

    assert lines[2] == "    datakey = <<-EOF"
    assert lines[-2:] == ["        EOF", "}"]
    # key lines share the terminator indent
    assert all(line.startswith("        ") for line in lines[3:-1])

    document = parse(block)
    assert EnvelopeKeyProvider(load_master_key()).resolve(document) is not None
