"""
Command-line interface for the cryptconfig tool.

This module orchestrates all other components and provides
the user-facing CLI commands:
- encrypt
- decrypt
- generate
- explain
- help

Documents are written to stdout unless ``--inplace`` is given; all
status messages go to stderr so the output can be redirected safely.
"""

from __future__ import annotations

import sys
import argparse
import logging
from pathlib import Path
from typing import List, Optional

from .config import (
    DEFAULT_MANIFEST,
    DATAKEY_FIELD,
    ENCRYPTION_BLOCK,
    TOOL_VERSION,
    load_master_key,
)
from .cipher import Key
from .download import Downloader, local_path
from .errors import CryptConfigError
from .keys import EnvelopeKeyProvider, generate_data_key, read_data_key
from .manifest import Manifest
from .nodes import File, ObjectItem, walk
from .parser import parse
from .printer import print_node
from .rules import KeywordMatcher
from .transformer import TreeTransformer, ciphertext_literal, plain_secret_value
from .utils import ensure_parent_dir, split_words, wrap_text


# ---------------------------------------------------------------------------
# Color output helpers
# ---------------------------------------------------------------------------


class Colors:
    """ANSI color codes for terminal output."""
    RED = "\033[91m"
    GREEN = "\033[92m"
    YELLOW = "\033[93m"
    BLUE = "\033[94m"
    CYAN = "\033[96m"
    RESET = "\033[0m"
    BOLD = "\033[1m"


def colored(text: str, color: str) -> str:
    """Return colored text for terminal output."""
    return f"{color}{text}{Colors.RESET}"


def print_error(msg: str) -> None:
    """Print error message to stderr."""
    print(colored(f"✗ Error: {msg}", Colors.RED), file=sys.stderr)


def print_success(msg: str) -> None:
    """Print success message to stderr."""
    print(colored(f"✓ {msg}", Colors.GREEN), file=sys.stderr)


def print_warning(msg: str) -> None:
    """Print warning message to stderr."""
    print(colored(f"⚠ Warning: {msg}", Colors.YELLOW), file=sys.stderr)


def print_info(msg: str) -> None:
    """Print info message to stderr."""
    print(colored(f"ℹ {msg}", Colors.CYAN), file=sys.stderr)


# ---------------------------------------------------------------------------
# CLI context
# ---------------------------------------------------------------------------


class CLIContext:
    """Shared context for CLI commands."""

    def __init__(self, manifest_path: str, verbose: bool, quiet: bool):
        self.manifest_path = Path(manifest_path)
        self.verbose = verbose
        self.quiet = quiet

        # Lazy-loaded
        self._manifest: Optional[Manifest] = None
        self._master_key: Optional[Key] = None
        self._downloader: Optional[Downloader] = None

    @property
    def manifest(self) -> Manifest:
        """Load manifest lazily."""
        if self._manifest is None:
            self._manifest = Manifest.load(self.manifest_path)
        return self._manifest

    @property
    def master_key(self) -> Key:
        """Load master key lazily."""
        if self._master_key is None:
            self._master_key = Key(load_master_key(self.manifest.master_key_env))
        return self._master_key

    @property
    def downloader(self) -> Downloader:
        if self._downloader is None:
            self._downloader = Downloader()
        return self._downloader

    def close(self) -> None:
        if self._downloader is not None:
            self._downloader.close()

    def resolve_key(self, document: File) -> Optional[Key]:
        """
        The document's data key, or None if it declares none.

        The master key is only required when the document has a data key.
        """
        if read_data_key(document) is None:
            return None
        return EnvelopeKeyProvider(self.master_key).resolve(document)

    def log(self, msg: str) -> None:
        """Log message if not quiet."""
        if not self.quiet:
            print(msg, file=sys.stderr)

    def log_verbose(self, msg: str) -> None:
        """Log message if verbose."""
        if self.verbose:
            print(colored(f"  → {msg}", Colors.BLUE), file=sys.stderr)


# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------


def _load_document(ctx: CLIContext, location: str, inplace: bool) -> File:
    remote = ctx.downloader.get(location)
    if inplace and not remote.is_local:
        raise CryptConfigError("cannot write to non-local config file", location=location)
    ctx.log_verbose(f"Read {len(remote.body)} bytes from {location}")
    try:
        return parse(remote.body)
    except CryptConfigError as e:
        raise e.with_fields(location=location)


def _write_document(ctx: CLIContext, document: File, location: str, inplace: bool) -> None:
    text = print_node(document)
    if not inplace:
        sys.stdout.write(text)
        return

    path = local_path(location)
    ensure_parent_dir(path)
    path.write_text(text, encoding="utf-8")
    ctx.log_verbose(f"Wrote {path}")


# ---------------------------------------------------------------------------
# Command implementations
# ---------------------------------------------------------------------------


def cmd_encrypt(ctx: CLIContext, args: argparse.Namespace) -> int:
    """
    Encrypt every secret in the document.
    """
    keywords = split_words(args.keywords) if args.keywords else ctx.manifest.keywords
    values = split_words(args.values) if args.values else ctx.manifest.values

    ctx.log_verbose(f"Keywords: {', '.join(keywords)}")
    ctx.log_verbose(f"Values:   {', '.join(values)}")

    document = _load_document(ctx, args.location, args.inplace)
    try:
        key = ctx.resolve_key(document)
        changes = TreeTransformer(key).encrypt(document, keywords, values)
    except CryptConfigError as e:
        raise e.with_fields(location=args.location)

    for change in changes:
        ctx.log_verbose(f"Encrypted {change.key} (line {change.line}, column {change.column})")

    _write_document(ctx, document, args.location, args.inplace)

    if not ctx.quiet:
        if changes:
            print_success(f"Encrypted {len(changes)} value(s) in {args.location}")
        else:
            print_info(f"No secrets to encrypt in {args.location}")
    return 0


def cmd_decrypt(ctx: CLIContext, args: argparse.Namespace) -> int:
    """
    Decrypt every secret block in the document.
    """
    document = _load_document(ctx, args.location, args.inplace)
    try:
        key = ctx.resolve_key(document)
        changes = TreeTransformer(key).decrypt(document)
    except CryptConfigError as e:
        raise e.with_fields(location=args.location)

    for change in changes:
        ctx.log_verbose(f"Decrypted {change.key} (line {change.line}, column {change.column})")

    _write_document(ctx, document, args.location, args.inplace)

    if not ctx.quiet:
        print_success(f"Decrypted {len(changes)} value(s) in {args.location}")
        if args.inplace and changes:
            print_warning("the file now holds plaintext secrets, do NOT commit it")
    return 0


def cmd_generate(ctx: CLIContext, args: argparse.Namespace) -> int:
    """
    Generate a data key wrapped with the master key.
    """
    wrapped = generate_data_key(ctx.master_key)
    lines = wrap_text(wrapped, args.width)

    print(f"{ENCRYPTION_BLOCK} {{")
    print(f"    // data key wrapped with ${ctx.manifest.master_key_env}")
    print(f"    {DATAKEY_FIELD} = <<-EOF")
    for line in lines:
        print(f"        {line}")
    print("        EOF")
    print("}")
    return 0


def cmd_explain(ctx: CLIContext, args: argparse.Namespace) -> int:
    """
    Explain which values in the document would be encrypted and why.
    """
    document = _load_document(ctx, args.location, inplace=False)
    try:
        matcher = KeywordMatcher.for_document(
            document, ctx.manifest.keywords, ctx.manifest.values
        )
    except CryptConfigError as e:
        raise e.with_fields(location=args.location)

    print(colored(f"Secret Evaluation: {args.location}", Colors.BOLD))
    print("")

    matched = 0
    encrypted = 0

    def visit(node):
        nonlocal matched, encrypted
        if not isinstance(node, ObjectItem):
            return node, True

        literal = ciphertext_literal(node)
        if literal is not None:
            encrypted += 1
            print(f"  {colored('●', Colors.CYAN)} {node.keys[0].text:<24} line {literal.token.pos.line:<5} already encrypted")
            return node, False

        literal = plain_secret_value(node)
        if literal is None:
            return node, True

        key_text = node.keys[0].text
        decision = matcher.evaluate(node.keys[0].token.text, literal.token.text)
        line = literal.token.pos.line
        if decision.matched:
            matched += 1
            reason = (
                f"key contains '{decision.keyword}'"
                if decision.keyword is not None
                else f"value contains '{decision.valueword}'"
            )
            print(f"  {colored('✓', Colors.GREEN)} {key_text:<24} line {line:<5} {reason}")
        elif ctx.verbose:
            print(f"  {colored('✗', Colors.YELLOW)} {key_text:<24} line {line:<5} no match")
        return node, True

    walk(document, visit)

    print("")
    print(f"  Would encrypt:     {matched}")
    print(f"  Already encrypted: {encrypted}")
    print(f"  Data key declared: {'yes' if read_data_key(document) is not None else 'no'}")
    return 0


def cmd_help(ctx: Optional[CLIContext], args: argparse.Namespace) -> int:
    """
    Show help message.
    """
    help_text = f"""
{colored('cryptconfig', Colors.BOLD)} — manage secrets in HCL configuration files

{colored('USAGE:', Colors.CYAN)}
  cryptconfig [options] <command> [command options] <location>

{colored('DESCRIPTION:', Colors.CYAN)}
  Sensitive values in a configuration file are stored as

      password {{
          ciphertext = "<encrypted-data>"
      }}

  and restored to  password = "<cleartext>"  when the file is loaded.
  A value is treated as a secret when its key contains one of the
  keywords or its value contains one of the valuewords.

  The location can be a HTTP(S) URL or a local file. The result is
  written to standard output unless --inplace is given, which only
  works for local files.

{colored('COMMANDS:', Colors.CYAN)}
  encrypt     Encrypt secrets in a file
                --inplace, --keywords a,b, --values x,y
  decrypt     Decrypt secrets in a file
                --inplace
  generate    Generate a data key block for a configuration file
  explain     Show which values would be encrypted and why
  help        Show this help message

{colored('GLOBAL OPTIONS:', Colors.CYAN)}
  -m, --manifest PATH       Path to manifest file
                            (default: {DEFAULT_MANIFEST})
  -v, --verbose             Enable verbose output
  -q, --quiet               Suppress non-error output
  -h, --help                Show this help message and exit

{colored('ENVIRONMENT:', Colors.CYAN)}
  CRYPTCONFIG_MASTER_KEY    Secret used to wrap and unwrap data keys
                            (the manifest can name another variable)

{colored('EXAMPLES:', Colors.CYAN)}
  cryptconfig generate >> app.hcl
  cryptconfig encrypt --inplace app.hcl
  cryptconfig decrypt https://config.example.com/app.hcl
  cryptconfig explain app.hcl

{colored('VERSION:', Colors.CYAN)}
  {TOOL_VERSION}
"""
    print(help_text)
    return 0


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="cryptconfig",
        description="Manage secrets in HCL configuration files",
        add_help=False,
    )

    # Global options
    parser.add_argument(
        "-m", "--manifest",
        default=DEFAULT_MANIFEST,
        help="Path to manifest file",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose output",
    )
    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Suppress non-error output",
    )
    parser.add_argument(
        "-h", "--help",
        action="store_true",
        help="Show help message",
    )

    # Subcommands
    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    # encrypt command
    encrypt_parser = subparsers.add_parser("encrypt", help="Encrypt secrets in a file")
    encrypt_parser.add_argument("location", help="File path or URL")
    encrypt_parser.add_argument("--inplace", action="store_true", help="Update file in place")
    encrypt_parser.add_argument("--keywords", action="append", help="Keywords to encrypt (comma separated)")
    encrypt_parser.add_argument("--values", action="append", help="Values to encrypt (comma separated)")

    # decrypt command
    decrypt_parser = subparsers.add_parser("decrypt", help="Decrypt secrets in a file")
    decrypt_parser.add_argument("location", help="File path or URL")
    decrypt_parser.add_argument("--inplace", action="store_true", help="Update file in place")

    # generate command
    generate_parser = subparsers.add_parser("generate", help="Generate a wrapped data key")
    generate_parser.add_argument("--width", type=int, default=64, help="Line width of the key block")

    # explain command
    explain_parser = subparsers.add_parser("explain", help="Explain secret matching")
    explain_parser.add_argument("location", help="File path or URL")

    # help command
    subparsers.add_parser("help", help="Show help message")

    return parser


# ---------------------------------------------------------------------------
# Main entry point
# ---------------------------------------------------------------------------


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    # Show help if requested or no command
    if args.help or not args.command:
        return cmd_help(None, args)

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s")

    # Build context
    ctx = CLIContext(
        manifest_path=args.manifest,
        verbose=args.verbose,
        quiet=args.quiet,
    )

    # Dispatch to command
    commands = {
        "encrypt": cmd_encrypt,
        "decrypt": cmd_decrypt,
        "generate": cmd_generate,
        "explain": cmd_explain,
        "help": cmd_help,
    }

    cmd_func = commands.get(args.command)
    if not cmd_func:
        print_error(f"Unknown command: {args.command}")
        return 1

    try:
        return cmd_func(ctx, args)
    except CryptConfigError as e:
        print_error(str(e))
        return 1
    except KeyboardInterrupt:
        print_error("Interrupted")
        return 130
    except Exception as e:
        print_error(f"Unexpected error: {e}")
        if args.verbose:
            import traceback
            traceback.print_exc()
        return 1
    finally:
        ctx.close()


if __name__ == "__main__":
    sys.exit(main())
