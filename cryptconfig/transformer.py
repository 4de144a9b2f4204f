"""
Document transformation: encrypting and decrypting secret values.

This module rewrites entries of a parsed document between the plain form

    password = "secret"

and the secret block form

    password {
        ciphertext = "<encrypted-data>"
    }

It is intentionally dumb about where documents and keys come from: the
caller supplies both.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, Protocol

from .config import CIPHERTEXT_FIELD, INDENT
from .errors import CryptConfigError, MissingKeyError, StructuralError
from .nodes import (
    File,
    LiteralType,
    Node,
    ObjectItem,
    ObjectKey,
    ObjectList,
    ObjectType,
    Pos,
    Token,
    TokenType,
    heredoc_payload,
    unquote,
    walk,
)
from .parser import Scanner
from .rules import KeywordMatcher

logger = logging.getLogger(__name__)

_UNSAFE_CIPHERTEXT = re.compile(r'["\\\r\n]')


class Encrypter(Protocol):
    def encrypt_string(self, cleartext: str) -> str: ...


class Decrypter(Protocol):
    def decrypt_string(self, ciphertext: str) -> str: ...


@dataclass(frozen=True)
class Change:
    key: str
    line: int
    column: int


# ---------------------------------------------------------------------------
# Node shapes
# ---------------------------------------------------------------------------


def plain_secret_value(item: ObjectItem) -> Optional[LiteralType]:
    """The string literal of a ``key = "value"`` entry, else None."""
    if len(item.keys) != 1 or item.assign is None:
        return None
    if not isinstance(item.val, LiteralType):
        return None
    # heredocs, numbers and bools are never encrypted
    if item.val.token.type != TokenType.STRING:
        return None
    return item.val


def ciphertext_literal(item: ObjectItem) -> Optional[LiteralType]:
    """The ciphertext literal of a ``key { ciphertext = ... }`` entry, else None."""
    if len(item.keys) != 1 or not isinstance(item.val, ObjectType):
        return None
    inner = item.val.list.items
    if len(inner) != 1 or len(inner[0].keys) != 1:
        return None

    key_token = inner[0].keys[0].token
    if key_token.type not in (TokenType.IDENT, TokenType.STRING):
        return None
    if key_token.text not in (CIPHERTEXT_FIELD, f'"{CIPHERTEXT_FIELD}"'):
        return None

    value = inner[0].val
    if not isinstance(value, LiteralType):
        return None
    if value.token.type not in (TokenType.STRING, TokenType.HEREDOC):
        return None
    return value


def _invoke(fn: Callable[[str], str], text: str, pos: Pos, message: str) -> str:
    try:
        return fn(text)
    except CryptConfigError as e:
        raise e.with_fields(line=pos.line, column=pos.column)
    except Exception as e:
        raise CryptConfigError(message, line=pos.line, column=pos.column) from e


def _secret_block(item: ObjectItem, ciphertext: str) -> ObjectItem:
    pos = item.val.token.pos
    if _UNSAFE_CIPHERTEXT.search(ciphertext):
        raise StructuralError(
            "ciphertext cannot be written as a string literal",
            line=pos.line,
            column=pos.column,
        )

    key_token = item.keys[0].token
    leading = key_token.leading
    # the first token of a file also starts a line
    if "\n" in leading or key_token.pos.offset == len(leading):
        last_line = leading.rsplit("\n", 1)[-1]
        indent = re.match(r"[ \t]*", last_line).group(0)
        inner, closing = "\n" + indent + INDENT, "\n" + indent
    else:
        inner, closing = " ", " "

    field = ObjectItem(
        keys=[ObjectKey(Token(TokenType.IDENT, CIPHERTEXT_FIELD, pos, inner))],
        assign=Token(TokenType.ASSIGN, "=", pos, " "),
        val=LiteralType(Token(TokenType.STRING, f'"{ciphertext}"', pos, " ")),
    )
    block = ObjectType(
        lbrace=Token(TokenType.LBRACE, "{", pos, " "),
        list=ObjectList([field]),
        rbrace=Token(TokenType.RBRACE, "}", pos, closing),
    )
    # no assign token: printed as a nested block
    return ObjectItem(keys=item.keys, assign=None, val=block, comma=item.comma)


def _check_string_literal(text: str, pos: Pos) -> None:
    """Raise unless text is exactly one well-formed quoted string."""
    try:
        token = Scanner(text).scan()
        valid = token.type == TokenType.STRING and token.text == text
        if valid:
            unquote(text, pos)
    except StructuralError:
        valid = False
    if not valid:
        raise StructuralError(
            "decrypted value is not a string literal",
            line=pos.line,
            column=pos.column,
        )


def _plain_entry(item: ObjectItem, literal: LiteralType, cleartext: str) -> ObjectItem:
    pos = literal.token.pos
    # the cleartext is the original literal, quotes included
    _check_string_literal(cleartext, pos)
    return ObjectItem(
        keys=item.keys,
        assign=Token(TokenType.ASSIGN, "=", pos, " "),
        val=LiteralType(Token(TokenType.STRING, cleartext, pos, " ")),
        comma=item.comma,
    )


# ---------------------------------------------------------------------------
# Transformer
# ---------------------------------------------------------------------------


class TreeTransformer:
    """
    Encrypts or decrypts secrets in a document, in place.

    ``cipher`` provides ``encrypt_string`` and/or ``decrypt_string`` and
    may be None when the document declares no encryption; that is only
    an error once a secret is actually found. The first error aborts the
    pass, and a document that raised must be discarded rather than
    printed.
    """

    def __init__(self, cipher: Optional[object] = None):
        self.cipher = cipher

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def encrypt(
        self,
        document: File,
        keywords: Optional[Iterable[str]] = None,
        valuewords: Optional[Iterable[str]] = None,
    ) -> List[Change]:
        """
        Replace every matching ``key = "value"`` with a secret block.

        An entry matches when its key contains any keyword or its value
        contains any valueword, ignoring case. Keywords and valuewords
        declared in the document's ``encryption`` block are added to the
        ones given here.
        """

        matcher = KeywordMatcher.for_document(document, keywords, valuewords)
        changes: List[Change] = []

        def visit(node: Node):
            if not isinstance(node, ObjectItem):
                return node, True
            if ciphertext_literal(node) is not None:
                # already encrypted
                return node, False

            literal = plain_secret_value(node)
            if literal is None:
                return node, True

            # raw token text, quotes and escapes included
            key_text = node.keys[0].token.text
            value_text = literal.token.text
            if not matcher.matches(key_text, value_text):
                return node, True

            pos = literal.token.pos
            if self.cipher is None:
                raise MissingKeyError(
                    "no encryption key present",
                    key=node.keys[0].text,
                    line=pos.line,
                    column=pos.column,
                )

            ciphertext = _invoke(
                self.cipher.encrypt_string, value_text, pos, "cannot encrypt value"
            )
            changes.append(Change(node.keys[0].text, pos.line, pos.column))
            return _secret_block(node, ciphertext), False

        walk(document, visit)
        logger.debug("encrypted %d value(s)", len(changes))
        return changes

    def decrypt(self, document: File) -> List[Change]:
        """Replace every secret block with ``key = "<cleartext>"``."""

        changes: List[Change] = []

        def visit(node: Node):
            if not isinstance(node, ObjectItem):
                return node, True

            literal = ciphertext_literal(node)
            if literal is None:
                return node, True

            key_text = node.keys[0].text
            token = literal.token
            if self.cipher is None:
                raise MissingKeyError(
                    "no encryption key present",
                    key=key_text,
                    line=token.pos.line,
                    column=token.pos.column,
                )

            if token.type == TokenType.HEREDOC:
                ciphertext = heredoc_payload(token.text)
            else:
                ciphertext = token.text[1:-1]

            cleartext = _invoke(
                self.cipher.decrypt_string, ciphertext, token.pos, "cannot decrypt value"
            )
            changes.append(Change(key_text, token.pos.line, token.pos.column))
            return _plain_entry(node, literal, cleartext), False

        walk(document, visit)
        logger.debug("decrypted %d value(s)", len(changes))
        return changes


# ---------------------------------------------------------------------------
# Convenience functions
# ---------------------------------------------------------------------------


def encrypt_document(
    document: File,
    encrypter: Optional[Encrypter],
    keywords: Optional[Iterable[str]] = None,
    valuewords: Optional[Iterable[str]] = None,
) -> List[Change]:
    return TreeTransformer(encrypter).encrypt(document, keywords, valuewords)


def decrypt_document(document: File, decrypter: Optional[Decrypter]) -> List[Change]:
    return TreeTransformer(decrypter).decrypt(document)
