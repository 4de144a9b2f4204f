"""
HCL scanner and parser.

Parses the native HCL syntax into the tree defined in ``nodes``:

    name = "value"
    block "label" {
        list = [1, 2.5, true, "x"]
        text = <<EOF
    ...
    EOF
    }

Whitespace and comments (``#``, ``//`` and ``/* */``) are attached to the
following token as ``leading`` text, never discarded.
"""

from __future__ import annotations

import logging
import re
from typing import Iterator, List, Optional

from .errors import StructuralError
from .nodes import (
    LITERAL_TYPES,
    File,
    ListElement,
    ListType,
    LiteralType,
    Node,
    ObjectItem,
    ObjectKey,
    ObjectList,
    ObjectType,
    Pos,
    Token,
    TokenType,
)

logger = logging.getLogger(__name__)

_NUMBER_RE = re.compile(r"-?(?:0[xX][0-9a-fA-F]+|\d+(?:\.\d+)?(?:[eE][+-]?\d+)?)", re.ASCII)

_PUNCTUATION = {
    "{": TokenType.LBRACE,
    "}": TokenType.RBRACE,
    "[": TokenType.LBRACK,
    "]": TokenType.RBRACK,
    "=": TokenType.ASSIGN,
    ",": TokenType.COMMA,
}


def _is_ident_start(ch: str) -> bool:
    return ch.isalpha() or ch == "_"


def _is_ident_char(ch: str) -> bool:
    return ch.isalnum() or ch in "_-.:"


# ---------------------------------------------------------------------------
# Scanner
# ---------------------------------------------------------------------------


class Scanner:
    def __init__(self, src: str):
        self.src = src
        self.offset = 0
        self.line = 1
        self.column = 1

    def tokens(self) -> Iterator[Token]:
        """Yield every token, ending with EOF."""
        while True:
            token = self.scan()
            yield token
            if token.type == TokenType.EOF:
                return

    def scan(self) -> Token:
        leading = self._trivia()
        pos = self._pos()
        ch = self._peek()

        if not ch:
            return Token(TokenType.EOF, "", pos, leading)

        if ch in _PUNCTUATION:
            self._advance()
            return Token(_PUNCTUATION[ch], ch, pos, leading)

        if ch == '"':
            return Token(TokenType.STRING, self._string(pos), pos, leading)

        if ch == "<" and self._peek(1) == "<":
            return Token(TokenType.HEREDOC, self._heredoc(pos), pos, leading)

        number = _NUMBER_RE.match(self.src, self.offset)
        if number:
            text = number.group(0)
            self._advance(len(text))
            is_float = not text.lower().lstrip("-").startswith("0x") and any(
                c in text for c in ".eE"
            )
            return Token(TokenType.FLOAT if is_float else TokenType.NUMBER, text, pos, leading)

        if _is_ident_start(ch):
            start = self.offset
            while self._peek() and _is_ident_char(self._peek()):
                self._advance()
            text = self.src[start : self.offset]
            kind = TokenType.BOOL if text in ("true", "false") else TokenType.IDENT
            return Token(kind, text, pos, leading)

        raise StructuralError(
            "illegal character", line=pos.line, column=pos.column, char=ch
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _pos(self) -> Pos:
        return Pos(self.offset, self.line, self.column)

    def _peek(self, ahead: int = 0) -> str:
        index = self.offset + ahead
        return self.src[index] if index < len(self.src) else ""

    def _advance(self, count: int = 1) -> None:
        for _ in range(count):
            if self.offset >= len(self.src):
                return
            ch = self.src[self.offset]
            self.offset += 1
            if ch == "\n":
                self.line += 1
                self.column = 1
            else:
                self.column += 1

    def _skip_line(self) -> None:
        while self._peek() and self._peek() != "\n":
            self._advance()

    def _trivia(self) -> str:
        start = self.offset
        while True:
            ch = self._peek()
            if ch and ch.isspace():
                self._advance()
            elif ch == "#" or (ch == "/" and self._peek(1) == "/"):
                self._skip_line()
            elif ch == "/" and self._peek(1) == "*":
                pos = self._pos()
                end = self.src.find("*/", self.offset + 2)
                if end < 0:
                    raise StructuralError(
                        "comment not terminated", line=pos.line, column=pos.column
                    )
                self._advance(end + 2 - self.offset)
            else:
                return self.src[start : self.offset]

    def _string(self, pos: Pos) -> str:
        start = self.offset
        self._advance()
        braces = 0
        while True:
            ch = self._peek()
            if not ch or (ch == "\n" and braces == 0):
                raise StructuralError(
                    "literal not terminated", line=pos.line, column=pos.column
                )
            if ch == "\\":
                self._advance(2)
            elif ch == "$" and self._peek(1) == "{":
                braces += 1
                self._advance(2)
            elif ch == "{" and braces:
                braces += 1
                self._advance()
            elif ch == "}" and braces:
                braces -= 1
                self._advance()
            elif ch == '"' and not braces:
                self._advance()
                return self.src[start : self.offset]
            else:
                self._advance()

    def _heredoc(self, pos: Pos) -> str:
        start = self.offset
        self._advance(2)
        if self._peek() == "-":
            self._advance()

        anchor_start = self.offset
        while self._peek() and (self._peek().isalnum() or self._peek() == "_"):
            self._advance()
        anchor = self.src[anchor_start : self.offset]
        if not anchor:
            raise StructuralError(
                "zero-length heredoc anchor", line=pos.line, column=pos.column
            )

        if self._peek() == "\r":
            self._advance()
        if self._peek() != "\n":
            raise StructuralError(
                "invalid characters in heredoc anchor", line=pos.line, column=pos.column
            )
        self._advance()

        while True:
            line_start = self.offset
            self._skip_line()
            if self.src[line_start : self.offset].strip() == anchor:
                return self.src[start : self.offset]
            if not self._peek():
                raise StructuralError(
                    "heredoc not terminated", line=pos.line, column=pos.column, anchor=anchor
                )
            self._advance()


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


class Parser:
    def __init__(self, src: str):
        self.tokens: List[Token] = list(Scanner(src).tokens())
        self.index = 0

    def parse(self) -> File:
        items = self._object_list(top_level=True)
        eof = self._expect(TokenType.EOF, "expected end of file")
        return File(ObjectList(items), eof)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _peek(self) -> Token:
        return self.tokens[self.index]

    def _next(self) -> Token:
        token = self.tokens[self.index]
        if token.type != TokenType.EOF:
            self.index += 1
        return token

    def _error(self, message: str, token: Token) -> StructuralError:
        return StructuralError(
            message,
            line=token.pos.line,
            column=token.pos.column,
            token=token.text or token.type.value,
        )

    def _expect(self, kind: TokenType, message: str) -> Token:
        token = self._peek()
        if token.type != kind:
            raise self._error(message, token)
        return self._next()

    def _object_list(self, top_level: bool) -> List[ObjectItem]:
        items: List[ObjectItem] = []
        while True:
            token = self._peek()
            if token.type == TokenType.EOF:
                break
            if token.type == TokenType.RBRACE:
                if top_level:
                    raise self._error("unexpected closing brace", token)
                break
            items.append(self._object_item())
        return items

    def _object_item(self) -> ObjectItem:
        keys = self._object_keys()
        token = self._peek()

        assign: Optional[Token] = None
        if token.type == TokenType.ASSIGN:
            if len(keys) > 1:
                raise self._error("nested object expected: LBRACE got: ASSIGN", token)
            assign = self._next()
            val = self._value()
        elif token.type == TokenType.LBRACE:
            val = self._object_type()
        else:
            raise self._error("expected '=' or '{' after object key", token)

        comma = self._next() if self._peek().type == TokenType.COMMA else None
        return ObjectItem(keys, assign, val, comma)

    def _object_keys(self) -> List[ObjectKey]:
        keys: List[ObjectKey] = []
        while self._peek().type in (TokenType.IDENT, TokenType.STRING):
            keys.append(ObjectKey(self._next()))
        if not keys:
            raise self._error("expected object key", self._peek())
        return keys

    def _value(self) -> Node:
        token = self._peek()
        if token.type == TokenType.LBRACE:
            return self._object_type()
        if token.type == TokenType.LBRACK:
            return self._list_type()
        if token.type in LITERAL_TYPES:
            return LiteralType(self._next())
        raise self._error("unexpected token while parsing value", token)

    def _object_type(self) -> ObjectType:
        lbrace = self._next()
        items = self._object_list(top_level=False)
        rbrace = self._expect(TokenType.RBRACE, "object expected closing RBRACE")
        return ObjectType(lbrace, ObjectList(items), rbrace)

    def _list_type(self) -> ListType:
        lbrack = self._next()
        elements: List[ListElement] = []
        while self._peek().type != TokenType.RBRACK:
            if self._peek().type == TokenType.EOF:
                raise self._error("list expected closing RBRACK", self._peek())
            value = self._value()
            comma: Optional[Token] = None
            if self._peek().type == TokenType.COMMA:
                comma = self._next()
            elif self._peek().type != TokenType.RBRACK:
                raise self._error("list elements must be separated by commas", self._peek())
            elements.append(ListElement(value, comma))
        rbrack = self._next()
        return ListType(lbrack, elements, rbrack)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def parse(src: str | bytes) -> File:
    """Parse HCL text into a ``File``."""
    if isinstance(src, bytes):
        try:
            src = src.decode("utf-8")
        except UnicodeDecodeError as e:
            raise StructuralError("document is not valid UTF-8", offset=e.start) from None
    document = Parser(src).parse()
    logger.debug("parsed document with %d top-level items", len(document.node.items))
    return document
