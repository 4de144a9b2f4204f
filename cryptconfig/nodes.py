"""
Syntax tree for HCL configuration documents.

Every token keeps the whitespace and comments that precede it in the
source (``Token.leading``), so printing an unmodified tree gives back
the original text byte for byte.

Nodes own their children. ``walk`` visits them in document order and
stores whatever the visitor returns back into the parent's slot, so a
visitor replaces a node by returning a new one instead of mutating
shared state.
"""

from __future__ import annotations

import re
import textwrap
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple, Union

from .errors import StructuralError


class TokenType(Enum):
    IDENT = "IDENT"
    STRING = "STRING"
    HEREDOC = "HEREDOC"
    NUMBER = "NUMBER"
    FLOAT = "FLOAT"
    BOOL = "BOOL"
    LBRACE = "LBRACE"
    RBRACE = "RBRACE"
    LBRACK = "LBRACK"
    RBRACK = "RBRACK"
    ASSIGN = "ASSIGN"
    COMMA = "COMMA"
    EOF = "EOF"


LITERAL_TYPES = frozenset(
    {
        TokenType.STRING,
        TokenType.HEREDOC,
        TokenType.NUMBER,
        TokenType.FLOAT,
        TokenType.BOOL,
    }
)


@dataclass(frozen=True)
class Pos:
    offset: int = 0
    line: int = 0
    column: int = 0


@dataclass
class Token:
    type: TokenType
    text: str
    pos: Pos = field(default_factory=Pos)
    leading: str = ""


# ---------------------------------------------------------------------------
# Nodes
# ---------------------------------------------------------------------------


@dataclass
class ObjectKey:
    token: Token

    @property
    def text(self) -> str:
        """Key text with any quotes removed."""
        if self.token.type == TokenType.STRING:
            return unquote(self.token.text, self.token.pos)
        return self.token.text

    def tokens(self) -> Iterator[Token]:
        yield self.token


@dataclass
class LiteralType:
    token: Token

    @property
    def value(self) -> Any:
        return literal_value(self.token)

    def tokens(self) -> Iterator[Token]:
        yield self.token


@dataclass
class ListElement:
    value: "Node"
    comma: Optional[Token] = None


@dataclass
class ListType:
    lbrack: Token
    elements: List[ListElement]
    rbrack: Token

    def tokens(self) -> Iterator[Token]:
        yield self.lbrack
        for element in self.elements:
            yield from element.value.tokens()
            if element.comma is not None:
                yield element.comma
        yield self.rbrack


@dataclass
class ObjectList:
    items: List["ObjectItem"] = field(default_factory=list)

    def tokens(self) -> Iterator[Token]:
        for item in self.items:
            yield from item.tokens()

    def filter(self, key: str) -> List["ObjectItem"]:
        """Items whose first key is ``key``."""
        return [item for item in self.items if item.keys and item.keys[0].text == key]


@dataclass
class ObjectType:
    lbrace: Token
    list: ObjectList
    rbrace: Token

    def tokens(self) -> Iterator[Token]:
        yield self.lbrace
        yield from self.list.tokens()
        yield self.rbrace


@dataclass
class ObjectItem:
    """
    One entry of an object list.

    ``assign`` is the ``=`` token. An item with an assignment prints as
    ``key = value``; without one it prints as ``key { ... }``.
    """

    keys: List[ObjectKey]
    assign: Optional[Token]
    val: "Node"
    comma: Optional[Token] = None

    @property
    def pos(self) -> Pos:
        return self.keys[0].token.pos

    def tokens(self) -> Iterator[Token]:
        for key in self.keys:
            yield from key.tokens()
        if self.assign is not None:
            yield self.assign
        yield from self.val.tokens()
        if self.comma is not None:
            yield self.comma


@dataclass
class File:
    node: ObjectList
    eof: Token

    def tokens(self) -> Iterator[Token]:
        yield from self.node.tokens()
        yield self.eof


Node = Union[File, ObjectList, ObjectItem, ObjectKey, ObjectType, ListType, LiteralType]

WalkFunc = Callable[[Node], Tuple[Node, bool]]


# ---------------------------------------------------------------------------
# Traversal
# ---------------------------------------------------------------------------


def walk(node: Node, fn: WalkFunc) -> Node:
    """
    Visit ``node`` and its children in document order.

    ``fn`` returns ``(replacement, keep_walking)``. The replacement takes
    the visited node's place in its parent; when ``keep_walking`` is
    false its children are not visited. Returns the (possibly replaced)
    root.
    """

    rewritten, keep_walking = fn(node)
    if not keep_walking:
        return rewritten

    if isinstance(rewritten, File):
        rewritten.node = walk(rewritten.node, fn)
    elif isinstance(rewritten, ObjectList):
        for index, item in enumerate(rewritten.items):
            rewritten.items[index] = walk(item, fn)
    elif isinstance(rewritten, ObjectItem):
        for index, key in enumerate(rewritten.keys):
            rewritten.keys[index] = walk(key, fn)
        rewritten.val = walk(rewritten.val, fn)
    elif isinstance(rewritten, ObjectType):
        rewritten.list = walk(rewritten.list, fn)
    elif isinstance(rewritten, ListType):
        for element in rewritten.elements:
            element.value = walk(element.value, fn)

    return rewritten


# ---------------------------------------------------------------------------
# Literals
# ---------------------------------------------------------------------------

_SIMPLE_ESCAPES = {
    "a": "\a",
    "b": "\b",
    "f": "\f",
    "n": "\n",
    "r": "\r",
    "t": "\t",
    "v": "\v",
    "\\": "\\",
    '"': '"',
    "'": "'",
}

_HEX_ESCAPES = {"x": 2, "u": 4, "U": 8}


def unquote(text: str, pos: Optional[Pos] = None) -> str:
    """Decode a double-quoted string literal."""
    pos = pos or Pos()
    if len(text) < 2 or text[0] != '"' or text[-1] != '"':
        raise StructuralError("invalid string literal", line=pos.line, column=pos.column)

    body = text[1:-1]
    if "\\" not in body:
        return body

    out: List[str] = []
    i = 0
    while i < len(body):
        ch = body[i]
        if ch != "\\":
            out.append(ch)
            i += 1
            continue

        esc = body[i + 1 : i + 2]
        if esc in _SIMPLE_ESCAPES:
            out.append(_SIMPLE_ESCAPES[esc])
            i += 2
        elif esc in _HEX_ESCAPES:
            width = _HEX_ESCAPES[esc]
            digits = body[i + 2 : i + 2 + width]
            if len(digits) != width or not all(c in "0123456789abcdefABCDEF" for c in digits):
                raise StructuralError("invalid escape sequence", line=pos.line, column=pos.column)
            out.append(chr(int(digits, 16)))
            i += 2 + width
        elif esc and esc in "01234567":
            digits = body[i + 1 : i + 4]
            if len(digits) != 3 or not all(c in "01234567" for c in digits):
                raise StructuralError("invalid escape sequence", line=pos.line, column=pos.column)
            out.append(chr(int(digits, 8)))
            i += 4
        else:
            raise StructuralError("invalid escape sequence", line=pos.line, column=pos.column)

    return "".join(out)


def heredoc_value(text: str) -> str:
    """The string value of a heredoc token (``<<EOF ... EOF``)."""
    lines = text.split("\n")
    body = [line.rstrip("\r") for line in lines[1:-1]]
    if not body:
        return ""
    value = "\n".join(body) + "\n"
    if lines[0].startswith("<<-"):
        value = textwrap.dedent(value)
    return value


def heredoc_payload(text: str) -> str:
    """
    The raw interior of a heredoc token.

    Drops the leading ``<<DELIM`` word and the trailing ``DELIM`` word and
    keeps everything between them, whitespace included.
    """
    text = text.strip()
    text = re.sub(r"^\S*", "", text)
    text = re.sub(r"\S*$", "", text)
    return text


def literal_value(token: Token) -> Any:
    if token.type == TokenType.STRING:
        return unquote(token.text, token.pos)
    if token.type == TokenType.HEREDOC:
        return heredoc_value(token.text)
    if token.type == TokenType.BOOL:
        return token.text == "true"
    if token.type == TokenType.FLOAT:
        return float(token.text)
    if token.type == TokenType.NUMBER:
        try:
            return int(token.text, 0)
        except ValueError:
            # leading zeros
            return int(token.text, 10)
    raise StructuralError(
        "not a literal", line=token.pos.line, column=token.pos.column, token=token.text
    )


# ---------------------------------------------------------------------------
# Conversion to plain Python data
# ---------------------------------------------------------------------------


def to_python(node: Node) -> Any:
    """
    Convert a tree into dicts, lists and scalars.

    ``a "b" { ... }`` becomes ``{"a": {"b": {...}}}``. Objects that repeat
    a key are merged; for conflicting scalars the later one wins.
    """

    if isinstance(node, File):
        return to_python(node.node)
    if isinstance(node, ObjectType):
        return to_python(node.list)
    if isinstance(node, ListType):
        return [to_python(element.value) for element in node.elements]
    if isinstance(node, LiteralType):
        return node.value
    if isinstance(node, ObjectList):
        result: Dict[str, Any] = {}
        for item in node.items:
            value = to_python(item.val)
            for key in reversed(item.keys[1:]):
                value = {key.text: value}
            _merge(result, item.keys[0].text, value)
        return result
    raise TypeError(f"cannot convert {type(node).__name__}")


def _merge(target: Dict[str, Any], key: str, value: Any) -> None:
    existing = target.get(key)
    if isinstance(existing, dict) and isinstance(value, dict):
        for sub_key, sub_value in value.items():
            _merge(existing, sub_key, sub_value)
    else:
        target[key] = value
