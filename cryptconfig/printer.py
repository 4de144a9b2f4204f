"""
Serialize a syntax tree back to HCL text.

Each token is written after its leading whitespace and comments, so an
unmodified tree prints exactly as it was parsed.
"""

from __future__ import annotations

from .nodes import Node


def print_node(node: Node) -> str:
    return "".join(token.leading + token.text for token in node.tokens())
