"""
Secret matching logic.

Given the key text and value text of a configuration entry, this module
decides:
- whether the entry holds a secret
- which keyword or valueword triggered the decision

Rules DO NOT perform actions. They only return decisions.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional

from .config import ENCRYPTION_BLOCK
from .errors import StructuralError
from .nodes import File, to_python


@dataclass(frozen=True)
class MatchDecision:
    matched: bool
    keyword: Optional[str] = None
    valueword: Optional[str] = None


class KeywordMatcher:
    """
    Case-insensitive substring matcher.

    An entry matches when its key contains any keyword, or its value
    contains any valueword. Words are lower-cased and trimmed when they
    are added; key and value text are lower-cased when matched.
    """

    def __init__(
        self,
        keywords: Optional[Iterable[str]] = None,
        valuewords: Optional[Iterable[str]] = None,
    ):
        self.keywords: List[str] = []
        self.valuewords: List[str] = []
        self.add(keywords or (), valuewords or ())

    @classmethod
    def for_document(
        cls,
        document: File,
        keywords: Optional[Iterable[str]] = None,
        valuewords: Optional[Iterable[str]] = None,
    ) -> "KeywordMatcher":
        """
        Build a matcher from caller defaults plus the document's own
        ``encryption { keywords = [...] values = [...] }`` declaration.
        """

        matcher = cls(keywords, valuewords)
        declaration = to_python(document).get(ENCRYPTION_BLOCK) or {}
        if not isinstance(declaration, dict):
            raise StructuralError(
                "encryption declaration must be a block", field=ENCRYPTION_BLOCK
            )
        matcher.add(
            _word_list(declaration, "keywords"),
            _word_list(declaration, "values"),
        )
        return matcher

    def add(self, keywords: Iterable[str], valuewords: Iterable[str]) -> None:
        self.keywords.extend(_normalize(keywords))
        self.valuewords.extend(_normalize(valuewords))

    def evaluate(self, key: str, value: str) -> MatchDecision:
        key = key.lower()
        for keyword in self.keywords:
            if keyword in key:
                return MatchDecision(matched=True, keyword=keyword)

        value = value.lower()
        for valueword in self.valuewords:
            if valueword in value:
                return MatchDecision(matched=True, valueword=valueword)

        return MatchDecision(matched=False)

    def matches(self, key: str, value: str) -> bool:
        return self.evaluate(key, value).matched


def _normalize(words: Iterable[str]) -> List[str]:
    normalized = (word.strip().lower() for word in words)
    # an empty word would match everything
    return [word for word in normalized if word]


def _word_list(declaration: dict, name: str) -> List[str]:
    words = declaration.get(name, [])
    if not isinstance(words, list) or not all(isinstance(w, str) for w in words):
        raise StructuralError(
            "encryption declaration must be a list of strings",
            field=f"{ENCRYPTION_BLOCK}.{name}",
        )
    return words
