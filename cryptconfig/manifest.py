"""
Manifest loading, validation, and normalization.

This module answers one question:
    "Which values does the user want treated as secrets by default?"

Responsibilities:
- Load the optional manifest YAML file (``.cryptconfig.yml``)
- Validate structure and version
- Normalize defaults
- Expose a clean Python representation

Example:

    version: 1
    keywords: [password, secret, apikey, token]
    values: ["password="]
    master_key_env: CRYPTCONFIG_MASTER_KEY

This module does NOT:
- Parse configuration documents
- Encrypt or decrypt data
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List

import yaml

from .config import (
    DEFAULT_KEYWORDS,
    DEFAULT_VALUEWORDS,
    ENV_MASTER_KEY,
    SUPPORTED_MANIFEST_VERSION,
)
from .errors import StructuralError


@dataclass
class Manifest:
    version: int = SUPPORTED_MANIFEST_VERSION
    keywords: List[str] = field(default_factory=lambda: list(DEFAULT_KEYWORDS))
    values: List[str] = field(default_factory=lambda: list(DEFAULT_VALUEWORDS))
    master_key_env: str = ENV_MASTER_KEY

    # ------------------------------------------------------------------
    # Loading API
    # ------------------------------------------------------------------

    @classmethod
    def load(cls, path: str | Path, required: bool = False) -> "Manifest":
        """
        Load and validate a manifest file.

        Args:
            path: Path to the manifest YAML file
            required: raise if the file does not exist instead of
                returning the defaults

        Raises:
            StructuralError: if the manifest is invalid or required but missing

        Returns:
            Manifest
        """

        path = Path(path)
        if not path.exists():
            if required:
                raise StructuralError("manifest file not found", path=str(path))
            return cls()

        try:
            with path.open("r", encoding="utf-8") as fh:
                raw = yaml.safe_load(fh) or {}
        except yaml.YAMLError as e:
            raise StructuralError("cannot parse manifest", path=str(path)) from e

        if not isinstance(raw, dict):
            raise StructuralError("manifest must be a mapping", path=str(path))

        try:
            return cls._from_dict(raw)
        except StructuralError as e:
            raise e.with_fields(path=str(path))

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @classmethod
    def _from_dict(cls, data: Dict[str, Any]) -> "Manifest":
        version = data.get("version", SUPPORTED_MANIFEST_VERSION)
        if version != SUPPORTED_MANIFEST_VERSION:
            raise StructuralError("unsupported manifest version", version=version)

        master_key_env = data.get("master_key_env", ENV_MASTER_KEY)
        if not isinstance(master_key_env, str) or not master_key_env:
            raise StructuralError("master_key_env must be a non-empty string")

        return cls(
            version=version,
            keywords=cls._parse_words(data, "keywords", DEFAULT_KEYWORDS),
            values=cls._parse_words(data, "values", DEFAULT_VALUEWORDS),
            master_key_env=master_key_env,
        )

    @staticmethod
    def _parse_words(data: Dict[str, Any], name: str, default) -> List[str]:
        words = data.get(name)
        if words is None:
            return list(default)
        if not isinstance(words, list) or not all(isinstance(w, str) for w in words):
            raise StructuralError(f"'{name}' must be a list of strings")
        return words
