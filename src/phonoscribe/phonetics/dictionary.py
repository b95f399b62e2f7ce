"""English IPA dictionary lookup."""

import re
from pathlib import Path
from types import MappingProxyType
from typing import Iterable, Mapping, Union

from phonoscribe.utils.logger import get_logger

logger = get_logger("IpaDictionary")

_NON_ALPHA = re.compile(r"[^a-z]")

# Dictionaries store pronunciation variants as word(1), word(2), ...
VARIANT_SUFFIX = "(1)"


def clean_word(word: str) -> str:
    return _NON_ALPHA.sub("", word.lower())


class IpaDictionary:
    """
    Read-only mapping from lowercase word to IPA.

    The file format is one entry per line, whitespace separated:
    ``word ipa [ignored fields...]``. Later duplicates overwrite earlier ones.
    """

    def __init__(self, entries: Mapping[str, str] = None):
        self._entries = MappingProxyType(dict(entries or {}))

    @classmethod
    def from_lines(cls, lines: Iterable[str]) -> "IpaDictionary":
        entries = {}
        for line in lines:
            parts = line.split()
            if len(parts) >= 2:
                entries[parts[0].lower()] = parts[1]
        return cls(entries)

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "IpaDictionary":
        with open(path, encoding="utf-8") as f:
            dictionary = cls.from_lines(f)
        logger.info(f"Loaded {len(dictionary)} English IPA entries from {path}")
        return dictionary

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, word: str) -> bool:
        return word in self._entries

    @property
    def entries(self) -> Mapping[str, str]:
        return self._entries

    def lookup(self, word: str) -> str:
        """Return the IPA for ``word``, or the cleaned word itself when unknown."""
        cleaned = clean_word(word)
        result = self._entries.get(cleaned)
        if not result:
            result = self._entries.get(cleaned + VARIANT_SUFFIX) or cleaned
        return result
