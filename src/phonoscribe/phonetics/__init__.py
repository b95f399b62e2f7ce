"""
Word-level IPA conversion for orthographic text.

English words are looked up in an IPA dictionary; Spanish words go through an
ordered table of spelling rules.
"""

from typing import Optional

from .dictionary import IpaDictionary, clean_word
from .spanish import SPANISH_RULES, spanish_to_ipa

__all__ = [
    'IpaDictionary',
    'SPANISH_RULES',
    'clean_word',
    'spanish_to_ipa',
    'transcribe_to_ipa',
]


def transcribe_to_ipa(text: str, language: str = "en", dictionary: Optional[IpaDictionary] = None) -> str:
    """
    Convert every whitespace-separated word of ``text`` to IPA.

    Args:
        text: Orthographic text.
        language: ``"es"`` selects the Spanish rules, anything else uses
            dictionary lookup.
        dictionary: English dictionary; an empty one when omitted, in which
            case words come back cleaned but untranscribed.
    """
    if not text:
        return ""

    words = text.lower().split()

    if language == "es":
        return " ".join(spanish_to_ipa(word) for word in words)

    dictionary = dictionary or IpaDictionary()
    return " ".join(dictionary.lookup(word) for word in words)
