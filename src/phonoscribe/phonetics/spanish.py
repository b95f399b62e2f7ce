"""Rule-based Spanish orthography to IPA."""

import re
from typing import List, Pattern, Tuple

# Applied top to bottom. Digraphs come before the single letters they contain,
# and accent stripping comes last so the c/g rules still see accented vowels.
SPANISH_RULES: List[Tuple[Pattern, str]] = [
    (re.compile(r"ch"), "tʃ"),
    (re.compile(r"h"), ""),
    (re.compile(r"v"), "b"),
    (re.compile(r"ll"), "ʝ"),
    (re.compile(r"y"), "ʝ"),
    (re.compile(r"(?<!r)r(?!r)"), "ɾ"),
    (re.compile(r"rr"), "r"),
    (re.compile(r"ñ"), "ɲ"),
    (re.compile(r"qu(?=[eé])"), "k"),
    (re.compile(r"qu(?=[ií])"), "k"),
    (re.compile(r"c(?=[aáoóuú])"), "k"),
    (re.compile(r"c(?=[eéií])"), "s"),
    (re.compile(r"g(?=[aáoóuú])"), "ɡ"),
    (re.compile(r"g(?=[eéií])"), "x"),
    (re.compile(r"j"), "x"),
    (re.compile(r"z"), "s"),
    (re.compile(r"á"), "a"),
    (re.compile(r"é"), "e"),
    (re.compile(r"í"), "i"),
    (re.compile(r"ó"), "o"),
    (re.compile(r"ú"), "u"),
    (re.compile(r"ü"), "u"),
]


def spanish_to_ipa(word: str, rules: List[Tuple[Pattern, str]] = SPANISH_RULES) -> str:
    ipa = word.lower()
    for pattern, replacement in rules:
        ipa = pattern.sub(replacement, ipa)
    return ipa
