import re
from typing import Iterable

_BRACKETED_TAG = re.compile(r"\[.*?\]")


def assemble(texts: Iterable[str]) -> str:
    """Join ordered segment texts with single spaces, skipping empty ones."""
    return " ".join(stripped for stripped in (text.strip() for text in texts) if stripped)


def clean_ipa_output(text: str) -> str:
    """Remove bracketed tags the model may emit (``[MUSIC]``, speaker labels) and collapse whitespace."""
    return " ".join(_BRACKETED_TAG.sub(" ", text).split())
