"""
Tokenization used to match submission text against summary phrases.
"""

import re
from typing import Iterable, Optional, Set

STOPWORDS = frozenset({
    "and", "the", "with", "for", "this", "that", "from", "into", "your",
    "their", "about", "over", "some", "more", "than", "very", "much", "also",
    "just", "when", "after", "before", "were", "been", "them", "they", "you",
    "our", "any", "but", "are", "was", "has", "have", "had", "will", "would",
    "could", "should", "onto", "while", "there", "here",
})

_DELIMITERS_RE = re.compile(r"[\s,.;:!?/\\\-_|]+")
_TRIM_CHARS = ".,;:!?\"'()[]{}"


def tokenize(text: Optional[str]) -> Set[str]:
    """
    Lowercase word set of ``text``.

    Splits on whitespace and punctuation, trims quotes/brackets, and keeps
    tokens longer than two characters that are not stopwords.
    """
    if not text:
        return set()

    tokens = set()
    for raw in _DELIMITERS_RE.split(text.lower()):
        token = raw.strip(_TRIM_CHARS)
        if len(token) > 2 and token not in STOPWORDS:
            tokens.add(token)
    return tokens


def tokenize_all(texts: Iterable[Optional[str]]) -> Set[str]:
    terms: Set[str] = set()
    for text in texts:
        terms |= tokenize(text)
    return terms


def phrase_matches(phrase: str, terms: Set[str]) -> bool:
    """True if any token of ``phrase`` appears in ``terms``."""
    return not tokenize(phrase).isdisjoint(terms)
