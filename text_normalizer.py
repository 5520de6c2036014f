"""
Text Normalizer
Turns raw text into the stemmed terms shared by similarity scoring and search.
"""

import re
from typing import List, Set, Tuple

# Common English function words
STOPWORDS = frozenset([
    'the', 'a', 'an', 'and', 'or', 'but', 'in', 'on', 'at', 'to', 'for', 'of',
    'with', 'by', 'from', 'as', 'is', 'was', 'are', 'were', 'been', 'be',
    'have', 'has', 'had', 'do', 'does', 'did', 'will', 'would', 'could',
    'should', 'may', 'might', 'must', 'its', 'this', 'that',
])

# Region names show up in nearly every local story and carry no signal
REGION_NOISE_WORDS = frozenset([
    'hawaii', 'hawaiian', 'honolulu', 'maui', 'oahu', 'kauai',
])

MIN_TERM_LENGTH = 3

# Ordered: the first matching suffix wins
DERIVATIONAL_SUFFIXES = (
    ('ational', 'ate'),
    ('tional', 'tion'),
    ('enci', 'ence'),
    ('anci', 'ance'),
    ('izer', 'ize'),
    ('isation', 'ise'),
    ('ization', 'ize'),
    ('ation', 'ate'),
    ('ator', 'ate'),
    ('alism', 'al'),
    ('iveness', 'ive'),
    ('fulness', 'ful'),
    ('ousness', 'ous'),
    ('aliti', 'al'),
    ('iviti', 'ive'),
    ('biliti', 'ble'),
)

_NON_WORD_RE = re.compile(r'\W+')


def tokenize(text: str) -> List[str]:
    """Lower-case and split on non-word characters."""
    if not text:
        return []
    return [token for token in _NON_WORD_RE.split(text.lower()) if token]


def stem(word: str) -> str:
    """
    Lightweight suffix-stripping stemmer.

    Handles plural and verb endings first, then applies at most one
    derivational replacement from DERIVATIONAL_SUFFIXES.
    """
    word = word.lower()

    # Plurals
    if word.endswith('sses'):
        word = word[:-2]
    elif word.endswith('ies'):
        word = word[:-3] + 'y'
    elif word.endswith('ss'):
        pass
    elif word.endswith('s') and len(word) > 3:
        word = word[:-1]

    # Verb endings
    if word.endswith('eed'):
        if len(word) > 4:
            word = word[:-1]
    elif word.endswith('ed') and len(word) > 4:
        word = word[:-2]
    elif word.endswith('ing') and len(word) > 5:
        word = word[:-3]

    for suffix, replacement in DERIVATIONAL_SUFFIXES:
        if word.endswith(suffix) and len(word) > len(suffix) + 2:
            word = word[:-len(suffix)] + replacement
            break

    return word


def is_indexable(token: str) -> bool:
    """True when a raw token survives the length and stopword filters."""
    return (
        len(token) >= MIN_TERM_LENGTH
        and token not in STOPWORDS
        and token not in REGION_NOISE_WORDS
    )


def normalize(text: str) -> List[str]:
    """
    Normalize text into an ordered list of stemmed terms.

    Args:
        text: Raw text (title, summary, query...)

    Returns:
        Stemmed terms in input order, duplicates kept
    """
    return [stem(token) for token in tokenize(text) if is_indexable(token)]


def normalize_with_surface(text: str) -> List[Tuple[str, str]]:
    """Like normalize(), but pairs each term with the token it came from."""
    return [(stem(token), token) for token in tokenize(text) if is_indexable(token)]


def term_set(text: str) -> Set[str]:
    return set(normalize(text))
