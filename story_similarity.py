"""
Similarity Engine
Scores how likely two articles are to describe the same real-world story.

The score is lexical: Jaccard overlap of titles, bodies, capitalized entities
and ingestion keywords, plus a small same-category bonus, all scaled by a
linear time decay.
"""

import re
from typing import Iterable, List, Set

from news_types import Article
from text_normalizer import term_set

DECAY_WINDOW_HOURS = 72.0

TITLE_WEIGHT = 0.4
BODY_WEIGHT = 0.25
ENTITY_WEIGHT = 0.2
KEYWORD_WEIGHT = 0.15
CATEGORY_BONUS = 0.1

_ENTITY_RE = re.compile(r'\b([A-Z][a-z]+(?:\s+[A-Z][a-z]+)*)\b')

# Capitalized phrases that are almost never the subject of a story
NON_ENTITIES = frozenset([
    'The', 'A', 'An', 'In', 'On', 'At', 'For', 'With', 'By', 'From',
    'Monday', 'Tuesday', 'Wednesday', 'Thursday', 'Friday', 'Saturday', 'Sunday',
    'January', 'February', 'March', 'April', 'May', 'June', 'July', 'August',
    'September', 'October', 'November', 'December',
    'Today', 'Yesterday', 'Tomorrow',
])


def jaccard(first: Iterable, second: Iterable) -> float:
    """Intersection over union; 0.0 when both sides are empty."""
    first, second = set(first), set(second)
    union = first | second
    if not union:
        return 0.0
    return len(first & second) / len(union)


def extract_entities(text: str) -> List[str]:
    """Runs of capitalized words, minus common non-entities."""
    if not text:
        return []
    return [match for match in _ENTITY_RE.findall(text) if match not in NON_ENTITIES]


def hours_between(a: Article, b: Article) -> float:
    return abs((a.published_at - b.published_at).total_seconds()) / 3600


def time_decay(a: Article, b: Article) -> float:
    """Linear decay from 1.0 to 0.0 over DECAY_WINDOW_HOURS."""
    return max(0.0, 1.0 - hours_between(a, b) / DECAY_WINDOW_HOURS)


def _combined_text(article: Article) -> str:
    return f"{article.title} {article.summary}"


class ArticleFeatures:
    """Per-article term sets, computed once and reused across pairs."""

    def __init__(self, article: Article):
        combined = _combined_text(article)
        self.article = article
        self.title_terms: Set[str] = term_set(article.title)
        self.body_terms: Set[str] = term_set(combined)
        self.entities: Set[str] = set(extract_entities(combined))
        self.keywords: Set[str] = set(article.keywords)


def feature_similarity(first: ArticleFeatures, second: ArticleFeatures) -> float:
    """similarity() over precomputed features."""
    a, b = first.article, second.article

    # Never cluster two articles from the same outlet
    if a.source.id == b.source.id:
        return 0.0

    decay = time_decay(a, b)
    if decay == 0.0:
        return 0.0

    score = (
        jaccard(first.title_terms, second.title_terms) * TITLE_WEIGHT
        + jaccard(first.body_terms, second.body_terms) * BODY_WEIGHT
        + jaccard(first.entities, second.entities) * ENTITY_WEIGHT
        + jaccard(first.keywords, second.keywords) * KEYWORD_WEIGHT
    )
    if a.category == b.category:
        score += CATEGORY_BONUS

    return min(1.0, score * decay)


def similarity(a: Article, b: Article) -> float:
    """
    Score how likely two articles cover the same story.

    Args:
        a: First article
        b: Second article

    Returns:
        Float in [0, 1]; 0 for same-source pairs or pairs more than
        DECAY_WINDOW_HOURS apart
    """
    if a.source.id == b.source.id:
        return 0.0
    return feature_similarity(ArticleFeatures(a), ArticleFeatures(b))
