"""
Core record types shared by clustering, ranking and search.

Articles are produced by ingestion and are immutable afterwards. Anything
malformed is rejected here, at construction, so the scoring code downstream
never has to guess about missing dates or unknown categories.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Tuple

CATEGORIES = (
    'general',
    'politics',
    'business',
    'environment',
    'community',
    'emergency',
    'military',
)

DEFAULT_CATEGORY = 'general'
MAX_KEYWORDS = 10


class ArticleValidationError(ValueError):
    """Raised when an Article or Source is built from incomplete data."""


@dataclass(frozen=True)
class Source:
    """A news outlet. Lower priority numbers are more authoritative."""

    id: str
    name: str
    priority: int
    short_name: str = ''
    url: str = ''
    type: str = ''
    region: str = ''

    def __post_init__(self):
        if not self.id:
            raise ArticleValidationError("source id is required")
        if not self.name:
            raise ArticleValidationError(f"source {self.id!r} has no name")
        if isinstance(self.priority, bool) or not isinstance(self.priority, int):
            raise ArticleValidationError(
                f"source {self.id!r} priority must be an int, got {self.priority!r}"
            )
        if not self.short_name:
            object.__setattr__(self, 'short_name', self.name)


@dataclass(frozen=True)
class Article:
    """
    A single normalized item from one news source.

    Attributes:
        id: Stable id derived from source id + URL
        title: Headline
        url: Link to the original article
        summary: Truncated plain-text summary
        published_at: Timezone-aware publication time
        source: The Source that published it
        category: One of CATEGORIES
        keywords: Up to MAX_KEYWORDS frequency-ranked terms from ingestion
        author: Optional byline
        image_url: Lead image from the feed, if any
    """

    id: str
    title: str
    url: str
    published_at: datetime
    source: Source
    summary: str = ''
    category: str = DEFAULT_CATEGORY
    keywords: Tuple[str, ...] = field(default_factory=tuple)
    author: Optional[str] = None
    image_url: Optional[str] = None

    def __post_init__(self):
        for name in ('id', 'title', 'url'):
            if not getattr(self, name):
                raise ArticleValidationError(f"article {name} is required")

        if not isinstance(self.published_at, datetime):
            raise ArticleValidationError(
                f"article {self.id!r} published_at must be a datetime, "
                f"got {self.published_at!r}"
            )
        if self.published_at.tzinfo is None:
            raise ArticleValidationError(
                f"article {self.id!r} published_at must be timezone-aware"
            )

        if not isinstance(self.source, Source):
            raise ArticleValidationError(f"article {self.id!r} has no valid source")

        if self.category not in CATEGORIES:
            raise ArticleValidationError(
                f"article {self.id!r} has unknown category {self.category!r}"
            )

        keywords = tuple(self.keywords or ())
        if len(keywords) > MAX_KEYWORDS:
            raise ArticleValidationError(
                f"article {self.id!r} has {len(keywords)} keywords (max {MAX_KEYWORDS})"
            )
        object.__setattr__(self, 'keywords', keywords)

        if self.summary is None:
            object.__setattr__(self, 'summary', '')

    def __repr__(self):
        return f"Article({self.source.short_name}: {self.title[:50]}...)"
